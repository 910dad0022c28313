"""Shared route helpers used across multiple route modules."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

from fastapi import HTTPException

from ..domain_models import format_duration
from ..errors import WorkoutMonitorError

if TYPE_CHECKING:
    from ..domain_models import WorkoutSession
    from ..history_store import HistoryStore

T = TypeVar("T")


def http_error(exc: WorkoutMonitorError) -> HTTPException:
    """Translate a domain failure into its HTTP status with the same message."""
    return HTTPException(status_code=exc.status_code, detail=exc.message)


async def call_or_http_error(func: Callable[..., T], *args: Any) -> T:
    """Run a blocking domain call in a thread, mapping domain errors to HTTP."""
    try:
        return await asyncio.to_thread(func, *args)
    except WorkoutMonitorError as exc:
        raise http_error(exc) from exc


def require_session(history: HistoryStore, session_id: str) -> WorkoutSession:
    """Fetch a history session or raise 404."""
    session = history.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def session_payload(session: WorkoutSession) -> dict[str, Any]:
    payload = session.to_dict()
    payload["durationDisplay"] = format_duration(session.metrics.duration)
    return payload
