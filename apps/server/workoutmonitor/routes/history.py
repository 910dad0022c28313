"""History endpoints: list, fetch, delete, clear and the weekly summary."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Query

from ..api_models import (
    ClearHistoryResponse,
    DeleteSessionResponse,
    HistoryListResponse,
    SessionResponse,
    WeeklyStatsResponse,
)
from ..history_store import HistoryPeriod
from ._helpers import call_or_http_error, require_session, session_payload

if TYPE_CHECKING:
    from ..app import RuntimeState


def create_history_routes(state: RuntimeState) -> APIRouter:
    router = APIRouter()

    @router.get("/api/history", response_model=HistoryListResponse)
    async def list_history(
        period: HistoryPeriod = Query(default=HistoryPeriod.ALL),
        limit: int | None = Query(default=None, ge=1),
    ) -> HistoryListResponse:
        sessions = state.history.sessions_for_period(period)
        if limit is not None:
            sessions = sessions[:limit]
        return {"sessions": [session_payload(s) for s in sessions]}

    @router.get("/api/history/stats/weekly", response_model=WeeklyStatsResponse)
    async def weekly_stats() -> WeeklyStatsResponse:
        stats = state.history.weekly_stats()
        payload = stats.to_dict()
        payload["weeklyWorkouts"] = [session_payload(s) for s in stats.workouts]
        return payload

    @router.get("/api/history/{session_id}", response_model=SessionResponse)
    async def get_session(session_id: str) -> SessionResponse:
        return session_payload(require_session(state.history, session_id))

    @router.delete("/api/history/{session_id}", response_model=DeleteSessionResponse)
    async def delete_session(session_id: str) -> DeleteSessionResponse:
        deleted = await call_or_http_error(state.history.delete, session_id)
        return {"id": session_id, "deleted": deleted}

    @router.delete("/api/history", response_model=ClearHistoryResponse)
    async def clear_history() -> ClearHistoryResponse:
        count = len(state.history)
        await call_or_http_error(state.history.clear)
        return {"cleared": count}

    return router
