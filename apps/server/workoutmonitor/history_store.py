"""Bounded, newest-first history of completed workout sessions.

The whole list is serialised as one JSON array under a single key, so every
mutation is a read-modify-write of the full list.  The new list is built
aside, written, and only then swapped in: when the write fails the in-memory
history is exactly what it was before the call.

Order is insertion order (newest first), never re-sorted by date, so a
session saved after a clock change still lands at the front.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, time, timedelta
from enum import StrEnum
from threading import RLock
from uuid import uuid4

from .constants import (
    HISTORY_LIMIT,
    HISTORY_STORAGE_KEY,
    RECENT_SESSIONS_DEFAULT,
    WEEKLY_WINDOW_DAYS,
)
from .domain_models import (
    Intensity,
    WeeklyStats,
    WorkoutMetrics,
    WorkoutSession,
    format_duration,
)
from .errors import PersistenceError
from .json_utils import safe_json_dumps, safe_json_loads
from .kv_store import KeyValueStore

LOGGER = logging.getLogger(__name__)

_TIME_FORMAT = "%H:%M:%S"


class HistoryPeriod(StrEnum):
    TODAY = "today"
    WEEK = "week"
    ALL = "all"


def _new_session_id() -> str:
    return uuid4().hex


def _naive(value: datetime) -> datetime:
    return value.replace(tzinfo=None) if value.tzinfo is not None else value


class HistoryStore:
    """Thread-safe owner of the persisted session list.

    Parameters
    ----------
    kv:
        Durable store; only ``key`` is read or written.
    limit:
        Maximum number of retained sessions (oldest evicted first).
    clock:
        Returns the local wall-clock time used to stamp new sessions.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        *,
        limit: int = HISTORY_LIMIT,
        key: str = HISTORY_STORAGE_KEY,
        clock: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = _new_session_id,
    ) -> None:
        self._kv = kv
        self._key = key
        self.limit = max(1, int(limit))
        self._clock = clock
        self._id_factory = id_factory
        self._lock = RLock()
        self._sessions: list[WorkoutSession] = []

    # -- persistence ----------------------------------------------------------

    def load(self) -> list[WorkoutSession]:
        """Rebuild the in-memory list from storage.

        Missing or corrupt data yields an empty history; individual corrupt
        records are skipped with a warning.
        """
        with self._lock:
            try:
                raw = self._kv.get(self._key)
            except Exception:
                LOGGER.warning("Could not read workout history; starting empty", exc_info=True)
                self._sessions = []
                return []
            parsed = safe_json_loads(raw, context="workout history")
            if parsed is None:
                self._sessions = []
                return []
            if not isinstance(parsed, list):
                LOGGER.warning(
                    "Workout history is a %s, not a list; starting empty",
                    type(parsed).__name__,
                )
                self._sessions = []
                return []
            sessions: list[WorkoutSession] = []
            seen_ids: set[str] = set()
            for index, item in enumerate(parsed):
                try:
                    session = WorkoutSession.from_dict(item)
                except (TypeError, ValueError):
                    LOGGER.warning("Skipping corrupt history record #%d", index, exc_info=True)
                    continue
                if session.id in seen_ids:
                    LOGGER.warning("Skipping duplicate history record id=%s", session.id)
                    continue
                seen_ids.add(session.id)
                sessions.append(session)
            self._sessions = sessions[: self.limit]
            LOGGER.info("Loaded %d workout session(s) from history", len(self._sessions))
            return list(self._sessions)

    def _write_locked(self, sessions: list[WorkoutSession]) -> None:
        payload = safe_json_dumps([s.to_dict() for s in sessions])
        try:
            self._kv.set(self._key, payload)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Could not save workout history: {exc}") from exc

    # -- write ----------------------------------------------------------------

    def save(self, metrics: WorkoutMetrics, *, now: datetime | None = None) -> WorkoutSession:
        """Record *metrics* as a new session at the front of the history."""
        end = now or self._clock()
        start = end - timedelta(seconds=max(0, metrics.duration))
        with self._lock:
            existing_ids = {s.id for s in self._sessions}
            session_id = self._id_factory()
            while session_id in existing_ids:
                session_id = self._id_factory()
            session = WorkoutSession(
                id=session_id,
                date=end.date(),
                start_time=start.strftime(_TIME_FORMAT),
                end_time=end.strftime(_TIME_FORMAT),
                metrics=metrics,
            )
            updated = [session, *self._sessions][: self.limit]
            self._write_locked(updated)
            evicted = len(self._sessions) + 1 - len(updated)
            self._sessions = updated
        LOGGER.info(
            "Saved workout session %s (%s, %d steps)%s",
            session.id,
            format_duration(metrics.duration),
            metrics.steps,
            f"; evicted {evicted} oldest" if evicted > 0 else "",
        )
        return session

    def delete(self, session_id: str) -> bool:
        """Remove a session; returns ``False`` (no-op) when the id is unknown."""
        with self._lock:
            updated = [s for s in self._sessions if s.id != session_id]
            if len(updated) == len(self._sessions):
                return False
            self._write_locked(updated)
            self._sessions = updated
        LOGGER.info("Deleted workout session %s", session_id)
        return True

    def clear(self) -> None:
        with self._lock:
            try:
                self._kv.delete(self._key)
            except PersistenceError:
                raise
            except Exception as exc:
                raise PersistenceError(f"Could not clear workout history: {exc}") from exc
            count = len(self._sessions)
            self._sessions = []
        LOGGER.info("Cleared workout history (%d session(s) removed)", count)

    # -- read -----------------------------------------------------------------

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def list_sessions(self) -> list[WorkoutSession]:
        with self._lock:
            return list(self._sessions)

    def get(self, session_id: str) -> WorkoutSession | None:
        with self._lock:
            for session in self._sessions:
                if session.id == session_id:
                    return session
        return None

    def recent(self, limit: int = RECENT_SESSIONS_DEFAULT) -> list[WorkoutSession]:
        with self._lock:
            return self._sessions[: max(0, int(limit))]

    def _in_weekly_window(self, session: WorkoutSession, now: datetime) -> bool:
        cutoff = _naive(now) - timedelta(days=WEEKLY_WINDOW_DAYS)
        return datetime.combine(session.date, time.min) >= cutoff

    def sessions_for_period(
        self, period: HistoryPeriod | str, now: datetime | None = None
    ) -> list[WorkoutSession]:
        period = HistoryPeriod(period)
        now = now or self._clock()
        sessions = self.list_sessions()
        if period is HistoryPeriod.TODAY:
            today = now.date()
            return [s for s in sessions if s.date == today]
        if period is HistoryPeriod.WEEK:
            return [s for s in sessions if self._in_weekly_window(s, now)]
        return sessions

    def weekly_stats(self, now: datetime | None = None) -> WeeklyStats:
        """Aggregate sessions dated within the last seven days of *now*."""
        weekly = self.sessions_for_period(HistoryPeriod.WEEK, now)
        total = len(weekly)
        high = sum(1 for s in weekly if s.metrics.intensity is Intensity.HIGH)
        return WeeklyStats(
            total_workouts=total,
            total_steps=sum(s.metrics.steps for s in weekly),
            total_calories=sum(s.metrics.calories for s in weekly),
            total_duration=sum(s.metrics.duration for s in weekly),
            average_intensity=(high / total) if total else 0.0,
            workouts=tuple(weekly),
        )
