from __future__ import annotations

import json
from datetime import date, datetime, timedelta

import pytest
from conftest import FlakyKeyValueStore

from workoutmonitor.domain_models import Intensity, MovementType, WorkoutMetrics
from workoutmonitor.errors import PersistenceError
from workoutmonitor.history_store import HistoryPeriod, HistoryStore
from workoutmonitor.kv_store import InMemoryKeyValueStore

NOW = datetime(2026, 3, 14, 18, 30, 0)


def _metrics(
    *,
    steps: int = 100,
    duration: int = 60,
    calories: int = 4,
    intensity: Intensity = Intensity.MEDIUM,
) -> WorkoutMetrics:
    return WorkoutMetrics(
        steps=steps,
        avg_acceleration=2.0,
        avg_rotation=0.3,
        calories=calories,
        duration=duration,
        intensity=intensity,
        movement_type=MovementType.WALKING,
    )


def _store(kv=None, **kwargs) -> HistoryStore:
    counter = iter(range(1, 10_000))
    kwargs.setdefault("clock", lambda: NOW)
    kwargs.setdefault("id_factory", lambda: f"s{next(counter)}")
    return HistoryStore(kv if kv is not None else InMemoryKeyValueStore(), **kwargs)


class TestSave:
    def test_save_prepends_and_persists(self) -> None:
        kv = InMemoryKeyValueStore()
        store = _store(kv)
        first = store.save(_metrics(steps=1))
        second = store.save(_metrics(steps=2))
        assert [s.id for s in store.list_sessions()] == [second.id, first.id]
        persisted = json.loads(kv.get("workoutHistory"))
        assert [item["id"] for item in persisted] == [second.id, first.id]
        assert persisted[0]["metrics"]["steps"] == 2

    def test_session_fields(self) -> None:
        session = _store().save(_metrics(duration=90))
        assert session.date == date(2026, 3, 14)
        assert session.end_time == "18:30:00"
        assert session.start_time == "18:28:30"
        assert session.metrics.duration == 90

    def test_short_sessions_are_accepted_when_saved_directly(self) -> None:
        store = _store()
        store.save(_metrics(duration=5))
        assert len(store) == 1

    def test_101_saves_keep_last_100(self) -> None:
        store = _store()
        saved = [store.save(_metrics(steps=i)) for i in range(101)]
        sessions = store.list_sessions()
        assert len(sessions) == 100
        assert saved[0].id not in {s.id for s in sessions}
        assert sessions[0].id == saved[-1].id
        assert sessions[-1].id == saved[1].id

    def test_insertion_order_wins_over_dates(self) -> None:
        store = _store()
        store.save(_metrics(), now=NOW)
        late = store.save(_metrics(), now=NOW - timedelta(days=3))
        assert store.list_sessions()[0].id == late.id

    def test_ids_are_unique(self) -> None:
        ids = iter(["dup", "dup", "fresh"])
        store = _store(id_factory=lambda: next(ids))
        a = store.save(_metrics())
        b = store.save(_metrics())
        assert (a.id, b.id) == ("dup", "fresh")

    def test_failed_write_leaves_history_unchanged(self) -> None:
        kv = FlakyKeyValueStore()
        store = _store(kv)
        store.save(_metrics(steps=1))
        before = store.list_sessions()
        kv.fail_writes = True
        with pytest.raises(PersistenceError):
            store.save(_metrics(steps=2))
        assert store.list_sessions() == before


class TestDeleteAndClear:
    def test_delete_removes_only_that_session(self) -> None:
        store = _store()
        a = store.save(_metrics())
        b = store.save(_metrics())
        assert store.delete(a.id) is True
        assert [s.id for s in store.list_sessions()] == [b.id]

    def test_delete_missing_id_is_a_noop(self) -> None:
        kv = FlakyKeyValueStore()
        store = _store(kv)
        store.save(_metrics())
        writes = kv.write_count
        assert store.delete("missing") is False
        assert kv.write_count == writes
        assert len(store) == 1

    def test_failed_delete_rolls_back(self) -> None:
        kv = FlakyKeyValueStore()
        store = _store(kv)
        a = store.save(_metrics())
        kv.fail_writes = True
        with pytest.raises(PersistenceError):
            store.delete(a.id)
        assert store.get(a.id) is not None

    def test_clear_empties_store_and_key(self) -> None:
        kv = InMemoryKeyValueStore()
        store = _store(kv)
        store.save(_metrics())
        store.clear()
        assert len(store) == 0
        assert kv.get("workoutHistory") is None

    def test_failed_clear_keeps_sessions(self) -> None:
        kv = FlakyKeyValueStore()
        store = _store(kv)
        store.save(_metrics())
        kv.fail_writes = True
        with pytest.raises(PersistenceError):
            store.clear()
        assert len(store) == 1


class TestLoad:
    def test_load_round_trips_saved_history(self) -> None:
        kv = InMemoryKeyValueStore()
        original = _store(kv)
        saved = [original.save(_metrics(steps=i)) for i in range(3)]
        reloaded = _store(kv)
        assert reloaded.load() == list(reversed(saved))

    def test_missing_key_gives_empty_history(self) -> None:
        assert _store().load() == []

    @pytest.mark.parametrize("raw", [b"{not json", b'{"a": 1}', b"42"])
    def test_corrupt_payload_gives_empty_history(self, raw: bytes) -> None:
        kv = InMemoryKeyValueStore({"workoutHistory": raw})
        assert _store(kv).load() == []

    def test_corrupt_records_are_skipped(self) -> None:
        kv = InMemoryKeyValueStore()
        good = _store(kv).save(_metrics())
        records = json.loads(kv.get("workoutHistory"))
        records.append({"id": "broken", "date": "yesterday"})
        records.append({"id": good.id, **{k: v for k, v in records[0].items() if k != "id"}})
        kv.set("workoutHistory", json.dumps(records).encode())
        assert [s.id for s in _store(kv).load()] == [good.id]

    def test_load_truncates_to_limit(self) -> None:
        kv = InMemoryKeyValueStore()
        big = _store(kv, limit=10)
        for _ in range(10):
            big.save(_metrics())
        assert len(_store(kv, limit=4).load()) == 4


class TestQueries:
    def test_get_and_recent(self) -> None:
        store = _store()
        saved = [store.save(_metrics(steps=i)) for i in range(12)]
        assert store.get(saved[3].id) == saved[3]
        assert store.get("nope") is None
        assert [s.id for s in store.recent()] == [s.id for s in reversed(saved[2:])]
        assert len(store.recent(3)) == 3

    def test_sessions_for_period(self) -> None:
        store = _store()
        old = store.save(_metrics(), now=NOW - timedelta(days=30))
        this_week = store.save(_metrics(), now=NOW - timedelta(days=2))
        today = store.save(_metrics(), now=NOW)
        assert store.sessions_for_period(HistoryPeriod.TODAY, NOW) == [today]
        assert store.sessions_for_period("week", NOW) == [today, this_week]
        assert store.sessions_for_period("all", NOW) == [today, this_week, old]

    def test_weekly_stats(self) -> None:
        store = _store()
        store.save(_metrics(steps=999, calories=50), now=NOW - timedelta(days=10))
        store.save(_metrics(steps=100, duration=60, calories=5, intensity=Intensity.HIGH))
        store.save(_metrics(steps=300, duration=120, calories=12, intensity=Intensity.LOW))
        stats = store.weekly_stats(NOW)
        assert stats.total_workouts == 2
        assert stats.total_steps == 400
        assert stats.total_calories == 17
        assert stats.total_duration == 180
        assert stats.average_intensity == pytest.approx(0.5)
        assert len(stats.to_dict()["weeklyWorkouts"]) == 2

    def test_weekly_boundary_uses_start_of_session_day(self) -> None:
        store = _store()
        store.save(_metrics(), now=NOW - timedelta(days=7))
        # midnight of that day is earlier than now - 7 days
        assert store.weekly_stats(NOW).total_workouts == 0
        assert store.weekly_stats(datetime(2026, 3, 14, 0, 0, 0)).total_workouts == 1

    def test_weekly_stats_empty(self) -> None:
        stats = _store().weekly_stats(NOW)
        assert stats.total_workouts == 0
        assert stats.average_intensity == 0.0

    def test_weekly_stats_is_a_pure_query(self) -> None:
        kv = FlakyKeyValueStore()
        store = _store(kv)
        store.save(_metrics())
        writes = kv.write_count
        assert store.weekly_stats(NOW) == store.weekly_stats(NOW)
        assert kv.write_count == writes
