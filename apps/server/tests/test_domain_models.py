from __future__ import annotations

from datetime import date

import pytest

from workoutmonitor.domain_models import (
    Intensity,
    MovementType,
    SensorSample,
    WeeklyStats,
    WorkoutMetrics,
    WorkoutSession,
    format_duration,
)


def test_sensor_sample_magnitude() -> None:
    sample = SensorSample.from_xyz(1.0, 2.0, 2.0)
    assert sample.magnitude == pytest.approx(3.0)


def test_metrics_defaults_are_zero_still_low() -> None:
    metrics = WorkoutMetrics.zero()
    assert metrics.steps == 0 and metrics.duration == 0
    assert metrics.movement_type is MovementType.STILL
    assert metrics.intensity is Intensity.LOW


def test_metrics_persisted_layout() -> None:
    metrics = WorkoutMetrics(
        steps=120,
        avg_acceleration=6.0,
        avg_rotation=1.5,
        calories=5,
        duration=95,
        intensity=Intensity.HIGH,
        movement_type=MovementType.RUNNING,
    )
    assert metrics.to_dict() == {
        "steps": 120,
        "avgAcceleration": 6.0,
        "avgRotation": 1.5,
        "calories": 5,
        "duration": 95,
        "intensity": "high",
        "movementType": "running",
    }


@pytest.mark.parametrize(
    "patch",
    [
        {"steps": -1},
        {"avgAcceleration": float("nan")},
        {"intensity": "extreme"},
        {"movementType": "swimming"},
        {"calories": "5"},
    ],
)
def test_metrics_from_dict_rejects_corrupt_values(patch) -> None:
    data = {**WorkoutMetrics.zero().to_dict(), **patch}
    with pytest.raises(ValueError):
        WorkoutMetrics.from_dict(data)


def test_metrics_from_dict_rejects_missing_field() -> None:
    data = WorkoutMetrics.zero().to_dict()
    del data["avgRotation"]
    with pytest.raises(ValueError, match="avgRotation"):
        WorkoutMetrics.from_dict(data)


def test_session_from_dict() -> None:
    session = WorkoutSession.from_dict(
        {
            "id": "abc",
            "date": "2026-03-14",
            "startTime": "18:00:00",
            "endTime": "18:30:00",
            "metrics": WorkoutMetrics(duration=1800).to_dict(),
        }
    )
    assert session.date == date(2026, 3, 14)
    assert session.metrics.duration == 1800
    assert session.to_dict()["startTime"] == "18:00:00"


@pytest.mark.parametrize("payload", [None, {"id": "", "date": "2026-01-01"}, {"id": "x"}])
def test_session_from_dict_rejects_corrupt_records(payload) -> None:
    with pytest.raises(ValueError):
        WorkoutSession.from_dict(payload)


def test_weekly_stats_layout() -> None:
    assert WeeklyStats().to_dict() == {
        "totalWorkouts": 0,
        "totalSteps": 0,
        "totalCalories": 0,
        "totalDuration": 0,
        "averageIntensity": 0.0,
        "weeklyWorkouts": [],
    }


@pytest.mark.parametrize(
    ("seconds", "text"),
    [(0, "0:00"), (9, "0:09"), (65, "1:05"), (3600, "60:00"), (-3, "0:00")],
)
def test_format_duration(seconds: int, text: str) -> None:
    assert format_duration(seconds) == text
