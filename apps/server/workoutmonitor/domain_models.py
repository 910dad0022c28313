"""Domain model objects for the workout monitor.

Typed dataclasses for everything that crosses a module boundary.  The
``to_dict``/``from_dict`` pairs define the persisted layout (camelCase keys,
matching the history record stored under ``workoutHistory``).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any


class MovementType(StrEnum):
    STILL = "still"
    WALKING = "walking"
    RUNNING = "running"
    JUMPING = "jumping"


class Intensity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _as_finite_float(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"expected a number, got {value!r}")
    out = float(value)
    if not math.isfinite(out):
        raise ValueError(f"expected a finite number, got {value!r}")
    return out


def _as_non_negative_int(value: object) -> int:
    out = _as_finite_float(value)
    if out < 0:
        raise ValueError(f"expected a non-negative number, got {value!r}")
    return int(out)


def format_duration(seconds: int) -> str:
    """Render whole seconds as ``m:ss``."""
    seconds = max(0, int(seconds))
    mins, secs = divmod(seconds, 60)
    return f"{mins}:{secs:02d}"


# ---------------------------------------------------------------------------
# 1) SensorSample
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SensorSample:
    x: float
    y: float
    z: float
    magnitude: float

    @classmethod
    def from_xyz(cls, x: float, y: float, z: float) -> SensorSample:
        x, y, z = float(x), float(y), float(z)
        return cls(x=x, y=y, z=z, magnitude=math.sqrt(x * x + y * y + z * z))

    @classmethod
    def zero(cls) -> SensorSample:
        return cls(x=0.0, y=0.0, z=0.0, magnitude=0.0)

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z, "magnitude": self.magnitude}


# ---------------------------------------------------------------------------
# 2) WorkoutMetrics
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class WorkoutMetrics:
    """One consistent per-tick snapshot.  Replaced wholesale, never mutated."""

    steps: int = 0
    avg_acceleration: float = 0.0
    avg_rotation: float = 0.0
    calories: int = 0
    duration: int = 0
    intensity: Intensity = Intensity.LOW
    movement_type: MovementType = MovementType.STILL

    @classmethod
    def zero(cls) -> WorkoutMetrics:
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkoutMetrics:
        """Parse a persisted record; raises ``ValueError`` on corrupt input."""
        if not isinstance(data, dict):
            raise ValueError(f"metrics must be an object, got {type(data).__name__}")
        try:
            return cls(
                steps=_as_non_negative_int(data["steps"]),
                avg_acceleration=_as_finite_float(data["avgAcceleration"]),
                avg_rotation=_as_finite_float(data["avgRotation"]),
                calories=_as_non_negative_int(data["calories"]),
                duration=_as_non_negative_int(data["duration"]),
                intensity=Intensity(data["intensity"]),
                movement_type=MovementType(data["movementType"]),
            )
        except KeyError as exc:
            raise ValueError(f"metrics missing field {exc.args[0]!r}") from None

    def to_dict(self) -> dict[str, Any]:
        return {
            "steps": self.steps,
            "avgAcceleration": self.avg_acceleration,
            "avgRotation": self.avg_rotation,
            "calories": self.calories,
            "duration": self.duration,
            "intensity": self.intensity.value,
            "movementType": self.movement_type.value,
        }


# ---------------------------------------------------------------------------
# 3) WorkoutSession
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class WorkoutSession:
    id: str
    date: date
    start_time: str
    end_time: str
    metrics: WorkoutMetrics

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkoutSession:
        if not isinstance(data, dict):
            raise ValueError(f"session must be an object, got {type(data).__name__}")
        session_id = data.get("id")
        if not isinstance(session_id, str) or not session_id:
            raise ValueError("session id must be a non-empty string")
        raw_date = data.get("date")
        if not isinstance(raw_date, str):
            raise ValueError("session date must be an ISO calendar date")
        return cls(
            id=session_id,
            date=date.fromisoformat(raw_date),
            start_time=str(data.get("startTime") or ""),
            end_time=str(data.get("endTime") or ""),
            metrics=WorkoutMetrics.from_dict(data.get("metrics")),  # type: ignore[arg-type]
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "startTime": self.start_time,
            "endTime": self.end_time,
            "metrics": self.metrics.to_dict(),
        }


# ---------------------------------------------------------------------------
# 4) WeeklyStats
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class WeeklyStats:
    total_workouts: int = 0
    total_steps: int = 0
    total_calories: int = 0
    total_duration: int = 0
    average_intensity: float = 0.0
    workouts: tuple[WorkoutSession, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalWorkouts": self.total_workouts,
            "totalSteps": self.total_steps,
            "totalCalories": self.total_calories,
            "totalDuration": self.total_duration,
            "averageIntensity": self.average_intensity,
            "weeklyWorkouts": [s.to_dict() for s in self.workouts],
        }


# ---------------------------------------------------------------------------
# 5) LiveSensorData
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LiveSensorData:
    """Latest raw readings, replaced once per delivered sample."""

    accelerometer: SensorSample = field(default_factory=SensorSample.zero)
    gyroscope: SensorSample = field(default_factory=SensorSample.zero)
    steps: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "accelerometer": self.accelerometer.to_dict(),
            "gyroscope": self.gyroscope.to_dict(),
            "pedometer": {"steps": self.steps},
        }
