"""Pydantic request/response models for the workout monitor HTTP API.

Field names follow the persisted camelCase layout so that a history record
read from storage and one returned by the API look the same.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SettingsRequest(BaseModel):
    batteryOptimization: bool | None = None
    highAccuracy: bool | None = None
    autoSave: bool | None = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    recording: bool
    permissions_granted: bool
    setup_error: str | None = None
    history_count: int
    live_clients: int = 0


class MetricsResponse(BaseModel):
    steps: int
    avgAcceleration: float
    avgRotation: float
    calories: int
    duration: int
    intensity: str
    movementType: str


class RecordingStatusResponse(BaseModel):
    state: str
    recording: bool
    permissions_granted: bool
    available_channels: list[str]
    granted_channels: list[str]
    setup_error: str | None = None
    sample_interval_ms: int
    battery_level: float | None = None
    metrics: MetricsResponse


class ToggleResponse(BaseModel):
    recording: bool
    metrics: MetricsResponse
    saved: bool = False
    session_id: str | None = None
    message: str | None = None


class SessionResponse(BaseModel):
    id: str
    date: str
    startTime: str
    endTime: str
    metrics: MetricsResponse
    durationDisplay: str


class HistoryListResponse(BaseModel):
    sessions: list[SessionResponse]


class DeleteSessionResponse(BaseModel):
    id: str
    deleted: bool


class ClearHistoryResponse(BaseModel):
    cleared: int


class WeeklyStatsResponse(BaseModel):
    totalWorkouts: int
    totalSteps: int
    totalCalories: int
    totalDuration: int
    averageIntensity: float = Field(ge=0.0, le=1.0)
    weeklyWorkouts: list[SessionResponse]


class SettingsResponse(BaseModel):
    batteryOptimization: bool
    highAccuracy: bool
    autoSave: bool
    effectiveSampleIntervalMs: int
