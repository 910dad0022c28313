"""Shared workout constants, kept in one place.

Every numeric literal that appears in more than one module should live here
so that a change only needs to happen in one place.
"""

from __future__ import annotations

from typing import Final

# ---------------------------------------------------------------------------
# Sample windowing
# ---------------------------------------------------------------------------
RECENT_WINDOW_SAMPLES: Final[int] = 10
"""Number of most recent magnitudes averaged on every tick (``K``)."""

DEFAULT_SAMPLE_INTERVAL_MS: Final[int] = 100
"""Requested accelerometer/gyroscope delivery interval."""

MIN_SAMPLE_INTERVAL_MS: Final[int] = 10

# ---------------------------------------------------------------------------
# Classification thresholds (m/s², compared with ``>``)
# ---------------------------------------------------------------------------
JUMPING_THRESHOLD: Final[float] = 8.0
RUNNING_THRESHOLD: Final[float] = 5.0
WALKING_THRESHOLD: Final[float] = 1.0

# ---------------------------------------------------------------------------
# Calorie estimate: floor(steps * per_step + avg_accel * per_accel)
# ---------------------------------------------------------------------------
CALORIES_PER_STEP: Final[float] = 0.04
CALORIES_PER_ACCEL: Final[float] = 0.1

# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------
DEFAULT_TICK_INTERVAL_S: Final[float] = 1.0
MIN_TICK_INTERVAL_S: Final[float] = 0.05

MIN_BATTERY_LEVEL: Final[float] = 0.20
"""Battery fraction below which a session refuses to start."""

MIN_SAVE_DURATION_S: Final[int] = 10
"""Sessions must last strictly longer than this to be persisted on stop."""

HIGH_ACCURACY_MIN_BATTERY: Final[float] = 0.5
"""Battery fraction below which enabling high accuracy logs a warning."""

# ---------------------------------------------------------------------------
# History persistence
# ---------------------------------------------------------------------------
HISTORY_LIMIT: Final[int] = 100
"""Maximum number of sessions retained (``N``); the oldest is evicted first."""

WEEKLY_WINDOW_DAYS: Final[int] = 7

RECENT_SESSIONS_DEFAULT: Final[int] = 10

HISTORY_STORAGE_KEY: Final[str] = "workoutHistory"
SETTINGS_STORAGE_KEY: Final[str] = "appSettings"
