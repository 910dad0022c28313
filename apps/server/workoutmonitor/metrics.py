"""Per-session metrics aggregation on a fixed tick.

``MetricsAggregator`` reads the shared :class:`SampleBuffer` and
:class:`StepCountCell`, classifies the windowed acceleration, and publishes a
fresh :class:`WorkoutMetrics` snapshot once per tick.  Readers only ever see
whole snapshots: each tick builds a new frozen object and swaps the reference
under the lock.

The :meth:`MetricsAggregator.run` loop runs for the lifetime of the app and
is silent while no session is active.  Ticks never overlap; when one overruns
its period the missed ticks are skipped rather than queued.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Callable
from threading import RLock

from .classifier import DEFAULT_THRESHOLDS, ClassifierThresholds, classify
from .constants import (
    CALORIES_PER_ACCEL,
    CALORIES_PER_STEP,
    DEFAULT_TICK_INTERVAL_S,
    MIN_TICK_INTERVAL_S,
    RECENT_WINDOW_SAMPLES,
)
from .domain_models import WorkoutMetrics
from .processing import SampleBuffer, StepCountCell
from .sensors import Channel

LOGGER = logging.getLogger(__name__)


def estimate_calories(
    steps: int,
    avg_acceleration: float,
    *,
    per_step: float = CALORIES_PER_STEP,
    per_accel: float = CALORIES_PER_ACCEL,
) -> int:
    """Rough energy estimate, truncated toward zero."""
    raw = steps * per_step + avg_acceleration * per_accel
    if not math.isfinite(raw) or raw <= 0:
        return 0
    return math.floor(raw)


class MetricsAggregator:
    def __init__(
        self,
        buffer: SampleBuffer,
        steps: StepCountCell,
        *,
        tick_interval_s: float = DEFAULT_TICK_INTERVAL_S,
        window: int = RECENT_WINDOW_SAMPLES,
        thresholds: ClassifierThresholds = DEFAULT_THRESHOLDS,
        calories_per_step: float = CALORIES_PER_STEP,
        calories_per_accel: float = CALORIES_PER_ACCEL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.buffer = buffer
        self.steps = steps
        self.tick_interval_s = max(MIN_TICK_INTERVAL_S, float(tick_interval_s))
        self.window = max(1, int(window))
        self.thresholds = thresholds
        self.calories_per_step = float(calories_per_step)
        self.calories_per_accel = float(calories_per_accel)
        self._clock = clock
        self._lock = RLock()
        self._active = False
        self._session_start: float | None = None
        self._generation = 0
        self._snapshot = WorkoutMetrics.zero()
        self._tick_count = 0
        self._skipped_ticks = 0

    # -- session lifecycle ----------------------------------------------------

    def begin(self) -> float:
        """Zero the snapshot and start ticking; returns the session start time."""
        with self._lock:
            self._generation += 1
            self._session_start = self._clock()
            self._snapshot = WorkoutMetrics.zero()
            self._tick_count = 0
            self._active = True
            return self._session_start

    def end(self) -> WorkoutMetrics:
        """Publish one last snapshot at the current time and stop ticking."""
        with self._lock:
            if self._active:
                self._snapshot = self._compute_locked()
            self._generation += 1
            self._active = False
            self._session_start = None
            return self._snapshot

    @property
    def active(self) -> bool:
        with self._lock:
            return self._active

    @property
    def snapshot(self) -> WorkoutMetrics:
        with self._lock:
            return self._snapshot

    def status(self) -> dict[str, object]:
        with self._lock:
            return {
                "active": self._active,
                "tick_count": self._tick_count,
                "skipped_ticks": self._skipped_ticks,
                "tick_interval_s": self.tick_interval_s,
            }

    # -- computation ----------------------------------------------------------

    def _compute_locked(self) -> WorkoutMetrics:
        start = self._session_start
        elapsed = 0.0 if start is None else self._clock() - start
        duration = math.floor(elapsed) if math.isfinite(elapsed) and elapsed > 0 else 0
        avg_acceleration = self.buffer.recent_average(Channel.ACCELEROMETER, self.window)
        avg_rotation = self.buffer.recent_average(Channel.GYROSCOPE, self.window)
        steps = self.steps.steps
        movement_type, intensity = classify(avg_acceleration, self.thresholds)
        return WorkoutMetrics(
            steps=steps,
            avg_acceleration=avg_acceleration,
            avg_rotation=avg_rotation,
            calories=estimate_calories(
                steps,
                avg_acceleration,
                per_step=self.calories_per_step,
                per_accel=self.calories_per_accel,
            ),
            duration=duration,
            intensity=intensity,
            movement_type=movement_type,
        )

    def tick(self) -> WorkoutMetrics | None:
        """Compute and publish one snapshot; ``None`` while inactive."""
        with self._lock:
            if not self._active:
                return None
            snapshot = self._compute_locked()
            self._snapshot = snapshot
            self._tick_count += 1
            return snapshot

    # -- main async loop ------------------------------------------------------

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self.tick_interval_s
        next_due = loop.time() + interval
        while True:
            await asyncio.sleep(max(0.0, next_due - loop.time()))
            try:
                self.tick()
            except Exception:
                LOGGER.warning("Metrics tick failed; will retry next interval.", exc_info=True)
            next_due += interval
            now = loop.time()
            if now > next_due:
                missed = int((now - next_due) // interval) + 1
                with self._lock:
                    self._skipped_ticks += missed
                LOGGER.debug("Metrics tick overran; skipping %d tick(s)", missed)
                next_due += missed * interval
