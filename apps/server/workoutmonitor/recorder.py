"""Session recording state machine.

``SessionRecorder`` owns the ``idle -> recording -> idle`` lifecycle: it
checks preconditions, clears the shared buffers, subscribes to the device
sensors and starts the metrics aggregator.  Stopping unsubscribes every
sensor callback *before* returning, so nothing from a finished session can
land in the buffer the next session clears.

The pedometer is watched from :meth:`SessionRecorder.setup` until
:meth:`SessionRecorder.close`, so the cumulative count seen at ``start()``
becomes the session baseline.  Step deliveries only reach the step-count cell
while a session is recording.

The recorder never persists anything itself; callers hand the final metrics
to the history store when :meth:`SessionRecorder.should_persist` agrees.
"""

from __future__ import annotations

import logging
import math
from enum import StrEnum
from threading import RLock
from typing import Any

from .constants import DEFAULT_SAMPLE_INTERVAL_MS, MIN_BATTERY_LEVEL, MIN_SAVE_DURATION_S
from .domain_models import LiveSensorData, SensorSample, WorkoutMetrics
from .errors import PermissionDenied, PreconditionFailed, UnavailableError
from .metrics import MetricsAggregator
from .processing import SampleBuffer, StepCountCell, live_snapshot
from .sensors import (
    MOTION_CHANNELS,
    BatteryProvider,
    Channel,
    SensorProvider,
    StepCounterProvider,
)

LOGGER = logging.getLogger(__name__)


class RecorderState(StrEnum):
    IDLE = "idle"
    RECORDING = "recording"


class SessionRecorder:
    def __init__(
        self,
        sensors: SensorProvider,
        step_counter: StepCounterProvider | None,
        battery: BatteryProvider,
        buffer: SampleBuffer,
        steps: StepCountCell,
        aggregator: MetricsAggregator,
        *,
        min_battery_level: float = MIN_BATTERY_LEVEL,
        min_save_duration_s: int = MIN_SAVE_DURATION_S,
        sample_interval_ms: int = DEFAULT_SAMPLE_INTERVAL_MS,
    ) -> None:
        self._sensors = sensors
        self._step_counter = step_counter
        self._battery = battery
        self.buffer = buffer
        self.steps = steps
        self.aggregator = aggregator
        self.min_battery_level = min(1.0, max(0.0, float(min_battery_level)))
        self.min_save_duration_s = int(min_save_duration_s)
        self.sample_interval_ms = int(sample_interval_ms)
        self._lock = RLock()
        self._state = RecorderState.IDLE
        self._available: frozenset[Channel] = frozenset()
        self._granted: frozenset[Channel] = frozenset()
        self._setup_error: str | None = None
        self._sensor_handles: list[tuple[Channel, object]] = []
        self._step_handle: object | None = None
        self._last_cumulative_steps: int | None = None
        self._session_generation = 0

    # -- setup ----------------------------------------------------------------

    def setup(self) -> frozenset[Channel]:
        """Check sensor availability and request permissions once at startup.

        Raises :class:`UnavailableError` when the device has no usable
        channel and :class:`PermissionDenied` when no channel was granted.
        Either failure is remembered and reported by :meth:`status`.
        """
        with self._lock:
            self._unwatch_pedometer_locked()
            available = frozenset(ch for ch in Channel if self._sensors.is_available(ch))
            self._available = available
            if not available:
                self._granted = frozenset()
                self._setup_error = "No sensor is available on this device"
                raise UnavailableError(self._setup_error)
            granted = frozenset(ch for ch in available if self._sensors.request_permission(ch))
            self._granted = granted
            if not granted:
                self._setup_error = "Sensor permissions were not granted"
                raise PermissionDenied(self._setup_error)
            self._setup_error = None
            self._watch_pedometer_locked()
            LOGGER.info(
                "Sensor setup complete: available=%s granted=%s",
                sorted(ch.value for ch in available),
                sorted(ch.value for ch in granted),
            )
            return granted

    @property
    def permissions_granted(self) -> bool:
        with self._lock:
            return bool(self._granted)

    @property
    def state(self) -> RecorderState:
        with self._lock:
            return self._state

    @property
    def is_recording(self) -> bool:
        return self.state is RecorderState.RECORDING

    def battery_level(self) -> float:
        return float(self._battery.current_level())

    def set_sample_interval_ms(self, interval_ms: int) -> None:
        """Applies from the next :meth:`start`; a running session keeps its rate."""
        with self._lock:
            self.sample_interval_ms = max(1, int(interval_ms))

    # -- sensor callbacks -----------------------------------------------------

    def _make_sample_callback(self, channel: Channel, generation: int):
        def _on_sample(x: float, y: float, z: float) -> None:
            if generation != self._session_generation:
                return
            try:
                sample = SensorSample.from_xyz(x, y, z)
            except (TypeError, ValueError):
                LOGGER.warning("Dropping malformed %s sample %r", channel, (x, y, z))
                return
            self.buffer.push_sample(channel, sample)

        return _on_sample

    def _on_steps(self, cumulative_steps: int) -> None:
        try:
            cumulative = int(cumulative_steps)
        except (TypeError, ValueError):
            LOGGER.warning("Dropping malformed step count %r", cumulative_steps)
            return
        self._last_cumulative_steps = cumulative
        if self._state is RecorderState.RECORDING:
            self.steps.update(cumulative)

    def _watch_pedometer_locked(self) -> None:
        self._unwatch_pedometer_locked()
        if Channel.PEDOMETER not in self._granted or self._step_counter is None:
            return
        try:
            self._step_handle = self._step_counter.watch(self._on_steps)
        except Exception:
            LOGGER.warning(
                "Step counter watch failed; sessions will report 0 steps", exc_info=True
            )

    def _unwatch_pedometer_locked(self) -> None:
        if self._step_handle is not None and self._step_counter is not None:
            try:
                self._step_counter.unwatch(self._step_handle)
            except Exception:
                LOGGER.warning("Error unsubscribing from step counter", exc_info=True)
        self._step_handle = None
        self._last_cumulative_steps = None

    def _release_subscriptions_locked(self) -> None:
        for channel, handle in self._sensor_handles:
            try:
                self._sensors.unsubscribe(handle)
            except Exception:
                LOGGER.warning("Error unsubscribing from %s", channel, exc_info=True)
        self._sensor_handles = []

    def close(self) -> None:
        """Stop any session and release the pedometer watch."""
        with self._lock:
            if self._state is RecorderState.RECORDING:
                self.stop()
            self._unwatch_pedometer_locked()

    # -- public API -----------------------------------------------------------

    def start(self) -> bool:
        """Begin a session.  Returns ``False`` (no-op) when already recording."""
        with self._lock:
            if self._state is RecorderState.RECORDING:
                LOGGER.info("Start requested while already recording; ignoring")
                return False
            if not self._available and self._setup_error:
                raise UnavailableError(self._setup_error)
            if not self._granted:
                raise PermissionDenied(
                    self._setup_error or "Required sensor permissions have not been granted"
                )
            try:
                level = self.battery_level()
            except Exception as exc:
                raise PreconditionFailed(f"Battery level unavailable: {exc}") from exc
            if not math.isfinite(level):
                raise PreconditionFailed(f"Battery level unavailable: {level!r}")
            if level < self.min_battery_level:
                raise PreconditionFailed(
                    f"Battery low ({level:.0%}); connect a charger to continue "
                    f"(minimum {self.min_battery_level:.0%})"
                )

            self.buffer.clear()
            # Without a reading yet, the first delivery becomes the baseline.
            self.steps.reset(baseline=self._last_cumulative_steps)
            generation = self._session_generation + 1
            self._session_generation = generation
            try:
                for channel in MOTION_CHANNELS:
                    if channel not in self._granted:
                        continue
                    handle = self._sensors.subscribe(
                        channel,
                        self.sample_interval_ms,
                        self._make_sample_callback(channel, generation),
                    )
                    self._sensor_handles.append((channel, handle))
            except Exception as exc:
                self._session_generation += 1
                self._release_subscriptions_locked()
                self.buffer.clear()
                self.steps.reset()
                LOGGER.warning("Sensor subscription failed; staying idle", exc_info=True)
                raise UnavailableError(f"Could not start sensors: {exc}") from exc

            self.aggregator.begin()
            self._state = RecorderState.RECORDING
            LOGGER.info(
                "Recording started (battery=%.0f%%, interval=%d ms, channels=%s)",
                level * 100.0,
                self.sample_interval_ms,
                [channel.value for channel, _ in self._sensor_handles],
            )
            return True

    def stop(self) -> WorkoutMetrics | None:
        """End the session and return its final metrics; ``None`` when idle."""
        with self._lock:
            if self._state is RecorderState.IDLE:
                return None
            self._release_subscriptions_locked()
            self._session_generation += 1
            final = self.aggregator.end()
            self._state = RecorderState.IDLE
            LOGGER.info(
                "Recording stopped after %ss (%d steps, %s/%s)",
                final.duration,
                final.steps,
                final.movement_type,
                final.intensity,
            )
            return final

    def toggle(self) -> WorkoutMetrics | None:
        """Start when idle (returns ``None``) or stop (returns the final metrics).

        The state check and the transition happen under one lock, so concurrent
        toggles alternate instead of both starting.
        """
        with self._lock:
            if self._state is RecorderState.RECORDING:
                return self.stop()
            self.start()
            return None

    def should_persist(self, metrics: WorkoutMetrics) -> bool:
        """Only sessions longer than the minimum are worth keeping."""
        return metrics.duration > self.min_save_duration_s

    def live_sensor_data(self) -> LiveSensorData:
        return live_snapshot(self.buffer, self.steps)

    def status(self) -> dict[str, Any]:
        with self._lock:
            return {
                "state": self._state.value,
                "recording": self._state is RecorderState.RECORDING,
                "permissions_granted": bool(self._granted),
                "available_channels": sorted(ch.value for ch in self._available),
                "granted_channels": sorted(ch.value for ch in self._granted),
                "setup_error": self._setup_error,
                "sample_interval_ms": self.sample_interval_ms,
            }
