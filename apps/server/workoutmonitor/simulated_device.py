"""Simulated motion device so the service runs without a hardware driver.

Each motion profile describes the acceleration and rotation a phone would see
during that activity: a mean magnitude, a swing modulated at the step
cadence, and Gaussian noise.  Subscriptions deliver samples from a background
thread at the requested interval; the step counter reports a cumulative,
non-decreasing count that starts at a non-zero daily total.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np

from .sensors import Channel, SampleCallback, StepCallback

LOGGER = logging.getLogger(__name__)

STEP_REPORT_INTERVAL_S = 0.5
_JOIN_TIMEOUT_S = 2.0


@dataclass(frozen=True, slots=True)
class MotionProfile:
    name: str
    accel_level: float
    accel_swing: float
    rotation_level: float
    cadence_hz: float
    noise_std: float


PROFILE_LIBRARY: dict[str, MotionProfile] = {
    "still": MotionProfile(
        name="still",
        accel_level=0.15,
        accel_swing=0.05,
        rotation_level=0.02,
        cadence_hz=0.0,
        noise_std=0.03,
    ),
    "walking": MotionProfile(
        name="walking",
        accel_level=2.6,
        accel_swing=1.1,
        rotation_level=0.6,
        cadence_hz=1.8,
        noise_std=0.25,
    ),
    "running": MotionProfile(
        name="running",
        accel_level=6.4,
        accel_swing=1.0,
        rotation_level=1.8,
        cadence_hz=2.8,
        noise_std=0.4,
    ),
    "jumping": MotionProfile(
        name="jumping",
        accel_level=10.5,
        accel_swing=2.0,
        rotation_level=1.2,
        cadence_hz=1.2,
        noise_std=0.6,
    ),
}


class _Stream:
    """Background delivery loop for one subscription."""

    def __init__(self, name: str, interval_s: float, emit: Callable[[], None]) -> None:
        self.interval_s = interval_s
        self._emit = emit
        self._stop = threading.Event()
        self.thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> None:
        self.thread.start()

    def _run(self) -> None:
        while not self._stop.wait(self.interval_s):
            try:
                self._emit()
            except Exception:
                LOGGER.warning("Simulated %s callback raised", self.thread.name, exc_info=True)

    def stop(self) -> None:
        self._stop.set()
        if threading.current_thread() is not self.thread:
            self.thread.join(timeout=_JOIN_TIMEOUT_S)


class SimulatedDevice:
    """Implements the sensor, step counter and battery provider interfaces."""

    def __init__(
        self,
        profile: str = "walking",
        *,
        battery_level: float = 0.85,
        seed: int | None = None,
        available: frozenset[Channel] | None = None,
        granted: frozenset[Channel] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if profile not in PROFILE_LIBRARY:
            raise ValueError(f"Unknown motion profile {profile!r}")
        self._lock = threading.Lock()
        self._profile = PROFILE_LIBRARY[profile]
        self._battery_level = float(battery_level)
        self._rng = np.random.default_rng(seed)
        self._available = frozenset(Channel) if available is None else frozenset(available)
        self._granted = self._available if granted is None else frozenset(granted)
        self._clock = clock
        self._t0 = clock()
        self._step_total = float(self._rng.integers(1_000, 8_000))
        self._step_last_t = self._t0
        self._streams: set[_Stream] = set()

    # -- controls --------------------------------------------------------------

    @property
    def profile(self) -> str:
        with self._lock:
            return self._profile.name

    def set_profile(self, name: str) -> None:
        if name not in PROFILE_LIBRARY:
            raise ValueError(f"Unknown motion profile {name!r}")
        with self._lock:
            self._advance_steps_locked()
            self._profile = PROFILE_LIBRARY[name]
        LOGGER.info("Simulated device switched to %s profile", name)

    def set_battery_level(self, level: float) -> None:
        with self._lock:
            self._battery_level = min(1.0, max(0.0, float(level)))

    def close(self) -> None:
        with self._lock:
            streams = list(self._streams)
            self._streams.clear()
        for stream in streams:
            stream.stop()

    # -- signal model ----------------------------------------------------------

    def sample(self, channel: Channel, t: float | None = None) -> tuple[float, float, float]:
        """One ``(x, y, z)`` reading for *channel* at time *t* (seconds)."""
        with self._lock:
            profile = self._profile
            t = (self._clock() if t is None else t) - self._t0
            if channel is Channel.ACCELEROMETER:
                swing = math.sin(2.0 * math.pi * profile.cadence_hz * t)
                magnitude = profile.accel_level + profile.accel_swing * swing
            else:
                magnitude = profile.rotation_level
            magnitude = max(0.0, magnitude + float(self._rng.normal(0.0, profile.noise_std)))
            direction = self._rng.normal(0.0, 1.0, size=3)
            norm = float(np.linalg.norm(direction))
            if norm == 0.0:
                direction = np.array([0.0, 0.0, 1.0])
                norm = 1.0
            x, y, z = (direction / norm * magnitude).tolist()
        return float(x), float(y), float(z)

    def _advance_steps_locked(self) -> int:
        now = self._clock()
        self._step_total += max(0.0, now - self._step_last_t) * self._profile.cadence_hz
        self._step_last_t = now
        return int(self._step_total)

    def cumulative_steps(self) -> int:
        with self._lock:
            return self._advance_steps_locked()

    # -- SensorProvider --------------------------------------------------------

    def is_available(self, channel: Channel) -> bool:
        return channel in self._available

    def request_permission(self, channel: Channel) -> bool:
        return channel in self._granted

    def _start_stream(self, name: str, interval_s: float, emit: Callable[[], None]) -> _Stream:
        stream = _Stream(name, interval_s, emit)
        with self._lock:
            self._streams.add(stream)
        stream.start()
        return stream

    def _stop_stream(self, handle: object) -> None:
        if not isinstance(handle, _Stream):
            raise TypeError(f"Not a simulated subscription handle: {handle!r}")
        with self._lock:
            self._streams.discard(handle)
        handle.stop()

    def subscribe(self, channel: Channel, interval_ms: int, callback: SampleCallback) -> object:
        if channel not in self._granted or channel is Channel.PEDOMETER:
            raise ValueError(f"Cannot subscribe to {channel}")
        return self._start_stream(
            f"sim-{channel.value}",
            max(1, int(interval_ms)) / 1000.0,
            lambda: callback(*self.sample(channel)),
        )

    def unsubscribe(self, handle: object) -> None:
        self._stop_stream(handle)

    # -- StepCounterProvider ---------------------------------------------------

    def watch(self, callback: StepCallback) -> object:
        return self._start_stream(
            "sim-pedometer",
            STEP_REPORT_INTERVAL_S,
            lambda: callback(self.cumulative_steps()),
        )

    def unwatch(self, handle: object) -> None:
        self._stop_stream(handle)

    # -- BatteryProvider -------------------------------------------------------

    def current_level(self) -> float:
        with self._lock:
            return self._battery_level
