"""Device collaborator interfaces consumed by the recording core.

Providers deliver calibrated floating-point samples at (at most) the requested
rate and must not invoke a callback after ``unsubscribe``/``unwatch`` returns.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from typing import Protocol, runtime_checkable


class Channel(StrEnum):
    ACCELEROMETER = "accelerometer"
    GYROSCOPE = "gyroscope"
    PEDOMETER = "pedometer"


MOTION_CHANNELS: tuple[Channel, ...] = (Channel.ACCELEROMETER, Channel.GYROSCOPE)

SampleCallback = Callable[[float, float, float], None]
StepCallback = Callable[[int], None]


@runtime_checkable
class SensorProvider(Protocol):
    def is_available(self, channel: Channel) -> bool: ...

    def request_permission(self, channel: Channel) -> bool: ...

    def subscribe(self, channel: Channel, interval_ms: int, callback: SampleCallback) -> object:
        """Start delivering ``(x, y, z)`` samples; returns an opaque handle."""
        ...

    def unsubscribe(self, handle: object) -> None: ...


@runtime_checkable
class StepCounterProvider(Protocol):
    def watch(self, callback: StepCallback) -> object:
        """Deliver a monotonically non-decreasing cumulative step count."""
        ...

    def unwatch(self, handle: object) -> None: ...


@runtime_checkable
class BatteryProvider(Protocol):
    def current_level(self) -> float:
        """Battery charge as a fraction in ``[0, 1]``."""
        ...
