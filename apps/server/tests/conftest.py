"""Shared test helpers for the workoutmonitor test suite."""

from __future__ import annotations

import asyncio
import itertools
import os
import time
from dataclasses import dataclass, field

import pytest

os.environ.setdefault("WORKOUTMONITOR_DISABLE_AUTO_APP", "1")

from workoutmonitor.kv_store import InMemoryKeyValueStore  # noqa: E402
from workoutmonitor.metrics import MetricsAggregator  # noqa: E402
from workoutmonitor.processing import SampleBuffer, StepCountCell  # noqa: E402
from workoutmonitor.recorder import SessionRecorder  # noqa: E402
from workoutmonitor.sensors import Channel  # noqa: E402


def wait_until(predicate, timeout_s: float = 2.0, step_s: float = 0.02) -> bool:
    """Poll *predicate* until it returns truthy, or *timeout_s* expires."""
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(step_s)
    return False


async def async_wait_until(predicate, timeout_s: float = 2.0, step_s: float = 0.02) -> bool:
    """Async version of :func:`wait_until`; yields to the event loop between polls."""
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        if predicate():
            return True
        await asyncio.sleep(step_s)
    return False


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSensors:
    """SensorProvider double that delivers samples only when told to."""

    def __init__(
        self,
        available: set[Channel] | None = None,
        granted: set[Channel] | None = None,
        fail_subscribe: set[Channel] | None = None,
    ) -> None:
        self.available = set(Channel) if available is None else set(available)
        self.granted = set(self.available) if granted is None else set(granted)
        self.fail_subscribe = set(fail_subscribe or ())
        self.subscriptions: dict[int, tuple[Channel, int, object]] = {}
        self.unsubscribed: list[int] = []
        self.permission_requests: list[Channel] = []
        self._ids = itertools.count(1)

    def is_available(self, channel: Channel) -> bool:
        return channel in self.available

    def request_permission(self, channel: Channel) -> bool:
        self.permission_requests.append(channel)
        return channel in self.granted

    def subscribe(self, channel: Channel, interval_ms: int, callback) -> object:
        if channel in self.fail_subscribe:
            raise RuntimeError(f"{channel} driver failed")
        handle = next(self._ids)
        self.subscriptions[handle] = (channel, interval_ms, callback)
        return handle

    def unsubscribe(self, handle: object) -> None:
        self.subscriptions.pop(handle, None)
        self.unsubscribed.append(handle)

    def intervals(self) -> dict[Channel, int]:
        return {channel: interval for channel, interval, _ in self.subscriptions.values()}

    def emit(self, channel: Channel, x: float, y: float = 0.0, z: float = 0.0) -> None:
        for sub_channel, _, callback in list(self.subscriptions.values()):
            if sub_channel is channel:
                callback(x, y, z)


class FakeStepCounter:
    def __init__(self) -> None:
        self.watchers: dict[int, object] = {}
        self.unwatched: list[int] = []
        self._ids = itertools.count(1)

    def watch(self, callback) -> object:
        handle = next(self._ids)
        self.watchers[handle] = callback
        return handle

    def unwatch(self, handle: object) -> None:
        self.watchers.pop(handle, None)
        self.unwatched.append(handle)

    def emit(self, cumulative: int) -> None:
        for callback in list(self.watchers.values()):
            callback(cumulative)


class FakeBattery:
    def __init__(self, level: float = 0.9, *, broken: bool = False) -> None:
        self.level = level
        self.broken = broken

    def current_level(self) -> float:
        if self.broken:
            raise OSError("battery service unavailable")
        return self.level


class FlakyKeyValueStore(InMemoryKeyValueStore):
    """In-memory store whose writes can be switched to fail."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        super().__init__(initial)
        self.fail_writes = False
        self.write_count = 0

    def set(self, key: str, value: bytes) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.write_count += 1
        super().set(key, value)

    def delete(self, key: str) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.write_count += 1
        super().delete(key)


@dataclass
class RecorderRig:
    sensors: FakeSensors
    step_counter: FakeStepCounter
    battery: FakeBattery
    clock: FakeClock
    buffer: SampleBuffer
    steps: StepCountCell
    aggregator: MetricsAggregator
    recorder: SessionRecorder
    extra: dict = field(default_factory=dict)


def build_rig(
    *,
    sensors: FakeSensors | None = None,
    battery: FakeBattery | None = None,
    setup: bool = True,
) -> RecorderRig:
    sensors = sensors or FakeSensors()
    step_counter = FakeStepCounter()
    battery = battery or FakeBattery()
    clock = FakeClock()
    buffer = SampleBuffer()
    steps = StepCountCell()
    aggregator = MetricsAggregator(buffer, steps, clock=clock)
    recorder = SessionRecorder(sensors, step_counter, battery, buffer, steps, aggregator)
    if setup:
        recorder.setup()
    return RecorderRig(
        sensors=sensors,
        step_counter=step_counter,
        battery=battery,
        clock=clock,
        buffer=buffer,
        steps=steps,
        aggregator=aggregator,
        recorder=recorder,
    )


@pytest.fixture
def rig() -> RecorderRig:
    return build_rig()


def route_endpoint(router, path: str, method: str):
    for route in router.routes:
        if getattr(route, "path", "") == path and method in getattr(route, "methods", set()):
            return route.endpoint
    raise AssertionError(f"Route not found: {path} [{method}]")
