"""Sample buffer: recent magnitudes per channel plus the step-count cell.

Sensor callbacks push from provider threads while the metrics tick reads from
the event loop; every read and write goes through one lock per structure so a
tick never observes a half-applied push.
"""

from __future__ import annotations

import logging
import math
from threading import Lock

import numpy as np

from ..constants import RECENT_WINDOW_SAMPLES
from ..domain_models import LiveSensorData, SensorSample
from ..sensors import MOTION_CHANNELS, Channel
from .buffers import ChannelBuffer

LOGGER = logging.getLogger(__name__)


class SampleBuffer:
    """Bounded per-channel magnitude history used for windowed averaging.

    Parameters
    ----------
    capacity:
        Magnitudes retained per channel.  Older values are overwritten at
        write time, so memory stays constant over long sessions.
    channels:
        Channels accepted by :meth:`push`.
    """

    def __init__(
        self,
        capacity: int = RECENT_WINDOW_SAMPLES,
        channels: tuple[Channel, ...] = MOTION_CHANNELS,
    ) -> None:
        self._lock = Lock()
        self._capacity = max(1, int(capacity))
        self._buffers: dict[Channel, ChannelBuffer] = {
            channel: ChannelBuffer.empty(self._capacity) for channel in channels
        }
        self._latest: dict[Channel, SensorSample] = {
            channel: SensorSample.zero() for channel in channels
        }
        self._dropped_non_finite = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, channel: Channel, magnitude: float) -> bool:
        """Append one magnitude; non-finite values are dropped and counted."""
        value = float(magnitude)
        with self._lock:
            buf = self._buffers[channel]
            if not math.isfinite(value):
                self._dropped_non_finite += 1
                return False
            buf.append(value)
            return True

    def push_sample(self, channel: Channel, sample: SensorSample) -> bool:
        """Record *sample* as the channel's latest reading and push its magnitude."""
        with self._lock:
            if channel not in self._buffers:
                raise KeyError(channel)
            if not math.isfinite(sample.magnitude):
                self._dropped_non_finite += 1
                return False
            self._buffers[channel].append(sample.magnitude)
            self._latest[channel] = sample
            return True

    def recent_average(self, channel: Channel, k: int = RECENT_WINDOW_SAMPLES) -> float:
        """Mean of the last ``min(k, available)`` magnitudes, ``0.0`` when empty."""
        with self._lock:
            window = self._buffers[channel].latest(k)
        if window.size == 0:
            return 0.0
        return float(np.mean(window, dtype=np.float64))

    def size(self, channel: Channel) -> int:
        """Samples pushed to *channel* since the last :meth:`clear`."""
        with self._lock:
            return self._buffers[channel].total_pushed

    def latest(self, channel: Channel) -> SensorSample:
        with self._lock:
            return self._latest[channel]

    def clear(self) -> None:
        with self._lock:
            for channel, buf in self._buffers.items():
                buf.reset()
                self._latest[channel] = SensorSample.zero()
            if self._dropped_non_finite:
                LOGGER.info(
                    "Dropped %d non-finite sample(s) in the previous session",
                    self._dropped_non_finite,
                )
            self._dropped_non_finite = 0


class StepCountCell:
    """Session step count derived from a cumulative pedometer reading.

    The first reading observed after :meth:`reset` becomes the baseline, so
    the reported value counts steps taken during the current session only.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._baseline: int | None = None
        self._steps = 0

    def reset(self, baseline: int | None = None) -> None:
        with self._lock:
            self._baseline = baseline
            self._steps = 0

    def update(self, cumulative_steps: int) -> int:
        cumulative = max(0, int(cumulative_steps))
        with self._lock:
            if self._baseline is None:
                self._baseline = cumulative
            self._steps = max(self._steps, cumulative - self._baseline)
            return self._steps

    @property
    def steps(self) -> int:
        with self._lock:
            return self._steps


def live_snapshot(buffer: SampleBuffer, steps: StepCountCell) -> LiveSensorData:
    return LiveSensorData(
        accelerometer=buffer.latest(Channel.ACCELEROMETER),
        gyroscope=buffer.latest(Channel.GYROSCOPE),
        steps=steps.steps,
    )
