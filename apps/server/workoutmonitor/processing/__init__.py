"""Sample processing package.

- :mod:`~workoutmonitor.processing.buffers`: per-channel circular buffer storage.
- :mod:`~workoutmonitor.processing.sample_buffer`: the lock-protected
  :class:`SampleBuffer` and :class:`StepCountCell` shared between sensor
  callbacks and the metrics tick.
"""

from .buffers import ChannelBuffer
from .sample_buffer import SampleBuffer, StepCountCell, live_snapshot

__all__ = [
    "ChannelBuffer",
    "SampleBuffer",
    "StepCountCell",
    "live_snapshot",
]
