"""Channel buffer dataclass for magnitude storage.

``ChannelBuffer`` holds one sensor channel's circular-buffer state: the
retained magnitudes, the write cursor, and a running count of every sample
pushed during the current session.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(slots=True)
class ChannelBuffer:
    data: np.ndarray
    capacity: int
    write_idx: int = 0
    count: int = 0
    # Total pushes since the last reset; never decreases within a session
    # even though only ``capacity`` values are retained.
    total_pushed: int = 0

    @classmethod
    def empty(cls, capacity: int) -> ChannelBuffer:
        capacity = max(1, int(capacity))
        return cls(data=np.zeros(capacity, dtype=np.float64), capacity=capacity)

    def append(self, value: float) -> None:
        self.data[self.write_idx] = value
        self.write_idx = (self.write_idx + 1) % self.capacity
        self.count = min(self.capacity, self.count + 1)
        self.total_pushed += 1

    def latest(self, n: int) -> np.ndarray:
        """Return a copy of the newest ``min(n, count)`` values, oldest first."""
        n = min(max(0, int(n)), self.count)
        if n == 0:
            return np.empty(0, dtype=np.float64)
        idx = (self.write_idx - n + np.arange(n)) % self.capacity
        return self.data[idx].copy()

    def reset(self) -> None:
        self.data.fill(0.0)
        self.write_idx = 0
        self.count = 0
        self.total_pushed = 0
