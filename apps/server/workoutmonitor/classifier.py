"""Rule-based movement classification from windowed acceleration magnitude.

Ordered decision table, first match wins, each band exclusive of its lower
bound (``avg > threshold``):

====================  =============  =========
avg acceleration      movement       intensity
====================  =============  =========
> jumping threshold   jumping        high
> running threshold   running        high
> walking threshold   walking        medium
otherwise             still          low
====================  =============  =========
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .constants import JUMPING_THRESHOLD, RUNNING_THRESHOLD, WALKING_THRESHOLD
from .domain_models import Intensity, MovementType


@dataclass(frozen=True, slots=True)
class ClassifierThresholds:
    jumping: float = JUMPING_THRESHOLD
    running: float = RUNNING_THRESHOLD
    walking: float = WALKING_THRESHOLD

    def __post_init__(self) -> None:
        values = (self.jumping, self.running, self.walking)
        if not all(math.isfinite(v) for v in values):
            raise ValueError(f"classifier thresholds must be finite, got {values!r}")
        if not self.jumping > self.running > self.walking:
            raise ValueError(
                "classifier thresholds must be strictly decreasing "
                f"(jumping > running > walking), got {values!r}"
            )

    def rules(self) -> tuple[tuple[float, MovementType, Intensity], ...]:
        return (
            (self.jumping, MovementType.JUMPING, Intensity.HIGH),
            (self.running, MovementType.RUNNING, Intensity.HIGH),
            (self.walking, MovementType.WALKING, Intensity.MEDIUM),
        )


DEFAULT_THRESHOLDS = ClassifierThresholds()


def classify(
    avg_acceleration: float,
    thresholds: ClassifierThresholds = DEFAULT_THRESHOLDS,
) -> tuple[MovementType, Intensity]:
    """Map an averaged acceleration magnitude to ``(movement, intensity)``.

    Total over floats: NaN and negative inputs fall through to ``still``.
    """
    for threshold, movement, intensity in thresholds.rules():
        if avg_acceleration > threshold:
            return movement, intensity
    return MovementType.STILL, Intensity.LOW
