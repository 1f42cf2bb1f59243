"""Fixed-capacity sliding window of recent tilt samples.

The window holds the N most recent roll-angle samples (radians). With a
fixed ingestion cadence N corresponds to a fixed real-time span, e.g.
250 samples x 20 ms = 5 s.

Two dispersion metrics are supported and must be paired with a matching
stability threshold:
  range   -- max - min over the window ("oscillation range")
  stddev  -- population standard deviation
"""

import statistics
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

DISPERSION_RANGE = "range"
DISPERSION_STDDEV = "stddev"
DISPERSION_METRICS = (DISPERSION_RANGE, DISPERSION_STDDEV)


@dataclass(frozen=True)
class WindowSnapshot:
    mean: float
    dispersion: float
    count: int


class SampleWindow:
    """FIFO ring buffer with mean and dispersion."""

    def __init__(self, capacity: int, dispersion: str = DISPERSION_RANGE):
        if capacity < 1:
            raise ValueError(f"window capacity must be >= 1, got {capacity}")
        if dispersion not in DISPERSION_METRICS:
            raise ValueError(f"unknown dispersion metric: {dispersion!r}")
        self.capacity = capacity
        self.dispersion = dispersion
        self._values: Deque[float] = deque(maxlen=capacity)

    def push(self, value: float) -> None:
        """Append a sample; the deque drops the oldest one when full."""
        self._values.append(float(value))

    def snapshot(self) -> Optional[WindowSnapshot]:
        """Return mean/dispersion/count, or None while the window is empty.

        Both statistics are computed from the current contents only, so
        the result never depends on samples that were already evicted.
        """
        count = len(self._values)
        if count == 0:
            return None

        mean = statistics.fmean(self._values)
        if self.dispersion == DISPERSION_RANGE:
            spread = max(self._values) - min(self._values)
        else:
            spread = statistics.pstdev(self._values, mu=mean)

        return WindowSnapshot(mean=mean, dispersion=spread, count=count)

    def values(self):
        """Copy of the window contents, oldest first."""
        return list(self._values)

    def clear(self) -> None:
        self._values.clear()

    @property
    def is_full(self) -> bool:
        return len(self._values) == self.capacity

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"<SampleWindow {len(self._values)}/{self.capacity} {self.dispersion}>"
