"""Base class for roll-angle sensor drivers.

A driver only talks to its hardware. Everything an orientation
collaborator needs on top of that lives here:

    read(demo)    one {"tilt": radians} sample, retried on bus errors
    available     whether the hardware initialised
    reliability   percentage of successful reads
    health()      read counters for the monitor status
"""

import logging
import math
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class BaseSensor(ABC):
    """Retrying reader around a single orientation driver.

    Subclasses implement:
        _init_hardware()  open the device, set self._hw_available on success
        _read_tilt()      roll in radians from the device, or None
        _simulate_tilt()  plausible roll for demo mode
    """

    MAX_RETRIES: int = 2
    RETRY_DELAY: float = 0.005  # reads happen every 20 ms
    WARN_EVERY: int = 50

    def __init__(self, cfg: Optional[Dict[str, Any]] = None):
        self._cfg = cfg or {}
        self._hw_available = False
        self.init_error: Optional[str] = None
        self._consecutive_failures = 0
        self._total_reads = 0
        self._failed_reads = 0

        try:
            self._init_hardware()
        except Exception as exc:
            logger.warning("%s: hardware init failed: %s", self.__class__.__name__, exc)
            self.init_error = str(exc)
            self._hw_available = False

    @abstractmethod
    def _init_hardware(self) -> None:
        ...

    @abstractmethod
    def _read_tilt(self) -> Optional[float]:
        ...

    @abstractmethod
    def _simulate_tilt(self) -> float:
        ...

    @property
    def available(self) -> bool:
        return self._hw_available

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def reliability(self) -> float:
        """Percentage of successful reads (0.0-100.0)."""
        if self._total_reads == 0:
            return 100.0
        return ((self._total_reads - self._failed_reads) / self._total_reads) * 100.0

    def read(self, demo: bool = False) -> Optional[Dict[str, float]]:
        """One roll sample, or None when the hardware gave nothing usable.

        Non-finite readings count as failures, same as bus errors.
        """
        if demo:
            return {"tilt": self._simulate_tilt()}
        if not self._hw_available:
            return None

        self._total_reads += 1
        last_problem: Any = "no reading"
        for attempt in range(1, self.MAX_RETRIES + 1):
            try:
                roll = self._read_tilt()
            except Exception as exc:
                roll = None
                last_problem = exc
            else:
                if roll is not None and math.isfinite(roll):
                    self._consecutive_failures = 0
                    return {"tilt": roll}
                if roll is not None:
                    last_problem = f"non-finite roll {roll!r}"
            if attempt < self.MAX_RETRIES:
                time.sleep(self.RETRY_DELAY)

        self._failed_reads += 1
        self._consecutive_failures += 1
        if self._consecutive_failures == 1 or self._consecutive_failures % self.WARN_EVERY == 0:
            logger.warning(
                "%s: read failed (%d consecutive): %s",
                self.__class__.__name__, self._consecutive_failures, last_problem,
            )
        return None

    def health(self) -> Dict[str, Any]:
        return {
            "available": self._hw_available,
            "reads": self._total_reads,
            "failed": self._failed_reads,
            "reliability": round(self.reliability, 1),
            "error": self.init_error,
        }

    def close(self) -> None:
        """Release the device. Override in drivers that hold a bus."""

    def __repr__(self) -> str:
        status = "live" if self._hw_available else "unavailable"
        return f"<{self.__class__.__name__} {status}>"
