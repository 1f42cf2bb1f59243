"""Tilt smoothing and stability classification.

Raw roll-angle samples arrive on the ingestion cadence (20-50 ms) and
are pushed into a SampleWindow. On the emission cadence (100-500 ms)
tick() reads the window, replaces the current TiltState and produces a
TILT_EVENT for the host UI.

Classification bands, relative to the configured tilt threshold:
    |tilt| <  flat_fraction * threshold   -> flat/stable
    |tilt| <  threshold                   -> mild tilt
    |tilt| >= threshold                   -> beyond threshold

A window whose newest sample is older than max_sample_age describes a
sensor that has gone quiet, not a device lying still; it yields no
TiltState.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from unlock_monitor.events import EventType, MonitorEvent, to_millis
from unlock_monitor.sample_window import SampleWindow

logger = logging.getLogger(__name__)


class TiltClass(str, Enum):
    FLAT = "flat/stable"
    MILD = "mild tilt"
    BEYOND = "beyond threshold"


@dataclass(frozen=True)
class TiltState:
    smoothed_tilt: float
    oscillation: float
    classification: TiltClass
    stable: bool
    last_updated: float


def classify_tilt(tilt: float, tilt_threshold: float, flat_fraction: float = 0.1) -> TiltClass:
    """Map a smoothed tilt (radians) onto its qualitative band."""
    magnitude = abs(tilt)
    if magnitude < flat_fraction * tilt_threshold:
        return TiltClass.FLAT
    if magnitude < tilt_threshold:
        return TiltClass.MILD
    return TiltClass.BEYOND


class TiltAnalyzer:
    """Owns the sample window and the derived TiltState."""

    def __init__(
        self,
        window: SampleWindow,
        tilt_threshold: float,
        stability_threshold: float,
        min_samples: Optional[int] = None,
        flat_fraction: float = 0.1,
        span_seconds: Optional[float] = None,
        max_sample_age: Optional[float] = None,
    ):
        self.window = window
        self.tilt_threshold = tilt_threshold
        self.stability_threshold = stability_threshold
        self.flat_fraction = flat_fraction
        # Default: report only once the window is full
        self.min_samples = window.capacity if min_samples is None else min_samples
        self.span_seconds = span_seconds
        self.max_sample_age = max_sample_age or None  # 0 disables the check
        self.state: Optional[TiltState] = None
        self.last_sample_at: Optional[float] = None
        self.dropped_samples = 0
        self._available = True
        self._stale = False

    @property
    def available(self) -> bool:
        return self._available

    def ingest(self, raw_tilt: float, now: float) -> None:
        """Push one raw roll-angle sample. Produces no output."""
        if not self._available:
            return
        if not math.isfinite(raw_tilt):
            self.dropped_samples += 1
            logger.debug("Dropping non-finite tilt sample %r at %.3f", raw_tilt, now)
            return
        self.window.push(raw_tilt)
        self.last_sample_at = now
        if self._stale:
            self._stale = False
            logger.info("Tilt samples resumed")

    def expire_stale(self, now: float) -> bool:
        """Drop the TiltState if the newest sample is too old. True if stale."""
        if self.max_sample_age is None or self.last_sample_at is None:
            return False
        age = now - self.last_sample_at
        if age <= self.max_sample_age:
            return False
        self.state = None
        if not self._stale:
            self._stale = True
            logger.warning("No tilt samples for %.1fs; tilt state is unknown", age)
        return True

    def tick(self, now: float) -> Optional[MonitorEvent]:
        """Recompute TiltState and return a TILT_EVENT, or None.

        None means "insufficient data" (window below min_samples), stale
        data, or an unavailable sensor. None of these is an error.
        """
        if not self._available or self.expire_stale(now):
            return None

        snap = self.window.snapshot()
        if snap is None or snap.count < self.min_samples:
            return None

        classification = classify_tilt(snap.mean, self.tilt_threshold, self.flat_fraction)
        self.state = TiltState(
            smoothed_tilt=snap.mean,
            oscillation=snap.dispersion,
            classification=classification,
            stable=snap.dispersion < self.stability_threshold,
            last_updated=now,
        )
        logger.debug(
            "Tilt %.4f rad, oscillation %.4f rad (%s)",
            snap.mean, snap.dispersion, classification.value,
        )

        if self.span_seconds and snap.count == self.window.capacity:
            label = f"Roll angle ({self.span_seconds:g}s avg): {classification.value}"
        else:
            label = f"Roll angle ({snap.count} sample avg): {classification.value}"

        return MonitorEvent(
            type=EventType.TILT,
            message=label,
            timestamp_millis=to_millis(now),
            tilt_value=snap.mean,
            oscillation_value=snap.dispersion,
        )

    def reset_stability(self) -> None:
        """Forget the current TiltState until the next tick recomputes it."""
        self.state = None

    def mark_unavailable(self, reason: str = "orientation sensor unavailable") -> None:
        """Degrade for the rest of the session: no reports, no alarms."""
        if not self._available:
            return
        self._available = False
        self.state = None
        self.window.clear()
        logger.warning("Tilt monitoring disabled: %s", reason)

    def __repr__(self) -> str:
        status = "available" if self._available else "unavailable"
        return f"<TiltAnalyzer {self.window!r} {status}>"
