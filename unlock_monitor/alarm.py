"""Unattended-device alarm.

The alarm condition is a pure predicate over the current lock state and
tilt state:

    lock == UNLOCKED
    and |smoothed_tilt| < flatness_threshold
    and oscillation     < stability_threshold

Both comparisons are strict. An unknown tilt (no TiltState yet, sensor
unavailable, or stability reset by a lock) never fires.

The predicate is stateless, so a re-fire policy decides what happens
while the condition keeps holding:
  - edge:  one alarm per continuous violation, re-armed once the
           condition is evaluated false
  - level: an alarm on every qualifying evaluation, optionally
           rate-limited by a cooldown (seconds)
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from unlock_monitor.events import EventType, MonitorEvent, to_millis
from unlock_monitor.lock_tracker import LockState
from unlock_monitor.tilt_analyzer import TiltState

logger = logging.getLogger(__name__)

ALARM_MODE_EDGE = "edge"
ALARM_MODE_LEVEL = "level"
ALARM_MODES = (ALARM_MODE_EDGE, ALARM_MODE_LEVEL)


@dataclass(frozen=True)
class AlarmThresholds:
    flatness_threshold: float
    stability_threshold: float


def alarm_condition(
    lock: LockState, tilt: Optional[TiltState], thresholds: AlarmThresholds
) -> bool:
    """True when the device is unlocked, flat and stable."""
    if lock is not LockState.UNLOCKED or tilt is None:
        return False
    return (
        abs(tilt.smoothed_tilt) < thresholds.flatness_threshold
        and tilt.oscillation < thresholds.stability_threshold
    )


def format_alarm_message(tilt: TiltState, thresholds: AlarmThresholds) -> str:
    angle = math.degrees(tilt.smoothed_tilt)
    spread = math.degrees(tilt.oscillation)
    limit = math.degrees(thresholds.stability_threshold)
    return (
        f"ALARM: device unlocked, flat ({angle:.1f}°) "
        f"and stable (oscillation {spread:.2f}° < {limit:.2f}°)."
    )


class AlarmEvaluator:
    """Applies the alarm predicate and the configured re-fire policy."""

    def __init__(
        self,
        thresholds: AlarmThresholds,
        mode: str = ALARM_MODE_EDGE,
        cooldown: float = 0.0,
    ):
        if mode not in ALARM_MODES:
            raise ValueError(f"unknown alarm mode: {mode!r}")
        self.thresholds = thresholds
        self.mode = mode
        self.cooldown = cooldown
        self._active = False  # condition held on the last evaluation
        self._last_fired: Optional[float] = None
        self.fired = 0

    @property
    def active(self) -> bool:
        return self._active

    def evaluate(
        self,
        lock: LockState,
        tilt: Optional[TiltState],
        now: float,
        location: Optional[str] = None,
    ) -> Optional[MonitorEvent]:
        """Return an ALARM_EVENT if the condition holds and policy allows."""
        violating = alarm_condition(lock, tilt, self.thresholds)
        was_active = self._active
        self._active = violating

        if not violating:
            if was_active:
                logger.info("Alarm condition cleared")
            return None

        if self.mode == ALARM_MODE_EDGE and was_active:
            return None
        if self.mode == ALARM_MODE_LEVEL and not self._cooled_down(now):
            return None

        self._last_fired = now
        self.fired += 1
        message = format_alarm_message(tilt, self.thresholds)
        logger.warning("%s", message)
        return MonitorEvent(
            type=EventType.ALARM,
            message=message,
            timestamp_millis=to_millis(now),
            location=location,
            tilt_value=tilt.smoothed_tilt,
            oscillation_value=tilt.oscillation,
        )

    def rearm(self) -> None:
        """Treat the next violation as a fresh one."""
        self._active = False

    def _cooled_down(self, now: float) -> bool:
        if self._last_fired is None or self.cooldown <= 0:
            return True
        return (now - self._last_fired) >= self.cooldown
