"""Lock/unlock state tracking.

The lock signal comes from a pluggable proxy (see sources/lock_source.py)
and may repeat the same value many times. The tracker debounces it:
only a change of state, or the very first observation, produces an
event.

    UNKNOWN --locked--> LOCKED <--> UNLOCKED
    UNKNOWN --unlocked--> UNLOCKED

UNKNOWN is the initial state and is never re-entered.
"""

import logging
from enum import Enum
from typing import Optional, Union

from unlock_monitor.events import EventType, MonitorEvent, to_millis

logger = logging.getLogger(__name__)


class LockState(str, Enum):
    LOCKED = "LOCKED"
    UNLOCKED = "UNLOCKED"
    UNKNOWN = "UNKNOWN"


LockSignal = Union[bool, str, LockState]


def parse_lock_signal(signal: LockSignal) -> LockState:
    """Map a raw proxy signal onto a LockState.

    True means locked. Strings are matched against the state names,
    case-insensitively.
    """
    if isinstance(signal, LockState):
        return signal
    if isinstance(signal, bool):
        return LockState.LOCKED if signal else LockState.UNLOCKED
    if isinstance(signal, str):
        try:
            return LockState(signal.strip().upper())
        except ValueError:
            pass
    raise ValueError(f"unrecognised lock signal: {signal!r}")


class LockStateTracker:
    """Debounced lock state machine."""

    def __init__(self):
        self.state = LockState.UNKNOWN
        self.last_changed: Optional[float] = None
        self.transitions = 0

    def observe(self, signal: LockSignal, now: float) -> Optional[MonitorEvent]:
        """Feed one lock signal; return LOCK/UNLOCK event on a transition."""
        new_state = parse_lock_signal(signal)
        if new_state is LockState.UNKNOWN:
            # Proxies that can't tell report UNKNOWN; keep the last known state
            return None
        if new_state is self.state:
            return None

        previous = self.state
        self.state = new_state
        self.last_changed = now
        self.transitions += 1
        logger.info("Lock state %s -> %s", previous.value, new_state.value)

        if new_state is LockState.LOCKED:
            return MonitorEvent(
                type=EventType.LOCK,
                message="Device locked.",
                timestamp_millis=to_millis(now),
            )
        return MonitorEvent(
            type=EventType.UNLOCK,
            message="Device unlocked.",
            timestamp_millis=to_millis(now),
        )

    @property
    def is_unlocked(self) -> bool:
        return self.state is LockState.UNLOCKED
