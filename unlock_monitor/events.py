"""Event records emitted by the monitor.

Every lock transition, tilt report and alarm becomes one immutable
MonitorEvent. The event sink encodes each one as a self-contained JSON
object for the host UI:

    {"type": "TILT_EVENT", "message": "...", "location": null,
     "tiltValue": 0.01, "oscillationValue": 0.002,
     "timestampMillis": 1760000000000}
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class EventType(str, Enum):
    LOCK = "LOCK_EVENT"
    UNLOCK = "UNLOCK_EVENT"
    TILT = "TILT_EVENT"
    ALARM = "ALARM_EVENT"


def to_millis(now: float) -> int:
    """Convert a time.time()-style timestamp (seconds) to milliseconds."""
    return int(now * 1000)


@dataclass(frozen=True)
class MonitorEvent:
    """One event handed to the event sink."""

    type: EventType
    message: str
    timestamp_millis: int
    location: Optional[str] = None
    tilt_value: Optional[float] = None
    oscillation_value: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "message": self.message,
            "location": self.location,
            "tiltValue": self.tilt_value,
            "oscillationValue": self.oscillation_value,
            "timestampMillis": self.timestamp_millis,
        }

    def to_json(self) -> str:
        """Compact JSON encoding.

        Raises ValueError for non-finite floats and TypeError for values
        json can't encode; the sink treats both as a dropped event.
        """
        return json.dumps(self.to_dict(), separators=(",", ":"), allow_nan=False)
