"""Thread-safe input bus for the unlock monitor.

Collaborator threads (orientation sensor, lock-signal proxy, location
provider) publish raw inputs here. Subscribers are called directly on
the publisher's thread; the monitor serialises its own state updates
behind a lock, so the bus only has to keep the subscriber lists safe.

Topics:
    tilt.raw      {"tilt": float, "ts": float} or {"available": False}
    lock.signal   {"locked": bool, "ts": float}
    location.fix  {"location": str | None, "ts": float}
"""

import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

TOPIC_TILT = "tilt.raw"
TOPIC_LOCK = "lock.signal"
TOPIC_LOCATION = "location.fix"


class EventBus:
    """Topic pub/sub bridging collaborator threads into the monitor."""

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = defaultdict(list)
        self._lock = threading.Lock()

    def publish(self, topic: str, payload: Any):
        """Push data from any thread. Thread-safe."""
        with self._lock:
            callbacks = list(self._subscribers.get(topic, []))
        for cb in callbacks:
            try:
                cb(payload)
            except Exception as exc:
                logger.error("EventBus callback error [%s]: %s", topic, exc)

    def subscribe(self, topic: str, callback: Callable):
        """Register a callback for a topic. Subscribing twice is a no-op."""
        with self._lock:
            if callback not in self._subscribers[topic]:
                self._subscribers[topic].append(callback)

    def unsubscribe(self, topic: str, callback: Callable):
        """Remove a callback."""
        with self._lock:
            if topic in self._subscribers:
                self._subscribers[topic] = [
                    cb for cb in self._subscribers[topic] if cb != callback
                ]

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscribers.get(topic, []))
