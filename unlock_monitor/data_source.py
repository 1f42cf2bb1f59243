"""Data source abstraction for the unlock monitor.

A DataSource polls one external collaborator (orientation sensor, lock
proxy, location provider) in a background thread and publishes what it
reads to the EventBus. The monitor doesn't care where inputs come
from -- it just subscribes to topics.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from unlock_monitor.event_bus import EventBus

logger = logging.getLogger(__name__)


class DataSource(ABC):
    """Base class for all input collaborators.

    Subclasses implement fetch() which runs in a background thread and
    set TOPIC to the bus topic they publish on.
    """

    TOPIC: str = ""

    def __init__(self, source_id: str, bus: EventBus, config: Dict):
        self.source_id = source_id
        self.bus = bus
        self.config = config
        self.topic = config.get("topic", self.TOPIC or source_id)
        self.interval = float(config.get("interval", 5.0))  # seconds
        self.demo = bool(config.get("demo", False))
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start the background polling thread. No-op if already running."""
        if self.running and not self._stop.is_set():
            return
        if self._thread is not None:
            # Previous thread is winding down after stop()
            self._thread.join(timeout=self.interval + 1.0)
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, daemon=True, name=f"src-{self.source_id}"
        )
        self._thread.start()
        logger.info("DataSource %s started (%.3fs interval)", self.source_id, self.interval)

    def stop(self, timeout: Optional[float] = None):
        """Signal the background thread to stop, optionally waiting for it."""
        self._stop.set()
        if timeout is not None and self._thread is not None:
            self._thread.join(timeout)

    def poll_once(self) -> Optional[Dict[str, Any]]:
        """Fetch once and publish the result. Returns what was published."""
        data = self.fetch()
        if data is not None:
            self.bus.publish(self.topic, data)
        return data

    def _run(self):
        """Poll loop -- fetch and publish, then wait out the interval."""
        while not self._stop.is_set():
            try:
                self.poll_once()
            except Exception as exc:
                logger.error("DataSource %s fetch error: %s", self.source_id, exc)

            # wait() returns early when stop() is called
            self._stop.wait(self.interval)

    @abstractmethod
    def fetch(self) -> Optional[Dict[str, Any]]:
        """Fetch data. Runs in background thread.

        Returns:
            Dict payload for self.topic, or None to skip this cycle.
        """
        ...

    def describe(self) -> Dict[str, Any]:
        """Summary for the monitor status. Subclasses may add fields."""
        return {"type": type(self).__name__, "running": self.running}

    def close(self):
        """Release resources. Override if needed."""
        self.stop()
