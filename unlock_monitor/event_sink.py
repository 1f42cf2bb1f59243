"""Output boundary: an ordered, single-consumer event channel.

Producers (tilt analyzer, lock tracker, alarm evaluator, via the
monitor) push MonitorEvents. Each event is JSON-encoded and handed to
the one attached listener, typically the SSE bridge in web_app.py.

Delivery is best-effort and at-most-once. With no listener attached the
event is dropped, not queued. An event that fails to encode is dropped
and logged; the next event goes through normally.
"""

import logging
import threading
from queue import Empty, Full, Queue
from typing import Callable, Dict, Iterator, Optional

from unlock_monitor.events import MonitorEvent

logger = logging.getLogger(__name__)

Listener = Callable[[MonitorEvent, str], None]


class DeliveryDropped(Exception):
    """Raised by a listener that had to discard the event (e.g. a full queue)."""


class EventSink:
    """Single-listener event channel with JSON encoding."""

    def __init__(self):
        self._lock = threading.Lock()
        self._listener: Optional[Listener] = None
        self._latest: Dict[str, dict] = {}
        self.published = 0
        self.dropped = 0
        self.failed = 0

    @property
    def has_listener(self) -> bool:
        return self._listener is not None

    def attach(self, listener: Listener) -> None:
        """Set the consumer. Replaces any previous listener."""
        with self._lock:
            if self._listener is not None and self._listener is not listener:
                logger.info("EventSink: replacing existing listener")
            self._listener = listener

    def detach(self, listener: Optional[Listener] = None) -> None:
        """Remove the consumer (only if it is `listener`, when given)."""
        with self._lock:
            if listener is None or self._listener is listener:
                self._listener = None

    def publish(self, event: MonitorEvent) -> bool:
        """Encode and deliver one event. Returns True if delivered."""
        try:
            encoded = event.to_json()
        except (TypeError, ValueError) as exc:
            self.failed += 1
            logger.error("EventSink: dropping %s, encode failed: %s", event.type.value, exc)
            return False

        with self._lock:
            self._latest[event.type.value] = event.to_dict()
            listener = self._listener

        if listener is None:
            self.dropped += 1
            return False

        try:
            listener(event, encoded)
        except DeliveryDropped:
            self.dropped += 1
            logger.debug("EventSink: listener dropped %s", event.type.value)
            return False
        except Exception as exc:
            self.failed += 1
            logger.error("EventSink listener error [%s]: %s", event.type.value, exc)
            return False

        self.published += 1
        return True

    def get_latest(self, event_type: Optional[str] = None):
        """Latest event dict for a type, or all types."""
        with self._lock:
            if event_type:
                return self._latest.get(event_type)
            return dict(self._latest)

    def stats(self) -> Dict[str, int]:
        return {
            "published": self.published,
            "dropped": self.dropped,
            "failed": self.failed,
        }

    def stream(self, timeout: float = 30.0, maxsize: int = 100) -> Iterator[Optional[tuple]]:
        """Generator for the SSE bridge. Yields (event_type, json) tuples.

        Yields None as a keepalive after `timeout` seconds without events.
        Attaching a stream replaces any previous consumer.

        Usage in Flask:
            for item in sink.stream():
                if item is None:
                    yield ": keepalive\\n\\n"
                else:
                    yield f"event: {item[0]}\\ndata: {item[1]}\\n\\n"
        """
        q: Queue = Queue(maxsize=maxsize)

        def enqueue(event: MonitorEvent, encoded: str):
            try:
                q.put_nowait((event.type.value, encoded))
            except Full:
                # Slow client: drop rather than block the producer
                raise DeliveryDropped("stream queue full")

        self.attach(enqueue)
        try:
            while True:
                try:
                    yield q.get(timeout=timeout)
                except Empty:
                    yield None
        finally:
            self.detach(enqueue)
