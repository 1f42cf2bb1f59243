"""UnlockMonitor -- owns the engine for one monitored device.

Wires the pieces together:

    orientation source --tilt.raw-->     TiltAnalyzer --TILT_EVENT--> sink
                                              |
                                              v
    lock proxy        --lock.signal--> LockStateTracker --LOCK/UNLOCK--> sink
                                              |
                                              v
                                        AlarmEvaluator --ALARM_EVENT--> sink

Inputs arrive on collaborator threads (through the EventBus) or through
the direct methods below. Every state update runs under one lock, so
the window, tilt state and lock state are never mutated concurrently
and events reach the sink in order.

The host constructs one monitor and keeps it for the component's
lifetime; there is no process-wide instance.
"""

import logging
import threading
import time
from dataclasses import asdict, replace
from typing import Any, Callable, Dict, Iterable, List, Optional

from unlock_monitor.alarm import AlarmEvaluator
from unlock_monitor.config import MonitorSettings
from unlock_monitor.data_source import DataSource
from unlock_monitor.event_bus import TOPIC_LOCATION, TOPIC_LOCK, TOPIC_TILT, EventBus
from unlock_monitor.event_sink import EventSink
from unlock_monitor.events import MonitorEvent
from unlock_monitor.lock_tracker import LockSignal, LockState, LockStateTracker
from unlock_monitor.sample_window import SampleWindow
from unlock_monitor.tilt_analyzer import TiltAnalyzer

logger = logging.getLogger(__name__)


class UnlockMonitor:
    """Tilt + lock monitor raising the unattended-device alarm."""

    def __init__(
        self,
        settings: Optional[MonitorSettings] = None,
        sink: Optional[EventSink] = None,
        bus: Optional[EventBus] = None,
        sources: Optional[Iterable[DataSource]] = None,
        clock: Callable[[], float] = time.time,
        ticker: bool = True,
    ):
        self.settings = settings or MonitorSettings.from_dict()
        self.sink = sink or EventSink()
        self.bus = bus or EventBus()
        self.sources: List[DataSource] = list(sources or [])
        self._clock = clock

        self.window = SampleWindow(self.settings.window_size, self.settings.dispersion)
        self.analyzer = TiltAnalyzer(
            self.window,
            tilt_threshold=self.settings.tilt_threshold,
            stability_threshold=self.settings.stability_threshold,
            min_samples=self.settings.min_samples,
            flat_fraction=self.settings.flat_fraction,
            span_seconds=self.settings.window_seconds,
            max_sample_age=self.settings.max_sample_age,
        )
        self.tracker = LockStateTracker()
        self.evaluator = AlarmEvaluator(
            self.settings.thresholds,
            mode=self.settings.alarm_mode,
            cooldown=self.settings.alarm_cooldown,
        )
        self.location: Optional[str] = None

        self._lock = threading.RLock()
        # Serialises start/stop; input handlers only take _lock
        self._lifecycle = threading.Lock()
        self._running = False
        self._ticker_enabled = ticker
        self._ticker_stop: Optional[threading.Event] = None
        self._ticker_thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Subscribe to inputs and start collaborators. Idempotent."""
        with self._lifecycle:
            with self._lock:
                if self._running:
                    return
                self._running = True
                self.bus.subscribe(TOPIC_TILT, self._on_tilt)
                self.bus.subscribe(TOPIC_LOCK, self._on_lock)
                self.bus.subscribe(TOPIC_LOCATION, self._on_location)

            for source in self.sources:
                try:
                    source.start()
                except Exception as exc:
                    logger.error("Failed to start source %s: %s", source.source_id, exc)

            if self._ticker_enabled:
                # One stop event per ticker thread
                self._ticker_stop = threading.Event()
                self._ticker_thread = threading.Thread(
                    target=self._tick_loop, args=(self._ticker_stop,),
                    daemon=True, name="monitor-tick",
                )
                self._ticker_thread.start()

        logger.info(
            "Monitoring started (%d sources, window %d samples, %s dispersion, %s alarms)",
            len(self.sources), self.settings.window_size,
            self.settings.dispersion, self.settings.alarm_mode,
        )

    def stop(self) -> None:
        """Deregister from inputs and stop collaborators. Idempotent."""
        with self._lifecycle:
            with self._lock:
                if not self._running:
                    return
                self._running = False
                self.bus.unsubscribe(TOPIC_TILT, self._on_tilt)
                self.bus.unsubscribe(TOPIC_LOCK, self._on_lock)
                self.bus.unsubscribe(TOPIC_LOCATION, self._on_location)

            if self._ticker_stop is not None:
                self._ticker_stop.set()
            for source in self.sources:
                source.stop()
        logger.info("Monitoring stopped")

    def close(self) -> None:
        self.stop()
        for source in self.sources:
            source.close()

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def ingest_tilt(self, radians: float, now: Optional[float] = None) -> None:
        """Raw roll-angle sample from the orientation collaborator."""
        with self._lock:
            if not self._running:
                return
            self.analyzer.ingest(radians, self._now(now))

    def tick(self, now: Optional[float] = None) -> List[MonitorEvent]:
        """Emission step: tilt report, then alarm check on the fresh state."""
        with self._lock:
            if not self._running:
                return []
            now = self._now(now)
            report = self.analyzer.tick(now)
            if report is None:
                return []
            emitted = [report]
            self.sink.publish(report)
            emitted.extend(self._evaluate(now))
            return emitted

    def observe_lock(self, signal: LockSignal, now: Optional[float] = None) -> List[MonitorEvent]:
        """Lock signal from the lock-state proxy."""
        with self._lock:
            if not self._running:
                return []
            now = self._now(now)
            transition = self.tracker.observe(signal, now)
            if transition is None:
                return []

            self.analyzer.expire_stale(now)
            tilt = self.analyzer.state
            transition = replace(
                transition,
                location=self.location,
                tilt_value=tilt.smoothed_tilt if tilt else None,
                oscillation_value=tilt.oscillation if tilt else None,
            )
            if self.tracker.state is LockState.LOCKED:
                # Stability measured before the lock must not carry over
                self.analyzer.reset_stability()
                self.evaluator.rearm()

            emitted = [transition]
            self.sink.publish(transition)
            emitted.extend(self._evaluate(now))
            return emitted

    def update_location(self, location: Optional[str]) -> None:
        """Last known location string; attached to alarms and unlocks."""
        with self._lock:
            self.location = location

    def mark_sensor_unavailable(self, reason: str = "orientation sensor unavailable") -> None:
        with self._lock:
            self.analyzer.mark_unavailable(reason)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> Dict[str, Any]:
        with self._lock:
            tilt = self.analyzer.state
            return {
                "running": self._running,
                "lock_state": self.tracker.state.value,
                "tilt_available": self.analyzer.available,
                "tilt": _tilt_dict(tilt) if tilt else None,
                "window": {
                    "count": len(self.window),
                    "capacity": self.window.capacity,
                    "dropped": self.analyzer.dropped_samples,
                },
                "alarm_active": self.evaluator.active,
                "alarms_fired": self.evaluator.fired,
                "location": self.location,
                "sink": self.sink.stats(),
                "latest": self.sink.get_latest(),
                "sources": {s.source_id: s.describe() for s in self.sources},
            }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _evaluate(self, now: float) -> List[MonitorEvent]:
        alarm = self.evaluator.evaluate(
            self.tracker.state, self.analyzer.state, now, location=self.location
        )
        if alarm is None:
            return []
        self.sink.publish(alarm)
        return [alarm]

    def _now(self, now: Optional[float]) -> float:
        return self._clock() if now is None else now

    def _tick_loop(self, stop: threading.Event):
        interval = self.settings.emit_interval
        while not stop.wait(interval):
            try:
                self.tick()
            except Exception as exc:
                logger.error("Monitor tick error: %s", exc)

    def _on_tilt(self, payload: Dict[str, Any]):
        if payload.get("available") is False:
            self.mark_sensor_unavailable(payload.get("reason", "orientation sensor unavailable"))
            return
        if "tilt" in payload:
            self.ingest_tilt(float(payload["tilt"]), payload.get("ts"))

    def _on_lock(self, payload: Dict[str, Any]):
        if "locked" in payload:
            self.observe_lock(payload["locked"], payload.get("ts"))

    def _on_location(self, payload: Dict[str, Any]):
        self.update_location(payload.get("location"))

    def __repr__(self) -> str:
        status = "running" if self._running else "stopped"
        return f"<UnlockMonitor {status} lock={self.tracker.state.value}>"


def _tilt_dict(tilt) -> Dict[str, Any]:
    data = asdict(tilt)
    data["classification"] = tilt.classification.value
    return data
