"""Orientation data source -- wraps a roll-angle sensor.

Polls one BaseSensor on the ingestion cadence (20-50 ms) and publishes
each reading on the tilt.raw topic. When the sensor isn't available the
source says so once ({"available": False}) and stops polling; the
monitor then runs without tilt for the rest of the session. A sensor
that keeps failing after a good start is treated the same way once
`max_failures` consecutive reads come back empty.

Config example (in monitor.yaml):
    sources:
      - id: "orientation"
        type: "orientation"
        sensor_key: "icm20948"
        address: 0x68
        interval: 0.02
        max_failures: 50             # consecutive empty reads before giving up
"""

import logging
import time
from typing import Any, Dict, Optional

from sensors import SENSOR_CLASSES
from unlock_monitor.config import SAMPLE_INTERVAL, SENSORS
from unlock_monitor.data_source import DataSource
from unlock_monitor.event_bus import TOPIC_TILT
from unlock_monitor.registry import register_source

logger = logging.getLogger(__name__)

MAX_READ_FAILURES = 50  # 1 s of reads at 50 Hz


@register_source("orientation")
class OrientationSource(DataSource):
    """Publishes raw roll-angle samples via EventBus."""

    TOPIC = TOPIC_TILT

    def __init__(self, source_id: str, bus, config: Dict):
        config.setdefault("interval", SAMPLE_INTERVAL)
        super().__init__(source_id, bus, config)

        self.sensor_key = config.get("sensor_key", "icm20948")
        self.max_failures = int(config.get("max_failures", MAX_READ_FAILURES))
        self._sensor = None
        self._unavailable_reason: Optional[str] = None
        self._reported_unavailable = False

        cls = SENSOR_CLASSES.get(self.sensor_key)
        if cls is None:
            self._unavailable_reason = f"unknown sensor type {self.sensor_key!r}"
            logger.warning("OrientationSource %s: %s", source_id, self._unavailable_reason)
            return

        sensor_cfg = {**SENSORS.get(self.sensor_key, {}), **config}
        try:
            self._sensor = cls(sensor_cfg)
            logger.info("OrientationSource %s initialized (%r)", source_id, self._sensor)
        except Exception as exc:
            self._unavailable_reason = f"sensor init failed: {exc}"
            logger.warning("OrientationSource %s init failed: %s", source_id, exc)

    @property
    def available(self) -> bool:
        if self._sensor is None:
            return False
        return self.demo or self._sensor.available

    def fetch(self) -> Optional[Dict[str, Any]]:
        if not self.available:
            return self._report_unavailable()

        result = self._sensor.read(demo=self.demo)
        if result is None:
            failures = self._sensor.consecutive_failures
            if self.max_failures and failures >= self.max_failures:
                self._unavailable_reason = f"{failures} consecutive read failures"
                return self._report_unavailable()
            return None
        return {"tilt": result["tilt"], "ts": time.time(), "_source": self.source_id}

    def _report_unavailable(self) -> Optional[Dict[str, Any]]:
        if self._reported_unavailable:
            return None
        self._reported_unavailable = True
        reason = self._unavailable_reason
        if reason is None and self._sensor is not None:
            reason = self._sensor.init_error or "sensor not available"
        # Nothing more to read this session
        self._stop.set()
        return {"available": False, "reason": f"{self.source_id}: {reason}"}

    def describe(self) -> Dict[str, Any]:
        info = super().describe()
        info["sensor"] = self._sensor.health() if self._sensor else None
        return info

    def close(self):
        super().close()
        if self._sensor:
            self._sensor.close()
