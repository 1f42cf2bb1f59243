"""Location data source -- last known position as a display string.

Fetches a position fix as JSON from an HTTP endpoint (a gpsd bridge, a
phone companion app, an IP geolocation service) and publishes it as
the location string attached to alarms:

    "Lat: 52.520008, Lon: 13.404954, Alt: 34.0m, Speed: 0.0 m/s"

Config example (in monitor.yaml):
    sources:
      - id: "location"
        type: "location"
        url: "http://127.0.0.1:8947/fix"
        interval: 30
        extract: "fix"               # optional: pull nested key
"""

import logging
import random
import time
from typing import Any, Dict, Optional

import requests

from unlock_monitor.data_source import DataSource
from unlock_monitor.event_bus import TOPIC_LOCATION
from unlock_monitor.registry import register_source

logger = logging.getLogger(__name__)

LAT_KEYS = ("lat", "latitude")
LON_KEYS = ("lon", "lng", "longitude")
ALT_KEYS = ("alt", "altitude")
SPEED_KEYS = ("speed",)


def _first(data: Dict[str, Any], keys) -> Optional[float]:
    for key in keys:
        value = data.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    return None


def format_location(fix: Dict[str, Any]) -> Optional[str]:
    """Render a fix dict; None without both latitude and longitude."""
    lat = _first(fix, LAT_KEYS)
    lon = _first(fix, LON_KEYS)
    if lat is None or lon is None:
        return None

    parts = [f"Lat: {lat:.6f}", f"Lon: {lon:.6f}"]
    alt = _first(fix, ALT_KEYS)
    if alt is not None:
        parts.append(f"Alt: {alt:.1f}m")
    speed = _first(fix, SPEED_KEYS)
    if speed is not None:
        parts.append(f"Speed: {speed:.1f} m/s")
    return ", ".join(parts)


@register_source("location")
class LocationSource(DataSource):
    """Polls a JSON position endpoint."""

    TOPIC = TOPIC_LOCATION

    def __init__(self, source_id: str, bus, config: Dict):
        config.setdefault("interval", 30.0)
        super().__init__(source_id, bus, config)
        self.url = config.get("url", "")
        self.headers = config.get("headers", {})
        self.extract_key = config.get("extract", None)
        self._timeout = config.get("timeout", 10)
        self._session = requests.Session()

    def fetch(self) -> Optional[Dict[str, Any]]:
        if self.demo:
            return self._simulate()
        if not self.url:
            return None

        try:
            resp = self._session.get(self.url, headers=self.headers, timeout=self._timeout)
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as exc:
            logger.warning("LocationSource %s: %s", self.source_id, exc)
            return None
        except ValueError as exc:
            logger.warning("LocationSource %s: invalid JSON: %s", self.source_id, exc)
            return None

        if self.extract_key:
            for key in self.extract_key.split("."):
                if isinstance(data, dict):
                    data = data.get(key, {})
        if not isinstance(data, dict):
            return None

        location = format_location(data)
        if location is None:
            logger.debug("LocationSource %s: no fix in response", self.source_id)
            return None
        return {"location": location, "ts": time.time()}

    def _simulate(self) -> Dict[str, Any]:
        fix = {
            "lat": 52.520008 + random.uniform(-0.0001, 0.0001),
            "lon": 13.404954 + random.uniform(-0.0001, 0.0001),
            "alt": 34.0,
            "speed": 0.0,
        }
        return {"location": format_location(fix), "ts": time.time()}

    def close(self):
        super().close()
        self._session.close()
