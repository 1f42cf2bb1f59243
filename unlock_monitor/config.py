"""Unlock Monitor - Configuration

Built-in defaults, YAML loading and the typed settings the engine is
constructed from. A monitor.yaml only needs the keys it overrides:

    monitor:
      window_size: 250        # 250 samples x 20 ms = 5 s
      emit_interval: 0.1
      dispersion: stddev      # picks the stddev stability default
    sources:
      - {id: orientation, type: orientation, sensor_key: icm20948}
      - {id: lock, type: lock, proxy: logind}
"""

import copy
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import yaml

from unlock_monitor.alarm import ALARM_MODE_EDGE, ALARM_MODES, AlarmThresholds
from unlock_monitor.sample_window import DISPERSION_METRICS, DISPERSION_RANGE, DISPERSION_STDDEV

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Thresholds (radians)
# ---------------------------------------------------------------------------
TILT_THRESHOLD = 1.2217          # 70 degrees
FLAT_FRACTION = 0.1              # flat band = 10% of the tilt threshold

# Stability thresholds are tuned per dispersion metric; never mix them.
STABILITY_DEFAULTS = {
    DISPERSION_RANGE: 0.01,      # ~0.57 degrees peak-to-peak
    DISPERSION_STDDEV: 0.0025,   # ~0.14 degrees
}

# ---------------------------------------------------------------------------
# Cadences
# ---------------------------------------------------------------------------
SAMPLE_INTERVAL = 0.02           # 50 Hz ingestion
EMIT_INTERVAL = 0.1              # 10 Hz telemetry
WINDOW_SIZE = 250                # 250 x 20 ms = 5 s of data
MAX_SAMPLE_AGE = 2.0             # s without samples before tilt counts as unknown

# ---------------------------------------------------------------------------
# Orientation sensors
# ---------------------------------------------------------------------------
SENSORS = {
    "icm20948": {
        "label": "9-DOF IMU",
        "description": "ICM20948 roll angle",
        "address": 0x68,         # 0x69 with the AD0 jumper
        "axis": "roll",
    },
}

DEFAULTS: Dict[str, Any] = {
    "monitor": {
        "window_size": WINDOW_SIZE,
        "min_samples": None,             # None = window must be full
        "sample_interval": SAMPLE_INTERVAL,
        "emit_interval": EMIT_INTERVAL,
        "tilt_threshold": TILT_THRESHOLD,
        "flat_fraction": FLAT_FRACTION,
        "flatness_threshold": None,      # None = flat_fraction * tilt_threshold
        "dispersion": DISPERSION_RANGE,
        "stability_threshold": None,     # None = STABILITY_DEFAULTS[dispersion]
        "alarm_mode": ALARM_MODE_EDGE,
        "alarm_cooldown": 0.0,
        "max_sample_age": MAX_SAMPLE_AGE,  # 0 = never expire
    },
    "sources": [
        {"id": "orientation", "type": "orientation", "sensor_key": "icm20948"},
        {"id": "lock", "type": "lock", "proxy": "manual"},
    ],
}


@dataclass(frozen=True)
class MonitorSettings:
    window_size: int
    min_samples: int
    sample_interval: float
    emit_interval: float
    tilt_threshold: float
    flat_fraction: float
    flatness_threshold: float
    dispersion: str
    stability_threshold: float
    alarm_mode: str
    alarm_cooldown: float
    max_sample_age: float

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]] = None) -> "MonitorSettings":
        """Validate a `monitor:` section merged over the defaults."""
        cfg = dict(DEFAULTS["monitor"])
        cfg.update({k: v for k, v in (raw or {}).items() if v is not None})

        unknown = set(cfg) - set(DEFAULTS["monitor"])
        if unknown:
            logger.warning("Ignoring unknown monitor settings: %s", ", ".join(sorted(unknown)))

        window_size = int(cfg["window_size"])
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")

        min_samples = cfg["min_samples"]
        min_samples = window_size if min_samples is None else int(min_samples)
        if not 1 <= min_samples <= window_size:
            raise ValueError(
                f"min_samples must be between 1 and window_size ({window_size}), got {min_samples}"
            )

        dispersion = str(cfg["dispersion"]).lower()
        if dispersion not in DISPERSION_METRICS:
            raise ValueError(f"unknown dispersion metric: {dispersion!r}")

        alarm_mode = str(cfg["alarm_mode"]).lower()
        if alarm_mode not in ALARM_MODES:
            raise ValueError(f"unknown alarm mode: {alarm_mode!r}")

        tilt_threshold = float(cfg["tilt_threshold"])
        flat_fraction = float(cfg["flat_fraction"])
        flatness = cfg["flatness_threshold"]
        flatness = flat_fraction * tilt_threshold if flatness is None else float(flatness)

        stability = cfg["stability_threshold"]
        stability = STABILITY_DEFAULTS[dispersion] if stability is None else float(stability)

        for name, value in (
            ("tilt_threshold", tilt_threshold),
            ("flatness_threshold", flatness),
            ("stability_threshold", stability),
            ("sample_interval", float(cfg["sample_interval"])),
            ("emit_interval", float(cfg["emit_interval"])),
        ):
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"{name} must be a positive number, got {value}")

        max_sample_age = float(cfg["max_sample_age"])
        if not math.isfinite(max_sample_age) or max_sample_age < 0:
            raise ValueError(f"max_sample_age must be >= 0, got {max_sample_age}")

        return cls(
            window_size=window_size,
            min_samples=min_samples,
            sample_interval=float(cfg["sample_interval"]),
            emit_interval=float(cfg["emit_interval"]),
            tilt_threshold=tilt_threshold,
            flat_fraction=flat_fraction,
            flatness_threshold=flatness,
            dispersion=dispersion,
            stability_threshold=stability,
            alarm_mode=alarm_mode,
            alarm_cooldown=float(cfg["alarm_cooldown"]),
            max_sample_age=max_sample_age,
        )

    @property
    def thresholds(self) -> AlarmThresholds:
        return AlarmThresholds(
            flatness_threshold=self.flatness_threshold,
            stability_threshold=self.stability_threshold,
        )

    @property
    def window_seconds(self) -> float:
        return self.window_size * self.sample_interval


def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Load monitor config from a YAML file, merged over DEFAULTS."""
    config = copy.deepcopy(DEFAULTS)
    if not path:
        return config

    try:
        with open(path) as f:
            loaded = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file not found: %s (using defaults)", path)
        return config

    if not isinstance(loaded, dict):
        raise ValueError(f"{path}: top level must be a mapping")

    config["monitor"].update(loaded.get("monitor") or {})
    if "sources" in loaded:
        config["sources"] = list(loaded.get("sources") or [])
    return config


def source_configs(config: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Source entries with ids, in config order."""
    result = []
    for src in config.get("sources", []):
        if not src.get("id") or not src.get("type"):
            logger.warning("Skipping incomplete source entry: %s", src)
            continue
        result.append(dict(src))
    return result
