"""Core engine for the unlock monitor.

Watches device tilt and lock state and raises an alarm when the device
is left unlocked, flat and still.

Architecture:
    DataSource       -- polls a collaborator in a background thread, publishes to EventBus
    EventBus         -- thread-safe input bus (raw tilt, lock signals, location fixes)
    SampleWindow     -- sliding window of raw tilt samples; mean + dispersion
    TiltAnalyzer     -- smoothed tilt, stability, periodic TILT_EVENT telemetry
    LockStateTracker -- debounced lock/unlock transitions
    AlarmEvaluator   -- unlocked + flat + stable predicate with re-fire policy
    EventSink        -- ordered single-consumer output channel (JSON events)
    UnlockMonitor    -- owns all of the above for one device; start()/stop()
"""

from unlock_monitor.alarm import AlarmEvaluator, AlarmThresholds, alarm_condition
from unlock_monitor.config import MonitorSettings, load_config
from unlock_monitor.data_source import DataSource
from unlock_monitor.event_bus import EventBus
from unlock_monitor.event_sink import EventSink
from unlock_monitor.events import EventType, MonitorEvent
from unlock_monitor.lock_tracker import LockState, LockStateTracker
from unlock_monitor.monitor import UnlockMonitor
from unlock_monitor.registry import SOURCE_REGISTRY, register_source
from unlock_monitor.sample_window import SampleWindow, WindowSnapshot
from unlock_monitor.tilt_analyzer import TiltAnalyzer, TiltClass, TiltState

__version__ = "1.0.0"

__all__ = [
    "AlarmEvaluator",
    "AlarmThresholds",
    "alarm_condition",
    "MonitorSettings",
    "load_config",
    "DataSource",
    "EventBus",
    "EventSink",
    "EventType",
    "MonitorEvent",
    "LockState",
    "LockStateTracker",
    "UnlockMonitor",
    "SOURCE_REGISTRY",
    "register_source",
    "SampleWindow",
    "WindowSnapshot",
    "TiltAnalyzer",
    "TiltClass",
    "TiltState",
]
