"""Shared fixtures for the unlock monitor tests."""

from typing import List, Tuple

import pytest

from unlock_monitor.alarm import AlarmThresholds
from unlock_monitor.config import MonitorSettings
from unlock_monitor.event_sink import EventSink
from unlock_monitor.events import MonitorEvent
from unlock_monitor.monitor import UnlockMonitor
from unlock_monitor.tilt_analyzer import TiltClass, TiltState


class RecordingListener:
    """Event sink listener that keeps everything it receives."""

    def __init__(self):
        self.received: List[Tuple[MonitorEvent, str]] = []

    def __call__(self, event: MonitorEvent, encoded: str):
        self.received.append((event, encoded))

    @property
    def events(self) -> List[MonitorEvent]:
        return [event for event, _ in self.received]

    @property
    def types(self) -> List[str]:
        return [event.type.value for event in self.events]


@pytest.fixture
def thresholds() -> AlarmThresholds:
    return AlarmThresholds(flatness_threshold=0.122, stability_threshold=0.005)


@pytest.fixture
def flat_still_tilt() -> TiltState:
    return TiltState(
        smoothed_tilt=0.01,
        oscillation=0.001,
        classification=TiltClass.FLAT,
        stable=True,
        last_updated=0.0,
    )


@pytest.fixture
def small_settings() -> MonitorSettings:
    """Ten-sample window with the thresholds used in the alarm examples."""
    return MonitorSettings.from_dict({
        "window_size": 10,
        "sample_interval": 0.05,
        "flatness_threshold": 0.122,
        "stability_threshold": 0.005,
    })


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def sink(listener) -> EventSink:
    sink = EventSink()
    sink.attach(listener)
    return sink


@pytest.fixture
def monitor(small_settings, sink):
    monitor = UnlockMonitor(settings=small_settings, sink=sink, ticker=False)
    yield monitor
    monitor.close()
