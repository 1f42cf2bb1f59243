"""Collaborator sources: orientation, lock proxies and location."""

import math
import subprocess
from unittest import mock

import pytest
import requests

import sensors.orientation
from sensors import SENSOR_CLASSES
from sensors.base import BaseSensor
from sensors.orientation import OrientationSensor, roll_from_acceleration
from sources.location_source import LocationSource, format_location
from sources.lock_source import (
    LockSignalSource,
    LogindLockProxy,
    ManualLockProxy,
    SimulatedLockProxy,
)
from sources.orientation_source import OrientationSource
from unlock_monitor.event_bus import TOPIC_LOCATION, TOPIC_LOCK, TOPIC_TILT, EventBus
from unlock_monitor.registry import SOURCE_REGISTRY, get_source_class, register_source


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def no_imu_library(monkeypatch):
    monkeypatch.setattr(sensors.orientation, "_lib_available", False)


def collect(bus, topic):
    received = []
    bus.subscribe(topic, received.append)
    return received


def test_builtin_sources_registered():
    assert get_source_class("orientation") is OrientationSource
    assert get_source_class("lock") is LockSignalSource
    assert get_source_class("location") is LocationSource
    assert get_source_class("weather") is None
    assert set(SOURCE_REGISTRY) >= {"orientation", "lock", "location"}


# =============================================================================
# Orientation
# =============================================================================

def test_roll_from_acceleration():
    assert roll_from_acceleration(0.0, 0.0, 9.81) == pytest.approx(0.0)
    assert roll_from_acceleration(0.0, 9.81, 0.0) == pytest.approx(math.pi / 2)
    assert roll_from_acceleration(0.0, 0.0, 0.0) is None


def test_sensor_without_library_is_unavailable(no_imu_library):
    sensor = OrientationSensor({"address": 0x68})
    assert not sensor.available
    assert sensor.init_error
    assert sensor.read() is None
    assert "tilt" in sensor.read(demo=True)


def test_base_sensor_retries_then_gives_up():
    class FlakySensor(BaseSensor):
        RETRY_DELAY = 0.0

        def _init_hardware(self):
            self.attempts = 0
            self._hw_available = True

        def _read_tilt(self):
            self.attempts += 1
            raise OSError("I2C bus error")

        def _simulate_tilt(self):
            return 0.0

    sensor = FlakySensor()
    assert sensor.read() is None
    assert sensor.attempts == FlakySensor.MAX_RETRIES
    assert sensor.reliability == 0.0
    assert sensor.health()["failed"] == 1


def test_non_finite_reading_is_retried():
    class NoisySensor(BaseSensor):
        RETRY_DELAY = 0.0

        def _init_hardware(self):
            self._readings = iter([float("nan"), 0.25])
            self._hw_available = True

        def _read_tilt(self):
            return next(self._readings)

        def _simulate_tilt(self):
            return 0.0

    sensor = NoisySensor()
    assert sensor.read() == {"tilt": 0.25}
    assert sensor.reliability == 100.0


def test_demo_orientation_source_publishes_samples(bus, no_imu_library):
    received = collect(bus, TOPIC_TILT)
    source = OrientationSource("orientation", bus, {"demo": True})

    assert source.available
    source.poll_once()
    assert len(received) == 1
    assert isinstance(received[0]["tilt"], float)
    assert received[0]["_source"] == "orientation"
    assert source.describe()["sensor"]["available"] is False


def test_missing_sensor_reported_once(bus, no_imu_library):
    received = collect(bus, TOPIC_TILT)
    source = OrientationSource("orientation", bus, {})

    assert not source.available
    source.poll_once()
    source.poll_once()
    assert len(received) == 1
    assert received[0]["available"] is False
    assert "orientation" in received[0]["reason"]


def test_sensor_that_stops_answering_is_reported_unavailable(bus, monkeypatch):
    class DeadSensor(BaseSensor):
        RETRY_DELAY = 0.0

        def _init_hardware(self):
            self._hw_available = True

        def _read_tilt(self):
            raise OSError("I2C bus error")

        def _simulate_tilt(self):
            return 0.0

    monkeypatch.setitem(SENSOR_CLASSES, "dead", DeadSensor)
    received = collect(bus, TOPIC_TILT)
    source = OrientationSource("orientation", bus, {"sensor_key": "dead", "max_failures": 3})

    for _ in range(10):
        source.poll_once()

    assert len(received) == 1
    assert received[0]["available"] is False
    assert "3 consecutive read failures" in received[0]["reason"]


def test_unknown_sensor_key_is_unavailable(bus):
    source = OrientationSource("orientation", bus, {"sensor_key": "gyro9000"})
    assert not source.available
    assert source.fetch()["available"] is False


# =============================================================================
# Lock proxies
# =============================================================================

def test_manual_proxy_publishes_host_state(bus):
    received = collect(bus, TOPIC_LOCK)
    source = LockSignalSource("lock", bus, {"proxy": "manual"})

    assert source.fetch() is None
    source.set_locked(False)
    assert received[-1]["locked"] is False
    assert received[-1]["_proxy"] == "manual"


def test_manual_proxy_initial_value():
    proxy = ManualLockProxy({"initial": True})
    assert proxy.read() is True


def test_set_locked_needs_manual_proxy(bus):
    source = LockSignalSource("lock", bus, {"proxy": "simulated"})
    with pytest.raises(TypeError):
        source.set_locked(True)


def test_demo_forces_simulated_proxy(bus):
    source = LockSignalSource("lock", bus, {"proxy": "logind", "demo": True})
    assert isinstance(source.proxy, SimulatedLockProxy)


def test_unknown_proxy_rejected(bus):
    with pytest.raises(ValueError):
        LockSignalSource("lock", bus, {"proxy": "faceid"})


def test_simulated_proxy_starts_locked():
    proxy = SimulatedLockProxy({"locked_for": 60, "unlocked_for": 60})
    assert proxy.read() is True


@pytest.mark.parametrize("stdout, expected", [
    ("yes\n", True),
    ("no\n", False),
    ("maybe\n", None),
])
def test_logind_proxy_parses_locked_hint(stdout, expected):
    proxy = LogindLockProxy({"session": "c1"})
    completed = mock.MagicMock(returncode=0, stdout=stdout, stderr="")
    with mock.patch("sources.lock_source.subprocess.run", return_value=completed) as run:
        assert proxy.read() is expected
    assert run.call_args[0][0][:3] == ["loginctl", "show-session", "c1"]


def test_logind_proxy_without_loginctl():
    proxy = LogindLockProxy({})
    with mock.patch("sources.lock_source.subprocess.run", side_effect=FileNotFoundError("loginctl")):
        assert proxy.read() is None


def test_logind_proxy_timeout_and_failure():
    proxy = LogindLockProxy({})
    with mock.patch(
        "sources.lock_source.subprocess.run",
        side_effect=subprocess.TimeoutExpired("loginctl", 2),
    ):
        assert proxy.read() is None

    failed = mock.MagicMock(returncode=1, stdout="", stderr="No session")
    with mock.patch("sources.lock_source.subprocess.run", return_value=failed):
        assert proxy.read() is None


# =============================================================================
# Location
# =============================================================================

def test_format_location():
    assert format_location({"lat": 52.520008, "lon": 13.404954}) == \
        "Lat: 52.520008, Lon: 13.404954"
    assert format_location({"latitude": 1, "lng": 2, "alt": 34, "speed": 1.5}) == \
        "Lat: 1.000000, Lon: 2.000000, Alt: 34.0m, Speed: 1.5 m/s"
    assert format_location({"lat": 1.0}) is None


def test_location_source_fetches_fix(bus):
    received = collect(bus, TOPIC_LOCATION)
    source = LocationSource("location", bus, {"url": "http://gps.local/fix", "extract": "fix"})

    response = mock.MagicMock()
    response.json.return_value = {"fix": {"lat": 1.5, "lon": -2.25}}
    with mock.patch.object(source._session, "get", return_value=response) as get:
        source.poll_once()

    get.assert_called_once()
    assert received[0]["location"] == "Lat: 1.500000, Lon: -2.250000"
    source.close()


def test_location_source_network_error_skips_cycle(bus):
    source = LocationSource("location", bus, {"url": "http://gps.local/fix"})
    with mock.patch.object(
        source._session, "get", side_effect=requests.ConnectionError("unreachable"),
    ):
        assert source.fetch() is None
    source.close()


def test_location_source_without_fix(bus):
    source = LocationSource("location", bus, {"url": "http://gps.local/fix"})
    response = mock.MagicMock()
    response.json.return_value = {"status": "searching"}
    with mock.patch.object(source._session, "get", return_value=response):
        assert source.fetch() is None
    source.close()


def test_location_source_demo(bus):
    source = LocationSource("location", bus, {"demo": True})
    assert source.fetch()["location"].startswith("Lat: 52.5")
    source.close()


def test_registry_rejects_conflicting_type_name():
    class Impostor:
        pass

    with pytest.raises(ValueError):
        register_source("lock")(Impostor)
    assert get_source_class("lock") is LockSignalSource
