"""Lock-signal data source with pluggable proxies.

There is no single reliable "is the device locked" signal; every
platform offers a different proxy (session lock hints, screen on/off,
app foreground/background). The monitor only needs a boolean, so the
proxy is chosen in config and the rest of the system stays agnostic.

Proxies:
    manual     -- value pushed from the host (POST /api/lock)
    logind     -- systemd-logind LockedHint of a login session
    simulated  -- toggles between locked and unlocked for demos

Config example (in monitor.yaml):
    sources:
      - id: "lock"
        type: "lock"
        proxy: "logind"
        session: "self"
        interval: 0.5
"""

import logging
import subprocess
import threading
import time
from typing import Any, Dict, Optional

from unlock_monitor.data_source import DataSource
from unlock_monitor.event_bus import TOPIC_LOCK
from unlock_monitor.registry import register_source

logger = logging.getLogger(__name__)


class LockProxy:
    """Reads the current lock state: True = locked, None = can't tell."""

    name = "base"

    def read(self) -> Optional[bool]:
        raise NotImplementedError


class ManualLockProxy(LockProxy):
    """Holds whatever the host last reported."""

    name = "manual"

    def __init__(self, config: Dict):
        initial = config.get("initial")
        self._locked: Optional[bool] = None if initial is None else bool(initial)
        self._lock = threading.Lock()

    def set(self, locked: bool) -> None:
        with self._lock:
            self._locked = bool(locked)

    def read(self) -> Optional[bool]:
        with self._lock:
            return self._locked


class LogindLockProxy(LockProxy):
    """Queries `loginctl show-session <id> -p LockedHint --value`."""

    name = "logind"

    def __init__(self, config: Dict):
        self.session = str(config.get("session", "self"))
        self._timeout = config.get("timeout", 2)
        self._warned = False

    def read(self) -> Optional[bool]:
        try:
            result = subprocess.run(
                ["loginctl", "show-session", self.session, "-p", "LockedHint", "--value"],
                capture_output=True, text=True, timeout=self._timeout,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError) as exc:
            self._warn_once("loginctl failed: %s" % exc)
            return None

        if result.returncode != 0:
            self._warn_once("loginctl exited %d: %s" % (result.returncode, result.stderr.strip()))
            return None

        value = result.stdout.strip().lower()
        if value in ("yes", "true", "1"):
            return True
        if value in ("no", "false", "0"):
            return False
        self._warn_once("unexpected LockedHint value %r" % value)
        return None

    def _warn_once(self, message: str) -> None:
        if not self._warned:
            logger.warning("LogindLockProxy[%s]: %s", self.session, message)
            self._warned = True


class SimulatedLockProxy(LockProxy):
    """Locked for `locked_for` seconds, then unlocked for `unlocked_for`."""

    name = "simulated"

    def __init__(self, config: Dict):
        self.locked_for = float(config.get("locked_for", 10.0))
        self.unlocked_for = float(config.get("unlocked_for", 20.0))
        self._t0 = time.monotonic()

    def read(self) -> Optional[bool]:
        elapsed = (time.monotonic() - self._t0) % (self.locked_for + self.unlocked_for)
        return elapsed < self.locked_for


LOCK_PROXIES = {
    "manual": ManualLockProxy,
    "logind": LogindLockProxy,
    "simulated": SimulatedLockProxy,
}


@register_source("lock")
class LockSignalSource(DataSource):
    """Publishes the proxy's lock state on lock.signal."""

    TOPIC = TOPIC_LOCK

    def __init__(self, source_id: str, bus, config: Dict):
        config.setdefault("interval", 0.5)
        super().__init__(source_id, bus, config)

        proxy_name = "simulated" if self.demo else config.get("proxy", "manual")
        cls = LOCK_PROXIES.get(proxy_name)
        if cls is None:
            raise ValueError(f"unknown lock proxy: {proxy_name!r}")
        self.proxy = cls(config)
        logger.info("LockSignalSource %s using %s proxy", source_id, self.proxy.name)

    def fetch(self) -> Optional[Dict[str, Any]]:
        locked = self.proxy.read()
        if locked is None:
            return None
        # Repeats are fine: the tracker debounces identical states
        return {"locked": locked, "ts": time.time(), "_proxy": self.proxy.name}

    def set_locked(self, locked: bool) -> Dict[str, Any]:
        """Push a host-reported state (manual proxy) and publish it now."""
        if not isinstance(self.proxy, ManualLockProxy):
            raise TypeError(f"lock source {self.source_id} uses the {self.proxy.name} proxy")
        self.proxy.set(locked)
        payload = self.fetch()
        self.bus.publish(self.topic, payload)
        return payload
