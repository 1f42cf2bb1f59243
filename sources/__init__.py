"""Collaborator data sources for the unlock monitor.

Importing this package registers all built-in source types:
    orientation  -- roll-angle samples from an IMU
    lock         -- lock/unlock signal from a pluggable proxy
    location     -- last known position string
"""

from sources.orientation_source import OrientationSource
from sources.lock_source import LockSignalSource
from sources.location_source import LocationSource

__all__ = ["OrientationSource", "LockSignalSource", "LocationSource"]
