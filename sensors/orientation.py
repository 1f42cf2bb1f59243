"""ICM20948 9-DOF IMU as a roll-angle source (I2C).

Roll is derived from the accelerometer's gravity vector:

    roll = atan2(accel_y, accel_z)

so a device lying flat face-up reads ~0 rad and one standing on its
long edge reads ~±pi/2. Only the accelerometer is used; the gyro and
magnetometer are not needed for a static attitude estimate.

I2C Address: 0x68 (can be 0x69 with jumper)
"""

import logging
import math
import random
from typing import Optional

from sensors.base import BaseSensor

logger = logging.getLogger(__name__)

try:
    import board
    import busio
    import adafruit_icm20x
    _lib_available = True
except ImportError:
    _lib_available = False


def roll_from_acceleration(ax: float, ay: float, az: float) -> Optional[float]:
    """Roll angle in radians, or None when there is no gravity reading."""
    if ax == 0 and ay == 0 and az == 0:
        return None
    return math.atan2(ay, az)


class OrientationSensor(BaseSensor):
    """Reads roll (radians) from an ICM20948."""

    # Demo mode alternates between lying still and being handled
    SIM_REST_READS = 400
    SIM_HANDLED_READS = 150

    def _init_hardware(self) -> None:
        self._sensor = None
        self._sim_reads = 0
        self._sim_roll = 0.0
        if not _lib_available:
            logger.info('ICM20948: adafruit_icm20x library not installed')
            self.init_error = "adafruit_icm20x library not installed"
            return

        address = self._cfg.get("address", 0x68)
        try:
            i2c = busio.I2C(board.SCL, board.SDA)
            self._sensor = adafruit_icm20x.ICM20948(i2c, address=address)
            self._hw_available = True
            logger.info('ICM20948: ready on I2C 0x%02x', address)
        except Exception as e:
            logger.info('ICM20948: init failed - %s', e)
            self.init_error = str(e)

    def _read_tilt(self) -> Optional[float]:
        ax, ay, az = self._sensor.acceleration
        return roll_from_acceleration(ax, ay, az)

    def _simulate_tilt(self) -> float:
        cycle = self.SIM_REST_READS + self.SIM_HANDLED_READS
        phase = self._sim_reads % cycle
        self._sim_reads += 1

        if phase < self.SIM_REST_READS:
            # On a table: near-zero roll, sensor noise only
            self._sim_roll = random.gauss(0.0, 0.0005)
        else:
            # In a hand: drifting roll with tremor
            drift = random.uniform(-0.05, 0.05)
            self._sim_roll = max(-1.5, min(1.5, self._sim_roll + drift + 0.01))
        return self._sim_roll

    def close(self) -> None:
        self._sensor = None
