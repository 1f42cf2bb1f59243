"""Orientation sensor drivers for the unlock monitor.

Drivers subclass sensors.base.BaseSensor and only implement the
hardware side (_init_hardware, _read_tilt, _simulate_tilt). They are
looked up by the `sensor_key` of an orientation source.
"""

from sensors.orientation import OrientationSensor

SENSOR_CLASSES = {
    "icm20948": OrientationSensor,
}
