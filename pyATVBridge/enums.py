"""Enumerations shared by the media player bridge.

The service and characteristic identifiers mirror the names used by the
host accessory registry; the device-side enums mirror the values a
media player reports on its ``update:<property>`` event streams.
"""

from enum import Enum, unique


# ---------------------------------------------------------------------------
#  Host accessory registry
# ---------------------------------------------------------------------------


@unique
class ServiceType(str, Enum):
    """Well-known service types exposed on an accessory."""

    ACCESSORY_INFORMATION = "AccessoryInformation"
    SWITCH = "Switch"
    MOTION_SENSOR = "MotionSensor"


@unique
class CharacteristicType(str, Enum):
    """Well-known characteristic types."""

    NAME = "Name"
    MANUFACTURER = "Manufacturer"
    MODEL = "Model"
    SERIAL_NUMBER = "SerialNumber"
    ON = "On"
    MOTION_DETECTED = "MotionDetected"


# ---------------------------------------------------------------------------
#  Device side
# ---------------------------------------------------------------------------


@unique
class PowerState(str, Enum):
    """Power state reported on the ``update:powerState`` stream.

    ``ON`` is the sentinel the power switch is compared against; any
    other value (including ``UNKNOWN``) means *off*.
    """

    UNKNOWN = "unknown"
    OFF = "off"
    ON = "on"


@unique
class DeviceState(str, Enum):
    """Playback states reported on the ``update:deviceState`` stream."""

    IDLE = "idle"
    LOADING = "loading"
    PAUSED = "paused"
    PLAYING = "playing"
    SEEKING = "seeking"
    STOPPED = "stopped"


@unique
class SensorProperty(str, Enum):
    """Device properties that can drive a group of generic sensors."""

    DEVICE_STATE = "deviceState"
    APP = "app"
