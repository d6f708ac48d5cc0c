"""Static sensor flag tables per device type.

Bits follow the ``sensor_status`` word reported by WeatherFlow devices.
The device type is the serial-number prefix: ``AR`` (AIR), ``SK`` (SKY),
``ST`` (Tempest). Hubs (``HB``) carry no sensors.
"""

from types import MappingProxyType

from station_monitor.sensors.models import (
    SensorDefinition,
    SensorFlagDefinition,
    Severity,
)


SENSORS_OK = 0x000
LIGHTNING_FAILED = 0x001
LIGHTNING_NOISE = 0x002
LIGHTNING_DISTURBER = 0x004
PRESSURE_FAILED = 0x008
TEMPERATURE_FAILED = 0x010
RH_FAILED = 0x020
WIND_FAILED = 0x040
PRECIP_FAILED = 0x080
LIGHT_UV_FAILED = 0x100
POWER_BOOSTER_DEPLETED = 0x8000

HEARTBEAT_SERIAL_MARKER = "HB"

# Sensor keys reported in per-sensor metrics
MONITORED_SENSOR_KEYS: tuple[str, ...] = (
    "air_temperature",
    "rh",
    "lightning",
    "wind",
    "precip",
    "light_uv",
    "pressure",
)


def _flag(bit: int, label: str, severity: Severity, reason: str) -> SensorFlagDefinition:
    return SensorFlagDefinition(
        bit=bit, sensor_label=label, severity=severity, reason_text=reason
    )


LIGHTNING = SensorDefinition(
    sensor_label="lightning",
    flags=(
        _flag(LIGHTNING_FAILED, "lightning", Severity.ERROR, "Lightning sensor failed"),
        _flag(LIGHTNING_NOISE, "lightning", Severity.WARNING, "Lightning sensor noise"),
        _flag(
            LIGHTNING_DISTURBER,
            "lightning",
            Severity.WARNING,
            "Lightning sensor disturber detected",
        ),
    ),
)
PRESSURE = SensorDefinition(
    sensor_label="pressure",
    flags=(
        _flag(PRESSURE_FAILED, "pressure", Severity.ERROR, "Pressure sensor failed"),
    ),
)
AIR_TEMPERATURE = SensorDefinition(
    sensor_label="air_temperature",
    flags=(
        _flag(
            TEMPERATURE_FAILED,
            "air_temperature",
            Severity.ERROR,
            "Temperature sensor failed",
        ),
    ),
)
RH = SensorDefinition(
    sensor_label="rh",
    flags=(_flag(RH_FAILED, "rh", Severity.ERROR, "Humidity sensor failed"),),
)
WIND = SensorDefinition(
    sensor_label="wind",
    flags=(_flag(WIND_FAILED, "wind", Severity.ERROR, "Wind sensor failed"),),
)
PRECIP = SensorDefinition(
    sensor_label="precip",
    flags=(
        _flag(PRECIP_FAILED, "precip", Severity.ERROR, "Precipitation sensor failed"),
    ),
)
LIGHT_UV = SensorDefinition(
    sensor_label="light_uv",
    flags=(
        _flag(LIGHT_UV_FAILED, "light_uv", Severity.ERROR, "Light/UV sensor failed"),
    ),
)
POWER_BOOSTER = SensorDefinition(
    sensor_label="power_booster",
    flags=(
        _flag(
            POWER_BOOSTER_DEPLETED,
            "power_booster",
            Severity.WARNING,
            "Power booster depleted",
        ),
    ),
)

DEVICE_TYPE_TABLE: MappingProxyType[str, tuple[SensorDefinition, ...]] = (
    MappingProxyType(
        {
            "AR": (LIGHTNING, PRESSURE, AIR_TEMPERATURE, RH),
            "SK": (WIND, PRECIP, LIGHT_UV, POWER_BOOSTER),
            "ST": (
                LIGHTNING,
                PRESSURE,
                AIR_TEMPERATURE,
                RH,
                WIND,
                PRECIP,
                LIGHT_UV,
                POWER_BOOSTER,
            ),
        }
    )
)


def flags_for(device_type: str) -> tuple[SensorDefinition, ...]:
    """Get the sensor definitions for a device type.

    Args:
        device_type: Serial-number prefix, e.g. ``ST``.

    Returns:
        Ordered sensor definitions; empty for unknown device types.
    """
    return DEVICE_TYPE_TABLE.get(device_type, ())


def device_type_of(serial: str) -> str:
    """Derive the device type from a serial number (text before the first ``-``)."""
    return serial.split("-", 1)[0]


def is_heartbeat_device(serial: str) -> bool:
    """Check whether a serial belongs to non-sensor hub/repeater hardware."""
    return HEARTBEAT_SERIAL_MARKER in serial


def monitored_sensor_keys() -> tuple[str, ...]:
    """Sensor keys that get a per-sensor failure metric."""
    return MONITORED_SENSOR_KEYS
