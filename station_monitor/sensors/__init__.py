"""Sensor-status decoding.

This module provides:
- Static flag tables per device type (registry)
- The bitmask decoder with ok < warning < failure precedence
- The station aggregator that reduces devices to a failed-sensor set
"""

from station_monitor.sensors.aggregator import aggregate
from station_monitor.sensors.decoder import classify, decode_device
from station_monitor.sensors.models import (
    Classification,
    DeviceDiagnostic,
    DeviceStatusResult,
    SensorDefinition,
    SensorFailure,
    SensorFlagDefinition,
    Severity,
    StationAggregate,
)
from station_monitor.sensors.registry import (
    device_type_of,
    flags_for,
    is_heartbeat_device,
    monitored_sensor_keys,
)


__all__ = [
    "Classification",
    "DeviceDiagnostic",
    "DeviceStatusResult",
    "SensorDefinition",
    "SensorFailure",
    "SensorFlagDefinition",
    "Severity",
    "StationAggregate",
    "aggregate",
    "classify",
    "decode_device",
    "device_type_of",
    "flags_for",
    "is_heartbeat_device",
    "monitored_sensor_keys",
]
