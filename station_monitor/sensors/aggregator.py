"""Station aggregator: decode every monitored device of a station."""

from collections.abc import Iterable

import structlog

from station_monitor.sensors.decoder import decode_device
from station_monitor.sensors.models import (
    Classification,
    DeviceDiagnostic,
    StationAggregate,
)
from station_monitor.sensors.registry import is_heartbeat_device


logger = structlog.get_logger()


def aggregate(
    station_id: int | str,
    diagnostics: Iterable[DeviceDiagnostic],
) -> StationAggregate:
    """Decode a station's devices, skipping heartbeat hardware.

    All decoded devices are kept, including OK ones; callers filter.

    Args:
        station_id: Station identifier.
        diagnostics: Raw device diagnostics for the station.

    Returns:
        StationAggregate with the per-device breakdown.
    """
    devices = tuple(
        decode_device(d)
        for d in diagnostics
        if not is_heartbeat_device(d.serial_number)
    )

    result = StationAggregate(station_id=station_id, devices=devices)

    if result.has_failures:
        logger.debug(
            "station_sensor_failures",
            component="aggregator",
            station_id=station_id,
            failed_sensors=list(result.failed_sensors),
            failing_devices=[d.serial for d in result.failing_devices],
        )
    warning_devices = [
        d.serial for d in devices if d.classification == Classification.WARNING
    ]
    if warning_devices:
        logger.debug(
            "station_sensor_warnings",
            component="aggregator",
            station_id=station_id,
            devices=warning_devices,
        )

    return result
