"""Device status decoder: bitmask to classification and named failures."""

from station_monitor.sensors.models import (
    Classification,
    DeviceDiagnostic,
    DeviceStatusResult,
    SensorFailure,
    Severity,
)
from station_monitor.sensors.registry import device_type_of, flags_for


def classify(
    raw_status: int,
    device_type: str,
) -> tuple[Classification, tuple[SensorFailure, ...]]:
    """Classify a raw status word for a device type.

    Every flag of every sensor definition is tested against the word. The
    worst matching severity decides the classification. Failures are only
    reported for FAILURE; a device matching warning flags alone is WARNING
    with no named failures.

    Args:
        raw_status: Unsigned status bitmask reported by the device.
        device_type: Device type code (serial prefix).

    Returns:
        Tuple of (classification, failures). Unknown device types decode
        as OK with no failures.
    """
    classification = Classification.OK
    failures: list[SensorFailure] = []

    for sensor in flags_for(device_type):
        for flag in sensor.flags:
            if not raw_status & flag.bit:
                continue
            classification = max(
                classification, Classification.for_severity(flag.severity)
            )
            if flag.severity == Severity.ERROR:
                failures.append(
                    SensorFailure(
                        sensor_label=flag.sensor_label,
                        reason_text=flag.reason_text,
                    )
                )

    if classification != Classification.FAILURE:
        return classification, ()
    return classification, tuple(failures)


def decode_device(diagnostic: DeviceDiagnostic) -> DeviceStatusResult:
    """Decode one diagnostics entry into a DeviceStatusResult.

    Args:
        diagnostic: Device entry from the diagnostics payload.

    Returns:
        Decoded device status.
    """
    device_type = device_type_of(diagnostic.serial_number)
    classification, failures = classify(diagnostic.raw_status, device_type)
    return DeviceStatusResult(
        device_id=diagnostic.device_id,
        serial=diagnostic.serial_number,
        device_type=device_type,
        raw_status=diagnostic.raw_status,
        classification=classification,
        failures=failures,
    )
