"""Alert message text.

Wording is consumed by people and by channel filters downstream; keep it
byte-for-byte stable.
"""

from collections.abc import Iterable, Sequence

from station_monitor.sensors.models import StationAggregate


STATION_URL_BASE = "https://tempestwx.com/station"


def build_mentions(user_ids: Sequence[str]) -> str:
    """Build the mention prefix, ``"<@U1> <@U2> "`` or ``""`` without recipients."""
    if not user_ids:
        return ""
    return " ".join(f"<@{user_id}>" for user_id in user_ids) + " "


def build_station_link(station_id: int | str, station_name: str) -> str:
    """Build the Slack link to a station page."""
    return f"*<{STATION_URL_BASE}/{station_id}|{station_id}>* ({station_name})"


def offline_message(
    mentions: str,
    account: str,
    station_id: int | str,
    station_name: str,
    failed_sensors: Sequence[str] = (),
) -> str:
    """Message for a station that just went offline."""
    link = build_station_link(station_id, station_name)
    base_text = f"{mentions}:rotating_light: {account} Station {link} is *OFFLINE*"
    if failed_sensors:
        return f"{base_text} and has sensor failures: {', '.join(failed_sensors)}"
    return f"{base_text}!"


def sensor_failure_message(
    mentions: str,
    account: str,
    station_id: int | str,
    station_name: str,
    sensors: Sequence[str],
) -> str:
    """Message for new sensor failures on one device of an online station."""
    link = build_station_link(station_id, station_name)
    return (
        f"{mentions}:warning: {account} Station {link} "
        f"has sensor failures: {', '.join(sensors)}"
    )


def recovery_message(account: str, station_id: int | str, station_name: str) -> str:
    """Message for a station back online."""
    link = build_station_link(station_id, station_name)
    return f":white_check_mark: {account} Station {link} has *RECOVERED*!"


def new_sensors_by_device(
    aggregate: StationAggregate,
    new_sensors: Iterable[str],
) -> list[list[str]]:
    """Group newly failing sensors by the device reporting them.

    Args:
        aggregate: Station aggregate with the per-device breakdown.
        new_sensors: Sensors that were not failing last cycle.

    Returns:
        One list of sensor labels per failing device that carries at least
        one new sensor, in device order.
    """
    new = set(new_sensors)
    groups: list[list[str]] = []
    for device in aggregate.failing_devices:
        sensors = [label for label in device.failed_sensor_labels if label in new]
        if sensors:
            groups.append(sensors)
    return groups
