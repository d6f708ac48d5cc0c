"""Metric line format for the telemetry endpoint.

Each line is ``vip.<account>_station_<metric>.<job>,<unix_seconds>,<value>``.
"""

from collections.abc import Mapping

from station_monitor.sensors.registry import monitored_sensor_keys


METRIC_PREFIX = "vip"
RECORD_SEPARATOR = ";"


def metric_line(
    account: str,
    metric: str,
    job_name: str,
    timestamp: int,
    value: int,
) -> str:
    """Format one metric line.

    Args:
        account: Account name (lowercased in the metric name).
        metric: Metric name without the account prefix.
        job_name: Scheduled job name.
        timestamp: Unix timestamp in seconds.
        value: Metric value.

    Returns:
        Formatted line.
    """
    return f"{METRIC_PREFIX}.{account.lower()}_station_{metric}.{job_name},{timestamp},{value}"


def build_metric_lines(  # noqa: PLR0913
    account: str,
    job_name: str,
    timestamp: int,
    online_count: int,
    offline_count: int,
    total_count: int,
    sensor_failure_counts: Mapping[str, int],
) -> list[str]:
    """Build the per-account metric lines for one cycle.

    Every monitored sensor gets a line even when its count is zero; sensors
    outside the monitored set that still failed are appended after them.

    Args:
        account: Account name.
        job_name: Scheduled job name.
        timestamp: Unix timestamp in seconds.
        online_count: Stations online.
        offline_count: Stations offline.
        total_count: Stations in the list.
        sensor_failure_counts: Stations failing each sensor.

    Returns:
        Metric lines in a stable order.
    """
    lines = [
        metric_line(account, "online_count", job_name, timestamp, online_count),
        metric_line(account, "offline_count", job_name, timestamp, offline_count),
    ]

    sensors = list(monitored_sensor_keys())
    sensors.extend(sorted(k for k in sensor_failure_counts if k not in sensors))
    for sensor in sensors:
        lines.append(
            metric_line(
                account,
                f"{sensor}_failure_count",
                job_name,
                timestamp,
                sensor_failure_counts.get(sensor, 0),
            )
        )

    lines.append(
        metric_line(
            account,
            "total_sensor_failure_count",
            job_name,
            timestamp,
            sum(sensor_failure_counts.values()),
        )
    )
    lines.append(metric_line(account, "total_count", job_name, timestamp, total_count))

    return lines


def join_records(lines: list[str]) -> str:
    """Join metric lines into the single delimited payload."""
    return RECORD_SEPARATOR.join(lines)
