"""Run metrics: telemetry lines, delivery, and in-process counters."""

from station_monitor.metrics.lines import build_metric_lines, join_records, metric_line
from station_monitor.metrics.monitor import MonitorMetrics
from station_monitor.metrics.sender import MetricsSender


__all__ = [
    "MetricsSender",
    "MonitorMetrics",
    "build_metric_lines",
    "join_records",
    "metric_line",
]
