"""Alert composition and delivery."""

from station_monitor.alerts.messages import (
    build_mentions,
    build_station_link,
    new_sensors_by_device,
    offline_message,
    recovery_message,
    sensor_failure_message,
)
from station_monitor.alerts.slack import LoggingNotifier, Notifier, SlackNotifier


__all__ = [
    "LoggingNotifier",
    "Notifier",
    "SlackNotifier",
    "build_mentions",
    "build_station_link",
    "new_sensors_by_device",
    "offline_message",
    "recovery_message",
    "sensor_failure_message",
]
