"""Upstream station API access."""

from station_monitor.fetch.client import WeatherFlowClient
from station_monitor.fetch.errors import StationListUnavailableError
from station_monitor.fetch.models import (
    DiagnosticsPayload,
    FetchError,
    FetchErrorClass,
    RetryPolicy,
    Station,
    StationListPayload,
)


__all__ = [
    "DiagnosticsPayload",
    "FetchError",
    "FetchErrorClass",
    "RetryPolicy",
    "Station",
    "StationListPayload",
    "StationListUnavailableError",
    "WeatherFlowClient",
]
