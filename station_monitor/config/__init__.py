"""Accounts configuration."""

from station_monitor.config.error_hints import format_validation_error, get_error_hint
from station_monitor.config.loader import AccountsLoader, ConfigValidationError
from station_monitor.config.schemas import AccountConfig, AccountsConfig


__all__ = [
    "AccountConfig",
    "AccountsConfig",
    "AccountsLoader",
    "ConfigValidationError",
    "format_validation_error",
    "get_error_hint",
]
