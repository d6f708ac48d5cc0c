"""Application settings powered by Pydantic BaseSettings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_API_BASE = "https://swd.weatherflow.com/swd/rest"


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, env_file=".env", env_file_encoding="utf-8"
    )

    api_base: str = Field(default=DEFAULT_API_BASE, validation_alias="WEATHERFLOW_API_BASE")
    slack_webhook_url: str | None = Field(
        default=None, validation_alias="SLACK_WEBHOOK_URL"
    )
    metric_url: str | None = Field(default=None, validation_alias="METRIC_URL")
    cache_dir: Path = Field(
        default=Path(".station-cache"), validation_alias="CACHE_DIR"
    )
    job_name: str = Field(default="station-monitor", validation_alias="JOB_NAME")
    request_timeout_seconds: float = Field(
        default=10.0, ge=1.0, le=120.0, validation_alias="REQUEST_TIMEOUT_SECONDS"
    )
    max_workers: int = Field(default=4, ge=1, le=32, validation_alias="MAX_WORKERS")
    station_workers: int = Field(
        default=4, ge=1, le=32, validation_alias="STATION_WORKERS"
    )
    persist_before_notify: bool = Field(
        default=False, validation_alias="PERSIST_BEFORE_NOTIFY"
    )
    dry_run: bool = Field(default=False, validation_alias="DRY_RUN")


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
