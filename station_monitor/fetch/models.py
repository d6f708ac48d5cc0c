"""Data models for the upstream station API."""

import random
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from station_monitor.fetch.constants import STATION_STATE_ONLINE


class FetchErrorClass(str, Enum):
    """Classification of fetch errors for logging and retry decisions.

    - NETWORK_TIMEOUT: Request timed out
    - CONNECTION_ERROR: Could not establish connection
    - HTTP_4XX: Non-retryable 4xx client error (except 429)
    - HTTP_5XX: Retryable 5xx server error
    - RATE_LIMITED: 429 Too Many Requests
    - MALFORMED_PAYLOAD: Response body is not the expected JSON shape
    - UNKNOWN: Unclassified error
    """

    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    HTTP_4XX = "HTTP_4XX"
    HTTP_5XX = "HTTP_5XX"
    RATE_LIMITED = "RATE_LIMITED"
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"
    UNKNOWN = "UNKNOWN"


class FetchError(BaseModel):
    """Typed error from a fetch operation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    error_class: FetchErrorClass = Field(description="Classification of the error")
    message: Annotated[str, Field(min_length=1, description="Human-readable message")]
    status_code: int | None = Field(
        default=None, description="HTTP status code if available"
    )
    retry_after: int | None = Field(
        default=None, description="Retry-After seconds (for 429)"
    )


class RetryPolicy(BaseModel):
    """Configuration for retry behavior.

    Uses exponential backoff: delay = base_delay_ms * (exponential_base ^ attempt)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_retries: Annotated[int, Field(ge=0, le=10)] = 2
    base_delay_ms: Annotated[int, Field(ge=0, le=60000)] = 500
    max_delay_ms: Annotated[int, Field(ge=0, le=300000)] = 10000
    exponential_base: Annotated[float, Field(ge=1.0, le=5.0)] = 2.0
    jitter_factor: Annotated[float, Field(ge=0.0, le=1.0)] = 0.1

    def should_retry(self, error: FetchError, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            error: The error that occurred.
            attempt: Current attempt number (0-indexed).

        Returns:
            True if the request should be retried.
        """
        if attempt >= self.max_retries:
            return False

        retryable_classes = {
            FetchErrorClass.NETWORK_TIMEOUT,
            FetchErrorClass.CONNECTION_ERROR,
            FetchErrorClass.HTTP_5XX,
            FetchErrorClass.RATE_LIMITED,
        }

        return error.error_class in retryable_classes

    def get_delay_ms(self, attempt: int) -> int:
        """Calculate delay before the next retry attempt.

        Args:
            attempt: Current attempt number (0-indexed).

        Returns:
            Delay in milliseconds.
        """
        delay = self.base_delay_ms * (self.exponential_base**attempt)
        delay = min(delay, self.max_delay_ms)

        jitter = delay * self.jitter_factor * random.random()  # noqa: S311
        return int(delay + jitter)


class Station(BaseModel):
    """A station entry from the station list."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    station_id: int
    name: str = ""
    state: int | None = None

    @field_validator("name", mode="before")
    @classmethod
    def null_name(cls, v: object) -> object:
        """Treat a null station name as empty."""
        return "" if v is None else v

    @property
    def is_offline(self) -> bool:
        """Any state other than 1 counts as offline."""
        return self.state != STATION_STATE_ONLINE


class StationListPayload(BaseModel):
    """Body of the station list endpoint."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    stations: list[Station] = Field(default_factory=list)


class DiagnosticsPayload(BaseModel):
    """Body of the per-station diagnostics endpoint.

    Device entries stay raw here and are validated one at a time, so a
    single malformed entry does not discard its siblings.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    devices: list[object] = Field(default_factory=list)

    @field_validator("devices", mode="before")
    @classmethod
    def null_devices(cls, v: object) -> object:
        """Treat a null device list as empty."""
        return [] if v is None else v
