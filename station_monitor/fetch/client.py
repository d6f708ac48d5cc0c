"""WeatherFlow REST client with retries and failure classification."""

import time
from collections.abc import Callable
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

import httpx
import structlog
from pydantic import ValidationError

from station_monitor.fetch.constants import (
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    HTTP_STATUS_SERVER_ERROR_MAX,
    HTTP_STATUS_SERVER_ERROR_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    MAX_RETRY_AFTER_SECONDS,
    USER_AGENT,
)
from station_monitor.fetch.errors import StationListUnavailableError
from station_monitor.fetch.models import (
    DiagnosticsPayload,
    FetchError,
    FetchErrorClass,
    RetryPolicy,
    Station,
    StationListPayload,
)
from station_monitor.metrics.monitor import MonitorMetrics
from station_monitor.sensors.models import DeviceDiagnostic
from station_monitor.settings import DEFAULT_API_BASE


logger = structlog.get_logger()


class WeatherFlowClient:
    """Client for the station list and per-station diagnostics endpoints.

    Every request carries a bounded timeout; a timeout is classified like
    any other fetch failure. The API key is sent as a query parameter and
    is never logged.
    """

    def __init__(  # noqa: PLR0913
        self,
        api_base: str = DEFAULT_API_BASE,
        timeout_seconds: float = 10.0,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            api_base: Base URL of the REST API.
            timeout_seconds: Per-request timeout.
            retry_policy: Retry policy (defaults to RetryPolicy()).
            transport: Optional httpx transport (tests use MockTransport).
            sleep: Sleep function used between retries.
        """
        self._api_base = api_base.rstrip("/")
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._metrics = MonitorMetrics.get_instance()
        self._client = httpx.Client(
            timeout=timeout_seconds,
            transport=transport,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            follow_redirects=True,
        )
        self._log = logger.bind(component="fetch")

    def __enter__(self) -> "WeatherFlowClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def fetch_stations(self, account: str, api_key: str) -> list[Station]:
        """Fetch the station list for an account.

        Args:
            account: Account name (for logging).
            api_key: Account API key.

        Returns:
            Stations in API order.

        Raises:
            StationListUnavailableError: On any fetch or payload failure.
        """
        log = self._log.bind(account=account, endpoint="stations")
        body, error = self._get_json("/stations", api_key, log)

        if error is None:
            try:
                payload = StationListPayload.model_validate(body)
            except ValidationError as e:
                error = FetchError(
                    error_class=FetchErrorClass.MALFORMED_PAYLOAD,
                    message=f"Invalid station list: {e.error_count()} errors",
                )
            else:
                log.info("stations_fetched", station_count=len(payload.stations))
                return payload.stations

        self._metrics.record_fetch_failure("stations", error.error_class.value)
        log.warning(
            "stations_fetch_failed",
            error_class=error.error_class.value,
            status_code=error.status_code,
            error=error.message,
        )
        raise StationListUnavailableError(account, error)

    def fetch_diagnostics(
        self,
        account: str,
        station_id: int | str,
        api_key: str,
    ) -> list[DeviceDiagnostic]:
        """Fetch device diagnostics for a station.

        Failures degrade to an empty list; the station is still classified
        by its liveness.

        Args:
            account: Account name (for logging).
            station_id: Station identifier.
            api_key: Account API key.

        Returns:
            Device diagnostics, or an empty list if unavailable.
        """
        log = self._log.bind(
            account=account, endpoint="diagnostics", station_id=station_id
        )
        body, error = self._get_json(f"/diagnostics/{station_id}", api_key, log)

        if error is None:
            try:
                payload = DiagnosticsPayload.model_validate(body)
            except ValidationError as e:
                error = FetchError(
                    error_class=FetchErrorClass.MALFORMED_PAYLOAD,
                    message=f"Invalid diagnostics: {e.error_count()} errors",
                )
            else:
                return self._parse_devices(payload.devices, log)

        self._metrics.record_fetch_failure("diagnostics", error.error_class.value)
        log.warning(
            "diagnostics_unavailable",
            error_class=error.error_class.value,
            status_code=error.status_code,
            error=error.message,
        )
        return []

    def _parse_devices(
        self,
        entries: list[object],
        log: structlog.stdlib.BoundLogger,
    ) -> list[DeviceDiagnostic]:
        """Validate device entries one at a time, skipping malformed ones."""
        devices: list[DeviceDiagnostic] = []
        for index, entry in enumerate(entries):
            try:
                devices.append(DeviceDiagnostic.model_validate(entry))
            except ValidationError as e:
                log.warning(
                    "device_entry_invalid",
                    index=index,
                    serial=entry.get("serial_number") if isinstance(entry, dict) else None,
                    error_count=e.error_count(),
                )
        return devices

    def _get_json(
        self,
        path: str,
        api_key: str,
        log: structlog.stdlib.BoundLogger,
    ) -> tuple[object, FetchError | None]:
        """GET a JSON document with retries.

        Args:
            path: Path under the API base.
            api_key: API key query parameter.
            log: Bound logger.

        Returns:
            Tuple of (parsed body, error). Body is None when error is set.
        """
        url = f"{self._api_base}{path}"
        policy = self._retry_policy
        error: FetchError | None = None

        for attempt in range(policy.max_retries + 1):
            if attempt > 0:
                delay_ms = policy.get_delay_ms(attempt - 1)
                if error and error.retry_after:
                    delay_ms = min(error.retry_after, MAX_RETRY_AFTER_SECONDS) * 1000
                log.debug("retry_attempt", attempt=attempt, delay_ms=delay_ms)
                self._sleep(delay_ms / 1000.0)

            body, error = self._get_once(url, api_key)
            if error is None:
                return body, None
            if not policy.should_retry(error, attempt):
                break

        return None, error

    def _get_once(self, url: str, api_key: str) -> tuple[object, FetchError | None]:
        """Execute a single GET.

        Args:
            url: Full URL.
            api_key: API key query parameter.

        Returns:
            Tuple of (parsed body, error).
        """
        try:
            response = self._client.get(url, params={"api_key": api_key})
        except httpx.TimeoutException as e:
            return None, FetchError(
                error_class=FetchErrorClass.NETWORK_TIMEOUT,
                message=f"Request timed out: {type(e).__name__}",
            )
        except httpx.TransportError as e:
            return None, FetchError(
                error_class=FetchErrorClass.CONNECTION_ERROR,
                message=f"Connection failed: {type(e).__name__}",
            )

        http_error = self._classify_http_error(response)
        if http_error is not None:
            return None, http_error

        try:
            return response.json(), None
        except ValueError:
            return None, FetchError(
                error_class=FetchErrorClass.MALFORMED_PAYLOAD,
                message="Response body is not valid JSON",
                status_code=response.status_code,
            )

    def _classify_http_error(self, response: httpx.Response) -> FetchError | None:
        """Classify an HTTP status code as an error.

        Args:
            response: HTTP response.

        Returns:
            FetchError if the status indicates failure, None otherwise.
        """
        status_code = response.status_code
        if HTTP_STATUS_OK_MIN <= status_code < HTTP_STATUS_OK_MAX:
            return None

        if status_code == HTTP_STATUS_TOO_MANY_REQUESTS:
            return FetchError(
                error_class=FetchErrorClass.RATE_LIMITED,
                message="Rate limited (429 Too Many Requests)",
                status_code=status_code,
                retry_after=_parse_retry_after(response.headers.get("retry-after")),
            )

        if HTTP_STATUS_BAD_REQUEST <= status_code < HTTP_STATUS_SERVER_ERROR_MIN:
            return FetchError(
                error_class=FetchErrorClass.HTTP_4XX,
                message=f"Client error ({status_code})",
                status_code=status_code,
            )

        if HTTP_STATUS_SERVER_ERROR_MIN <= status_code < HTTP_STATUS_SERVER_ERROR_MAX:
            return FetchError(
                error_class=FetchErrorClass.HTTP_5XX,
                message=f"Server error ({status_code})",
                status_code=status_code,
            )

        return FetchError(
            error_class=FetchErrorClass.UNKNOWN,
            message=f"Unexpected status ({status_code})",
            status_code=status_code,
        )


def _parse_retry_after(value: str | None) -> int | None:
    """Parse a Retry-After header value (seconds or HTTP date)."""
    if not value:
        return None

    try:
        return int(value)
    except ValueError:
        pass

    try:
        dt = parsedate_to_datetime(value)
        delta = dt - datetime.now(UTC)
        return max(0, int(delta.total_seconds()))
    except (ValueError, TypeError):
        pass

    return None
