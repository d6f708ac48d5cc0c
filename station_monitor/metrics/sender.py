"""Delivery of metric line batches to the telemetry endpoint."""

import httpx
import structlog

from station_monitor.metrics.lines import join_records


logger = structlog.get_logger()


class MetricsSender:
    """Sends one batched GET per account with all lines in ``records``.

    Delivery failures are logged and reported through the return value;
    they never raise.
    """

    def __init__(
        self,
        metric_url: str | None,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the sender.

        Args:
            metric_url: Telemetry endpoint; None disables delivery.
            timeout_seconds: Request timeout.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self._metric_url = metric_url
        self._timeout = timeout_seconds
        self._transport = transport
        self._log = logger.bind(component="metrics")

    @property
    def enabled(self) -> bool:
        """Whether a telemetry endpoint is configured."""
        return bool(self._metric_url)

    def send(self, account: str, lines: list[str]) -> bool:
        """Deliver a batch of metric lines.

        Args:
            account: Account the lines belong to (for logging).
            lines: Metric lines.

        Returns:
            True if the endpoint accepted the batch.
        """
        log = self._log.bind(account=account, line_count=len(lines))

        if not self._metric_url:
            log.debug("metrics_delivery_disabled")
            return False
        if not lines:
            return True

        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.get(
                    self._metric_url, params={"records": join_records(lines)}
                )
        except httpx.HTTPError as e:
            log.warning("metrics_delivery_failed", error=str(e))
            return False

        if not response.is_success:
            log.warning("metrics_delivery_failed", status_code=response.status_code)
            return False

        log.info("metrics_delivered")
        return True
