"""Slack incoming-webhook notifier."""

from typing import Protocol, runtime_checkable

import httpx
import structlog

from station_monitor.metrics.monitor import MonitorMetrics


logger = structlog.get_logger()


@runtime_checkable
class Notifier(Protocol):
    """Protocol for alert delivery.

    ``send`` must not raise; it reports delivery through its return value.
    """

    def send(self, message: str) -> bool:
        """Deliver one alert message."""
        ...


class SlackNotifier:
    """Posts alert messages to a Slack incoming webhook."""

    def __init__(
        self,
        webhook_url: str | None,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the notifier.

        Args:
            webhook_url: Incoming webhook URL; None disables delivery.
            timeout_seconds: Request timeout.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self._webhook_url = webhook_url
        self._timeout = timeout_seconds
        self._transport = transport
        self._metrics = MonitorMetrics.get_instance()
        self._log = logger.bind(component="alerts", channel="slack")

    def send(self, message: str) -> bool:
        """Post one message.

        Args:
            message: Slack mrkdwn text.

        Returns:
            True if the webhook accepted the message.
        """
        if not self._webhook_url:
            self._log.warning("alert_webhook_not_configured", message=message)
            self._metrics.record_alert(delivered=False)
            return False

        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(
                    self._webhook_url,
                    json={"text": message, "link_names": 1},
                )
        except httpx.HTTPError as e:
            self._log.warning("alert_delivery_failed", error=str(e))
            self._metrics.record_alert(delivered=False)
            return False

        if not response.is_success:
            self._log.warning(
                "alert_delivery_failed", status_code=response.status_code
            )
            self._metrics.record_alert(delivered=False)
            return False

        self._metrics.record_alert(delivered=True)
        return True


class LoggingNotifier:
    """Notifier that only logs messages, used for dry runs."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self._log = logger.bind(component="alerts", channel="dry_run")

    def send(self, message: str) -> bool:
        """Record and log the message without delivering it."""
        self.sent.append(message)
        self._log.info("alert_dry_run", message=message)
        return True
