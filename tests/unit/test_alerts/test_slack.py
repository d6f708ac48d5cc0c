"""Unit tests for the Slack notifier."""

import json

import httpx

from station_monitor.alerts.slack import LoggingNotifier, Notifier, SlackNotifier
from station_monitor.metrics.monitor import MonitorMetrics


WEBHOOK = "https://hooks.slack.test/services/T000/B000/XXX"


class TestSlackNotifier:
    """Tests for SlackNotifier."""

    def setup_method(self) -> None:
        """Reset metrics before each test."""
        MonitorMetrics.reset_instance()

    def teardown_method(self) -> None:
        """Reset metrics after each test."""
        MonitorMetrics.reset_instance()

    def test_posts_text_with_link_names(self) -> None:
        """Messages are posted as JSON with link_names enabled."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, text="ok")

        notifier = SlackNotifier(WEBHOOK, transport=httpx.MockTransport(handler))

        assert notifier.send("hello") is True
        assert len(requests) == 1
        assert requests[0].method == "POST"
        assert str(requests[0].url) == WEBHOOK
        assert json.loads(requests[0].content) == {"text": "hello", "link_names": 1}
        assert MonitorMetrics.get_instance().get_alerts_total() == {"delivered": 1}

    def test_error_status_returns_false(self) -> None:
        """A rejected post is reported, not raised."""
        notifier = SlackNotifier(
            WEBHOOK,
            transport=httpx.MockTransport(lambda _: httpx.Response(500)),
        )

        assert notifier.send("hello") is False
        assert MonitorMetrics.get_instance().get_alerts_total() == {"failed": 1}

    def test_transport_error_returns_false(self) -> None:
        """Connection failures are reported, not raised."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        notifier = SlackNotifier(WEBHOOK, transport=httpx.MockTransport(handler))

        assert notifier.send("hello") is False

    def test_missing_webhook(self) -> None:
        """Without a webhook nothing is sent and delivery fails."""
        assert SlackNotifier(None).send("hello") is False

    def test_satisfies_protocol(self) -> None:
        """Both notifiers implement the Notifier protocol."""
        assert isinstance(SlackNotifier(WEBHOOK), Notifier)
        assert isinstance(LoggingNotifier(), Notifier)


class TestLoggingNotifier:
    """Tests for LoggingNotifier."""

    def test_records_messages(self) -> None:
        """Dry-run messages are kept in order."""
        notifier = LoggingNotifier()

        assert notifier.send("one") is True
        assert notifier.send("two") is True
        assert notifier.sent == ["one", "two"]
