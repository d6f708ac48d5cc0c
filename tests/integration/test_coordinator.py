"""Integration tests for the run coordinator."""

import multiprocessing
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from station_monitor.alerts.slack import LoggingNotifier
from station_monitor.config.schemas import AccountConfig
from station_monitor.fetch.client import WeatherFlowClient
from station_monitor.fetch.errors import StationListUnavailableError
from station_monitor.fetch.models import FetchError, FetchErrorClass, Station
from station_monitor.metrics.monitor import MonitorMetrics
from station_monitor.metrics.sender import MetricsSender
from station_monitor.runner.coordinator import RunCoordinator
from station_monitor.runner.models import AccountOutcome
from station_monitor.runner.single_flight import AccountGuard
from station_monitor.sensors.models import DeviceDiagnostic
from station_monitor.sensors.registry import (
    RH_FAILED,
    TEMPERATURE_FAILED,
    WIND_FAILED,
)
from station_monitor.snapshot.errors import SnapshotStoreError
from station_monitor.snapshot.store import FileSnapshotStore, InMemorySnapshotStore
from station_monitor.transitions.models import TransitionCategory


NOW = 1700000000
ENVIRON = {"ACME_API_KEY": "acme-key", "OTHER_API_KEY": "other-key"}
ACME = AccountConfig(name="ACME", alert_user_ids=("U1",))

RIDGE_LINK = "*<https://tempestwx.com/station/1|1>* (Ridge)"
VALLEY_LINK = "*<https://tempestwx.com/station/2|2>* (Valley)"


def _make_client(
    stations: list[Station],
    diagnostics: dict[int, list[DeviceDiagnostic]] | None = None,
) -> MagicMock:
    """Fake client returning fixed stations and per-station diagnostics."""
    client = MagicMock(spec=WeatherFlowClient)
    client.fetch_stations.return_value = stations
    client.fetch_diagnostics.side_effect = (
        lambda account, station_id, api_key: (diagnostics or {}).get(station_id, [])
    )
    return client


def _device(serial: str, status: int) -> DeviceDiagnostic:
    return DeviceDiagnostic(device_id=serial, serial_number=serial, raw_status=status)


def _standard_client() -> MagicMock:
    """Ridge online with a temperature failure, Valley offline, Lake healthy."""
    return _make_client(
        [
            Station(station_id=1, name="Ridge", state=1),
            Station(station_id=2, name="Valley", state=0),
            Station(station_id=3, name="Lake", state=1),
        ],
        {
            1: [_device("AR-1", TEMPERATURE_FAILED), _device("HB-1", 0xFFFF)],
            2: [_device("ST-2", RH_FAILED | WIND_FAILED)],
            3: [_device("ST-3", 0)],
        },
    )


def _run_account_in_child(cache_dir: Path, outcomes: "multiprocessing.Queue[str]") -> None:
    """Run one ACME cycle with a file-backed guard and report its outcome."""
    sender = MagicMock(spec=MetricsSender)
    sender.send.return_value = True
    coordinator = RunCoordinator(
        client=_standard_client(),
        store=FileSnapshotStore(cache_dir),
        notifier=LoggingNotifier(),
        metrics_sender=sender,
        run_id="child-run",
        environ=ENVIRON,
        clock=lambda: NOW,
        guard=AccountGuard(lock_dir=cache_dir),
    )
    result = coordinator.run([ACME])
    outcomes.put(result.accounts[0].outcome.value)


class TestRunCoordinator:
    """Tests for RunCoordinator."""

    def setup_method(self) -> None:
        """Reset metrics before each test."""
        MonitorMetrics.reset_instance()

    def teardown_method(self) -> None:
        """Reset metrics after each test."""
        MonitorMetrics.reset_instance()

    @pytest.fixture
    def store(self) -> InMemorySnapshotStore:
        """Create an empty in-memory store."""
        return InMemorySnapshotStore()

    @pytest.fixture
    def notifier(self) -> LoggingNotifier:
        """Create a recording notifier."""
        return LoggingNotifier()

    @pytest.fixture
    def sender(self) -> MagicMock:
        """Create a metrics sender that accepts everything."""
        sender = MagicMock(spec=MetricsSender)
        sender.send.return_value = True
        return sender

    def _coordinator(
        self,
        client: MagicMock,
        store: object,
        notifier: object,
        sender: MagicMock,
        **kwargs: object,
    ) -> RunCoordinator:
        kwargs.setdefault("guard", AccountGuard())
        return RunCoordinator(
            client=client,
            store=store,  # type: ignore[arg-type]
            notifier=notifier,  # type: ignore[arg-type]
            metrics_sender=sender,
            run_id="test-run",
            environ=ENVIRON,
            clock=lambda: NOW,
            **kwargs,  # type: ignore[arg-type]
        )

    def test_first_cycle_alerts_and_persists(
        self,
        store: InMemorySnapshotStore,
        notifier: LoggingNotifier,
        sender: MagicMock,
    ) -> None:
        """New failures and offline stations alert; the cache is written."""
        coordinator = self._coordinator(_standard_client(), store, notifier, sender)

        result = coordinator.run([ACME])

        account = result.accounts[0]
        assert account.outcome == AccountOutcome.COMPLETED
        assert [e.category for e in account.events] == [
            TransitionCategory.NEW_FAILURE,
            TransitionCategory.NEWLY_OFFLINE,
            TransitionCategory.STILL_HEALTHY,
        ]
        assert notifier.sent == [
            f"<@U1> :warning: ACME Station {RIDGE_LINK} has sensor failures: air_temperature",
            f"<@U1> :rotating_light: ACME Station {VALLEY_LINK} is *OFFLINE* "
            "and has sensor failures: rh, wind",
        ]
        assert account.alerts_sent == 2
        assert account.cache_saved is True
        assert store.blob("ACME") == {
            "1": {"offline": False, "failures": ["air_temperature"]},
            "2": {"offline": True, "failures": ["rh", "wind"]},
            "3": {"offline": False, "failures": []},
        }
        assert (account.total_count, account.online_count, account.offline_count) == (3, 2, 1)
        assert result.offline_by_account == {"ACME": 1}
        assert result.all_online is False

    def test_metric_lines_sent(
        self,
        store: InMemorySnapshotStore,
        notifier: LoggingNotifier,
        sender: MagicMock,
    ) -> None:
        """One batch per account with counts and per-sensor failures."""
        coordinator = self._coordinator(_standard_client(), store, notifier, sender)

        result = coordinator.run([ACME])

        sender.send.assert_called_once()
        account, lines = sender.send.call_args.args
        assert account == "ACME"
        assert "vip.acme_station_online_count.station-monitor,1700000000,2" in lines
        assert "vip.acme_station_offline_count.station-monitor,1700000000,1" in lines
        assert "vip.acme_station_rh_failure_count.station-monitor,1700000000,1" in lines
        assert "vip.acme_station_pressure_failure_count.station-monitor,1700000000,0" in lines
        assert (
            "vip.acme_station_total_sensor_failure_count.station-monitor,1700000000,3"
            in lines
        )
        assert lines[-1] == "vip.acme_station_total_count.station-monitor,1700000000,3"
        assert result.accounts[0].metrics_sent is True

    def test_second_identical_cycle_is_quiet(
        self,
        store: InMemorySnapshotStore,
        notifier: LoggingNotifier,
        sender: MagicMock,
    ) -> None:
        """Known failures and known offline stations do not alert again."""
        self._coordinator(_standard_client(), store, notifier, sender).run([ACME])
        first_blob = store.blob("ACME")
        notifier.sent.clear()

        result = self._coordinator(_standard_client(), store, notifier, sender).run(
            [ACME]
        )

        assert notifier.sent == []
        assert [e.category for e in result.accounts[0].events] == [
            TransitionCategory.STILL_HEALTHY,
            TransitionCategory.STILL_OFFLINE,
            TransitionCategory.STILL_HEALTHY,
        ]
        assert store.blob("ACME") == first_blob

    def test_recovery_from_legacy_entry(
        self,
        notifier: LoggingNotifier,
        sender: MagicMock,
    ) -> None:
        """A legacy offline entry recovers and reports new failing sensors."""
        store = InMemorySnapshotStore({"ACME": {"2": "offline"}})
        client = _make_client(
            [Station(station_id=2, name="Valley", state=1)],
            {2: [_device("SK-2", WIND_FAILED)]},
        )

        result = self._coordinator(client, store, notifier, sender).run([ACME])

        assert result.accounts[0].events[0].category == TransitionCategory.RECOVERED
        assert notifier.sent == [
            f":white_check_mark: ACME Station {VALLEY_LINK} has *RECOVERED*!",
            f"<@U1> :warning: ACME Station {VALLEY_LINK} has sensor failures: wind",
        ]
        assert store.blob("ACME") == {"2": {"offline": False, "failures": ["wind"]}}
        assert result.all_online is True
        assert result.offline_total == 0

    def test_all_online(
        self,
        store: InMemorySnapshotStore,
        notifier: LoggingNotifier,
        sender: MagicMock,
    ) -> None:
        """Every station online and every account observed is all online."""
        client = _make_client([Station(station_id=3, name="Lake", state=1)])

        result = self._coordinator(client, store, notifier, sender).run([ACME])

        assert result.all_online is True
        assert result.unknown_accounts == []

    def test_station_list_failure_is_unknown(
        self,
        store: InMemorySnapshotStore,
        notifier: LoggingNotifier,
        sender: MagicMock,
    ) -> None:
        """A failed station list is not reported as all online."""
        client = MagicMock(spec=WeatherFlowClient)
        client.fetch_stations.side_effect = StationListUnavailableError(
            "ACME",
            FetchError(error_class=FetchErrorClass.HTTP_5XX, message="Server error (503)"),
        )

        result = self._coordinator(client, store, notifier, sender).run([ACME])

        account = result.accounts[0]
        assert account.outcome == AccountOutcome.STATION_LIST_UNAVAILABLE
        assert account.offline_count == 0
        assert result.unknown_accounts == ["ACME"]
        assert result.all_online is False
        assert store.blob("ACME") is None
        sender.send.assert_not_called()
        client.fetch_diagnostics.assert_not_called()

    def test_missing_api_key_is_unknown(
        self,
        store: InMemorySnapshotStore,
        notifier: LoggingNotifier,
        sender: MagicMock,
    ) -> None:
        """An account without an API key is skipped as unknown."""
        client = _standard_client()
        account = AccountConfig(name="NOKEY")

        result = self._coordinator(client, store, notifier, sender).run([account])

        assert result.accounts[0].outcome == AccountOutcome.STATION_LIST_UNAVAILABLE
        client.fetch_stations.assert_not_called()

    def test_cache_read_failure_starts_empty(
        self,
        notifier: LoggingNotifier,
        sender: MagicMock,
    ) -> None:
        """An unreadable cache is treated as empty; the cycle continues."""
        store = MagicMock()
        store.load.side_effect = SnapshotStoreError("ACME", "load", "denied")

        result = self._coordinator(_standard_client(), store, notifier, sender).run(
            [ACME]
        )

        assert result.accounts[0].outcome == AccountOutcome.COMPLETED
        assert len(notifier.sent) == 2
        store.save.assert_called_once()
        assert MonitorMetrics.get_instance().get_cache_failures_total() == {"load": 1}

    def test_cache_save_failure_keeps_alerts(
        self,
        notifier: LoggingNotifier,
        sender: MagicMock,
    ) -> None:
        """A failed cache write is reported without undoing alerts."""
        store = MagicMock()
        store.load.return_value = {}
        store.save.side_effect = SnapshotStoreError("ACME", "save", "disk full")

        result = self._coordinator(_standard_client(), store, notifier, sender).run(
            [ACME]
        )

        account = result.accounts[0]
        assert account.outcome == AccountOutcome.COMPLETED
        assert account.cache_saved is False
        assert account.alerts_sent == 2
        assert MonitorMetrics.get_instance().get_cache_failures_total() == {"save": 1}

    def test_alerts_sent_before_persist_by_default(self, sender: MagicMock) -> None:
        """Alerts go out before the cache is written by default."""
        calls: list[str] = []
        store = MagicMock()
        store.load.return_value = {}
        store.save.side_effect = lambda *_: calls.append("save")
        notifier = MagicMock()
        notifier.send.side_effect = lambda _: calls.append("send") or True

        self._coordinator(_standard_client(), store, notifier, sender).run([ACME])

        assert calls == ["send", "send", "save"]

    def test_persist_before_notify(self, sender: MagicMock) -> None:
        """The cache is written first when configured to."""
        calls: list[str] = []
        store = MagicMock()
        store.load.return_value = {}
        store.save.side_effect = lambda *_: calls.append("save")
        notifier = MagicMock()
        notifier.send.side_effect = lambda _: calls.append("send") or True

        self._coordinator(
            _standard_client(), store, notifier, sender, persist_before_notify=True
        ).run([ACME])

        assert calls == ["save", "send", "send"]

    def test_failed_alert_counted(
        self,
        store: InMemorySnapshotStore,
        sender: MagicMock,
    ) -> None:
        """Undelivered alerts are counted and do not stop the cycle."""
        notifier = MagicMock()
        notifier.send.side_effect = [False, True]

        result = self._coordinator(_standard_client(), store, notifier, sender).run(
            [ACME]
        )

        assert result.accounts[0].alerts_sent == 1
        assert result.accounts[0].alerts_failed == 1
        assert store.blob("ACME") is not None

    def test_dry_run_skips_side_effects(
        self,
        store: InMemorySnapshotStore,
        notifier: LoggingNotifier,
        sender: MagicMock,
    ) -> None:
        """Dry runs neither write the cache nor send metrics."""
        result = self._coordinator(
            _standard_client(), store, notifier, sender, dry_run=True
        ).run([ACME])

        assert len(notifier.sent) == 2
        assert store.blob("ACME") is None
        sender.send.assert_not_called()
        assert result.accounts[0].cache_saved is False

    def test_diagnostics_error_degrades(
        self,
        store: InMemorySnapshotStore,
        notifier: LoggingNotifier,
        sender: MagicMock,
    ) -> None:
        """A station whose diagnostics blow up is evaluated without them."""
        client = _make_client([Station(station_id=1, name="Ridge", state=1)])
        client.fetch_diagnostics.side_effect = RuntimeError("boom")

        result = self._coordinator(client, store, notifier, sender).run([ACME])

        assert result.accounts[0].events[0].category == TransitionCategory.STILL_HEALTHY

    def test_missing_stations_carried_forward(
        self,
        notifier: LoggingNotifier,
        sender: MagicMock,
    ) -> None:
        """Entries for unlisted stations survive and are not counted."""
        store = InMemorySnapshotStore({"ACME": {"99": "offline"}})
        client = _make_client([Station(station_id=3, name="Lake", state=1)])

        result = self._coordinator(client, store, notifier, sender).run([ACME])

        assert store.blob("ACME") == {
            "3": {"offline": False, "failures": []},
            "99": {"offline": True, "failures": []},
        }
        assert result.accounts[0].offline_count == 0

    def test_account_failure_isolated(
        self,
        store: InMemorySnapshotStore,
        notifier: LoggingNotifier,
        sender: MagicMock,
    ) -> None:
        """An unexpected error in one account does not affect another."""
        client = _standard_client()

        def fetch_stations(account: str, api_key: str) -> list[Station]:
            if account == "OTHER":
                msg = "unexpected"
                raise RuntimeError(msg)
            return [Station(station_id=3, name="Lake", state=1)]

        client.fetch_stations.side_effect = fetch_stations

        result = self._coordinator(client, store, notifier, sender).run(
            [AccountConfig(name="OTHER"), ACME]
        )

        assert [a.account for a in result.accounts] == ["OTHER", "ACME"]
        assert result.accounts[0].outcome == AccountOutcome.FAILED
        assert result.accounts[0].error == "unexpected"
        assert result.accounts[1].outcome == AccountOutcome.COMPLETED
        assert result.unknown_accounts == ["OTHER"]

    def test_account_in_flight_skipped(
        self,
        store: InMemorySnapshotStore,
        notifier: LoggingNotifier,
        sender: MagicMock,
    ) -> None:
        """An account held by another cycle is skipped."""
        guard = AccountGuard()
        assert guard.acquire("ACME") is True
        client = _standard_client()

        result = self._coordinator(
            client, store, notifier, sender, guard=guard
        ).run([ACME])

        assert result.accounts[0].outcome == AccountOutcome.SKIPPED_IN_FLIGHT
        client.fetch_stations.assert_not_called()
        assert guard.is_held("ACME") is True

    def test_guard_released_after_cycle(
        self,
        store: InMemorySnapshotStore,
        notifier: LoggingNotifier,
        sender: MagicMock,
    ) -> None:
        """The single-flight guard is released when the account finishes."""
        guard = AccountGuard()

        self._coordinator(_standard_client(), store, notifier, sender, guard=guard).run(
            [ACME]
        )

        assert guard.is_held("ACME") is False

    @pytest.mark.skipif(
        "fork" not in multiprocessing.get_all_start_methods(),
        reason="requires the fork start method",
    )
    def test_account_held_by_another_process_skipped(self, tmp_path: Path) -> None:
        """A cycle in another process skips an account this process holds."""
        context = multiprocessing.get_context("fork")
        outcomes = context.Queue()
        holder = AccountGuard(lock_dir=tmp_path)
        assert holder.acquire("ACME") is True

        try:
            child = context.Process(target=_run_account_in_child, args=(tmp_path, outcomes))
            child.start()
            held_outcome = outcomes.get(timeout=30)
            child.join(timeout=30)
        finally:
            holder.release("ACME")

        child = context.Process(target=_run_account_in_child, args=(tmp_path, outcomes))
        child.start()
        free_outcome = outcomes.get(timeout=30)
        child.join(timeout=30)

        assert held_outcome == AccountOutcome.SKIPPED_IN_FLIGHT.value
        assert free_outcome == AccountOutcome.COMPLETED.value
        assert (tmp_path / "ACME_stationOfflineCache.json").exists()

    def test_transitions_recorded(
        self,
        store: InMemorySnapshotStore,
        notifier: LoggingNotifier,
        sender: MagicMock,
    ) -> None:
        """Every transition is counted by category."""
        self._coordinator(_standard_client(), store, notifier, sender).run([ACME])

        assert MonitorMetrics.get_instance().get_transitions_total() == {
            "NewFailure": 1,
            "NewlyOffline": 1,
            "StillHealthy": 1,
        }
