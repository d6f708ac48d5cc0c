"""Run coordinator: poll accounts, diff stations, fire side effects."""

import time
from collections import Counter
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import UTC, datetime

import structlog

from station_monitor.alerts.messages import (
    build_mentions,
    new_sensors_by_device,
    offline_message,
    recovery_message,
    sensor_failure_message,
)
from station_monitor.alerts.slack import Notifier
from station_monitor.config.schemas import AccountConfig
from station_monitor.fetch.client import WeatherFlowClient
from station_monitor.fetch.errors import StationListUnavailableError
from station_monitor.fetch.models import FetchError, FetchErrorClass, Station
from station_monitor.metrics.lines import build_metric_lines
from station_monitor.metrics.monitor import MonitorMetrics
from station_monitor.metrics.sender import MetricsSender
from station_monitor.runner.models import AccountOutcome, AccountRunResult, RunResult
from station_monitor.runner.single_flight import DEFAULT_GUARD, AccountGuard
from station_monitor.sensors.aggregator import aggregate
from station_monitor.sensors.models import DeviceDiagnostic
from station_monitor.sensors.registry import monitored_sensor_keys
from station_monitor.snapshot.errors import SnapshotStoreError
from station_monitor.snapshot.models import (
    StationSnapshot,
    normalize_cache,
    offline_count,
    serialize_cache,
)
from station_monitor.snapshot.store import SnapshotStore
from station_monitor.transitions.engine import evaluate_account
from station_monitor.transitions.models import (
    AccountTransitions,
    StationObservation,
    TransitionCategory,
)


logger = structlog.get_logger()


class RunCoordinator:
    """Runs one poll cycle over all accounts.

    Provides:
    - Parallel account processing with bounded concurrency
    - Parallel diagnostics fetches within an account
    - Failure isolation (one account or station failing doesn't stop others)
    - Single-flight per account across overlapping cycles
    - Alert delivery, cache persistence and metrics per account
    """

    def __init__(  # noqa: PLR0913
        self,
        client: WeatherFlowClient,
        store: SnapshotStore,
        notifier: Notifier,
        metrics_sender: MetricsSender,
        run_id: str,
        job_name: str = "station-monitor",
        max_workers: int = 4,
        station_workers: int = 4,
        persist_before_notify: bool = False,
        dry_run: bool = False,
        environ: Mapping[str, str] | None = None,
        guard: AccountGuard | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the coordinator.

        Args:
            client: Upstream station API client.
            store: Snapshot blob store.
            notifier: Alert delivery.
            metrics_sender: Telemetry delivery.
            run_id: Unique run identifier.
            job_name: Job name used in metric names.
            max_workers: Maximum accounts processed in parallel.
            station_workers: Maximum diagnostics fetches in parallel per account.
            persist_before_notify: Save the cache before sending alerts.
            dry_run: Skip cache writes and metrics delivery.
            environ: Environment used to resolve API keys (defaults to os.environ).
            guard: Single-flight guard (defaults to the in-process guard).
            clock: Source of unix time for metric timestamps.
        """
        self._client = client
        self._store = store
        self._notifier = notifier
        self._metrics_sender = metrics_sender
        self._run_id = run_id
        self._job_name = job_name
        self._max_workers = max_workers
        self._station_workers = station_workers
        self._persist_before_notify = persist_before_notify
        self._dry_run = dry_run
        self._environ = environ
        self._guard = guard or DEFAULT_GUARD
        self._clock = clock
        self._metrics = MonitorMetrics.get_instance()
        self._log = logger.bind(component="coordinator", run_id=run_id)

    def run(self, accounts: list[AccountConfig]) -> RunResult:
        """Run one cycle over the given accounts.

        Args:
            accounts: Accounts to poll.

        Returns:
            RunResult with one AccountRunResult per account, in input order.
        """
        started_at = datetime.now(UTC)
        self._log.info(
            "run_started",
            account_count=len(accounts),
            max_workers=self._max_workers,
            dry_run=self._dry_run,
        )

        results: dict[str, AccountRunResult] = {}

        if self._max_workers <= 1:
            for account in accounts:
                results[account.name] = self._process_isolated(account)
        else:
            with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
                future_to_account = {
                    executor.submit(self._process_isolated, account): account
                    for account in accounts
                }
                for future in as_completed(future_to_account):
                    account = future_to_account[future]
                    results[account.name] = future.result()

        run_result = RunResult(
            run_id=self._run_id,
            started_at=started_at,
            finished_at=datetime.now(UTC),
            accounts=[results[a.name] for a in accounts],
        )
        self._log_summary(run_result)
        return run_result

    def _process_isolated(self, account: AccountConfig) -> AccountRunResult:
        """Process an account, converting unexpected errors into a FAILED result."""
        try:
            return self.process_account(account)
        except Exception as e:  # noqa: BLE001
            self._log.exception(
                "account_execution_error",
                account=account.name,
                error=str(e),
            )
            return AccountRunResult(
                account=account.name,
                outcome=AccountOutcome.FAILED,
                error=str(e),
            )

    def process_account(self, account: AccountConfig) -> AccountRunResult:
        """Run one cycle for a single account.

        Args:
            account: Account configuration.

        Returns:
            AccountRunResult for the account.
        """
        log = self._log.bind(account=account.name)

        if not self._guard.acquire(account.name):
            log.warning("account_cycle_in_flight")
            return AccountRunResult(
                account=account.name, outcome=AccountOutcome.SKIPPED_IN_FLIGHT
            )

        try:
            return self._process_account_locked(account, log)
        finally:
            self._guard.release(account.name)

    def _process_account_locked(
        self,
        account: AccountConfig,
        log: structlog.stdlib.BoundLogger,
    ) -> AccountRunResult:
        """Process an account while holding its single-flight guard."""
        start_time = time.perf_counter()
        log.info("account_started")

        api_key = account.resolve_api_key(self._environ)
        try:
            if not api_key:
                raise StationListUnavailableError(
                    account.name,
                    FetchError(
                        error_class=FetchErrorClass.UNKNOWN,
                        message=f"API key variable {account.api_key_variable} is not set",
                    ),
                )
            stations = self._client.fetch_stations(account.name, api_key)
        except StationListUnavailableError as e:
            # Not the same as "all online": the account's health is unknown
            log.warning(
                "account_status_unknown",
                error_class=e.error.error_class.value,
                error=e.error.message,
            )
            return AccountRunResult(
                account=account.name,
                outcome=AccountOutcome.STATION_LIST_UNAVAILABLE,
                error=str(e),
            )

        previous = self._load_snapshots(account.name, log)
        observations = self._observe_stations(account.name, api_key, stations)
        transitions = evaluate_account(previous, observations)
        self._record_transitions(transitions, log)

        messages = self._compose_alerts(account, observations, transitions)

        if self._persist_before_notify:
            cache_saved = self._save_snapshots(account.name, transitions.snapshots, log)
            alerts_sent, alerts_failed = self._deliver_alerts(messages, log)
        else:
            alerts_sent, alerts_failed = self._deliver_alerts(messages, log)
            cache_saved = self._save_snapshots(account.name, transitions.snapshots, log)

        station_ids = [o.station_id for o in observations]
        offline = offline_count(transitions.snapshots, station_ids)
        sensor_failure_counts = self._count_sensor_failures(observations)

        result = AccountRunResult(
            account=account.name,
            outcome=AccountOutcome.COMPLETED,
            total_count=len(station_ids),
            online_count=len(station_ids) - offline,
            offline_count=offline,
            sensor_failure_counts=sensor_failure_counts,
            events=list(transitions.events),
            alerts_sent=alerts_sent,
            alerts_failed=alerts_failed,
            cache_saved=cache_saved,
        )
        result.metrics_sent = self._send_metrics(result, log)

        log.info(
            "account_complete",
            total_count=result.total_count,
            online_count=result.online_count,
            offline_count=result.offline_count,
            new_failures=result.count(TransitionCategory.NEW_FAILURE),
            newly_offline=result.count(TransitionCategory.NEWLY_OFFLINE),
            recovered=result.count(TransitionCategory.RECOVERED),
            alerts_sent=alerts_sent,
            alerts_failed=alerts_failed,
            cache_saved=cache_saved,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return result

    def _load_snapshots(
        self,
        account: str,
        log: structlog.stdlib.BoundLogger,
    ) -> dict[str, StationSnapshot]:
        """Read and normalize the account cache; a read failure gives an empty map."""
        try:
            raw = self._store.load(account)
        except SnapshotStoreError as e:
            self._metrics.record_cache_failure("load")
            log.warning(
                "cache_load_failed_starting_empty",
                error=e.message,
            )
            return {}

        return normalize_cache(raw)

    def _save_snapshots(
        self,
        account: str,
        snapshots: dict[str, StationSnapshot],
        log: structlog.stdlib.BoundLogger,
    ) -> bool:
        """Persist the account cache; failures are logged, never raised."""
        if self._dry_run:
            log.info("cache_save_skipped_dry_run", entries=len(snapshots))
            return False

        try:
            self._store.save(account, serialize_cache(snapshots))
        except SnapshotStoreError as e:
            self._metrics.record_cache_failure("save")
            log.error("cache_save_failed", error=e.message)
            return False

        log.info("cache_saved", entries=len(snapshots))
        return True

    def _observe_stations(
        self,
        account: str,
        api_key: str,
        stations: list[Station],
    ) -> list[StationObservation]:
        """Fetch diagnostics and aggregate every station, keeping list order."""

        def fetch(station: Station) -> list[DeviceDiagnostic]:
            try:
                return self._client.fetch_diagnostics(
                    account, station.station_id, api_key
                )
            except Exception as e:  # noqa: BLE001
                self._log.warning(
                    "diagnostics_fetch_error",
                    account=account,
                    station_id=station.station_id,
                    error=str(e),
                )
                return []

        if self._station_workers <= 1 or len(stations) <= 1:
            diagnostics = [fetch(s) for s in stations]
        else:
            with ThreadPoolExecutor(max_workers=self._station_workers) as executor:
                diagnostics = list(executor.map(fetch, stations))

        return [
            StationObservation(
                station_id=str(station.station_id),
                name=station.name,
                is_offline=station.is_offline,
                aggregate=aggregate(station.station_id, devices),
            )
            for station, devices in zip(stations, diagnostics, strict=True)
        ]

    def _record_transitions(
        self,
        transitions: AccountTransitions,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        """Count and log every transition."""
        for event in transitions.events:
            self._metrics.record_transition(event.category.value)
            log_method = log.info if event.is_alerting else log.debug
            log_method(
                "station_transition",
                station_id=event.station_id,
                category=event.category.value,
                new_sensors=sorted(event.new_sensors),
                current_sensors=sorted(event.all_current_sensors),
            )

    def _compose_alerts(
        self,
        account: AccountConfig,
        observations: list[StationObservation],
        transitions: AccountTransitions,
    ) -> list[str]:
        """Build the alert messages for this account's transitions."""
        mentions = build_mentions(account.alert_user_ids)
        by_id = {o.station_id: o for o in observations}
        messages: list[str] = []

        for event in transitions.events:
            observation = by_id[event.station_id]
            station_id = observation.station_id
            name = observation.name

            if event.category == TransitionCategory.NEWLY_OFFLINE:
                messages.append(
                    offline_message(
                        mentions,
                        account.name,
                        station_id,
                        name,
                        observation.aggregate.failed_sensors,
                    )
                )
                continue

            if event.category == TransitionCategory.RECOVERED:
                messages.append(recovery_message(account.name, station_id, name))

            if event.category in {
                TransitionCategory.RECOVERED,
                TransitionCategory.NEW_FAILURE,
            }:
                for sensors in new_sensors_by_device(
                    observation.aggregate, event.new_sensors
                ):
                    messages.append(
                        sensor_failure_message(
                            mentions, account.name, station_id, name, sensors
                        )
                    )

        return messages

    def _deliver_alerts(
        self,
        messages: list[str],
        log: structlog.stdlib.BoundLogger,
    ) -> tuple[int, int]:
        """Send every message; one failed delivery never blocks the rest."""
        sent = 0
        failed = 0
        for message in messages:
            try:
                delivered = self._notifier.send(message)
            except Exception as e:  # noqa: BLE001
                log.warning("alert_delivery_error", error=str(e))
                delivered = False
            if delivered:
                sent += 1
            else:
                failed += 1
        return sent, failed

    def _count_sensor_failures(
        self,
        observations: list[StationObservation],
    ) -> dict[str, int]:
        """Stations failing each sensor, zero-filled for monitored sensors."""
        counts: Counter[str] = Counter({key: 0 for key in monitored_sensor_keys()})
        for observation in observations:
            counts.update(observation.current_failures)
        return dict(counts)

    def _send_metrics(
        self,
        result: AccountRunResult,
        log: structlog.stdlib.BoundLogger,
    ) -> bool:
        """Build and deliver the metric lines for an account."""
        lines = build_metric_lines(
            account=result.account,
            job_name=self._job_name,
            timestamp=int(self._clock()),
            online_count=result.online_count,
            offline_count=result.offline_count,
            total_count=result.total_count,
            sensor_failure_counts=result.sensor_failure_counts,
        )

        if self._dry_run:
            log.info("metrics_skipped_dry_run", lines=lines)
            return False

        try:
            return self._metrics_sender.send(result.account, lines)
        except Exception as e:  # noqa: BLE001
            log.warning("metrics_delivery_error", error=str(e))
            return False

    def _log_summary(self, run_result: RunResult) -> None:
        """Log the run-level outcome."""
        log = self._log.bind(
            duration_ms=round(run_result.duration_ms, 2),
            counters=self._metrics.to_dict(),
        )

        if run_result.unknown_accounts:
            log.warning(
                "accounts_status_unknown",
                accounts=run_result.unknown_accounts,
            )

        if run_result.offline_total > 0:
            details = ", ".join(
                f"{account}: {count}"
                for account, count in run_result.offline_by_account.items()
            )
            log.error(
                "stations_still_offline",
                offline_total=run_result.offline_total,
                details=details,
            )
        elif run_result.all_online:
            log.info("all_stations_online")
        else:
            log.info("no_offline_stations_observed")
