"""CLI commands for the station monitor."""

import json
import logging
import sys
import uuid
from dataclasses import dataclass
from pathlib import Path

import click
import structlog

from station_monitor import __version__
from station_monitor.alerts import LoggingNotifier, Notifier, SlackNotifier
from station_monitor.config import (
    AccountsConfig,
    AccountsLoader,
    ConfigValidationError,
    format_validation_error,
)
from station_monitor.fetch import WeatherFlowClient
from station_monitor.metrics import MetricsSender
from station_monitor.observability import (
    bind_run_context,
    clear_run_context,
    configure_logging,
)
from station_monitor.runner import (
    AccountGuard,
    AccountOutcome,
    RunCoordinator,
    RunResult,
)
from station_monitor.sensors import classify
from station_monitor.settings import AppSettings, get_settings
from station_monitor.snapshot import FileSnapshotStore


logger = structlog.get_logger()


@dataclass
class RunOptions:
    """Options for the run command."""

    accounts_path: Path
    json_logs: bool
    verbose: bool
    dry_run: bool = False


def _echo_validation_errors(error: ConfigValidationError) -> None:
    """Print accounts file validation errors with hints."""
    click.echo("Configuration validation failed:", err=True)
    for item in error.errors:
        formatted = format_validation_error(
            location=item["loc"],
            message=item["msg"],
            error_type=item.get("type", "unknown"),
            include_hint=True,
        )
        click.echo(f"  - {formatted}", err=True)


def _load_accounts(path: Path, run_id: str) -> AccountsConfig:
    """Load the accounts file, exiting with status 1 on failure."""
    try:
        return AccountsLoader(run_id=run_id).load(path)
    except ConfigValidationError as e:
        _echo_validation_errors(e)
        sys.exit(1)


def _echo_summary(result: RunResult) -> None:
    """Print a one-line-per-account summary of the run."""
    for account in result.accounts:
        if account.outcome == AccountOutcome.COMPLETED:
            click.echo(
                f"{account.account}: {account.online_count}/{account.total_count} online, "
                f"{account.offline_count} offline, "
                f"{account.alerts_sent} alerts sent"
            )
        else:
            click.echo(f"{account.account}: {account.outcome.value}")

    if result.all_online:
        click.echo("All stations online.")
    elif result.offline_total:
        click.echo(f"Stations offline: {result.offline_total}")
    if result.unknown_accounts:
        click.echo(f"Status unknown: {', '.join(result.unknown_accounts)}")


def _execute_run(options: RunOptions, settings: AppSettings) -> RunResult:
    """Wire the run's collaborators and execute one cycle.

    Args:
        options: Run options.
        settings: Environment settings.

    Returns:
        Result of the cycle.
    """
    run_id = str(uuid.uuid4())
    dry_run = options.dry_run or settings.dry_run

    log_level = logging.DEBUG if options.verbose else logging.INFO
    configure_logging(level=log_level, json_format=options.json_logs)
    bind_run_context(run_id, job_name=settings.job_name)

    log = logger.bind(component="cli", command="run", dry_run=dry_run)
    log.info("monitor_run_started", accounts_path=str(options.accounts_path))

    accounts = _load_accounts(options.accounts_path, run_id)

    notifier: Notifier
    if dry_run:
        notifier = LoggingNotifier()
    else:
        notifier = SlackNotifier(
            settings.slack_webhook_url,
            timeout_seconds=settings.request_timeout_seconds,
        )

    try:
        with WeatherFlowClient(
            api_base=settings.api_base,
            timeout_seconds=settings.request_timeout_seconds,
        ) as client:
            coordinator = RunCoordinator(
                client=client,
                store=FileSnapshotStore(settings.cache_dir),
                notifier=notifier,
                metrics_sender=MetricsSender(
                    settings.metric_url,
                    timeout_seconds=settings.request_timeout_seconds,
                ),
                run_id=run_id,
                job_name=settings.job_name,
                max_workers=settings.max_workers,
                station_workers=settings.station_workers,
                persist_before_notify=settings.persist_before_notify,
                dry_run=dry_run,
                guard=AccountGuard(lock_dir=settings.cache_dir),
            )
            return coordinator.run(accounts.enabled_accounts)
    finally:
        clear_run_context()


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """WeatherFlow station health monitor CLI."""


@cli.command()
@click.option(
    "--accounts",
    "accounts_path",
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="Path to accounts.yaml configuration file.",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=True,
    help="Use JSON format for logs (default: true).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Poll and evaluate without sending alerts, metrics or writing the cache.",
)
def run(
    accounts_path: Path,
    json_logs: bool,
    verbose: bool,
    dry_run: bool,
) -> None:
    """Run one poll cycle over every enabled account.

    Offline stations and unknown accounts are reported in the summary log;
    they do not change the exit status.
    """
    options = RunOptions(
        accounts_path=accounts_path,
        json_logs=json_logs,
        verbose=verbose,
        dry_run=dry_run,
    )
    result = _execute_run(options, get_settings())
    _echo_summary(result)


@cli.command()
@click.option(
    "--accounts",
    "accounts_path",
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="Path to accounts.yaml configuration file.",
)
def validate(accounts_path: Path) -> None:
    """Validate the accounts file without polling anything."""
    run_id = str(uuid.uuid4())
    configure_logging(json_format=False)
    bind_run_context(run_id)

    config = _load_accounts(accounts_path, run_id)

    click.echo("Configuration is valid!")
    click.echo(f"  Accounts: {len(config.accounts)}")
    click.echo(f"  Enabled: {len(config.enabled_accounts)}")
    for account in config.accounts:
        key_state = "set" if account.resolve_api_key() else "missing"
        click.echo(f"  - {account.name} ({account.api_key_variable}: {key_state})")


@cli.command()
@click.argument("device_type")
@click.argument("raw_status")
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output as JSON.",
)
def decode(device_type: str, raw_status: str, json_output: bool) -> None:
    """Decode a sensor_status word for a device type (e.g. ST 0x18)."""
    try:
        value = int(raw_status, 0)
    except ValueError:
        click.echo(f"Error: Invalid status word '{raw_status}'", err=True)
        sys.exit(1)
    if value < 0:
        click.echo("Error: Status word must be non-negative", err=True)
        sys.exit(1)

    classification, failures = classify(value, device_type.upper())

    if json_output:
        data = {
            "device_type": device_type.upper(),
            "raw_status": value,
            "classification": classification.label,
            "failures": [f.model_dump() for f in failures],
        }
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"{device_type.upper()} {value:#06x}: {classification.label}")
    for failure in failures:
        click.echo(f"  - {failure.sensor_label}: {failure.reason_text}")


if __name__ == "__main__":
    cli()
