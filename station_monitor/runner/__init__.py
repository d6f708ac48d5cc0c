"""Run coordination across accounts."""

from station_monitor.runner.coordinator import RunCoordinator
from station_monitor.runner.models import AccountOutcome, AccountRunResult, RunResult
from station_monitor.runner.single_flight import DEFAULT_GUARD, AccountGuard


__all__ = [
    "DEFAULT_GUARD",
    "AccountGuard",
    "AccountOutcome",
    "AccountRunResult",
    "RunCoordinator",
    "RunResult",
]
