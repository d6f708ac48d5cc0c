"""Result types for a monitor run."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from station_monitor.transitions.models import TransitionCategory, TransitionEvent


class AccountOutcome(str, Enum):
    """How an account's cycle ended.

    - COMPLETED: stations evaluated (individual stations may have degraded)
    - STATION_LIST_UNAVAILABLE: station list could not be fetched; health unknown
    - SKIPPED_IN_FLIGHT: another cycle for the account was still running
    - FAILED: unexpected error while processing the account
    """

    COMPLETED = "completed"
    STATION_LIST_UNAVAILABLE = "station_list_unavailable"
    SKIPPED_IN_FLIGHT = "skipped_in_flight"
    FAILED = "failed"


@dataclass
class AccountRunResult:
    """Result of one account's cycle."""

    account: str
    outcome: AccountOutcome
    total_count: int = 0
    online_count: int = 0
    offline_count: int = 0
    sensor_failure_counts: dict[str, int] = field(default_factory=dict)
    events: list[TransitionEvent] = field(default_factory=list)
    alerts_sent: int = 0
    alerts_failed: int = 0
    cache_saved: bool = False
    metrics_sent: bool = False
    error: str | None = None

    @property
    def health_known(self) -> bool:
        """Whether this cycle actually observed the account's stations."""
        return self.outcome == AccountOutcome.COMPLETED

    def count(self, category: TransitionCategory) -> int:
        """Number of stations in a transition category."""
        return sum(1 for e in self.events if e.category == category)


@dataclass
class RunResult:
    """Result of a complete run over all accounts."""

    run_id: str
    started_at: datetime
    finished_at: datetime
    accounts: list[AccountRunResult] = field(default_factory=list)

    @property
    def duration_ms(self) -> float:
        """Get total duration in milliseconds."""
        return (self.finished_at - self.started_at).total_seconds() * 1000

    @property
    def offline_total(self) -> int:
        """Offline stations across accounts whose health is known."""
        return sum(a.offline_count for a in self.accounts)

    @property
    def offline_by_account(self) -> dict[str, int]:
        """Accounts with offline stations, and how many."""
        return {a.account: a.offline_count for a in self.accounts if a.offline_count > 0}

    @property
    def unknown_accounts(self) -> list[str]:
        """Accounts whose station health could not be determined this run."""
        return [a.account for a in self.accounts if not a.health_known]

    @property
    def all_online(self) -> bool:
        """True only when every account was observed and nothing is offline."""
        return self.offline_total == 0 and not self.unknown_accounts
