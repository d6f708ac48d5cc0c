"""Models for station transitions between consecutive cycles."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from station_monitor.sensors.models import StationAggregate
from station_monitor.snapshot.models import StationSnapshot


class TransitionCategory(str, Enum):
    """Classified change in a station's health since the last cycle.

    - NEW_FAILURE: online, with sensors failing that were not failing before
    - RECOVERED: was offline, now online
    - STILL_HEALTHY: online, nothing new to report
    - NEWLY_OFFLINE: was online, now offline
    - STILL_OFFLINE: was offline, still offline
    """

    NEW_FAILURE = "NewFailure"
    RECOVERED = "Recovered"
    STILL_HEALTHY = "StillHealthy"
    NEWLY_OFFLINE = "NewlyOffline"
    STILL_OFFLINE = "StillOffline"


# Categories that produce a notification
ALERTING_CATEGORIES = frozenset(
    {
        TransitionCategory.NEW_FAILURE,
        TransitionCategory.RECOVERED,
        TransitionCategory.NEWLY_OFFLINE,
    }
)


class StationObservation(BaseModel):
    """A station as seen during this cycle."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    station_id: str
    name: str = ""
    is_offline: bool
    aggregate: StationAggregate

    @property
    def current_failures(self) -> frozenset[str]:
        """Station-level failed sensor set."""
        return frozenset(self.aggregate.failed_sensors)


class TransitionEvent(BaseModel):
    """The transition a station went through this cycle."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    station_id: str
    category: TransitionCategory
    new_sensors: frozenset[str] = Field(default_factory=frozenset)
    all_current_sensors: frozenset[str] = Field(default_factory=frozenset)

    @property
    def is_alerting(self) -> bool:
        """Whether this transition should notify anyone."""
        return self.category in ALERTING_CATEGORIES


class TransitionOutcome(BaseModel):
    """Event plus the snapshot to persist for one station."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    event: TransitionEvent
    snapshot: StationSnapshot


class AccountTransitions(BaseModel):
    """All transitions of one account and its next snapshot map."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    events: tuple[TransitionEvent, ...] = ()
    snapshots: dict[str, StationSnapshot] = Field(default_factory=dict)

    def by_category(self, category: TransitionCategory) -> list[TransitionEvent]:
        """Get the events of one category, in station order."""
        return [e for e in self.events if e.category == category]
