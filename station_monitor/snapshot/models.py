"""Station snapshot model and cache-entry migration.

A cache blob maps station id strings to one of two shapes:

- the legacy scalar ``"offline"`` written by the first version of the job
- a structured object ``{"offline": bool, "failures": [...]}``

Raw entries are parsed once into a tagged variant and normalized into a
StationSnapshot; nothing downstream branches on the raw shape.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field

from station_monitor.sensors.models import StationAggregate


logger = structlog.get_logger()

LEGACY_OFFLINE_SENTINEL = "offline"

RawCache = dict[str, object]


class StationSnapshot(BaseModel):
    """What was believed about a station as of the last cycle."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    offline: bool = False
    failures: frozenset[str] = Field(default_factory=frozenset)

    def to_cache_value(self) -> dict[str, object]:
        """Serialize to the structured cache shape (never the legacy scalar)."""
        return {"offline": self.offline, "failures": sorted(self.failures)}


@dataclass(frozen=True)
class LegacyOfflineEntry:
    """The bare ``"offline"`` string."""

    kind: Literal["legacy_offline"] = "legacy_offline"


@dataclass(frozen=True)
class StructuredEntry:
    """An object entry, already coerced to plain types."""

    offline: bool
    failures: frozenset[str]
    kind: Literal["structured"] = "structured"


CacheEntry = LegacyOfflineEntry | StructuredEntry


def _coerce_failures(raw: object) -> frozenset[str] | None:
    """Coerce the ``failures`` field of a structured entry.

    Accepts a list of labels or a ``{label: count}`` map (labels with a
    positive count are kept). Returns None for shapes it does not know.
    """
    if raw is None:
        return frozenset()
    if isinstance(raw, (list, tuple, set, frozenset)):
        return frozenset(str(label) for label in raw if label)
    if isinstance(raw, Mapping):
        return frozenset(
            str(label)
            for label, count in raw.items()
            if isinstance(count, (int, float)) and count > 0
        )
    return None


def parse_cache_entry(raw: object) -> CacheEntry | None:
    """Parse a raw cache value into its tagged variant.

    Args:
        raw: Value read from the cache blob.

    Returns:
        The parsed entry, or None if the shape is unrecognized.
    """
    if isinstance(raw, str):
        if raw == LEGACY_OFFLINE_SENTINEL:
            return LegacyOfflineEntry()
        return None

    if isinstance(raw, Mapping):
        failures = _coerce_failures(raw.get("failures"))
        if failures is None:
            logger.warning(
                "cache_entry_failures_unrecognized",
                component="snapshot",
                failures_type=type(raw.get("failures")).__name__,
            )
            failures = frozenset()
        return StructuredEntry(offline=bool(raw.get("offline", False)), failures=failures)

    return None


def normalize(raw: object) -> StationSnapshot:
    """Normalize one raw cache value into a StationSnapshot.

    Args:
        raw: Legacy string, structured object, or None for an absent key.

    Returns:
        The normalized snapshot. Unrecognized shapes give the default
        (online, no failures) snapshot.
    """
    if raw is None:
        return StationSnapshot()

    entry = parse_cache_entry(raw)
    if isinstance(entry, LegacyOfflineEntry):
        return StationSnapshot(offline=True)
    if isinstance(entry, StructuredEntry):
        return StationSnapshot(offline=entry.offline, failures=entry.failures)

    logger.warning(
        "cache_entry_unrecognized",
        component="snapshot",
        value_type=type(raw).__name__,
    )
    return StationSnapshot()


def build(aggregate: StationAggregate, is_offline: bool) -> StationSnapshot:
    """Build this cycle's snapshot from a station aggregate.

    Args:
        aggregate: Decoded station diagnostics.
        is_offline: Current liveness of the station.

    Returns:
        Snapshot carrying the station-level failed-sensor set.
    """
    return StationSnapshot(
        offline=is_offline, failures=frozenset(aggregate.failed_sensors)
    )


def normalize_cache(raw_cache: Mapping[str, object]) -> dict[str, StationSnapshot]:
    """Normalize a whole account cache blob.

    Args:
        raw_cache: Parsed JSON object of the account blob.

    Returns:
        Map of station id string to snapshot.
    """
    return {str(station_id): normalize(value) for station_id, value in raw_cache.items()}


def serialize_cache(
    snapshots: Mapping[str, StationSnapshot],
) -> RawCache:
    """Serialize a snapshot map back into the structured blob shape.

    Args:
        snapshots: Map of station id string to snapshot.

    Returns:
        JSON-ready dict, keys in sorted order.
    """
    return {
        station_id: snapshots[station_id].to_cache_value()
        for station_id in sorted(snapshots)
    }


def offline_count(
    snapshots: Mapping[str, StationSnapshot], station_ids: Iterable[str]
) -> int:
    """Count offline stations among the given ids."""
    return sum(
        1
        for station_id in station_ids
        if snapshots.get(station_id, StationSnapshot()).offline
    )
