"""Station snapshots: the single piece of state carried between cycles."""

from station_monitor.snapshot.errors import MalformedCacheError, SnapshotStoreError
from station_monitor.snapshot.models import (
    LEGACY_OFFLINE_SENTINEL,
    CacheEntry,
    LegacyOfflineEntry,
    StationSnapshot,
    StructuredEntry,
    build,
    normalize,
    normalize_cache,
    offline_count,
    parse_cache_entry,
    serialize_cache,
)
from station_monitor.snapshot.store import (
    FileSnapshotStore,
    InMemorySnapshotStore,
    SnapshotStore,
    cache_key_for,
)


__all__ = [
    "LEGACY_OFFLINE_SENTINEL",
    "CacheEntry",
    "FileSnapshotStore",
    "InMemorySnapshotStore",
    "LegacyOfflineEntry",
    "MalformedCacheError",
    "SnapshotStore",
    "SnapshotStoreError",
    "StationSnapshot",
    "StructuredEntry",
    "build",
    "cache_key_for",
    "normalize",
    "normalize_cache",
    "offline_count",
    "parse_cache_entry",
    "serialize_cache",
]
