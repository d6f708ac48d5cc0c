"""Persistence of per-account snapshot blobs.

One JSON blob per account, keyed ``<ACCOUNT>_stationOfflineCache.json``.
"""

import json
from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog

from station_monitor.snapshot.errors import MalformedCacheError, SnapshotStoreError
from station_monitor.snapshot.models import RawCache


logger = structlog.get_logger()

CACHE_KEY_SUFFIX = "_stationOfflineCache.json"


def cache_key_for(account: str) -> str:
    """Get the blob key for an account."""
    return f"{account}{CACHE_KEY_SUFFIX}"


@runtime_checkable
class SnapshotStore(Protocol):
    """Protocol for account cache blob storage.

    ``load`` returns an empty dict when no blob exists yet and raises
    SnapshotStoreError for any other failure. ``save`` replaces the blob.
    """

    def load(self, account: str) -> RawCache:
        """Load the raw cache blob for an account."""
        ...

    def save(self, account: str, cache: RawCache) -> None:
        """Replace the cache blob for an account."""
        ...


class FileSnapshotStore:
    """Snapshot store backed by a local directory.

    Writes go to a temporary file that is then renamed over the blob, so a
    reader never sees a partial write.
    """

    def __init__(self, base_dir: Path) -> None:
        """Initialize the store.

        Args:
            base_dir: Directory holding the blobs (created on first save).
        """
        self._base_dir = base_dir
        self._log = logger.bind(component="snapshot_store", base_dir=str(base_dir))

    def path_for(self, account: str) -> Path:
        """Get the blob path for an account."""
        return self._base_dir / cache_key_for(account)

    def load(self, account: str) -> RawCache:
        """Load the raw cache blob for an account.

        Args:
            account: Account name.

        Returns:
            Parsed blob, or an empty dict if none exists yet.

        Raises:
            SnapshotStoreError: If the blob cannot be read or parsed.
        """
        path = self.path_for(account)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            self._log.info("cache_blob_missing", account=account)
            return {}
        except OSError as e:
            raise SnapshotStoreError(account, "load", str(e)) from e

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise MalformedCacheError(account, str(e)) from e

        if not isinstance(data, dict):
            raise MalformedCacheError(account, f"expected object, got {type(data).__name__}")

        self._log.debug("cache_blob_loaded", account=account, entries=len(data))
        return data

    def save(self, account: str, cache: RawCache) -> None:
        """Replace the cache blob for an account.

        Args:
            account: Account name.
            cache: JSON-ready cache map.

        Raises:
            SnapshotStoreError: If the blob cannot be written.
        """
        path = self.path_for(account)
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(json.dumps(cache, indent=2), encoding="utf-8")
            temp_path.replace(path)
        except (OSError, TypeError, ValueError) as e:
            raise SnapshotStoreError(account, "save", str(e)) from e

        self._log.debug("cache_blob_saved", account=account, entries=len(cache))


class InMemorySnapshotStore:
    """Snapshot store held in process memory, used for dry runs and tests."""

    def __init__(self, initial: dict[str, RawCache] | None = None) -> None:
        """Initialize the store.

        Args:
            initial: Optional map of account name to blob.
        """
        self._blobs: dict[str, RawCache] = {
            account: dict(blob) for account, blob in (initial or {}).items()
        }

    def load(self, account: str) -> RawCache:
        """Load a copy of the account blob."""
        return dict(self._blobs.get(account, {}))

    def save(self, account: str, cache: RawCache) -> None:
        """Store a copy of the account blob."""
        self._blobs[account] = dict(cache)

    def blob(self, account: str) -> RawCache | None:
        """Inspect the stored blob for an account."""
        return self._blobs.get(account)
