"""Single-flight guard so two cycles never process one account at once."""

from pathlib import Path
from threading import Lock

from filelock import FileLock, Timeout


LOCK_FILE_SUFFIX = "_stationOfflineCache.lock"


class AccountGuard:
    """Non-blocking per-account locks.

    A cycle that finds its account already held skips the account rather
    than waiting, since the holder will write the cache and send alerts.

    Without a lock directory the guard only covers threads of this process.
    With one, each held account also holds an OS file lock at
    ``<lock_dir>/<ACCOUNT>_stationOfflineCache.lock``, so cycles started by
    separate processes sharing the cache directory exclude each other too.
    """

    def __init__(self, lock_dir: Path | None = None) -> None:
        self._lock_dir = lock_dir
        self._locks: dict[str, Lock] = {}
        self._file_locks: dict[str, FileLock] = {}
        self._registry_lock = Lock()

    def _lock_for(self, account: str) -> Lock:
        with self._registry_lock:
            lock = self._locks.get(account)
            if lock is None:
                lock = Lock()
                self._locks[account] = lock
            return lock

    def lock_path_for(self, account: str) -> Path | None:
        """Lock file path for an account, or None for an in-process guard."""
        if self._lock_dir is None:
            return None
        return self._lock_dir / f"{account}{LOCK_FILE_SUFFIX}"

    def acquire(self, account: str) -> bool:
        """Try to take the account.

        Args:
            account: Account name.

        Returns:
            True if acquired, False if another cycle holds it.

        Raises:
            OSError: If the lock file cannot be created.
        """
        lock = self._lock_for(account)
        if not lock.acquire(blocking=False):
            return False

        lock_path = self.lock_path_for(account)
        if lock_path is None:
            return True

        file_lock = FileLock(lock_path)
        try:
            lock_path.parent.mkdir(parents=True, exist_ok=True)
            file_lock.acquire(timeout=0)
        except Timeout:
            lock.release()
            return False
        except OSError:
            lock.release()
            raise

        self._file_locks[account] = file_lock
        return True

    def release(self, account: str) -> None:
        """Release an account taken with acquire()."""
        file_lock = self._file_locks.pop(account, None)
        if file_lock is not None:
            file_lock.release()
        self._lock_for(account).release()

    def is_held(self, account: str) -> bool:
        """Whether a cycle of this process currently holds the account."""
        return self._lock_for(account).locked()


# Shared by every coordinator in the process
DEFAULT_GUARD = AccountGuard()
