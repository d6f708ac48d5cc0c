"""Exceptions for the snapshot store."""


class SnapshotStoreError(Exception):
    """Base exception for snapshot store read and write failures.

    Callers treat a read failure as an empty cache and a write failure as
    non-fatal for the cycle.
    """

    def __init__(self, account: str, operation: str, message: str) -> None:
        """Initialize the error.

        Args:
            account: Account whose blob was being accessed.
            operation: ``"load"`` or ``"save"``.
            message: Human-readable error message.
        """
        self.account = account
        self.operation = operation
        self.message = message
        super().__init__(f"Snapshot {operation} failed for '{account}': {message}")


class MalformedCacheError(SnapshotStoreError):
    """Raised when a cache blob exists but is not a JSON object."""

    def __init__(self, account: str, detail: str) -> None:
        """Initialize the error.

        Args:
            account: Account whose blob is malformed.
            detail: What was wrong with the blob.
        """
        super().__init__(account, "load", f"malformed cache blob: {detail}")
