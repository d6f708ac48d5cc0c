"""Error types for the upstream fetch layer."""

from station_monitor.fetch.models import FetchError


class StationListUnavailableError(Exception):
    """Raised when an account's station list cannot be fetched.

    The account is skipped for the cycle; its stations are neither online
    nor offline as far as this cycle knows.
    """

    def __init__(self, account: str, error: FetchError) -> None:
        """Initialize the error.

        Args:
            account: Account whose station list failed.
            error: Classified fetch error.
        """
        self.account = account
        self.error = error
        super().__init__(
            f"Station list unavailable for '{account}': "
            f"{error.error_class.value} {error.message}"
        )
