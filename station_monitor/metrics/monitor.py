"""In-process counters for a monitor run."""

from collections import Counter
from threading import Lock


class MonitorMetrics:
    """Collects counters across all accounts of a run.

    Provides thread-safe counters for:
    - transitions_total{category}
    - alerts_total{outcome}
    - fetch_failures_total{endpoint, error_class}
    - cache_failures_total{operation}
    """

    _instance: "MonitorMetrics | None" = None
    _lock = Lock()

    def __init__(self) -> None:
        """Initialize the metrics collector."""
        self._transitions: Counter[str] = Counter()
        self._alerts: Counter[str] = Counter()
        self._fetch_failures: Counter[tuple[str, str]] = Counter()
        self._cache_failures: Counter[str] = Counter()
        self._lock = Lock()

    @classmethod
    def get_instance(cls) -> "MonitorMetrics":
        """Get the singleton metrics instance.

        Returns:
            The shared MonitorMetrics instance.
        """
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance (for testing)."""
        with cls._lock:
            cls._instance = None

    def record_transition(self, category: str) -> None:
        """Record a station transition.

        Args:
            category: Transition category value.
        """
        with self._lock:
            self._transitions[category] += 1

    def record_alert(self, delivered: bool) -> None:
        """Record an alert delivery attempt.

        Args:
            delivered: Whether the webhook accepted the message.
        """
        with self._lock:
            self._alerts["delivered" if delivered else "failed"] += 1

    def record_fetch_failure(self, endpoint: str, error_class: str) -> None:
        """Record an upstream fetch failure.

        Args:
            endpoint: ``stations`` or ``diagnostics``.
            error_class: FetchErrorClass value.
        """
        with self._lock:
            self._fetch_failures[(endpoint, error_class)] += 1

    def record_cache_failure(self, operation: str) -> None:
        """Record a snapshot store failure.

        Args:
            operation: ``load`` or ``save``.
        """
        with self._lock:
            self._cache_failures[operation] += 1

    def get_transitions_total(self) -> dict[str, int]:
        """Get transition counts by category."""
        with self._lock:
            return dict(self._transitions)

    def get_alerts_total(self) -> dict[str, int]:
        """Get alert counts by outcome."""
        with self._lock:
            return dict(self._alerts)

    def get_fetch_failures_total(self) -> dict[tuple[str, str], int]:
        """Get fetch failure counts by (endpoint, error_class)."""
        with self._lock:
            return dict(self._fetch_failures)

    def get_cache_failures_total(self) -> dict[str, int]:
        """Get snapshot store failure counts by operation."""
        with self._lock:
            return dict(self._cache_failures)

    def to_dict(self) -> dict[str, object]:
        """Snapshot of all counters for the run summary log."""
        with self._lock:
            return {
                "transitions": dict(self._transitions),
                "alerts": dict(self._alerts),
                "fetch_failures": {
                    f"{endpoint}:{error_class}": count
                    for (endpoint, error_class), count in self._fetch_failures.items()
                },
                "cache_failures": dict(self._cache_failures),
            }

    def reset(self) -> None:
        """Reset all metrics (for testing)."""
        with self._lock:
            self._transitions.clear()
            self._alerts.clear()
            self._fetch_failures.clear()
            self._cache_failures.clear()
