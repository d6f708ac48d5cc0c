"""Station transition detection."""

from station_monitor.transitions.engine import (
    classify_transition,
    evaluate_account,
    evaluate_transition,
)
from station_monitor.transitions.models import (
    ALERTING_CATEGORIES,
    AccountTransitions,
    StationObservation,
    TransitionCategory,
    TransitionEvent,
    TransitionOutcome,
)


__all__ = [
    "ALERTING_CATEGORIES",
    "AccountTransitions",
    "StationObservation",
    "TransitionCategory",
    "TransitionEvent",
    "TransitionOutcome",
    "classify_transition",
    "evaluate_account",
    "evaluate_transition",
]
