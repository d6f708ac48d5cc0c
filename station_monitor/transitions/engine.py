"""Transition engine: diff this cycle's observations against the snapshot.

Rules, offline status first:

    is_offline and not was_offline          => NEWLY_OFFLINE
    is_offline and was_offline              => STILL_OFFLINE
    online and was_offline                  => RECOVERED
    online, current - previous is non-empty => NEW_FAILURE
    otherwise                               => STILL_HEALTHY

The failing set is recorded in the snapshot on every branch, so a sensor
already failing while offline is not announced again after recovery.
"""

from collections.abc import Iterable, Mapping

from station_monitor.snapshot.models import StationSnapshot, build
from station_monitor.transitions.models import (
    AccountTransitions,
    StationObservation,
    TransitionCategory,
    TransitionEvent,
    TransitionOutcome,
)


def classify_transition(
    was_offline: bool,
    is_offline: bool,
    current: frozenset[str],
    previous: frozenset[str],
) -> tuple[TransitionCategory, frozenset[str]]:
    """Pick the transition category for one station.

    Args:
        was_offline: Offline flag from the previous snapshot.
        is_offline: Liveness reported this cycle.
        current: Failed sensors this cycle.
        previous: Failed sensors recorded in the previous snapshot.

    Returns:
        Tuple of (category, new_sensors). new_sensors is empty for the
        offline categories.
    """
    if is_offline:
        if was_offline:
            return TransitionCategory.STILL_OFFLINE, frozenset()
        return TransitionCategory.NEWLY_OFFLINE, frozenset()

    new_sensors = current - previous

    if was_offline:
        return TransitionCategory.RECOVERED, new_sensors

    if new_sensors:
        return TransitionCategory.NEW_FAILURE, new_sensors

    return TransitionCategory.STILL_HEALTHY, frozenset()


def evaluate_transition(
    observation: StationObservation,
    previous: StationSnapshot,
) -> TransitionOutcome:
    """Evaluate one station against its previous snapshot.

    Args:
        observation: The station as seen this cycle.
        previous: Snapshot from the previous cycle (default if unknown).

    Returns:
        TransitionOutcome with the event and the snapshot to persist.
    """
    current = observation.current_failures
    category, new_sensors = classify_transition(
        was_offline=previous.offline,
        is_offline=observation.is_offline,
        current=current,
        previous=previous.failures,
    )

    event = TransitionEvent(
        station_id=observation.station_id,
        category=category,
        new_sensors=new_sensors,
        all_current_sensors=current,
    )
    snapshot = build(observation.aggregate, observation.is_offline)

    return TransitionOutcome(event=event, snapshot=snapshot)


def evaluate_account(
    previous: Mapping[str, StationSnapshot],
    observations: Iterable[StationObservation],
) -> AccountTransitions:
    """Evaluate every station of an account.

    The previous map is not modified. Entries for stations missing from
    this cycle's observations are carried forward unchanged.

    Args:
        previous: Snapshot map read at the start of the cycle.
        observations: Stations observed this cycle, in list order.

    Returns:
        AccountTransitions with events in observation order and the new map.
    """
    snapshots = dict(previous)
    events: list[TransitionEvent] = []

    for observation in observations:
        prior = previous.get(observation.station_id, StationSnapshot())
        outcome = evaluate_transition(observation, prior)
        snapshots[observation.station_id] = outcome.snapshot
        events.append(outcome.event)

    return AccountTransitions(events=tuple(events), snapshots=snapshots)
