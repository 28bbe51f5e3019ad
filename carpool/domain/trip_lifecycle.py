"""
Trip Lifecycle Engine  (Strategy Pattern)
=========================================

Derives a trip's status from its schedule, its seat inventory and the
current time.  Rules, evaluated in order:

1. CANCELLED / COMPLETED are terminal and returned unchanged.
2. ``arrival = arrival_time or departure_time + default duration``.
3. ``now > arrival``                   -> COMPLETED
4. ``departure <= now <= arrival``     -> ON_TRIP
5. future trip:
   a. fullness rule says full         -> FULL
   b. ``departure - now <= urgent``   -> URGENT
   c. otherwise                       -> PREPARING

Whether a future trip is "full" depends on its kind: a driver's offer is
capped by its seats, a passenger's request is fulfilled by a driver and is
not capped.  The rule is a strategy chosen per ``TripKind``; it also decides
whether bookings on the trip move ``available_seats`` at all.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Mapping, Optional

from .entities import DEFAULT_TRIP_DURATION, Trip
from .enums import TERMINAL_TRIP_STATUSES, TripKind, TripStatus
from .errors import InvalidStateTransition, TripUnavailableError

logger = logging.getLogger(__name__)

URGENT_WINDOW = timedelta(minutes=60)


# ── Fullness strategies ───────────────────────────────────────────────


class FullnessRule(ABC):
    # Whether bookings on the trip debit and credit available_seats.
    counts_seats = True

    @abstractmethod
    def is_full(self, trip: Trip) -> bool: ...


class SeatCapacityRule(FullnessRule):
    """Full once every seat is taken."""

    def is_full(self, trip: Trip) -> bool:
        return trip.available_seats <= 0


class NeverFullRule(FullnessRule):
    """Request trips stay open until a driver takes them on."""

    counts_seats = False

    def is_full(self, trip: Trip) -> bool:
        return False


FULLNESS_RULES = {
    "seats": SeatCapacityRule,
    "never": NeverFullRule,
}


def fullness_rule(name: str) -> FullnessRule:
    try:
        return FULLNESS_RULES[name]()
    except KeyError:
        raise ValueError(f"Unknown fullness rule: {name!r}") from None


# ── Engine ────────────────────────────────────────────────────────────


class TripLifecycleEngine:
    """Pure status derivation; holds configuration only."""

    def __init__(
        self,
        urgent_window: timedelta = URGENT_WINDOW,
        default_duration: timedelta = DEFAULT_TRIP_DURATION,
        fullness: Optional[Mapping[TripKind, FullnessRule]] = None,
    ):
        self.urgent_window = urgent_window
        self.default_duration = default_duration
        self.fullness = {
            TripKind.OFFER: SeatCapacityRule(),
            TripKind.REQUEST: NeverFullRule(),
        }
        if fullness:
            self.fullness.update(fullness)

    def counts_seats(self, trip: Trip) -> bool:
        return self.fullness[trip.kind].counts_seats

    def arrival_for(self, trip: Trip) -> datetime:
        """Effective arrival time; an arrival before departure counts as departure."""
        arrival = trip.expected_arrival(self.default_duration)
        if arrival < trip.departure_time:
            logger.warning(
                "Trip %s arrives (%s) before it departs (%s); using departure",
                trip.code,
                arrival.isoformat(),
                trip.departure_time.isoformat(),
            )
            return trip.departure_time
        return arrival

    def next_status(self, trip: Trip, now: datetime) -> TripStatus:
        if trip.status in TERMINAL_TRIP_STATUSES:
            return trip.status

        arrival = self.arrival_for(trip)
        if now > arrival:
            return TripStatus.COMPLETED
        if trip.departure_time <= now:
            return TripStatus.ON_TRIP

        if self.fullness[trip.kind].is_full(trip):
            return TripStatus.FULL
        if trip.departure_time - now <= self.urgent_window:
            return TripStatus.URGENT
        return TripStatus.PREPARING

    def apply_manual(
        self, trip: Trip, new_status: TripStatus, now: datetime
    ) -> Trip:
        """Staff-requested status change.

        Only CANCELLED (any non-terminal trip) and COMPLETED (once the
        arrival time has passed) can be requested; every other status is
        derived from time and seats.
        """
        if trip.status in TERMINAL_TRIP_STATUSES:
            raise TripUnavailableError(
                f"Trip {trip.code} is already {trip.status.value}"
            )
        if new_status is TripStatus.CANCELLED:
            return _with_status(trip, new_status)
        if new_status is TripStatus.COMPLETED:
            arrival = self.arrival_for(trip)
            if now < arrival:
                raise InvalidStateTransition(
                    f"Trip {trip.code} cannot be completed before its "
                    f"arrival time {arrival.isoformat()}"
                )
            return _with_status(trip, new_status)
        raise InvalidStateTransition(
            f"Cannot set trip {trip.code} from {trip.status.value} "
            f"to {new_status.value}"
        )


def _with_status(trip: Trip, status: TripStatus) -> Trip:
    return replace(trip, status=status)


_default_engine = TripLifecycleEngine()


def next_trip_status(trip: Trip, now: datetime) -> TripStatus:
    """Target status for *trip* at *now* under the default configuration."""
    return _default_engine.next_status(trip, now)


def apply_trip_transition(trip: Trip, new_status: TripStatus, now: datetime) -> Trip:
    """Validated manual transition under the default configuration."""
    return _default_engine.apply_manual(trip, new_status, now)
