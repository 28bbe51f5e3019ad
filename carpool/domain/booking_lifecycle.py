"""
Booking Lifecycle Engine  (State Pattern)
=========================================

Manual transitions (driver / staff) follow ``BOOKING_TRANSITIONS`` and are
only allowed while the trip has not started or ended.  Each manual transition
reports the seat delta it implies for the trip:

* entering the seat-holding set (CONFIRMED, PICKED_UP, ON_BOARD) debits
  ``seats_booked``;
* leaving it for CANCELLED / EXPIRED / REJECTED credits it back;
* anything else leaves the inventory untouched.

Automatic transitions are decided by the reconciliation worker from the
trip's computed status and the clock; they never move seats.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional

from .entities import Booking, Trip
from .enums import (
    BOOKING_TRANSITIONS,
    SEAT_HOLDING_STATUSES,
    TERMINAL_TRIP_STATUSES,
    BookingStatus,
    TripStatus,
)
from .errors import InvalidStateTransition, TripUnavailableError

# Trip statuses during / after which carried passengers count as on board.
_RIDING_TRIP_STATUSES = {TripStatus.ON_TRIP, TripStatus.COMPLETED}


def seat_delta(old: BookingStatus, new: BookingStatus, seats: int) -> int:
    """Change to the trip's ``available_seats`` implied by ``old -> new``."""
    held_before = old in SEAT_HOLDING_STATUSES
    held_after = new in SEAT_HOLDING_STATUSES
    if held_after and not held_before:
        return -seats
    if held_before and not held_after:
        return seats
    return 0


def ensure_trip_editable(trip: Trip, now: datetime) -> None:
    if trip.status in TERMINAL_TRIP_STATUSES:
        raise TripUnavailableError(
            f"Trip {trip.code} is {trip.status.value}; its bookings can no longer change"
        )
    if trip.departure_time < now:
        raise TripUnavailableError(
            f"Trip {trip.code} has already departed; its bookings can no longer change"
        )


def apply_booking_transition(
    booking: Booking,
    trip: Trip,
    new_status: BookingStatus,
    now: datetime,
    *,
    counts_seats: bool = True,
) -> tuple[Booking, int]:
    """Validate a manual transition and return ``(new_booking, seat_delta)``.

    The delta is always 0 on a trip without a seat inventory
    (``counts_seats=False``).  Pure: neither *booking* nor *trip* is modified.
    """
    ensure_trip_editable(trip, now)

    allowed = BOOKING_TRANSITIONS.get(booking.status, set())
    if new_status not in allowed:
        raise InvalidStateTransition(
            f"Cannot transition booking {booking.code} from "
            f"{booking.status.value} to {new_status.value}"
        )

    delta = seat_delta(booking.status, new_status, booking.seats_booked)
    if not counts_seats:
        delta = 0
    return replace(booking, status=new_status), delta


def automatic_booking_status(
    booking: Booking,
    trip_status: TripStatus,
    arrival: datetime,
    now: datetime,
) -> Optional[BookingStatus]:
    """Status the worker should move *booking* to, or ``None`` to leave it."""
    if booking.status is BookingStatus.PENDING:
        if now > arrival:
            return BookingStatus.EXPIRED
        return None

    if booking.status in (BookingStatus.CONFIRMED, BookingStatus.PICKED_UP):
        if trip_status in _RIDING_TRIP_STATUSES:
            return BookingStatus.ON_BOARD
    return None
