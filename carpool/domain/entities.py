"""
Domain entities.

``Trip`` and ``Booking`` are plain snapshots of what the repository holds.
The lifecycle engines never mutate them in place; they return updated copies
(``dataclasses.replace``) so a snapshot can be compared with its successor.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Union

from .enums import (
    SEAT_HOLDING_STATUSES,
    TERMINAL_BOOKING_STATUSES,
    TERMINAL_TRIP_STATUSES,
    BookingStatus,
    ChangeKind,
    EntityType,
    TripKind,
    TripStatus,
)

DEFAULT_TRIP_DURATION = timedelta(hours=3)


def _new_id() -> str:
    return str(uuid.uuid4())


def short_code(prefix: str, entity_id: str) -> str:
    """Display code shown to users, e.g. ``T1A2B3``. Never used for lookups."""
    return f"{prefix}{entity_id[:5].upper()}"


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Place:
    name: str
    description: str = ""


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Trip:
    departure_time: datetime
    id: str = field(default_factory=_new_id)
    driver_id: str = ""
    origin: Place = field(default_factory=lambda: Place(""))
    destination: Place = field(default_factory=lambda: Place(""))
    arrival_time: Optional[datetime] = None
    price: float = 0.0
    seats: int = 4
    available_seats: int = 4
    vehicle_info: str = ""
    status: TripStatus = TripStatus.PREPARING
    kind: TripKind = TripKind.OFFER
    created_at: Optional[datetime] = None

    @property
    def code(self) -> str:
        return short_code("T", self.id)

    @property
    def is_request(self) -> bool:
        return self.kind is TripKind.REQUEST

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TRIP_STATUSES

    def expected_arrival(
        self, default_duration: timedelta = DEFAULT_TRIP_DURATION
    ) -> datetime:
        if self.arrival_time is not None:
            return self.arrival_time
        return self.departure_time + default_duration


@dataclass
class Booking:
    trip_id: str
    passenger_id: str
    seats_booked: int = 1
    id: str = field(default_factory=_new_id)
    total_price: float = 0.0
    status: BookingStatus = BookingStatus.PENDING
    passenger_phone: str = ""
    note: str = ""
    created_at: Optional[datetime] = None

    @property
    def code(self) -> str:
        return short_code("S", self.id)

    @property
    def holds_seats(self) -> bool:
        return self.status in SEAT_HOLDING_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_BOOKING_STATUSES


# ── Change events ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class ChangeEvent:
    """A committed write, as published on the repository change feed."""

    entity_type: EntityType
    kind: ChangeKind
    new: Optional[Union[Trip, Booking]] = None
    old: Optional[Union[Trip, Booking]] = None
