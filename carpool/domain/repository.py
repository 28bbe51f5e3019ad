"""
Repository port -- the only persistence surface the lifecycle core sees.

Implementations must make every write atomic on its own and must honour the
conditional forms:

* ``update_trip`` / ``update_booking`` with ``expected_status`` only apply
  when the stored status still equals it, otherwise raise ``ConflictError``;
* ``adjust_available_seats`` is a compare-and-set on ``available_seats``.

``available_seats`` is never accepted in a generic trip patch.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Iterable, Optional

from .entities import Booking, ChangeEvent, Trip
from .enums import BookingStatus, EntityType, TripStatus

ChangeCallback = Callable[[ChangeEvent], Awaitable[None]]
Unsubscribe = Callable[[], None]


class Repository(ABC):
    # ── Trips ─────────────────────────────────────────────────────────

    @abstractmethod
    async def create_trip(self, trip: Trip) -> Trip: ...

    @abstractmethod
    async def get_trip(self, trip_id: str) -> Optional[Trip]: ...

    @abstractmethod
    async def list_active_trips(self) -> list[Trip]:
        """Trips whose status is not terminal."""

    @abstractmethod
    async def update_trip(
        self,
        trip_id: str,
        patch: dict[str, Any],
        *,
        expected_status: Optional[TripStatus] = None,
    ) -> Trip: ...

    @abstractmethod
    async def adjust_available_seats(
        self, trip_id: str, delta: int, *, expected: int
    ) -> Trip:
        """Set ``available_seats = expected + delta`` iff it still equals *expected*."""

    # ── Bookings ──────────────────────────────────────────────────────

    @abstractmethod
    async def create_booking(self, draft: Booking) -> Booking: ...

    @abstractmethod
    async def get_booking(self, booking_id: str) -> Optional[Booking]: ...

    @abstractmethod
    async def list_bookings_by_trip(self, trip_id: str) -> list[Booking]: ...

    @abstractmethod
    async def list_bookings_by_status(
        self, statuses: Iterable[BookingStatus]
    ) -> list[Booking]: ...

    @abstractmethod
    async def update_booking(
        self,
        booking_id: str,
        patch: dict[str, Any],
        *,
        expected_status: Optional[BookingStatus] = None,
    ) -> Booking: ...

    @abstractmethod
    async def delete_booking(
        self,
        booking_id: str,
        *,
        expected_status: Optional[BookingStatus] = None,
    ) -> Booking: ...

    # ── Change feed ───────────────────────────────────────────────────

    @abstractmethod
    def subscribe_to_changes(
        self, entity_type: EntityType, callback: ChangeCallback
    ) -> Unsubscribe: ...
