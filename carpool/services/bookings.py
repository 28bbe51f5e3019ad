"""
Booking operations (synchronous request path).

Used by passengers (book, cancel), drivers (confirm, reject, pick up) and
staff (delete).  All seat movements go through the ``SeatLedger``; booking
status writes are conditional on the status the decision was made from.
"""

from __future__ import annotations

import logging
from typing import Optional

from carpool.domain.booking_lifecycle import (
    apply_booking_transition,
    ensure_trip_editable,
    seat_delta,
)
from carpool.domain.clock import Clock
from carpool.domain.entities import Booking, Trip
from carpool.domain.enums import BookingStatus
from carpool.domain.errors import ConflictError, NotFoundError
from carpool.domain.repository import Repository
from carpool.domain.trip_lifecycle import TripLifecycleEngine

from .ledger import SeatLedger

logger = logging.getLogger(__name__)

# Bookings swept along when their trip is cancelled.
_CANCELLABLE = (
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.PICKED_UP,
)


class BookingService:
    def __init__(
        self,
        repo: Repository,
        ledger: SeatLedger,
        clock: Clock,
        engine: Optional[TripLifecycleEngine] = None,
    ):
        self.repo = repo
        self.ledger = ledger
        self.clock = clock
        self.engine = engine or TripLifecycleEngine()

    async def get_booking(self, booking_id: str) -> Booking:
        booking = await self.repo.get_booking(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    async def _get_trip(self, trip_id: str) -> Trip:
        trip = await self.repo.get_trip(trip_id)
        if trip is None:
            raise NotFoundError(f"Trip {trip_id} not found")
        return trip

    async def create_booking(
        self,
        trip_id: str,
        passenger_id: str,
        seats: int,
        passenger_phone: str = "",
        note: str = "",
    ) -> Booking:
        """Place a PENDING booking. Seats are only taken on confirmation."""
        if seats <= 0:
            raise ValueError("seats must be positive")
        trip = await self._get_trip(trip_id)
        now = self.clock.now()
        ensure_trip_editable(trip, now)
        if self.engine.counts_seats(trip):
            self.ledger.check_capacity(trip, seats)

        draft = Booking(
            trip_id=trip.id,
            passenger_id=passenger_id,
            seats_booked=seats,
            total_price=round(trip.price * seats, 2),
            passenger_phone=passenger_phone,
            note=note,
            created_at=now,
        )
        booking = await self.repo.create_booking(draft)
        logger.info(
            "Booking %s placed on trip %s (%d seat(s))", booking.code, trip.code, seats
        )
        return booking

    async def transition_booking(
        self, booking_id: str, new_status: BookingStatus
    ) -> Booking:
        """Manual status change by a driver, passenger or staff member."""
        booking = await self.get_booking(booking_id)
        trip = await self._get_trip(booking.trip_id)
        _, delta = apply_booking_transition(
            booking,
            trip,
            new_status,
            self.clock.now(),
            counts_seats=self.engine.counts_seats(trip),
        )
        saved, trip = await self._commit(booking, new_status, delta)
        if delta:
            await self.refresh_trip_status(trip)
        return saved

    async def delete_booking(self, booking_id: str) -> Booking:
        """Staff-only hard delete; gives back any seats the booking held.

        The seats are credited before the row goes, and the delete only
        applies while the booking still has the status that was read.  If the
        delete fails the credit is taken back again.
        """
        booking = await self.get_booking(booking_id)
        trip = await self.repo.get_trip(booking.trip_id)
        credit = 0
        if trip is None:
            logger.warning(
                "Booking %s points at missing trip %s", booking.code, booking.trip_id
            )
        elif booking.holds_seats and self.engine.counts_seats(trip):
            credit = booking.seats_booked

        if credit:
            trip = await self.ledger.adjust_available_seats(booking.trip_id, credit)
        try:
            deleted = await self.repo.delete_booking(
                booking.id, expected_status=booking.status
            )
        except Exception:
            if credit:
                await self._undo_seats(booking, credit)
            raise

        if credit:
            await self.refresh_trip_status(trip)
        logger.info("Booking %s deleted", deleted.code)
        return deleted

    async def cancel_for_trip(self, trip: Trip) -> list[Booking]:
        """Cancel the open bookings of a trip that has just been cancelled."""
        counts_seats = self.engine.counts_seats(trip)
        cancelled: list[Booking] = []
        for booking in await self.repo.list_bookings_by_trip(trip.id):
            if booking.status not in _CANCELLABLE:
                continue
            delta = 0
            if counts_seats:
                delta = seat_delta(
                    booking.status, BookingStatus.CANCELLED, booking.seats_booked
                )
            try:
                saved, _ = await self._commit(booking, BookingStatus.CANCELLED, delta)
            except ConflictError:
                logger.warning(
                    "Booking %s changed while trip %s was being cancelled; skipped",
                    booking.code,
                    trip.code,
                )
                continue
            cancelled.append(saved)
        return cancelled

    async def refresh_trip_status(self, trip: Trip) -> Trip:
        """Re-derive the trip status after its seat count moved (FULL <-> open)."""
        target = self.engine.next_status(trip, self.clock.now())
        if target is trip.status:
            return trip
        try:
            return await self.repo.update_trip(
                trip.id, {"status": target}, expected_status=trip.status
            )
        except ConflictError:
            # The worker or another request already moved it; next tick settles it.
            logger.debug("Trip %s status moved concurrently", trip.code)
            return trip

    async def _commit(
        self, booking: Booking, new_status: BookingStatus, delta: int
    ) -> tuple[Booking, Optional[Trip]]:
        """Move seats, then the booking; undo the seats if the booking moved first."""
        trip = None
        if delta:
            trip = await self.ledger.adjust_available_seats(booking.trip_id, delta)
        try:
            saved = await self.repo.update_booking(
                booking.id, {"status": new_status}, expected_status=booking.status
            )
        except ConflictError:
            if delta:
                await self._undo_seats(booking, delta)
            raise
        return saved, trip

    async def _undo_seats(self, booking: Booking, delta: int) -> None:
        try:
            await self.ledger.adjust_available_seats(booking.trip_id, -delta)
        except Exception:
            logger.exception(
                "Could not undo seat change %+d on trip %s for booking %s",
                delta,
                booking.trip_id,
                booking.code,
            )
