"""Trip operations (synchronous request path)."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from carpool.domain.clock import Clock
from carpool.domain.entities import Place, Trip
from carpool.domain.enums import TripKind, TripStatus
from carpool.domain.errors import ConflictError, NotFoundError
from carpool.domain.repository import Repository
from carpool.domain.trip_lifecycle import TripLifecycleEngine

from .bookings import BookingService

logger = logging.getLogger(__name__)

_STATUS_WRITE_ATTEMPTS = 2


class TripService:
    def __init__(
        self,
        repo: Repository,
        bookings: BookingService,
        clock: Clock,
        engine: Optional[TripLifecycleEngine] = None,
    ):
        self.repo = repo
        self.bookings = bookings
        self.clock = clock
        self.engine = engine or TripLifecycleEngine()

    async def get_trip(self, trip_id: str) -> Trip:
        trip = await self.repo.get_trip(trip_id)
        if trip is None:
            raise NotFoundError(f"Trip {trip_id} not found")
        return trip

    async def post_trip(
        self,
        *,
        driver_id: str,
        origin: Place,
        destination: Place,
        departure_time: datetime,
        seats: int,
        price: float,
        arrival_time: Optional[datetime] = None,
        vehicle_info: str = "",
        kind: TripKind = TripKind.OFFER,
    ) -> Trip:
        if seats <= 0:
            raise ValueError("seats must be positive")
        trip = Trip(
            driver_id=driver_id,
            origin=origin,
            destination=destination,
            departure_time=departure_time,
            arrival_time=arrival_time,
            price=price,
            seats=seats,
            available_seats=seats,
            vehicle_info=vehicle_info,
            status=TripStatus.PREPARING,
            kind=kind,
            created_at=self.clock.now(),
        )
        created = await self.repo.create_trip(trip)
        logger.info("Trip %s posted by %s (%d seats)", created.code, driver_id, seats)
        return created

    async def transition_trip(self, trip_id: str, new_status: TripStatus) -> Trip:
        """Staff cancel / complete.  Cancelling also cancels open bookings.

        The trip status is written first, conditional on the status it was
        validated against; the bookings are only swept once the trip is
        cancelled.  A concurrent status move (e.g. PREPARING -> URGENT) is
        retried against the fresh row.
        """
        for attempt in range(_STATUS_WRITE_ATTEMPTS):
            trip = await self.get_trip(trip_id)
            target = self.engine.apply_manual(trip, new_status, self.clock.now())
            try:
                updated = await self.repo.update_trip(
                    trip.id, {"status": target.status}, expected_status=trip.status
                )
                break
            except ConflictError:
                if attempt + 1 == _STATUS_WRITE_ATTEMPTS:
                    raise
                logger.debug("Trip %s moved while being set; retrying", trip.code)
        logger.info("Trip %s set to %s", updated.code, updated.status.value)

        if updated.status is TripStatus.CANCELLED:
            cancelled = await self.bookings.cancel_for_trip(updated)
            if cancelled:
                logger.info(
                    "Cancelled %d booking(s) with trip %s", len(cancelled), updated.code
                )
                updated = await self.get_trip(trip_id)
        return updated
