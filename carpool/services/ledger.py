"""
Seat Inventory Ledger
=====================

Single gate for every change to a trip's ``available_seats``.

``adjust_available_seats`` never writes a value computed from a stale read:
it reads the latest row, validates the result, and issues a compare-and-set
(``UPDATE ... WHERE available_seats = <value read>``).  If another writer got
there first the CAS matches no row, and the ledger re-reads and tries again
(``max_retries`` times) before giving up with ``ConflictError``.
"""

from __future__ import annotations

import logging

from carpool.domain.entities import Trip
from carpool.domain.errors import (
    ConflictError,
    InsufficientCapacityError,
    NotFoundError,
)
from carpool.domain.repository import Repository

logger = logging.getLogger(__name__)


class SeatLedger:
    def __init__(self, repo: Repository, max_retries: int = 1):
        self.repo = repo
        self.max_retries = max_retries

    @staticmethod
    def check_capacity(trip: Trip, requested_seats: int) -> None:
        """Admission check at booking time. Does not reserve anything.

        Only meaningful for trips with a seat inventory; the booking service
        skips it for trips whose fullness rule does not count seats.
        """
        if requested_seats > trip.available_seats:
            raise InsufficientCapacityError(
                f"Trip {trip.code} has {trip.available_seats} seat(s) left, "
                f"{requested_seats} requested"
            )

    async def adjust_available_seats(self, trip_id: str, delta: int) -> Trip:
        attempt = 0
        while True:
            attempt += 1
            trip = await self.repo.get_trip(trip_id)
            if trip is None:
                raise NotFoundError(f"Trip {trip_id} not found")
            if delta == 0:
                return trip

            new_available = trip.available_seats + delta
            if new_available < 0:
                raise InsufficientCapacityError(
                    f"Trip {trip.code} has {trip.available_seats} seat(s) left, "
                    f"{-delta} needed"
                )
            if new_available > trip.seats:
                raise ConflictError(
                    f"Crediting {delta} seat(s) would exceed the {trip.seats} "
                    f"seats of trip {trip.code}"
                )

            try:
                return await self.repo.adjust_available_seats(
                    trip_id, delta, expected=trip.available_seats
                )
            except ConflictError:
                if attempt > self.max_retries:
                    raise
                logger.info(
                    "Seat update on trip %s lost a race (attempt %d); retrying",
                    trip.code,
                    attempt,
                )
