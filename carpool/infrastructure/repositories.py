"""
Repository Pattern -- SQL adapter for the lifecycle core.

Every public method runs in its own short transaction and returns domain
snapshots (``Trip`` / ``Booking``), never ORM rows.  Conditional writes are
single ``UPDATE ... WHERE`` statements so the database, not the Python
process, decides who wins a race.  Committed writes are published on the
change feed.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Iterable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .events import ChangeFeed
from .models import BookingModel, TripModel
from carpool.domain.entities import Booking, ChangeEvent, Place, Trip
from carpool.domain.enums import (
    TERMINAL_TRIP_STATUSES,
    BookingStatus,
    ChangeKind,
    EntityType,
    TripStatus,
)
from carpool.domain.errors import ConflictError, NotFoundError, PersistenceError
from carpool.domain.repository import ChangeCallback, Repository, Unsubscribe

_TRIP_PATCHABLE = {
    "status",
    "departure_time",
    "arrival_time",
    "price",
    "vehicle_info",
    "origin_name",
    "origin_desc",
    "dest_name",
    "dest_desc",
}
_BOOKING_PATCHABLE = {"status", "passenger_phone", "note"}
_DATETIME_FIELDS = {"departure_time", "arrival_time"}


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise to aware UTC (SQLite hands back naive datetimes)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _trip_from_row(row: TripModel) -> Trip:
    return Trip(
        id=row.id,
        driver_id=row.driver_id,
        origin=Place(row.origin_name, row.origin_desc or ""),
        destination=Place(row.dest_name, row.dest_desc or ""),
        departure_time=_utc(row.departure_time),
        arrival_time=_utc(row.arrival_time),
        price=row.price,
        seats=row.seats,
        available_seats=row.available_seats,
        vehicle_info=row.vehicle_info or "",
        status=TripStatus(row.status),
        kind=row.kind,
        created_at=_utc(row.created_at),
    )


def _booking_from_row(row: BookingModel) -> Booking:
    return Booking(
        id=row.id,
        trip_id=row.trip_id,
        passenger_id=row.passenger_id,
        passenger_phone=row.passenger_phone or "",
        note=row.note or "",
        seats_booked=row.seats_booked,
        total_price=row.total_price,
        status=BookingStatus(row.status),
        created_at=_utc(row.created_at),
    )


def _checked_patch(patch: dict[str, Any], allowed: set[str]) -> dict[str, Any]:
    if "available_seats" in patch:
        raise ValueError(
            "available_seats can only change through adjust_available_seats"
        )
    unknown = set(patch) - allowed
    if unknown:
        raise ValueError(f"Fields not patchable: {', '.join(sorted(unknown))}")
    return {
        key: _utc(value) if key in _DATETIME_FIELDS else value
        for key, value in patch.items()
    }


class SqlRepository(Repository):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        feed: Optional[ChangeFeed] = None,
    ):
        self._session_factory = session_factory
        self._feed = feed or ChangeFeed()

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc

    def subscribe_to_changes(
        self, entity_type: EntityType, callback: ChangeCallback
    ) -> Unsubscribe:
        return self._feed.subscribe(entity_type, callback)

    # ── Trips ─────────────────────────────────────────────────────────

    async def create_trip(self, trip: Trip) -> Trip:
        row = TripModel(
            id=trip.id,
            driver_id=trip.driver_id,
            origin_name=trip.origin.name,
            origin_desc=trip.origin.description,
            dest_name=trip.destination.name,
            dest_desc=trip.destination.description,
            departure_time=_utc(trip.departure_time),
            arrival_time=_utc(trip.arrival_time),
            price=trip.price,
            seats=trip.seats,
            available_seats=trip.available_seats,
            vehicle_info=trip.vehicle_info,
            status=trip.status,
            kind=trip.kind,
            created_at=_utc(trip.created_at),
        )
        async with self._transaction() as session:
            session.add(row)
            await session.flush()
            created = _trip_from_row(row)
        await self._feed.publish(
            ChangeEvent(EntityType.TRIP, ChangeKind.INSERT, new=created)
        )
        return created

    async def get_trip(self, trip_id: str) -> Optional[Trip]:
        async with self._transaction() as session:
            row = await session.get(TripModel, trip_id)
            return _trip_from_row(row) if row else None

    async def list_active_trips(self) -> list[Trip]:
        async with self._transaction() as session:
            result = await session.execute(
                select(TripModel)
                .where(TripModel.status.not_in(list(TERMINAL_TRIP_STATUSES)))
                .order_by(TripModel.departure_time)
            )
            return [_trip_from_row(r) for r in result.scalars().all()]

    async def update_trip(
        self,
        trip_id: str,
        patch: dict[str, Any],
        *,
        expected_status: Optional[TripStatus] = None,
    ) -> Trip:
        values = _checked_patch(patch, _TRIP_PATCHABLE)
        async with self._transaction() as session:
            row = await session.get(TripModel, trip_id)
            if row is None:
                raise NotFoundError(f"Trip {trip_id} not found")
            old = _trip_from_row(row)

            stmt = update(TripModel).where(TripModel.id == trip_id)
            if expected_status is not None:
                stmt = stmt.where(TripModel.status == expected_status)
            result = await session.execute(
                stmt.values(**values).execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError(
                    f"Trip {old.code} changed concurrently "
                    f"(expected status {expected_status.value if expected_status else '?'})"
                )
            await session.refresh(row)
            new = _trip_from_row(row)
        await self._feed.publish(
            ChangeEvent(EntityType.TRIP, ChangeKind.UPDATE, new=new, old=old)
        )
        return new

    async def adjust_available_seats(
        self, trip_id: str, delta: int, *, expected: int
    ) -> Trip:
        async with self._transaction() as session:
            row = await session.get(TripModel, trip_id)
            if row is None:
                raise NotFoundError(f"Trip {trip_id} not found")
            old = _trip_from_row(row)

            result = await session.execute(
                update(TripModel)
                .where(
                    TripModel.id == trip_id,
                    TripModel.available_seats == expected,
                )
                .values(available_seats=expected + delta)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError(
                    f"Seat count of trip {old.code} moved away from {expected}"
                )
            await session.refresh(row)
            new = _trip_from_row(row)
        await self._feed.publish(
            ChangeEvent(EntityType.TRIP, ChangeKind.UPDATE, new=new, old=old)
        )
        return new

    # ── Bookings ──────────────────────────────────────────────────────

    async def create_booking(self, draft: Booking) -> Booking:
        row = BookingModel(
            id=draft.id,
            trip_id=draft.trip_id,
            passenger_id=draft.passenger_id,
            passenger_phone=draft.passenger_phone,
            note=draft.note,
            seats_booked=draft.seats_booked,
            total_price=draft.total_price,
            status=draft.status,
            created_at=_utc(draft.created_at),
        )
        async with self._transaction() as session:
            session.add(row)
            await session.flush()
            created = _booking_from_row(row)
        await self._feed.publish(
            ChangeEvent(EntityType.BOOKING, ChangeKind.INSERT, new=created)
        )
        return created

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        async with self._transaction() as session:
            row = await session.get(BookingModel, booking_id)
            return _booking_from_row(row) if row else None

    async def list_bookings_by_trip(self, trip_id: str) -> list[Booking]:
        async with self._transaction() as session:
            result = await session.execute(
                select(BookingModel)
                .where(BookingModel.trip_id == trip_id)
                .order_by(BookingModel.created_at)
            )
            return [_booking_from_row(r) for r in result.scalars().all()]

    async def list_bookings_by_status(
        self, statuses: Iterable[BookingStatus]
    ) -> list[Booking]:
        async with self._transaction() as session:
            result = await session.execute(
                select(BookingModel)
                .where(BookingModel.status.in_(list(statuses)))
                .order_by(BookingModel.created_at)
            )
            return [_booking_from_row(r) for r in result.scalars().all()]

    async def update_booking(
        self,
        booking_id: str,
        patch: dict[str, Any],
        *,
        expected_status: Optional[BookingStatus] = None,
    ) -> Booking:
        values = _checked_patch(patch, _BOOKING_PATCHABLE)
        async with self._transaction() as session:
            row = await session.get(BookingModel, booking_id)
            if row is None:
                raise NotFoundError(f"Booking {booking_id} not found")
            old = _booking_from_row(row)

            stmt = update(BookingModel).where(BookingModel.id == booking_id)
            if expected_status is not None:
                stmt = stmt.where(BookingModel.status == expected_status)
            result = await session.execute(
                stmt.values(**values).execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError(
                    f"Booking {old.code} changed concurrently "
                    f"(expected status {expected_status.value if expected_status else '?'})"
                )
            await session.refresh(row)
            new = _booking_from_row(row)
        await self._feed.publish(
            ChangeEvent(EntityType.BOOKING, ChangeKind.UPDATE, new=new, old=old)
        )
        return new

    async def delete_booking(
        self,
        booking_id: str,
        *,
        expected_status: Optional[BookingStatus] = None,
    ) -> Booking:
        async with self._transaction() as session:
            row = await session.get(BookingModel, booking_id)
            if row is None:
                raise NotFoundError(f"Booking {booking_id} not found")
            old = _booking_from_row(row)

            stmt = delete(BookingModel).where(BookingModel.id == booking_id)
            if expected_status is not None:
                stmt = stmt.where(BookingModel.status == expected_status)
            result = await session.execute(
                stmt.execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError(
                    f"Booking {old.code} changed before it could be deleted"
                )
        await self._feed.publish(
            ChangeEvent(EntityType.BOOKING, ChangeKind.DELETE, old=old)
        )
        return old
