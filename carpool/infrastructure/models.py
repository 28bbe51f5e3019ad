"""
SQLAlchemy ORM models.

Tables
------
* ``trips``     -- rides offered by drivers (or requested by passengers)
* ``bookings``  -- passengers' claims on seats of a trip

``bookings.trip_id`` is a plain indexed column, not a foreign key: a booking
looks its trip up and never cascades with it.

Indexes
-------
* **B-Tree** on ``status`` for both tables (the reconciliation worker scans by
  status every tick), ``driver_id``, ``departure_time``, ``trip_id`` and
  ``passenger_id``.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    Index,
    Integer,
    String,
    Text,
    func,
)

from .database import Base
from carpool.domain.enums import BookingStatus, TripKind, TripStatus


class TripModel(Base):
    __tablename__ = "trips"

    id = Column(String(36), primary_key=True)
    driver_id = Column(String(64), nullable=False)

    origin_name = Column(String(255), nullable=False)
    origin_desc = Column(Text, nullable=False, default="")
    dest_name = Column(String(255), nullable=False)
    dest_desc = Column(Text, nullable=False, default="")

    departure_time = Column(DateTime(timezone=True), nullable=False)
    arrival_time = Column(DateTime(timezone=True), nullable=True)

    price = Column(Float, nullable=False, default=0.0)
    seats = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    vehicle_info = Column(String(255), nullable=False, default="")

    status = Column(Enum(TripStatus), default=TripStatus.PREPARING, nullable=False)
    kind = Column(Enum(TripKind), default=TripKind.OFFER, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("seats > 0", name="ck_trips_seats_positive"),
        CheckConstraint("available_seats >= 0", name="ck_trips_available_non_negative"),
        CheckConstraint("available_seats <= seats", name="ck_trips_available_within_seats"),
        Index("idx_trips_status", "status"),
        Index("idx_trips_driver", "driver_id"),
        Index("idx_trips_departure", "departure_time"),
    )


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True)
    trip_id = Column(String(36), nullable=False)
    passenger_id = Column(String(64), nullable=False)
    passenger_phone = Column(String(32), nullable=False, default="")
    note = Column(Text, nullable=False, default="")

    seats_booked = Column(Integer, nullable=False)
    total_price = Column(Float, nullable=False, default=0.0)
    status = Column(
        Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False
    )

    created_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("seats_booked > 0", name="ck_bookings_seats_positive"),
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_trip", "trip_id"),
        Index("idx_bookings_passenger", "passenger_id"),
    )
