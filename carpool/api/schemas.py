"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from carpool.domain.enums import BookingStatus, NotificationSeverity, TripStatus


def _assume_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ── Requests ──────────────────────────────────────────────────────────


class PlaceSchema(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""

    model_config = {"from_attributes": True}


class TripCreateRequest(BaseModel):
    driver_id: str = Field(..., min_length=1, max_length=64)
    origin: PlaceSchema
    destination: PlaceSchema
    departure_time: datetime
    arrival_time: Optional[datetime] = Field(
        None, description="Defaults to departure + 3h when omitted."
    )
    price: float = Field(..., ge=0)
    seats: int = Field(..., ge=1, le=50)
    vehicle_info: str = Field("", max_length=255)
    is_request: bool = Field(
        False, description="Posted by a passenger looking for a driver."
    )

    @field_validator("departure_time", "arrival_time")
    @classmethod
    def naive_times_are_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _assume_utc(value)


class TripStatusUpdate(BaseModel):
    status: TripStatus


class BookingCreateRequest(BaseModel):
    trip_id: str
    passenger_id: str = Field(..., min_length=1, max_length=64)
    seats_booked: int = Field(1, ge=1, le=50)
    passenger_phone: str = Field("", max_length=32)
    note: str = Field("", max_length=1000)


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


# ── Responses ─────────────────────────────────────────────────────────


class TripResponse(BaseModel):
    id: str
    code: str
    driver_id: str
    origin: PlaceSchema
    destination: PlaceSchema
    departure_time: datetime
    arrival_time: Optional[datetime] = None
    price: float
    seats: int
    available_seats: int
    vehicle_info: str
    status: TripStatus
    is_request: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: str
    code: str
    trip_id: str
    passenger_id: str
    passenger_phone: str
    note: str
    seats_booked: int
    total_price: float
    status: BookingStatus
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class NotificationResponse(BaseModel):
    id: str
    title: str
    message: str
    severity: NotificationSeverity
    timestamp: datetime
    read: bool

    model_config = {"from_attributes": True}


class StatusChangeResponse(BaseModel):
    entity_id: str
    code: str
    old: str
    new: str

    model_config = {"from_attributes": True}


class ReconciliationResponse(BaseModel):
    started_at: datetime
    skipped: bool
    failures: int
    trips: list[StatusChangeResponse] = []
    bookings: list[StatusChangeResponse] = []

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"
    worker_running: bool = False


class ErrorResponse(BaseModel):
    detail: str
    code: str
