"""
Booking endpoints
=================

POST   /api/v1/bookings                     -- place a booking (PENDING, no seats taken)
GET    /api/v1/bookings/{booking_id}        -- booking status
PATCH  /api/v1/bookings/{booking_id}/status -- confirm / reject / cancel / pick up / on board
DELETE /api/v1/bookings/{booking_id}        -- staff delete, frees held seats
"""

from fastapi import APIRouter, Depends, Request

from carpool.api.dependencies import get_services
from carpool.api.middleware import limiter
from carpool.api.schemas import (
    BookingCreateRequest,
    BookingResponse,
    BookingStatusUpdate,
)
from carpool.container import Services

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "",
    status_code=201,
    response_model=BookingResponse,
    summary="Book seats on a trip",
    responses={409: {"description": "Trip unavailable or not enough seats."}},
)
@limiter.limit("100/minute")
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    services: Services = Depends(get_services),
):
    booking = await services.bookings.create_booking(
        body.trip_id,
        body.passenger_id,
        body.seats_booked,
        passenger_phone=body.passenger_phone,
        note=body.note,
    )
    return BookingResponse.model_validate(booking)


@router.get(
    "/{booking_id}", response_model=BookingResponse, summary="Get a booking"
)
@limiter.limit("100/minute")
async def get_booking(
    request: Request,
    booking_id: str,
    services: Services = Depends(get_services),
):
    return BookingResponse.model_validate(
        await services.bookings.get_booking(booking_id)
    )


@router.patch(
    "/{booking_id}/status",
    response_model=BookingResponse,
    summary="Change a booking's status",
)
@limiter.limit("100/minute")
async def update_booking_status(
    request: Request,
    booking_id: str,
    body: BookingStatusUpdate,
    services: Services = Depends(get_services),
):
    booking = await services.bookings.transition_booking(booking_id, body.status)
    return BookingResponse.model_validate(booking)


@router.delete(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Delete a booking (staff)",
)
@limiter.limit("30/minute")
async def delete_booking(
    request: Request,
    booking_id: str,
    services: Services = Depends(get_services),
):
    booking = await services.bookings.delete_booking(booking_id)
    return BookingResponse.model_validate(booking)
