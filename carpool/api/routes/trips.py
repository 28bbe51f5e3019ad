"""
Trip endpoints
==============

POST  /api/v1/trips                    -- post a trip (driver offer or passenger request)
GET   /api/v1/trips/{trip_id}          -- trip details and live seat count
GET   /api/v1/trips/{trip_id}/bookings -- bookings placed on a trip
PATCH /api/v1/trips/{trip_id}/status   -- staff cancel / complete
"""

from fastapi import APIRouter, Depends, Request

from carpool.api.dependencies import get_services
from carpool.api.middleware import limiter
from carpool.api.schemas import (
    BookingResponse,
    TripCreateRequest,
    TripResponse,
    TripStatusUpdate,
)
from carpool.container import Services
from carpool.domain.entities import Place
from carpool.domain.enums import TripKind

router = APIRouter(prefix="/trips", tags=["trips"])


@router.post(
    "",
    status_code=201,
    response_model=TripResponse,
    summary="Post a trip",
)
@limiter.limit("30/minute")
async def post_trip(
    request: Request,
    body: TripCreateRequest,
    services: Services = Depends(get_services),
):
    trip = await services.trips.post_trip(
        driver_id=body.driver_id,
        origin=Place(body.origin.name, body.origin.description),
        destination=Place(body.destination.name, body.destination.description),
        departure_time=body.departure_time,
        arrival_time=body.arrival_time,
        seats=body.seats,
        price=body.price,
        vehicle_info=body.vehicle_info,
        kind=TripKind.REQUEST if body.is_request else TripKind.OFFER,
    )
    return TripResponse.model_validate(trip)


@router.get("/{trip_id}", response_model=TripResponse, summary="Get a trip")
@limiter.limit("100/minute")
async def get_trip(
    request: Request,
    trip_id: str,
    services: Services = Depends(get_services),
):
    return TripResponse.model_validate(await services.trips.get_trip(trip_id))


@router.get(
    "/{trip_id}/bookings",
    response_model=list[BookingResponse],
    summary="List the bookings of a trip",
)
@limiter.limit("100/minute")
async def list_trip_bookings(
    request: Request,
    trip_id: str,
    services: Services = Depends(get_services),
):
    trip = await services.trips.get_trip(trip_id)
    return [
        BookingResponse.model_validate(b)
        for b in await services.repo.list_bookings_by_trip(trip.id)
    ]


@router.patch(
    "/{trip_id}/status",
    response_model=TripResponse,
    summary="Cancel or complete a trip",
    description=(
        "Only CANCELLED (from any non-terminal status) and COMPLETED (once "
        "the arrival time has passed) can be requested. Cancelling a trip "
        "cancels its open bookings and frees their seats."
    ),
)
@limiter.limit("30/minute")
async def update_trip_status(
    request: Request,
    trip_id: str,
    body: TripStatusUpdate,
    services: Services = Depends(get_services),
):
    trip = await services.trips.transition_trip(trip_id, body.status)
    return TripResponse.model_validate(trip)
