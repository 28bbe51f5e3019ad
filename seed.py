"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 sample trips (offers leaving today and tomorrow, one passenger request)
  - 8 sample bookings (mix of PENDING, CONFIRMED and REJECTED)

Seats are taken through the booking service, so ``available_seats`` and trip
statuses come out exactly as they would through the API.
"""

import asyncio
from datetime import timedelta

from sqlalchemy import func, select

from carpool.container import build_services
from carpool.domain.clock import SystemClock
from carpool.domain.entities import Place
from carpool.domain.enums import BookingStatus, TripKind
from carpool.infrastructure.database import (
    async_session_factory,
    create_schema,
    engine,
)
from carpool.infrastructure.models import TripModel

MEDELLIN = Place("Medellín", "Parque Poblado")
BOGOTA = Place("Bogotá", "Terminal Salitre")
RIONEGRO = Place("Rionegro", "Aeropuerto JMC")
MANIZALES = Place("Manizales", "Cable Plaza")

TRIPS = [
    {"driver_id": "driver-ana", "origin": MEDELLIN, "destination": BOGOTA,
     "in_hours": 30, "seats": 4, "price": 85000.0, "vehicle_info": "Mazda 3 gris"},
    {"driver_id": "driver-luis", "origin": MEDELLIN, "destination": RIONEGRO,
     "in_hours": 0.5, "seats": 3, "price": 15000.0, "vehicle_info": "Renault Logan"},
    {"driver_id": "driver-sofia", "origin": RIONEGRO, "destination": MEDELLIN,
     "in_hours": 5, "seats": 2, "price": 15000.0, "vehicle_info": "Kia Picanto"},
    {"driver_id": "driver-juan", "origin": MEDELLIN, "destination": MANIZALES,
     "in_hours": 48, "seats": 4, "price": 60000.0, "vehicle_info": "Chevrolet Onix"},
    {"driver_id": "driver-ana", "origin": BOGOTA, "destination": MEDELLIN,
     "in_hours": 72, "seats": 4, "price": 85000.0, "vehicle_info": "Mazda 3 gris"},
    {"driver_id": "passenger-maria", "origin": MANIZALES, "destination": MEDELLIN,
     "in_hours": 26, "seats": 1, "price": 50000.0, "kind": TripKind.REQUEST},
]

# (trip index, passenger, seats, final status)
BOOKINGS = [
    (0, "passenger-camila", 2, BookingStatus.CONFIRMED),
    (0, "passenger-david", 1, BookingStatus.PENDING),
    (1, "passenger-laura", 3, BookingStatus.CONFIRMED),
    (2, "passenger-pedro", 1, BookingStatus.CONFIRMED),
    (2, "passenger-elena", 1, BookingStatus.REJECTED),
    (3, "passenger-tomas", 2, BookingStatus.PENDING),
    (4, "passenger-camila", 1, BookingStatus.CONFIRMED),
    (5, "driver-juan", 1, BookingStatus.PENDING),
]


async def seed():
    await create_schema(engine)

    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(select(func.count()).select_from(TripModel))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

    services = build_services(async_session_factory, clock=SystemClock())
    now = services.clock.now()

    # ── Trips ─────────────────────────────────────────────────────────
    trips = []
    for t in TRIPS:
        trip = await services.trips.post_trip(
            driver_id=t["driver_id"],
            origin=t["origin"],
            destination=t["destination"],
            departure_time=now + timedelta(hours=t["in_hours"]),
            seats=t["seats"],
            price=t["price"],
            vehicle_info=t.get("vehicle_info", ""),
            kind=t.get("kind", TripKind.OFFER),
        )
        trips.append(trip)
    print(f"  Created {len(trips)} trips")

    # ── Bookings ──────────────────────────────────────────────────────
    for index, passenger, seats, status in BOOKINGS:
        booking = await services.bookings.create_booking(
            trips[index].id, passenger, seats
        )
        if status is not BookingStatus.PENDING:
            await services.bookings.transition_booking(booking.id, status)
    print(f"  Created {len(BOOKINGS)} bookings")

    # Settle URGENT / FULL statuses straight away
    report = await services.worker.run_once()
    print(f"  Reconciled {len(report.trips)} trip status(es)")

    services.dispatcher.detach()
    print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
