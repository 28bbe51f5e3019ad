"""
Shared test fixtures.

Repository-backed tests run against a file-based SQLite database (via
aiosqlite) in ``tmp_path`` so they need neither PostgreSQL nor Redis.  Each
repository call opens its own session, so the database must be shared
between connections; an in-memory database is not.

Time never moves by itself: every service gets a ``FixedClock``.
"""

from datetime import timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from carpool.config import Settings
from carpool.container import Services, build_services
from carpool.domain.clock import FixedClock
from carpool.domain.entities import Place, Trip
from carpool.infrastructure.database import (
    build_engine,
    build_session_factory,
    create_schema,
)
from carpool.services.notifications import MemoryInbox
from tests.factories import NOW


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        reconciliation_enabled=False,
        notification_backend="memory",
    )


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh schema per test in its own SQLite file."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'carpool.db'}")
    await create_schema(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def services(session_factory, clock, test_settings) -> AsyncGenerator[Services, None]:
    services = build_services(
        session_factory,
        config=test_settings,
        clock=clock,
        inbox=MemoryInbox(limit=test_settings.notification_history_limit),
    )
    yield services
    services.dispatcher.detach()


@pytest.fixture
def post_trip(services: Services, clock: FixedClock):
    """Post a trip through the service; keyword arguments override defaults."""

    async def _post(**overrides) -> Trip:
        values = dict(
            driver_id="driver-1",
            origin=Place("Medellín", "Parque Poblado"),
            destination=Place("Bogotá", "Terminal Salitre"),
            departure_time=clock.now() + timedelta(hours=5),
            seats=4,
            price=20.0,
        )
        values.update(overrides)
        return await services.trips.post_trip(**values)

    return _post
