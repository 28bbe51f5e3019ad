"""SQL repository failure handling."""

from __future__ import annotations

import pytest
import pytest_asyncio

from carpool.domain.enums import EntityType
from carpool.domain.errors import PersistenceError
from carpool.infrastructure.database import build_engine, build_session_factory
from carpool.infrastructure.repositories import SqlRepository
from tests.factories import make_trip


@pytest_asyncio.fixture
async def unmigrated_repo(tmp_path):
    """A repository over a database whose schema was never created."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    yield SqlRepository(build_session_factory(engine))
    await engine.dispose()


class TestStorageFailures:
    @pytest.mark.asyncio
    async def test_read_failure_is_persistence_error(self, unmigrated_repo):
        with pytest.raises(PersistenceError) as exc_info:
            await unmigrated_repo.get_trip("any-trip")
        assert exc_info.value.code == "PERSISTENCE_ERROR"

    @pytest.mark.asyncio
    async def test_write_failure_is_persistence_error(self, unmigrated_repo):
        with pytest.raises(PersistenceError):
            await unmigrated_repo.create_trip(make_trip())

    @pytest.mark.asyncio
    async def test_failed_write_publishes_nothing(self, unmigrated_repo):
        events = []

        async def record(event):
            events.append(event)

        unmigrated_repo.subscribe_to_changes(EntityType.TRIP, record)
        with pytest.raises(PersistenceError):
            await unmigrated_repo.create_trip(make_trip())
        assert events == []
