"""Seat inventory ledger: admission checks and compare-and-set retries."""

from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from carpool.domain.errors import (
    ConflictError,
    InsufficientCapacityError,
    NotFoundError,
)
from carpool.services.ledger import SeatLedger
from tests.factories import make_trip


def _repo_for(*reads):
    repo = AsyncMock()
    repo.get_trip = AsyncMock(side_effect=list(reads))
    return repo


class TestCheckCapacity:
    def test_enough_seats(self):
        SeatLedger.check_capacity(make_trip(available_seats=2), 2)

    def test_too_many_seats(self):
        with pytest.raises(InsufficientCapacityError) as exc_info:
            SeatLedger.check_capacity(make_trip(available_seats=1), 2)
        assert exc_info.value.code == "INSUFFICIENT_CAPACITY"


class TestAdjustAvailableSeats:
    @pytest.mark.asyncio
    async def test_compare_and_set_uses_value_read(self):
        trip = make_trip(available_seats=3)
        repo = _repo_for(trip)
        repo.adjust_available_seats = AsyncMock(return_value=replace(trip, available_seats=1))

        result = await SeatLedger(repo).adjust_available_seats(trip.id, -2)

        assert result.available_seats == 1
        repo.adjust_available_seats.assert_awaited_once_with(trip.id, -2, expected=3)

    @pytest.mark.asyncio
    async def test_lost_race_is_retried_with_fresh_read(self):
        stale = make_trip(available_seats=3)
        fresh = replace(stale, available_seats=2)
        repo = _repo_for(stale, fresh)
        repo.adjust_available_seats = AsyncMock(
            side_effect=[ConflictError("moved"), replace(fresh, available_seats=1)]
        )

        result = await SeatLedger(repo).adjust_available_seats(stale.id, -1)

        assert result.available_seats == 1
        assert repo.adjust_available_seats.await_args_list[1].kwargs == {"expected": 2}

    @pytest.mark.asyncio
    async def test_conflict_surfaces_after_retries(self):
        trip = make_trip(available_seats=3)
        repo = _repo_for(trip, trip)
        repo.adjust_available_seats = AsyncMock(side_effect=ConflictError("moved"))

        with pytest.raises(ConflictError):
            await SeatLedger(repo, max_retries=1).adjust_available_seats(trip.id, -1)
        assert repo.adjust_available_seats.await_count == 2

    @pytest.mark.asyncio
    async def test_retry_that_finds_no_seats_is_insufficient(self):
        stale = make_trip(available_seats=1)
        fresh = replace(stale, available_seats=0)
        repo = _repo_for(stale, fresh)
        repo.adjust_available_seats = AsyncMock(side_effect=ConflictError("moved"))

        with pytest.raises(InsufficientCapacityError):
            await SeatLedger(repo).adjust_available_seats(stale.id, -1)
        assert repo.adjust_available_seats.await_count == 1

    @pytest.mark.asyncio
    async def test_credit_beyond_capacity_is_refused(self):
        trip = make_trip(seats=4, available_seats=3)
        repo = _repo_for(trip)
        repo.adjust_available_seats = AsyncMock()

        with pytest.raises(ConflictError):
            await SeatLedger(repo).adjust_available_seats(trip.id, 2)
        repo.adjust_available_seats.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_zero_delta_writes_nothing(self):
        trip = make_trip()
        repo = _repo_for(trip)
        repo.adjust_available_seats = AsyncMock()

        assert await SeatLedger(repo).adjust_available_seats(trip.id, 0) is trip
        repo.adjust_available_seats.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_trip(self):
        repo = _repo_for(None)
        with pytest.raises(NotFoundError):
            await SeatLedger(repo).adjust_available_seats("nope", -1)
