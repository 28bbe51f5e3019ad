"""Notification dispatcher, inboxes and sinks."""

from __future__ import annotations

import json
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest

from carpool.domain.clock import FixedClock
from carpool.domain.entities import ChangeEvent
from carpool.domain.enums import (
    BookingStatus,
    ChangeKind,
    EntityType,
    NotificationSeverity,
)
from carpool.infrastructure.inbox import RedisInbox
from carpool.services.notifications import (
    MemoryInbox,
    Notification,
    NotificationDispatcher,
)
from tests.factories import NOW, make_booking, make_trip


def _dispatcher(repo=None, inbox=None, sink=None):
    return NotificationDispatcher(
        repo or AsyncMock(),
        inbox or MemoryInbox(),
        sink=sink or AsyncMock(),
        clock=FixedClock(NOW),
    )


class TestStatusChangeNotifications:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,label",
        [
            (BookingStatus.CONFIRMED, "approved"),
            (BookingStatus.REJECTED, "declined"),
            (BookingStatus.EXPIRED, "expired"),
            (BookingStatus.CANCELLED, "cancelled"),
        ],
    )
    async def test_passenger_told_about_status(self, status, label):
        inbox = MemoryInbox()
        dispatcher = _dispatcher(inbox=inbox)
        old = make_booking(make_trip(), passenger_id="passenger-7")
        new = replace(old, status=status)

        await dispatcher.handle(ChangeEvent(EntityType.BOOKING, ChangeKind.UPDATE, new=new, old=old))

        [notification] = await inbox.list("passenger-7")
        assert notification.title == "Booking update"
        assert notification.message == f"Your booking {new.code} has been {label}."
        expected = (
            NotificationSeverity.SUCCESS
            if status is BookingStatus.CONFIRMED
            else NotificationSeverity.WARNING
        )
        assert notification.severity == expected

    @pytest.mark.asyncio
    async def test_unchanged_status_is_silent(self):
        inbox = MemoryInbox()
        dispatcher = _dispatcher(inbox=inbox)
        booking = make_booking(make_trip())

        await dispatcher.handle(
            ChangeEvent(EntityType.BOOKING, ChangeKind.UPDATE, new=booking, old=booking)
        )

        assert await inbox.list(booking.passenger_id) == []


class TestNewBookingNotifications:
    @pytest.mark.asyncio
    async def test_driver_and_passenger_are_told(self):
        trip = make_trip(driver_id="driver-9")
        repo = AsyncMock()
        repo.get_trip = AsyncMock(return_value=trip)
        inbox = MemoryInbox()
        sink = AsyncMock()
        dispatcher = _dispatcher(repo=repo, inbox=inbox, sink=sink)
        booking = make_booking(trip, passenger_id="passenger-3", seats_booked=2)

        await dispatcher.handle(ChangeEvent(EntityType.BOOKING, ChangeKind.INSERT, new=booking))

        [to_driver] = await inbox.list("driver-9")
        assert to_driver.title == "New booking request"
        assert to_driver.message == (
            "A passenger just booked 2 seats. Please review the booking."
        )
        assert to_driver.severity == NotificationSeverity.INFO

        [to_passenger] = await inbox.list("passenger-3")
        assert to_passenger.title == "Booking placed"
        assert sink.emit.await_count == 2

    @pytest.mark.asyncio
    async def test_single_seat_wording(self):
        trip = make_trip(driver_id="driver-9")
        repo = AsyncMock()
        repo.get_trip = AsyncMock(return_value=trip)
        inbox = MemoryInbox()
        dispatcher = _dispatcher(repo=repo, inbox=inbox)

        await dispatcher.handle(
            ChangeEvent(EntityType.BOOKING, ChangeKind.INSERT, new=make_booking(trip))
        )

        [to_driver] = await inbox.list("driver-9")
        assert "booked 1 seat." in to_driver.message

    @pytest.mark.asyncio
    async def test_end_to_end_through_repository(self, services, post_trip):
        trip = await post_trip(driver_id="driver-5")
        booking = await services.bookings.create_booking(trip.id, "passenger-5", 1)
        await services.bookings.transition_booking(booking.id, BookingStatus.CONFIRMED)

        inbox = services.dispatcher.inbox
        titles = [n.title for n in await inbox.list("passenger-5")]
        assert titles == ["Booking update", "Booking placed"]
        assert [n.title for n in await inbox.list("driver-5")] == ["New booking request"]


class TestDeliveryFailures:
    @pytest.mark.asyncio
    async def test_failing_sink_does_not_raise(self):
        inbox = MemoryInbox()
        sink = MagicMock()
        sink.emit = AsyncMock(side_effect=RuntimeError("smtp down"))
        dispatcher = _dispatcher(inbox=inbox, sink=sink)

        await dispatcher.notify("passenger-1", "Hello", "World")

        assert len(await inbox.list("passenger-1")) == 1

    @pytest.mark.asyncio
    async def test_failing_inbox_still_delivers(self):
        inbox = MagicMock()
        inbox.add = AsyncMock(side_effect=RuntimeError("redis down"))
        sink = AsyncMock()
        dispatcher = _dispatcher(inbox=inbox, sink=sink)

        await dispatcher.notify("passenger-1", "Hello", "World")

        sink.emit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_dispatcher_never_blocks_writes(self, services, post_trip):
        services.dispatcher.inbox = MagicMock()
        services.dispatcher.inbox.add = AsyncMock(side_effect=RuntimeError("down"))
        services.dispatcher.sink = MagicMock()
        services.dispatcher.sink.emit = AsyncMock(side_effect=RuntimeError("down"))
        trip = await post_trip()

        booking = await services.bookings.create_booking(trip.id, "passenger-1", 1)

        assert (await services.repo.get_booking(booking.id)) is not None


class TestMemoryInbox:
    @pytest.mark.asyncio
    async def test_keeps_newest_twenty(self):
        inbox = MemoryInbox(limit=20)
        dispatcher = _dispatcher(inbox=inbox)
        for i in range(25):
            await dispatcher.notify("passenger-1", "n", f"message {i}")

        items = await inbox.list("passenger-1")
        assert len(items) == 20
        assert items[0].message == "message 24"
        assert items[-1].message == "message 5"

    @pytest.mark.asyncio
    async def test_mark_read(self):
        inbox = MemoryInbox()
        notification = await _dispatcher(inbox=inbox).notify("passenger-1", "n", "m")

        assert await inbox.mark_read("passenger-1", notification.id) is True
        assert (await inbox.list("passenger-1"))[0].read is True
        assert await inbox.mark_read("passenger-1", "unknown") is False
        assert await inbox.mark_read("nobody", notification.id) is False


class TestRedisInbox:
    @pytest.mark.asyncio
    async def test_add_pushes_and_trims(self):
        pipe = MagicMock()
        pipe.execute = AsyncMock()
        pipeline_cm = MagicMock()
        pipeline_cm.__aenter__ = AsyncMock(return_value=pipe)
        pipeline_cm.__aexit__ = AsyncMock(return_value=False)
        mock_redis = MagicMock()
        mock_redis.pipeline = MagicMock(return_value=pipeline_cm)

        inbox = RedisInbox(mock_redis, limit=20)
        await inbox.add(
            Notification("passenger-1", "t", "m", NotificationSeverity.INFO, NOW)
        )

        key = "carpool:inbox:passenger-1"
        assert pipe.lpush.call_args.args[0] == key
        pipe.ltrim.assert_called_once_with(key, 0, 19)
        pipe.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_list_and_mark_read(self):
        stored = Notification("passenger-1", "t", "m", NotificationSeverity.WARNING, NOW)
        raw = json.dumps(
            {
                "id": stored.id,
                "recipient_id": "passenger-1",
                "title": "t",
                "message": "m",
                "severity": "warning",
                "timestamp": NOW.isoformat(),
                "read": False,
            }
        )
        mock_redis = AsyncMock()
        mock_redis.lrange = AsyncMock(return_value=[raw])

        inbox = RedisInbox(mock_redis)
        [loaded] = await inbox.list("passenger-1")
        assert loaded == stored

        assert await inbox.mark_read("passenger-1", stored.id) is True
        index, payload = mock_redis.lset.await_args.args[1:]
        assert index == 0
        assert json.loads(payload)["read"] is True

    @pytest.mark.asyncio
    async def test_pushed_entry_lists_back_unchanged(self):
        pipe = MagicMock()
        pipe.execute = AsyncMock()
        pipeline_cm = MagicMock()
        pipeline_cm.__aenter__ = AsyncMock(return_value=pipe)
        pipeline_cm.__aexit__ = AsyncMock(return_value=False)
        mock_redis = MagicMock()
        mock_redis.pipeline = MagicMock(return_value=pipeline_cm)
        sent = Notification("driver-3", "New booking", "m", NotificationSeverity.SUCCESS, NOW)

        inbox = RedisInbox(mock_redis)
        await inbox.add(sent)
        payload = pipe.lpush.call_args.args[1]
        mock_redis.lrange = AsyncMock(return_value=[payload])

        assert json.loads(payload)["severity"] == "success"
        assert await inbox.list("driver-3") == [sent]
