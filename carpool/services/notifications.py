"""
Notification Dispatcher
=======================

Listens to booking changes on the repository feed and turns them into
user-facing notifications:

* booking status changed   -> the passenger ("Your booking S1A2B3 has been approved.")
* booking created          -> the trip's driver, plus an acknowledgement to
                              the passenger

Each notification is stored in a bounded per-recipient inbox (newest first,
oldest dropped) and handed to a ``NotificationSink`` for delivery.  Delivery
is fire-and-forget: a failing sink or inbox is logged and never reaches the
write that triggered it.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from carpool.domain.clock import Clock, SystemClock
from carpool.domain.entities import Booking, ChangeEvent
from carpool.domain.enums import (
    BookingStatus,
    ChangeKind,
    EntityType,
    NotificationSeverity,
)
from carpool.domain.repository import Repository, Unsubscribe

logger = logging.getLogger(__name__)

STATUS_LABELS: dict[BookingStatus, str] = {
    BookingStatus.CONFIRMED: "approved",
    BookingStatus.REJECTED: "declined",
    BookingStatus.EXPIRED: "expired",
    BookingStatus.CANCELLED: "cancelled",
    BookingStatus.PICKED_UP: "picked up",
    BookingStatus.ON_BOARD: "marked on board",
}


@dataclass(frozen=True)
class Notification:
    recipient_id: str
    title: str
    message: str
    severity: NotificationSeverity
    timestamp: datetime
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:9])
    read: bool = False


# ── Sinks ─────────────────────────────────────────────────────────────


class NotificationSink(ABC):
    @abstractmethod
    async def emit(
        self,
        recipient_id: str,
        title: str,
        message: str,
        severity: NotificationSeverity,
    ) -> None: ...


class LoggingNotificationSink(NotificationSink):
    """Default sink: delivery transport is someone else's concern."""

    async def emit(self, recipient_id, title, message, severity) -> None:
        logger.info("[%s] -> %s: %s | %s", severity.value, recipient_id, title, message)


# ── Inboxes ───────────────────────────────────────────────────────────


class Inbox(ABC):
    @abstractmethod
    async def add(self, notification: Notification) -> None: ...

    @abstractmethod
    async def list(self, recipient_id: str) -> list[Notification]:
        """Newest first."""

    @abstractmethod
    async def mark_read(self, recipient_id: str, notification_id: str) -> bool: ...


class MemoryInbox(Inbox):
    def __init__(self, limit: int = 20):
        self.limit = limit
        self._items: dict[str, deque[Notification]] = defaultdict(
            lambda: deque(maxlen=self.limit)
        )

    async def add(self, notification: Notification) -> None:
        self._items[notification.recipient_id].appendleft(notification)

    async def list(self, recipient_id: str) -> list[Notification]:
        return list(self._items.get(recipient_id, ()))

    async def mark_read(self, recipient_id: str, notification_id: str) -> bool:
        items = self._items.get(recipient_id)
        if not items:
            return False
        for i, n in enumerate(items):
            if n.id == notification_id:
                items[i] = replace(n, read=True)
                return True
        return False


# ── Dispatcher ────────────────────────────────────────────────────────


class NotificationDispatcher:
    def __init__(
        self,
        repo: Repository,
        inbox: Inbox,
        sink: Optional[NotificationSink] = None,
        clock: Optional[Clock] = None,
    ):
        self.repo = repo
        self.inbox = inbox
        self.sink = sink or LoggingNotificationSink()
        self.clock = clock or SystemClock()
        self._unsubscribe: Optional[Unsubscribe] = None

    def attach(self) -> None:
        """Start listening to booking changes."""
        if self._unsubscribe is None:
            self._unsubscribe = self.repo.subscribe_to_changes(
                EntityType.BOOKING, self.handle
            )

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def handle(self, event: ChangeEvent) -> None:
        try:
            if event.kind is ChangeKind.UPDATE:
                await self._on_booking_updated(event.old, event.new)
            elif event.kind is ChangeKind.INSERT:
                await self._on_booking_created(event.new)
        except Exception:
            logger.exception("Failed to build notifications for %s", event.kind.value)

    async def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        severity: NotificationSeverity = NotificationSeverity.INFO,
    ) -> Notification:
        notification = Notification(
            recipient_id=recipient_id,
            title=title,
            message=message,
            severity=severity,
            timestamp=self.clock.now(),
        )
        try:
            await self.inbox.add(notification)
        except Exception:
            logger.exception("Inbox write failed for %s", recipient_id)
        try:
            await self.sink.emit(recipient_id, title, message, severity)
        except Exception:
            logger.exception("Notification delivery failed for %s", recipient_id)
        return notification

    async def _on_booking_updated(
        self, old: Optional[Booking], new: Optional[Booking]
    ) -> None:
        if old is None or new is None or old.status is new.status:
            return
        label = STATUS_LABELS.get(new.status, new.status.value)
        severity = (
            NotificationSeverity.SUCCESS
            if new.status is BookingStatus.CONFIRMED
            else NotificationSeverity.WARNING
        )
        await self.notify(
            new.passenger_id,
            "Booking update",
            f"Your booking {new.code} has been {label}.",
            severity,
        )

    async def _on_booking_created(self, booking: Optional[Booking]) -> None:
        if booking is None:
            return
        await self.notify(
            booking.passenger_id,
            "Booking placed",
            "Your request is waiting for the driver's approval.",
            NotificationSeverity.SUCCESS,
        )
        trip = await self.repo.get_trip(booking.trip_id)
        if trip is None or not trip.driver_id:
            return
        noun = "seat" if booking.seats_booked == 1 else "seats"
        await self.notify(
            trip.driver_id,
            "New booking request",
            f"A passenger just booked {booking.seats_booked} {noun}. "
            "Please review the booking.",
            NotificationSeverity.INFO,
        )
