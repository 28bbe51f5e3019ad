"""
Composition root.

Builds the application services from a session factory and the settings.
Nothing here is process-global: tests build their own ``Services`` with a
SQLite session factory and a ``FixedClock``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from carpool.config import Settings, settings as default_settings
from carpool.domain.clock import Clock, SystemClock
from carpool.domain.enums import TripKind
from carpool.domain.repository import Repository
from carpool.domain.trip_lifecycle import TripLifecycleEngine, fullness_rule
from carpool.infrastructure.events import ChangeFeed
from carpool.infrastructure.inbox import RedisInbox
from carpool.infrastructure.locks import DistributedLock
from carpool.infrastructure.redis_client import publish_refresh
from carpool.infrastructure.repositories import SqlRepository
from carpool.services.bookings import BookingService
from carpool.services.ledger import SeatLedger
from carpool.services.notifications import (
    Inbox,
    MemoryInbox,
    NotificationDispatcher,
    NotificationSink,
)
from carpool.services.trips import TripService
from carpool.workers.reconciler import ReconciliationReport, ReconciliationWorker


@dataclass
class Services:
    repo: Repository
    clock: Clock
    ledger: SeatLedger
    bookings: BookingService
    trips: TripService
    dispatcher: NotificationDispatcher
    worker: ReconciliationWorker


def build_engine(config: Settings) -> TripLifecycleEngine:
    return TripLifecycleEngine(
        urgent_window=timedelta(minutes=config.urgent_window_minutes),
        default_duration=timedelta(hours=config.default_trip_duration_hours),
        fullness={TripKind.REQUEST: fullness_rule(config.request_trip_fullness)},
    )


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    config: Settings = default_settings,
    clock: Optional[Clock] = None,
    redis: Optional[aioredis.Redis] = None,
    inbox: Optional[Inbox] = None,
    sink: Optional[NotificationSink] = None,
) -> Services:
    clock = clock or SystemClock()
    repo = SqlRepository(session_factory, ChangeFeed())
    engine = build_engine(config)

    ledger = SeatLedger(repo, max_retries=config.ledger_max_retries)
    bookings = BookingService(repo, ledger, clock, engine)
    trips = TripService(repo, bookings, clock, engine)

    if inbox is None:
        if config.notification_backend == "redis" and redis is not None:
            inbox = RedisInbox(redis, limit=config.notification_history_limit)
        else:
            inbox = MemoryInbox(limit=config.notification_history_limit)
    dispatcher = NotificationDispatcher(repo, inbox, sink=sink, clock=clock)
    dispatcher.attach()

    lock_factory = None
    on_changes = None
    if redis is not None:

        def lock_factory() -> DistributedLock:
            return DistributedLock(
                redis, "reconciliation", ttl_seconds=config.reconciliation_lock_ttl_seconds
            )

        async def on_changes(report: ReconciliationReport) -> None:
            await publish_refresh(
                redis,
                config.refresh_channel,
                {
                    "at": report.started_at.isoformat(),
                    "trips": [c.entity_id for c in report.trips],
                    "bookings": [c.entity_id for c in report.bookings],
                },
            )

    worker = ReconciliationWorker(
        repo,
        clock,
        engine,
        interval_seconds=config.reconciliation_interval_seconds,
        lock_factory=lock_factory,
        on_changes=on_changes,
    )
    return Services(
        repo=repo,
        clock=clock,
        ledger=ledger,
        bookings=bookings,
        trips=trips,
        dispatcher=dispatcher,
        worker=worker,
    )
