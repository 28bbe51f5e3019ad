"""
Background Reconciliation Worker
================================

Runs every ``RECONCILIATION_INTERVAL_SECONDS`` (default 60 s) and rewrites
statuses that wall-clock time has made stale.

Concurrency safety
------------------
* **Redis distributed lock** (optional) keeps several API processes from
  reconciling at the same moment.  If Redis is unreachable the tick runs
  anyway: every write is idempotent.
* **Conditional updates**: each status write only applies if the stored
  status is still the one the decision was made from, so a concurrent manual
  action always wins and the item is simply looked at again next tick.

Algorithm per tick
------------------
1. Fetch all non-terminal trips and persist ``next_status`` where it differs.
2. Fetch every PENDING / CONFIRMED / PICKED_UP booking and apply the automatic
   booking transitions against its trip's current status and arrival time.
3. If anything changed, fire the refresh hook.

Every item is independent: a failure is logged and the tick moves on.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional

from carpool.domain.booking_lifecycle import automatic_booking_status
from carpool.domain.clock import Clock
from carpool.domain.entities import Trip
from carpool.domain.enums import RECONCILABLE_BOOKING_STATUSES
from carpool.domain.repository import Repository
from carpool.domain.trip_lifecycle import TripLifecycleEngine
from carpool.infrastructure.locks import DistributedLock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusChange:
    entity_id: str
    code: str
    old: str
    new: str


@dataclass
class ReconciliationReport:
    started_at: datetime
    trips: list[StatusChange] = field(default_factory=list)
    bookings: list[StatusChange] = field(default_factory=list)
    failures: int = 0
    skipped: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.trips or self.bookings)


RefreshHook = Callable[[ReconciliationReport], Awaitable[None]]
LockFactory = Callable[[], DistributedLock]


class ReconciliationWorker:
    def __init__(
        self,
        repo: Repository,
        clock: Clock,
        engine: Optional[TripLifecycleEngine] = None,
        interval_seconds: float = 60,
        lock_factory: Optional[LockFactory] = None,
        on_changes: Optional[RefreshHook] = None,
    ):
        self.repo = repo
        self.clock = clock
        self.engine = engine or TripLifecycleEngine()
        self.interval_seconds = interval_seconds
        self.lock_factory = lock_factory
        self.on_changes = on_changes
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    # ── Public API ────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "Reconciliation worker started (interval=%ss)", self.interval_seconds
        )

    async def stop(self) -> None:
        """Stop between ticks; a tick in progress is allowed to finish."""
        if self._stop_event:
            self._stop_event.set()
        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                logger.warning("Reconciliation tick did not finish in time; cancelling")
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Reconciliation worker stopped")

    async def run_once(self) -> ReconciliationReport:
        """Execute one tick and report what changed."""
        lock = await self._acquire_lock()
        if lock is False:
            logger.debug("Lock held by another worker – skipping tick")
            return ReconciliationReport(started_at=self.clock.now(), skipped=True)

        try:
            report = await self._reconcile(self.clock.now())
        finally:
            if lock is not None:
                try:
                    await lock.release()
                except Exception:
                    logger.warning("Could not release reconciliation lock", exc_info=True)

        if report.changed:
            logger.info(
                "Reconciliation: %d trip(s), %d booking(s) updated, %d failure(s)",
                len(report.trips),
                len(report.bookings),
                report.failures,
            )
            if self.on_changes is not None:
                try:
                    await self.on_changes(report)
                except Exception:
                    logger.exception("Refresh hook failed")
        return report

    # ── Internals ─────────────────────────────────────────────────────

    async def _loop(self) -> None:
        """Periodic loop: run a tick then sleep."""
        assert self._stop_event is not None
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception:
                logger.exception("Unhandled error in reconciliation tick")
            # Wait for the interval or until stop is signalled
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.interval_seconds
                )
                break
            except asyncio.TimeoutError:
                pass  # next tick

    async def _acquire_lock(self):
        """The held lock, ``None`` when running unlocked, ``False`` when taken."""
        if self.lock_factory is None:
            return None
        lock = self.lock_factory()
        try:
            acquired = await lock.acquire()
        except Exception:
            logger.warning("Reconciliation lock unavailable; running unlocked", exc_info=True)
            return None
        return lock if acquired else False

    async def _reconcile(self, now: datetime) -> ReconciliationReport:
        report = ReconciliationReport(started_at=now)
        trips: dict[str, Optional[Trip]] = {}

        # 1. Trips
        for trip in await self.repo.list_active_trips():
            trips[trip.id] = trip
            target = self.engine.next_status(trip, now)
            if target is trip.status:
                continue
            try:
                updated = await self.repo.update_trip(
                    trip.id, {"status": target}, expected_status=trip.status
                )
            except Exception:
                report.failures += 1
                logger.exception("Could not move trip %s to %s", trip.code, target.value)
                continue
            trips[trip.id] = updated
            report.trips.append(
                StatusChange(trip.id, trip.code, trip.status.value, target.value)
            )

        # 2. Bookings
        bookings = await self.repo.list_bookings_by_status(
            RECONCILABLE_BOOKING_STATUSES
        )
        for booking in bookings:
            try:
                trip = await self._trip_for(booking.trip_id, trips)
                if trip is None:
                    continue
                target = automatic_booking_status(
                    booking,
                    self.engine.next_status(trip, now),
                    self.engine.arrival_for(trip),
                    now,
                )
                if target is None:
                    continue
                await self.repo.update_booking(
                    booking.id, {"status": target}, expected_status=booking.status
                )
            except Exception:
                report.failures += 1
                logger.exception("Could not reconcile booking %s", booking.code)
                continue
            report.bookings.append(
                StatusChange(
                    booking.id, booking.code, booking.status.value, target.value
                )
            )
        return report

    async def _trip_for(
        self, trip_id: str, cache: dict[str, Optional[Trip]]
    ) -> Optional[Trip]:
        # Terminal trips are not in the active list but still own bookings.
        if trip_id not in cache:
            cache[trip_id] = await self.repo.get_trip(trip_id)
            if cache[trip_id] is None:
                logger.warning("Booking references missing trip %s", trip_id)
        return cache[trip_id]
