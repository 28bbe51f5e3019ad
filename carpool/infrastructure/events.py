"""
In-process change feed.

The SQL repository publishes a ``ChangeEvent`` after every committed write;
subscribers (the notification dispatcher, UI refreshers) register per entity
type.  A failing subscriber is logged and never affects the write that
produced the event, nor the other subscribers.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from carpool.domain.entities import ChangeEvent
from carpool.domain.enums import EntityType
from carpool.domain.repository import ChangeCallback, Unsubscribe

logger = logging.getLogger(__name__)


class ChangeFeed:
    def __init__(self) -> None:
        self._subscribers: dict[EntityType, list[ChangeCallback]] = defaultdict(list)

    def subscribe(self, entity_type: EntityType, callback: ChangeCallback) -> Unsubscribe:
        self._subscribers[entity_type].append(callback)

        def unsubscribe() -> None:
            try:
                self._subscribers[entity_type].remove(callback)
            except ValueError:
                pass

        return unsubscribe

    async def publish(self, event: ChangeEvent) -> None:
        for callback in list(self._subscribers[event.entity_type]):
            try:
                await callback(event)
            except Exception:
                logger.exception(
                    "Change subscriber failed for %s %s",
                    event.entity_type.value,
                    event.kind.value,
                )
