"""Redis-backed notification inbox (one capped list per recipient)."""

from __future__ import annotations

from dataclasses import replace

import redis.asyncio as aioredis
from pydantic import TypeAdapter

from carpool.services.notifications import Inbox, Notification

_codec = TypeAdapter(Notification)


class RedisInbox(Inbox):
    """LPUSH + LTRIM keeps the newest ``limit`` entries."""

    def __init__(self, client: aioredis.Redis, limit: int = 20):
        self.redis = client
        self.limit = limit

    @staticmethod
    def _key(recipient_id: str) -> str:
        return f"carpool:inbox:{recipient_id}"

    async def add(self, notification: Notification) -> None:
        key = self._key(notification.recipient_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.lpush(key, _codec.dump_json(notification))
            pipe.ltrim(key, 0, self.limit - 1)
            await pipe.execute()

    async def list(self, recipient_id: str) -> list[Notification]:
        raw = await self.redis.lrange(self._key(recipient_id), 0, -1)
        return [_codec.validate_json(r) for r in raw]

    async def mark_read(self, recipient_id: str, notification_id: str) -> bool:
        key = self._key(recipient_id)
        raw = await self.redis.lrange(key, 0, -1)
        for index, item in enumerate(raw):
            n = _codec.validate_json(item)
            if n.id == notification_id:
                if not n.read:
                    await self.redis.lset(
                        key, index, _codec.dump_json(replace(n, read=True))
                    )
                return True
        return False
