"""Redis async connection pool and refresh-signal publisher."""

from __future__ import annotations

import json
import logging

import redis.asyncio as aioredis

from carpool.config import settings

logger = logging.getLogger(__name__)

_pool = aioredis.ConnectionPool.from_url(
    settings.redis_url, decode_responses=True
)


def get_redis() -> aioredis.Redis:
    """Return a Redis client backed by the shared connection pool."""
    return aioredis.Redis(connection_pool=_pool)


async def publish_refresh(
    client: aioredis.Redis, channel: str, payload: dict
) -> None:
    """Tell downstream consumers (UIs, caches) that lifecycle data changed."""
    try:
        await client.publish(channel, json.dumps(payload))
    except aioredis.RedisError:
        logger.warning("Could not publish refresh signal on %s", channel, exc_info=True)
