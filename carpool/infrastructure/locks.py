"""
Redis-based distributed lock.

Held by the reconciliation worker for the duration of a tick so that, when
several API processes each run the worker, only one of them reconciles at a
time.  Reconciliation is idempotent, so the lock saves duplicate work rather
than guarding correctness.

Acquire is ``SET key token NX EX ttl``; release is a Lua check-and-delete so a
process never removes a lock that expired and was taken by someone else.
"""

from __future__ import annotations

import uuid

import redis.asyncio as aioredis

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class DistributedLock:
    def __init__(
        self, client: aioredis.Redis, name: str, ttl_seconds: int = 60
    ):
        self.redis = client
        self.key = f"carpool:lock:{name}"
        self.ttl = ttl_seconds
        self.token = uuid.uuid4().hex

    async def acquire(self) -> bool:
        """Try once; ``False`` means another holder has it."""
        return bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )

    async def release(self) -> bool:
        """Release if still ours. Returns whether anything was deleted."""
        return bool(await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token))
