from __future__ import annotations

from redis.asyncio import Redis

from bizflow.mobile.domain.entities import RateLimitEntry
from bizflow.mobile.domain.repositories import RateLimitStore
from bizflow.shared.logging import get_logger

logger = get_logger(__name__)


class RedisRateLimitStore(RateLimitStore):
    """
    Shared fixed-window counters for multi-instance deployments.

    INCR, PEXPIRE NX and PTTL run in one MULTI pipeline: the window's TTL is
    only set by the request that opened it, and Redis expires the key, so
    there is nothing to sweep.
    """

    def __init__(self, redis: Redis, *, prefix: str = "ratelimit:") -> None:
        self._redis = redis
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> "RedisRateLimitStore":
        return cls(Redis.from_url(url, decode_responses=True))

    async def hit(self, key: str, *, window_seconds: int, now: float) -> RateLimitEntry:
        redis_key = f"{self._prefix}{key}"
        window_ms = window_seconds * 1000
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.incr(redis_key, 1)
            pipe.pexpire(redis_key, window_ms, nx=True)
            pipe.pttl(redis_key)
            count, _, ttl_ms = await pipe.execute()

        if int(ttl_ms) < 0:
            # key lost its TTL (e.g. restored from a snapshot); start a fresh window
            await self._redis.pexpire(redis_key, window_ms)
            ttl_ms = window_ms
        return RateLimitEntry(count=int(count), reset_at=now + int(ttl_ms) / 1000.0)

    async def sweep(self, *, now: float, grace_seconds: float = 0.0) -> int:
        return 0

    async def close(self) -> None:
        await self._redis.aclose()
