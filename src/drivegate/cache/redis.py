"""RedisCache — ``redis.asyncio`` cache backend."""

from __future__ import annotations

import json
import logging
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

_DELETE_BATCH_SIZE = 500


class RedisCache:
    """Redis-backed cache storing JSON values.

    Connection or command failures are logged and reported as a miss or
    a no-op; they never reach the caller.

    Usage::

        cache = RedisCache.from_url("redis://localhost:6379/0")
        await cache.set("k", {"a": 1}, ttl_seconds=60)
        await cache.delete_pattern("drivegate:files:*")
        await cache.close()
    """

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisCache:
        return cls(Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._client.get(key)
        except RedisError:
            logger.warning("Redis get failed for %s", key, exc_info=True)
            return None
        if raw is None:
            logger.debug("Redis cache miss: %s", key)
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        try:
            payload = json.dumps(value)
            if ttl_seconds and ttl_seconds > 0:
                await self._client.set(key, payload, ex=ttl_seconds)
            else:
                await self._client.set(key, payload)
        except (RedisError, TypeError, ValueError):
            logger.warning("Redis set failed for %s", key, exc_info=True)
            return False
        return True

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self._client.delete(key))
        except RedisError:
            logger.warning("Redis delete failed for %s", key, exc_info=True)
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """Delete matching keys using ``SCAN`` rather than ``KEYS``."""
        deleted = 0
        batch: list[str] = []
        try:
            async for key in self._client.scan_iter(match=pattern):
                batch.append(key)
                if len(batch) >= _DELETE_BATCH_SIZE:
                    deleted += await self._client.delete(*batch)
                    batch.clear()
            if batch:
                deleted += await self._client.delete(*batch)
        except RedisError:
            logger.warning("Redis pattern delete failed for %s", pattern, exc_info=True)
            return deleted
        logger.debug("Redis pattern delete %s: %d", pattern, deleted)
        return deleted

    async def flush(self) -> bool:
        try:
            await self._client.flushdb()
        except RedisError:
            logger.warning("Redis flush failed", exc_info=True)
            return False
        return True

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except RedisError:
            logger.debug("Redis close failed", exc_info=True)
