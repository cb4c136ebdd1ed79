"""Tests for cache backends and key layout."""

from __future__ import annotations

import json
import time
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from drivegate.cache import CacheBackend, CacheKeys, MemoryCache, NullCache
from drivegate.cache.invalidation import ALL_NAMESPACES
from drivegate.cache.keys import ENTITY_TTLS
from drivegate.cache.redis import RedisCache


async def _aiter(items):
    for item in items:
        yield item


# ---------------------------------------------------------------------------
# CacheKeys
# ---------------------------------------------------------------------------


class TestCacheKeys:
    def test_user_scoped_key(self):
        keys = CacheKeys()
        assert keys.key("files", "list:root", "alice") == "drivegate:files:user:alice:list:root"

    def test_public_scope(self):
        keys = CacheKeys(prefix="app")
        assert keys.key("folder", "d1") == "app:folder:public:d1"
        assert keys.pattern("folder") == "app:folder:public:*"

    def test_patterns(self):
        keys = CacheKeys()
        assert keys.pattern("files", "bob") == "drivegate:files:user:bob:*"
        assert keys.entity_pattern("folders-tree") == "drivegate:folders-tree:*"

    def test_ttls(self):
        keys = CacheKeys(ttls={"files": 10})
        assert keys.should_cache("files")
        assert not keys.should_cache("folders")
        assert keys.ttl("files") == 10

    def test_default_ttls_cover_cached_namespaces(self):
        assert set(ENTITY_TTLS) == set(ALL_NAMESPACES)


# ---------------------------------------------------------------------------
# MemoryCache / NullCache
# ---------------------------------------------------------------------------


class TestMemoryCache:
    def test_satisfies_protocol(self):
        assert isinstance(MemoryCache(), CacheBackend)
        assert isinstance(NullCache(), CacheBackend)

    async def test_set_get_delete(self):
        cache = MemoryCache()
        await cache.set("k", {"a": 1})
        assert await cache.get("k") == {"a": 1}
        assert await cache.delete("k") is True
        assert await cache.get("k") is None
        assert await cache.delete("k") is False

    async def test_expired_entry_is_a_miss(self):
        cache = MemoryCache()
        await cache.set("k", 1, ttl_seconds=60)
        cache._entries["k"] = (1, time.monotonic() - 1)
        assert await cache.get("k") is None
        assert cache.keys() == []

    async def test_delete_pattern(self):
        cache = MemoryCache()
        await cache.set("drivegate:files:user:bob:list:root", [])
        await cache.set("drivegate:files:user:carol:list:root", [])
        await cache.set("drivegate:folders:user:bob:list:root", [])

        assert await cache.delete_pattern("drivegate:files:user:bob:*") == 1
        assert sorted(cache.keys()) == [
            "drivegate:files:user:carol:list:root",
            "drivegate:folders:user:bob:list:root",
        ]

    async def test_flush(self):
        cache = MemoryCache()
        await cache.set("a", 1)
        assert await cache.flush() is True
        assert cache.keys() == []

    async def test_null_cache_stores_nothing(self):
        cache = NullCache()
        assert await cache.set("k", 1) is False
        assert await cache.get("k") is None
        assert await cache.delete_pattern("*") == 0


# ---------------------------------------------------------------------------
# RedisCache
# ---------------------------------------------------------------------------


@pytest.fixture
def redis_client() -> MagicMock:
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.flushdb = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    return client


class TestRedisCache:
    async def test_get_decodes_json(self, redis_client: MagicMock):
        redis_client.get.return_value = json.dumps({"a": 1})
        cache = RedisCache(redis_client)
        assert await cache.get("k") == {"a": 1}
        redis_client.get.assert_awaited_once_with("k")

    async def test_get_miss(self, redis_client: MagicMock):
        assert await RedisCache(redis_client).get("k") is None

    async def test_get_undecodable(self, redis_client: MagicMock):
        redis_client.get.return_value = "{not json"
        assert await RedisCache(redis_client).get("k") is None

    async def test_connection_error_is_a_miss(self, redis_client: MagicMock):
        redis_client.get.side_effect = RedisConnectionError("down")
        assert await RedisCache(redis_client).get("k") is None

    async def test_set_with_ttl(self, redis_client: MagicMock):
        cache = RedisCache(redis_client)
        assert await cache.set("k", [1, 2], ttl_seconds=60) is True
        redis_client.set.assert_awaited_once_with("k", "[1, 2]", ex=60)

    async def test_set_without_ttl(self, redis_client: MagicMock):
        await RedisCache(redis_client).set("k", "v")
        redis_client.set.assert_awaited_once_with("k", '"v"')

    async def test_set_failure(self, redis_client: MagicMock):
        redis_client.set.side_effect = RedisConnectionError("down")
        assert await RedisCache(redis_client).set("k", 1) is False

    async def test_delete_pattern_scans(self, redis_client: MagicMock):
        redis_client.scan_iter = MagicMock(return_value=_aiter(["a:1", "a:2"]))
        redis_client.delete.return_value = 2
        cache = RedisCache(redis_client)

        assert await cache.delete_pattern("a:*") == 2
        redis_client.scan_iter.assert_called_once_with(match="a:*")
        redis_client.delete.assert_awaited_once_with("a:1", "a:2")

    async def test_delete_pattern_no_matches(self, redis_client: MagicMock):
        redis_client.scan_iter = MagicMock(return_value=_aiter([]))
        assert await RedisCache(redis_client).delete_pattern("a:*") == 0
        redis_client.delete.assert_not_awaited()

    async def test_flush_and_close(self, redis_client: MagicMock):
        cache = RedisCache(redis_client)
        assert await cache.flush() is True
        await cache.close()
        redis_client.aclose.assert_awaited_once()
