"""Tests for CacheInvalidator — which patterns each mutation evicts."""

from __future__ import annotations

import pytest

from drivegate.cache import CacheInvalidator, CacheKeys, MemoryCache
from drivegate.cache.invalidation import ALL_NAMESPACES
from drivegate.events import DriveEvent, EventBus, EventType


@pytest.fixture
def keys() -> CacheKeys:
    return CacheKeys()


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def invalidator(cache: MemoryCache, keys: CacheKeys) -> CacheInvalidator:
    return CacheInvalidator(cache, keys)


async def _fill(cache: MemoryCache, keys: CacheKeys, entity: str, *users: str | None) -> None:
    for user in users:
        await cache.set(keys.key(entity, "list:root", user), [])


# ---------------------------------------------------------------------------
# patterns_for
# ---------------------------------------------------------------------------


class TestPatterns:
    def test_file_share_scopes(self, invalidator: CacheInvalidator):
        event = DriveEvent(
            EventType.FILE_SHARED, "f1", user_id="alice", owner_id="alice",
            recipients=("bob", "carol"),
        )
        patterns = invalidator.patterns_for(event)
        for user in ("alice", "bob", "carol"):
            assert f"drivegate:files:user:{user}:*" in patterns
            assert f"drivegate:file:user:{user}:*" in patterns
            assert f"drivegate:folders-tree:user:{user}:*" in patterns
        assert "drivegate:files:public:*" in patterns
        assert not any(p.startswith("drivegate:folders:") for p in patterns)
        assert len(patterns) == len(set(patterns))

    def test_folder_share_scopes(self, invalidator: CacheInvalidator):
        event = DriveEvent(
            EventType.FOLDER_UNSHARED, "d1", user_id="dave", owner_id="alice",
            recipients=("bob",),
        )
        patterns = invalidator.patterns_for(event)
        assert "drivegate:folders:user:dave:*" in patterns
        assert "drivegate:folder:user:alice:*" in patterns
        assert "drivegate:folders-tree:public:*" in patterns
        assert not any(p.startswith("drivegate:files:") for p in patterns)

    def test_structural_event_clears_every_scope(self, invalidator: CacheInvalidator):
        patterns = invalidator.patterns_for(DriveEvent(EventType.FOLDER_MOVED, "d1"))
        assert patterns == [
            "drivegate:files:*",
            "drivegate:file:*",
            "drivegate:folders:*",
            "drivegate:folder:*",
            "drivegate:folders-tree:*",
        ]


# ---------------------------------------------------------------------------
# on_event
# ---------------------------------------------------------------------------


class TestOnEvent:
    async def test_share_evicts_only_involved_actors(
        self, invalidator: CacheInvalidator, cache: MemoryCache, keys: CacheKeys
    ):
        await _fill(cache, keys, "files", "alice", "bob", "dave", None)

        await invalidator.on_event(
            DriveEvent(
                EventType.FILE_SHARED, "f1", user_id="alice", owner_id="alice",
                recipients=("bob",),
            )
        )
        assert cache.keys() == [keys.key("files", "list:root", "dave")]

    async def test_registered_on_bus(
        self, invalidator: CacheInvalidator, cache: MemoryCache, keys: CacheKeys
    ):
        bus = EventBus()
        invalidator.register(bus)
        await _fill(cache, keys, "folders", "alice", "dave")

        await bus.emit(DriveEvent(EventType.FOLDER_RENAMED, "d1", user_id="alice"))
        assert cache.keys() == []

    async def test_file_share_advances_file_generations_only(
        self, invalidator: CacheInvalidator
    ):
        before = {ns: invalidator.generation(ns) for ns in ALL_NAMESPACES}

        await invalidator.on_event(
            DriveEvent(EventType.FILE_SHARED, "f1", user_id="alice", recipients=("bob",))
        )

        for ns in ("files", "file", "folders-tree"):
            assert invalidator.generation(ns) == before[ns] + 1
        for ns in ("folders", "folder"):
            assert invalidator.generation(ns) == before[ns]

    async def test_structural_event_advances_every_generation(
        self, invalidator: CacheInvalidator
    ):
        await invalidator.on_event(DriveEvent(EventType.FILE_DELETED, "f1"))
        await invalidator.on_event(DriveEvent(EventType.FOLDER_RENAMED, "d1"))
        assert [invalidator.generation(ns) for ns in ALL_NAMESPACES] == [2] * 5
