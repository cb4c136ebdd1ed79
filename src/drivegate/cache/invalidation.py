"""CacheInvalidator — evicts every cache entry a mutation could have made stale.

Share and unshare events evict the per-actor scopes of the owner, the
acting user, and each recipient, plus the public scope.  Structural
events (create, rename, move, delete, visibility changes) may alter what
any recipient of any share sees, so they evict every scope of the
affected namespaces.  Both paths over-invalidate.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from drivegate.events import SHARE_EVENTS, EventType

if TYPE_CHECKING:
    from drivegate.cache.keys import CacheKeys
    from drivegate.cache.protocol import CacheBackend
    from drivegate.events import DriveEvent, EventBus

logger = logging.getLogger(__name__)

FILE_NAMESPACES = ("files", "file", "folders-tree")
FOLDER_NAMESPACES = ("folders", "folder", "folders-tree")
ALL_NAMESPACES = ("files", "file", "folders", "folder", "folders-tree")

_FILE_EVENTS = frozenset({
    EventType.FILE_SHARED,
    EventType.FILE_UNSHARED,
})


class CacheInvalidator:
    """Event handler translating drive events into pattern deletes."""

    def __init__(self, cache: CacheBackend, keys: CacheKeys) -> None:
        self._cache = cache
        self._keys = keys
        self._generations: dict[str, int] = dict.fromkeys(ALL_NAMESPACES, 0)

    def register(self, bus: EventBus) -> None:
        bus.register_all(self.on_event)

    def generation(self, namespace: str) -> int:
        """Number of evictions *namespace* has seen.

        A reader records it before querying the database and drops its cache
        write if it changed, so a result computed before a mutation never
        lands in the cache after that mutation's eviction.
        """
        return self._generations.get(namespace, 0)

    def namespaces_for(self, event: DriveEvent) -> tuple[str, ...]:
        if event.event_type not in SHARE_EVENTS:
            return ALL_NAMESPACES
        return FILE_NAMESPACES if event.event_type in _FILE_EVENTS else FOLDER_NAMESPACES

    def patterns_for(self, event: DriveEvent) -> list[str]:
        """Every glob pattern *event* must evict, without duplicates."""
        patterns: list[str] = []

        def add(pattern: str) -> None:
            if pattern not in patterns:
                patterns.append(pattern)

        if event.event_type in SHARE_EVENTS:
            namespaces = self.namespaces_for(event)
            actors = [event.owner_id, event.user_id, *event.recipients]
            for namespace in namespaces:
                for actor in actors:
                    if actor:
                        add(self._keys.pattern(namespace, actor))
                add(self._keys.pattern(namespace, None))
            return patterns

        for namespace in ALL_NAMESPACES:
            add(self._keys.entity_pattern(namespace))
        return patterns

    async def on_event(self, event: DriveEvent) -> None:
        for namespace in self.namespaces_for(event):
            self._generations[namespace] = self.generation(namespace) + 1
        total = 0
        for pattern in self.patterns_for(event):
            total += await self._cache.delete_pattern(pattern)
        logger.debug(
            "Evicted %d cache entries for %s on %s",
            total, event.event_type.value, event.resource_id,
        )
