"""In-process cache backends."""

from __future__ import annotations

import fnmatch
import logging
import time
from typing import Any

logger = logging.getLogger(__name__)


class MemoryCache:
    """Process-local cache with per-key TTL and glob pattern eviction.

    Patterns use the same ``*`` / ``?`` / ``[...]`` syntax as Redis
    ``SCAN MATCH``.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[Any, float | None]] = {}

    def _alive(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        expires = entry[1]
        if expires is not None and time.monotonic() >= expires:
            del self._entries[key]
            return False
        return True

    async def get(self, key: str) -> Any | None:
        if not self._alive(key):
            logger.debug("Memory cache miss: %s", key)
            return None
        logger.debug("Memory cache hit: %s", key)
        return self._entries[key][0]

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        expires = time.monotonic() + ttl_seconds if ttl_seconds and ttl_seconds > 0 else None
        self._entries[key] = (value, expires)
        return True

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def delete_pattern(self, pattern: str) -> int:
        matched = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
        for key in matched:
            del self._entries[key]
        logger.debug("Memory cache pattern delete %s: %d", pattern, len(matched))
        return len(matched)

    async def flush(self) -> bool:
        self._entries.clear()
        return True

    async def close(self) -> None:
        return None

    def keys(self) -> list[str]:
        """Live keys, for inspection."""
        return [k for k in list(self._entries) if self._alive(k)]


class NullCache:
    """Cache that stores nothing. Every read is a miss."""

    async def get(self, key: str) -> Any | None:
        return None

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        return False

    async def delete(self, key: str) -> bool:
        return False

    async def delete_pattern(self, pattern: str) -> int:
        return 0

    async def flush(self) -> bool:
        return False

    async def close(self) -> None:
        return None
