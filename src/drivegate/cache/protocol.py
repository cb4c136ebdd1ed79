"""CacheBackend protocol — best-effort key/value store with glob eviction."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CacheBackend(Protocol):
    """Interface every cache backend implements.

    Implementations never raise for backend failures: reads degrade to a
    miss and writes/deletes to a no-op.  Values are JSON-compatible.
    """

    async def get(self, key: str) -> Any | None:
        """Return the cached value or None on miss."""
        ...

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        """Store *value*; return True if it was written."""
        ...

    async def delete(self, key: str) -> bool:
        """Remove one key; return True if it existed."""
        ...

    async def delete_pattern(self, pattern: str) -> int:
        """Remove every key matching the glob *pattern*; return the count."""
        ...

    async def flush(self) -> bool:
        """Remove every key."""
        ...

    async def close(self) -> None:
        """Release connections. No-op if not needed."""
        ...
