"""Cache layer — backends, key layout, and event-driven invalidation."""

from drivegate.cache.invalidation import CacheInvalidator
from drivegate.cache.keys import CacheKeys
from drivegate.cache.memory import MemoryCache, NullCache
from drivegate.cache.protocol import CacheBackend

__all__ = [
    "CacheBackend",
    "CacheInvalidator",
    "CacheKeys",
    "MemoryCache",
    "NullCache",
]
