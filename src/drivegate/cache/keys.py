"""CacheKeys — key and pattern layout per entity namespace and actor."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_PREFIX = "drivegate"

DEFAULT_TTL = 3600

ENTITY_TTLS: dict[str, int] = {
    "file": 3600,
    "folder": 3600,
    "files": 300,
    "folders": 300,
    "folders-tree": 300,
}


@dataclass
class CacheKeys:
    """Builds ``{prefix}:{entity}:user:{uid}:{id}`` style keys.

    Entries read without an acting user live under the ``public`` scope:
    ``{prefix}:{entity}:public:{id}``.
    """

    prefix: str = DEFAULT_PREFIX
    ttls: dict[str, int] = field(default_factory=lambda: dict(ENTITY_TTLS))

    def _scope(self, user_id: str | None) -> str:
        return f"user:{user_id}" if user_id else "public"

    def key(self, entity: str, item_id: str, user_id: str | None = None) -> str:
        return f"{self.prefix}:{entity}:{self._scope(user_id)}:{item_id}"

    def pattern(self, entity: str, user_id: str | None = None) -> str:
        """Every entry of *entity* cached for one actor (or the public scope)."""
        return f"{self.prefix}:{entity}:{self._scope(user_id)}:*"

    def entity_pattern(self, entity: str) -> str:
        """Every entry of *entity*, whichever actor cached it."""
        return f"{self.prefix}:{entity}:*"

    def should_cache(self, entity: str) -> bool:
        return entity in self.ttls

    def ttl(self, entity: str) -> int:
        return self.ttls.get(entity, DEFAULT_TTL)
