"""Access level, access type, and resource kind enums."""

from __future__ import annotations

from enum import Enum


class AccessLevel(str, Enum):
    """Effective access of an actor on a resource.

    Share rows only ever store ``READ`` or ``WRITE``; ``NONE`` and
    ``OWNER`` are produced by the resolver.
    """

    NONE = "none"
    READ = "read"
    WRITE = "write"
    OWNER = "owner"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def satisfies(self, minimum: AccessLevel) -> bool:
        """Return True if this level is at least *minimum*."""
        return self.rank >= minimum.rank


_RANKS = {
    AccessLevel.NONE: 0,
    AccessLevel.READ: 1,
    AccessLevel.WRITE: 2,
    AccessLevel.OWNER: 3,
}

SHAREABLE_LEVELS = frozenset({AccessLevel.READ.value, AccessLevel.WRITE.value})


class AccessType(str, Enum):
    """Client-facing visibility flag stored on a file."""

    PRIVATE = "private"
    SHARED = "shared"
    PUBLIC = "public"


class ResourceKind(str, Enum):
    """Which share table a resource id lives in."""

    FILE = "file"
    FOLDER = "folder"
