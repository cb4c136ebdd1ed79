"""DriveGateConfig — runtime settings for the facade."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from drivegate.cache.keys import DEFAULT_PREFIX, ENTITY_TTLS
from drivegate.exceptions import ValidationError
from drivegate.folders import DEFAULT_MAX_DEPTH

if TYPE_CHECKING:
    from collections.abc import Mapping

CACHE_BACKENDS = ("memory", "redis", "none")


@dataclass
class DriveGateConfig:
    """Settings for ``DriveGateAsync``.

    Build one directly or from ``DRIVEGATE_*`` environment variables with
    :meth:`from_env`.
    """

    database_url: str = "sqlite+aiosqlite:///drivegate.db"
    """SQLAlchemy async URL used when no engine is passed in."""

    cache_backend: str = "memory"
    """One of ``memory``, ``redis``, ``none``."""

    redis_url: str = "redis://localhost:6379/0"

    cache_prefix: str = DEFAULT_PREFIX

    cache_ttls: dict[str, int] = field(default_factory=lambda: dict(ENTITY_TTLS))
    """Seconds per entity namespace; unlisted namespaces are not cached."""

    max_tree_depth: int = DEFAULT_MAX_DEPTH

    echo_sql: bool = False

    def __post_init__(self) -> None:
        if self.cache_backend not in CACHE_BACKENDS:
            raise ValidationError(
                f"Unknown cache backend {self.cache_backend!r}; "
                f"expected one of {', '.join(CACHE_BACKENDS)}",
                field="cache_backend",
            )
        if self.max_tree_depth < 1:
            raise ValidationError("max_tree_depth must be positive", field="max_tree_depth")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DriveGateConfig:
        """Read settings from the environment (and a ``.env`` file if present).

        ``DRIVEGATE_CACHE_TTL_<ENTITY>`` overrides one namespace TTL, with
        dashes in the entity written as underscores
        (``DRIVEGATE_CACHE_TTL_FOLDERS_TREE=60``).
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        defaults = cls()
        ttls = dict(defaults.cache_ttls)
        for entity in list(ttls):
            raw = environ.get(f"DRIVEGATE_CACHE_TTL_{entity.upper().replace('-', '_')}")
            if raw is not None:
                ttls[entity] = _parse_int(raw, entity)

        return cls(
            database_url=environ.get("DRIVEGATE_DATABASE_URL", defaults.database_url),
            cache_backend=environ.get("DRIVEGATE_CACHE_BACKEND", defaults.cache_backend).lower(),
            redis_url=environ.get("DRIVEGATE_REDIS_URL", defaults.redis_url),
            cache_prefix=environ.get("DRIVEGATE_CACHE_PREFIX", defaults.cache_prefix),
            cache_ttls=ttls,
            max_tree_depth=_parse_int(
                environ.get("DRIVEGATE_MAX_TREE_DEPTH", str(defaults.max_tree_depth)),
                "max_tree_depth",
            ),
            echo_sql=environ.get("DRIVEGATE_ECHO_SQL", "false").lower() in ("1", "true", "yes"),
        )


def _parse_int(raw: str, name: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer, got {raw!r}", field=name) from None
