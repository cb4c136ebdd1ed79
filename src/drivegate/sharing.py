"""SharingService — share upsert/revoke and the derived ``access_type`` flag.

Stateless service that receives the ``OwnershipStore`` at construction
and a session at call time.  ``sync_access_type`` is the only writer of
``File.access_type``; every mutation path below ends by calling it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from drivegate.exceptions import NotFoundError, StorageError, ValidationError
from drivegate.permissions import SHAREABLE_LEVELS, AccessLevel, AccessType, ResourceKind

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from drivegate.store import OwnershipStore, ShareRow

logger = logging.getLogger(__name__)


def validate_access_level(access_level: AccessLevel | str) -> AccessLevel:
    """Coerce *access_level* to ``READ`` or ``WRITE``."""
    value = access_level.value if isinstance(access_level, AccessLevel) else access_level
    if value not in SHAREABLE_LEVELS:
        raise ValidationError(
            f"Invalid access level: {access_level!r}. Must be 'read' or 'write'.",
            field="access_level",
        )
    return AccessLevel(value)


def validate_user_ids(user_ids: Sequence[str]) -> list[str]:
    """Return the distinct, stripped target ids in request order."""
    if isinstance(user_ids, str) or not isinstance(user_ids, (list, tuple)):
        raise ValidationError("user_ids must be a non-empty list", field="user_ids")
    if not user_ids:
        raise ValidationError("At least one user must be selected", field="user_ids")

    targets: list[str] = []
    for uid in user_ids:
        if not isinstance(uid, str) or not uid.strip():
            raise ValidationError(f"Invalid user id: {uid!r}", field="user_ids")
        uid = uid.strip()
        if uid not in targets:
            targets.append(uid)
    return targets


class SharingService:
    """Manages file and folder shares between users."""

    def __init__(self, store: OwnershipStore) -> None:
        self._store = store

    async def _require_resource(
        self,
        session: AsyncSession,
        kind: ResourceKind,
        resource_id: str,
    ) -> None:
        if kind is ResourceKind.FILE:
            found = await self._store.get_file(session, resource_id) is not None
        else:
            found = await self._store.get_folder(session, resource_id) is not None
        if not found:
            raise NotFoundError(f"{kind.value.capitalize()} not found: {resource_id}")

    # ------------------------------------------------------------------
    # Derived flag
    # ------------------------------------------------------------------

    async def sync_access_type(
        self,
        session: AsyncSession,
        file_id: str,
        *,
        force: AccessType | None = None,
    ) -> AccessType | None:
        """Recompute and store ``access_type`` for *file_id*.

        ``shared`` while any share exists, else ``public`` if the file
        carries the public designation, else ``private``.  *force*
        overrides the computation.  Returns None for an unknown file.
        """
        file = await self._store.get_file(session, file_id)
        if file is None:
            return None
        if force is not None:
            value = force
        elif await self._store.count_shares_for(session, ResourceKind.FILE, file_id) > 0:
            value = AccessType.SHARED
        elif file.is_public:
            value = AccessType.PUBLIC
        else:
            value = AccessType.PRIVATE
        await self._store.set_derived_access_type(session, file_id, value.value)
        return value

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def share(
        self,
        session: AsyncSession,
        kind: ResourceKind,
        resource_id: str,
        user_ids: Sequence[str],
        access_level: AccessLevel | str,
        granted_by: str,
        *,
        commit_each: bool = True,
    ) -> list[ShareRow]:
        """Upsert one share row per target user.

        Input is validated before anything is written.  With
        *commit_each* every upsert is committed on its own: when target
        *k* fails, targets before *k* stay shared and the error
        propagates.  Without it nothing is committed here and the caller
        decides the fate of the whole batch.
        """
        level = validate_access_level(access_level)
        targets = validate_user_ids(user_ids)
        await self._require_resource(session, kind, resource_id)

        applied: list[ShareRow] = []
        try:
            for uid in targets:
                share, created = await self._store.upsert_share(
                    session, kind, resource_id, uid, level, granted_by
                )
                applied.append(share)
                if commit_each:
                    await session.commit()
                logger.debug(
                    "%s %s share %s -> %s (%s)",
                    "Created" if created else "Updated",
                    kind.value, resource_id, uid, level.value,
                )
        except Exception:
            if commit_each and applied:
                logger.warning(
                    "Share batch on %s %s failed after %d of %d targets",
                    kind.value, resource_id, len(applied), len(targets),
                )
                if kind is ResourceKind.FILE:
                    await session.rollback()
                    try:
                        await self.sync_access_type(session, resource_id)
                        await session.commit()
                    except StorageError:
                        logger.warning(
                            "Could not resync access type of file %s", resource_id, exc_info=True
                        )
            raise

        if kind is ResourceKind.FILE:
            await self.sync_access_type(session, resource_id)
        logger.info(
            "Shared %s %s with %d user(s) at %s", kind.value, resource_id, len(applied), level.value
        )
        return applied

    async def revoke(
        self,
        session: AsyncSession,
        kind: ResourceKind,
        resource_id: str,
        user_id: str,
    ) -> bool:
        """Remove the share for ``(resource, user)``. Returns True if found."""
        removed = await self._store.delete_share(session, kind, resource_id, user_id)
        if kind is ResourceKind.FILE:
            await self.sync_access_type(session, resource_id)
        if removed:
            logger.info("Revoked %s share %s -> %s", kind.value, resource_id, user_id)
        return removed

    async def revoke_all(
        self,
        session: AsyncSession,
        kind: ResourceKind,
        resource_id: str,
    ) -> int:
        """Remove every share on a resource; files are forced to ``private``."""
        count = await self._store.delete_shares_for(session, kind, resource_id)
        if kind is ResourceKind.FILE:
            await self.sync_access_type(session, resource_id, force=AccessType.PRIVATE)
        logger.debug("Swept %d %s share(s) on %s", count, kind.value, resource_id)
        return count

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_shares(
        self,
        session: AsyncSession,
        kind: ResourceKind,
        resource_id: str,
    ) -> list[ShareRow]:
        """List all shares on a resource."""
        return await self._store.list_shares_for(session, kind, resource_id)

    async def list_shared_with(
        self,
        session: AsyncSession,
        kind: ResourceKind,
        user_id: str,
    ) -> list[ShareRow]:
        """List all shares of *kind* granted to *user_id*."""
        return await self._store.list_shares_with(session, kind, user_id)
