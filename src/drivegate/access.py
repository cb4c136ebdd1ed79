"""AccessResolver — effective access of an actor on a file or folder.

Files and folders follow different rules:

* **Files** are reachable only by their owner or through an explicit
  ``FileShare``.  Neither ``File.is_public`` nor ``File.access_type`` nor a
  public parent folder grants access to a file.
* **Folders** are reachable by their owner, through an explicit
  ``FolderShare``, or by anyone (anonymous included) while
  ``Folder.is_public`` is set.

The ``resolve_*`` and ``can_access_*`` methods never raise for unknown
ids; they answer ``AccessLevel.NONE`` / ``False``.  Storage failures
propagate as ``StorageError``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from drivegate.exceptions import AccessDeniedError, NotFoundError
from drivegate.permissions import AccessLevel, ResourceKind

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from drivegate.models.files import FileBase
    from drivegate.models.folders import FolderBase
    from drivegate.store import OwnershipStore

logger = logging.getLogger(__name__)


class AccessResolver:
    """Pure decision logic on top of an ``OwnershipStore``."""

    def __init__(self, store: OwnershipStore) -> None:
        self._store = store

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def file_level(
        self,
        session: AsyncSession,
        file: FileBase,
        user_id: str | None,
    ) -> AccessLevel:
        """Resolve the level for an already loaded file row."""
        if user_id is None:
            return AccessLevel.NONE
        if file.owner_id == user_id:
            return AccessLevel.OWNER
        level = await self._store.find_share(session, ResourceKind.FILE, file.id, user_id)
        return level or AccessLevel.NONE

    async def resolve_file_level(
        self,
        session: AsyncSession,
        file_id: str,
        user_id: str | None,
    ) -> AccessLevel:
        file = await self._store.get_file(session, file_id)
        if file is None:
            return AccessLevel.NONE
        return await self.file_level(session, file, user_id)

    async def can_access_file(
        self,
        session: AsyncSession,
        file_id: str,
        user_id: str | None,
    ) -> bool:
        level = await self.resolve_file_level(session, file_id, user_id)
        return level is not AccessLevel.NONE

    async def require_file_level(
        self,
        session: AsyncSession,
        file_id: str,
        user_id: str | None,
        minimum: AccessLevel,
    ) -> FileBase:
        """Return the file if *user_id* holds at least *minimum* on it.

        Raises ``NotFoundError`` for an unknown id and ``AccessDeniedError``
        when the resolved level is too low.
        """
        file = await self._store.get_file(session, file_id)
        if file is None:
            raise NotFoundError(f"File not found: {file_id}")
        level = await self.file_level(session, file, user_id)
        if not level.satisfies(minimum):
            logger.debug(
                "Denied %s on file %s for %s (has %s)",
                minimum.value, file_id, user_id, level.value,
            )
            raise AccessDeniedError(
                f"Access denied: {user_id!r} needs {minimum.value!r} on file {file_id}"
            )
        return file

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    async def folder_level(
        self,
        session: AsyncSession,
        folder: FolderBase,
        user_id: str | None,
    ) -> AccessLevel:
        """Resolve the level for an already loaded folder row."""
        if user_id is not None:
            if folder.owner_id is not None and folder.owner_id == user_id:
                return AccessLevel.OWNER
            level = await self._store.find_share(
                session, ResourceKind.FOLDER, folder.id, user_id
            )
            if level is not None:
                return level
        if folder.is_public:
            return AccessLevel.READ
        return AccessLevel.NONE

    async def resolve_folder_level(
        self,
        session: AsyncSession,
        folder_id: str,
        user_id: str | None,
    ) -> AccessLevel:
        folder = await self._store.get_folder(session, folder_id)
        if folder is None:
            return AccessLevel.NONE
        return await self.folder_level(session, folder, user_id)

    async def can_access_folder(
        self,
        session: AsyncSession,
        folder_id: str,
        user_id: str | None,
    ) -> bool:
        level = await self.resolve_folder_level(session, folder_id, user_id)
        return level is not AccessLevel.NONE

    async def require_folder_level(
        self,
        session: AsyncSession,
        folder_id: str,
        user_id: str | None,
        minimum: AccessLevel,
    ) -> FolderBase:
        """Folder counterpart of ``require_file_level``."""
        folder = await self._store.get_folder(session, folder_id)
        if folder is None:
            raise NotFoundError(f"Folder not found: {folder_id}")
        level = await self.folder_level(session, folder, user_id)
        if not level.satisfies(minimum):
            logger.debug(
                "Denied %s on folder %s for %s (has %s)",
                minimum.value, folder_id, user_id, level.value,
            )
            raise AccessDeniedError(
                f"Access denied: {user_id!r} needs {minimum.value!r} on folder {folder_id}"
            )
        return folder
