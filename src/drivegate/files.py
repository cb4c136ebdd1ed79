"""FileService — file records: create, rename, move, delete, listing.

Byte storage (uploads, thumbnails) is out of scope; only the rows the
access model depends on are managed here.
"""

from __future__ import annotations

import logging
import posixpath
from typing import TYPE_CHECKING

from drivegate.exceptions import NotFoundError, ValidationError
from drivegate.folders import MAX_NAME_LENGTH
from drivegate.permissions import AccessLevel, AccessType, ResourceKind

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from drivegate.access import AccessResolver
    from drivegate.models.files import FileBase
    from drivegate.sharing import SharingService
    from drivegate.store import OwnershipStore

logger = logging.getLogger(__name__)


def clean_file_name(new_name: str, old_name: str = "") -> str:
    """Validate a file name, keeping *old_name*'s extension if none is given."""
    trimmed = new_name.strip() if isinstance(new_name, str) else ""
    if not trimmed:
        raise ValidationError("File name is required", field="name")
    if len(trimmed) > MAX_NAME_LENGTH:
        raise ValidationError("File name is too long", field="name")

    old_ext = posixpath.splitext(old_name)[1]
    if old_ext and not posixpath.splitext(trimmed)[1]:
        trimmed = f"{trimmed}{old_ext}"

    sanitized = trimmed.replace("\r", "").replace("\n", "").strip()
    if not sanitized:
        raise ValidationError("File name is invalid", field="name")
    return sanitized


class FileService:
    """File operations over an ``OwnershipStore``."""

    def __init__(
        self,
        store: OwnershipStore,
        resolver: AccessResolver,
        sharing: SharingService,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._sharing = sharing

    async def get_file(self, session: AsyncSession, file_id: str) -> FileBase:
        file = await self._store.get_file(session, file_id)
        if file is None:
            raise NotFoundError(f"File not found: {file_id}")
        return file

    async def create_file(
        self,
        session: AsyncSession,
        name: str,
        owner_id: str,
        folder_id: str | None = None,
        *,
        mime_type: str = "application/octet-stream",
        size_bytes: int = 0,
    ) -> FileBase:
        """Record a new file.

        A file created inside a public folder carries the public
        designation (``access_type='public'``).  That flag is informational
        and never grants access.
        """
        name = clean_file_name(name)
        is_public = False
        if folder_id is not None:
            folder = await self._store.get_folder(session, folder_id)
            if folder is None:
                raise NotFoundError(f"Folder not found: {folder_id}")
            is_public = folder.is_public

        file = self._store.file_model(
            name=name,
            owner_id=owner_id,
            folder_id=folder_id,
            mime_type=mime_type,
            size_bytes=size_bytes,
            is_public=is_public,
            access_type=(AccessType.PUBLIC if is_public else AccessType.PRIVATE).value,
        )
        await self._store.add(session, file)
        logger.info("File created: %s (%s) folder=%s", file.id, name, folder_id)
        return file

    async def rename_file(
        self,
        session: AsyncSession,
        file_id: str,
        new_name: str,
    ) -> FileBase:
        file = await self.get_file(session, file_id)
        name = clean_file_name(new_name, file.name)
        await self._store.touch(session, file, name=name)
        logger.info("File renamed: %s -> %s", file_id, name)
        return file

    async def move_files(
        self,
        session: AsyncSession,
        file_ids: Sequence[str],
        destination_folder_id: str | None,
    ) -> list[FileBase]:
        """Move files into *destination_folder_id* (``None`` = root).

        Unknown file ids are skipped.  Returns the moved rows.
        """
        if isinstance(file_ids, str) or not file_ids:
            raise ValidationError("file_ids must be a non-empty list", field="file_ids")
        if destination_folder_id is not None:
            if await self._store.get_folder(session, destination_folder_id) is None:
                raise NotFoundError(f"Destination folder not found: {destination_folder_id}")

        moved: list[FileBase] = []
        for file_id in file_ids:
            file = await self._store.get_file(session, file_id)
            if file is None:
                logger.debug("Skipping move of unknown file %s", file_id)
                continue
            await self._store.touch(session, file, folder_id=destination_folder_id)
            moved.append(file)
        logger.info("Moved %d file(s) to %s", len(moved), destination_folder_id)
        return moved

    async def set_file_public(
        self,
        session: AsyncSession,
        file_id: str,
        is_public: bool,
    ) -> FileBase:
        """Set the public designation and recompute ``access_type``."""
        file = await self.get_file(session, file_id)
        await self._store.touch(session, file, is_public=bool(is_public))
        await self._sharing.sync_access_type(session, file_id)
        return file

    async def delete_file(self, session: AsyncSession, file_id: str) -> bool:
        """Sweep the file's shares, then delete its row."""
        file = await self.get_file(session, file_id)
        await self._sharing.revoke_all(session, ResourceKind.FILE, file_id)
        await self._store.remove(session, file)
        logger.info("File deleted: %s", file_id)
        return True

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def _filter_accessible(
        self,
        session: AsyncSession,
        files: list[FileBase],
        user_id: str | None,
    ) -> list[FileBase]:
        accessible = []
        for file in files:
            level = await self._resolver.file_level(session, file, user_id)
            if level is not AccessLevel.NONE:
                accessible.append(file)
        return accessible

    async def list_accessible_files(
        self,
        session: AsyncSession,
        folder_id: str | None,
        user_id: str | None,
    ) -> list[FileBase]:
        files = await self._store.list_files_in(session, folder_id)
        return await self._filter_accessible(session, files, user_id)

    async def search_files(
        self,
        session: AsyncSession,
        query: str,
        user_id: str | None,
    ) -> list[FileBase]:
        if not query or not query.strip():
            raise ValidationError("Search query is required", field="query")
        files = await self._store.search_files(session, query.strip())
        return await self._filter_accessible(session, files, user_id)

    async def list_shared_files(
        self,
        session: AsyncSession,
        user_id: str,
    ) -> list[FileBase]:
        """Files explicitly shared with *user_id*."""
        shares = await self._store.list_shares_with(session, ResourceKind.FILE, user_id)
        files: list[FileBase] = []
        for share in shares:
            file = await self._store.get_file(session, share.file_id)  # type: ignore[union-attr]
            if file is not None:
                files.append(file)
        return sorted(files, key=lambda f: f.name)
