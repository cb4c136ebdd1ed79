"""FolderService — folder lifecycle, public inheritance, and tree listing."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from drivegate.exceptions import FolderNotEmptyError, NotFoundError, ValidationError
from drivegate.permissions import AccessLevel, ResourceKind
from drivegate.types import FolderNode, file_to_info, folder_to_info

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from drivegate.access import AccessResolver
    from drivegate.models.folders import FolderBase
    from drivegate.sharing import SharingService
    from drivegate.store import OwnershipStore

logger = logging.getLogger(__name__)

PUBLIC_FOLDER_NAME = "Public"
"""Root folder with this exact name is listed before every other root."""

MAX_NAME_LENGTH = 255

DEFAULT_MAX_DEPTH = 32

_INVALID_NAME_CHARS = re.compile(r'[<>:"/\\|?*]')


def validate_name(name: str, field: str = "name") -> str:
    """Return the stripped *name* or raise ``ValidationError``."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Name is required", field=field)
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Name must be at most {MAX_NAME_LENGTH} characters", field=field
        )
    if _INVALID_NAME_CHARS.search(name):
        raise ValidationError(f"Name contains invalid characters: {name!r}", field=field)
    return name


def sort_folders(folders: list[FolderBase], *, root: bool) -> list[FolderBase]:
    """Order by name; among roots, ``Public`` comes first."""
    if root:
        return sorted(folders, key=lambda f: (f.name != PUBLIC_FOLDER_NAME, f.name))
    return sorted(folders, key=lambda f: f.name)


class FolderService:
    """Folder operations over an ``OwnershipStore``.

    Authorization is the caller's job; this service only enforces
    structural rules (names, parents, emptiness, acyclic moves).
    """

    def __init__(
        self,
        store: OwnershipStore,
        resolver: AccessResolver,
        sharing: SharingService,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._sharing = sharing

    async def get_folder(self, session: AsyncSession, folder_id: str) -> FolderBase:
        folder = await self._store.get_folder(session, folder_id)
        if folder is None:
            raise NotFoundError(f"Folder not found: {folder_id}")
        return folder

    async def _check_duplicate_name(
        self,
        session: AsyncSession,
        name: str,
        parent_id: str | None,
        owner_id: str | None,
        exclude_id: str | None = None,
    ) -> None:
        siblings = await self._store.list_child_folders(session, parent_id)
        for sibling in siblings:
            if sibling.id == exclude_id or sibling.owner_id != owner_id:
                continue
            if sibling.name.lower() == name.lower():
                raise ValidationError(
                    f'Folder with name "{name}" already exists in this location',
                    field="name",
                )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_folder(
        self,
        session: AsyncSession,
        name: str,
        owner_id: str | None,
        parent_id: str | None = None,
        *,
        is_public: bool | None = None,
    ) -> FolderBase:
        """Create a folder.

        Under a parent, ``is_public`` is a snapshot of the parent's flag
        taken now; later changes to the parent do not reach the child.
        At the root it is ``bool(is_public)``.
        """
        name = validate_name(name)
        inherited = bool(is_public)
        if parent_id is not None:
            parent = await self.get_folder(session, parent_id)
            inherited = parent.is_public
        await self._check_duplicate_name(session, name, parent_id, owner_id)

        folder = self._store.folder_model(
            name=name,
            parent_id=parent_id,
            owner_id=owner_id,
            is_public=inherited,
        )
        await self._store.add(session, folder)
        logger.info(
            "Folder created: %s (%s) parent=%s public=%s",
            folder.id, name, parent_id, folder.is_public,
        )
        return folder

    async def rename_folder(
        self,
        session: AsyncSession,
        folder_id: str,
        name: str,
    ) -> FolderBase:
        folder = await self.get_folder(session, folder_id)
        name = validate_name(name)
        await self._check_duplicate_name(
            session, name, folder.parent_id, folder.owner_id, exclude_id=folder.id
        )
        await self._store.touch(session, folder, name=name)
        logger.info("Folder renamed: %s -> %s", folder_id, name)
        return folder

    async def move_folder(
        self,
        session: AsyncSession,
        folder_id: str,
        new_parent_id: str | None,
    ) -> FolderBase:
        """Re-parent a folder. ``is_public`` is left as it is."""
        folder = await self.get_folder(session, folder_id)
        if new_parent_id is not None:
            await self.get_folder(session, new_parent_id)
            if await self._is_self_or_descendant(session, new_parent_id, folder_id):
                raise ValidationError(
                    "Cannot move a folder into itself or one of its descendants",
                    field="parent_id",
                )
        await self._check_duplicate_name(
            session, folder.name, new_parent_id, folder.owner_id, exclude_id=folder.id
        )
        await self._store.touch(session, folder, parent_id=new_parent_id)
        logger.info("Folder moved: %s -> parent %s", folder_id, new_parent_id)
        return folder

    async def _is_self_or_descendant(
        self,
        session: AsyncSession,
        candidate_id: str,
        ancestor_id: str,
    ) -> bool:
        """Walk up from *candidate_id*; True if *ancestor_id* is on the path."""
        seen: set[str] = set()
        current: str | None = candidate_id
        while current is not None and current not in seen:
            if current == ancestor_id:
                return True
            seen.add(current)
            row = await self._store.get_folder(session, current)
            current = None if row is None else row.parent_id
        return False

    async def set_folder_public(
        self,
        session: AsyncSession,
        folder_id: str,
        is_public: bool,
    ) -> FolderBase:
        """Flip ``is_public`` on this folder only; descendants keep theirs."""
        folder = await self.get_folder(session, folder_id)
        await self._store.touch(session, folder, is_public=bool(is_public))
        logger.info("Folder %s public=%s", folder_id, folder.is_public)
        return folder

    async def delete_folder(self, session: AsyncSession, folder_id: str) -> bool:
        """Delete an empty folder and sweep its shares.

        Raises ``FolderNotEmptyError`` while it holds subfolders or files.
        """
        folder = await self.get_folder(session, folder_id)
        if await self._store.list_child_folders(session, folder_id):
            raise FolderNotEmptyError("Cannot delete folder with subfolders", field="children")
        if await self._store.list_files_in(session, folder_id):
            raise FolderNotEmptyError("Cannot delete folder with files", field="files")

        await self._sharing.revoke_all(session, ResourceKind.FOLDER, folder_id)
        await self._store.remove(session, folder)
        logger.info("Folder deleted: %s", folder_id)
        return True

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_accessible_folders(
        self,
        session: AsyncSession,
        parent_id: str | None,
        user_id: str | None,
    ) -> list[FolderBase]:
        """Owned, shared-with, and public folders directly under *parent_id*."""
        children = await self._store.list_child_folders(session, parent_id)
        shared_ids: set[str] = set()
        if user_id is not None:
            shares = await self._store.list_shares_with(session, ResourceKind.FOLDER, user_id)
            shared_ids = {s.folder_id for s in shares}  # type: ignore[union-attr]

        visible = [
            f
            for f in children
            if f.is_public
            or f.id in shared_ids
            or (user_id is not None and f.owner_id == user_id)
        ]
        return sort_folders(visible, root=parent_id is None)

    async def list_shared_folders(
        self,
        session: AsyncSession,
        user_id: str,
    ) -> list[FolderBase]:
        """Folders explicitly shared with *user_id*."""
        shares = await self._store.list_shares_with(session, ResourceKind.FOLDER, user_id)
        folders: list[FolderBase] = []
        for share in shares:
            folder = await self._store.get_folder(session, share.folder_id)  # type: ignore[union-attr]
            if folder is not None:
                folders.append(folder)
        return sort_folders(folders, root=False)

    async def get_folders_with_files(
        self,
        session: AsyncSession,
        parent_id: str | None,
        user_id: str | None,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> list[FolderNode]:
        """Build the accessible folder tree under *parent_id*.

        Each node carries the files the actor can access.  Recursion stops
        at *max_depth* levels and never revisits a folder.
        """
        return await self._build_tree(session, parent_id, user_id, max_depth, set())

    async def _build_tree(
        self,
        session: AsyncSession,
        parent_id: str | None,
        user_id: str | None,
        depth_left: int,
        visited: set[str],
    ) -> list[FolderNode]:
        if depth_left <= 0:
            logger.warning("Folder tree depth limit reached under %s", parent_id)
            return []

        nodes: list[FolderNode] = []
        for folder in await self.list_accessible_folders(session, parent_id, user_id):
            if folder.id in visited:
                continue
            visited.add(folder.id)

            files = []
            for file in await self._store.list_files_in(session, folder.id):
                level = await self._resolver.file_level(session, file, user_id)
                if level is not AccessLevel.NONE:
                    files.append(file_to_info(file))

            subfolders = await self._build_tree(
                session, folder.id, user_id, depth_left - 1, visited
            )
            nodes.append(
                FolderNode(folder=folder_to_info(folder), files=files, subfolders=subfolders)
            )
        return nodes
