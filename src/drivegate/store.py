"""OwnershipStore — the narrow persistence contract behind access control.

Stateless: receives the concrete models at construction and a session at
call time, following the ``SharingService`` pattern.  Every method flushes
but never commits; the caller owns the transaction.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from drivegate.exceptions import StorageError
from drivegate.models.files import File
from drivegate.models.folders import Folder
from drivegate.models.shares import FileShare, FolderShare
from drivegate.models.users import User
from drivegate.permissions import AccessLevel, ResourceKind

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.ext.asyncio import AsyncSession

    from drivegate.models.files import FileBase
    from drivegate.models.folders import FolderBase
    from drivegate.models.shares import FileShareBase, FolderShareBase
    from drivegate.models.users import UserBase

    ShareRow = FileShareBase | FolderShareBase

logger = logging.getLogger(__name__)


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    """Re-raise any SQLAlchemy failure inside the block as ``StorageError``."""
    try:
        yield
    except SQLAlchemyError as e:
        raise StorageError(f"{action} failed: {e}") from e


class OwnershipStore:
    """Owner, share, and tree lookups over the SQLModel tables.

    Constructor receives the concrete models so callers can use custom
    SQLModel subclasses with different table names.
    """

    def __init__(
        self,
        *,
        file_model: type[FileBase] | None = None,
        folder_model: type[FolderBase] | None = None,
        file_share_model: type[FileShareBase] | None = None,
        folder_share_model: type[FolderShareBase] | None = None,
        user_model: type[UserBase] | None = None,
    ) -> None:
        self.file_model: Any = file_model or File
        self.folder_model: Any = folder_model or Folder
        self.file_share_model: Any = file_share_model or FileShare
        self.folder_share_model: Any = folder_share_model or FolderShare
        self.user_model: Any = user_model or User

    @property
    def models(self) -> list[Any]:
        """All table models, in creation order."""
        return [
            self.user_model,
            self.folder_model,
            self.file_model,
            self.file_share_model,
            self.folder_share_model,
        ]

    def _share_table(self, kind: ResourceKind) -> tuple[Any, Any]:
        """Return ``(share_model, resource_column)`` for *kind*."""
        if kind is ResourceKind.FILE:
            return self.file_share_model, self.file_share_model.file_id
        return self.folder_share_model, self.folder_share_model.folder_id

    # ------------------------------------------------------------------
    # Entity lookups
    # ------------------------------------------------------------------

    async def get_file(self, session: AsyncSession, file_id: str) -> FileBase | None:
        with storage_errors("get file"):
            return await session.get(self.file_model, file_id)

    async def get_folder(self, session: AsyncSession, folder_id: str) -> FolderBase | None:
        with storage_errors("get folder"):
            return await session.get(self.folder_model, folder_id)

    async def get_user(self, session: AsyncSession, user_id: str) -> UserBase | None:
        with storage_errors("get user"):
            return await session.get(self.user_model, user_id)

    async def add(self, session: AsyncSession, row: Any) -> Any:
        """Insert *row* and flush."""
        with storage_errors(f"insert {type(row).__name__}"):
            session.add(row)
            await session.flush()
        return row

    async def remove(self, session: AsyncSession, row: Any) -> None:
        """Delete *row* and flush."""
        with storage_errors(f"delete {type(row).__name__}"):
            await session.delete(row)
            await session.flush()

    async def touch(self, session: AsyncSession, row: Any, **changes: Any) -> Any:
        """Apply *changes* to *row*, bump ``updated_at``, and flush."""
        for key, value in changes.items():
            setattr(row, key, value)
        row.updated_at = datetime.now(UTC)
        with storage_errors(f"update {type(row).__name__}"):
            session.add(row)
            await session.flush()
        return row

    async def find_owner(
        self,
        session: AsyncSession,
        kind: ResourceKind,
        resource_id: str,
    ) -> str | None:
        """Owner id of a file or folder, ``None`` if missing or unowned."""
        if kind is ResourceKind.FILE:
            row: Any = await self.get_file(session, resource_id)
        else:
            row = await self.get_folder(session, resource_id)
        return None if row is None else row.owner_id

    # ------------------------------------------------------------------
    # Shares
    # ------------------------------------------------------------------

    async def get_share_row(
        self,
        session: AsyncSession,
        kind: ResourceKind,
        resource_id: str,
        user_id: str,
    ) -> ShareRow | None:
        model, column = self._share_table(kind)
        with storage_errors(f"find {kind.value} share"):
            result = await session.execute(
                select(model).where(
                    column == resource_id,
                    model.shared_with_user_id == user_id,
                )
            )
            return result.scalars().first()

    async def find_share(
        self,
        session: AsyncSession,
        kind: ResourceKind,
        resource_id: str,
        user_id: str,
    ) -> AccessLevel | None:
        """Access level of the active share for ``(resource, user)``, if any."""
        share = await self.get_share_row(session, kind, resource_id, user_id)
        if share is None:
            return None
        return AccessLevel(share.access_level)

    async def upsert_share(
        self,
        session: AsyncSession,
        kind: ResourceKind,
        resource_id: str,
        user_id: str,
        access_level: AccessLevel,
        granted_by: str,
    ) -> tuple[ShareRow, bool]:
        """Create the share row or update its level in place.

        Returns ``(share, created)``.  Never produces a second row for the
        same ``(resource, user)`` pair.
        """
        existing = await self.get_share_row(session, kind, resource_id, user_id)
        if existing is not None:
            if existing.access_level != access_level.value:
                existing.access_level = access_level.value
                with storage_errors(f"update {kind.value} share"):
                    session.add(existing)
                    await session.flush()
            return existing, False

        model, _ = self._share_table(kind)
        values: dict[str, Any] = {
            "shared_with_user_id": user_id,
            "access_level": access_level.value,
            "granted_by": granted_by,
        }
        if kind is ResourceKind.FILE:
            values["file_id"] = resource_id
        else:
            values["folder_id"] = resource_id
        share = model(**values)
        await self.add(session, share)
        return share, True

    async def delete_share(
        self,
        session: AsyncSession,
        kind: ResourceKind,
        resource_id: str,
        user_id: str,
    ) -> bool:
        """Remove the share for ``(resource, user)``. Returns True if found."""
        share = await self.get_share_row(session, kind, resource_id, user_id)
        if share is None:
            return False
        await self.remove(session, share)
        return True

    async def delete_shares_for(
        self,
        session: AsyncSession,
        kind: ResourceKind,
        resource_id: str,
    ) -> int:
        """Remove every share on a resource. Returns the number removed."""
        shares = await self.list_shares_for(session, kind, resource_id)
        with storage_errors(f"delete {kind.value} shares"):
            for share in shares:
                await session.delete(share)
            if shares:
                await session.flush()
        return len(shares)

    async def list_shares_for(
        self,
        session: AsyncSession,
        kind: ResourceKind,
        resource_id: str,
    ) -> list[ShareRow]:
        model, column = self._share_table(kind)
        with storage_errors(f"list {kind.value} shares"):
            result = await session.execute(
                select(model).where(column == resource_id).order_by(model.created_at)
            )
            return list(result.scalars().all())

    async def count_shares_for(
        self,
        session: AsyncSession,
        kind: ResourceKind,
        resource_id: str,
    ) -> int:
        model, column = self._share_table(kind)
        with storage_errors(f"count {kind.value} shares"):
            result = await session.execute(
                select(func.count()).select_from(model).where(column == resource_id)
            )
            return int(result.scalar_one())

    async def list_shares_with(
        self,
        session: AsyncSession,
        kind: ResourceKind,
        user_id: str,
    ) -> list[ShareRow]:
        """All shares granted to *user_id* on resources of *kind*."""
        model, _ = self._share_table(kind)
        with storage_errors(f"list {kind.value} shares for user"):
            result = await session.execute(
                select(model).where(model.shared_with_user_id == user_id)
            )
            return list(result.scalars().all())

    async def set_derived_access_type(
        self,
        session: AsyncSession,
        file_id: str,
        value: str,
    ) -> None:
        file = await self.get_file(session, file_id)
        if file is None or file.access_type == value:
            return
        file.access_type = value
        with storage_errors("update file access type"):
            session.add(file)
            await session.flush()

    # ------------------------------------------------------------------
    # Tree edges
    # ------------------------------------------------------------------

    async def list_child_folders(
        self,
        session: AsyncSession,
        parent_id: str | None,
    ) -> list[FolderBase]:
        """Folders directly under *parent_id* (``None`` = roots), by name."""
        model = self.folder_model
        query = select(model)
        if parent_id is None:
            query = query.where(model.parent_id.is_(None))  # type: ignore[union-attr]
        else:
            query = query.where(model.parent_id == parent_id)
        with storage_errors("list child folders"):
            result = await session.execute(query.order_by(model.name))
            return list(result.scalars().all())

    async def list_files_in(
        self,
        session: AsyncSession,
        folder_id: str | None,
    ) -> list[FileBase]:
        """Files directly in *folder_id* (``None`` = unfiled), by name."""
        model = self.file_model
        query = select(model)
        if folder_id is None:
            query = query.where(model.folder_id.is_(None))  # type: ignore[union-attr]
        else:
            query = query.where(model.folder_id == folder_id)
        with storage_errors("list files"):
            result = await session.execute(query.order_by(model.name))
            return list(result.scalars().all())

    async def search_files(self, session: AsyncSession, query: str) -> list[FileBase]:
        """Files whose name contains *query* (case-insensitive)."""
        model = self.file_model
        escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        with storage_errors("search files"):
            result = await session.execute(
                select(model)
                .where(func.lower(model.name).like(f"%{escaped.lower()}%", escape="\\"))
                .order_by(model.name)
            )
            return list(result.scalars().all())
