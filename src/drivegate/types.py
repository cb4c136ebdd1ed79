"""Result types returned by the drivegate facade."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from drivegate.models.files import FileBase
    from drivegate.models.folders import FolderBase
    from drivegate.models.shares import FileShareBase, FolderShareBase
    from drivegate.models.users import UserBase


@dataclass
class UserInfo:
    """Public view of a user."""

    id: str
    username: str
    email: str = ""
    is_active: bool = True


@dataclass
class FolderInfo:
    """Folder metadata."""

    id: str
    name: str
    parent_id: str | None = None
    owner_id: str | None = None
    is_public: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class FileInfo:
    """File metadata."""

    id: str
    name: str
    owner_id: str
    folder_id: str | None = None
    mime_type: str = "application/octet-stream"
    size_bytes: int = 0
    access_type: str = "private"
    is_public: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class ShareInfo:
    """A share row on a file or folder."""

    id: str
    kind: str
    resource_id: str
    shared_with_user_id: str
    access_level: str
    granted_by: str = ""
    created_at: datetime | None = None


@dataclass
class FolderNode:
    """A folder with its accessible files and subfolders."""

    folder: FolderInfo
    files: list[FileInfo] = field(default_factory=list)
    subfolders: list[FolderNode] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------


def user_to_info(u: UserBase) -> UserInfo:
    return UserInfo(id=u.id, username=u.username, email=u.email, is_active=u.is_active)


def folder_to_info(f: FolderBase) -> FolderInfo:
    return FolderInfo(
        id=f.id,
        name=f.name,
        parent_id=f.parent_id,
        owner_id=f.owner_id,
        is_public=f.is_public,
        created_at=f.created_at,
        updated_at=f.updated_at,
    )


def file_to_info(f: FileBase) -> FileInfo:
    return FileInfo(
        id=f.id,
        name=f.name,
        owner_id=f.owner_id,
        folder_id=f.folder_id,
        mime_type=f.mime_type,
        size_bytes=f.size_bytes,
        access_type=f.access_type,
        is_public=f.is_public,
        created_at=f.created_at,
        updated_at=f.updated_at,
    )


def share_to_info(s: FileShareBase | FolderShareBase) -> ShareInfo:
    """Convert either share model; the resource column decides the kind."""
    file_id = getattr(s, "file_id", None)
    if file_id is not None:
        kind, resource_id = "file", file_id
    else:
        kind, resource_id = "folder", s.folder_id  # type: ignore[union-attr]
    return ShareInfo(
        id=s.id,
        kind=kind,
        resource_id=resource_id,
        shared_with_user_id=s.shared_with_user_id,
        access_level=s.access_level,
        granted_by=s.granted_by,
        created_at=s.created_at,
    )
