"""FileShare and FolderShare models — per-user grants on a resource.

At most one row exists per ``(resource, user)`` pair.  There is no
database constraint for it; ``OwnershipStore.upsert_share`` updates the
existing row in place instead of inserting a second one.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class FileShareBase(SQLModel):
    """Base fields for a file share record. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    file_id: str = Field(index=True)
    shared_with_user_id: str = Field(index=True)
    access_level: str = Field(default="read")
    granted_by: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class FileShare(FileShareBase, table=True):
    """Default file share table — ``drivegate_file_shares``."""

    __tablename__ = "drivegate_file_shares"


class FolderShareBase(SQLModel):
    """Base fields for a folder share record. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    folder_id: str = Field(index=True)
    shared_with_user_id: str = Field(index=True)
    access_level: str = Field(default="write")
    granted_by: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class FolderShare(FolderShareBase, table=True):
    """Default folder share table — ``drivegate_folder_shares``."""

    __tablename__ = "drivegate_folder_shares"
