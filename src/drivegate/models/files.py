"""File model.

``access_type`` is a denormalized flag surfaced to clients: ``shared``
while any share row exists, otherwise ``public`` if the file carries the
public designation, otherwise ``private``.  Access decisions never read it.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class FileBase(SQLModel):
    """Base fields for a file record. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(index=True)
    folder_id: str | None = Field(default=None, index=True)
    owner_id: str = Field(index=True)
    mime_type: str = Field(default="application/octet-stream")
    size_bytes: int = Field(default=0)
    access_type: str = Field(default="private")
    is_public: bool = Field(default=False)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class File(FileBase, table=True):
    """Default file table — ``drivegate_files``."""

    __tablename__ = "drivegate_files"
