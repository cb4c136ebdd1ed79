"""Folder model.

``is_public`` is copied from the parent folder when a folder is created
and is never re-evaluated afterwards.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class FolderBase(SQLModel):
    """Base fields for a folder. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(index=True)
    parent_id: str | None = Field(default=None, index=True)
    owner_id: str | None = Field(default=None, index=True)
    is_public: bool = Field(default=False)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class Folder(FolderBase, table=True):
    """Default folder table — ``drivegate_folders``."""

    __tablename__ = "drivegate_folders"
