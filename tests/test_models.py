"""Tests for the SQLModel tables and result conversions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import inspect

from drivegate.models import File, FileShare, Folder, FolderShare, User
from drivegate.types import file_to_info, folder_to_info, share_to_info, user_to_info

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

# ---------------------------------------------------------------------------
# Table creation & defaults
# ---------------------------------------------------------------------------


class TestTableCreation:
    async def test_tables_exist(self, async_engine: AsyncEngine):
        async with async_engine.connect() as conn:
            names = await conn.run_sync(lambda c: inspect(c).get_table_names())
        for table in (
            "drivegate_users",
            "drivegate_folders",
            "drivegate_files",
            "drivegate_file_shares",
            "drivegate_folder_shares",
        ):
            assert table in names


class TestDefaults:
    async def test_file_defaults(self, async_session: AsyncSession):
        f = File(name="a.txt", owner_id="alice")
        async_session.add(f)
        await async_session.flush()

        assert f.id
        assert f.folder_id is None
        assert f.access_type == "private"
        assert f.is_public is False
        assert f.mime_type == "application/octet-stream"
        assert f.size_bytes == 0
        assert f.created_at is not None

    async def test_folder_defaults(self, async_session: AsyncSession):
        folder = Folder(name="Docs", owner_id="alice")
        async_session.add(folder)
        await async_session.flush()

        assert folder.parent_id is None
        assert folder.is_public is False

    def test_share_default_levels(self):
        assert FileShare(file_id="f", shared_with_user_id="bob").access_level == "read"
        assert FolderShare(folder_id="d", shared_with_user_id="bob").access_level == "write"

    def test_user_defaults(self):
        u = User(username="alice")
        assert u.id
        assert u.is_active is True
        assert u.email == ""


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------


class TestConversions:
    def test_file_to_info(self):
        f = File(name="a.txt", owner_id="alice", folder_id="d1", size_bytes=10)
        info = file_to_info(f)
        assert info.id == f.id
        assert info.folder_id == "d1"
        assert info.size_bytes == 10
        assert info.access_type == "private"

    def test_folder_to_info(self):
        folder = Folder(name="Docs", owner_id="alice", is_public=True)
        info = folder_to_info(folder)
        assert info.name == "Docs"
        assert info.is_public is True

    def test_share_kind_from_resource_column(self):
        file_share = share_to_info(FileShare(file_id="f1", shared_with_user_id="bob"))
        folder_share = share_to_info(FolderShare(folder_id="d1", shared_with_user_id="bob"))
        assert (file_share.kind, file_share.resource_id) == ("file", "f1")
        assert (folder_share.kind, folder_share.resource_id) == ("folder", "d1")

    def test_user_to_info(self):
        info = user_to_info(User(username="alice", email="a@example.com"))
        assert info.username == "alice"
        assert info.email == "a@example.com"
