"""Tests for FileService — create, rename, move, visibility, listing."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from drivegate.exceptions import NotFoundError, ValidationError
from drivegate.files import clean_file_name
from drivegate.permissions import AccessLevel, ResourceKind

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from drivegate.access import AccessResolver
    from drivegate.files import FileService
    from drivegate.folders import FolderService
    from drivegate.sharing import SharingService
    from drivegate.store import OwnershipStore


class TestCleanFileName:
    def test_keeps_old_extension(self):
        assert clean_file_name("report", "draft.pdf") == "report.pdf"

    def test_new_extension_wins(self):
        assert clean_file_name("report.txt", "draft.pdf") == "report.txt"

    def test_strips_line_breaks(self):
        assert clean_file_name("a\r\nb.txt") == "ab.txt"

    @pytest.mark.parametrize("name", ["", "   ", "\r\n", "x" * 256])
    def test_rejected(self, name):
        with pytest.raises(ValidationError):
            clean_file_name(name)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


class TestCreate:
    async def test_private_by_default(self, files: FileService, async_session: AsyncSession):
        f = await files.create_file(async_session, "a.txt", "alice", size_bytes=12)
        assert f.access_type == "private"
        assert f.is_public is False
        assert f.size_bytes == 12

    async def test_in_public_folder_is_designated_public(
        self,
        files: FileService,
        folders: FolderService,
        resolver: AccessResolver,
        async_session: AsyncSession,
    ):
        public = await folders.create_folder(async_session, "Public", "alice", is_public=True)
        f = await files.create_file(async_session, "a.txt", "alice", public.id)
        assert f.is_public is True
        assert f.access_type == "public"
        # The designation does not open the file up
        assert await resolver.can_access_file(async_session, f.id, None) is False
        assert await resolver.can_access_file(async_session, f.id, "bob") is False

    async def test_unknown_folder(self, files: FileService, async_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await files.create_file(async_session, "a.txt", "alice", "nope")


class TestRenameMove:
    async def test_rename_keeps_extension(
        self, files: FileService, async_session: AsyncSession
    ):
        f = await files.create_file(async_session, "draft.pdf", "alice")
        assert (await files.rename_file(async_session, f.id, "final")).name == "final.pdf"

    async def test_rename_unknown(self, files: FileService, async_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await files.rename_file(async_session, "nope", "x")

    async def test_move_skips_unknown_ids(
        self, files: FileService, folders: FolderService, async_session: AsyncSession
    ):
        dest = await folders.create_folder(async_session, "Dest", "alice")
        a = await files.create_file(async_session, "a.txt", "alice")
        moved = await files.move_files(async_session, [a.id, "nope"], dest.id)
        assert [f.id for f in moved] == [a.id]
        assert a.folder_id == dest.id

    async def test_move_to_unknown_folder(self, files: FileService, async_session: AsyncSession):
        a = await files.create_file(async_session, "a.txt", "alice")
        with pytest.raises(NotFoundError):
            await files.move_files(async_session, [a.id], "nope")

    async def test_move_requires_ids(self, files: FileService, async_session: AsyncSession):
        with pytest.raises(ValidationError):
            await files.move_files(async_session, [], None)


class TestVisibility:
    async def test_set_public(self, files: FileService, async_session: AsyncSession):
        f = await files.create_file(async_session, "a.txt", "alice")
        await files.set_file_public(async_session, f.id, True)
        assert f.access_type == "public"
        await files.set_file_public(async_session, f.id, False)
        assert f.access_type == "private"

    async def test_shared_wins_over_public(
        self, files: FileService, sharing: SharingService, async_session: AsyncSession
    ):
        f = await files.create_file(async_session, "a.txt", "alice")
        await sharing.share(async_session, ResourceKind.FILE, f.id, ["bob"], "read", "alice")
        await files.set_file_public(async_session, f.id, True)
        assert f.access_type == "shared"

    async def test_delete_sweeps_shares(
        self,
        files: FileService,
        store: OwnershipStore,
        async_session: AsyncSession,
    ):
        f = await files.create_file(async_session, "a.txt", "alice")
        await store.upsert_share(
            async_session, ResourceKind.FILE, f.id, "bob", AccessLevel.READ, "alice"
        )
        assert await files.delete_file(async_session, f.id) is True
        assert await store.get_file(async_session, f.id) is None
        assert await store.count_shares_for(async_session, ResourceKind.FILE, f.id) == 0


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


class TestListing:
    async def test_list_accessible(
        self,
        files: FileService,
        folders: FolderService,
        store: OwnershipStore,
        async_session: AsyncSession,
    ):
        d = await folders.create_folder(async_session, "Docs", "alice", is_public=True)
        shared = await files.create_file(async_session, "shared.txt", "alice", d.id)
        await files.create_file(async_session, "hidden.txt", "alice", d.id)
        await files.create_file(async_session, "own.txt", "bob", d.id)
        await store.upsert_share(
            async_session, ResourceKind.FILE, shared.id, "bob", AccessLevel.READ, "alice"
        )

        visible = await files.list_accessible_files(async_session, d.id, "bob")
        assert [f.name for f in visible] == ["own.txt", "shared.txt"]
        assert await files.list_accessible_files(async_session, d.id, None) == []

    async def test_search(self, files: FileService, async_session: AsyncSession):
        await files.create_file(async_session, "Budget.xlsx", "alice")
        await files.create_file(async_session, "budget-notes.txt", "bob")
        results = await files.search_files(async_session, "budget", "alice")
        assert [f.name for f in results] == ["Budget.xlsx"]

    async def test_search_requires_query(self, files: FileService, async_session: AsyncSession):
        with pytest.raises(ValidationError):
            await files.search_files(async_session, "  ", "alice")

    async def test_list_shared(
        self, files: FileService, store: OwnershipStore, async_session: AsyncSession
    ):
        b = await files.create_file(async_session, "b.txt", "alice")
        a = await files.create_file(async_session, "a.txt", "alice")
        for f in (a, b):
            await store.upsert_share(
                async_session, ResourceKind.FILE, f.id, "bob", AccessLevel.READ, "alice"
            )
        assert [f.name for f in await files.list_shared_files(async_session, "bob")] == [
            "a.txt",
            "b.txt",
        ]
