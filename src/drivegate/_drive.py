"""DriveGate — synchronous wrapper around ``DriveGateAsync``."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any

from drivegate._drive_async import DriveGateAsync
from drivegate.permissions import AccessLevel

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncEngine

    from drivegate.cache.protocol import CacheBackend
    from drivegate.config import DriveGateConfig
    from drivegate.types import FileInfo, FolderInfo, FolderNode, ShareInfo, UserInfo

logger = logging.getLogger(__name__)


class DriveGate:
    """Blocking API backed by a private event loop in a daemon thread.

    Every method submits the matching ``DriveGateAsync`` coroutine to the
    loop and waits for it, so the drive can be used from plain sync code
    or from inside a running event loop.

    Usage::

        with DriveGate(config=DriveGateConfig(database_url="sqlite+aiosqlite://")) as drive:
            docs = drive.create_folder("Docs", user_id="alice")
            f = drive.create_file("notes.txt", docs.id, user_id="alice")
            drive.share_file(f.id, ["bob"], user_id="alice")
    """

    def __init__(
        self,
        engine: AsyncEngine | None = None,
        *,
        config: DriveGateConfig | None = None,
        cache: CacheBackend | None = None,
    ) -> None:
        self._closed = False

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._thread.start()

        self._drive = DriveGateAsync(engine, config=config, cache=cache)
        try:
            self._run(self._drive.open())
        except Exception:
            self._stop_loop()
            raise

    def _run(self, coro: Any) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    def _stop_loop(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)

    @property
    def drive(self) -> DriveGateAsync:
        """The underlying async facade."""
        return self._drive

    def close(self) -> None:
        """Close the drive, stop the event loop and join the thread."""
        if self._closed:
            return
        self._closed = True
        try:
            self._run(self._drive.close())
        finally:
            self._stop_loop()

    def __enter__(self) -> DriveGate:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(
        self, username: str, *, email: str = "", user_id: str | None = None
    ) -> UserInfo:
        return self._run(self._drive.create_user(username, email=email, user_id=user_id))

    def get_user(self, user_id: str) -> UserInfo:
        return self._run(self._drive.get_user(user_id))

    # ------------------------------------------------------------------
    # Access checks
    # ------------------------------------------------------------------

    def can_access_file(self, file_id: str, *, user_id: str | None = None) -> bool:
        return self._run(self._drive.can_access_file(file_id, user_id=user_id))

    def can_access_folder(self, folder_id: str, *, user_id: str | None = None) -> bool:
        return self._run(self._drive.can_access_folder(folder_id, user_id=user_id))

    def file_access_level(self, file_id: str, *, user_id: str | None = None) -> AccessLevel:
        return self._run(self._drive.file_access_level(file_id, user_id=user_id))

    def folder_access_level(self, folder_id: str, *, user_id: str | None = None) -> AccessLevel:
        return self._run(self._drive.folder_access_level(folder_id, user_id=user_id))

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    def create_folder(
        self,
        name: str,
        parent_id: str | None = None,
        *,
        is_public: bool | None = None,
        user_id: str | None = None,
    ) -> FolderInfo:
        return self._run(
            self._drive.create_folder(name, parent_id, is_public=is_public, user_id=user_id)
        )

    def get_folder(self, folder_id: str, *, user_id: str | None = None) -> FolderInfo:
        return self._run(self._drive.get_folder(folder_id, user_id=user_id))

    def rename_folder(self, folder_id: str, name: str, *, user_id: str | None = None) -> FolderInfo:
        return self._run(self._drive.rename_folder(folder_id, name, user_id=user_id))

    def move_folder(
        self, folder_id: str, new_parent_id: str | None, *, user_id: str | None = None
    ) -> FolderInfo:
        return self._run(self._drive.move_folder(folder_id, new_parent_id, user_id=user_id))

    def set_folder_public(
        self, folder_id: str, is_public: bool, *, user_id: str | None = None
    ) -> FolderInfo:
        return self._run(self._drive.set_folder_public(folder_id, is_public, user_id=user_id))

    def delete_folder(self, folder_id: str, *, user_id: str | None = None) -> bool:
        return self._run(self._drive.delete_folder(folder_id, user_id=user_id))

    def list_folders(
        self, parent_id: str | None = None, *, user_id: str | None = None
    ) -> list[FolderInfo]:
        return self._run(self._drive.list_folders(parent_id, user_id=user_id))

    def folder_tree(
        self, parent_id: str | None = None, *, user_id: str | None = None
    ) -> list[FolderNode]:
        return self._run(self._drive.folder_tree(parent_id, user_id=user_id))

    def shared_folders(self, *, user_id: str | None = None) -> list[FolderInfo]:
        return self._run(self._drive.shared_folders(user_id=user_id))

    def share_folder(
        self,
        folder_id: str,
        user_ids: Sequence[str],
        access_level: AccessLevel | str = AccessLevel.WRITE,
        *,
        user_id: str | None = None,
        atomic: bool = False,
    ) -> list[ShareInfo]:
        return self._run(
            self._drive.share_folder(
                folder_id, user_ids, access_level, user_id=user_id, atomic=atomic
            )
        )

    def unshare_folder(
        self, folder_id: str, target_user_id: str, *, user_id: str | None = None
    ) -> bool:
        return self._run(self._drive.unshare_folder(folder_id, target_user_id, user_id=user_id))

    def list_folder_shares(self, folder_id: str, *, user_id: str | None = None) -> list[ShareInfo]:
        return self._run(self._drive.list_folder_shares(folder_id, user_id=user_id))

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def create_file(
        self,
        name: str,
        folder_id: str | None = None,
        *,
        mime_type: str = "application/octet-stream",
        size_bytes: int = 0,
        user_id: str | None = None,
    ) -> FileInfo:
        return self._run(
            self._drive.create_file(
                name, folder_id, mime_type=mime_type, size_bytes=size_bytes, user_id=user_id
            )
        )

    def get_file(self, file_id: str, *, user_id: str | None = None) -> FileInfo:
        return self._run(self._drive.get_file(file_id, user_id=user_id))

    def rename_file(self, file_id: str, new_name: str, *, user_id: str | None = None) -> FileInfo:
        return self._run(self._drive.rename_file(file_id, new_name, user_id=user_id))

    def move_files(
        self,
        file_ids: Sequence[str],
        destination_folder_id: str | None,
        *,
        user_id: str | None = None,
    ) -> int:
        return self._run(
            self._drive.move_files(file_ids, destination_folder_id, user_id=user_id)
        )

    def set_file_public(
        self, file_id: str, is_public: bool, *, user_id: str | None = None
    ) -> FileInfo:
        return self._run(self._drive.set_file_public(file_id, is_public, user_id=user_id))

    def delete_file(self, file_id: str, *, user_id: str | None = None) -> bool:
        return self._run(self._drive.delete_file(file_id, user_id=user_id))

    def list_files(
        self, folder_id: str | None = None, *, user_id: str | None = None
    ) -> list[FileInfo]:
        return self._run(self._drive.list_files(folder_id, user_id=user_id))

    def search_files(self, query: str, *, user_id: str | None = None) -> list[FileInfo]:
        return self._run(self._drive.search_files(query, user_id=user_id))

    def shared_files(self, *, user_id: str | None = None) -> list[FileInfo]:
        return self._run(self._drive.shared_files(user_id=user_id))

    def share_file(
        self,
        file_id: str,
        user_ids: Sequence[str],
        access_level: AccessLevel | str = AccessLevel.READ,
        *,
        user_id: str | None = None,
        atomic: bool = False,
    ) -> list[ShareInfo]:
        return self._run(
            self._drive.share_file(
                file_id, user_ids, access_level, user_id=user_id, atomic=atomic
            )
        )

    def unshare_file(self, file_id: str, target_user_id: str, *, user_id: str | None = None) -> bool:
        return self._run(self._drive.unshare_file(file_id, target_user_id, user_id=user_id))

    def list_file_shares(self, file_id: str, *, user_id: str | None = None) -> list[ShareInfo]:
        return self._run(self._drive.list_file_shares(file_id, user_id=user_id))
