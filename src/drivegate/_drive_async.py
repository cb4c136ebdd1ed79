"""DriveGateAsync — primary async facade.

Wires the ownership store, access resolver, sharing, folder and file
services, the cache, and the event bus.  Every public method runs in its
own session (commit on success, rollback on error), enforces the access
level the operation needs, and emits a ``DriveEvent`` once the change is
committed so the cache invalidator can evict stale reads.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from drivegate.access import AccessResolver
from drivegate.cache.invalidation import CacheInvalidator
from drivegate.cache.keys import CacheKeys
from drivegate.cache.memory import MemoryCache, NullCache
from drivegate.config import DriveGateConfig
from drivegate.events import DriveEvent, EventBus, EventType
from drivegate.exceptions import AccessDeniedError, NotFoundError, ValidationError
from drivegate.files import FileService
from drivegate.folders import FolderService
from drivegate.permissions import AccessLevel, ResourceKind
from drivegate.sharing import SharingService
from drivegate.store import OwnershipStore, storage_errors
from drivegate.types import (
    FileInfo,
    FolderInfo,
    FolderNode,
    ShareInfo,
    UserInfo,
    file_to_info,
    folder_to_info,
    share_to_info,
    user_to_info,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Sequence

    from sqlalchemy.ext.asyncio import AsyncEngine

    from drivegate.cache.protocol import CacheBackend

logger = logging.getLogger(__name__)

_FOLDERS = TypeAdapter(list[FolderInfo])
_FILES = TypeAdapter(list[FileInfo])
_TREE = TypeAdapter(list[FolderNode])
_FOLDER = TypeAdapter(FolderInfo)
_FILE = TypeAdapter(FileInfo)


def _require_user(user_id: str | None) -> str:
    if not user_id:
        raise AccessDeniedError("Authentication required")
    return user_id


def _recipient_ids(user_ids: Sequence[Any]) -> tuple[str, ...]:
    if isinstance(user_ids, str) or not isinstance(user_ids, (list, tuple)):
        return ()
    return tuple(u.strip() for u in user_ids if isinstance(u, str) and u.strip())


class DriveGateAsync:
    """Async facade for folders, files, shares, and access checks.

    Usage::

        engine = create_async_engine("sqlite+aiosqlite:///drive.db")
        async with DriveGateAsync(engine) as drive:
            folder = await drive.create_folder("Docs", user_id="alice")
            f = await drive.create_file("a.txt", folder_id=folder.id, user_id="alice")
            await drive.share_file(f.id, ["bob"], "read", user_id="alice")
            assert await drive.can_access_file(f.id, user_id="bob")

    Acting users are trusted as already authenticated; ``user_id=None``
    is an anonymous caller.
    """

    def __init__(
        self,
        engine: AsyncEngine | None = None,
        *,
        config: DriveGateConfig | None = None,
        cache: CacheBackend | None = None,
        store: OwnershipStore | None = None,
    ) -> None:
        self._config = config or DriveGateConfig()
        self._owns_engine = engine is None
        self._engine = engine or create_async_engine(
            self._config.database_url, echo=self._config.echo_sql
        )
        self._session_factory = async_sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )
        self._opened = False
        self._closed = False

        # Core services
        self._store = store or OwnershipStore()
        self._resolver = AccessResolver(self._store)
        self._sharing = SharingService(self._store)
        self._folders = FolderService(self._store, self._resolver, self._sharing)
        self._files = FileService(self._store, self._resolver, self._sharing)

        # Cache and invalidation
        self._keys = CacheKeys(prefix=self._config.cache_prefix, ttls=dict(self._config.cache_ttls))
        self._cache: CacheBackend = cache if cache is not None else self._build_cache()
        self._event_bus = EventBus()
        self._invalidator = CacheInvalidator(self._cache, self._keys)
        self._invalidator.register(self._event_bus)

        self._share_locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _build_cache(self) -> CacheBackend:
        backend = self._config.cache_backend
        if backend == "redis":
            from drivegate.cache.redis import RedisCache

            return RedisCache.from_url(self._config.redis_url)
        if backend == "none":
            return NullCache()
        return MemoryCache()

    @property
    def cache(self) -> CacheBackend:
        return self._cache

    @property
    def cache_keys(self) -> CacheKeys:
        return self._keys

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def store(self) -> OwnershipStore:
        return self._store

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Create the tables if they do not exist. Idempotent."""
        if self._opened:
            return
        with storage_errors("create tables"):
            async with self._engine.begin() as conn:
                for model in self._store.models:
                    await conn.run_sync(
                        lambda c, m=model: m.__table__.create(c, checkfirst=True)
                    )
        self._opened = True

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        logger.debug("Closing drive, dropping %d event handler(s)", self._event_bus.handler_count)
        self._event_bus.clear()
        await self._cache.close()
        if self._owns_engine:
            await self._engine.dispose()

    async def __aenter__(self) -> DriveGateAsync:
        await self.open()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Session, locks, events
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession]:
        """Yield a session; commit on success, roll back on error."""
        if not self._opened:
            await self.open()
        session = self._session_factory()
        try:
            yield session
            with storage_errors("commit"):
                await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    def _lock_for(self, kind: ResourceKind, resource_id: str) -> asyncio.Lock:
        """Serialise share and delete mutations on one resource within this instance."""
        key = (kind.value, resource_id)
        lock = self._share_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._share_locks[key] = lock
        return lock

    async def _emit(
        self,
        event_type: EventType,
        resource_id: str,
        user_id: str | None,
        owner_id: str | None = None,
        recipients: tuple[str, ...] = (),
    ) -> None:
        await self._event_bus.emit(
            DriveEvent(
                event_type=event_type,
                resource_id=resource_id,
                user_id=user_id,
                owner_id=owner_id,
                recipients=recipients,
            )
        )

    # ------------------------------------------------------------------
    # Cache helpers (failures are a miss, never an error)
    # ------------------------------------------------------------------

    async def _cache_get(
        self,
        entity: str,
        item_id: str,
        user_id: str | None,
        adapter: TypeAdapter[Any],
    ) -> Any | None:
        if not self._keys.should_cache(entity):
            return None
        key = self._keys.key(entity, item_id, user_id)
        try:
            raw = await self._cache.get(key)
            if raw is None:
                return None
            return adapter.validate_python(raw)
        except Exception:
            logger.warning("Cache read failed for %s", key, exc_info=True)
            return None

    async def _cache_set(
        self,
        entity: str,
        item_id: str,
        user_id: str | None,
        value: Any,
        adapter: TypeAdapter[Any],
        generation: int,
    ) -> None:
        """Cache *value* unless *entity* was evicted since *generation* was read."""
        if not self._keys.should_cache(entity):
            return
        key = self._keys.key(entity, item_id, user_id)
        if self._invalidator.generation(entity) != generation:
            logger.debug("Skipping stale cache write for %s", key)
            return
        try:
            await self._cache.set(
                key, adapter.dump_python(value, mode="json"), self._keys.ttl(entity)
            )
        except Exception:
            logger.warning("Cache write failed for %s", key, exc_info=True)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(
        self,
        username: str,
        *,
        email: str = "",
        user_id: str | None = None,
    ) -> UserInfo:
        if not username or not username.strip():
            raise ValidationError("Username is required", field="username")
        values: dict[str, Any] = {"username": username.strip(), "email": email}
        if user_id is not None:
            values["id"] = user_id
        async with self._session() as session:
            user = await self._store.add(session, self._store.user_model(**values))
            return user_to_info(user)

    async def get_user(self, user_id: str) -> UserInfo:
        async with self._session() as session:
            user = await self._store.get_user(session, user_id)
            if user is None:
                raise NotFoundError(f"User not found: {user_id}")
            return user_to_info(user)

    # ------------------------------------------------------------------
    # Access checks (never raise for unknown resources)
    # ------------------------------------------------------------------

    async def file_access_level(self, file_id: str, *, user_id: str | None = None) -> AccessLevel:
        async with self._session() as session:
            return await self._resolver.resolve_file_level(session, file_id, user_id)

    async def can_access_file(self, file_id: str, *, user_id: str | None = None) -> bool:
        async with self._session() as session:
            return await self._resolver.can_access_file(session, file_id, user_id)

    async def folder_access_level(
        self, folder_id: str, *, user_id: str | None = None
    ) -> AccessLevel:
        async with self._session() as session:
            return await self._resolver.resolve_folder_level(session, folder_id, user_id)

    async def can_access_folder(self, folder_id: str, *, user_id: str | None = None) -> bool:
        async with self._session() as session:
            return await self._resolver.can_access_folder(session, folder_id, user_id)

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    async def create_folder(
        self,
        name: str,
        parent_id: str | None = None,
        *,
        is_public: bool | None = None,
        user_id: str | None = None,
    ) -> FolderInfo:
        """Create a folder owned by *user_id*.

        Needs ``WRITE`` on the parent.  Under a parent the public flag is
        inherited; *is_public* only applies to root folders.
        """
        actor = _require_user(user_id)
        async with self._session() as session:
            if parent_id is not None:
                await self._resolver.require_folder_level(
                    session, parent_id, actor, AccessLevel.WRITE
                )
            folder = await self._folders.create_folder(
                session, name, actor, parent_id, is_public=is_public
            )
            info = folder_to_info(folder)
        await self._emit(EventType.FOLDER_CREATED, info.id, actor, info.owner_id)
        return info

    async def get_folder(self, folder_id: str, *, user_id: str | None = None) -> FolderInfo:
        cached = await self._cache_get("folder", folder_id, user_id, _FOLDER)
        if cached is not None:
            return cached
        generation = self._invalidator.generation("folder")
        async with self._session() as session:
            folder = await self._resolver.require_folder_level(
                session, folder_id, user_id, AccessLevel.READ
            )
            info = folder_to_info(folder)
        await self._cache_set("folder", folder_id, user_id, info, _FOLDER, generation)
        return info

    async def rename_folder(
        self, folder_id: str, name: str, *, user_id: str | None = None
    ) -> FolderInfo:
        actor = _require_user(user_id)
        async with self._session() as session:
            await self._resolver.require_folder_level(session, folder_id, actor, AccessLevel.WRITE)
            folder = await self._folders.rename_folder(session, folder_id, name)
            info = folder_to_info(folder)
        await self._emit(EventType.FOLDER_RENAMED, folder_id, actor, info.owner_id)
        return info

    async def move_folder(
        self, folder_id: str, new_parent_id: str | None, *, user_id: str | None = None
    ) -> FolderInfo:
        """Re-parent a folder. Its public flag is not recomputed."""
        actor = _require_user(user_id)
        async with self._session() as session:
            await self._resolver.require_folder_level(session, folder_id, actor, AccessLevel.WRITE)
            if new_parent_id is not None:
                await self._resolver.require_folder_level(
                    session, new_parent_id, actor, AccessLevel.WRITE
                )
            folder = await self._folders.move_folder(session, folder_id, new_parent_id)
            info = folder_to_info(folder)
        await self._emit(EventType.FOLDER_MOVED, folder_id, actor, info.owner_id)
        return info

    async def set_folder_public(
        self, folder_id: str, is_public: bool, *, user_id: str | None = None
    ) -> FolderInfo:
        actor = _require_user(user_id)
        async with self._session() as session:
            await self._resolver.require_folder_level(session, folder_id, actor, AccessLevel.OWNER)
            folder = await self._folders.set_folder_public(session, folder_id, is_public)
            info = folder_to_info(folder)
        await self._emit(EventType.FOLDER_VISIBILITY_CHANGED, folder_id, actor, info.owner_id)
        return info

    async def delete_folder(self, folder_id: str, *, user_id: str | None = None) -> bool:
        """Delete an empty folder owned by *user_id*."""
        actor = _require_user(user_id)
        async with self._lock_for(ResourceKind.FOLDER, folder_id), self._session() as session:
            folder = await self._resolver.require_folder_level(
                session, folder_id, actor, AccessLevel.OWNER
            )
            owner_id = folder.owner_id
            deleted = await self._folders.delete_folder(session, folder_id)
        await self._emit(EventType.FOLDER_DELETED, folder_id, actor, owner_id)
        return deleted

    async def list_folders(
        self, parent_id: str | None = None, *, user_id: str | None = None
    ) -> list[FolderInfo]:
        """Folders under *parent_id* the actor owns, was shared, or that are public."""
        cache_id = f"list:{parent_id or 'root'}"
        cached = await self._cache_get("folders", cache_id, user_id, _FOLDERS)
        if cached is not None:
            return cached
        generation = self._invalidator.generation("folders")
        async with self._session() as session:
            folders = await self._folders.list_accessible_folders(session, parent_id, user_id)
            result = [folder_to_info(f) for f in folders]
        await self._cache_set("folders", cache_id, user_id, result, _FOLDERS, generation)
        return result

    async def folder_tree(
        self, parent_id: str | None = None, *, user_id: str | None = None
    ) -> list[FolderNode]:
        """Accessible folders under *parent_id* with their accessible files, recursively."""
        cache_id = f"tree:{parent_id or 'root'}"
        cached = await self._cache_get("folders-tree", cache_id, user_id, _TREE)
        if cached is not None:
            return cached
        generation = self._invalidator.generation("folders-tree")
        async with self._session() as session:
            tree = await self._folders.get_folders_with_files(
                session, parent_id, user_id, max_depth=self._config.max_tree_depth
            )
        await self._cache_set("folders-tree", cache_id, user_id, tree, _TREE, generation)
        return tree

    async def shared_folders(self, *, user_id: str | None = None) -> list[FolderInfo]:
        actor = _require_user(user_id)
        cached = await self._cache_get("folders", "shared", actor, _FOLDERS)
        if cached is not None:
            return cached
        generation = self._invalidator.generation("folders")
        async with self._session() as session:
            folders = await self._folders.list_shared_folders(session, actor)
            result = [folder_to_info(f) for f in folders]
        await self._cache_set("folders", "shared", actor, result, _FOLDERS, generation)
        return result

    async def share_folder(
        self,
        folder_id: str,
        user_ids: Sequence[str],
        access_level: AccessLevel | str = AccessLevel.WRITE,
        *,
        user_id: str | None = None,
        atomic: bool = False,
    ) -> list[ShareInfo]:
        """Share a folder with each of *user_ids*. See ``share_file``."""
        return await self._share(
            ResourceKind.FOLDER, folder_id, user_ids, access_level, user_id, atomic
        )

    async def unshare_folder(
        self, folder_id: str, target_user_id: str, *, user_id: str | None = None
    ) -> bool:
        return await self._unshare(ResourceKind.FOLDER, folder_id, target_user_id, user_id)

    async def list_folder_shares(
        self, folder_id: str, *, user_id: str | None = None
    ) -> list[ShareInfo]:
        async with self._session() as session:
            await self._resolver.require_folder_level(
                session, folder_id, user_id, AccessLevel.WRITE
            )
            shares = await self._sharing.list_shares(session, ResourceKind.FOLDER, folder_id)
            return [share_to_info(s) for s in shares]

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def create_file(
        self,
        name: str,
        folder_id: str | None = None,
        *,
        mime_type: str = "application/octet-stream",
        size_bytes: int = 0,
        user_id: str | None = None,
    ) -> FileInfo:
        """Record a file owned by *user_id*; needs ``WRITE`` on the folder."""
        actor = _require_user(user_id)
        async with self._session() as session:
            if folder_id is not None:
                await self._resolver.require_folder_level(
                    session, folder_id, actor, AccessLevel.WRITE
                )
            file = await self._files.create_file(
                session, name, actor, folder_id, mime_type=mime_type, size_bytes=size_bytes
            )
            info = file_to_info(file)
        await self._emit(EventType.FILE_CREATED, info.id, actor, info.owner_id)
        return info

    async def get_file(self, file_id: str, *, user_id: str | None = None) -> FileInfo:
        cached = await self._cache_get("file", file_id, user_id, _FILE)
        if cached is not None:
            return cached
        generation = self._invalidator.generation("file")
        async with self._session() as session:
            file = await self._resolver.require_file_level(
                session, file_id, user_id, AccessLevel.READ
            )
            info = file_to_info(file)
        await self._cache_set("file", file_id, user_id, info, _FILE, generation)
        return info

    async def rename_file(
        self, file_id: str, new_name: str, *, user_id: str | None = None
    ) -> FileInfo:
        actor = _require_user(user_id)
        async with self._session() as session:
            await self._resolver.require_file_level(session, file_id, actor, AccessLevel.WRITE)
            file = await self._files.rename_file(session, file_id, new_name)
            info = file_to_info(file)
        await self._emit(EventType.FILE_RENAMED, file_id, actor, info.owner_id)
        return info

    async def move_files(
        self,
        file_ids: Sequence[str],
        destination_folder_id: str | None,
        *,
        user_id: str | None = None,
    ) -> int:
        """Move files the actor can write into a folder it can write.

        Unknown file ids are skipped.  Returns the number moved.
        """
        actor = _require_user(user_id)
        async with self._session() as session:
            if destination_folder_id is not None:
                await self._resolver.require_folder_level(
                    session, destination_folder_id, actor, AccessLevel.WRITE
                )
            if not isinstance(file_ids, str):
                for file_id in file_ids or ():
                    if await self._store.get_file(session, file_id) is not None:
                        await self._resolver.require_file_level(
                            session, file_id, actor, AccessLevel.WRITE
                        )
            moved = await self._files.move_files(session, file_ids, destination_folder_id)
        if moved:
            await self._emit(EventType.FILE_MOVED, moved[0].id, actor, moved[0].owner_id)
        return len(moved)

    async def set_file_public(
        self, file_id: str, is_public: bool, *, user_id: str | None = None
    ) -> FileInfo:
        """Set the public designation. It changes ``access_type``, never access."""
        actor = _require_user(user_id)
        async with self._session() as session:
            await self._resolver.require_file_level(session, file_id, actor, AccessLevel.OWNER)
            file = await self._files.set_file_public(session, file_id, is_public)
            info = file_to_info(file)
        await self._emit(EventType.FILE_VISIBILITY_CHANGED, file_id, actor, info.owner_id)
        return info

    async def delete_file(self, file_id: str, *, user_id: str | None = None) -> bool:
        actor = _require_user(user_id)
        async with self._lock_for(ResourceKind.FILE, file_id), self._session() as session:
            file = await self._resolver.require_file_level(
                session, file_id, actor, AccessLevel.OWNER
            )
            owner_id = file.owner_id
            deleted = await self._files.delete_file(session, file_id)
        await self._emit(EventType.FILE_DELETED, file_id, actor, owner_id)
        return deleted

    async def list_files(
        self, folder_id: str | None = None, *, user_id: str | None = None
    ) -> list[FileInfo]:
        """Files in *folder_id* that the actor owns or was shared."""
        cache_id = f"list:{folder_id or 'root'}"
        cached = await self._cache_get("files", cache_id, user_id, _FILES)
        if cached is not None:
            return cached
        generation = self._invalidator.generation("files")
        async with self._session() as session:
            files = await self._files.list_accessible_files(session, folder_id, user_id)
            result = [file_to_info(f) for f in files]
        await self._cache_set("files", cache_id, user_id, result, _FILES, generation)
        return result

    async def search_files(self, query: str, *, user_id: str | None = None) -> list[FileInfo]:
        async with self._session() as session:
            files = await self._files.search_files(session, query, user_id)
            return [file_to_info(f) for f in files]

    async def shared_files(self, *, user_id: str | None = None) -> list[FileInfo]:
        actor = _require_user(user_id)
        cached = await self._cache_get("files", "shared", actor, _FILES)
        if cached is not None:
            return cached
        generation = self._invalidator.generation("files")
        async with self._session() as session:
            files = await self._files.list_shared_files(session, actor)
            result = [file_to_info(f) for f in files]
        await self._cache_set("files", "shared", actor, result, _FILES, generation)
        return result

    async def share_file(
        self,
        file_id: str,
        user_ids: Sequence[str],
        access_level: AccessLevel | str = AccessLevel.READ,
        *,
        user_id: str | None = None,
        atomic: bool = False,
    ) -> list[ShareInfo]:
        """Share a file with each of *user_ids* at *access_level*.

        Needs ``WRITE`` on the file.  Existing shares are updated in place.
        By default each target is committed separately, so a failure part
        way through keeps the earlier targets shared; ``atomic=True``
        applies all targets or none.
        """
        return await self._share(
            ResourceKind.FILE, file_id, user_ids, access_level, user_id, atomic
        )

    async def unshare_file(
        self, file_id: str, target_user_id: str, *, user_id: str | None = None
    ) -> bool:
        return await self._unshare(ResourceKind.FILE, file_id, target_user_id, user_id)

    async def list_file_shares(self, file_id: str, *, user_id: str | None = None) -> list[ShareInfo]:
        async with self._session() as session:
            await self._resolver.require_file_level(session, file_id, user_id, AccessLevel.WRITE)
            shares = await self._sharing.list_shares(session, ResourceKind.FILE, file_id)
            return [share_to_info(s) for s in shares]

    # ------------------------------------------------------------------
    # Share plumbing
    # ------------------------------------------------------------------

    async def _require_level(
        self,
        session: AsyncSession,
        kind: ResourceKind,
        resource_id: str,
        user_id: str | None,
        minimum: AccessLevel,
    ) -> Any:
        if kind is ResourceKind.FILE:
            return await self._resolver.require_file_level(session, resource_id, user_id, minimum)
        return await self._resolver.require_folder_level(session, resource_id, user_id, minimum)

    async def _share(
        self,
        kind: ResourceKind,
        resource_id: str,
        user_ids: Sequence[str],
        access_level: AccessLevel | str,
        user_id: str | None,
        atomic: bool,
    ) -> list[ShareInfo]:
        actor = _require_user(user_id)
        event_type = EventType.FILE_SHARED if kind is ResourceKind.FILE else EventType.FOLDER_SHARED
        owner_id: str | None = None
        async with self._lock_for(kind, resource_id):
            try:
                async with self._session() as session:
                    resource = await self._require_level(
                        session, kind, resource_id, actor, AccessLevel.WRITE
                    )
                    owner_id = resource.owner_id
                    shares = await self._sharing.share(
                        session,
                        kind,
                        resource_id,
                        user_ids,
                        access_level,
                        granted_by=actor,
                        commit_each=not atomic,
                    )
                    result = [share_to_info(s) for s in shares]
            except Exception:
                if not atomic and owner_id is not None:
                    # Earlier targets of a failed batch stay committed.
                    await self._emit(
                        event_type, resource_id, actor, owner_id, _recipient_ids(user_ids)
                    )
                raise
        await self._emit(
            event_type,
            resource_id,
            actor,
            owner_id,
            tuple(s.shared_with_user_id for s in result),
        )
        return result

    async def _unshare(
        self,
        kind: ResourceKind,
        resource_id: str,
        target_user_id: str,
        user_id: str | None,
    ) -> bool:
        actor = _require_user(user_id)
        event_type = (
            EventType.FILE_UNSHARED if kind is ResourceKind.FILE else EventType.FOLDER_UNSHARED
        )
        async with self._lock_for(kind, resource_id):
            async with self._session() as session:
                resource = await self._require_level(
                    session, kind, resource_id, actor, AccessLevel.WRITE
                )
                owner_id = resource.owner_id
                removed = await self._sharing.revoke(session, kind, resource_id, target_user_id)
        await self._emit(event_type, resource_id, actor, owner_id, (target_user_id,))
        return removed
