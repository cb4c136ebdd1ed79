"""Shared fixtures for drivegate tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from drivegate._drive_async import DriveGateAsync
from drivegate.access import AccessResolver
from drivegate.cache.memory import MemoryCache
from drivegate.config import DriveGateConfig
from drivegate.files import FileService
from drivegate.folders import FolderService
from drivegate.sharing import SharingService
from drivegate.store import OwnershipStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def async_session(async_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Async SQLModel session on the in-memory engine."""
    factory = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> OwnershipStore:
    return OwnershipStore()


@pytest.fixture
def resolver(store: OwnershipStore) -> AccessResolver:
    return AccessResolver(store)


@pytest.fixture
def sharing(store: OwnershipStore) -> SharingService:
    return SharingService(store)


@pytest.fixture
def folders(
    store: OwnershipStore, resolver: AccessResolver, sharing: SharingService
) -> FolderService:
    return FolderService(store, resolver, sharing)


@pytest.fixture
def files(
    store: OwnershipStore, resolver: AccessResolver, sharing: SharingService
) -> FileService:
    return FileService(store, resolver, sharing)


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
async def drive(
    async_engine: AsyncEngine, memory_cache: MemoryCache
) -> AsyncIterator[DriveGateAsync]:
    """DriveGateAsync on the in-memory engine with an inspectable cache."""
    d = DriveGateAsync(async_engine, config=DriveGateConfig(), cache=memory_cache)
    await d.open()
    yield d
    await d.close()
