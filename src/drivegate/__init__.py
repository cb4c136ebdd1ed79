"""DriveGate: ownership, sharing, and access control for a multi-tenant drive.

Owner and share based access resolution for files and folders, with
event-driven cache invalidation.
"""

__version__ = "0.1.0"

from drivegate._drive import DriveGate
from drivegate._drive_async import DriveGateAsync
from drivegate.cache import CacheBackend, CacheInvalidator, CacheKeys, MemoryCache, NullCache
from drivegate.config import DriveGateConfig
from drivegate.events import DriveEvent, EventBus, EventType
from drivegate.exceptions import (
    AccessDeniedError,
    DriveGateError,
    FolderNotEmptyError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from drivegate.permissions import AccessLevel, AccessType, ResourceKind
from drivegate.store import OwnershipStore
from drivegate.types import FileInfo, FolderInfo, FolderNode, ShareInfo, UserInfo

__all__ = [
    "AccessDeniedError",
    "AccessLevel",
    "AccessType",
    "CacheBackend",
    "CacheInvalidator",
    "CacheKeys",
    "DriveEvent",
    "DriveGate",
    "DriveGateAsync",
    "DriveGateConfig",
    "DriveGateError",
    "EventBus",
    "EventType",
    "FileInfo",
    "FolderInfo",
    "FolderNode",
    "FolderNotEmptyError",
    "MemoryCache",
    "NotFoundError",
    "NullCache",
    "OwnershipStore",
    "ResourceKind",
    "ShareInfo",
    "StorageError",
    "UserInfo",
    "ValidationError",
    "__version__",
]
