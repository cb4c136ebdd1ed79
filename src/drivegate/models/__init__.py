"""SQLModel database models for drivegate."""

from drivegate.models.files import File, FileBase
from drivegate.models.folders import Folder, FolderBase
from drivegate.models.shares import FileShare, FileShareBase, FolderShare, FolderShareBase
from drivegate.models.users import User, UserBase

__all__ = [
    "File",
    "FileBase",
    "FileShare",
    "FileShareBase",
    "Folder",
    "FolderBase",
    "FolderShare",
    "FolderShareBase",
    "User",
    "UserBase",
]
