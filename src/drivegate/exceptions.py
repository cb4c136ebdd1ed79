"""Custom exception hierarchy for drivegate."""


class DriveGateError(Exception):
    """Base exception for all drivegate errors."""


class NotFoundError(DriveGateError):
    """Raised when a file, folder, or user id does not resolve."""


class ValidationError(DriveGateError):
    """Raised on malformed input (share requests, names, tree moves)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class FolderNotEmptyError(ValidationError):
    """Raised when deleting a folder that still holds subfolders or files."""


class AccessDeniedError(DriveGateError):
    """Raised when the acting user lacks the level an operation requires."""


class StorageError(DriveGateError):
    """Raised on storage backend failures (DB connection, constraint, etc.)."""
