"""Exceptions for the storage filesystem bridge.

The filesystem-facing errors also derive from the matching builtin
``OSError`` subclasses so generic callers can handle them as ordinary
filesystem failures.
"""

from typing import Any

NOT_FOUND_CODES = frozenset(
    {
        "BlobNotFound",
        "ContainerNotFound",
        "ShareNotFound",
        "ResourceNotFound",
        "ParentNotFound",
        "PathNotFound",
    }
)

ALREADY_EXISTS_CODES = frozenset(
    {
        "BlobAlreadyExists",
        "ContainerAlreadyExists",
        "ShareAlreadyExists",
        "ResourceAlreadyExists",
        "PathAlreadyExists",
    }
)


class StorageFSError(Exception):
    """Base exception for storage filesystem errors."""


class MalformedPathError(StorageFSError, ValueError):
    """Raised when a path does not have the expected shape."""


class NotFoundError(StorageFSError, FileNotFoundError):
    """Raised when the addressed entity does not exist."""


class AlreadyExistsError(StorageFSError, FileExistsError):
    """Raised when creating something that already exists."""


class EntryNotADirectoryError(StorageFSError, NotADirectoryError):
    """Raised when a directory was expected but a file was found."""


class EntryNotAFileError(StorageFSError, IsADirectoryError):
    """Raised when a file was expected but a directory was found."""


class NoPermissionsError(StorageFSError, PermissionError):
    """Raised when an operation is not allowed."""


class UnsupportedOperationError(StorageFSError):
    """Raised for operations the storage model cannot perform."""


class OperationCancelledError(StorageFSError):
    """Raised when a long-running operation observes a cancellation request."""


class BackendError(StorageFSError):
    """Error reported by a remote storage backend."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404 or self.error_code in NOT_FOUND_CODES

    @property
    def is_conflict(self) -> bool:
        return self.error_code in ALREADY_EXISTS_CODES or (
            self.status_code == 409 and self.error_code is None
        )

    @property
    def is_forbidden(self) -> bool:
        return self.status_code == 403


def classify_backend_error(error: Exception, path: Any) -> Exception:
    """
    Map a backend error onto the filesystem error taxonomy.

    Args:
        error: The exception raised by a remote call
        path: The path the call was made for (used in the message)

    Returns:
        The classified exception, or ``error`` itself when it does not
        match a known condition
    """
    if not isinstance(error, BackendError):
        return error

    if error.is_not_found:
        return NotFoundError(f"No such file or directory: {path}")
    if error.is_conflict:
        return AlreadyExistsError(f"File exists: {path}")
    if error.is_forbidden:
        return NoPermissionsError(f"Permission denied: {path}")
    return error
