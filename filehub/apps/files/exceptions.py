"""Exceptions for files app.

Storage backends raise the ``StorageError`` family so callers can map
failures without knowing which backend produced them.
"""


class StorageError(Exception):
    """Base class for storage failures; unclassified ones are I/O errors."""


class ObjectNotFoundError(StorageError):
    """Raised when a path does not exist in the repository."""


class NotACollectionError(StorageError):
    """Raised when a directory operation targets a file."""


class StoragePermissionError(StorageError):
    """Raised when an operation is not permitted on a path."""


class CrossRepositoryError(StorageError):
    """Raised when a copy or move spans two repositories."""


class StorageIOError(StorageError):
    """Raised when the backing store fails."""


class UnsupportedStorageError(StorageError):
    """Raised when a repository root URI has an unknown scheme."""


class InvalidRootError(Exception):
    """Raised when a repository root is outside the configured root dirs."""


class QuotaExceededError(Exception):
    """Raised when a write would exceed the user's storage quota."""

    def __init__(
        self,
        quota_bytes: int,
        used_bytes: int,
        required_bytes: int,
    ) -> None:
        """Initialize QuotaExceededError.

        Args:
            quota_bytes: Total quota limit in bytes.
            used_bytes: Currently used bytes.
            required_bytes: Bytes needed for the operation.
        """
        self.quota_bytes = quota_bytes
        self.used_bytes = used_bytes
        self.required_bytes = required_bytes

        super().__init__(
            f'Quota exceeded: {required_bytes} bytes requested, '
            f'{max(0, quota_bytes - used_bytes)} of {quota_bytes} available',
        )
