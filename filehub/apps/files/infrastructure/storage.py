"""Storage capability shared by every repository backend.

A backend stores the files of many repositories under one root and
addresses them by ``(repo, path)``. Backends are chosen from the scheme
of a repository's root URI: ``file://`` for a local directory and
``s3://`` for an S3-compatible bucket.
"""

import enum
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, Protocol
from urllib.parse import unquote, urlsplit

from filehub.apps.files.exceptions import UnsupportedStorageError
from filehub.apps.files.infrastructure.metadata import (
    DIRECTORY_CONTENT_TYPE,
    detect_content_type,
)
from filehub.apps.files.infrastructure.paths import basename, clean


@dataclass(frozen=True)
class FileObject:
    """Metadata of one file or directory in a repository."""

    name: str
    path: str
    is_dir: bool
    size: int
    modified: datetime
    content_type: str

    @classmethod
    def file(cls, path: str, size: int, modified: datetime) -> 'FileObject':
        """Build a file entry, deriving name and content type from path."""
        path = clean(path)
        return cls(
            name=basename(path),
            path=path,
            is_dir=False,
            size=size,
            modified=modified,
            content_type=detect_content_type(path),
        )

    @classmethod
    def directory(cls, path: str, modified: datetime) -> 'FileObject':
        """Build a directory entry."""
        path = clean(path)
        return cls(
            name=basename(path),
            path=path,
            is_dir=True,
            size=0,
            modified=modified,
            content_type=DIRECTORY_CONTENT_TYPE,
        )


class ScanControl(enum.Enum):
    """Value a scan visitor returns to steer the traversal."""

    CONTINUE = 'continue'
    STOP = 'stop'


ScanVisitor = Callable[[FileObject], ScanControl | None]


class Storage(Protocol):
    """File operations every backend provides.

    Paths are cleaned by the backend before use. Failures raise the
    ``StorageError`` family from ``filehub.apps.files.exceptions``.
    """

    def put_file(self, repo: str, path: str, stream: BinaryIO) -> int:
        """Write a file from a stream, creating parent directories.

        Returns:
            Number of bytes written.
        """

    def open_file(self, repo: str, path: str) -> BinaryIO:
        """Open a file for reading; the caller must close the stream."""

    def delete_file(self, repo: str, path: str) -> None:
        """Delete a file or a directory with everything below it."""

    def copy_file(self, repo: str, src: str, dst: str) -> None:
        """Copy a file or directory tree within one repository."""

    def move_file(self, repo: str, src: str, dst: str) -> None:
        """Move a file or directory tree within one repository."""

    def create_dir(self, repo: str, path: str) -> None:
        """Create a directory and any missing parents."""

    def get_info(self, repo: str, path: str) -> FileObject:
        """Get metadata of a single path."""

    def list_dir(self, repo: str, path: str) -> list[FileObject]:
        """List the direct children of a directory, sorted by name."""

    def scan(
        self,
        repo: str,
        visit: ScanVisitor,
        path: str = '/',
    ) -> None:
        """Visit every entry below ``path`` depth first.

        The visitor may return ``ScanControl.STOP`` to end the scan.
        """

    def get_content_type(self, repo: str, path: str) -> str:
        """Content type of a path; never fails."""


def get_storage(root_uri: str) -> Storage:
    """Create the backend for a repository root URI.

    Args:
        root_uri: ``file:///abs/dir``, a bare absolute directory, or
            ``s3://bucket/prefix``.

    Returns:
        Storage backend for the URI.

    Raises:
        UnsupportedStorageError: If the scheme is unknown.
    """
    parts = urlsplit(root_uri)

    if parts.scheme in {'', 'file'}:
        from filehub.apps.files.infrastructure.filesystem import (  # noqa: PLC0415
            FilesystemStorage,
        )
        return FilesystemStorage(unquote(parts.path))

    if parts.scheme == 's3':
        from filehub.apps.files.infrastructure.s3 import S3Storage  # noqa: PLC0415
        return S3Storage(bucket=parts.netloc, prefix=unquote(parts.path))

    raise UnsupportedStorageError(
        f'Unsupported storage scheme: {parts.scheme}',
    )
