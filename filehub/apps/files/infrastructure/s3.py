"""S3-compatible object store backend.

Object keys are partitioned by a hash of the repository path::

    [prefix/]<hash_prefix(path)>/<repo>/<path without leading slash>

Directories are zero-byte marker objects whose key ends in ``/``. The
hash scatters siblings across partitions, so listings read every key
under the store prefix and group them by their ``<repo>/<path>`` part.
"""

import contextlib
import functools
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, BinaryIO, Final, cast, final

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

from filehub.apps.files.exceptions import (
    NotACollectionError,
    ObjectNotFoundError,
    StorageError,
    StorageIOError,
    StoragePermissionError,
    UnsupportedStorageError,
)
from filehub.apps.files.infrastructure.metadata import detect_content_type
from filehub.apps.files.infrastructure.paths import (
    ROOT,
    SEPARATOR,
    ancestors,
    clean,
    hash_prefix,
    is_equal_or_child,
    parent,
)
from filehub.apps.files.infrastructure.storage import (
    FileObject,
    ScanControl,
    ScanVisitor,
)

# boto3 builds client classes at runtime
S3Client = Any

logger = logging.getLogger(__name__)

# Error codes S3 and compatible servers use for a missing key
_NOT_FOUND_CODES: Final = frozenset(('404', 'NoSuchKey', 'NotFound'))
_ACCESS_DENIED_CODES: Final = frozenset(('403', 'AccessDenied'))

# DeleteObjects accepts at most this many keys per call
_DELETE_BATCH_SIZE: Final = 1000


@functools.cache
def get_s3_client() -> S3Client:
    """Build the process-wide S3 client from settings.

    Returns:
        boto3 S3 client with configured timeouts and retries.

    Raises:
        UnsupportedStorageError: If no ``s3`` block is configured.
    """
    s3_config = settings.FILEHUB_S3
    if not s3_config:
        raise UnsupportedStorageError('S3 storage is not configured')

    logger.info(
        'Creating S3 client for endpoint %s',
        s3_config.get('endpoint') or 'default',
    )
    return boto3.client(
        's3',
        endpoint_url=s3_config.get('endpoint') or None,
        region_name=s3_config.get('region') or None,
        aws_access_key_id=s3_config.get('access_key_id') or None,
        aws_secret_access_key=s3_config.get('secret_access_key') or None,
        config=Config(
            connect_timeout=settings.FILEHUB_S3_CONNECT_TIMEOUT,
            read_timeout=settings.FILEHUB_S3_READ_TIMEOUT,
            retries={
                'max_attempts': settings.FILEHUB_S3_MAX_ATTEMPTS,
                'mode': 'standard',
            },
        ),
    )


def _error_code(error: ClientError) -> str:
    return str(error.response.get('Error', {}).get('Code', ''))


def _storage_error(error: ClientError, path: str) -> StorageError:
    code = _error_code(error)
    if code in _NOT_FOUND_CODES:
        return ObjectNotFoundError(f'Not found: {path}')
    if code in _ACCESS_DENIED_CODES:
        return StoragePermissionError(f'Access denied: {path}')
    return StorageIOError(f'S3 error on {path}: {code}')


@contextlib.contextmanager
def _translate_errors(path: str) -> Iterator[None]:
    """Re-raise botocore errors as storage errors for a repository path."""
    try:
        yield
    except ClientError as error:
        raise _storage_error(error, path) from error
    except BotoCoreError as error:
        logger.warning('S3 error on %s: %s', path, error)
        raise StorageIOError(f'S3 error on {path}') from error


class _CountingReader:
    """Read-only stream wrapper that counts the bytes read through it."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self.count = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self._stream.read(size)
        self.count += len(chunk)
        return chunk


@dataclass(frozen=True)
class _Entry:
    """One listed entry and the key that stores it, if any."""

    info: FileObject
    key: str | None


@final
class S3Storage:
    """Stores repositories as objects in one bucket."""

    def __init__(
        self,
        bucket: str,
        prefix: str = '',
        client: S3Client | None = None,
    ) -> None:
        """Initialize the backend.

        Args:
            bucket: Bucket name.
            prefix: Optional key prefix shared by every repository.
            client: S3 client; the shared one from settings when omitted.
        """
        self._bucket = bucket
        self._prefix = prefix.strip(SEPARATOR)
        self._client = client

    @property
    def client(self) -> S3Client:
        """S3 client used for every call."""
        if self._client is None:
            self._client = get_s3_client()
        return self._client

    @property
    def bucket(self) -> str:
        """Bucket holding the objects."""
        return self._bucket

    def object_key(self, repo: str, path: str) -> str:
        """Object key of a repository path.

        Args:
            repo: Repository name.
            path: Repository path; it is cleaned first.

        Returns:
            Key of the file object. Directory markers append ``/``.
        """
        path = clean(path)
        key = f'{hash_prefix(path)}/{repo}/{path.lstrip(SEPARATOR)}'
        return f'{self._store_prefix}{key}'

    def put_file(self, repo: str, path: str, stream: BinaryIO) -> int:
        """Upload a file and the markers of its parent directories."""
        path = clean(path)
        if path == ROOT:
            raise StoragePermissionError('Cannot write the repository root')

        reader = _CountingReader(stream)
        with _translate_errors(path):
            self.client.upload_fileobj(
                reader,
                self._bucket,
                self.object_key(repo, path),
                ExtraArgs={'ContentType': detect_content_type(path)},
            )
        self._put_markers(repo, ancestors(path))

        logger.debug('Uploaded %d bytes to %s:%s', reader.count, repo, path)
        return reader.count

    def open_file(self, repo: str, path: str) -> BinaryIO:
        """Open an object body for streaming."""
        path = clean(path)
        with _translate_errors(path):
            response = self.client.get_object(
                Bucket=self._bucket,
                Key=self.object_key(repo, path),
            )
        return cast(BinaryIO, response['Body'])

    def delete_file(self, repo: str, path: str) -> None:
        """Delete an object, or a directory marker and all descendants."""
        path = clean(path)
        if path == ROOT:
            raise StoragePermissionError('Cannot delete the repository root')

        # A missing path still sweeps keys implied below it
        if self._is_dir(repo, path, default=True):
            keys = [
                entry.key
                for entry in self._entries(repo).values()
                if entry.key and entry.info.path != path
                and is_equal_or_child(path, entry.info.path)
            ]
            self._delete_keys(path, keys)

        key = self.object_key(repo, path)
        with _translate_errors(path):
            self.client.delete_object(Bucket=self._bucket, Key=key)
        try:
            self.client.delete_object(Bucket=self._bucket, Key=f'{key}/')
        except (ClientError, BotoCoreError):
            logger.debug('No directory marker to delete for %s', path)

        logger.info('Deleted %s:%s', repo, path)

    def copy_file(self, repo: str, src: str, dst: str) -> None:
        """Copy an object, or every object of a directory, server side."""
        src = clean(src)
        dst = clean(dst)
        if src == dst:
            return

        info = self.get_info(repo, src)
        if not info.is_dir:
            if dst != ROOT and self._is_dir(repo, dst):
                # A file replaces a directory of the same name
                self.delete_file(repo, dst)
            self._copy_key(
                src,
                self.object_key(repo, src),
                self.object_key(repo, dst),
            )
            self._put_markers(repo, ancestors(dst))
            logger.info('Copied %s:%s -> %s', repo, src, dst)
            return

        if is_equal_or_child(src, dst):
            raise StoragePermissionError(f'Cannot copy {src} into itself')

        self._put_markers(repo, [*ancestors(dst), dst])
        for entry in self._entries(repo).values():
            source_path = entry.info.path
            if entry.key is None or source_path == src:
                continue
            if not is_equal_or_child(src, source_path):
                continue
            target_path = clean(dst + source_path[len(src):])
            target_key = self.object_key(repo, target_path)
            if entry.info.is_dir:
                target_key = f'{target_key}/'
            self._copy_key(source_path, entry.key, target_key)

        logger.info('Copied %s:%s -> %s', repo, src, dst)

    def move_file(self, repo: str, src: str, dst: str) -> None:
        """Copy then delete; not atomic."""
        src = clean(src)
        dst = clean(dst)
        if src == dst:
            return
        if src == ROOT:
            raise StoragePermissionError('Cannot move the repository root')

        self.copy_file(repo, src, dst)
        self.delete_file(repo, src)

    def create_dir(self, repo: str, path: str) -> None:
        """Write the markers of a directory and its parents."""
        path = clean(path)
        self._put_markers(repo, [*ancestors(path), path])

    def get_info(self, repo: str, path: str) -> FileObject:
        """Head the object, then its directory marker."""
        path = clean(path)
        if path == ROOT:
            return FileObject.directory(ROOT, datetime.now(UTC))

        key = self.object_key(repo, path)
        try:
            response = self.client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as error:
            if _error_code(error) not in _NOT_FOUND_CODES:
                raise _storage_error(error, path) from error
        else:
            return FileObject.file(
                path,
                response['ContentLength'],
                response['LastModified'],
            )

        with _translate_errors(path):
            response = self.client.head_object(
                Bucket=self._bucket,
                Key=f'{key}/',
            )
        return FileObject.directory(path, response['LastModified'])

    def list_dir(self, repo: str, path: str) -> list[FileObject]:
        """Direct children of a directory."""
        path = clean(path)
        entries = self._entries(repo)
        self._require_dir(entries, path)
        children = [
            entry.info
            for entry in entries.values()
            if entry.info.path != ROOT and parent(entry.info.path) == path
        ]
        return sorted(children, key=lambda child: child.name)

    def scan(
        self,
        repo: str,
        visit: ScanVisitor,
        path: str = ROOT,
    ) -> None:
        """Visit entries below ``path`` in depth-first pre-order."""
        path = clean(path)
        entries = self._entries(repo)
        self._require_dir(entries, path)

        children: dict[str, list[FileObject]] = {}
        for entry in entries.values():
            children.setdefault(parent(entry.info.path), []).append(entry.info)

        stack = sorted(
            children.get(path, []),
            key=lambda child: child.name,
            reverse=True,
        )
        while stack:
            current = stack.pop()
            if visit(current) is ScanControl.STOP:
                return
            if current.is_dir:
                stack.extend(sorted(
                    children.get(current.path, []),
                    key=lambda child: child.name,
                    reverse=True,
                ))

    def get_content_type(self, repo: str, path: str) -> str:
        """Content type from the file extension."""
        return detect_content_type(clean(path))

    @property
    def _store_prefix(self) -> str:
        return f'{self._prefix}/' if self._prefix else ''

    def _entries(self, repo: str) -> dict[str, _Entry]:
        """Every entry of a repository keyed by path, root excluded.

        Directories implied by deeper keys but lacking a marker are
        included with the current time as last-modified.
        """
        found: dict[str, _Entry] = {}
        implied: set[str] = set()

        for key, size, modified in self._list_keys():
            relative = key[len(self._store_prefix):]
            parts = relative.split(SEPARATOR, 2)
            if len(parts) != 3 or parts[1] != repo:
                continue

            key_hash, _, rest = parts
            path = clean(rest)
            if path == ROOT:
                continue
            if hash_prefix(path) != key_hash:
                logger.debug('Skipping key with foreign hash prefix: %s', key)
                continue

            if rest.endswith(SEPARATOR):
                found[path] = _Entry(FileObject.directory(path, modified), key)
            else:
                found[path] = _Entry(FileObject.file(path, size, modified), key)
            implied.update(ancestors(path))

        now = datetime.now(UTC)
        for directory in implied:
            if directory not in found:
                found[directory] = _Entry(
                    FileObject.directory(directory, now),
                    None,
                )
        return found

    def _list_keys(self) -> Iterator[tuple[str, int, datetime]]:
        paginator = self.client.get_paginator('list_objects_v2')
        with _translate_errors(self._store_prefix or ROOT):
            for page in paginator.paginate(
                Bucket=self._bucket,
                Prefix=self._store_prefix,
            ):
                for item in page.get('Contents', []):
                    yield item['Key'], item['Size'], item['LastModified']

    def _is_dir(self, repo: str, path: str, default: bool = False) -> bool:
        """Whether a path is a directory; ``default`` when it is missing."""
        try:
            return self.get_info(repo, path).is_dir
        except ObjectNotFoundError:
            return default

    def _require_dir(self, entries: dict[str, _Entry], path: str) -> None:
        if path == ROOT:
            return
        entry = entries.get(path)
        if entry is None:
            raise ObjectNotFoundError(f'Not found: {path}')
        if not entry.info.is_dir:
            raise NotACollectionError(f'Not a directory: {path}')

    def _put_markers(self, repo: str, directories: list[str]) -> None:
        for directory in directories:
            if directory == ROOT:
                continue
            with _translate_errors(directory):
                self.client.put_object(
                    Bucket=self._bucket,
                    Key=f'{self.object_key(repo, directory)}/',
                    Body=b'',
                )

    def _copy_key(self, path: str, source_key: str, target_key: str) -> None:
        with _translate_errors(path):
            self.client.copy_object(
                Bucket=self._bucket,
                Key=target_key,
                CopySource={'Bucket': self._bucket, 'Key': source_key},
            )

    def _delete_keys(self, path: str, keys: list[str]) -> None:
        for start in range(0, len(keys), _DELETE_BATCH_SIZE):
            batch = keys[start:start + _DELETE_BATCH_SIZE]
            with _translate_errors(path):
                self.client.delete_objects(
                    Bucket=self._bucket,
                    Delete={
                        'Objects': [{'Key': key} for key in batch],
                        'Quiet': True,
                    },
                )
