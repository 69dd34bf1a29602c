"""Local filesystem storage backend.

A repository ``repo`` lives in ``<root>/<repo>``. Every path is cleaned
before it is joined, so a client path can never leave that directory.
"""

import contextlib
import logging
import os
import shutil
from collections.abc import Iterator
from datetime import UTC, datetime
from typing import BinaryIO, Final, final

from filehub.apps.files.exceptions import (
    NotACollectionError,
    ObjectNotFoundError,
    StorageIOError,
    StoragePermissionError,
)
from filehub.apps.files.infrastructure.metadata import detect_content_type
from filehub.apps.files.infrastructure.paths import (
    ROOT,
    SEPARATOR,
    clean,
    is_equal_or_child,
    join,
)
from filehub.apps.files.infrastructure.storage import (
    FileObject,
    ScanControl,
    ScanVisitor,
)

logger = logging.getLogger(__name__)

_CHUNK_SIZE: Final = 64 * 1024  # 64KB chunks for streaming copies


@contextlib.contextmanager
def _translate_errors(path: str) -> Iterator[None]:
    """Re-raise OS errors as storage errors for a repository path."""
    try:
        yield
    except FileNotFoundError as error:
        raise ObjectNotFoundError(f'Not found: {path}') from error
    except (NotADirectoryError, FileExistsError) as error:
        raise NotACollectionError(f'Not a directory: {path}') from error
    except PermissionError as error:
        raise StoragePermissionError(f'Permission denied: {path}') from error
    except OSError as error:
        logger.warning('I/O error on %s: %s', path, error)
        raise StorageIOError(f'I/O error on {path}') from error


def _mtime(stat_result: os.stat_result) -> datetime:
    return datetime.fromtimestamp(stat_result.st_mtime, tz=UTC)


def copy_stream(source: BinaryIO, target: BinaryIO) -> int:
    """Copy a stream in chunks.

    Args:
        source: Readable binary stream.
        target: Writable binary stream.

    Returns:
        Number of bytes copied.
    """
    copied = 0
    while True:
        chunk = source.read(_CHUNK_SIZE)
        if not chunk:
            return copied
        target.write(chunk)
        copied += len(chunk)


@final
class FilesystemStorage:
    """Stores repositories as directories below a local root."""

    def __init__(self, root: str) -> None:
        """Initialize the backend.

        Args:
            root: Absolute directory holding one subdirectory per repository.
        """
        self._root = os.path.normpath(root)

    @property
    def root(self) -> str:
        """Directory holding the repositories."""
        return self._root

    def full_path(self, repo: str, path: str) -> str:
        """Map a repository path to an OS path inside the repository.

        Args:
            repo: Repository name, a single path segment.
            path: Repository path; it is cleaned first.

        Returns:
            Absolute OS path below ``<root>/<repo>``.

        Raises:
            StoragePermissionError: If the repository name is unsafe.
        """
        if (
            not repo
            or repo in {'.', '..'}
            or SEPARATOR in repo
            or os.sep in repo
            or '\x00' in repo
        ):
            raise StoragePermissionError(f'Invalid repository name: {repo!r}')
        if '\x00' in path:
            raise StoragePermissionError('Path contains a null byte')

        base = os.path.join(self._root, repo)
        relative = clean(path).lstrip(SEPARATOR)
        if not relative:
            return base
        return os.path.join(base, *relative.split(SEPARATOR))

    def put_file(self, repo: str, path: str, stream: BinaryIO) -> int:
        """Write a file, creating missing parent directories."""
        path = clean(path)
        if path == ROOT:
            raise StoragePermissionError('Cannot write the repository root')

        full = self.full_path(repo, path)
        with _translate_errors(path):
            os.makedirs(os.path.dirname(full), exist_ok=True)
            with open(full, 'wb') as target:
                written = copy_stream(stream, target)

        logger.debug('Wrote %d bytes to %s:%s', written, repo, path)
        return written

    def open_file(self, repo: str, path: str) -> BinaryIO:
        """Open a file for reading."""
        path = clean(path)
        full = self.full_path(repo, path)
        with _translate_errors(path):
            if os.path.isdir(full):
                raise IsADirectoryError(full)
            return open(full, 'rb')  # noqa: SIM115

    def delete_file(self, repo: str, path: str) -> None:
        """Delete a file, or a directory with its contents."""
        path = clean(path)
        if path == ROOT:
            raise StoragePermissionError('Cannot delete the repository root')

        full = self.full_path(repo, path)
        with _translate_errors(path):
            if os.path.isdir(full) and not os.path.islink(full):
                shutil.rmtree(full)
            else:
                os.remove(full)

        logger.info('Deleted %s:%s', repo, path)

    def copy_file(self, repo: str, src: str, dst: str) -> None:
        """Copy a file or directory tree within the repository."""
        src = clean(src)
        dst = clean(dst)
        if src == dst:
            return

        source = self.get_info(repo, src)
        if source.is_dir:
            if is_equal_or_child(src, dst):
                raise StoragePermissionError(
                    f'Cannot copy {src} into itself',
                )
            with _translate_errors(dst):
                shutil.copytree(
                    self.full_path(repo, src),
                    self.full_path(repo, dst),
                    dirs_exist_ok=True,
                )
        else:
            target = self.full_path(repo, dst)
            if dst != ROOT and os.path.isdir(target):
                # A file replaces a directory of the same name
                self.delete_file(repo, dst)
            with self.open_file(repo, src) as stream:
                self.put_file(repo, dst, stream)

        logger.info('Copied %s:%s -> %s', repo, src, dst)

    def move_file(self, repo: str, src: str, dst: str) -> None:
        """Move a file or directory tree within the repository."""
        src = clean(src)
        dst = clean(dst)
        if src == dst:
            return
        if src == ROOT:
            raise StoragePermissionError('Cannot move the repository root')

        source = self.get_info(repo, src)
        if source.is_dir and is_equal_or_child(src, dst):
            raise StoragePermissionError(f'Cannot move {src} into itself')

        target = self.full_path(repo, dst)
        if source.is_dir and os.path.isdir(target):
            # Merge into the existing directory
            self.copy_file(repo, src, dst)
            self.delete_file(repo, src)
            return

        with _translate_errors(dst):
            os.makedirs(os.path.dirname(target), exist_ok=True)
            if os.path.isdir(target):
                shutil.rmtree(target)
            os.replace(self.full_path(repo, src), target)

        logger.info('Moved %s:%s -> %s', repo, src, dst)

    def create_dir(self, repo: str, path: str) -> None:
        """Create a directory and its parents."""
        path = clean(path)
        with _translate_errors(path):
            os.makedirs(self.full_path(repo, path), exist_ok=True)

    def get_info(self, repo: str, path: str) -> FileObject:
        """Stat a single path."""
        path = clean(path)
        full = self.full_path(repo, path)
        with _translate_errors(path):
            stat_result = os.stat(full)
        return self._to_object(path, stat_result, is_dir=os.path.isdir(full))

    def list_dir(self, repo: str, path: str) -> list[FileObject]:
        """List direct children; unreadable entries are logged and skipped."""
        path = clean(path)
        full = self.full_path(repo, path)
        children: list[FileObject] = []

        with _translate_errors(path):
            if not os.path.isdir(full):
                os.stat(full)
                raise NotADirectoryError(full)
            with os.scandir(full) as entries:
                for entry in entries:
                    child = join(path, entry.name)
                    try:
                        stat_result = entry.stat()
                        is_dir = entry.is_dir()
                    except OSError:
                        logger.warning(
                            'Skipping unreadable entry %s:%s',
                            repo,
                            child,
                            exc_info=True,
                        )
                        continue
                    children.append(
                        self._to_object(child, stat_result, is_dir=is_dir),
                    )

        return sorted(children, key=lambda child: child.name)

    def scan(
        self,
        repo: str,
        visit: ScanVisitor,
        path: str = ROOT,
    ) -> None:
        """Walk depth first below ``path``, skipping unreadable subtrees."""
        path = clean(path)
        base = self.full_path(repo, ROOT)
        top = self.full_path(repo, path)

        def on_error(error: OSError) -> None:  # noqa: WPS430
            logger.warning(
                'Skipping unreadable directory during scan: %s',
                error.filename,
            )

        for dirpath, dirnames, filenames in os.walk(top, onerror=on_error):
            dirnames.sort()
            relative_dir = os.path.relpath(dirpath, base)
            current = ROOT if relative_dir == os.curdir else clean(
                relative_dir.replace(os.sep, SEPARATOR),
            )

            names = [(name, True) for name in dirnames]
            names.extend((name, False) for name in sorted(filenames))
            for name, is_dir in names:
                entry_path = join(current, name)
                try:
                    stat_result = os.stat(os.path.join(dirpath, name))
                except OSError:
                    logger.warning(
                        'Skipping unreadable entry %s:%s',
                        repo,
                        entry_path,
                        exc_info=True,
                    )
                    continue

                entry = self._to_object(entry_path, stat_result, is_dir=is_dir)
                if visit(entry) is ScanControl.STOP:
                    return

    def get_content_type(self, repo: str, path: str) -> str:
        """Content type from the file extension."""
        return detect_content_type(clean(path))

    def _to_object(
        self,
        path: str,
        stat_result: os.stat_result,
        *,
        is_dir: bool,
    ) -> FileObject:
        if is_dir:
            return FileObject.directory(path, _mtime(stat_result))
        return FileObject.file(path, stat_result.st_size, _mtime(stat_result))

