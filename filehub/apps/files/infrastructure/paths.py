"""Lexical path handling for repository-relative paths.

Repository paths are POSIX style and always absolute within their
repository: ``/docs/report.pdf``. Nothing here touches the filesystem;
symlinks are never resolved.
"""

import hashlib
from typing import Final

SEPARATOR: Final = '/'
ROOT: Final = '/'

# Bytes of the SHA-224 digest used as the object key prefix
_HASH_PREFIX_BYTES: Final = 2


def clean(path: str) -> str:
    """Canonicalise a repository path.

    Collapses duplicate separators, resolves ``.`` and ``..`` and keeps
    the leading separator. ``..`` above the root stays at the root and
    a trailing separator is dropped.

    Args:
        path: Client supplied path, possibly relative or empty.

    Returns:
        Cleaned absolute path, ``/`` for the root.
    """
    segments: list[str] = []
    for segment in path.split(SEPARATOR):
        if segment in {'', '.'}:
            continue
        if segment == '..':
            if segments:
                segments.pop()
            continue
        segments.append(segment)
    return ROOT + SEPARATOR.join(segments)


def is_root(path: str) -> bool:
    """Check whether a path names the repository root."""
    return clean(path) == ROOT


def basename(path: str) -> str:
    """Last segment of a cleaned path; empty for the root."""
    return clean(path).rsplit(SEPARATOR, 1)[1]


def parent(path: str) -> str:
    """Parent directory of a path; the root is its own parent."""
    head = clean(path).rsplit(SEPARATOR, 1)[0]
    return head or ROOT


def join(directory: str, name: str) -> str:
    """Join a directory path and a child name, then clean."""
    return clean(f'{directory}{SEPARATOR}{name}')


def ancestors(path: str) -> list[str]:
    """Proper ancestors of a path, nearest last, excluding the root.

    Example: ``/a/b/c.txt`` -> ``['/a', '/a/b']``.
    """
    segments = clean(path).strip(SEPARATOR).split(SEPARATOR)[:-1]
    return [
        ROOT + SEPARATOR.join(segments[:index])
        for index in range(1, len(segments) + 1)
    ]


def is_equal_or_child(parent_path: str, path: str) -> bool:
    """Check whether ``path`` is ``parent_path`` or below it."""
    parent_path = clean(parent_path)
    path = clean(path)
    if parent_path == ROOT or parent_path == path:
        return True
    return path.startswith(parent_path + SEPARATOR)


def hash_prefix(path: str) -> str:
    """Partition prefix for an object key.

    Args:
        path: Cleaned repository path.

    Returns:
        First two bytes of SHA-224 of the path as 4 hex chars.
    """
    digest = hashlib.sha224(path.encode()).digest()
    return digest[:_HASH_PREFIX_BYTES].hex()
