"""Translation between request URLs and repository paths.

The adapter is mounted at ``SCRIPT_NAME`` (``/dav``). Everything after
the mount is a path in the authenticated user's home repository:
``/dav/docs/a.txt`` is ``/docs/a.txt``.
"""

from collections.abc import Mapping
from typing import Any, Final
from urllib.parse import quote, unquote, urlsplit

from filehub.apps.files.exceptions import CrossRepositoryError
from filehub.apps.files.infrastructure.paths import ROOT, SEPARATOR, clean
from filehub.apps.webdav.exceptions import MalformedRequestError

# WSGI carries the raw path bytes as a latin-1 string (PEP 3333)
_WSGI_ENCODING: Final = 'latin-1'


def mount_point(environ: Mapping[str, Any]) -> str:
    """Path prefix the adapter is mounted at, without trailing slash."""
    return environ.get('SCRIPT_NAME', '').rstrip(SEPARATOR)


def request_path(environ: Mapping[str, Any]) -> str:
    """Repository path addressed by the request.

    Args:
        environ: WSGI environ.

    Returns:
        Cleaned repository path.

    Raises:
        MalformedRequestError: If the path is not valid UTF-8.
    """
    raw = environ.get('PATH_INFO', '')
    try:
        decoded = raw.encode(_WSGI_ENCODING).decode('utf-8')
    except UnicodeError as error:
        raise MalformedRequestError('Request path is not valid UTF-8') from error
    return clean(decoded)


def href(environ: Mapping[str, Any], path: str, *, is_dir: bool) -> str:
    """URL-quoted href of a repository path.

    Collections get a trailing slash.

    Args:
        environ: WSGI environ, for the mount point.
        path: Repository path.
        is_dir: Whether the path is a collection.

    Returns:
        Absolute href below the mount point.
    """
    path = clean(path)
    url = mount_point(environ) + path
    if is_dir and not url.endswith(SEPARATOR):
        url += SEPARATOR
    return quote(url)


def destination_path(environ: Mapping[str, Any]) -> str:
    """Repository path named by the Destination header.

    The header may be an absolute URL or an absolute path. A URL on
    another host, or a path outside the mount point, names another
    repository.

    Args:
        environ: WSGI environ.

    Returns:
        Cleaned repository path of the destination.

    Raises:
        MalformedRequestError: If the header is missing or unparsable.
        CrossRepositoryError: If the destination is not in this repository.
    """
    destination = environ.get('HTTP_DESTINATION', '').strip()
    if not destination:
        raise MalformedRequestError('Missing Destination header')

    try:
        parts = urlsplit(destination)
    except ValueError as error:
        raise MalformedRequestError('Invalid Destination header') from error

    if parts.scheme or parts.netloc:
        if parts.scheme not in {'http', 'https'} or not parts.netloc:
            raise MalformedRequestError('Invalid Destination header')
        host = environ.get('HTTP_HOST', '')
        if host and parts.netloc.lower() != host.lower():
            raise CrossRepositoryError(
                f'Destination is on another host: {parts.netloc}',
            )

    if not parts.path.startswith(SEPARATOR):
        raise MalformedRequestError('Destination must be an absolute path')

    target = unquote(parts.path)
    mount = mount_point(environ)
    if mount:
        if target != mount and not target.startswith(mount + SEPARATOR):
            raise CrossRepositoryError(
                f'Destination is outside {mount}: {target}',
            )
        target = target[len(mount):] or ROOT
    return clean(target)
