"""Per-method WebDAV request handlers.

Each handler gets a resolved ``DAVRequest`` and the wrapped
start_response, and returns the WSGI body. Storage and quota
exceptions propagate to ``WebDAVApp``, which maps them to statuses.
"""

import io
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, BinaryIO, Final

from django.core.handlers.wsgi import LimitedStream
from wsgidav import util, xml_tools
from wsgidav.dav_error import HTTP_NOT_FOUND, DAVError

from filehub.apps.accounts.models import User
from filehub.apps.files.exceptions import (
    ObjectNotFoundError,
    StoragePermissionError,
)
from filehub.apps.files.infrastructure.paths import is_root, parent
from filehub.apps.files.infrastructure.storage import FileObject, Storage
from filehub.apps.files.logic.quota_operations import (
    adjust_usage,
    check_quota,
    decrement_usage,
    measure_usage,
)
from filehub.apps.files.models import Repository
from filehub.apps.webdav.exceptions import (
    MalformedRequestError,
    ResourceConflictError,
)
from filehub.apps.webdav.paths import destination_path, href
from filehub.apps.webdav.responses import (
    FileIterator,
    StartResponse,
    empty_response,
    error_response,
    xml_response,
)

logger = logging.getLogger(__name__)

# Depth values PROPFIND serves; infinity is refused
_SUPPORTED_DEPTHS: Final = frozenset(('0', '1'))
_DEFAULT_DEPTH: Final = '1'

_DISPLAYNAME: Final = '{DAV:}displayname'
_LASTMODIFIED: Final = '{DAV:}getlastmodified'
_RESOURCETYPE: Final = '{DAV:}resourcetype'
_CONTENTTYPE: Final = '{DAV:}getcontenttype'
_CONTENTLENGTH: Final = '{DAV:}getcontentlength'
_ETAG: Final = '{DAV:}getetag'
_CREATIONDATE: Final = '{DAV:}creationdate'


@dataclass(frozen=True)
class DAVRequest:
    """An authenticated request resolved to a repository path."""

    environ: dict[str, Any]
    user: User
    repository: Repository
    path: str

    @property
    def method(self) -> str:
        """Upper-cased request method."""
        return self.environ['REQUEST_METHOD'].upper()

    @property
    def storage(self) -> Storage:
        """Backend of the repository."""
        return self.repository.storage

    @property
    def repo(self) -> str:
        """Repository name passed to the backend."""
        return self.repository.name

    def get_info(self, path: str | None = None) -> FileObject:
        """Metadata of the request path or another path."""
        return self.storage.get_info(self.repo, path or self.path)

    def find_info(self, path: str | None = None) -> FileObject | None:
        """Like ``get_info`` but None when the path does not exist."""
        try:
            return self.get_info(path)
        except ObjectNotFoundError:
            return None


Handler = Callable[[DAVRequest, StartResponse], Iterable[bytes]]


def content_length(environ: dict[str, Any]) -> int | None:
    """Declared request body length, None when absent.

    Raises:
        MalformedRequestError: If the header is not a non-negative integer.
    """
    header = environ.get('CONTENT_LENGTH', '').strip()
    if not header:
        return None
    try:
        length = int(header)
    except ValueError as error:
        raise MalformedRequestError('Invalid Content-Length') from error
    if length < 0:
        raise MalformedRequestError('Invalid Content-Length')
    return length


def _is_chunked(environ: dict[str, Any]) -> bool:
    encoding = environ.get('HTTP_TRANSFER_ENCODING', '').lower()
    return 'chunked' in encoding or bool(environ.get('wsgi.input_terminated'))


def request_body(environ: dict[str, Any]) -> BinaryIO:
    """Request body stream, bounded by Content-Length when declared.

    Without Content-Length the body is only read for chunked transfers;
    the server decodes the chunks.
    """
    length = content_length(environ)
    if length is not None:
        return LimitedStream(environ['wsgi.input'], length)  # type: ignore[return-value]
    if _is_chunked(environ):
        return environ['wsgi.input']
    return io.BytesIO()


def has_body(environ: dict[str, Any]) -> bool:
    """Whether the request carries a body."""
    length = content_length(environ)
    if length is not None:
        return length > 0
    return 'chunked' in environ.get('HTTP_TRANSFER_ENCODING', '').lower()


def etag(info: FileObject) -> str:
    """Weakly unique entity tag from mtime and size."""
    return f'"{int(info.modified.timestamp()):x}-{info.size:x}"'


def _resource_type(info: FileObject) -> Any:
    if not info.is_dir:
        return None
    element = xml_tools.etree.Element(_RESOURCETYPE)
    xml_tools.etree.SubElement(element, '{DAV:}collection')
    return element


def property_values(info: FileObject) -> dict[str, Any]:
    """Live properties of an entry, keyed by Clark name."""
    modified = info.modified.timestamp()
    values: dict[str, Any] = {
        _DISPLAYNAME: info.name,
        _LASTMODIFIED: util.get_rfc1123_time(modified),
        _RESOURCETYPE: _resource_type(info),
        _CONTENTTYPE: info.content_type,
    }
    if not info.is_dir:
        values[_CONTENTLENGTH] = str(info.size)
        values[_ETAG] = etag(info)
        values[_CREATIONDATE] = util.get_rfc3339_time(modified)
    return values


@dataclass(frozen=True)
class PropfindQuery:
    """What a PROPFIND body asks for; no body means allprop."""

    names: tuple[str, ...] = ()
    names_only: bool = False

    @property
    def is_allprop(self) -> bool:
        """Whether every live property is wanted."""
        return not self.names and not self.names_only

    def prop_list(self, info: FileObject) -> list[tuple[str, Any]]:
        """Property list for ``util.add_property_response``."""
        values = property_values(info)
        if self.names_only:
            return [(name, None) for name in values]
        if self.is_allprop:
            return list(values.items())
        return [
            (name, values[name] if name in values else DAVError(HTTP_NOT_FOUND))
            for name in self.names
        ]


def parse_propfind(environ: dict[str, Any]) -> PropfindQuery:
    """Parse an optional PROPFIND request body.

    Raises:
        MalformedRequestError: If the body is not a DAV:propfind document.
    """
    try:
        root = util.parse_xml_body(environ, allow_empty=True)
    except DAVError as error:
        raise MalformedRequestError('Invalid PROPFIND body') from error

    if root is None:
        return PropfindQuery()
    if root.tag != '{DAV:}propfind':
        raise MalformedRequestError('Expected a DAV:propfind element')

    for child in root:
        if child.tag == '{DAV:}propname':
            return PropfindQuery(names_only=True)
        if child.tag == '{DAV:}prop':
            return PropfindQuery(names=tuple(prop.tag for prop in child))
    return PropfindQuery()


def handle_propfind(
    request: DAVRequest,
    start_response: StartResponse,
) -> Iterable[bytes]:
    """List properties of the target and, at depth 1, its children."""
    depth = request.environ.get('HTTP_DEPTH', _DEFAULT_DEPTH).strip().lower()
    if depth not in _SUPPORTED_DEPTHS:
        return error_response(
            start_response,
            HTTPStatus.FORBIDDEN,
            f'Depth {depth} is not supported',
        )

    query = parse_propfind(request.environ)
    info = request.get_info()

    entries = [info]
    if depth == '1' and info.is_dir:
        entries.extend(request.storage.list_dir(request.repo, request.path))

    multistatus = xml_tools.make_multistatus_el()
    for entry in entries:
        util.add_property_response(
            multistatus,
            href(request.environ, entry.path, is_dir=entry.is_dir),
            query.prop_list(entry),
        )

    logger.debug(
        'PROPFIND %s:%s depth %s, %d entries',
        request.repo,
        request.path,
        depth,
        len(entries),
    )
    return xml_response(start_response, HTTPStatus.MULTI_STATUS, multistatus)


def handle_get(
    request: DAVRequest,
    start_response: StartResponse,
) -> Iterable[bytes]:
    """Stream a file; HEAD sends the same headers without a body."""
    info = request.get_info()
    if info.is_dir:
        return error_response(
            start_response,
            HTTPStatus.BAD_REQUEST,
            'Cannot GET a directory',
        )

    headers = [
        ('Content-Type', info.content_type),
        ('Content-Length', str(info.size)),
        ('Last-Modified', util.get_rfc1123_time(info.modified.timestamp())),
        ('ETag', etag(info)),
    ]
    if request.method == 'HEAD':
        start_response('200 OK', headers)
        return [b'']

    stream = request.storage.open_file(request.repo, request.path)
    start_response('200 OK', headers)
    return FileIterator(stream, request.path)


def handle_put(
    request: DAVRequest,
    start_response: StartResponse,
) -> Iterable[bytes]:
    """Write the request body to the target file."""
    existing = request.find_info()
    if existing is not None and existing.is_dir:
        raise ResourceConflictError('Cannot PUT onto a collection')

    old_size = existing.size if existing is not None else 0
    length = content_length(request.environ)
    if length is not None:
        check_quota(request.user, length - old_size)

    written = request.storage.put_file(
        request.repo,
        request.path,
        request_body(request.environ),
    )
    adjust_usage(request.user, old_size, written)

    logger.info(
        'PUT %s:%s (%d bytes) by %s',
        request.repo,
        request.path,
        written,
        request.user.username,
    )
    return empty_response(start_response, HTTPStatus.CREATED)


def handle_delete(
    request: DAVRequest,
    start_response: StartResponse,
) -> Iterable[bytes]:
    """Delete the target and release its bytes from the quota."""
    if is_root(request.path):
        raise StoragePermissionError('Cannot delete the repository root')

    _, size_bytes = measure_usage(request.repository, request.path)
    request.storage.delete_file(request.repo, request.path)
    decrement_usage(request.user, size_bytes)

    return empty_response(start_response, HTTPStatus.NO_CONTENT)


def handle_mkcol(
    request: DAVRequest,
    start_response: StartResponse,
) -> Iterable[bytes]:
    """Create a collection."""
    if has_body(request.environ):
        return error_response(
            start_response,
            HTTPStatus.UNSUPPORTED_MEDIA_TYPE,
            'MKCOL does not accept a request body',
        )
    if request.find_info() is not None:
        return error_response(
            start_response,
            HTTPStatus.METHOD_NOT_ALLOWED,
            'Resource already exists',
        )

    request.storage.create_dir(request.repo, request.path)
    return empty_response(start_response, HTTPStatus.CREATED)


def handle_copy_move(
    request: DAVRequest,
    start_response: StartResponse,
) -> Iterable[bytes]:
    """Copy or move the target to the Destination header's path.

    The Overwrite header is ignored: an existing destination is
    replaced.
    """
    destination = destination_path(request.environ)
    if destination == request.path:
        raise StoragePermissionError('Source and destination are the same')

    source = request.get_info()
    replaced = request.find_info(destination)
    replaced_size = 0
    if replaced is not None and not replaced.is_dir:
        replaced_size = replaced.size
    elif replaced is not None and not source.is_dir:
        # The file takes the place of the whole directory
        _, replaced_size = measure_usage(request.repository, destination)

    if request.method == 'COPY':
        _, size_bytes = measure_usage(request.repository, request.path)
        check_quota(request.user, size_bytes - replaced_size)
        request.storage.create_dir(request.repo, parent(destination))
        request.storage.copy_file(request.repo, request.path, destination)
        adjust_usage(request.user, replaced_size, size_bytes)
    else:
        request.storage.create_dir(request.repo, parent(destination))
        request.storage.move_file(request.repo, request.path, destination)
        decrement_usage(request.user, replaced_size)

    logger.info(
        '%s %s:%s -> %s by %s',
        request.method,
        request.repo,
        request.path,
        destination,
        request.user.username,
    )
    return empty_response(start_response, HTTPStatus.CREATED)


HANDLERS: Final[dict[str, Handler]] = {
    'PROPFIND': handle_propfind,
    'GET': handle_get,
    'HEAD': handle_get,
    'PUT': handle_put,
    'DELETE': handle_delete,
    'MKCOL': handle_mkcol,
    'COPY': handle_copy_move,
    'MOVE': handle_copy_move,
}
