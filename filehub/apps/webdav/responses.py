"""WSGI response helpers for the WebDAV adapter."""

import logging
from collections.abc import Callable, Sequence
from http import HTTPStatus
from typing import Any, BinaryIO, Final, final
from xml.sax.saxutils import escape

from wsgidav import xml_tools

logger = logging.getLogger(__name__)

StartResponse = Callable[..., Any]
Headers = Sequence[tuple[str, str]]

XML_CONTENT_TYPE: Final = 'application/xml; charset=utf-8'

ALLOWED_METHODS: Final = (
    'OPTIONS',
    'GET',
    'HEAD',
    'PUT',
    'DELETE',
    'PROPFIND',
    'MKCOL',
    'COPY',
    'MOVE',
)
ALLOW_HEADER: Final = ('Allow', ', '.join(ALLOWED_METHODS))

# Sent with every response so clients detect a class 1 server
_DAV_HEADERS: Final = (
    ('DAV', '1'),
    ('MS-Author-Via', 'DAV'),
)

_CHUNK_SIZE: Final = 64 * 1024  # 64KB chunks for streaming downloads


def status_line(status: HTTPStatus) -> str:
    """WSGI status string, e.g. ``207 Multi-Status``."""
    return f'{status.value} {status.phrase}'


def with_dav_headers(start_response: StartResponse) -> StartResponse:
    """Wrap start_response to add the DAV compliance headers.

    Args:
        start_response: WSGI start_response callable.

    Returns:
        Wrapped callable.
    """
    def wrapper(  # noqa: WPS430
        status: str,
        headers: list[tuple[str, str]],
        exc_info: Any = None,
    ) -> Any:
        return start_response(status, [*headers, *_DAV_HEADERS], exc_info)

    return wrapper


def empty_response(
    start_response: StartResponse,
    status: HTTPStatus,
    headers: Headers = (),
) -> list[bytes]:
    """Send a response without a body."""
    start_response(
        status_line(status),
        [('Content-Length', '0'), *headers],
    )
    return [b'']


def error_response(
    start_response: StartResponse,
    status: HTTPStatus,
    reason: str,
    headers: Headers = (),
) -> list[bytes]:
    """Send ``<error xmlns="DAV:">reason</error>``.

    Args:
        start_response: WSGI start_response callable.
        status: HTTP status.
        reason: Human readable message.
        headers: Extra headers, e.g. WWW-Authenticate challenges.

    Returns:
        Response body iterable.
    """
    body = (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        f'<error xmlns="DAV:">{escape(reason)}</error>'
    ).encode()
    start_response(
        status_line(status),
        [
            ('Content-Type', XML_CONTENT_TYPE),
            ('Content-Length', str(len(body))),
            *headers,
        ],
    )
    return [body]


def xml_response(
    start_response: StartResponse,
    status: HTTPStatus,
    element: Any,
) -> list[bytes]:
    """Serialise an element tree and send it."""
    body = xml_tools.xml_to_bytes(element, pretty=False)
    start_response(
        status_line(status),
        [
            ('Content-Type', XML_CONTENT_TYPE),
            ('Content-Length', str(len(body))),
        ],
    )
    return [body]


@final
class FileIterator:
    """WSGI iterable streaming a storage file.

    Closing the iterable closes the storage stream. A read error after
    the headers went out can only be logged; the body ends early.
    """

    def __init__(
        self,
        stream: BinaryIO,
        path: str,
        chunk_size: int = _CHUNK_SIZE,
    ) -> None:
        """Initialize the iterator.

        Args:
            stream: Open storage stream, owned by the iterator.
            path: Repository path, for logging.
            chunk_size: Bytes per chunk.
        """
        self._stream = stream
        self._path = path
        self._chunk_size = chunk_size
        self._closed = False

    def __iter__(self) -> 'FileIterator':
        """Iterate over chunks."""
        return self

    def __next__(self) -> bytes:
        """Read the next chunk."""
        if self._closed:
            raise StopIteration
        try:
            chunk = self._stream.read(self._chunk_size)
        except Exception:
            logger.exception('Failed to stream file content: %s', self._path)
            self.close()
            raise StopIteration from None
        if not chunk:
            self.close()
            raise StopIteration
        return chunk

    def close(self) -> None:
        """Close the storage stream; safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self._stream.close()

