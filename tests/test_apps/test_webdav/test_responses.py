"""Tests for WebDAV response helpers."""

import io
import logging
from http import HTTPStatus

from wsgidav.util import SubAppStartResponse

from filehub.apps.webdav.responses import (
    FileIterator,
    empty_response,
    error_response,
    status_line,
    with_dav_headers,
)


class _FailingStream(io.BytesIO):
    """Stream that fails on the second read."""

    def __init__(self):
        super().__init__(b'')
        self.reads = 0

    def read(self, size=-1):
        self.reads += 1
        if self.reads > 1:
            raise OSError('connection reset')
        return b'first'


def test_status_line():
    """Test status lines use the standard phrase."""
    assert status_line(HTTPStatus.MULTI_STATUS) == '207 Multi-Status'


def test_dav_headers_added():
    """Test wrapped start_response adds the DAV headers."""
    start_response = SubAppStartResponse()

    body = empty_response(with_dav_headers(start_response), HTTPStatus.CREATED)

    assert body == [b'']
    assert start_response.status == '201 Created'
    assert ('DAV', '1') in start_response.response_headers
    assert ('Content-Length', '0') in start_response.response_headers


def test_error_response_escapes_reason():
    """Test the reason is XML-escaped inside the DAV error element."""
    start_response = SubAppStartResponse()

    body = b''.join(
        error_response(start_response, HTTPStatus.NOT_FOUND, 'Not found: /a<b>&c'),
    )

    assert body.endswith(b'<error xmlns="DAV:">Not found: /a&lt;b&gt;&amp;c</error>')
    headers = dict(start_response.response_headers)
    assert headers['Content-Length'] == str(len(body))
    assert headers['Content-Type'] == 'application/xml; charset=utf-8'


class TestFileIterator:
    """Tests for FileIterator."""

    def test_streams_in_chunks(self):
        """Test content is yielded in chunk-sized pieces."""
        stream = io.BytesIO(b'abcdefg')

        chunks = list(FileIterator(stream, '/a.txt', chunk_size=3))

        assert chunks == [b'abc', b'def', b'g']
        assert stream.closed

    def test_close_is_idempotent(self):
        """Test closing early closes the stream once."""
        stream = io.BytesIO(b'abc')
        iterator = FileIterator(stream, '/a.txt')

        iterator.close()
        iterator.close()

        assert stream.closed
        assert list(iterator) == []

    def test_read_error_ends_body(self, caplog, monkeypatch):
        """Test a failing read is logged and ends the body."""
        monkeypatch.setattr(logging.getLogger('filehub'), 'propagate', True)
        stream = _FailingStream()

        chunks = list(FileIterator(stream, '/a.txt'))

        assert chunks == [b'first']
        assert stream.closed
        assert 'Failed to stream file content: /a.txt' in caplog.text
