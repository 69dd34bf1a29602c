"""Tests for URL to repository path translation."""

import pytest

from filehub.apps.files.exceptions import CrossRepositoryError
from filehub.apps.webdav.exceptions import MalformedRequestError
from filehub.apps.webdav.paths import (
    destination_path,
    href,
    mount_point,
    request_path,
)

ENVIRON = {'SCRIPT_NAME': '/dav', 'HTTP_HOST': 'files.example:8080'}


def _with(**extra):
    return {**ENVIRON, **extra}


def test_mount_point():
    """Test the trailing slash is dropped."""
    assert mount_point({'SCRIPT_NAME': '/dav/'}) == '/dav'
    assert mount_point({}) == ''


@pytest.mark.parametrize(('path_info', 'expected'), [
    ('', '/'),
    ('/', '/'),
    ('/docs/a.txt', '/docs/a.txt'),
    ('/docs/../../etc/passwd', '/etc/passwd'),
    ('//docs/./a.txt/', '/docs/a.txt'),
    ('/na\xc3\xafve.txt', '/naïve.txt'),
])
def test_request_path(path_info, expected):
    """Test PATH_INFO is decoded and cleaned."""
    assert request_path(_with(PATH_INFO=path_info)) == expected


def test_request_path_invalid_utf8():
    """Test undecodable bytes are malformed."""
    with pytest.raises(MalformedRequestError):
        request_path(_with(PATH_INFO='/\xff\xfe'))


@pytest.mark.parametrize(('path', 'is_dir', 'expected'), [
    ('/', True, '/dav/'),
    ('/docs', True, '/dav/docs/'),
    ('/docs/a b.txt', False, '/dav/docs/a%20b.txt'),
    ('/100%.txt', False, '/dav/100%25.txt'),
])
def test_href(path, is_dir, expected):
    """Test hrefs are quoted and collections end with a slash."""
    assert href(ENVIRON, path, is_dir=is_dir) == expected


class TestDestinationPath:
    """Tests for Destination header parsing."""

    @pytest.mark.parametrize(('destination', 'expected'), [
        ('/dav/b.txt', '/b.txt'),
        ('/dav', '/'),
        ('/dav/d/../b%20c.txt', '/b c.txt'),
        ('http://files.example:8080/dav/x/y', '/x/y'),
        ('https://FILES.example:8080/dav/x', '/x'),
    ])
    def test_valid(self, destination, expected):
        """Test paths and same-host URLs resolve into the repository."""
        assert destination_path(_with(HTTP_DESTINATION=destination)) == expected

    def test_missing(self):
        """Test a missing header is malformed."""
        with pytest.raises(MalformedRequestError, match='Missing'):
            destination_path(ENVIRON)

    @pytest.mark.parametrize('destination', [
        'relative/path',
        'ftp://files.example:8080/dav/x',
    ])
    def test_malformed(self, destination):
        """Test relative paths and other schemes are malformed."""
        with pytest.raises(MalformedRequestError):
            destination_path(_with(HTTP_DESTINATION=destination))

    @pytest.mark.parametrize('destination', [
        'http://other.example/dav/x',
        '/elsewhere/x',
        '/davx/y',
    ])
    def test_other_repository(self, destination):
        """Test other hosts and paths outside the mount are refused."""
        with pytest.raises(CrossRepositoryError):
            destination_path(_with(HTTP_DESTINATION=destination))
