"""Tests for Basic and Digest header helpers."""

import base64
import hashlib

import pytest

from filehub.apps.accounts.exceptions import MalformedAuthorizationError
from filehub.apps.accounts.logic import digest


def _md5(text):
    return hashlib.md5(text.encode()).hexdigest()


def test_challenges():
    """Test the challenge formats."""
    assert digest.basic_challenge('FileHub') == 'Basic realm="FileHub"'
    assert digest.digest_challenge('FileHub', 'n1', 'o1') == (
        'Digest realm="FileHub", nonce="n1", opaque="o1", '
        'algorithm=MD5, qop="auth"'
    )


@pytest.mark.parametrize(('header', 'expected'), [
    ('Basic abc', ('Basic', 'abc')),
    ('  digest   a=b, c=d ', ('digest', 'a=b, c=d')),
    ('Bearer', ('Bearer', '')),
])
def test_split_scheme(header, expected):
    """Test scheme and credentials are split on the first space."""
    assert digest.split_scheme(header) == expected


class TestBasic:
    """Tests for Basic credential parsing."""

    def test_decode(self):
        """Test the RFC 7617 example style credentials."""
        assert digest.parse_basic_credentials('YWxpY2U6czNjcmV0') == (
            'alice',
            's3cret',
        )

    def test_password_may_contain_colon(self):
        """Test only the first colon separates the username."""
        encoded = base64.b64encode(b'bob:pa:ss').decode()

        assert digest.parse_basic_credentials(encoded) == ('bob', 'pa:ss')

    @pytest.mark.parametrize('encoded', [
        'not base64!',
        base64.b64encode(b'nocolon').decode(),
        base64.b64encode(b'\xff\xfe:x').decode(),
    ])
    def test_malformed(self, encoded):
        """Test undecodable credentials are refused."""
        with pytest.raises(MalformedAuthorizationError):
            digest.parse_basic_credentials(encoded)


class TestDigestParams:
    """Tests for Digest parameter parsing."""

    def test_parse(self):
        """Test quoted values are unquoted and keys lowercased."""
        params = digest.parse_digest_params(
            'username="alice", Realm="FileHub", nonce="abc", '
            'uri="/dav/a, b.txt", qop=auth, nc=00000001, '
            'cnonce="xyz", response="0123"',
        )

        assert params['username'] == 'alice'
        assert params['realm'] == 'FileHub'
        assert params['uri'] == '/dav/a, b.txt'
        assert params['qop'] == 'auth'

    def test_missing_required(self):
        """Test a header without response is refused."""
        with pytest.raises(MalformedAuthorizationError, match='response'):
            digest.parse_digest_params('username="a", nonce="n", uri="/"')

    def test_item_without_value(self):
        """Test an item that is not key=value is refused."""
        with pytest.raises(MalformedAuthorizationError):
            digest.parse_digest_params('username, nonce="n"')


def test_expected_response_with_qop():
    """Test the RFC 2617 qop=auth response."""
    ha1 = _md5('alice:FileHub:s3cret')
    params = {
        'uri': '/dav/',
        'nonce': 'n1',
        'nc': '00000001',
        'cnonce': 'c1',
        'qop': 'auth',
    }
    ha2 = _md5('PROPFIND:/dav/')

    assert digest.expected_response(ha1, 'PROPFIND', params) == (
        _md5(f'{ha1}:n1:00000001:c1:auth:{ha2}')
    )


def test_expected_response_without_qop():
    """Test the RFC 2069 fallback."""
    ha1 = _md5('alice:FileHub:s3cret')
    params = {'uri': '/dav/', 'nonce': 'n1'}

    assert digest.expected_response(ha1, 'GET', params) == (
        _md5(f'{ha1}:n1:{_md5("GET:/dav/")}')
    )


@pytest.mark.parametrize(('uri', 'path_info', 'expected'), [
    ('/dav/', '/', True),
    ('/dav', '/', True),
    ('/dav/a.txt?x=1', '/a.txt', True),
    ('https://files.example/dav/a%20b.txt', '/a b.txt', True),
    ('/dav/%C3%BC.txt', '/ü.txt'.encode().decode('latin-1'), True),
    ('/dav/a.txt', '/b.txt', False),
    ('/dav/a.txt', '/', False),
    ('/other/', '/', False),
])
def test_uri_matches(uri, path_info, expected):
    """Test the signed uri is compared with the request target."""
    environ = {'SCRIPT_NAME': '/dav', 'PATH_INFO': path_info}

    assert digest.uri_matches(uri, environ) is expected
