"""HTTP Basic and Digest header handling (RFC 7617, RFC 2617)."""

import base64
import binascii
from collections.abc import Mapping
from typing import Any, Final
from urllib.parse import unquote, urlsplit
from urllib.request import parse_http_list

from filehub.apps.accounts.exceptions import MalformedAuthorizationError
from filehub.apps.accounts.logic.credentials import md5_hex

DIGEST_SCHEME: Final = 'Digest'
BASIC_SCHEME: Final = 'Basic'

# Parameters a Digest response cannot be verified without
_REQUIRED_PARAMS: Final = ('username', 'nonce', 'uri', 'response')


def basic_challenge(realm: str) -> str:
    """Build a Basic WWW-Authenticate value."""
    return f'{BASIC_SCHEME} realm="{realm}"'


def digest_challenge(realm: str, nonce: str, opaque: str) -> str:
    """Build a Digest WWW-Authenticate value.

    Args:
        realm: Authentication realm.
        nonce: Freshly issued nonce.
        opaque: Opaque value the client echoes back.

    Returns:
        Challenge string.
    """
    return (
        f'{DIGEST_SCHEME} realm="{realm}", nonce="{nonce}", '
        f'opaque="{opaque}", algorithm=MD5, qop="auth"'
    )


def split_scheme(header: str) -> tuple[str, str]:
    """Split an Authorization header into scheme and credentials.

    Args:
        header: Raw Authorization header value.

    Returns:
        Tuple of (scheme, rest). The scheme keeps its original case.
    """
    scheme, _, credentials = header.strip().partition(' ')
    return scheme, credentials.strip()


def parse_basic_credentials(credentials: str) -> tuple[str, str]:
    """Decode Basic credentials into username and password.

    Args:
        credentials: Base64 part of the header.

    Returns:
        Tuple of (username, password), split on the first colon.

    Raises:
        MalformedAuthorizationError: If decoding fails or no colon is present.
    """
    try:
        decoded = base64.b64decode(credentials, validate=True).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError) as error:
        raise MalformedAuthorizationError('Invalid Basic credentials') from error

    username, separator, password = decoded.partition(':')
    if not separator:
        raise MalformedAuthorizationError('Invalid Basic credentials')
    return username, password


def parse_digest_params(credentials: str) -> dict[str, str]:
    """Parse the key/value list of a Digest Authorization header.

    Args:
        credentials: Header value after the ``Digest`` scheme.

    Returns:
        Mapping of parameter names (lowercased) to unquoted values.

    Raises:
        MalformedAuthorizationError: If an item is not key=value or a
            required parameter is missing.
    """
    params: dict[str, str] = {}
    for item in parse_http_list(credentials):
        key, separator, value = item.partition('=')
        key = key.strip().lower()
        if not separator or not key:
            raise MalformedAuthorizationError(
                f'Malformed Digest parameter: {item!r}',
            )
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]
        params[key] = value

    missing = [name for name in _REQUIRED_PARAMS if not params.get(name)]
    if missing:
        raise MalformedAuthorizationError(
            f'Missing Digest parameters: {", ".join(missing)}',
        )
    return params


def uri_matches(uri: str, environ: Mapping[str, Any]) -> bool:
    """Whether the Digest ``uri`` names the target of the request.

    Clients send the request path or the full URL. The query and a
    trailing slash are ignored.

    Args:
        uri: The ``uri`` Digest parameter.
        environ: WSGI environ of the request being authenticated.

    Returns:
        True when both name the same path.
    """
    target = environ.get('SCRIPT_NAME', '') + environ.get('PATH_INFO', '')
    try:
        # PEP 3333 carries the raw path bytes as latin-1
        target = target.encode('latin-1').decode('utf-8')
    except UnicodeError:
        return False
    signed = unquote(urlsplit(uri).path)
    return (signed.rstrip('/') or '/') == (target.rstrip('/') or '/')


def expected_response(ha1: str, method: str, params: Mapping[str, str]) -> str:
    """Compute the Digest response the client should have sent.

    With ``qop`` the response is MD5(HA1:nonce:nc:cnonce:qop:HA2),
    without it the RFC 2069 form MD5(HA1:nonce:HA2) is used.

    Args:
        ha1: Stored HA1 of the user.
        method: HTTP request method.
        params: Parsed Digest parameters.

    Returns:
        Hex digest string.
    """
    ha2 = md5_hex(f'{method}:{params["uri"]}')
    qop = params.get('qop')
    if qop:
        return md5_hex(
            ':'.join((
                ha1,
                params['nonce'],
                params.get('nc', ''),
                params.get('cnonce', ''),
                qop,
                ha2,
            )),
        )
    return md5_hex(f'{ha1}:{params["nonce"]}:{ha2}')
