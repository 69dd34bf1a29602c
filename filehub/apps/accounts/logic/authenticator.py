"""Authentication mediator shared by the WebDAV and JSON surfaces.

Every request is resolved to a user by, in order: a session cookie,
an ``Authorization: Basic`` header, or an ``Authorization: Digest``
header. Basic and Digest never create a session; WebDAV clients send
credentials with every request.
"""

import functools
import hmac
import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from http import HTTPStatus
from typing import TYPE_CHECKING, Any, Final, final

from django.conf import settings
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.http.cookie import parse_cookie

from filehub.apps.accounts.exceptions import MalformedAuthorizationError
from filehub.apps.accounts.logic import credentials
from filehub.apps.accounts.logic.digest import (
    basic_challenge,
    digest_challenge,
    expected_response,
    parse_basic_credentials,
    parse_digest_params,
    split_scheme,
    uri_matches,
)
from filehub.apps.accounts.logic.nonces import (
    NonceStore,
    get_nonce_store,
    new_opaque,
)
from filehub.apps.accounts.logic.sessions import (
    Session,
    SessionStore,
    get_session_store,
)

if TYPE_CHECKING:
    from filehub.apps.accounts.models import User

logger = logging.getLogger(__name__)

# Key to store authenticated user in WSGI environ
ENVIRON_USER_KEY: Final = 'filehub.user'

_AUTH_REQUIRED: Final = 'Authentication required'
_INVALID_CREDENTIALS: Final = 'Invalid credentials'


@dataclass(frozen=True)
class AuthResult:
    """Outcome of authenticating one request.

    On failure ``status`` is 401 or 400 and ``challenges`` holds the
    WWW-Authenticate values to send, possibly none.
    """

    user: 'User | None' = None
    status: HTTPStatus = HTTPStatus.OK
    reason: str = ''
    challenges: tuple[str, ...] = ()
    session: Session | None = None

    @property
    def ok(self) -> bool:
        """Whether a user was resolved."""
        return self.user is not None


@final
class Authenticator:
    """Resolves the user of a request from cookie, Basic or Digest."""

    def __init__(
        self,
        sessions: SessionStore,
        nonces: NonceStore,
        realm: str,
        cookie_name: str,
    ) -> None:
        """Initialize the mediator.

        Args:
            sessions: Store consulted for the session cookie.
            nonces: Store that issues and checks Digest nonces.
            realm: Realm advertised in challenges and used for HA1.
            cookie_name: Name of the session cookie.
        """
        self._sessions = sessions
        self._nonces = nonces
        self._realm = realm
        self._cookie_name = cookie_name

    @property
    def realm(self) -> str:
        """Realm advertised in challenges."""
        return self._realm

    @property
    def cookie_name(self) -> str:
        """Name of the session cookie."""
        return self._cookie_name

    def challenges(self) -> tuple[str, ...]:
        """Build a fresh Digest challenge followed by a Basic one."""
        return (
            digest_challenge(self._realm, self._nonces.issue(), new_opaque()),
            basic_challenge(self._realm),
        )

    def session_id(self, environ: Mapping[str, Any]) -> str | None:
        """Read the session cookie from a WSGI environ or request.META.

        Args:
            environ: Request environment.

        Returns:
            Cookie value, or None when absent.
        """
        cookies = parse_cookie(environ.get('HTTP_COOKIE', ''))
        return cookies.get(self._cookie_name) or None

    def authenticate(self, environ: Mapping[str, Any]) -> AuthResult:
        """Authenticate a request.

        Args:
            environ: WSGI environ or Django ``request.META``.

        Returns:
            AuthResult carrying the user or the failure response data.
        """
        session = self._sessions.get(self.session_id(environ))
        if session is not None and session.user.is_active:
            return AuthResult(user=session.user, session=session)

        header = environ.get('HTTP_AUTHORIZATION', '').strip()
        if not header:
            return self._unauthorized(_AUTH_REQUIRED, challenge=True)

        scheme, encoded = split_scheme(header)
        scheme = scheme.lower()
        try:
            if scheme == 'basic':
                return self._authenticate_basic(encoded)
            if scheme == 'digest':
                return self._authenticate_digest(environ, encoded)
        except MalformedAuthorizationError as error:
            logger.warning('Malformed %s authorization: %s', scheme, error)
            if scheme == 'basic':
                return self._unauthorized(_INVALID_CREDENTIALS)
            return AuthResult(status=HTTPStatus.BAD_REQUEST, reason=str(error))

        logger.warning('Unsupported authorization scheme: %s', scheme)
        return AuthResult(
            status=HTTPStatus.BAD_REQUEST,
            reason='Unsupported authorization scheme',
        )

    def _authenticate_basic(self, encoded: str) -> AuthResult:
        username, password = parse_basic_credentials(encoded)
        user = credentials.authenticate(username, password)
        if user is None:
            return self._unauthorized(_INVALID_CREDENTIALS)
        logger.debug('Basic authentication succeeded for %s', user.username)
        return AuthResult(user=user)

    def _authenticate_digest(
        self,
        environ: Mapping[str, Any],
        encoded: str,
    ) -> AuthResult:
        params = parse_digest_params(encoded)

        if not self._nonces.is_valid(params['nonce']):
            logger.info('Stale or unknown Digest nonce')
            return self._unauthorized('Stale nonce', challenge=True)

        if not uri_matches(params['uri'], environ):
            logger.warning(
                'Digest uri %r does not match the request path',
                params['uri'],
            )
            return self._unauthorized(_INVALID_CREDENTIALS, challenge=True)

        user = credentials.get_by_username(params['username'])
        if user is None or not user.is_active:
            logger.warning(
                'Digest authentication failed for user: %s',
                params['username'],
            )
            return self._unauthorized(_INVALID_CREDENTIALS, challenge=True)

        expected = expected_response(
            user.ha1,
            environ.get('REQUEST_METHOD', 'GET'),
            params,
        )
        if not hmac.compare_digest(expected, params['response'].lower()):
            logger.warning(
                'Digest authentication failed for user: %s',
                params['username'],
            )
            return self._unauthorized(_INVALID_CREDENTIALS, challenge=True)

        credentials.record_login(user)
        logger.debug('Digest authentication succeeded for %s', user.username)
        return AuthResult(user=user)

    def _unauthorized(self, reason: str, *, challenge: bool = False) -> AuthResult:
        return AuthResult(
            status=HTTPStatus.UNAUTHORIZED,
            reason=reason,
            challenges=self.challenges() if challenge else (),
        )


_authenticator: Authenticator | None = None
_authenticator_lock = threading.Lock()


def get_authenticator() -> Authenticator:
    """Get the process-wide mediator over the shared stores.

    Returns:
        Authenticator configured from settings.
    """
    global _authenticator  # noqa: WPS420
    with _authenticator_lock:
        if _authenticator is None:
            _authenticator = Authenticator(
                sessions=get_session_store(),
                nonces=get_nonce_store(),
                realm=credentials.get_realm(),
                cookie_name=getattr(
                    settings,
                    'FILEHUB_SESSION_COOKIE',
                    'filehub_session',
                ),
            )
        return _authenticator


def login_required(
    view: Callable[..., HttpResponse],
) -> Callable[..., HttpResponse]:
    """Require an authenticated user for a Django view.

    Sets ``request.user`` on success. Django responses hold one value
    per header, so the challenges are joined into a single
    WWW-Authenticate header.

    Args:
        view: View function to protect.

    Returns:
        Wrapped view.
    """
    @functools.wraps(view)
    def wrapper(request: HttpRequest, *args: Any, **kwargs: Any) -> HttpResponse:
        result = get_authenticator().authenticate(request.META)
        if not result.ok:
            response = JsonResponse(
                {'error': result.reason},
                status=result.status,
            )
            if result.challenges:
                response['WWW-Authenticate'] = ', '.join(result.challenges)
            return response

        request.user = result.user  # type: ignore[attr-defined]
        return view(request, *args, **kwargs)

    return wrapper
