"""Shared fixtures for WebDAV app tests."""

import io
from dataclasses import dataclass
from typing import Any

import pytest
from wsgidav.util import SubAppStartResponse

from filehub.apps.accounts.logic.authenticator import Authenticator
from filehub.apps.accounts.logic.credentials import create_user
from filehub.apps.accounts.logic.nonces import NonceStore
from filehub.apps.accounts.logic.sessions import SessionStore
from filehub.apps.files.logic.quota_operations import get_or_create_quota
from filehub.apps.files.models import Repository
from filehub.apps.webdav.wsgi_app import WebDAVApp

# alice:s3cret
BASIC_ALICE = 'Basic YWxpY2U6czNjcmV0'
HOST = 'testserver'
MOUNT = '/dav'

# Headers WSGI passes without the HTTP_ prefix
_UNPREFIXED = frozenset(('CONTENT_TYPE', 'CONTENT_LENGTH'))


@dataclass
class DAVResponse:
    """Collected WSGI response."""

    status: str
    headers: list[tuple[str, str]]
    body: bytes = b''

    @property
    def status_code(self) -> int:
        """Numeric status."""
        return int(self.status.split(' ', 1)[0])

    def header(self, name: str) -> str | None:
        """First value of a header, None when absent."""
        values = self.header_values(name)
        return values[0] if values else None

    def header_values(self, name: str) -> list[str]:
        """Every value of a header."""
        return [
            value
            for key, value in self.headers
            if key.lower() == name.lower()
        ]


class DAVClient:
    """Calls the WSGI app with hand-built environs."""

    def __init__(self, app: WebDAVApp, authorization: str | None = BASIC_ALICE):
        self.app = app
        self.authorization = authorization

    def request(
        self,
        method: str,
        path: str,
        body: bytes = b'',
        headers: dict[str, str] | None = None,
        *,
        auth: bool = True,
        environ: dict[str, Any] | None = None,
    ) -> DAVResponse:
        """Send one request below the mount point.

        Returns:
            The collected response.
        """
        request_environ = {
            'REQUEST_METHOD': method,
            'SCRIPT_NAME': MOUNT,
            'PATH_INFO': path.encode('utf-8').decode('latin-1'),
            'SERVER_NAME': HOST,
            'SERVER_PORT': '80',
            'HTTP_HOST': HOST,
            'wsgi.url_scheme': 'http',
            'wsgi.input': io.BytesIO(body),
        }
        if body:
            request_environ['CONTENT_LENGTH'] = str(len(body))
        if auth and self.authorization:
            request_environ['HTTP_AUTHORIZATION'] = self.authorization
        for name, value in (headers or {}).items():
            key = name.upper().replace('-', '_')
            if key not in _UNPREFIXED:
                key = f'HTTP_{key}'
            request_environ[key] = value
        request_environ.update(environ or {})

        start_response = SubAppStartResponse()
        result = self.app(request_environ, start_response)
        try:
            content = b''.join(result)
        finally:
            close = getattr(result, 'close', None)
            if close is not None:
                close()
        return DAVResponse(
            status=start_response.status,
            headers=list(start_response.response_headers),
            body=content,
        )


@pytest.fixture
def user(db):
    """Create test user alice with password s3cret.

    Returns:
        User instance for testing.
    """
    return create_user('alice', 's3cret', 'alice@example.com')


@pytest.fixture
def repository(user, tmp_path):
    """Home repository of alice on the local filesystem.

    Returns:
        Repository whose root directory exists.
    """
    repo = Repository.objects.create(
        owner=user,
        name=user.username,
        root_uri=tmp_path.as_uri(),
    )
    (tmp_path / repo.name).mkdir()
    get_or_create_quota(user)
    return repo


@pytest.fixture
def repo_dir(repository, tmp_path):
    """Directory backing the home repository.

    Returns:
        Path of the repository directory.
    """
    return tmp_path / repository.name


@pytest.fixture
def sessions():
    """Session store for the app under test.

    Yields:
        SessionStore whose reaper is stopped afterwards.
    """
    store = SessionStore()
    yield store
    store.stop()


@pytest.fixture
def authenticator(sessions):
    """Mediator over private stores.

    Yields:
        Authenticator instance.
    """
    nonces = NonceStore()
    yield Authenticator(
        sessions=sessions,
        nonces=nonces,
        realm='FileHub',
        cookie_name='filehub_session',
    )
    nonces.stop()


@pytest.fixture
def client_for(authenticator, repository):
    """Factory of clients sending a given Authorization header.

    Returns:
        Callable taking the header value and returning a DAVClient.
    """
    app = WebDAVApp(authenticator=authenticator)

    def factory(authorization: str | None) -> DAVClient:  # noqa: WPS430
        return DAVClient(app, authorization)

    return factory


@pytest.fixture
def dav(client_for):
    """Client authenticated as alice with Basic credentials.

    Returns:
        DAVClient instance.
    """
    return client_for(BASIC_ALICE)
