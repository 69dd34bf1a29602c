"""WSGI application serving the WebDAV surface.

The app is mounted at ``/dav`` next to the Django app. It is a plain
WSGI callable rather than a Django view because a 401 must carry one
``WWW-Authenticate`` header per challenge.
"""

import logging
from collections.abc import Iterable
from http import HTTPStatus
from typing import Any, final

from filehub.apps.accounts.logic.authenticator import (
    ENVIRON_USER_KEY,
    Authenticator,
    get_authenticator,
)
from filehub.apps.files.exceptions import (
    CrossRepositoryError,
    NotACollectionError,
    ObjectNotFoundError,
    QuotaExceededError,
    StorageError,
    StoragePermissionError,
)
from filehub.apps.files.logic.repositories import get_home_repository
from filehub.apps.webdav.exceptions import (
    MalformedRequestError,
    ResourceConflictError,
)
from filehub.apps.webdav.handlers import HANDLERS, DAVRequest
from filehub.apps.webdav.paths import request_path
from filehub.apps.webdav.responses import (
    ALLOW_HEADER,
    StartResponse,
    empty_response,
    error_response,
    with_dav_headers,
)

logger = logging.getLogger(__name__)

# Checked in order; the first matching class decides the status
_ERROR_STATUSES: tuple[tuple[type[Exception], HTTPStatus], ...] = (
    (ObjectNotFoundError, HTTPStatus.NOT_FOUND),
    (NotACollectionError, HTTPStatus.BAD_REQUEST),
    (StoragePermissionError, HTTPStatus.FORBIDDEN),
    (CrossRepositoryError, HTTPStatus.FORBIDDEN),
    (MalformedRequestError, HTTPStatus.BAD_REQUEST),
    (ResourceConflictError, HTTPStatus.CONFLICT),
    (QuotaExceededError, HTTPStatus.INSUFFICIENT_STORAGE),
    (StorageError, HTTPStatus.INTERNAL_SERVER_ERROR),
)


@final
class WebDAVApp:
    """Authenticates requests and dispatches them to method handlers."""

    def __init__(self, authenticator: Authenticator | None = None) -> None:
        """Initialize the app.

        Args:
            authenticator: Mediator to use; the shared one when omitted.
        """
        self._authenticator = authenticator

    @property
    def authenticator(self) -> Authenticator:
        """Mediator resolving the user of each request."""
        if self._authenticator is None:
            self._authenticator = get_authenticator()
        return self._authenticator

    def __call__(
        self,
        environ: dict[str, Any],
        start_response: StartResponse,
    ) -> Iterable[bytes]:
        """Handle one WSGI request.

        Args:
            environ: WSGI environ; ``SCRIPT_NAME`` is the mount point.
            start_response: WSGI start_response callable.

        Returns:
            Response body iterable.
        """
        start_response = with_dav_headers(start_response)
        method = environ.get('REQUEST_METHOD', 'GET').upper()

        if method == 'OPTIONS':
            return empty_response(start_response, HTTPStatus.OK, [ALLOW_HEADER])

        handler = HANDLERS.get(method)
        if handler is None:
            return error_response(
                start_response,
                HTTPStatus.METHOD_NOT_ALLOWED,
                f'Method {method} is not allowed',
                [ALLOW_HEADER],
            )

        result = self.authenticator.authenticate(environ)
        if not result.ok:
            return error_response(
                start_response,
                result.status,
                result.reason,
                [('WWW-Authenticate', challenge) for challenge in result.challenges],
            )

        user = result.user
        environ[ENVIRON_USER_KEY] = user

        try:
            repository = get_home_repository(user)
            if repository is None:
                logger.warning('No home repository for user %s', user.username)
                return error_response(
                    start_response,
                    HTTPStatus.FORBIDDEN,
                    'No repository for user',
                )

            request = DAVRequest(
                environ=environ,
                user=user,
                repository=repository,
                path=request_path(environ),
            )
            logger.debug(
                '%s %s:%s by %s',
                method,
                repository.name,
                request.path,
                user.username,
            )
            return handler(request, start_response)
        except Exception as error:
            return self._error(start_response, method, environ, error)

    def _error(
        self,
        start_response: StartResponse,
        method: str,
        environ: dict[str, Any],
        error: Exception,
    ) -> Iterable[bytes]:
        status = next(
            (
                status
                for error_class, status in _ERROR_STATUSES
                if isinstance(error, error_class)
            ),
            None,
        )
        path = environ.get('PATH_INFO', '')
        if status is None:
            logger.exception('Unhandled error in %s %s', method, path)
            return error_response(
                start_response,
                HTTPStatus.INTERNAL_SERVER_ERROR,
                'Internal server error',
            )

        if status is HTTPStatus.INTERNAL_SERVER_ERROR:
            logger.error('%s %s failed: %s', method, path, error)
        else:
            logger.info('%s %s -> %d: %s', method, path, status.value, error)
        return error_response(start_response, status, str(error))


def create_webdav_app() -> WebDAVApp:
    """Create the WebDAV WSGI application.

    Returns:
        App using the process-wide authenticator.
    """
    logger.info('Creating WebDAV application')
    return WebDAVApp()
