"""JSON endpoints for browser login, first-run setup and session state."""

import json
import logging
from typing import Any, Final

from django.conf import settings
from django.db import transaction
from django.http import (
    HttpRequest,
    HttpResponse,
    HttpResponseRedirect,
    JsonResponse,
)
from django.views.decorators.http import require_GET, require_POST

from filehub.apps.accounts.exceptions import SetupCompletedError, UserExistsError
from filehub.apps.accounts.logic import credentials
from filehub.apps.accounts.logic.authenticator import (
    get_authenticator,
    login_required,
)
from filehub.apps.accounts.logic.sessions import Session, get_session_store
from filehub.apps.api.forms import LoginForm, SetupForm
from filehub.apps.api.serializers import serialize_user
from filehub.apps.files.exceptions import InvalidRootError, StorageError
from filehub.apps.files.logic.repositories import (
    create_home_repository,
    validate_root,
)

logger = logging.getLogger(__name__)

_INVALID_REQUEST: Final = 'Invalid request format'
_SETUP_COMPLETED: Final = 'Setup already completed'
_UI_URL: Final = '/ui/'
_SETUP_URL: Final = '/ui/?mode=setup'


def _error(message: str, status: int) -> JsonResponse:
    return JsonResponse({'error': message}, status=status)


def _json_body(request: HttpRequest) -> dict[str, Any] | None:
    """Decode a JSON object body; None when it is not one."""
    try:
        payload = json.loads(request.body)
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def _set_session_cookie(
    request: HttpRequest,
    response: HttpResponse,
    session: Session,
) -> None:
    response.set_cookie(
        get_authenticator().cookie_name,
        session.id,
        max_age=int(get_session_store().ttl.total_seconds()),
        path='/',
        secure=request.is_secure(),
        httponly=True,
        samesite='Lax',
    )


@require_GET
def index(request: HttpRequest) -> HttpResponse:
    """Send browsers to the UI, or to setup while there are no users."""
    if credentials.has_any_user():
        return HttpResponseRedirect(_UI_URL)
    return HttpResponseRedirect(_SETUP_URL)


@require_POST
def login(request: HttpRequest) -> HttpResponse:
    """Check credentials and start a cookie session."""
    if not credentials.has_any_user():
        return JsonResponse({'redirect': _SETUP_URL}, status=302)

    payload = _json_body(request)
    form = LoginForm(payload)
    if payload is None or not form.is_valid():
        return _error(_INVALID_REQUEST, 400)

    user = credentials.authenticate(
        form.cleaned_data['username'],
        form.cleaned_data['password'],
    )
    if user is None:
        return _error('Invalid username or password', 401)

    session = get_session_store().create(user)
    response = JsonResponse({
        'message': 'Login successful',
        'user': serialize_user(user),
    })
    _set_session_cookie(request, response, session)
    return response


@require_POST
def logout(request: HttpRequest) -> HttpResponse:
    """End the cookie session, if any, and clear the cookie."""
    authenticator = get_authenticator()
    get_session_store().destroy(authenticator.session_id(request.META))

    response = JsonResponse({'message': 'Logout successful'})
    response.delete_cookie(authenticator.cookie_name, path='/', samesite='Lax')
    return response


@require_POST
def refresh_session(request: HttpRequest) -> HttpResponse:
    """Push the expiry of the current cookie session out by the TTL."""
    store = get_session_store()
    session_id = get_authenticator().session_id(request.META)
    if not session_id or not store.extend(session_id):
        return _error('No active session', 401)

    session = store.get(session_id)
    if session is None:
        return _error('No active session', 401)

    response = JsonResponse({
        'message': 'Session refreshed',
        'expires_at': session.expires_at.isoformat(),
    })
    _set_session_cookie(request, response, session)
    return response


@require_GET
def setup_roots(request: HttpRequest) -> HttpResponse:
    """Roots the setup form may choose from."""
    return JsonResponse({
        'roots': list(settings.FILEHUB_ROOT_DIRS),
        's3': bool(settings.FILEHUB_S3),
    })


@require_POST
def setup(request: HttpRequest) -> HttpResponse:
    """Create the first (admin) user and their home repository."""
    if credentials.has_any_user():
        return _error(_SETUP_COMPLETED, 400)

    payload = _json_body(request)
    form = SetupForm(payload)
    if payload is None or not form.is_valid():
        return _error(_INVALID_REQUEST, 400)

    data = form.cleaned_data
    try:
        validate_root(data['root_dir'])
    except InvalidRootError as error:
        logger.warning('Rejected setup root: %s', error)
        return _error(f'Invalid root dir: {data["root_dir"]}', 400)

    try:
        with transaction.atomic():
            user = credentials.create_first_user(
                data['username'],
                data['password'],
                data['email'],
            )
            create_home_repository(user, data['root_dir'])
    except (SetupCompletedError, UserExistsError):
        return _error(_SETUP_COMPLETED, 400)
    except (InvalidRootError, StorageError) as error:
        logger.exception('Setup failed to create home repository')
        return _error(f'Failed to create home repository: {error}', 500)

    logger.info('Setup completed, admin user %s created', user.username)
    return JsonResponse({
        'message': 'Setup completed successfully. You can now login.',
        'user': serialize_user(user),
    })


@require_GET
@login_required
def hello(request: HttpRequest) -> HttpResponse:
    """Greet the authenticated user."""
    user = request.user  # type: ignore[attr-defined]
    return JsonResponse({
        'message': f'Hello, {user.username}',
        'dav': f'{settings.WEBDAV_MOUNT}/',
        'user': serialize_user(user),
    })
