"""Tests for the JSON API views."""

from http import HTTPStatus

import pytest
from django.urls import reverse

from filehub.apps.accounts.models import User
from filehub.apps.files.models import Repository, UserQuota

BASIC_ALICE = 'Basic YWxpY2U6czNjcmV0'
COOKIE = 'filehub_session'


@pytest.mark.django_db
class TestIndex:
    """Tests for the root redirect."""

    def test_setup_mode_without_users(self, client):
        """Test an empty install redirects to setup."""
        response = client.get('/')

        assert response.status_code == HTTPStatus.FOUND
        assert response['Location'] == '/ui/?mode=setup'

    def test_ui_with_users(self, client, user):
        """Test an installed system redirects to the UI."""
        assert client.get('/')['Location'] == '/ui/'


@pytest.mark.django_db
class TestLogin:
    """Tests for login and logout."""

    def test_before_setup(self, post_json):
        """Test login points to setup while there are no users."""
        response = post_json(reverse('api:login'), {'username': 'a', 'password': 'b'})

        assert response.status_code == HTTPStatus.FOUND
        assert response.json() == {'redirect': '/ui/?mode=setup'}

    def test_wrong_password(self, post_json, user):
        """Test bad credentials are 401 with the documented message."""
        response = post_json(
            reverse('api:login'),
            {'username': 'alice', 'password': 'wrong'},
        )

        assert response.status_code == HTTPStatus.UNAUTHORIZED
        assert response.json() == {'error': 'Invalid username or password'}
        assert COOKIE not in response.cookies

    def test_success_sets_cookie(self, client, post_json, user):
        """Test login sets an HttpOnly cookie usable without Authorization."""
        response = post_json(
            reverse('api:login'),
            {'username': 'alice', 'password': 's3cret'},
        )

        assert response.status_code == HTTPStatus.OK
        body = response.json()
        assert body['message'] == 'Login successful'
        assert body['user']['username'] == 'alice'
        assert 'ha1' not in body['user']
        cookie = response.cookies[COOKIE]
        assert cookie['httponly']
        assert cookie['path'] == '/'
        assert cookie['max-age'] == 86400
        assert cookie['samesite'] == 'Lax'

        hello = client.get(reverse('api:hello'))
        assert hello.status_code == HTTPStatus.OK
        assert hello.json()['message'] == 'Hello, alice'

    @pytest.mark.parametrize('payload', [
        'not json',
        '["alice", "s3cret"]',
        {'username': 'alice'},
    ])
    def test_invalid_body(self, post_json, user, payload):
        """Test malformed bodies are a bad request."""
        response = post_json(reverse('api:login'), payload)

        assert response.status_code == HTTPStatus.BAD_REQUEST
        assert response.json() == {'error': 'Invalid request format'}

    def test_get_not_allowed(self, client, user):
        """Test login only accepts POST."""
        response = client.get(reverse('api:login'))

        assert response.status_code == HTTPStatus.METHOD_NOT_ALLOWED

    def test_logout(self, client, post_json, user):
        """Test logout ends the session and clears the cookie."""
        post_json(reverse('api:login'), {'username': 'alice', 'password': 's3cret'})

        response = client.post(reverse('api:logout'))

        assert response.status_code == HTTPStatus.OK
        assert response.json() == {'message': 'Logout successful'}
        assert response.cookies[COOKIE]['max-age'] == 0
        assert client.get(reverse('api:hello')).status_code == HTTPStatus.UNAUTHORIZED

    def test_logout_without_session(self, client, db):
        """Test logout is idempotent."""
        response = client.post(reverse('api:logout'))

        assert response.status_code == HTTPStatus.OK


@pytest.mark.django_db
class TestRefresh:
    """Tests for session refresh."""

    def test_refresh(self, client, post_json, user):
        """Test a live session is extended and the cookie re-sent."""
        post_json(reverse('api:login'), {'username': 'alice', 'password': 's3cret'})

        response = client.post(reverse('api:session-refresh'))

        assert response.status_code == HTTPStatus.OK
        assert response.json()['message'] == 'Session refreshed'
        assert 'expires_at' in response.json()
        assert COOKIE in response.cookies

    def test_refresh_without_session(self, client, db):
        """Test refreshing without a cookie is 401."""
        response = client.post(reverse('api:session-refresh'))

        assert response.status_code == HTTPStatus.UNAUTHORIZED
        assert response.json() == {'error': 'No active session'}


@pytest.mark.django_db
class TestHello:
    """Tests for the authenticated greeting."""

    def test_anonymous(self, client, user):
        """Test anonymous requests are challenged."""
        response = client.get(reverse('api:hello'))

        assert response.status_code == HTTPStatus.UNAUTHORIZED
        challenge = response['WWW-Authenticate']
        assert 'Digest realm="FileHub"' in challenge
        assert 'Basic realm="FileHub"' in challenge

    def test_basic(self, client, user):
        """Test Basic credentials work without a session."""
        response = client.get(reverse('api:hello'), HTTP_AUTHORIZATION=BASIC_ALICE)

        assert response.status_code == HTTPStatus.OK
        assert response.json()['dav'] == '/dav/'
        assert COOKIE not in response.cookies

    def test_unsupported_scheme(self, client, user):
        """Test other schemes are a bad request."""
        response = client.get(reverse('api:hello'), HTTP_AUTHORIZATION='Bearer x')

        assert response.status_code == HTTPStatus.BAD_REQUEST


@pytest.fixture
def allowed_root(settings, tmp_path):
    """Allow tmp_path as repository root.

    Returns:
        The allowed directory.
    """
    settings.FILEHUB_ROOT_DIRS = [str(tmp_path)]
    return tmp_path


def _setup_payload(root_dir):
    return {
        'username': 'Admin',
        'password': 'secret',
        'email': 'admin@example.com',
        'root_dir': str(root_dir),
    }


@pytest.mark.django_db
class TestSetup:
    """Tests for first-run setup."""

    def test_roots(self, client, allowed_root, settings):
        """Test the allowed roots are listed."""
        settings.FILEHUB_S3 = None

        response = client.get(reverse('api:setup-roots'))

        assert response.json() == {'roots': [str(allowed_root)], 's3': False}

    def test_setup(self, post_json, allowed_root):
        """Test setup creates the admin, quota and home repository."""
        response = post_json(reverse('api:setup'), _setup_payload(allowed_root))

        assert response.status_code == HTTPStatus.OK
        assert response.json()['user']['username'] == 'admin'
        admin = User.objects.get(username='admin')
        assert admin.is_admin
        assert Repository.objects.filter(owner=admin, name='admin').exists()
        assert UserQuota.objects.filter(user=admin).exists()
        assert (allowed_root / 'admin').is_dir()

    def test_login_after_setup(self, post_json, allowed_root):
        """Test the admin can sign in with the chosen password."""
        post_json(reverse('api:setup'), _setup_payload(allowed_root))

        response = post_json(
            reverse('api:login'),
            {'username': 'admin', 'password': 'secret'},
        )

        assert response.status_code == HTTPStatus.OK

    def test_only_once(self, post_json, allowed_root, user):
        """Test setup is refused once a user exists."""
        response = post_json(reverse('api:setup'), _setup_payload(allowed_root))

        assert response.status_code == HTTPStatus.BAD_REQUEST
        assert response.json() == {'error': 'Setup already completed'}

    def test_invalid_root(self, post_json, allowed_root):
        """Test a root outside the allowed dirs creates nothing."""
        response = post_json(reverse('api:setup'), _setup_payload('/etc'))

        assert response.status_code == HTTPStatus.BAD_REQUEST
        assert response.json() == {'error': 'Invalid root dir: /etc'}
        assert not User.objects.exists()

    def test_invalid_email(self, post_json, allowed_root):
        """Test the form rejects a bad email."""
        payload = {**_setup_payload(allowed_root), 'email': 'nope'}

        response = post_json(reverse('api:setup'), payload)

        assert response.status_code == HTTPStatus.BAD_REQUEST
        assert response.json() == {'error': 'Invalid request format'}
