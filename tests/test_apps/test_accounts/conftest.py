"""Shared fixtures for accounts app tests."""

from datetime import UTC, datetime, timedelta

import pytest

from filehub.apps.accounts.logic.authenticator import Authenticator
from filehub.apps.accounts.logic.credentials import create_user
from filehub.apps.accounts.logic.nonces import NonceStore
from filehub.apps.accounts.logic.sessions import SessionStore

REALM = 'FileHub'
COOKIE = 'filehub_session'


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    """Fake clock starting at 2024-01-01 UTC.

    Returns:
        FakeClock instance.
    """
    return FakeClock()


@pytest.fixture
def user(db):
    """Create test user alice with password s3cret.

    Returns:
        User instance for testing.
    """
    return create_user('alice', 's3cret', 'alice@example.com')


@pytest.fixture
def sessions(clock):
    """Session store on the fake clock.

    Yields:
        SessionStore whose reaper is stopped afterwards.
    """
    store = SessionStore(clock=clock)
    yield store
    store.stop()


@pytest.fixture
def nonces(clock):
    """Nonce store on the fake clock.

    Yields:
        NonceStore whose sweeper is stopped afterwards.
    """
    store = NonceStore(clock=clock)
    yield store
    store.stop()


@pytest.fixture
def authenticator(sessions, nonces):
    """Mediator over the test stores.

    Returns:
        Authenticator instance.
    """
    return Authenticator(
        sessions=sessions,
        nonces=nonces,
        realm=REALM,
        cookie_name=COOKIE,
    )
