"""Shared fixtures for JSON API tests."""

import json

import pytest

from filehub.apps.accounts.logic.credentials import create_user


@pytest.fixture
def user(db):
    """Create test user alice with password s3cret.

    Returns:
        User instance for testing.
    """
    return create_user('alice', 's3cret', 'alice@example.com')


@pytest.fixture
def post_json(client):
    """POST a JSON body with the Django test client.

    Returns:
        Callable taking a URL and a payload.
    """
    def post(url, payload):  # noqa: WPS430
        body = payload if isinstance(payload, str) else json.dumps(payload)
        return client.post(url, data=body, content_type='application/json')

    return post
