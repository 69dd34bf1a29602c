"""Credential store backed by the user table.

Lookups read straight through to the database. Passwords are verified by
recomputing HA1, the pre-hash HTTP Digest needs, and comparing it in
constant time with the stored value.
"""

import hashlib
import hmac
import logging

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from filehub.apps.accounts.exceptions import (
    SetupCompletedError,
    UserExistsError,
)
from filehub.apps.accounts.models import User

logger = logging.getLogger(__name__)


def get_realm() -> str:
    """Get the authentication realm.

    Returns:
        Realm from settings or default of FileHub.
    """
    return getattr(settings, 'FILEHUB_REALM', 'FileHub')


def md5_hex(text: str) -> str:
    """Hex MD5 digest of UTF-8 text."""
    return hashlib.md5(text.encode(), usedforsecurity=False).hexdigest()


def calc_ha1(username: str, realm: str, password: str) -> str:
    """Compute the Digest pre-hash for a user.

    Args:
        username: Account username.
        realm: Authentication realm.
        password: Plaintext password.

    Returns:
        Hex string of MD5(username:realm:password).
    """
    return md5_hex(f'{username}:{realm}:{password}')


def normalize_username(username: str) -> str:
    """Usernames compare case-insensitively and are stored lowercased."""
    return username.strip().lower()


def get_by_username(username: str) -> User | None:
    """Get a user by username.

    Args:
        username: Username in any letter case.

    Returns:
        User if found, None otherwise.
    """
    try:
        return User.objects.get(username=normalize_username(username))
    except User.DoesNotExist:
        return None


def get_by_id(user_id: int) -> User | None:
    """Get a user by primary key.

    Args:
        user_id: User ID to look up.

    Returns:
        User if found, None otherwise.
    """
    try:
        return User.objects.get(pk=user_id)
    except User.DoesNotExist:
        return None


def has_any_user() -> bool:
    """Check whether at least one user exists."""
    return User.objects.exists()


def create_user(
    username: str,
    password: str,
    email: str = '',
    *,
    first_name: str = '',
    last_name: str = '',
    is_admin: bool = False,
) -> User:
    """Create a user, storing HA1 instead of the password.

    Args:
        username: Desired username, stored lowercased.
        password: Plaintext password.
        email: Contact email.
        first_name: Optional given name.
        last_name: Optional family name.
        is_admin: Whether the user gets admin privileges.

    Returns:
        Created User instance.

    Raises:
        UserExistsError: If the username is already taken.
        ValueError: If username or password is empty.
    """
    username = normalize_username(username)
    if not username or not password:
        raise ValueError('Username and password are required')

    try:
        with transaction.atomic():
            user = User.objects.create(
                username=username,
                email=email,
                ha1=calc_ha1(username, get_realm(), password),
                first_name=first_name,
                last_name=last_name,
                is_admin=is_admin,
            )
    except IntegrityError as error:
        raise UserExistsError(username) from error

    logger.info('Created user %s (admin=%s)', username, is_admin)
    return user


def create_first_user(username: str, password: str, email: str) -> User:
    """Create the initial admin user of an empty directory.

    Args:
        username: Desired username.
        password: Plaintext password.
        email: Contact email.

    Returns:
        Created admin User.

    Raises:
        SetupCompletedError: If any user already exists.
    """
    with transaction.atomic():
        if has_any_user():
            raise SetupCompletedError('Setup already completed')
        return create_user(username, password, email, is_admin=True)


def set_password(user: User, password: str) -> None:
    """Replace a user's password by recomputing HA1.

    Args:
        user: User to update.
        password: New plaintext password.
    """
    user.ha1 = calc_ha1(user.username, get_realm(), password)
    user.save(update_fields=['ha1', 'updated_at'])
    logger.info('Password changed for user %s', user.username)


def authenticate(username: str, password: str) -> User | None:
    """Verify a username and password.

    Failures are logged without revealing which part was wrong.

    Args:
        username: Username as typed by the client.
        password: Plaintext password.

    Returns:
        The active User on success, None otherwise.
    """
    user = get_by_username(username)
    realm = get_realm()

    if user is None:
        # Same amount of hashing for unknown users
        calc_ha1(normalize_username(username), realm, password)
        logger.warning('Authentication failed for user: %s', username)
        return None

    expected = calc_ha1(user.username, realm, password)
    if not hmac.compare_digest(expected, user.ha1):
        logger.warning('Authentication failed for user: %s', username)
        return None

    if not user.is_active:
        logger.warning('Inactive user attempted login: %s', username)
        return None

    record_login(user)
    return user


def record_login(user: User) -> None:
    """Update last_login, logging instead of raising on failure.

    Args:
        user: User that just authenticated.
    """
    now = timezone.now()
    try:
        User.objects.filter(pk=user.pk).update(last_login=now)
    except DatabaseError:
        logger.exception('Failed to update last login for %s', user.username)
    else:
        user.last_login = now
