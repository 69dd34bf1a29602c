"""Business logic for repositories and their roots."""

import logging
import os
from pathlib import Path
from typing import Final

from django.conf import settings
from django.db import transaction

from filehub.apps.accounts.models import User
from filehub.apps.files.exceptions import InvalidRootError, StorageError
from filehub.apps.files.infrastructure.paths import ROOT
from filehub.apps.files.logic.quota_operations import get_or_create_quota
from filehub.apps.files.models import Repository

logger = logging.getLogger(__name__)

_FILE_SCHEME: Final = 'file://'
_S3_SCHEME: Final = 's3://'


def _is_under(path: str, root: str) -> bool:
    try:
        return os.path.commonpath((path, root)) == root
    except ValueError:
        return False


def validate_root(root_dir: str) -> str:
    """Check a requested repository root and normalise it to a URI.

    Local roots must lie under one of ``FILEHUB_ROOT_DIRS`` and are
    created when missing. ``s3://`` roots need a configured S3 client.

    Args:
        root_dir: Absolute directory, ``file://`` URI or ``s3://`` URI.

    Returns:
        Root URI to store on the repository.

    Raises:
        InvalidRootError: If the root is not allowed or cannot be created.
    """
    root_dir = root_dir.strip()
    if root_dir.startswith(_S3_SCHEME):
        if not settings.FILEHUB_S3:
            raise InvalidRootError(f'{root_dir}: S3 storage is not configured')
        return root_dir

    local = root_dir.removeprefix(_FILE_SCHEME)
    if not local or not os.path.isabs(local):
        raise InvalidRootError(f'{root_dir}: not an absolute path')

    # Lexical only; symlinks under a configured root are trusted
    normalised = os.path.normpath(local)
    allowed = [
        os.path.normpath(os.path.abspath(entry.strip()))
        for entry in settings.FILEHUB_ROOT_DIRS
        if entry.strip()
    ]
    if not any(_is_under(normalised, entry) for entry in allowed):
        raise InvalidRootError(f'{root_dir}: not under a configured root_dir')

    try:
        os.makedirs(normalised, exist_ok=True)
    except OSError as error:
        raise InvalidRootError(f'{root_dir}: {error.strerror}') from error

    return Path(normalised).as_uri()


def get_home_repository(user: User) -> Repository | None:
    """Get the repository the user owns and that carries their name."""
    return Repository.objects.filter(
        owner=user,
        name=user.username,
    ).first()


def create_home_repository(user: User, root_dir: str) -> Repository:
    """Create the user's home repository and quota row.

    Args:
        user: Owner; the repository is named after them.
        root_dir: Requested root, checked with ``validate_root``.

    Returns:
        The new repository.

    Raises:
        InvalidRootError: If the root is not allowed.
        StorageError: If the repository directory cannot be created.
    """
    root_uri = validate_root(root_dir)

    with transaction.atomic():
        repository = Repository.objects.create(
            owner=user,
            name=user.username,
            root_uri=root_uri,
        )
        get_or_create_quota(user)

    try:
        repository.storage.create_dir(repository.name, ROOT)
    except StorageError:
        logger.exception(
            'Failed to create root of repository %s',
            repository.name,
        )
        raise

    logger.info(
        'Created home repository %s at %s',
        repository.name,
        root_uri,
    )
    return repository
