"""Per-user byte accounting for writes into repositories.

Usage is a running counter kept next to the limit. Writes check it
before touching storage and adjust it afterwards; ``measure_usage``
walks a repository when the counter has to be rebuilt.
"""

import logging
from typing import Final

from django.db import transaction
from django.db.models import F  # noqa: WPS347

from filehub.apps.accounts.models import User
from filehub.apps.files.exceptions import QuotaExceededError
from filehub.apps.files.infrastructure.paths import ROOT
from filehub.apps.files.infrastructure.storage import FileObject, ScanControl
from filehub.apps.files.models import Repository, UserQuota

_USED: Final = 'used_bytes'  # noqa: WPS226

logger = logging.getLogger(__name__)


def get_or_create_quota(user: User) -> UserQuota:
    """Quota row of a user, created with the default limit when missing.

    Args:
        user: Account owning the quota.

    Returns:
        The user's UserQuota.
    """
    quota, created = UserQuota.objects.get_or_create(user=user)
    if created:
        logger.info(
            'Quota row for %s created with limit %d',
            user.username,
            quota.quota_bytes,
        )
    return quota


def check_quota(user: User, size_bytes: int) -> None:
    """Refuse a write that would push usage past the limit.

    A negative size (an overwrite that shrinks a file) always passes.

    Args:
        user: Account performing the write.
        size_bytes: Net bytes the write adds.

    Raises:
        QuotaExceededError: If usage plus ``size_bytes`` passes the limit.
    """
    quota = get_or_create_quota(user)
    if quota.has_space_for(size_bytes):
        return

    logger.warning(
        'Write of %d bytes refused for %s: %d bytes left',
        size_bytes,
        user.username,
        quota.available_bytes(),
    )
    raise QuotaExceededError(
        quota_bytes=quota.quota_bytes,
        used_bytes=quota.used_bytes,
        required_bytes=size_bytes,
    )


def increment_usage(user: User, size_bytes: int) -> None:
    """Add bytes to the usage counter in one UPDATE.

    Args:
        user: Account that wrote the bytes.
        size_bytes: Bytes written; non-positive values are ignored.
    """
    if size_bytes <= 0:
        return

    with transaction.atomic():
        rows = UserQuota.objects.filter(user=user).update(
            used_bytes=F(_USED) + size_bytes,
        )
        if not rows:
            quota = get_or_create_quota(user)
            quota.used_bytes = size_bytes
            quota.save(update_fields=[_USED])

    logger.debug('Usage of %s grew by %d bytes', user.username, size_bytes)


def decrement_usage(user: User, size_bytes: int) -> None:
    """Release bytes from the usage counter, never going below zero.

    Args:
        user: Account whose files shrank or went away.
        size_bytes: Bytes released; non-positive values are ignored.
    """
    if size_bytes <= 0:
        return

    with transaction.atomic():
        quota = UserQuota.objects.select_for_update().filter(user=user).first()
        if quota is None:
            logger.debug('%s has no quota row, nothing to release', user.username)
            return
        quota.used_bytes = max(0, quota.used_bytes - size_bytes)
        quota.save(update_fields=[_USED])

    logger.debug(
        'Usage of %s shrank by %d bytes to %d',
        user.username,
        size_bytes,
        quota.used_bytes,
    )


def adjust_usage(user: User, old_size: int, new_size: int) -> None:
    """Apply the size difference of a replaced file.

    Args:
        user: Account owning the file.
        old_size: Size before the write, 0 for a new file.
        new_size: Size after the write.
    """
    delta = new_size - old_size
    if delta > 0:
        increment_usage(user, delta)
    elif delta < 0:
        decrement_usage(user, -delta)


def measure_usage(repository: Repository, path: str = ROOT) -> tuple[int, int]:
    """Count files and bytes below a path of a repository.

    Args:
        repository: Repository to walk.
        path: Directory or file to measure.

    Returns:
        Tuple of (file count, total bytes).
    """
    info = repository.storage.get_info(repository.name, path)
    if not info.is_dir:
        return 1, info.size

    totals = [0, 0]

    def visit(entry: FileObject) -> ScanControl:  # noqa: WPS430
        if not entry.is_dir:
            totals[0] += 1
            totals[1] += entry.size
        return ScanControl.CONTINUE

    repository.storage.scan(repository.name, visit, path)
    return totals[0], totals[1]


def recalculate_usage(user: User) -> int:
    """Rebuild a user's usage from the files actually stored.

    Needed after files changed outside the service.

    Args:
        user: Account whose repositories are walked.

    Returns:
        Usage in bytes after the walk.
    """
    total = 0
    for repository in Repository.objects.filter(owner=user):
        _, size_bytes = measure_usage(repository)
        total += size_bytes

    with transaction.atomic():
        quota = get_or_create_quota(user)
        previous = quota.used_bytes
        quota.used_bytes = total
        quota.save(update_fields=[_USED])

    logger.info(
        'Usage of %s rebuilt from storage: %d -> %d bytes',
        user.username,
        previous,
        total,
    )
    return total
