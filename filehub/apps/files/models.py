"""Repositories and per-user byte quotas."""

from functools import cached_property
from typing import TYPE_CHECKING, ClassVar, Final, final, override

from django.db import models

from filehub.apps.accounts.models import User

if TYPE_CHECKING:
    from filehub.apps.files.infrastructure.storage import Storage

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 150
_ROOT_URI_MAX_LENGTH: Final = 1024

# Default quota: 10 GB in bytes
_DEFAULT_QUOTA_BYTES: Final = 10 * 1024 * 1024 * 1024


@final
class Repository(models.Model):
    """A named root holding one namespace of files.

    ``root_uri`` selects the backend: ``file:///srv/data`` for a local
    directory or ``s3://bucket/prefix`` for an object store. A user's
    home repository is the one named after the user.
    """

    owner = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='repositories',
        db_index=True,
    )

    name = models.CharField(
        max_length=_NAME_MAX_LENGTH,
        unique=True,
    )

    root_uri = models.CharField(
        max_length=_ROOT_URI_MAX_LENGTH,
        help_text='file:///abs/dir or s3://bucket/prefix',
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Repository'  # type: ignore[mutable-override]
        verbose_name_plural = 'Repositories'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['name']

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.name} ({self.root_uri})'

    @cached_property
    def storage(self) -> 'Storage':
        """Storage backend selected by the root URI scheme."""
        from filehub.apps.files.infrastructure.storage import (  # noqa: PLC0415
            get_storage,
        )
        return get_storage(self.root_uri)


@final
class UserQuota(models.Model):
    """Byte limit and running usage of one account.

    Reads and deletes are always allowed; writes are refused once usage
    would pass the limit.
    """

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='quota',
        primary_key=True,
    )

    quota_bytes = models.BigIntegerField(
        default=_DEFAULT_QUOTA_BYTES,
        help_text='Storage quota limit in bytes',
    )

    used_bytes = models.BigIntegerField(
        default=0,
        help_text='Currently used storage in bytes',
    )

    class Meta:
        """Model metadata."""

        verbose_name = 'User Quota'  # type: ignore[mutable-override]
        verbose_name_plural = 'User Quotas'  # type: ignore[mutable-override]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.CheckConstraint(
                condition=models.Q(quota_bytes__gte=0),
                name='quota_bytes_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(used_bytes__gte=0),
                name='used_bytes_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user.username}: {self.used_bytes}/{self.quota_bytes}'

    def has_space_for(self, size_bytes: int) -> bool:
        """Whether a write of ``size_bytes`` still fits under the limit.

        Args:
            size_bytes: Net bytes the write adds.

        Returns:
            False when usage would pass the limit.
        """
        return self.used_bytes + size_bytes <= self.quota_bytes

    def available_bytes(self) -> int:
        """Bytes left under the limit, never negative."""
        return max(0, self.quota_bytes - self.used_bytes)
