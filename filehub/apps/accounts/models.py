"""Database models for accounts app."""

from typing import ClassVar, Final, final, override

from django.db import models

# Constants for field max lengths
_USERNAME_MAX_LENGTH: Final = 150
_NAME_MAX_LENGTH: Final = 150
_HA1_LENGTH: Final = 32  # MD5 hex length


@final
class User(models.Model):
    """Account that can sign in over WebDAV or the JSON API.

    Passwords are never stored. ``ha1`` holds MD5(username:realm:password),
    which is enough to verify both Basic and Digest credentials.
    Usernames are stored lowercased.
    """

    username = models.CharField(
        max_length=_USERNAME_MAX_LENGTH,
        unique=True,
    )

    email = models.EmailField(
        blank=True,
        default='',
    )

    ha1 = models.CharField(
        max_length=_HA1_LENGTH,
        help_text='MD5 of username:realm:password',
    )

    first_name = models.CharField(
        max_length=_NAME_MAX_LENGTH,
        blank=True,
        default='',
    )

    last_name = models.CharField(
        max_length=_NAME_MAX_LENGTH,
        blank=True,
        default='',
    )

    is_active = models.BooleanField(default=True)
    is_admin = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    last_login = models.DateTimeField(null=True, blank=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'User'  # type: ignore[mutable-override]
        verbose_name_plural = 'Users'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['username']

    @override
    def __str__(self) -> str:
        """String representation."""
        return self.username
