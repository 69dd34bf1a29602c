"""Django app configuration for accounts app."""

from django.apps import AppConfig


class AccountsConfig(AppConfig):
    """Configuration for accounts app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'filehub.apps.accounts'
    verbose_name = 'Accounts'
