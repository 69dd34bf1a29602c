"""Django app configuration for API app."""

from django.apps import AppConfig


class ApiConfig(AppConfig):
    """Configuration for the JSON API app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'filehub.apps.api'
    verbose_name = 'API'
