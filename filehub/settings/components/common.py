"""Django core settings."""

from django.core.management.utils import get_random_secret_key

from filehub.settings.components import BASE_DIR, config, file_config
from filehub.settings.loader import get_value, parse_database_uri

# Nothing is signed with the key across restarts, so a random one is fine
SECRET_KEY = config('DJANGO_SECRET_KEY', default=get_random_secret_key())

DEBUG = config(
    'DJANGO_DEBUG',
    cast=bool,
    default=get_value(file_config, 'web.debug', default=False),
)

ALLOWED_HOSTS = config(
    'DJANGO_ALLOWED_HOSTS',
    cast=lambda hosts: [host.strip() for host in hosts.split(',') if host.strip()],
    default='*',
)

INSTALLED_APPS = [
    'filehub.apps.accounts',
    'filehub.apps.files',
    'filehub.apps.webdav',
    'filehub.apps.api',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'filehub.urls'

WSGI_APPLICATION = 'filehub.wsgi.django_application'

DATABASES = {
    'default': parse_database_uri(
        config(
            'FILEHUB_DATABASE_URI',
            default=get_value(file_config, 'database.uri'),
        ),
        BASE_DIR,
    ),
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = False
USE_TZ = True

# Browser UI bundle is served by a separate deployment
STATIC_URL = '/ui/'

APPEND_SLASH = False
