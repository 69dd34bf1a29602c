"""WSGI entry points.

``application`` serves both surfaces: requests under ``/dav`` go to
the WebDAV app, everything else to Django.
"""

import os

from cheroot.wsgi import PathInfoDispatcher
from django.conf import settings
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'filehub.settings')

django_application = get_wsgi_application()

from filehub.apps.webdav.wsgi_app import create_webdav_app  # noqa: E402


def create_application() -> PathInfoDispatcher:
    """Mount the WebDAV app beside the Django app.

    Returns:
        Dispatcher routing by path prefix.
    """
    return PathInfoDispatcher({
        settings.WEBDAV_MOUNT: create_webdav_app(),
        '/': django_application,
    })


application = create_application()
