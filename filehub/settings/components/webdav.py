"""WebDAV server and authentication settings."""

from filehub.settings.components import config, file_config
from filehub.settings.loader import get_value

# Server bind address
WEBDAV_HOST = config('FILEHUB_WEB_HOST', default='0.0.0.0')
WEBDAV_PORT = config(
    'FILEHUB_WEB_PORT',
    cast=int,
    default=get_value(file_config, 'web.port', default=8080),
)
WEBDAV_THREADS = config('FILEHUB_WEB_THREADS', cast=int, default=10)

# URL prefix the WebDAV surface is mounted on
WEBDAV_MOUNT = '/dav'

# Read from config; no metrics endpoint is served
FILEHUB_METRICS = config(
    'FILEHUB_METRICS',
    cast=bool,
    default=get_value(file_config, 'web.metrics', default=False),
)

# Realm is part of every stored HA1: changing it invalidates all passwords
FILEHUB_REALM = config('FILEHUB_REALM', default='FileHub')

# Browser sessions
FILEHUB_SESSION_COOKIE = 'filehub_session'
FILEHUB_SESSION_TTL = config('FILEHUB_SESSION_TTL', cast=int, default=86400)
FILEHUB_SESSION_REAP_INTERVAL = config(
    'FILEHUB_SESSION_REAP_INTERVAL',
    cast=int,
    default=3600,
)

# Digest nonce replay window in seconds
FILEHUB_NONCE_TTL = config('FILEHUB_NONCE_TTL', cast=int, default=300)
