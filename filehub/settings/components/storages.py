"""Storage backend settings.

Local repositories may only be rooted under ``FILEHUB_ROOT_DIRS``. The
optional ``s3`` block of config.yaml configures the S3-compatible client
shared by every ``s3://`` repository.
"""

from typing import Any

from filehub.settings.components import config, file_config
from filehub.settings.loader import get_value

FILEHUB_ROOT_DIRS: list[str] = config(
    'FILEHUB_ROOT_DIRS',
    cast=lambda dirs: [entry for entry in dirs.split(',') if entry.strip()],
    default=','.join(get_value(file_config, 'root_dir', default=[])),
)

_s3_block: dict[str, Any] = get_value(file_config, 's3', default={})

FILEHUB_S3: dict[str, Any] | None = {
    'endpoint': config('FILEHUB_S3_ENDPOINT', default=_s3_block.get('endpoint')),
    'region': config('FILEHUB_S3_REGION', default=_s3_block.get('region')),
    'access_key_id': config(
        'FILEHUB_S3_ACCESS_KEY_ID',
        default=_s3_block.get('access_key_id'),
    ),
    'secret_access_key': config(
        'FILEHUB_S3_SECRET_ACCESS_KEY',
        default=_s3_block.get('secret_access_key'),
    ),
}

if not any(FILEHUB_S3.values()):
    FILEHUB_S3 = None

# Client side deadlines for every S3 call
FILEHUB_S3_CONNECT_TIMEOUT = config(
    'FILEHUB_S3_CONNECT_TIMEOUT',
    cast=int,
    default=10,
)
FILEHUB_S3_READ_TIMEOUT = config('FILEHUB_S3_READ_TIMEOUT', cast=int, default=60)
FILEHUB_S3_MAX_ATTEMPTS = config('FILEHUB_S3_MAX_ATTEMPTS', cast=int, default=3)
