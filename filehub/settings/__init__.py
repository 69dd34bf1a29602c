"""Main settings file.

Settings are split into components that are included in order.
"""

from split_settings.tools import include

include(
    'components/common.py',
    'components/logging.py',
    'components/webdav.py',
    'components/storages.py',
)
