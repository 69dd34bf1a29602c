"""Logging configuration."""

from filehub.settings.components import config, file_config
from filehub.settings.loader import get_value

_debug = config(
    'DJANGO_DEBUG',
    cast=bool,
    default=get_value(file_config, 'web.debug', default=False),
)

LOG_LEVEL = config('FILEHUB_LOG_LEVEL', default='DEBUG' if _debug else 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'console': {
            'format': '%(asctime)s %(levelname)-8s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'console',
        },
    },
    'loggers': {
        'filehub': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        # Chatty third-party libraries
        'wsgidav': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
        'botocore': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
        'cheroot': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
    },
}
