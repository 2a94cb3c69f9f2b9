"""
ProdTrack — Development Settings

Local development overrides. Activated by:
  DJANGO_SETTINGS_MODULE=config.settings.development

@file config/settings/development.py
"""

from .base import *  # noqa: F401, F403

DEBUG = True

ALLOWED_HOSTS = ['*']

INSTALLED_APPS += [  # noqa: F405
    'django_extensions',
]

REST_FRAMEWORK['DEFAULT_THROTTLE_RATES'] = {  # noqa: F405
    'anon': '1000/minute',
    'user': '5000/minute',
}

# Surface negative-stock mistakes early when working on flows locally.
STOCK_LEDGER['NEGATIVE_STOCK_POLICY'] = env(  # noqa: F405
    'STOCK_LEDGER_NEGATIVE_STOCK_POLICY', default='reject',
)

LOGGING['loggers']['prodtrack']['level'] = 'DEBUG'  # noqa: F405
LOGGING['loggers']['django.db.backends'] = {  # noqa: F405
    'handlers': ['console'],
    'level': env('DJANGO_DB_LOG_LEVEL', default='INFO'),  # noqa: F405
    'propagate': False,
}
