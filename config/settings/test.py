"""
ProdTrack — Test Settings

Used by pytest (see [tool.pytest.ini_options] in pyproject.toml). No
PostgreSQL, Redis or broker needed.

@file config/settings/test.py
"""

from .base import *  # noqa: F401, F403

DEBUG = False

SECRET_KEY = 'test-secret-key'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    },
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    },
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

REST_FRAMEWORK['DEFAULT_THROTTLE_CLASSES'] = []  # noqa: F405

STOCK_LEDGER = {
    **STOCK_LEDGER,  # noqa: F405
    'RETRY_BACKOFF_SECONDS': 0,
    'NEGATIVE_STOCK_POLICY': 'clamp',
}

LOGGING['loggers']['prodtrack']['level'] = 'INFO'  # noqa: F405

# Let pytest's caplog see application logs.
LOGGING['loggers']['prodtrack']['propagate'] = True  # noqa: F405
