"""
StockLedger — Test Settings

Used by pytest (see [tool.pytest.ini_options] in pyproject.toml).
Runs against PostgreSQL like every other environment (DATABASE_URL, see
base.py), so row locking and the concurrent ledger tests are exercised.
TEST_DATABASE_URL=sqlite:///test.sqlite3 gives a quick run without a
server; the concurrency tests skip themselves there.

@file config/settings/test.py
"""

from .base import *  # noqa: F401, F403

DEBUG = False

if env('TEST_DATABASE_URL', default=None):  # noqa: F405
    DATABASES = {
        'default': env.db('TEST_DATABASE_URL'),  # noqa: F405
    }

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

REST_FRAMEWORK['DEFAULT_THROTTLE_CLASSES'] = []  # noqa: F405

INVENTORY_CONFLICT_BACKOFF_SECONDS = 0

LOGGING['loggers']['stockledger']['level'] = 'WARNING'  # noqa: F405
