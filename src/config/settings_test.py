"""Settings for the test suite.

SQLite runs in ``IMMEDIATE`` transaction mode so concurrent writers queue on
the database lock the way row locks queue on PostgreSQL; the test database
is a file so worker threads in ``TransactionTestCase`` share it.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")

from config.settings import *  # noqa: E402,F401,F403
from config.settings import BASE_DIR  # noqa: E402

LEDGER_LOCK_TIMEOUT_SECONDS = 5.0

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "test_db.sqlite3",
        "OPTIONS": {
            "transaction_mode": "IMMEDIATE",
            "timeout": LEDGER_LOCK_TIMEOUT_SECONDS,
        },
        "TEST": {
            "NAME": BASE_DIR / "test_db.sqlite3",
        },
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
