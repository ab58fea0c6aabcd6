"""Settings for the test suite: file-backed SQLite, local-memory cache, eager Celery.

Set ``TEST_DATABASE_URL`` to run the suite against a server database instead.
"""

import os
import tempfile
from pathlib import Path

from decouple import config
from dj_database_url import parse as db_url

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")

from config.settings import *  # noqa: E402,F401,F403

TEST_DATABASE_URL = config("TEST_DATABASE_URL", default="")

if TEST_DATABASE_URL:
    DATABASES = {"default": db_url(TEST_DATABASE_URL)}
else:
    # A file database is shared by the threads of the concurrency tests;
    # IMMEDIATE transactions queue writers on the lock instead of failing.
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "test.sqlite3",  # noqa: F405
            "OPTIONS": {"transaction_mode": "IMMEDIATE", "timeout": 20},
            "TEST": {"NAME": str(Path(tempfile.gettempdir()) / "settlement-tests.sqlite3")},
        }
    }

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "settlement-tests",
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    "DEFAULT_THROTTLE_CLASSES": [],
}

PAYMENT_GATEWAY_BASE_URL = "https://gateway.test"
PAYMENT_GATEWAY_API_KEY = "test-key"
PAYMENT_GATEWAY_API_SECRET = "test-secret"
PAYMENT_LOOKUP_BACKOFF_SECONDS = 0.0
PAYMENT_WEBHOOK_ALLOWED_IPS = []
