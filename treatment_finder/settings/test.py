"""
Test settings for Treatment Finder.
Optimized for fast test execution with an in-memory database
and simplified configurations.
"""
from .base import *  # noqa: F403, F405
import os

# Override SECRET_KEY for tests (not used in production)
SECRET_KEY = "test-secret-key-not-for-production-use-only"  # pragma: allowlist secret  # noqa: E501

# Use in-memory SQLite for fast tests (override DATABASE_URL if set)
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# If DATABASE_URL is explicitly set (like in CI), use it instead
if "DATABASE_URL" in os.environ:
    import dj_database_url

    DATABASES["default"] = dj_database_url.config(
        default=os.environ["DATABASE_URL"],
        conn_max_age=0,  # Don't reuse connections in tests
    )

# Use in-memory cache for tests
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "test-cache",
    }
}

# Disable password hashing for faster user creation in tests
PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

# Throttles stay wired but never trip during the suite
REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {  # noqa: F405
    "ingestion": "100000/m",
    "contact": "100000/m",
}

# Disable logging during tests to reduce noise
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "CRITICAL",
        },
    },
}

# Shared-secret gate is open unless a test overrides APP_SECRET
APP_SECRET = ""

# Outreach collaborators point at hosts that tests always mock
MESSAGING_WEBHOOK_URL = "http://messaging.test/contact"
SCHEDULING_BASE_URL = "http://testserver/schedule"
SCHEDULING_TOKEN_SECRET = "test-scheduling-secret-at-least-32-bytes"  # pragma: allowlist secret
SCHEDULING_LINK_TTL_DAYS = 14

# Minimal CORS for tests
CORS_ALLOWED_ORIGINS = ["http://localhost:3000", "http://testserver"]

# Debug mode off in tests (matches production behavior)
DEBUG = False

# Allowed hosts for tests
ALLOWED_HOSTS = ["*"]

# Remove prometheus middleware in tests (cleaner test output)
MIDDLEWARE = [  # noqa: F405
    m
    for m in MIDDLEWARE  # noqa: F405
    if "PrometheusBeforeMiddleware" not in m
    and "PrometheusAfterMiddleware" not in m
]
