"""
Development settings for Treatment Finder.

Inherits from base settings and adds development-specific configuration.
"""

from .base import *  # noqa: F403, F405

# =============================================================================
# SECURITY SETTINGS (Development)
# =============================================================================

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = config(  # noqa: F405
    "SECRET_KEY", default="django-insecure-dev-key-change-in-production"
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = config("DEBUG", default=True, cast=bool)  # noqa: F405

ALLOWED_HOSTS = config(  # noqa: F405
    "ALLOWED_HOSTS", default="localhost,127.0.0.1"
).split(",")

# HTTPS settings (disabled in development)
SECURE_SSL_REDIRECT = config("SECURE_SSL_REDIRECT", default=False, cast=bool)  # noqa: F405
SESSION_COOKIE_SECURE = config("SESSION_COOKIE_SECURE", default=False, cast=bool)  # noqa: F405
CSRF_COOKIE_SECURE = config("CSRF_COOKIE_SECURE", default=False, cast=bool)  # noqa: F405
SECURE_CONTENT_TYPE_NOSNIFF = True

# =============================================================================
# DATABASE
# =============================================================================

if "DATABASE_URL" in os.environ:  # noqa: F405
    import dj_database_url

    DATABASES = {"default": dj_database_url.parse(os.environ["DATABASE_URL"])}  # noqa: F405
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",  # noqa: F405
        }
    }

# =============================================================================
# LOGGING (Development)
# =============================================================================

# Override base logging with development settings
# - Enables DEBUG level logging
# - Uses SelectivePHIScrubberFilter (keeps dates readable)
LOGGING = get_logging_config(  # noqa: F405
    log_dir=LOG_DIR,  # noqa: F405
    environment="development",
    log_level="DEBUG",
)

# =============================================================================
# OUTREACH COLLABORATORS (Development)
# =============================================================================

if not SCHEDULING_BASE_URL:  # noqa: F405
    SCHEDULING_BASE_URL = "http://localhost:3000/schedule"

if not SCHEDULING_TOKEN_SECRET:  # noqa: F405
    SCHEDULING_TOKEN_SECRET = "dev-scheduling-secret-not-for-production"  # pragma: allowlist secret
