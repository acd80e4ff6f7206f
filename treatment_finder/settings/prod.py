"""
Production settings for Treatment Finder.

Inherits from base settings and enforces secure production defaults.
"""

import os
from .base import *  # noqa: F403, F405

# =============================================================================
# STATIC FILES (Production)
# =============================================================================

MIDDLEWARE.insert(  # noqa: F405
    MIDDLEWARE.index("django.middleware.security.SecurityMiddleware") + 1,  # noqa: F405
    "whitenoise.middleware.WhiteNoiseMiddleware",
)

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"
    },
}

# =============================================================================
# SECURITY SETTINGS (Production)
# =============================================================================

SECRET_KEY = config("SECRET_KEY")  # noqa: F405  # Required in production

DEBUG = False  # Always False in production

ALLOWED_HOSTS = [
    h.strip() for h in config("ALLOWED_HOSTS").split(",") if h.strip()  # noqa: F405
]

SECURE_SSL_REDIRECT = config("SECURE_SSL_REDIRECT", default=True, cast=bool)  # noqa: F405
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_CONTENT_TYPE_NOSNIFF = True

SECURE_HSTS_SECONDS = config("SECURE_HSTS_SECONDS", default=31536000, cast=int)  # noqa: F405
SECURE_HSTS_INCLUDE_SUBDOMAINS = config(  # noqa: F405
    "SECURE_HSTS_INCLUDE_SUBDOMAINS", default=True, cast=bool
)

# Behind a TLS-terminating proxy (Render, Heroku, ALB)
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

_csrf_origins = config("CSRF_TRUSTED_ORIGINS", default="")  # noqa: F405
if _csrf_origins:
    CSRF_TRUSTED_ORIGINS = [o.strip() for o in _csrf_origins.split(",") if o.strip()]

# =============================================================================
# DATABASE (Production)
# =============================================================================

if "DATABASE_URL" in os.environ:
    import dj_database_url

    DATABASES = {
        "default": dj_database_url.parse(
            os.environ["DATABASE_URL"],
            conn_max_age=config("DB_CONN_MAX_AGE", default=60, cast=int),  # noqa: F405
            conn_health_checks=config(  # noqa: F405
                "DB_CONN_HEALTH_CHECKS", default=True, cast=bool
            ),
            ssl_require=config("DB_SSL_REQUIRE", default=True, cast=bool),  # noqa: F405
        )
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": config("DB_NAME", default="treatment_finder"),  # noqa: F405
            "USER": config("DB_USER", default="treatment_finder"),  # noqa: F405
            "PASSWORD": config("DB_PASSWORD", default=""),  # noqa: F405
            "HOST": config("DB_HOST", default="localhost"),  # noqa: F405
            "PORT": config("DB_PORT", default="5432"),  # noqa: F405
            "CONN_MAX_AGE": config("DB_CONN_MAX_AGE", default=60, cast=int),  # noqa: F405
            "CONN_HEALTH_CHECKS": config(  # noqa: F405
                "DB_CONN_HEALTH_CHECKS", default=True, cast=bool
            ),
            "OPTIONS": {
                "sslmode": config("DB_SSLMODE", default="require"),  # noqa: F405
            },
        }
    }

# =============================================================================
# ERROR MONITORING (Sentry)
# =============================================================================

SENTRY_DSN = config("SENTRY_DSN", default=None)  # noqa: F405

if SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.django import DjangoIntegration

    def filter_phi_from_errors(event, hint):
        """
        Remove potential PHI from error reports before sending to Sentry.

        Snapshot bodies and contact payloads carry patient names, phone
        numbers and emails, so request bodies are never forwarded.
        """
        if "request" in event:
            if "data" in event["request"]:
                event["request"]["data"] = "[REDACTED FOR HIPAA COMPLIANCE]"

            if "cookies" in event["request"]:
                event["request"]["cookies"] = "[REDACTED]"

            if "query_string" in event["request"]:
                # ?q= carries patient name fragments
                event["request"]["query_string"] = "[REDACTED]"

            headers = event["request"].get("headers")
            if isinstance(headers, dict) and "X-App-Secret" in headers:
                headers["X-App-Secret"] = "[REDACTED]"

        if "exception" in event:
            for exc in event["exception"].get("values", []):
                if "value" in exc:
                    exc_value = str(exc["value"])
                    if any(word.istitle() for word in exc_value.split()):
                        exc["value"] = "[ERROR MESSAGE REDACTED - MAY CONTAIN PHI]"

        return event

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[DjangoIntegration()],
        environment=config("ENVIRONMENT", default="production"),  # noqa: F405
        traces_sample_rate=0.1,
        before_send=filter_phi_from_errors,
        send_default_pii=False,
        release=config("SENTRY_RELEASE", default=None),  # noqa: F405
    )
