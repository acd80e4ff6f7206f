"""
Django base settings for Treatment Finder.

Shared settings that are common to development, production and test
environments.
"""

import os
from pathlib import Path
from decouple import config

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# =============================================================================
# APPLICATION DEFINITION
# =============================================================================

INSTALLED_APPS = [
    # Django core
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party - API
    "rest_framework",
    "corsheaders",
    "drf_spectacular",
    "django_filters",
    # Third-party - Monitoring
    "django_prometheus",
    # Treatment Finder application
    "treatment_finder.apps.TreatmentFinderConfig",
]

MIDDLEWARE = [
    # Security headers (must be first for early-return responses)
    "treatment_finder.middleware.SecurityHeadersMiddleware",
    "django_prometheus.middleware.PrometheusBeforeMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "treatment_finder.middleware.RequestIdMiddleware",
    "treatment_finder.middleware.RequestTimingMiddleware",
    "django_prometheus.middleware.PrometheusAfterMiddleware",
]

X_FRAME_OPTIONS = "DENY"

# =============================================================================
# SECURITY & DATA UPLOAD LIMITS
# =============================================================================

# Snapshot batches from the practice-management export are capped at 3 MB
DATA_UPLOAD_MAX_MEMORY_SIZE = 3 * 1024 * 1024
FILE_UPLOAD_MAX_MEMORY_SIZE = 3 * 1024 * 1024

ROOT_URLCONF = "treatment_finder.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "treatment_finder.wsgi.application"

# =============================================================================
# AUTHENTICATION & PASSWORD VALIDATION (admin users only)
# =============================================================================

AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": (
            "django.contrib.auth.password_validation."
            "UserAttributeSimilarityValidator"
        ),
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
        "OPTIONS": {"min_length": 12},  # HIPAA-recommended minimum
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]

# =============================================================================
# DJANGO REST FRAMEWORK
# =============================================================================

REST_FRAMEWORK = {
    # Operator endpoints are open; ingestion and the outcome webhook are gated
    # per-view by SharedSecretAuthentication.
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.AllowAny",
    ],
    "DEFAULT_THROTTLE_RATES": {
        "ingestion": config("INGEST_THROTTLE_RATE", default="120/m"),
        "contact": config("CONTACT_THROTTLE_RATE", default="600/h"),
    },
    "DEFAULT_FILTER_BACKENDS": [
        "django_filters.rest_framework.DjangoFilterBackend",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "EXCEPTION_HANDLER": "treatment_finder.api.exceptions.custom_exception_handler",
}

# API Documentation
SPECTACULAR_SETTINGS = {
    "TITLE": "Treatment Finder API",
    "DESCRIPTION": (
        "Ranks unscheduled dental treatment plans and drives patient outreach"
    ),
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "TAGS": [
        {
            "name": "Ingestion",
            "description": "Treatment-plan snapshot ingestion from the PMS export",
        },
        {
            "name": "Opportunities",
            "description": "Ranked opportunity listing, detail and status override",
        },
        {
            "name": "Outreach",
            "description": "Contact dispatch and messaging outcome callbacks",
        },
        {
            "name": "Health",
            "description": "API health check and service status",
        },
    ],
    "COMPONENT_SPLIT_REQUEST": True,
}

# =============================================================================
# CORS SETTINGS
# =============================================================================

_cors_origins = config(
    "CORS_ALLOWED_ORIGINS", default="http://localhost:3000,http://127.0.0.1:3000"
)

if _cors_origins.strip() == "*":
    CORS_ALLOW_ALL_ORIGINS = True
else:
    CORS_ALLOWED_ORIGINS = [o.strip() for o in _cors_origins.split(",") if o.strip()]

CORS_ALLOW_CREDENTIALS = True

CORS_ALLOW_HEADERS = [
    "accept",
    "content-type",
    "x-app-secret",
    "x-request-id",
]

CORS_EXPOSE_HEADERS = [
    "X-Request-Id",  # From RequestIdMiddleware - request tracing
    "X-Request-Duration-Ms",  # From RequestTimingMiddleware - perf
]

# =============================================================================
# INTERNATIONALIZATION
# =============================================================================

LANGUAGE_CODE = "en-us"
TIME_ZONE = config("TIME_ZONE", default="UTC")
USE_I18N = True
USE_TZ = True

# =============================================================================
# STATIC FILES
# =============================================================================

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# =============================================================================
# DEFAULT FIELD TYPE
# =============================================================================

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# =============================================================================
# LOGGING (PHI-scrubbed, rotated)
# =============================================================================

from treatment_finder.logging_config import get_logging_config  # noqa: E402

LOG_DIR = Path(config("LOG_DIR", default=str(BASE_DIR / "logs")))

LOGGING = get_logging_config(
    log_dir=LOG_DIR,
    environment="production",  # Overridden in dev.py and test.py
    log_level="INFO",
)

# =============================================================================
# CACHE SETTINGS
# =============================================================================

# Throttle history only; nothing else is cached.
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "treatment-finder-cache",
        "TIMEOUT": 300,
    }
}

# =============================================================================
# SHARED-SECRET GATE
# =============================================================================

# Ingestion and the messaging outcome webhook require X-App-Secret to match.
# When unset the gate is open (flagged by system check treatment_finder.W001).
APP_SECRET = config("APP_SECRET", default="")

# =============================================================================
# OUTREACH COLLABORATORS
# =============================================================================

# Messaging automation webhook that receives contact payloads
MESSAGING_WEBHOOK_URL = config("MESSAGING_WEBHOOK_URL", default="")
MESSAGING_TIMEOUT_SECONDS = config("MESSAGING_TIMEOUT_SECONDS", default=30, cast=int)

# Patient self-scheduling page and the key used to sign its links
SCHEDULING_BASE_URL = config("SCHEDULING_BASE_URL", default="")
SCHEDULING_TOKEN_SECRET = config("SCHEDULING_TOKEN_SECRET", default="")
SCHEDULING_LINK_TTL_DAYS = config("SCHEDULING_LINK_TTL_DAYS", default=14, cast=int)

# =============================================================================
# SECURITY SETTINGS (Common)
# =============================================================================

SESSION_COOKIE_AGE = 1800  # 30 minutes idle timeout (healthcare standard)
SESSION_EXPIRE_AT_BROWSER_CLOSE = True
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = "Lax"
# SESSION_COOKIE_SECURE set in prod.py (requires HTTPS)

# Codespaces configuration
if "CODESPACE_NAME" in os.environ:
    codespace_name = config("CODESPACE_NAME")
    codespace_domain = config("GITHUB_CODESPACES_PORT_FORWARDING_DOMAIN")
    CSRF_TRUSTED_ORIGINS = [f"https://{codespace_name}-8000.{codespace_domain}"]
