"""
Centralized logging configuration for Treatment Finder.

Builds the ``LOGGING`` dict used by the settings modules:
- Console output plus daily-rotated application and error logs
- Retention: application log 30 days, error log 90 days
- PHI/PII scrubbing on every handler (HIPAA compliance)
- key=value structured formatting for log aggregation

Imported by settings before Django is configured, so nothing here may
touch django.conf.
"""

from pathlib import Path
from typing import Any, Dict


RETENTION_DAYS = {
    "app": 30,
    "error": 90,
}


def get_logging_config(
    log_dir: Path, environment: str = "production", log_level: str = "INFO"
) -> Dict[str, Any]:
    """
    Build a dictConfig-compatible logging configuration.

    Args:
        log_dir: Directory for rotated log files
        environment: "production" uses the full PHI scrubber; "development"
            uses the selective scrubber so contact details stay visible
        log_level: Level for the treatment_finder logger tree

    Returns:
        Dict suitable for ``LOGGING``. Falls back to console-only output
        when ``log_dir`` cannot be created.
    """
    scrubber = (
        "treatment_finder.logging_filters.SelectivePHIScrubberFilter"
        if environment == "development"
        else "treatment_finder.logging_filters.PHIScrubberFilter"
    )

    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "filters": ["phi_scrubber", "request_id"],
            "formatter": "structured",
        },
    }

    file_logging = True
    try:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
    except OSError:
        file_logging = False

    if file_logging:
        handlers["app_file"] = {
            "class": "logging.handlers.TimedRotatingFileHandler",
            "filename": str(Path(log_dir) / "treatment_finder.log"),
            "when": "midnight",
            "backupCount": RETENTION_DAYS["app"],
            "delay": True,
            "filters": ["phi_scrubber", "request_id"],
            "formatter": "structured",
        }
        handlers["error_file"] = {
            "class": "logging.handlers.TimedRotatingFileHandler",
            "filename": str(Path(log_dir) / "errors.log"),
            "when": "midnight",
            "backupCount": RETENTION_DAYS["error"],
            "delay": True,
            "level": "WARNING",
            "filters": ["phi_scrubber", "request_id"],
            "formatter": "structured",
        }

    handler_names = list(handlers)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "phi_scrubber": {"()": scrubber},
            "request_id": {"()": "treatment_finder.middleware.RequestIdLogFilter"},
        },
        "formatters": {
            "structured": {
                "()": "treatment_finder.logging_utils.StructuredLogFormatter",
            },
        },
        "handlers": handlers,
        "root": {
            "handlers": ["console"],
            "level": "WARNING",
        },
        "loggers": {
            "django": {
                "handlers": handler_names,
                "level": "INFO",
                "propagate": False,
            },
            "treatment_finder": {
                "handlers": handler_names,
                "level": log_level,
                "propagate": False,
            },
        },
    }
