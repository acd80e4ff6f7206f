"""
Structured logging utilities for Treatment Finder.

Provides context management and structured logging helpers so that every
log line emitted while reconciling a batch or dispatching a contact carries
the request id, opportunity id and patnum it belongs to.

Usage:
    from treatment_finder.logging_utils import get_logger, add_log_context

    logger = get_logger(__name__)

    with add_log_context(opportunity_id=str(opp.id), patnum=opp.patient_id):
        logger.info("Dispatching contact")
"""

import logging
from typing import Any, Dict, Optional
from contextvars import ContextVar


_log_context: ContextVar[Dict[str, Any]] = ContextVar('log_context', default={})

# Context fields rendered by StructuredLogFormatter, in output order
CONTEXT_FIELDS = [
    'request_id',
    'operation',
    'opportunity_id',
    'patnum',
    'batch_size',
    'method',
    'path',
]


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that automatically includes context in log records.

    Context set with ``set_log_context``/``add_log_context`` is merged into
    the ``extra`` of every call, so handlers and formatters can see it.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        context = _log_context.get({})

        extra = kwargs.get('extra', {})
        extra.update(context)
        kwargs['extra'] = extra

        return msg, kwargs


def get_logger(name: str) -> ContextualLoggerAdapter:
    """Get a logger with automatic context injection."""
    base_logger = logging.getLogger(name)
    return ContextualLoggerAdapter(base_logger, {})


def set_log_context(**kwargs: Any) -> None:
    """Set context for all subsequent log messages in this thread/async context."""
    current_context = _log_context.get({}).copy()
    current_context.update(kwargs)
    _log_context.set(current_context)


def clear_log_context() -> None:
    """Clear all log context for the current thread/async context."""
    _log_context.set({})


def get_log_context() -> Dict[str, Any]:
    """Get a copy of the current log context."""
    return _log_context.get({}).copy()


class add_log_context:
    """
    Context manager to temporarily add log context.

    Usage:
        with add_log_context(operation='ingest', batch_size=12):
            logger.info("Processing")  # Includes operation and batch_size
        # Context is restored after the block
    """

    def __init__(self, **kwargs: Any):
        self.new_context = kwargs
        self.previous_context: Optional[Dict[str, Any]] = None

    def __enter__(self):
        self.previous_context = get_log_context()
        set_log_context(**self.new_context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.previous_context is not None:
            _log_context.set(self.previous_context)
        else:
            clear_log_context()


class StructuredLogFormatter(logging.Formatter):
    """
    Log formatter that outputs structured (key=value) logs.

    Example output:
        2026-01-28 10:30:45 INFO request_id=abc operation=ingest batch_size=3 message="Batch committed"
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = self.formatTime(record, self.datefmt)
        parts = [f"{timestamp} {record.levelname} logger={record.name}"]

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                value = getattr(record, field)
                if isinstance(value, str) and ' ' in value:
                    parts.append(f'{field}="{value}"')
                else:
                    parts.append(f'{field}={value}')

        msg = record.getMessage()
        if ' ' in msg or '=' in msg:
            parts.append(f'message="{msg}"')
        else:
            parts.append(f'message={msg}')

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)

        if record.exc_text:
            parts.append(f'\n{record.exc_text}')

        return ' '.join(parts)
