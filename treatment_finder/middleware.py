"""
Custom middleware for Treatment Finder.
"""
from typing import Optional
import uuid
import threading
import time
import logging
from django.http import HttpRequest, HttpResponse
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)

# Thread-local storage for request_id
_request_id_storage = threading.local()

SLOW_REQUEST_SECONDS = 2.0
VERY_SLOW_REQUEST_SECONDS = 5.0


def get_request_id() -> Optional[str]:
    """Get the current request ID from thread-local storage."""
    return getattr(_request_id_storage, "request_id", None)


def set_request_id(request_id: Optional[str]) -> None:
    """Set the request ID in thread-local storage."""
    _request_id_storage.request_id = request_id


class RequestIdLogFilter(logging.Filter):
    """Stamp the current request id onto every log record that lacks one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class RequestIdMiddleware(MiddlewareMixin):
    """
    Middleware to add request ID to each request.

    If X-Request-Id header exists, use it. Otherwise, generate a UUID.
    The request_id is attached to request.request_id for access in views
    and is forwarded to the messaging collaborator on contact dispatch.
    """

    def process_request(self, request: HttpRequest) -> None:
        request_id = request.META.get("HTTP_X_REQUEST_ID")

        if not request_id:
            request_id = str(uuid.uuid4())

        request.request_id = request_id
        set_request_id(request_id)

        return None

    def process_response(
        self, request: HttpRequest, response: HttpResponse
    ) -> HttpResponse:
        request_id = getattr(request, "request_id", None)
        if request_id:
            response["X-Request-Id"] = request_id

        set_request_id(None)
        return response


class RequestTimingMiddleware(MiddlewareMixin):
    """
    Middleware to track request timing and log slow requests.

    Logs:
    - All requests with timing information (DEBUG)
    - Slow requests (>2 seconds) as warnings; contact dispatch blocks on
      the messaging collaborator, so this is where a stalled vendor shows up
    - Very slow requests (>5 seconds) as errors
    """

    def process_request(self, request: HttpRequest) -> None:
        request._request_start_time = time.time()
        return None

    def process_response(
        self, request: HttpRequest, response: HttpResponse
    ) -> HttpResponse:
        if hasattr(request, "_request_start_time"):
            duration = time.time() - request._request_start_time
            duration_ms = duration * 1000

            method = request.method
            path = request.path
            status = response.status_code

            if duration > VERY_SLOW_REQUEST_SECONDS:
                logger.error(
                    f"VERY SLOW REQUEST: {method} {path} - {status} - "
                    f"{duration_ms:.0f}ms"
                )
            elif duration > SLOW_REQUEST_SECONDS:
                logger.warning(
                    f"SLOW REQUEST: {method} {path} - {status} - "
                    f"{duration_ms:.0f}ms"
                )
            else:
                logger.debug(
                    f"REQUEST: {method} {path} - {status} - {duration_ms:.0f}ms"
                )

            response["X-Request-Duration-Ms"] = f"{duration_ms:.2f}"

        return response


class SecurityHeadersMiddleware(MiddlewareMixin):
    """
    Middleware to add security headers to all HTTP responses.

    Security headers added:
        - X-Content-Type-Options: nosniff
        - Referrer-Policy: no-referrer (scheduling links carry signed tokens
          in the query string)
        - Strict-Transport-Security: max-age=31536000; includeSubDomains

    X-Frame-Options is handled by Django's XFrameOptionsMiddleware.
    """

    def process_response(
        self, request: HttpRequest, response: HttpResponse
    ) -> HttpResponse:
        response["X-Content-Type-Options"] = "nosniff"
        response["Referrer-Policy"] = "no-referrer"
        response["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
