"""
Custom exception handler for standardized API error responses.

Every error leaves the API in one shape:
{
    "error": {
        "code": "ingest_failed",
        "message": "Snapshot batch was rolled back.",
        "details": {"detail": "patnum must be an integer, got 'abc'"},
        "type": "/errors/ingest-failed",
        "request_id": "abc123"
    }
}

- code: Machine-readable error code (e.g., validation_error, not_found)
- message: Human-readable error message
- details: Field-level errors or the triggering error's message
- type: RFC 7807 problem type URI derived from the code
- request_id: Request ID from RequestIdMiddleware, when available
"""

import logging

from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    AuthenticationFailed,
    MethodNotAllowed,
    NotAuthenticated,
    NotFound,
    ParseError,
    PermissionDenied,
    Throttled,
    UnsupportedMediaType,
    ValidationError,
)
from rest_framework.response import Response
from rest_framework.views import exception_handler

from treatment_finder.middleware import get_request_id

logger = logging.getLogger(__name__)


class DomainAPIException(APIException):
    """
    API exception carrying a fixed error code and optional details.

    Subclasses set ``status_code``, ``default_code`` and ``default_detail``;
    the human-readable message is the detail, the triggering error text goes
    into ``details``.
    """

    def __init__(self, detail=None, details=None, status_code=None):
        super().__init__(detail=detail)
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class IngestFailed(DomainAPIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "ingest_failed"
    default_detail = "Snapshot batch was rolled back."


class UnknownOpportunity(DomainAPIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "unknown_opportunity"
    default_detail = "The referenced opportunity does not exist."


def _request_id(context):
    request = (context or {}).get("request")
    return getattr(request, "request_id", None) or get_request_id()


def _get_error_type_uri(error_code):
    return f"/errors/{error_code.replace('_', '-')}"


def custom_exception_handler(exc, context):
    """
    Render any exception raised by a view as the standard error envelope.

    DRF handles its own exceptions first, including Django's Http404 and
    PermissionDenied. Anything else is logged with traceback and answered
    with a generic 500.
    """
    request_id = _request_id(context)

    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"Unhandled exception: {exc.__class__.__name__}: {exc}",
            exc_info=True,
        )
        error_code = "internal_server_error"
        error_message = "An unexpected error occurred. Please try again later."
        status_code = 500
        details = {"request_id": request_id} if request_id else None

        error_data = {
            "code": error_code,
            "message": error_message,
            "details": details,
            "type": _get_error_type_uri(error_code),
        }
        if request_id:
            error_data["request_id"] = request_id
        return Response({"error": error_data}, status=status_code)

    error_data = get_error_data(exc, response)
    error_data["type"] = _get_error_type_uri(error_data["code"])
    if request_id:
        error_data["request_id"] = request_id

    response.data = {"error": error_data}
    return response


def get_error_data(exc, response):
    """Map a DRF-handled exception to ``code``, ``message`` and ``details``."""
    if isinstance(exc, DomainAPIException):
        return {
            "code": exc.default_code,
            "message": str(exc.detail),
            "details": {"detail": exc.details} if exc.details else None,
        }

    if isinstance(exc, ValidationError):
        return {
            "code": "validation_error",
            "message": "Invalid input data.",
            "details": (
                response.data
                if isinstance(response.data, dict)
                else {"non_field_errors": response.data}
            ),
        }

    if isinstance(exc, (NotAuthenticated, AuthenticationFailed)):
        return {
            "code": "authentication_failed",
            "message": "Authentication credentials were not provided or are invalid.",
            "details": None,
        }

    if isinstance(exc, PermissionDenied) or response.status_code == 403:
        return {
            "code": "permission_denied",
            "message": "You do not have permission to perform this action.",
            "details": {"detail": str(exc)} if str(exc) else None,
        }

    if isinstance(exc, NotFound) or response.status_code == 404:
        return {
            "code": "not_found",
            "message": "The requested resource was not found.",
            "details": None,
        }

    if isinstance(exc, ParseError):
        return {
            "code": "parse_error",
            "message": "Malformed request data.",
            "details": {"detail": str(exc)} if str(exc) else None,
        }

    if isinstance(exc, MethodNotAllowed):
        return {
            "code": "method_not_allowed",
            "message": str(exc) or "Method not allowed.",
            "details": None,
        }

    if isinstance(exc, UnsupportedMediaType):
        return {
            "code": "unsupported_media_type",
            "message": str(exc) or "Unsupported media type in request.",
            "details": None,
        }

    if isinstance(exc, Throttled):
        return {
            "code": "throttled",
            "message": "Request was throttled. Please try again later.",
            "details": {"wait_seconds": getattr(exc, "wait", None)},
        }

    return {
        "code": "error",
        "message": str(exc) or "An error occurred.",
        "details": response.data if isinstance(response.data, dict) else None,
    }
