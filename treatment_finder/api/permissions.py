"""
Permission classes for the shared-secret gate.
"""

from django.conf import settings
from rest_framework.permissions import BasePermission

from treatment_finder.api.authentication import SHARED_SECRET_AUTH


class HasSharedSecret(BasePermission):
    """
    Allow the request when the shared secret was verified or none is configured.

    Paired with ``SharedSecretAuthentication``, which rejects wrong secrets
    outright; this covers views where authentication was bypassed.
    """

    message = "Invalid or missing X-App-Secret header."

    def has_permission(self, request, view):
        if not settings.APP_SECRET:
            return True
        return request.auth == SHARED_SECRET_AUTH
