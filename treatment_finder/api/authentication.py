"""
Shared-secret gate for machine-to-machine endpoints.

The export job and the messaging vendor authenticate by sending the
configured ``APP_SECRET`` in the ``X-App-Secret`` header. When
``APP_SECRET`` is empty the gate is open; ``treatment_finder.W001`` flags
that at startup.
"""

import hmac
import logging

from django.conf import settings
from django.contrib.auth.models import AnonymousUser
from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed

logger = logging.getLogger(__name__)

SECRET_HEADER = "X-App-Secret"
SHARED_SECRET_AUTH = "shared-secret"


class SharedSecretAuthentication(BaseAuthentication):
    def authenticate(self, request):
        expected = settings.APP_SECRET
        if not expected:
            return None

        supplied = request.headers.get(SECRET_HEADER, "")
        if not hmac.compare_digest(supplied.encode(), expected.encode()):
            logger.warning(f"Shared secret rejected for {request.method} {request.path}")
            raise AuthenticationFailed("Invalid or missing X-App-Secret header.")

        return (AnonymousUser(), SHARED_SECRET_AUTH)

    def authenticate_header(self, request):
        # A WWW-Authenticate value makes DRF answer 401 instead of 403
        return SECRET_HEADER
