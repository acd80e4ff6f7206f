"""
Signed patient self-scheduling links.

A scheduling link embeds the patient's patnum and a short-lived HS256 JWT
so the booking page can trust which patient it is serving without a login.
Links are never stored; every detail view and contact dispatch mints a
fresh one.
"""

import logging
from datetime import timedelta
from typing import Optional
from urllib.parse import urlencode, urlsplit, urlunsplit, parse_qsl

import jwt
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


class SchedulingLinkError(Exception):
    """Raised when a scheduling link cannot be signed or a token fails to verify."""

    pass


class SchedulingLinkSigner:
    """
    Mints and verifies scheduling tokens.

    Configuration comes from settings unless passed explicitly:
    - SCHEDULING_BASE_URL: booking page URL the token is appended to
    - SCHEDULING_TOKEN_SECRET: HMAC key shared with the booking page
    - SCHEDULING_LINK_TTL_DAYS: token lifetime (14 days)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        secret: Optional[str] = None,
        ttl_days: Optional[int] = None,
    ):
        self.base_url = base_url if base_url is not None else settings.SCHEDULING_BASE_URL
        self.secret = secret if secret is not None else settings.SCHEDULING_TOKEN_SECRET
        self.ttl = timedelta(
            days=ttl_days if ttl_days is not None else settings.SCHEDULING_LINK_TTL_DAYS
        )

    def sign_token(self, patnum: int) -> str:
        if not self.secret:
            raise SchedulingLinkError("SCHEDULING_TOKEN_SECRET is not configured")

        issued_at = timezone.now()
        claims = {
            "patnum": int(patnum),
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.ttl).timestamp()),
        }
        return jwt.encode(claims, self.secret, algorithm=JWT_ALGORITHM)

    def link_for(self, patnum: int) -> str:
        """
        Build a booking URL for ``patnum`` with ``pat`` and ``t`` query params.

        Existing query parameters on the base URL are preserved.

        Raises:
            SchedulingLinkError: If the base URL or secret is not configured
        """
        if not self.base_url:
            raise SchedulingLinkError("SCHEDULING_BASE_URL is not configured")

        token = self.sign_token(patnum)
        parts = urlsplit(self.base_url)
        query = [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if key not in ("pat", "t")
        ]
        query.extend([("pat", str(patnum)), ("t", token)])
        return urlunsplit(
            (parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment)
        )

    def verify_token(self, token: str) -> int:
        """
        Return the patnum a token was issued for.

        Raises:
            SchedulingLinkError: If the token is expired, forged or malformed
        """
        if not self.secret:
            raise SchedulingLinkError("SCHEDULING_TOKEN_SECRET is not configured")
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise SchedulingLinkError("Scheduling link has expired") from e
        except jwt.PyJWTError as e:
            raise SchedulingLinkError(f"Invalid scheduling token: {e}") from e

        try:
            return int(claims["patnum"])
        except (KeyError, TypeError, ValueError) as e:
            raise SchedulingLinkError("Scheduling token carries no patnum") from e
