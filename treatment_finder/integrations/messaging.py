"""Outbound contact delivery to the messaging automation webhook."""
from dataclasses import dataclass
from typing import Any, Dict, Optional
import json
import logging
import requests
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from treatment_finder.middleware import get_request_id

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    """Outcome of one delivery attempt. ``body`` is the vendor's raw response text."""

    ok: bool
    body: str
    status_code: Optional[int] = None


class MessagingClient:
    """
    Posts contact payloads to the messaging vendor.

    One synchronous attempt per call, no retries. Transport errors and a
    missing endpoint come back as ``DeliveryResult(ok=False)`` rather than
    exceptions so the caller can log the attempt and move on.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        app_secret: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.url = url if url is not None else settings.MESSAGING_WEBHOOK_URL
        self.app_secret = app_secret if app_secret is not None else settings.APP_SECRET
        self.timeout = timeout if timeout is not None else settings.MESSAGING_TIMEOUT_SECONDS

    def send(self, payload: Dict[str, Any]) -> DeliveryResult:
        if not self.url:
            logger.warning("Messaging webhook URL is not configured; delivery skipped")
            return DeliveryResult(ok=False, body="messaging webhook not configured")

        headers = {"Content-Type": "application/json"}
        if self.app_secret:
            headers["X-App-Secret"] = self.app_secret
        request_id = get_request_id()
        if request_id:
            headers["X-Request-Id"] = request_id

        try:
            response = requests.post(
                self.url,
                data=json.dumps(payload, cls=DjangoJSONEncoder),
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            logger.warning(f"Messaging delivery timed out after {self.timeout}s")
            return DeliveryResult(ok=False, body="Request timed out")
        except requests.exceptions.RequestException as e:
            logger.warning(f"Messaging delivery failed: {e.__class__.__name__}")
            return DeliveryResult(ok=False, body=f"Error: {e}")

        ok = 200 <= response.status_code < 300
        if not ok:
            logger.warning(f"Messaging vendor returned HTTP {response.status_code}")
        return DeliveryResult(ok=ok, body=response.text, status_code=response.status_code)
