"""Signed JSON delivery to notification channels and client webhooks.

A payload is serialized once and the signature is computed over exactly the
bytes that are sent, so receivers can verify with::

    hmac.new(secret, request.body, sha256).hexdigest() == header[len("sha256="):]

Deliveries are single attempts; callers record the outcome.
"""

import asyncio
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

from ..config import config

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"


def sign_payload(body: str, secret: str) -> str:
    """Return the ``sha256=<hex>`` HMAC signature of ``body``."""
    digest = hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256)
    return f"sha256={digest.hexdigest()}"


@dataclass
class DeliveryResult:
    """Outcome of one POST. ``status`` is None when no response arrived."""

    success: bool
    status: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success}
        if self.status is not None:
            result["status"] = self.status
        if self.error:
            result["error"] = self.error
        return result


class WebhookSender:
    """Posts JSON payloads, signing them when a secret is given."""

    def __init__(self, timeout_seconds: Optional[float] = None) -> None:
        self.timeout_seconds = timeout_seconds or config.HTTP_TIMEOUT_SECONDS
        self._session = requests.Session()

    def _post_sync(self, url: str, payload: dict[str, Any], secret: Optional[str]) -> DeliveryResult:
        body = json.dumps(payload)
        headers = {"Content-Type": "application/json"}
        if secret:
            headers[SIGNATURE_HEADER] = sign_payload(body, secret)

        try:
            response = self._session.post(
                url, data=body.encode("utf-8"), headers=headers, timeout=self.timeout_seconds
            )
        except requests.exceptions.RequestException as e:
            logger.warning("Webhook delivery to %s failed: %s", url, e)
            return DeliveryResult(success=False, error=str(e))

        return DeliveryResult(success=response.ok, status=response.status_code)

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        secret: Optional[str] = None,
    ) -> DeliveryResult:
        """POST ``payload`` to ``url``; never raises for transport failures."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            None, lambda: self._post_sync(url, payload, secret)
        )

    def close(self) -> None:
        self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
