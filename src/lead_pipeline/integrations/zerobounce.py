"""ZeroBounce email verification client."""

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

from .http import HTTPProviderClient

logger = logging.getLogger(__name__)

ZEROBOUNCE_BASE_URL = "https://api.zerobounce.net/v2"

# Statuses the waterfall keeps; everything else clears the address
DELIVERABLE_STATUSES = ("valid", "catch-all")


@dataclass
class EmailVerification:
    """ZeroBounce verdict for one address.

    ``status`` is one of valid, invalid, catch-all, unknown, spamtrap,
    abuse or do_not_mail.
    """

    email: str
    status: str
    sub_status: Optional[str] = None

    @property
    def is_deliverable(self) -> bool:
        return self.status.lower() in DELIVERABLE_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return {"email": self.email, "status": self.status, "sub_status": self.sub_status}


class ZeroBounceClient(HTTPProviderClient):
    """Async client for ``GET /validate``."""

    provider_name = "zerobounce"
    base_url = ZEROBOUNCE_BASE_URL

    def __init__(self, api_key: Optional[str] = None, **kwargs: Any) -> None:
        """Initialize ZeroBounce client.

        Raises:
            ValueError: If no API key is provided or found in environment.
        """
        super().__init__(**kwargs)
        self.api_key = api_key or os.environ.get("ZEROBOUNCE_API_KEY")
        if not self.api_key:
            raise ValueError(
                "ZeroBounce API key required. Set ZEROBOUNCE_API_KEY environment "
                "variable or pass api_key parameter."
            )

    async def validate(self, email: str) -> EmailVerification:
        """Verify one address.

        Raises:
            ProviderError: If the API call fails.
        """
        data = await self._get(
            "/validate", params={"api_key": self.api_key, "email": email}
        )
        result = EmailVerification(
            email=email,
            status=(data.get("status") or "unknown"),
            sub_status=data.get("sub_status") or None,
        )
        logger.debug("ZeroBounce %s -> %s", email, result.status)
        return result
