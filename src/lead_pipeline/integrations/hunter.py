"""Hunter.io client for email discovery."""

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

from .http import HTTPProviderClient, ProviderNotFoundError, ProviderRequestError

logger = logging.getLogger(__name__)

HUNTER_BASE_URL = "https://api.hunter.io/v2"


class HunterError(ProviderRequestError):
    """Raised when Hunter reports errors in an otherwise successful response."""

    pass


@dataclass
class HunterEmail:
    """One address from a Hunter domain search."""

    value: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    position: Optional[str] = None
    linkedin: Optional[str] = None
    confidence: Optional[int] = None

    @property
    def full_name(self) -> Optional[str]:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "position": self.position,
            "linkedin": self.linkedin,
            "confidence": self.confidence,
        }


class HunterClient(HTTPProviderClient):
    """Async client for Hunter's email-finder and domain-search endpoints."""

    provider_name = "hunter"
    base_url = HUNTER_BASE_URL

    def __init__(self, api_key: Optional[str] = None, **kwargs: Any) -> None:
        """Initialize Hunter client.

        Raises:
            ValueError: If no API key is provided or found in environment.
        """
        super().__init__(**kwargs)
        self.api_key = api_key or os.environ.get("HUNTER_API_KEY")
        if not self.api_key:
            raise ValueError(
                "Hunter API key required. Set HUNTER_API_KEY environment "
                "variable or pass api_key parameter."
            )

    async def _call(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        response = await self._get(endpoint, params={**params, "api_key": self.api_key})
        if isinstance(response, dict) and response.get("errors"):
            details = "; ".join(
                str(err.get("details", err)) for err in response["errors"]
            )
            raise HunterError(f"Hunter error: {details}")
        return (response or {}).get("data") or {}

    async def find_email(
        self,
        domain: str,
        first_name: str,
        last_name: str,
    ) -> Optional[str]:
        """Guess a person's address at ``domain``; None when Hunter has no match."""
        try:
            data = await self._call(
                "/email-finder",
                {"domain": domain, "first_name": first_name, "last_name": last_name},
            )
        except ProviderNotFoundError:
            return None
        return data.get("email") or None

    async def domain_search(self, domain: str, limit: int = 5) -> list[HunterEmail]:
        """List known addresses at ``domain``, best first."""
        try:
            data = await self._call("/domain-search", {"domain": domain, "limit": limit})
        except ProviderNotFoundError:
            return []

        emails = []
        for entry in data.get("emails") or []:
            if not entry.get("value"):
                continue
            emails.append(
                HunterEmail(
                    value=entry["value"],
                    first_name=entry.get("first_name"),
                    last_name=entry.get("last_name"),
                    position=entry.get("position"),
                    linkedin=entry.get("linkedin"),
                    confidence=entry.get("confidence"),
                )
            )
        logger.info("Hunter domain search for %s: %d emails", domain, len(emails))
        return emails
