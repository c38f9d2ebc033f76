"""People Data Labs person enrichment client."""

import logging
import os
from typing import Any, Optional

from .http import HTTPProviderClient, ProviderNotFoundError

logger = logging.getLogger(__name__)

PDL_BASE_URL = "https://api.peopledatalabs.com/v5"


class PeopleDataLabsClient(HTTPProviderClient):
    """Async client for ``GET /person/enrich``."""

    provider_name = "pdl"
    base_url = PDL_BASE_URL

    def __init__(self, api_key: Optional[str] = None, **kwargs: Any) -> None:
        """Initialize People Data Labs client.

        Raises:
            ValueError: If no API key is provided or found in environment.
        """
        super().__init__(**kwargs)
        self.api_key = api_key or os.environ.get("PDL_API_KEY")
        if not self.api_key:
            raise ValueError(
                "People Data Labs API key required. Set PDL_API_KEY environment "
                "variable or pass api_key parameter."
            )

    def _default_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "X-Api-Key": self.api_key,
        }

    async def enrich_person(
        self,
        email: Optional[str] = None,
        name: Optional[str] = None,
        company: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        """Return the matched person record, or None when PDL has no match."""
        params = {
            key: value
            for key, value in (("email", email), ("name", name), ("company", company))
            if value
        }
        if not params:
            return None

        try:
            response = await self._get("/person/enrich", params=params)
        except ProviderNotFoundError:
            logger.info("PDL has no match", extra={"company": company})
            return None

        if response.get("status") == 200 and response.get("data"):
            return response["data"]
        return None
