"""Clearbit company lookup client."""

import logging
import os
from typing import Any, Optional

from .http import HTTPProviderClient, ProviderNotFoundError

logger = logging.getLogger(__name__)

CLEARBIT_COMPANY_URL = "https://company.clearbit.com/v2"


class ClearbitClient(HTTPProviderClient):
    """Async client for ``companies/find``."""

    provider_name = "clearbit"
    base_url = CLEARBIT_COMPANY_URL

    def __init__(self, api_key: Optional[str] = None, **kwargs: Any) -> None:
        """Initialize Clearbit client.

        Raises:
            ValueError: If no API key is provided or found in environment.
        """
        super().__init__(**kwargs)
        self.api_key = api_key or os.environ.get("CLEARBIT_API_KEY")
        if not self.api_key:
            raise ValueError(
                "Clearbit API key required. Set CLEARBIT_API_KEY environment "
                "variable or pass api_key parameter."
            )

    def _default_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def find_company(self, domain: str) -> Optional[dict[str, Any]]:
        """Look up a company by domain; None when Clearbit does not know it."""
        try:
            company = await self._get("/companies/find", params={"domain": domain})
        except ProviderNotFoundError:
            logger.info("Clearbit has no company for %s", domain)
            return None
        return company or None
