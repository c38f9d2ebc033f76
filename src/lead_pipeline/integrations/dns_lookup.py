"""MX record lookups over DNS-over-HTTPS (dns.google)."""

import logging
from typing import Any

from .http import HTTPProviderClient, ProviderError

logger = logging.getLogger(__name__)

DNS_RESOLVE_URL = "https://dns.google/resolve"


class DnsOverHttpsClient(HTTPProviderClient):
    """Resolves MX records through Google's JSON DNS API."""

    provider_name = "dns.google"

    async def has_mx_records(self, domain: str) -> bool:
        """True when the domain publishes at least one MX record.

        Lookup failures count as "no records".
        """
        try:
            data: dict[str, Any] = await self._get(
                DNS_RESOLVE_URL, params={"name": domain, "type": "MX"}
            )
        except ProviderError as e:
            logger.warning("MX lookup failed for %s: %s", domain, e)
            return False
        return bool(data.get("Answer"))
