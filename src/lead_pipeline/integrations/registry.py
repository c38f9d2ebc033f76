"""Build the set of provider clients that have credentials configured."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..config import Config, config as default_config

logger = logging.getLogger(__name__)


@dataclass
class ProviderClients:
    """Provider clients available to the pipeline; unconfigured ones are None.

    The DNS resolver and webhook sender need no credentials and are always
    present.
    """

    apollo: Optional[Any] = None
    hunter: Optional[Any] = None
    pdl: Optional[Any] = None
    clearbit: Optional[Any] = None
    zerobounce: Optional[Any] = None
    twilio: Optional[Any] = None
    firecrawl: Optional[Any] = None
    llm: Optional[Any] = None
    dns: Optional[Any] = None
    webhooks: Optional[Any] = None

    @classmethod
    def from_config(cls, cfg: Optional[Config] = None) -> "ProviderClients":
        """Instantiate a client for every provider whose key is set."""
        from . import (
            ApolloClient,
            ClearbitClient,
            DnsOverHttpsClient,
            FirecrawlClient,
            HunterClient,
            LLMGatewayClient,
            PeopleDataLabsClient,
            TwilioLookupClient,
            WebhookSender,
            ZeroBounceClient,
        )

        cfg = cfg or default_config
        clients = cls(dns=DnsOverHttpsClient(), webhooks=WebhookSender())

        if cfg.has_apollo:
            clients.apollo = ApolloClient(api_key=cfg.APOLLO_API_KEY)
        if cfg.has_hunter:
            clients.hunter = HunterClient(api_key=cfg.HUNTER_API_KEY)
        if cfg.has_pdl:
            clients.pdl = PeopleDataLabsClient(api_key=cfg.PDL_API_KEY)
        if cfg.has_clearbit:
            clients.clearbit = ClearbitClient(api_key=cfg.CLEARBIT_API_KEY)
        if cfg.has_zerobounce:
            clients.zerobounce = ZeroBounceClient(api_key=cfg.ZEROBOUNCE_API_KEY)
        if cfg.has_twilio:
            clients.twilio = TwilioLookupClient(
                account_sid=cfg.TWILIO_ACCOUNT_SID,
                auth_token=cfg.TWILIO_AUTH_TOKEN,
            )
        if cfg.has_firecrawl:
            clients.firecrawl = FirecrawlClient(
                api_key=cfg.FIRECRAWL_API_KEY, timeout_ms=cfg.FIRECRAWL_TIMEOUT_MS
            )
        if cfg.has_llm:
            clients.llm = LLMGatewayClient(api_key=cfg.LLM_API_KEY, base_url=cfg.LLM_BASE_URL)

        logger.info("Provider clients configured: %s", ", ".join(clients.configured()))
        return clients

    def configured(self) -> list[str]:
        """Names of the credentialed providers that are available."""
        names = ["apollo", "hunter", "pdl", "clearbit", "zerobounce", "twilio", "firecrawl", "llm"]
        return [name for name in names if getattr(self, name) is not None]

    def close(self) -> None:
        for name in ("apollo", "hunter", "pdl", "clearbit", "zerobounce", "dns", "webhooks"):
            client = getattr(self, name)
            if client is not None and hasattr(client, "close"):
                client.close()
