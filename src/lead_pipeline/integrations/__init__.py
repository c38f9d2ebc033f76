"""Lead Pipeline Integration Clients.

Client wrappers for the enrichment, validation, scraping, LLM and webhook
providers the pipeline calls.

Imports are lazy so the SDK-backed clients (Firecrawl, Twilio, OpenAI) are
only imported when first used.
"""

from typing import TYPE_CHECKING

_LAZY_CLIENTS = {
    "ProviderClients": ".registry",
    "ApolloClient": ".apollo",
    "HunterClient": ".hunter",
    "PeopleDataLabsClient": ".pdl",
    "ClearbitClient": ".clearbit",
    "ZeroBounceClient": ".zerobounce",
    "DnsOverHttpsClient": ".dns_lookup",
    "TwilioLookupClient": ".twilio_lookup",
    "FirecrawlClient": ".firecrawl",
    "LLMGatewayClient": ".llm_gateway",
    "WebhookSender": ".webhooks",
}

_loaded: dict = {}


def _load_client(name: str):
    """Import the module that defines ``name`` and cache the class."""
    if name not in _loaded:
        import importlib

        module = importlib.import_module(_LAZY_CLIENTS[name], __name__)
        _loaded[name] = getattr(module, name)
    return _loaded[name]


# For type checking, use actual imports
if TYPE_CHECKING:
    from .apollo import ApolloClient
    from .clearbit import ClearbitClient
    from .dns_lookup import DnsOverHttpsClient
    from .firecrawl import FirecrawlClient
    from .hunter import HunterClient
    from .llm_gateway import LLMGatewayClient
    from .pdl import PeopleDataLabsClient
    from .registry import ProviderClients
    from .twilio_lookup import TwilioLookupClient
    from .webhooks import WebhookSender
    from .zerobounce import ZeroBounceClient


def __getattr__(name: str):
    """Module-level __getattr__ for lazy imports."""
    if name in _LAZY_CLIENTS:
        return _load_client(name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = list(_LAZY_CLIENTS)
