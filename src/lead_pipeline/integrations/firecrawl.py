"""Firecrawl client for scraping lead websites.

Pages are fetched through the Firecrawl SDK, which renders JavaScript, and
returned as markdown plus, when requested, HTML and the page's links. The
technographics and contact extraction stages read those formats.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional

from firecrawl import Firecrawl

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("markdown", "html", "rawHtml", "links")


class FirecrawlError(Exception):
    """Raised when Firecrawl rejects or fails a scrape.

    ``reason`` is ``auth``, ``rate_limit`` or ``scrape``.
    """

    def __init__(self, message: str, reason: str = "scrape") -> None:
        super().__init__(message)
        self.reason = reason


def _classify(message: str) -> str:
    lowered = message.lower()
    if "401" in message or "unauthorized" in lowered:
        return "auth"
    if "429" in message or "rate limit" in lowered:
        return "rate_limit"
    return "scrape"


@dataclass
class ScrapeResult:
    """One scraped page. ``success`` is False when nothing usable came back."""

    url: str
    markdown: Optional[str] = None
    html: Optional[str] = None
    raw_html: Optional[str] = None
    links: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    success: bool = True
    error: Optional[str] = None

    @classmethod
    def from_document(cls, url: str, document: Any) -> "ScrapeResult":
        """Build from an SDK document (pydantic model or plain dict)."""
        if hasattr(document, "model_dump"):
            document = document.model_dump(by_alias=True)
        links = document.get("links") or []
        if isinstance(links, str):
            links = [links]
        return cls(
            url=url,
            markdown=document.get("markdown"),
            html=document.get("html"),
            raw_html=document.get("rawHtml") or document.get("raw_html"),
            links=links,
            metadata=document.get("metadata") or {},
        )


class FirecrawlClient:
    """Async wrapper around the Firecrawl SDK.

    Example:
        >>> client = FirecrawlClient()
        >>> page = await client.scrape_url_safe("https://acmedental.com/contact")
        >>> page.success
        True
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> None:
        """Initialize Firecrawl client.

        Raises:
            ValueError: If no API key is provided or found in environment.
        """
        self.api_key = api_key or os.environ.get("FIRECRAWL_API_KEY")
        if not self.api_key:
            raise ValueError(
                "Firecrawl API key required. Set FIRECRAWL_API_KEY environment "
                "variable or pass api_key parameter."
            )

        self.timeout_ms = timeout_ms
        self._client = Firecrawl(api_key=self.api_key)

    async def scrape_url(
        self,
        url: str,
        formats: Optional[list[str]] = None,
        only_main_content: bool = True,
        wait_for: Optional[int] = None,
    ) -> ScrapeResult:
        """Scrape one page; unsupported formats are dropped.

        Raises:
            FirecrawlError: If the SDK call fails.
        """
        requested = [fmt for fmt in (formats or ["markdown"]) if fmt in SUPPORTED_FORMATS]
        params: dict[str, Any] = {
            "formats": requested,
            "only_main_content": only_main_content,
        }
        if wait_for:
            params["wait_for"] = wait_for
        if self.timeout_ms:
            params["timeout"] = self.timeout_ms

        logger.info("Scraping %s (formats: %s)", url, ", ".join(requested))
        loop = asyncio.get_event_loop()
        try:
            document = await loop.run_in_executor(
                None, lambda: self._client.scrape(url, **params)
            )
        except Exception as e:
            message = str(e)
            raise FirecrawlError(f"Scrape failed for {url}: {message}", _classify(message)) from e

        if not document:
            return ScrapeResult(url=url, success=False, error="Empty response from Firecrawl API")
        return ScrapeResult.from_document(url, document)

    async def scrape_url_safe(self, url: str, **kwargs: Any) -> ScrapeResult:
        """Like ``scrape_url`` but returns a failed result instead of raising."""
        try:
            return await self.scrape_url(url, **kwargs)
        except FirecrawlError as e:
            logger.warning("Scrape of %s failed (%s): %s", url, e.reason, e)
            return ScrapeResult(url=url, success=False, error=str(e))
