"""Shared HTTP plumbing for the REST-based provider clients.

Provider APIs are called through a ``requests.Session`` whose adapter retries
connection failures and 5xx responses with exponential backoff. Client errors
(4xx) are never retried; they are mapped onto the ``ProviderError`` hierarchy
so callers can tell a missing record from a bad key or a rate limit.

Blocking calls run in the default executor so the async pipeline code can
await them.
"""

import asyncio
import logging
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import config

logger = logging.getLogger(__name__)

RETRY_STATUS_CODES = [500, 502, 503, 504]


class ProviderError(Exception):
    """Base exception for external provider failures."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderAuthError(ProviderError):
    """Raised when the provider rejects the API key (401/403)."""

    pass


class ProviderRateLimitError(ProviderError):
    """Raised when the provider rate limits the request (429)."""

    pass


class ProviderNotFoundError(ProviderError):
    """Raised when the provider has no record for the query (404)."""

    pass


class ProviderRequestError(ProviderError):
    """Raised for any other failed request, including exhausted retries."""

    pass


class HTTPProviderClient:
    """Base class for JSON-over-HTTP provider clients.

    Subclasses set ``provider_name`` and ``base_url`` and call ``_get`` or
    ``_post`` from their async methods.

    Attributes:
        timeout_seconds: Per-request timeout.
        max_retries: Retries for connection errors and 5xx responses.
        retry_delay: Backoff factor; the n-th retry waits ``retry_delay * 2 ** (n - 1)``.
    """

    provider_name = "provider"
    base_url = ""

    def __init__(
        self,
        timeout_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds or config.HTTP_TIMEOUT_SECONDS
        self.max_retries = (
            max_retries if max_retries is not None else config.RETRY_MAX_ATTEMPTS
        )
        self.retry_delay = (
            retry_delay if retry_delay is not None else config.RETRY_DELAY_SECONDS
        )
        self._session: Optional[requests.Session] = None

    def _get_session(self) -> requests.Session:
        """Get or create a session with the retry adapter mounted."""
        if self._session is None:
            self._session = requests.Session()

            retry_strategy = Retry(
                total=self.max_retries,
                backoff_factor=self.retry_delay,
                status_forcelist=RETRY_STATUS_CODES,
                allowed_methods=["GET", "POST"],
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            self._session.mount("https://", adapter)
            self._session.mount("http://", adapter)

        return self._session

    def _default_headers(self) -> dict[str, str]:
        return {"Accept": "application/json"}

    def _raise_for_status(self, response: requests.Response, path: str) -> None:
        status = response.status_code
        if status < 400:
            return

        body = response.text[:300] if response.text else ""
        name = self.provider_name
        if status in (401, 403):
            raise ProviderAuthError(f"{name} rejected credentials ({status})", status)
        if status == 404:
            raise ProviderNotFoundError(f"{name} found nothing for {path}", status)
        if status == 429:
            raise ProviderRateLimitError(f"{name} rate limit exceeded", status)
        raise ProviderRequestError(f"{name} API error {status}: {body}", status)

    def _request_sync(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """Perform one request and return the decoded JSON body.

        Raises:
            ProviderError: A subclass matching the failure.
        """
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        request_headers = self._default_headers()
        if headers:
            request_headers.update(headers)

        try:
            response = self._get_session().request(
                method,
                url,
                params=params,
                json=json_body,
                headers=request_headers,
                timeout=self.timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            raise ProviderRequestError(
                f"{self.provider_name} request failed: {e}"
            ) from e

        self._raise_for_status(response, path)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ProviderRequestError(
                f"{self.provider_name} returned a non-JSON body", response.status_code
            ) from e

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        loop = asyncio.get_event_loop()
        logger.debug(
            "%s %s %s", self.provider_name, method, path,
            extra={"provider": self.provider_name},
        )
        return await loop.run_in_executor(
            None,
            lambda: self._request_sync(method, path, params, json_body, headers),
        )

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None, **kwargs: Any) -> Any:
        return await self._request("GET", path, params=params, **kwargs)

    async def _post(self, path: str, json_body: Optional[dict[str, Any]] = None, **kwargs: Any) -> Any:
        return await self._request("POST", path, json_body=json_body, **kwargs)

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
