"""Client for the OpenAI-compatible LLM gateway used for scoring and copy."""

import asyncio
import logging
import os
from typing import Optional

import openai
from openai import OpenAI

from ..config import config

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0


class LLMError(Exception):
    """Base exception for gateway failures."""

    pass


class LLMRateLimitError(LLMError):
    """Raised when the gateway answers 429."""

    pass


class LLMCreditsExhaustedError(LLMError):
    """Raised when the gateway answers 402 (no credits left)."""

    pass


class LLMGatewayClient:
    """Chat completions against the configured gateway.

    Attributes:
        api_key: Gateway key.
        base_url: Gateway base URL (OpenAI API shape).
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the gateway client.

        Raises:
            ValueError: If no API key is provided or found in environment.
        """
        self.api_key = api_key or os.environ.get("LLM_API_KEY")
        if not self.api_key:
            raise ValueError(
                "LLM API key required. Set LLM_API_KEY environment "
                "variable or pass api_key parameter."
            )
        self.base_url = base_url or config.LLM_BASE_URL
        self._client = OpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=timeout_seconds,
        )

    async def chat(self, model: str, messages: list[dict[str, str]]) -> str:
        """Return the assistant message content for ``messages``.

        Raises:
            LLMRateLimitError: On 429.
            LLMCreditsExhaustedError: On 402.
            LLMError: On any other gateway failure.
        """
        loop = asyncio.get_event_loop()
        try:
            completion = await loop.run_in_executor(
                None,
                lambda: self._client.chat.completions.create(model=model, messages=messages),
            )
        except openai.RateLimitError as e:
            raise LLMRateLimitError("LLM gateway rate limit exceeded") from e
        except openai.APIStatusError as e:
            if e.status_code == 402:
                raise LLMCreditsExhaustedError("LLM gateway credits exhausted") from e
            logger.error("LLM gateway error %s: %s", e.status_code, e.message)
            raise LLMError(f"LLM gateway error {e.status_code}") from e
        except openai.OpenAIError as e:
            logger.error("LLM gateway request failed: %s", e)
            raise LLMError(f"LLM gateway request failed: {e}") from e

        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""
