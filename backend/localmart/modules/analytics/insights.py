"""
Gemini Text Generation Client.

Thin async wrapper over the Gemini ``generateContent`` REST endpoint used to
turn analytics numbers into narrative insights. Every failure mode (missing
key, network error, non-2xx response, unexpected body) is reported as
``ExternalServiceUnavailable`` so callers can fall back to placeholder text.
"""

from typing import Any

import httpx
from loguru import logger

from localmart.core.config import settings
from localmart.core.exceptions import ExternalServiceUnavailable


class GeminiClient:
    """
    Async client for Gemini text generation.

    Usage:
        client = GeminiClient()
        text = await client.generate("Summarise...", model="gemini-2.5-flash")
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize Gemini client.

        Args:
            api_key: Gemini API key (default from settings)
            base_url: API root (default from settings)
            timeout: Request timeout in seconds
            transport: Custom httpx transport
        """
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.base_url = (base_url or settings.gemini_api_base).rstrip("/")
        self.timeout = timeout or settings.gemini_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        if not self.api_key:
            logger.warning("GEMINI_API_KEY not configured; AI insights disabled")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    @staticmethod
    def _extract_text(data: dict[str, Any]) -> str:
        parts = data["candidates"][0]["content"]["parts"]
        return "".join(part.get("text", "") for part in parts).strip()

    async def generate(self, prompt: str, model: str) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: Full prompt text
            model: Gemini model name

        Returns:
            Generated text

        Raises:
            ExternalServiceUnavailable: On any failure or an empty answer
        """
        if not self.api_key:
            raise ExternalServiceUnavailable("Gemini API key not configured")

        payload = {"contents": [{"parts": [{"text": prompt}]}]}

        try:
            response = await self._get_client().post(
                f"/models/{model}:generateContent",
                json=payload,
                headers={"x-goog-api-key": self.api_key},
            )
            response.raise_for_status()
            text = self._extract_text(response.json())
        except httpx.HTTPStatusError as e:
            logger.error(f"Gemini returned {e.response.status_code} for {model}")
            raise ExternalServiceUnavailable("Gemini request failed") from e
        except httpx.HTTPError as e:
            logger.error(f"Gemini request error: {e}")
            raise ExternalServiceUnavailable("Gemini unreachable") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Unexpected Gemini response shape: {e}")
            raise ExternalServiceUnavailable("Malformed Gemini response") from e

        if not text:
            raise ExternalServiceUnavailable("Gemini returned no text")
        return text


# Singleton instance
_gemini_client: GeminiClient | None = None


def get_gemini_client() -> GeminiClient:
    """Get or create Gemini client singleton."""
    global _gemini_client
    if _gemini_client is None:
        _gemini_client = GeminiClient()
    return _gemini_client


async def close_gemini_client() -> None:
    """Close the singleton's HTTP client, if one was created."""
    global _gemini_client
    if _gemini_client is not None:
        await _gemini_client.close()
        _gemini_client = None
