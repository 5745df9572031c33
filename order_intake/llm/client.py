from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from ..models.config_models import LLMConfig

"""Text-generation client (Gemini-compatible generateContent endpoint).

One POST per call with the whole prompt in the body; the first candidate's
text is returned as-is. The API key is read from the environment variable
named in the config (populated from .env by the CLI via python-dotenv).
"""

__all__ = [
    "TextGenerationClient",
    "TextGenerationError",
]

logger = logging.getLogger(__name__)


class TextGenerationError(Exception):
    """Raised for transport errors, non-2xx responses and empty responses."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def rate_limited(self) -> bool:
        return self.status_code == 429


class TextGenerationClient:
    """Thin synchronous wrapper around the text-generation REST endpoint.

    Example usage:
        client = TextGenerationClient(LLMConfig())
        text = client.generate("Return JSON only: {...}")
    """

    def __init__(self, config: LLMConfig, http_client: httpx.Client | None = None) -> None:
        self._config = config
        self._http = http_client

    @property
    def api_key(self) -> str | None:
        return os.getenv(self._config.api_key_env)

    def _url(self) -> str:
        return f"{self._config.endpoint.rstrip('/')}/{self._config.model}:generateContent"

    def _post(self, payload: dict[str, Any], api_key: str) -> httpx.Response:
        if self._http is not None:
            return self._http.post(self._url(), params={"key": api_key}, json=payload)
        with httpx.Client(timeout=self._config.timeout_seconds) as client:
            return client.post(self._url(), params={"key": api_key}, json=payload)

    def generate(self, prompt: str) -> str:
        """Send ``prompt`` and return the generated text.

        Raises:
            TextGenerationError: missing API key, HTTP/transport failure, or no content
        """
        api_key = self.api_key
        if not api_key:
            raise TextGenerationError(f"{self._config.api_key_env} is not set")

        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        try:
            response = self._post(payload, api_key)
        except httpx.HTTPError as e:
            raise TextGenerationError(f"request failed: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            raise TextGenerationError(
                f"text generation error: {response.status_code} {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise TextGenerationError("no content in response") from e
