"""Google Gemini provider over the public REST API.

POSTs the payload to ``{base_url}/models/{model}:generateContent`` and
returns the decoded body. Non-2xx answers raise ProviderError with the
status and raw body; network failures raise ProviderTransportError.
Nothing is retried here.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from ...exceptions import (
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitError,
    ProviderTransportError,
)
from .base import VisionProvider

logger = logging.getLogger("imei-proxy")

DEFAULT_MODEL = "gemini-1.5-flash-latest"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiProvider(VisionProvider):
    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 60.0,
    ):
        self._api_key = api_key
        self._model = model or DEFAULT_MODEL
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self._timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/models/{self._model}:generateContent"

    async def generate_content(self, payload: dict[str, Any]) -> dict[str, Any]:
        session = self._get_session()
        try:
            async with session.post(
                self.endpoint,
                params={"key": self._api_key},
                json=payload,
            ) as resp:
                if resp.status >= 300:
                    body = await resp.text()
                    logger.error("Gemini error: HTTP %s %s", resp.status, body)
                    raise _status_error(resp.status, body)
                try:
                    return await resp.json(content_type=None)
                except (ValueError, aiohttp.ContentTypeError):
                    body = await resp.text()
                    logger.error("Gemini returned a non-JSON body: %r", body)
                    raise ProviderError(
                        resp.status, body, "Gemini API returned a non-JSON body"
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Gemini transport failure: %r", e)
            raise ProviderTransportError(f"Gemini API unreachable: {e!r}") from e

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    @property
    def provider_name(self) -> str:
        return "google"

    @property
    def model_name(self) -> str:
        return self._model


def _status_error(status: int, body: str) -> ProviderError:
    if status in (401, 403):
        return ProviderAuthError(status, body)
    if status == 429:
        return ProviderRateLimitError(status, body)
    return ProviderError(status, body)
