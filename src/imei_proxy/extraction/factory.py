"""Vision provider factory: creates the configured provider instance."""

from __future__ import annotations

from ..config import ImeiProxyConfig
from .providers.base import VisionProvider
from .providers.gemini import GeminiProvider


def create_provider(config: ImeiProxyConfig) -> VisionProvider | None:
    """Create the Gemini provider, or None if no API key is configured."""
    p = config.provider
    if not p.api_key:
        return None
    return GeminiProvider(
        api_key=p.api_key,
        model=p.model,
        base_url=p.base_url,
        timeout_seconds=p.timeout_seconds,
    )
