"""Vision provider abstraction."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class VisionProvider(ABC):
    """Abstract interface for the multimodal completion provider."""

    @abstractmethod
    async def generate_content(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Send a generateContent payload and return the parsed response body."""
        ...

    async def close(self) -> None:
        """Release network resources. Override in subclasses that hold any."""

    @property
    @abstractmethod
    def provider_name(self) -> str: ...

    @property
    @abstractmethod
    def model_name(self) -> str: ...


def candidate_text(response: dict[str, Any] | None) -> str:
    """Text of the first part of the first candidate, or "" when absent."""
    try:
        text = response["candidates"][0]["content"]["parts"][0].get("text")
    except (KeyError, IndexError, TypeError, AttributeError):
        return ""
    return text if isinstance(text, str) else ""
