"""Vision providers: the abstract interface and the Gemini REST client."""

from .base import VisionProvider, candidate_text
from .gemini import GeminiProvider

__all__ = [
    "VisionProvider",
    "GeminiProvider",
    "candidate_text",
]
