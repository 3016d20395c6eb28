"""Prompt templates for IMEI extraction."""

from __future__ import annotations

from ..config import ExtractionMode

FULL_ARRAY_PROMPT = """
From the image, extract barcode numbers that are explicitly labeled "IMEI 1".
Ignore all others like "IMEI 2", "S/N", "MEID".
Return a JSON array in this format:
[{"imei": "123456789012345"}, {"imei": "987654321098765"}]
"""

FULL_OBJECT_PROMPT = """
From the image, read the device label.
Extract the barcode number that is explicitly labeled "IMEI 1".
Ignore all others like "IMEI 2", "S/N", "MEID".
Return a single JSON object in this format, adding any other label fields you can read:
{"imei": "123456789012345", "model": "<model name if visible>"}
"""

TARGETED_PROMPT = """
Find the number next to the label "IMEI#" in the image.
Respond with only the digits of that number. No words, no labels, no JSON.
"""


def build_full_prompt(mode: ExtractionMode = ExtractionMode.ARRAY) -> str:
    """Prompt for the primary attempt in the given extraction mode."""
    if mode is ExtractionMode.OBJECT:
        return FULL_OBJECT_PROMPT
    return FULL_ARRAY_PROMPT


def build_targeted_prompt() -> str:
    """Prompt for the single-field follow-up attempt."""
    return TARGETED_PROMPT
