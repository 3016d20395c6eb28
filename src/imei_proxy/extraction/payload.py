"""Request builder: assembles Gemini ``generateContent`` payloads.

A payload is an ordered list of parts, text first and inline image second:

    {"contents": [{"parts": [
        {"text": "<prompt>"},
        {"inlineData": {"data": "<base64>", "mimeType": "image/jpeg"}},
    ]}]}

The targeted follow-up reuses the image part object of the primary
payload, so both attempts send byte-identical image data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..config import ExtractionMode
from ..exceptions import MissingInputError
from .prompts import build_full_prompt, build_targeted_prompt

DEFAULT_MIME_TYPE = "image/jpeg"

_INLINE_KEYS = ("inlineData", "inline_data")

# Request fields of this proxy that Gemini would reject as unknown
_CALLER_ONLY_KEYS = ("contents", "base64Image", "mimeType")


class Intent(str, Enum):
    FULL = "full"
    TARGETED = "targeted"


@dataclass(frozen=True)
class ImageInput:
    """Caller-supplied image: base64 data plus its MIME type."""

    data: str
    mime_type: str = DEFAULT_MIME_TYPE

    def to_part(self) -> dict[str, Any]:
        return {"inlineData": {"data": self.data, "mimeType": self.mime_type}}


@dataclass
class ProviderPayload:
    parts: list[dict[str, Any]]
    image_part: dict[str, Any]
    generation_config: dict[str, Any] | None = None
    intent: Intent = Intent.FULL
    extra: dict[str, Any] = field(default_factory=dict)
    contents: list[dict[str, Any]] | None = None  # Caller-supplied, sent as-is

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the JSON body Gemini expects."""
        body: dict[str, Any] = dict(self.extra)
        if self.contents is not None:
            body["contents"] = self.contents
        else:
            body["contents"] = [{"parts": self.parts}]
        if self.generation_config:
            body["generationConfig"] = self.generation_config
        return body


def build_payload(
    image: ImageInput | dict[str, Any],
    intent: Intent = Intent.FULL,
    mode: ExtractionMode = ExtractionMode.ARRAY,
    json_response: bool = False,
) -> ProviderPayload:
    """Build the payload for one attempt.

    *image* is either an ImageInput or an existing inline image part; an
    existing part is embedded as-is (same object), which is how the
    targeted retry reuses the primary image.
    """
    image_part = image.to_part() if isinstance(image, ImageInput) else image

    if intent is Intent.TARGETED:
        prompt = build_targeted_prompt()
        generation_config = None
    else:
        prompt = build_full_prompt(mode)
        generation_config = (
            {"responseMimeType": "application/json"} if json_response else None
        )

    return ProviderPayload(
        parts=[{"text": prompt}, image_part],
        image_part=image_part,
        generation_config=generation_config,
        intent=intent,
    )


def _find_image_part(contents: Any) -> tuple[list, dict] | None:
    """Locate the first inline image part in provider-shaped contents."""
    if not isinstance(contents, list):
        return None
    for content in contents:
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            continue
        for part in parts:
            if not isinstance(part, dict):
                continue
            for key in _INLINE_KEYS:
                inline = part.get(key)
                if isinstance(inline, dict) and inline.get("data"):
                    return parts, part
    return None


def payload_from_body(
    body: dict[str, Any],
    mode: ExtractionMode = ExtractionMode.ARRAY,
    json_response: bool = False,
) -> ProviderPayload:
    """Turn an inbound request body into the primary payload.

    Accepts ``{"base64Image": ..., "mimeType"?: ...}``, or a provider-shaped
    ``{"contents": [...]}`` body whose contents are forwarded unchanged.

    Raises MissingInputError when no image can be found.
    """
    image_data = body.get("base64Image")
    if image_data:
        if not isinstance(image_data, str):
            raise MissingInputError("Image data must be a base64 string")
        image = ImageInput(
            data=image_data,
            mime_type=body.get("mimeType") or DEFAULT_MIME_TYPE,
        )
        return build_payload(image, Intent.FULL, mode, json_response)

    found = _find_image_part(body.get("contents"))
    if found is None:
        raise MissingInputError("Image data missing")

    parts, image_part = found
    extra = {k: v for k, v in body.items() if k not in _CALLER_ONLY_KEYS}
    generation_config = None
    if json_response and "generationConfig" not in extra:
        generation_config = {"responseMimeType": "application/json"}
    return ProviderPayload(
        parts=parts,
        image_part=image_part,
        generation_config=generation_config,
        extra=extra,
        contents=body["contents"],
    )
