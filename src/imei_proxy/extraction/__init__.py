"""IMEI extraction: payload building, JSON extraction, retry policy."""

from .json_extract import extract_digits, extract_json
from .payload import ImageInput, Intent, ProviderPayload, build_payload, payload_from_body
from .scanner import ImeiScanner

__all__ = [
    "ImageInput",
    "ImeiScanner",
    "Intent",
    "ProviderPayload",
    "build_payload",
    "extract_digits",
    "extract_json",
    "payload_from_body",
]
