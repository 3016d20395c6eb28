"""IMEI scanner: runs the primary extraction and the missing-field policy."""

from __future__ import annotations

import logging
from typing import Any

from ..config import ExtractionConfig, ExtractionMode, MissingFieldPolicy
from ..exceptions import MalformedResponseError, ProviderError, ProviderTransportError
from .json_extract import extract_digits, extract_json
from .payload import ImageInput, Intent, ProviderPayload, build_payload
from .providers.base import VisionProvider, candidate_text

logger = logging.getLogger("imei-proxy")

REQUIRED_FIELD = "imei"


def _has_required_field(record: dict) -> bool:
    value = record.get(REQUIRED_FIELD)
    return value is not None and str(value).strip() != ""


class ImeiScanner:
    """Orchestrates provider calls for one scan request.

    Array mode fails fast on any extraction problem. Object mode inspects
    the parsed record for ``imei`` and applies ``on_missing_field``:
    ``fail`` raises, ``degrade`` returns the record as-is, ``retry_once``
    issues one targeted follow-up that reuses the primary image part.
    """

    def __init__(
        self,
        provider: VisionProvider,
        config: ExtractionConfig | None = None,
    ):
        self._provider = provider
        self._config = config or ExtractionConfig()

    @property
    def mode(self) -> ExtractionMode:
        return self._config.mode

    @property
    def provider_info(self) -> dict:
        return {
            "provider": self._provider.provider_name,
            "model": self._provider.model_name,
        }

    def build_primary(self, image: ImageInput) -> ProviderPayload:
        return build_payload(
            image,
            Intent.FULL,
            self._config.mode,
            self._config.json_response,
        )

    async def scan(self, image: ImageInput) -> Any:
        """Scan a caller-supplied image."""
        return await self.scan_payload(self.build_primary(image))

    async def scan_payload(self, payload: ProviderPayload) -> Any:
        """Run the primary attempt for an already-built payload."""
        response = await self._provider.generate_content(payload.to_dict())
        result = extract_json(
            candidate_text(response),
            self._config.mode,
            self._config.strategies,
        )
        if self._config.mode is ExtractionMode.ARRAY:
            return result
        if _has_required_field(result):
            return result
        return await self._complete_missing_field(result, payload)

    async def _complete_missing_field(
        self, record: dict, primary: ProviderPayload
    ) -> dict:
        policy = self._config.on_missing_field

        if policy is MissingFieldPolicy.FAIL:
            raise MalformedResponseError(
                f"Malformed AI response: missing '{REQUIRED_FIELD}'",
                raw_text=str(record),
            )

        if policy is MissingFieldPolicy.DEGRADE:
            logger.warning("No '%s' in AI response, returning as-is", REQUIRED_FIELD)
            return record

        logger.info("No '%s' in AI response, trying targeted fallback", REQUIRED_FIELD)
        targeted = build_payload(primary.image_part, Intent.TARGETED)
        try:
            response = await self._provider.generate_content(targeted.to_dict())
        except (ProviderError, ProviderTransportError) as e:
            logger.warning("Targeted fallback call failed: %s", e)
            return record

        digits = extract_digits(candidate_text(response))
        if not digits:
            logger.warning("Targeted fallback found no IMEI candidate")
            return record

        merged = dict(record)
        merged[REQUIRED_FIELD] = digits
        return merged
