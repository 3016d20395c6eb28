"""Tests for ImeiScanner extraction and missing-field policies."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock

import pytest

from imei_proxy.config import ExtractionConfig, ExtractionMode, MissingFieldPolicy
from imei_proxy.exceptions import (
    MalformedResponseError,
    ProviderError,
    ProviderTransportError,
)
from imei_proxy.extraction.payload import ImageInput
from imei_proxy.extraction.prompts import TARGETED_PROMPT
from imei_proxy.extraction.providers.base import VisionProvider
from imei_proxy.extraction.providers.gemini import GeminiProvider
from imei_proxy.extraction.scanner import ImeiScanner


def _gemini_response(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class ScriptedProvider(VisionProvider):
    """Returns (or raises) the queued replies in order and records payloads."""

    def __init__(self, *replies: Any):
        self._replies = list(replies)
        self.payloads: list[dict] = []

    async def generate_content(self, payload: dict) -> dict:
        self.payloads.append(payload)
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def provider_name(self) -> str:
        return "scripted"

    @property
    def model_name(self) -> str:
        return "scripted-v1"


_IMAGE = ImageInput(data="aW1hZ2U=")


def _object_scanner(provider, policy=MissingFieldPolicy.RETRY_ONCE) -> ImeiScanner:
    return ImeiScanner(
        provider,
        ExtractionConfig(mode=ExtractionMode.OBJECT, on_missing_field=policy),
    )


@pytest.mark.asyncio
class TestArrayMode:
    async def test_returns_parsed_array(self):
        provider = ScriptedProvider(
            _gemini_response('[{"imei":"123456789012345"}]"')
        )
        scanner = ImeiScanner(provider)
        assert await scanner.scan(_IMAGE) == [{"imei": "123456789012345"}]
        assert len(provider.payloads) == 1

    async def test_malformed_text_raises(self):
        scanner = ImeiScanner(ScriptedProvider(_gemini_response("no json here")))
        with pytest.raises(MalformedResponseError):
            await scanner.scan(_IMAGE)

    async def test_no_candidates_raises_malformed(self):
        scanner = ImeiScanner(ScriptedProvider({"candidates": []}))
        with pytest.raises(MalformedResponseError):
            await scanner.scan(_IMAGE)

    async def test_provider_error_propagates(self):
        scanner = ImeiScanner(ScriptedProvider(ProviderError(503, "unavailable")))
        with pytest.raises(ProviderError) as exc_info:
            await scanner.scan(_IMAGE)
        assert exc_info.value.status == 503

    async def test_never_retries_in_array_mode(self):
        provider = ScriptedProvider(_gemini_response('[{"note": "no imei"}]'))
        scanner = ImeiScanner(provider)
        assert await scanner.scan(_IMAGE) == [{"note": "no imei"}]
        assert len(provider.payloads) == 1

    async def test_sends_image_inline(self):
        provider = ScriptedProvider(_gemini_response("[]"))
        await ImeiScanner(provider).scan(_IMAGE)
        parts = provider.payloads[0]["contents"][0]["parts"]
        assert parts[1]["inlineData"]["data"] == "aW1hZ2U="


@pytest.mark.asyncio
class TestObjectModeRetryOnce:
    async def test_complete_record_needs_no_retry(self):
        provider = ScriptedProvider(_gemini_response('{"imei": "123", "model": "X"}'))
        result = await _object_scanner(provider).scan(_IMAGE)
        assert result == {"imei": "123", "model": "X"}
        assert len(provider.payloads) == 1

    async def test_missing_field_merges_targeted_digits(self):
        provider = ScriptedProvider(
            _gemini_response('{"note":"ok"}'),
            _gemini_response("IMEI#: 356789-12-345678-9"),
        )
        result = await _object_scanner(provider).scan(_IMAGE)
        assert result == {"note": "ok", "imei": "356789123456789"}

    async def test_targeted_call_reuses_image_and_prompt(self):
        provider = ScriptedProvider(
            _gemini_response('{"note":"ok"}'),
            _gemini_response("356789123456789"),
        )
        await _object_scanner(provider).scan(_IMAGE)
        primary_parts = provider.payloads[0]["contents"][0]["parts"]
        retry_parts = provider.payloads[1]["contents"][0]["parts"]
        assert retry_parts[0]["text"] == TARGETED_PROMPT
        assert retry_parts[1] is primary_parts[1]

    async def test_empty_imei_value_triggers_retry(self):
        provider = ScriptedProvider(
            _gemini_response('{"imei": "", "model": "X"}'),
            _gemini_response("111"),
        )
        result = await _object_scanner(provider).scan(_IMAGE)
        assert result == {"imei": "111", "model": "X"}

    async def test_no_candidate_degrades(self):
        provider = ScriptedProvider(
            _gemini_response('{"note":"ok"}'),
            {"candidates": []},
        )
        result = await _object_scanner(provider).scan(_IMAGE)
        assert result == {"note": "ok"}
        assert len(provider.payloads) == 2

    async def test_no_digits_degrades(self):
        provider = ScriptedProvider(
            _gemini_response('{"note":"ok"}'),
            _gemini_response("I cannot see an IMEI# label."),
        )
        result = await _object_scanner(provider).scan(_IMAGE)
        assert "imei" not in result

    async def test_retry_provider_error_degrades(self):
        provider = ScriptedProvider(
            _gemini_response('{"note":"ok"}'),
            ProviderError(500, "boom"),
        )
        assert await _object_scanner(provider).scan(_IMAGE) == {"note": "ok"}

    async def test_retry_transport_error_degrades(self):
        provider = ScriptedProvider(
            _gemini_response('{"note":"ok"}'),
            ProviderTransportError("reset"),
        )
        assert await _object_scanner(provider).scan(_IMAGE) == {"note": "ok"}

    async def test_retry_non_json_body_degrades(self):
        provider = GeminiProvider(api_key="k")
        replies = [
            (_gemini_response('{"note":"ok"}'), None),
            (None, "<html>Service Unavailable</html>"),
        ]

        @asynccontextmanager
        async def mock_post(url, params=None, json=None):
            body, text = replies.pop(0)
            resp = AsyncMock()
            resp.status = 200
            if body is None:
                resp.json.side_effect = ValueError("Expecting value")
            else:
                resp.json.return_value = body
            resp.text.return_value = text or ""
            yield resp

        session = AsyncMock()
        session.post = mock_post
        provider._session = session

        assert await _object_scanner(provider).scan(_IMAGE) == {"note": "ok"}
        assert replies == []

    async def test_first_attempt_malformed_still_fails(self):
        provider = ScriptedProvider(_gemini_response("nothing useful"))
        with pytest.raises(MalformedResponseError):
            await _object_scanner(provider).scan(_IMAGE)
        assert len(provider.payloads) == 1

    async def test_fallback_is_logged(self, caplog):
        provider = ScriptedProvider(
            _gemini_response('{"note":"ok"}'),
            {"candidates": []},
        )
        with caplog.at_level("INFO", logger="imei-proxy"):
            await _object_scanner(provider).scan(_IMAGE)
        messages = [r.getMessage() for r in caplog.records]
        assert any("targeted fallback" in m for m in messages)
        assert any("no IMEI candidate" in m for m in messages)


@pytest.mark.asyncio
class TestObjectModeOtherPolicies:
    async def test_fail_policy_raises(self):
        provider = ScriptedProvider(_gemini_response('{"note":"ok"}'))
        scanner = _object_scanner(provider, MissingFieldPolicy.FAIL)
        with pytest.raises(MalformedResponseError) as exc_info:
            await scanner.scan(_IMAGE)
        assert "Malformed" in str(exc_info.value)
        assert len(provider.payloads) == 1

    async def test_degrade_policy_skips_retry(self):
        provider = ScriptedProvider(_gemini_response('{"note":"ok"}'))
        scanner = _object_scanner(provider, MissingFieldPolicy.DEGRADE)
        assert await scanner.scan(_IMAGE) == {"note": "ok"}
        assert len(provider.payloads) == 1


class TestProviderInfo:
    def test_reports_provider_and_model(self):
        scanner = ImeiScanner(ScriptedProvider())
        assert scanner.provider_info == {
            "provider": "scripted",
            "model": "scripted-v1",
        }
        assert scanner.mode is ExtractionMode.ARRAY
