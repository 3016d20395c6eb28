"""HTTP API for the IMEI scanning endpoint.

Endpoints:
    GET  /             → Liveness text
    GET  /health       → Mode and provider info (JSON)
    POST /scan-imeis   → Scan a label photo, return the extracted IMEI JSON
    POST /gemini-proxy → Alias of /scan-imeis
"""

from __future__ import annotations

import json
import logging
from typing import Any

from aiohttp import web

from .config import ImeiProxyConfig
from .exceptions import (
    MalformedResponseError,
    MissingCredentialError,
    MissingInputError,
    ProviderError,
    ProviderTransportError,
)
from .extraction.factory import create_provider
from .extraction.payload import payload_from_body
from .extraction.providers.base import VisionProvider
from .extraction.scanner import ImeiScanner

logger = logging.getLogger("imei-proxy")

LIVENESS_TEXT = "IMEI Gemini Backend is running."

CONFIG_KEY = web.AppKey("config", ImeiProxyConfig)
PROVIDER_KEY = web.AppKey("provider", VisionProvider)
SCANNER_KEY = web.AppKey("scanner", ImeiScanner)


def _json_error(status: int, code: str, message: str) -> web.Response:
    """Consistent JSON error payload: ``{"error": ..., "code": ...}``."""
    return web.json_response({"error": message, "code": code}, status=status)


def create_app(
    config: ImeiProxyConfig,
    provider: VisionProvider | None = None,
) -> web.Application:
    """Create the aiohttp application.

    Args:
        config: Immutable configuration built once at startup.
        provider: Vision provider to use. Defaults to a GeminiProvider
            built from ``config.provider`` when an API key is configured.
    """
    if provider is None:
        provider = create_provider(config)

    routes = web.RouteTableDef()

    @routes.get("/")
    async def index(request: web.Request) -> web.Response:
        return web.Response(text=LIVENESS_TEXT)

    @routes.get("/health")
    async def health(request: web.Request) -> web.Response:
        scanner = request.app.get(SCANNER_KEY)
        provider_info: dict[str, Any] = {"configured": scanner is not None}
        if scanner is not None:
            provider_info.update(scanner.provider_info)
        return web.json_response(
            {
                "status": "ok",
                "mode": config.extraction.mode.value,
                "on_missing_field": config.extraction.on_missing_field.value,
                "provider": provider_info,
            }
        )

    @routes.post("/scan-imeis")
    @routes.post("/gemini-proxy")
    async def scan_imeis(request: web.Request) -> web.Response:
        """Extract IMEI numbers from ``{"base64Image": ...}``."""
        scanner = request.app.get(SCANNER_KEY)
        if not config.provider.api_key or scanner is None:
            err = MissingCredentialError("Missing API key")
            logger.error("Scan rejected: %s", err)
            return _json_error(500, "missing_credential", str(err))

        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _json_error(400, "invalid_json", "Invalid JSON body")
        if not isinstance(body, dict):
            return _json_error(400, "invalid_json", "Request body must be a JSON object")

        try:
            payload = payload_from_body(
                body,
                config.extraction.mode,
                config.extraction.json_response,
            )
        except MissingInputError as e:
            return _json_error(400, "missing_input", str(e))

        try:
            result = await scanner.scan_payload(payload)
        except MalformedResponseError as e:
            logger.error("Final error: %s (raw: %r)", e, e.raw_text)
            return _json_error(500, "malformed_response", str(e))
        except ProviderError as e:
            logger.error("Final error: %s (status %s)", e, e.status)
            return _json_error(500, "provider_error", str(e))
        except ProviderTransportError as e:
            logger.error("Final error: %s", e)
            return _json_error(500, "provider_unreachable", str(e))
        except Exception as e:
            logger.exception("Unexpected scan failure")
            return _json_error(500, "internal_error", f"Scan failed: {e}")

        return web.json_response(result)

    # ── CORS middleware ──────────────────────────────────
    allowed_origin = config.server.allowed_origin

    @web.middleware
    async def cors_middleware(
        request: web.Request,
        handler: Any,
    ) -> web.StreamResponse:
        """Allow the configured origin ("*" = any caller)."""
        if request.method == "OPTIONS":
            resp = web.Response()
        else:
            resp = await handler(request)
        resp.headers["Access-Control-Allow-Origin"] = allowed_origin
        resp.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        resp.headers["Access-Control-Allow-Headers"] = "Content-Type"
        if allowed_origin != "*":
            resp.headers["Vary"] = "Origin"
        return resp

    async def _close_provider(app: web.Application) -> None:
        current = app.get(PROVIDER_KEY)
        if current is not None:
            await current.close()

    app = web.Application(
        middlewares=[cors_middleware],
        client_max_size=config.server.max_body_mb * 1024 * 1024,
    )
    app[CONFIG_KEY] = config
    if provider is not None:
        app[PROVIDER_KEY] = provider
        app[SCANNER_KEY] = ImeiScanner(provider, config.extraction)
    app.add_routes(routes)
    app.on_cleanup.append(_close_provider)
    return app
