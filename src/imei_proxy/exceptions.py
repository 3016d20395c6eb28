"""Custom exception hierarchy for imei-proxy.

All imei-proxy exceptions inherit from ImeiProxyError, allowing callers
to catch broad or specific errors:

    try:
        result = await scanner.scan(image)
    except MalformedResponseError as e:
        print(f"Unreadable completion: {e.raw_text!r}")
    except ImeiProxyError as e:
        print(f"imei-proxy error: {e}")
"""

from __future__ import annotations


class ImeiProxyError(Exception):
    """Base exception for all imei-proxy errors."""


class MissingCredentialError(ImeiProxyError):
    """Raised when no provider API key is configured."""


class MissingInputError(ImeiProxyError):
    """Raised when the caller did not supply an image."""


class ProviderError(ImeiProxyError):
    """Raised when the vision provider answers with a non-success status."""

    def __init__(self, status: int, body: str = "", message: str = ""):
        self.status = status
        self.body = body
        super().__init__(message or f"Gemini API failed: {status}")


class ProviderAuthError(ProviderError):
    """Raised when provider authentication fails (invalid API key)."""


class ProviderRateLimitError(ProviderError):
    """Raised when a provider rate-limits the request."""


class ProviderTransportError(ImeiProxyError):
    """Raised when the provider cannot be reached (DNS, timeout, reset)."""


class MalformedResponseError(ImeiProxyError):
    """Raised when provider text does not contain the expected JSON shape."""

    def __init__(self, message: str = "Malformed AI response.", raw_text: str = ""):
        self.raw_text = raw_text
        super().__init__(message)


class ConfigError(ImeiProxyError):
    """Raised when configuration is invalid or missing."""
