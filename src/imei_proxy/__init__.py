"""imei-proxy: read IMEI labels from photos through Gemini."""

__version__ = "1.0.0"

from .exceptions import (
    ConfigError,
    ImeiProxyError,
    MalformedResponseError,
    MissingCredentialError,
    MissingInputError,
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitError,
    ProviderTransportError,
)

__all__ = [
    "__version__",
    "ImeiProxyError",
    "MissingCredentialError",
    "MissingInputError",
    "ProviderError",
    "ProviderAuthError",
    "ProviderRateLimitError",
    "ProviderTransportError",
    "MalformedResponseError",
    "ConfigError",
]
