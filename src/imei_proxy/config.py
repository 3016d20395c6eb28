"""Configuration loading and validation."""

from __future__ import annotations

import os
import re
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigError

EXTRACTION_STRATEGIES = ("fenced", "direct", "bracket")


class ExtractionMode(str, Enum):
    ARRAY = "array"  # list of {"imei": ...} records, fail fast
    OBJECT = "object"  # single record, missing imei handled by policy


class MissingFieldPolicy(str, Enum):
    FAIL = "fail"
    RETRY_ONCE = "retry_once"
    DEGRADE = "degrade"


class ProviderConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_key: str = ""
    model: str = "gemini-1.5-flash-latest"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout_seconds: float = Field(default=60.0, gt=0)  # Max time for one call


class ServerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=0, le=65535)
    allowed_origin: str = "*"  # Single origin, or "*" for any caller
    max_body_mb: int = Field(default=10, gt=0)


class ExtractionConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: ExtractionMode = ExtractionMode.ARRAY
    on_missing_field: MissingFieldPolicy = MissingFieldPolicy.RETRY_ONCE
    strategies: tuple[str, ...] = ("fenced", "direct", "bracket")
    json_response: bool = False  # Ask Gemini for application/json output

    @field_validator("strategies")
    @classmethod
    def _known_strategies(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("at least one extraction strategy is required")
        unknown = [name for name in value if name not in EXTRACTION_STRATEGIES]
        if unknown:
            raise ValueError(f"unknown extraction strategies: {unknown}")
        return value


class ImeiProxyConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)


def _interpolate_env_vars(text: str) -> str:
    """Replace ${VAR_NAME} with environment variable values."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, "")

    return re.sub(r"\$\{(\w+)\}", replacer, text)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _build(data: dict) -> ImeiProxyConfig:
    try:
        return ImeiProxyConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def config_from_env(environ: dict[str, str] | None = None) -> ImeiProxyConfig:
    """Build config from environment variables.

    Only variables that are set (and non-empty) override the defaults.
    """
    env = os.environ if environ is None else environ

    def pick(section: dict, key: str, var: str, convert=str) -> None:
        value = env.get(var, "")
        if value == "":
            return
        try:
            section[key] = convert(value)
        except ValueError as e:
            raise ConfigError(f"{var} has an invalid value: {value!r}") from e

    provider: dict = {"api_key": env.get("GEMINI_API_KEY", "").strip()}
    pick(provider, "model", "GEMINI_MODEL")
    pick(provider, "base_url", "GEMINI_BASE_URL")
    pick(provider, "timeout_seconds", "GEMINI_TIMEOUT_SECONDS", float)

    server: dict = {}
    pick(server, "host", "HOST")
    pick(server, "port", "PORT", int)
    pick(server, "allowed_origin", "ALLOWED_ORIGIN")
    pick(server, "max_body_mb", "MAX_BODY_MB", int)

    extraction: dict = {}
    pick(extraction, "mode", "EXTRACTION_MODE")
    pick(extraction, "on_missing_field", "ON_MISSING_FIELD")
    pick(extraction, "json_response", "JSON_RESPONSE", _env_bool)

    return _build(
        {"provider": provider, "server": server, "extraction": extraction}
    )


def load_config(path: str | Path | None = None) -> ImeiProxyConfig:
    """Load config from a YAML file, or from env vars when no file is given.

    The YAML file may reference environment variables as ${VAR}, so the
    API key never has to be written to disk.
    """
    if path is None:
        return config_from_env()

    path = Path(path).expanduser()
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    interpolated = _interpolate_env_vars(path.read_text())
    try:
        data = yaml.safe_load(interpolated)
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file is not valid YAML: {e}") from e
    if data is None:
        return ImeiProxyConfig()
    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a mapping at the top level")
    return _build(data)
