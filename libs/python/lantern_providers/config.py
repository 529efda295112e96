"""Provider configuration loaded from the environment."""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ProviderConfigError

PROVIDER_ENV_VAR = "LLM_PROVIDER"
DEFAULT_PROVIDER = "mock"


class ProviderSettings(BaseModel):
    """Default call parameters for a provider."""

    temperature: float = Field(0.7, ge=0, le=2)
    max_output_tokens: int | None = Field(None, ge=16)
    top_p: float | None = Field(None, ge=0, le=1)
    json_mode: bool = False


class ProviderConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    api_key: str
    model: str
    settings: ProviderSettings = Field(default_factory=ProviderSettings)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


def load_provider_config(prefix: str | None = None) -> ProviderConfig:
    """Build a :class:`ProviderConfig` from ``<PREFIX>_*`` environment variables.

    With prefix ``GEMINI`` the variables read are ``GEMINI_API_KEY``, ``GEMINI_MODEL``
    and the optional ``GEMINI_TEMPERATURE``, ``GEMINI_MAX_OUTPUT_TOKENS``,
    ``GEMINI_TOP_P`` and ``GEMINI_JSON_MODE``. When no prefix is given the provider
    named by ``LLM_PROVIDER`` is used.

    Raises:
        ProviderConfigError: if the key or model is missing or a numeric value is malformed.
    """

    env_prefix = (prefix or os.getenv(PROVIDER_ENV_VAR, DEFAULT_PROVIDER)).upper()

    def read_env(key: str, default: Any | None = None) -> Any:
        return os.getenv(f"{env_prefix}_{key}", default)

    api_key = read_env("API_KEY")
    model = read_env("MODEL")
    if not api_key or not model:
        raise ProviderConfigError(f"{env_prefix}_API_KEY and {env_prefix}_MODEL must both be set")

    try:
        temperature = float(read_env("TEMPERATURE", 0.7))
        max_output_raw = str(read_env("MAX_OUTPUT_TOKENS", "")).strip()
        max_output_tokens = int(max_output_raw) if max_output_raw else None
        top_p_raw = str(read_env("TOP_P", "")).strip()
        top_p = float(top_p_raw) if top_p_raw else None
    except ValueError as exc:
        raise ProviderConfigError(f"Malformed numeric setting for {env_prefix}") from exc

    settings = ProviderSettings(
        temperature=temperature,
        max_output_tokens=max_output_tokens if max_output_tokens and max_output_tokens > 0 else None,
        top_p=top_p,
        json_mode=_parse_bool(read_env("JSON_MODE", "false")),
    )
    return ProviderConfig(name=env_prefix.lower(), api_key=api_key, model=model, settings=settings)


def resolve_provider_config(name: str | None = None) -> ProviderConfig:
    """Return the config for ``name`` (or ``LLM_PROVIDER``), short-circuiting the mock."""

    provider_name = name or os.getenv(PROVIDER_ENV_VAR, DEFAULT_PROVIDER)
    if provider_name.lower() == "mock":
        return ProviderConfig(name="mock", api_key="mock", model="mock")
    return load_provider_config(prefix=provider_name)
