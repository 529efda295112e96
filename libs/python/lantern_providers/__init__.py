"""Provider abstraction over Gemini, OpenAI and an offline mock."""

from .base import LLMProvider, ProviderCapabilities, ProviderRequest, ProviderResponse, decode_json_text
from .config import ProviderConfig, ProviderSettings, load_provider_config, resolve_provider_config
from .exceptions import ProviderConfigError, ProviderError, ProviderResponseError
from .factory import ProviderFactory
from .mock import MockProvider

__all__ = [
    "LLMProvider",
    "ProviderCapabilities",
    "ProviderRequest",
    "ProviderResponse",
    "decode_json_text",
    "ProviderConfig",
    "ProviderSettings",
    "load_provider_config",
    "resolve_provider_config",
    "ProviderError",
    "ProviderConfigError",
    "ProviderResponseError",
    "ProviderFactory",
    "MockProvider",
]
