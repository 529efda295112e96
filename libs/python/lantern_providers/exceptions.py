"""Exceptions raised by provider adapters."""

from __future__ import annotations


class ProviderError(RuntimeError):
    """Base error for provider failures."""


class ProviderConfigError(ProviderError):
    """Configuration is missing or invalid."""


class ProviderResponseError(ProviderError):
    """The provider answered with something we cannot use."""
