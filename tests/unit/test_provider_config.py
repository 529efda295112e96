"""Tests for provider configuration loading."""

import os

import pytest

from lantern_providers import ProviderConfigError, load_provider_config, resolve_provider_config
from lantern_providers.config import DEFAULT_PROVIDER, PROVIDER_ENV_VAR


@pytest.fixture(autouse=True)
def clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("OPENAI_") or key.startswith("GEMINI_") or key.startswith("MYPROV_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv(PROVIDER_ENV_VAR, raising=False)


def test_load_openai_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(PROVIDER_ENV_VAR, "openai")
    monkeypatch.setenv("OPENAI_API_KEY", "key")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-4.1")
    cfg = load_provider_config()
    assert cfg.name == "openai"
    assert cfg.api_key == "key"
    assert cfg.settings.temperature == 0.7


def test_missing_variables_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(PROVIDER_ENV_VAR, "gemini")
    with pytest.raises(ProviderConfigError):
        load_provider_config()


def test_custom_prefix_with_tuning(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MYPROV_API_KEY", "abc")
    monkeypatch.setenv("MYPROV_MODEL", "model")
    monkeypatch.setenv("MYPROV_TEMPERATURE", "0.4")
    monkeypatch.setenv("MYPROV_MAX_OUTPUT_TOKENS", "512")
    monkeypatch.setenv("MYPROV_JSON_MODE", "yes")
    cfg = load_provider_config(prefix="myprov")
    assert cfg.name == "myprov"
    assert cfg.settings.temperature == 0.4
    assert cfg.settings.max_output_tokens == 512
    assert cfg.settings.json_mode is True


def test_malformed_number_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MYPROV_API_KEY", "abc")
    monkeypatch.setenv("MYPROV_MODEL", "model")
    monkeypatch.setenv("MYPROV_TOP_P", "lots")
    with pytest.raises(ProviderConfigError):
        load_provider_config(prefix="myprov")


def test_default_provider_resolves_to_mock() -> None:
    assert DEFAULT_PROVIDER == "mock"
    cfg = resolve_provider_config()
    assert cfg.name == "mock"
