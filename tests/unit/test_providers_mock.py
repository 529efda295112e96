"""Tests for the mock provider and factory."""

import asyncio
import json

import pytest

from lantern_providers import (
    MockProvider,
    ProviderConfig,
    ProviderConfigError,
    ProviderFactory,
    ProviderRequest,
    ProviderSettings,
)


def test_mock_generate_sync() -> None:
    provider = MockProvider()
    response = asyncio.run(provider.generate(ProviderRequest(prompt="Hello world")))
    assert response.model == "mock"
    assert "Mock response" in response.text
    assert response.prompt_tokens > 0


def test_factory_creates_mock_when_config_provided() -> None:
    config = ProviderConfig(name="mock", api_key="mock", model="mock", settings=ProviderSettings())
    assert isinstance(ProviderFactory.create(config), MockProvider)


def test_factory_rejects_unknown_provider() -> None:
    config = ProviderConfig(name="carrier-pigeon", api_key="k", model="m")
    with pytest.raises(ProviderConfigError):
        ProviderFactory.create(config)


def test_mock_json_mode() -> None:
    provider = MockProvider()
    response = asyncio.run(provider.generate(ProviderRequest(prompt="List facts", json_schema={"type": "object"})))
    assert json.loads(response.text)["echo"] == "List facts"


def test_mock_dialogue_names_the_scene() -> None:
    provider = MockProvider()
    request = ProviderRequest(
        prompt="Write dialogue",
        json_schema={"type": "object"},
        metadata={"task": "dialogue", "spot_name": "Old Pier", "speaker": "Mira"},
    )
    lines = json.loads(asyncio.run(provider.generate(request)).text)["lines"]
    assert lines[0]["speakerType"] == "narrator"
    assert lines[1]["speakerName"] == "Mira"
    assert "Old Pier" in lines[1]["text"]
