"""Deterministic provider for tests and offline development."""

from __future__ import annotations

import json
from typing import Any

from .base import LLMProvider, ProviderCapabilities, ProviderRequest, ProviderResponse
from .config import ProviderConfig

MOCK_TEXT = "Mock response generated offline."


class MockProvider(LLMProvider):
    """Returns canned output shaped by ``request.metadata``.

    Dialogue requests (``metadata["task"] == "dialogue"``) receive a two-line exchange
    naming the scene so callers can assert on the content.
    """

    name = "mock"

    def __init__(self, config: ProviderConfig | None = None) -> None:
        self._config = config or ProviderConfig(name="mock", api_key="mock", model="mock")

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(supports_json_mode=True, max_input_tokens=32000, max_output_tokens=2000)

    async def generate(self, request: ProviderRequest) -> ProviderResponse:
        payload: Any
        if request.metadata.get("task") == "dialogue":
            spot = request.metadata.get("spot_name") or "this place"
            speaker = request.metadata.get("speaker") or "Guide"
            payload = {
                "lines": [
                    {"speakerType": "narrator", "speakerName": "", "text": f"You arrive at {spot}."},
                    {"speakerType": "character", "speakerName": speaker, "text": f"Something about {spot} feels off."},
                ]
            }
            text = json.dumps(payload, ensure_ascii=False)
        elif request.json_schema:
            payload = {"message": MOCK_TEXT, "echo": request.prompt[:50]}
            text = json.dumps(payload)
        else:
            text = f"{MOCK_TEXT}\nPrompt: {request.prompt[:80]}"
            payload = text
        return ProviderResponse(
            text=text,
            raw={"mock": True, "payload": payload},
            model=self._config.model,
            prompt_tokens=len(request.prompt.split()),
            completion_tokens=len(text.split()),
            latency_ms=1.0,
        )
