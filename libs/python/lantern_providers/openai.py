"""OpenAI chat-completions provider."""

from __future__ import annotations

import time
from typing import Any, Dict, List

from openai import AsyncOpenAI

from .base import LLMProvider, ProviderCapabilities, ProviderRequest, ProviderResponse
from .config import ProviderConfig
from .exceptions import ProviderResponseError


class OpenAIProvider(LLMProvider):
    name = "openai"

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config
        self._client = AsyncOpenAI(api_key=config.api_key)

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            supports_json_mode=True,
            max_output_tokens=self._config.settings.max_output_tokens,
        )

    async def generate(self, request: ProviderRequest) -> ProviderResponse:
        settings = self._config.settings
        messages: List[Dict[str, Any]] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        params: Dict[str, Any] = {
            "model": self._config.model,
            "messages": messages,
            "temperature": request.temperature if request.temperature is not None else settings.temperature,
        }
        top_p = request.top_p if request.top_p is not None else settings.top_p
        if top_p is not None:
            params["top_p"] = top_p
        max_output = request.max_output_tokens or settings.max_output_tokens
        if max_output:
            params["max_completion_tokens"] = max_output
        # Schemas here are loose (no additionalProperties: false), so strict
        # json_schema mode is not an option; plain JSON mode is.
        if request.json_schema or settings.json_mode:
            params["response_format"] = {"type": "json_object"}

        start = time.perf_counter()
        response = await self._client.chat.completions.create(**params)
        latency_ms = (time.perf_counter() - start) * 1000

        try:
            text = response.choices[0].message.content or ""
        except (IndexError, AttributeError) as err:
            raise ProviderResponseError("OpenAI response missing content") from err

        usage = getattr(response, "usage", None)
        return ProviderResponse(
            text=text,
            raw=response,
            model=response.model,
            prompt_tokens=getattr(usage, "prompt_tokens", 0) if usage else 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) if usage else 0,
            latency_ms=latency_ms,
        )
