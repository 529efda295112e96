"""Google Gemini provider built on the google-genai SDK."""

from __future__ import annotations

import time
from typing import Any, Dict

from google import genai
from google.genai import types

from .base import LLMProvider, ProviderCapabilities, ProviderRequest, ProviderResponse
from .config import ProviderConfig
from .exceptions import ProviderResponseError


class GeminiProvider(LLMProvider):
    name = "gemini"

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config
        self._client = genai.Client(api_key=config.api_key)

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            supports_json_mode=True,
            max_output_tokens=self._config.settings.max_output_tokens,
        )

    async def generate(self, request: ProviderRequest) -> ProviderResponse:
        settings = self._config.settings
        options: Dict[str, Any] = {
            "temperature": request.temperature if request.temperature is not None else settings.temperature,
        }
        if request.system_prompt:
            options["system_instruction"] = request.system_prompt

        top_p = request.top_p if request.top_p is not None else settings.top_p
        if top_p is not None:
            options["top_p"] = top_p

        max_output = request.max_output_tokens or settings.max_output_tokens
        if max_output:
            options["max_output_tokens"] = max_output

        if request.json_schema:
            options["response_mime_type"] = "application/json"
            options["response_json_schema"] = dict(request.json_schema)
        elif settings.json_mode:
            options["response_mime_type"] = "application/json"

        start = time.perf_counter()
        response = await self._client.aio.models.generate_content(
            model=self._config.model,
            contents=request.prompt,
            config=types.GenerateContentConfig(**options),
        )
        latency_ms = (time.perf_counter() - start) * 1000

        text = getattr(response, "text", None)
        if not text:
            raise ProviderResponseError("Gemini response missing text content")

        usage = getattr(response, "usage_metadata", None)
        return ProviderResponse(
            text=text,
            raw=response,
            model=self._config.model,
            prompt_tokens=(getattr(usage, "prompt_token_count", None) or 0) if usage else 0,
            completion_tokens=(getattr(usage, "candidates_token_count", None) or 0) if usage else 0,
            latency_ms=latency_ms,
        )
