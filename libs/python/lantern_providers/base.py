"""Request/response types and the provider interface."""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, MutableMapping

from .exceptions import ProviderResponseError


@dataclass(slots=True)
class ProviderRequest:
    """Provider-agnostic generation request."""

    prompt: str
    system_prompt: str | None = None
    json_schema: Mapping[str, Any] | None = None
    temperature: float | None = None
    max_output_tokens: int | None = None
    top_p: float | None = None
    metadata: MutableMapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ProviderResponse:
    text: str
    raw: Any
    model: str
    prompt_tokens: int
    completion_tokens: int
    latency_ms: float | None = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(slots=True)
class ProviderCapabilities:
    supports_json_mode: bool = False
    max_input_tokens: int | None = None
    max_output_tokens: int | None = None


class LLMProvider(ABC):
    """Base class for concrete providers."""

    name: str

    @abstractmethod
    def capabilities(self) -> ProviderCapabilities:
        """Return capability metadata."""

    @abstractmethod
    async def generate(self, request: ProviderRequest) -> ProviderResponse:
        """Generate text (or JSON text when ``json_schema`` is set)."""


_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def decode_json_text(text: str) -> Any:
    """Decode a JSON answer, tolerating a Markdown code fence around it.

    Raises:
        ProviderResponseError: if the text is empty or not valid JSON.
    """

    body = (text or "").strip()
    fenced = _FENCE.match(body)
    if fenced:
        body = fenced.group(1)
    if not body:
        raise ProviderResponseError("Provider returned an empty answer")
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise ProviderResponseError("Provider answer was not valid JSON") from exc
