"""Callback contract between the orchestrator and a generation pipeline."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from pydantic import ValidationError as PydanticValidationError

from lantern_schemas import GenerationRequest, MainPlot, PipelineProgress, PipelineResult, PipelineScene


class PipelineError(RuntimeError):
    """The pipeline rejected the run or produced output we cannot use."""


def _ignore(*_args: Any) -> None:
    return None


@dataclass
class PipelineCallbacks:
    """Hooks invoked synchronously, in emission order, while a run is in flight."""

    on_progress: Callable[[PipelineProgress], None] = _ignore
    on_plot_complete: Callable[[MainPlot], None] = _ignore
    on_spot_complete: Callable[[PipelineScene, int], None] = _ignore


class GenerationPipeline(ABC):
    name: str

    @abstractmethod
    async def run(self, request: GenerationRequest, callbacks: PipelineCallbacks) -> PipelineResult:
        """Run one generation and resolve with the final dual output."""


def parse_pipeline_output(payload: Any) -> PipelineResult:
    """Validate a raw pipeline output into a :class:`PipelineResult`.

    Accepts the result itself, a mapping, or a JSON string. A mapping whose only
    useful content sits under ``result`` is unwrapped first.
    """

    if isinstance(payload, PipelineResult):
        return payload
    if isinstance(payload, (str, bytes)):
        payload = _loads(payload)
    if not isinstance(payload, Mapping):
        raise PipelineError("Pipeline output is empty or not an object")

    if "result" in payload and not _has_key(payload, "player_preview", "playerPreview"):
        inner = payload["result"]
        payload = _loads(inner) if isinstance(inner, (str, bytes)) else inner
        if not isinstance(payload, Mapping):
            raise PipelineError("Pipeline result is not an object")

    if not _has_key(payload, "player_preview", "playerPreview"):
        raise PipelineError("Missing player_preview in pipeline output")
    if not _has_key(payload, "creator_payload", "creatorPayload"):
        raise PipelineError("Missing creator_payload in pipeline output")

    try:
        result = PipelineResult.model_validate(payload)
    except PydanticValidationError as exc:
        raise PipelineError(f"Pipeline output failed validation: {describe_validation_error(exc)}") from exc

    if not result.creator_payload.spots:
        raise PipelineError("No spots in creator_payload")
    if not result.creator_payload.quest_title:
        raise PipelineError("Missing quest_title in creator_payload")
    return result


def describe_validation_error(exc: PydanticValidationError) -> str:
    """First error as ``loc.path: message``, plus a count of the rest."""

    errors = exc.errors()
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
    text = f"{location}: {first.get('msg', 'invalid value')}"
    if len(errors) > 1:
        text += f" (and {len(errors) - 1} more)"
    return text


def _has_key(payload: Mapping[str, Any], *names: str) -> bool:
    return any(payload.get(name) for name in names)


def _loads(raw: str | bytes) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise PipelineError("Pipeline result was not valid JSON") from exc
