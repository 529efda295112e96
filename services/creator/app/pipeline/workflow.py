"""HTTP client for the hosted generation workflow (Dify-style ``/workflows/run`` API)."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx
from pydantic import ValidationError as PydanticValidationError

from lantern_schemas import GenerationPhase, GenerationRequest, MainPlot, PipelineProgress, PipelineResult, PipelineScene

from .base import GenerationPipeline, PipelineCallbacks, PipelineError, parse_pipeline_output

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.dify.ai/v1/workflows/run"
DEFAULT_TIMEOUT_SECONDS = 300.0
RESPONSE_MODES = ("blocking", "streaming")


@dataclass
class _Delivered:
    """What the stream already reported, so the final replay skips it."""

    plot: bool = False
    spots: set[int] = field(default_factory=set)


def build_workflow_inputs(request: GenerationRequest) -> dict[str, str | int]:
    """Flatten a request into the workflow's input variables.

    The workflow only accepts scalar inputs, so tags are comma-joined, coordinates
    are stringified and absent optional values become empty strings.
    """

    support = request.prompt_support
    center = request.center
    return {
        "prompt": request.prompt,
        "difficulty": request.difficulty.value,
        "spot_count": request.scene_count,
        "theme_tags": ",".join(request.theme_tags),
        "genre_support": request.genre_support,
        "tone_support": request.tone_support,
        "protagonist": support.protagonist if support else "",
        "objective": support.objective if support else "",
        "ending": support.ending if support else "",
        "when": support.when if support else "",
        "where": support.where if support else "",
        "purpose": support.purpose if support else "",
        "with_whom": support.with_whom if support else "",
        "center_lat": str(center.lat) if center else "",
        "center_lng": str(center.lng) if center else "",
        "radius_km": f"{request.radius_km:g}",
    }


def phase_for_node(node_id: str, index: int | None) -> PipelineProgress:
    """Map a workflow node id onto the progress phase it represents."""

    node = node_id.lower()
    if "puzzle" in node:
        scene_index = index or 0
        return PipelineProgress(
            phase=GenerationPhase.PUZZLE_DESIGN.value,
            progress=min(85, 50 + scene_index * 5),
            scene_index=scene_index,
        )
    if "plot" in node or "story" in node:
        return PipelineProgress(phase=GenerationPhase.PLOT_CREATION.value, progress=30)
    if "validat" in node:
        return PipelineProgress(phase=GenerationPhase.VALIDATION.value, progress=90)
    if "spot" in node or "generate" in node:
        return PipelineProgress(phase=GenerationPhase.MOTIF_SELECTION.value, progress=10)
    return PipelineProgress(phase=GenerationPhase.MOTIF_SELECTION.value, progress=0)


class WorkflowPipeline(GenerationPipeline):
    """Runs the hosted workflow in blocking or streaming mode.

    Blocking runs report nothing until the end, so plot and scene callbacks are
    replayed from the final payload. Streaming runs forward node events as they
    arrive and only replay what the stream did not deliver.
    """

    name = "workflow"

    def __init__(
        self,
        *,
        api_key: str,
        endpoint: str = DEFAULT_ENDPOINT,
        user: str = "quest-lantern",
        response_mode: str = "blocking",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise PipelineError("Workflow API key is not configured")
        if response_mode not in RESPONSE_MODES:
            raise PipelineError(f"Unsupported response mode: {response_mode}")
        self._api_key = api_key
        self._endpoint = endpoint
        self._user = user
        self._mode = response_mode
        self._timeout = timeout_seconds
        self._transport = transport

    async def run(self, request: GenerationRequest, callbacks: PipelineCallbacks) -> PipelineResult:
        body = {"inputs": build_workflow_inputs(request), "response_mode": self._mode, "user": self._user}
        headers = {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}
        delivered = _Delivered()

        callbacks.on_progress(PipelineProgress(phase=GenerationPhase.MOTIF_SELECTION.value, progress=5))
        logger.info("Submitting workflow run", extra={"response_mode": self._mode})

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                if self._mode == "streaming":
                    outputs = await asyncio.wait_for(
                        self._stream(client, body, headers, callbacks, delivered), self._timeout
                    )
                else:
                    outputs = await asyncio.wait_for(self._block(client, body, headers), self._timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise PipelineError(f"Workflow timed out after {self._timeout:g}s") from exc
        except httpx.HTTPStatusError as exc:
            raise PipelineError(f"Workflow request failed with HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise PipelineError(f"Workflow request failed: {exc}") from exc

        result = parse_pipeline_output(outputs)
        self._replay(result, callbacks, delivered)
        callbacks.on_progress(PipelineProgress(phase=GenerationPhase.VALIDATION.value, progress=100))
        return result

    async def _block(self, client: httpx.AsyncClient, body: dict, headers: dict) -> Any:
        response = await client.post(self._endpoint, json=body, headers=headers)
        response.raise_for_status()
        data = (response.json() or {}).get("data") or {}
        if data.get("status") == "failed":
            raise PipelineError(data.get("error") or "Workflow run failed")
        return data.get("outputs")

    async def _stream(
        self,
        client: httpx.AsyncClient,
        body: dict,
        headers: dict,
        callbacks: PipelineCallbacks,
        delivered: _Delivered,
    ) -> Any:
        async with client.stream("POST", self._endpoint, json=body, headers=headers) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                try:
                    event = json.loads(line[5:].strip())
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed workflow event", extra={"raw": line[:200]})
                    continue
                kind = event.get("event")
                data = event.get("data") or {}
                if kind == "node_started":
                    callbacks.on_progress(phase_for_node(data.get("node_id") or "", data.get("index")))
                elif kind == "node_finished":
                    self._forward_node(data, callbacks, delivered)
                elif kind == "workflow_finished":
                    if data.get("status") == "failed":
                        raise PipelineError(data.get("error") or "Workflow run failed")
                    return data.get("outputs")
                elif kind == "error":
                    raise PipelineError(event.get("message") or data.get("error") or "Workflow error")
        raise PipelineError("Workflow stream ended without a result")

    @staticmethod
    def _forward_node(data: Mapping[str, Any], callbacks: PipelineCallbacks, delivered: _Delivered) -> None:
        node_id = (data.get("node_id") or "").lower()
        outputs = data.get("outputs") or {}
        try:
            if "plot" in node_id and outputs.get("main_plot"):
                callbacks.on_plot_complete(MainPlot.model_validate(_maybe_json(outputs["main_plot"])))
                delivered.plot = True
            if "spot" in node_id and outputs.get("spot"):
                index = int(data.get("index") or 0)
                callbacks.on_spot_complete(PipelineScene.model_validate(_maybe_json(outputs["spot"])), index)
                delivered.spots.add(index)
        except (PydanticValidationError, PipelineError):
            # The final payload carries the same content; replay will fill the gap.
            logger.warning("Ignoring unparseable node output", extra={"node_id": node_id})

    @staticmethod
    def _replay(result: PipelineResult, callbacks: PipelineCallbacks, delivered: _Delivered) -> None:
        creator = result.creator_payload
        total = len(creator.spots)
        if not delivered.plot:
            callbacks.on_progress(PipelineProgress(phase=GenerationPhase.PLOT_CREATION.value, progress=35))
            plot = creator.main_plot.model_copy(update={"title": creator.main_plot.title or creator.quest_title})
            callbacks.on_plot_complete(plot)
        for index, spot in enumerate(creator.spots):
            if index in delivered.spots:
                continue
            callbacks.on_progress(
                PipelineProgress(
                    phase=GenerationPhase.PUZZLE_DESIGN.value,
                    progress=40 + (index * 40) // max(total, 1),
                    scene_index=index,
                    scene_total=total,
                )
            )
            callbacks.on_spot_complete(spot, index)


def _maybe_json(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError as exc:
            raise PipelineError("Node output was not valid JSON") from exc
    return value
