"""Tests for the hosted workflow client using an in-process HTTP transport."""

import json

import httpx
import pytest

from lantern_schemas import GenerationRequest

from services.creator.app.pipeline import (
    PipelineCallbacks,
    PipelineError,
    WorkflowPipeline,
    build_workflow_inputs,
    parse_pipeline_output,
)
from tests.utils.payloads import pipeline_payload, spot_payload


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def anyio_backend():
    return "asyncio"


class _Recorder:
    def __init__(self) -> None:
        self.events: list[tuple] = []

    def callbacks(self) -> PipelineCallbacks:
        return PipelineCallbacks(
            on_progress=lambda progress: self.events.append(("progress", progress.phase, progress.progress)),
            on_plot_complete=lambda plot: self.events.append(("plot", plot.title)),
            on_spot_complete=lambda spot, index: self.events.append(("spot", index)),
        )

    def spots(self) -> list[int]:
        return [event[1] for event in self.events if event[0] == "spot"]


def _pipeline(handler, mode: str = "blocking") -> WorkflowPipeline:
    return WorkflowPipeline(
        api_key="secret",
        endpoint="https://workflow.test/run",
        response_mode=mode,
        timeout_seconds=5,
        transport=httpx.MockTransport(handler),
    )


def _sse(*events: dict) -> bytes:
    return "".join(f"data: {json.dumps(event)}\n\n" for event in events).encode()


def test_inputs_are_flattened() -> None:
    request = GenerationRequest.model_validate(
        {
            "prompt": "Harbour mystery",
            "theme_tags": ["sea", "cipher"],
            "center_location": {"lat": 35.1, "lng": 139.2},
            "prompt_support": {"withWhom": "friends"},
        }
    )
    inputs = build_workflow_inputs(request)
    assert inputs["theme_tags"] == "sea,cipher"
    assert inputs["spot_count"] == 7
    assert inputs["center_lat"] == "35.1"
    assert inputs["with_whom"] == "friends"
    assert inputs["radius_km"] == "1"


async def test_blocking_run_replays_callbacks() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"status": "succeeded", "outputs": pipeline_payload(5)}})

    recorder = _Recorder()
    result = await _pipeline(handler).run(GenerationRequest(prompt="Harbour"), recorder.callbacks())

    assert seen["auth"] == "Bearer secret"
    assert seen["body"]["response_mode"] == "blocking"
    assert seen["body"]["inputs"]["prompt"] == "Harbour"
    assert result.creator_payload.quest_title == "The Harbour Cipher"
    assert ("plot", "The Harbour Cipher") in recorder.events
    assert recorder.spots() == [0, 1, 2, 3, 4]
    assert recorder.events[-1] == ("progress", "validation", 100)


async def test_blocking_run_accepts_wrapped_json_string() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        outputs = {"result": json.dumps(pipeline_payload(5))}
        return httpx.Response(200, json={"data": {"status": "succeeded", "outputs": outputs}})

    result = await _pipeline(handler).run(GenerationRequest(prompt="Wrapped"), PipelineCallbacks())
    assert len(result.creator_payload.spots) == 5


async def test_failed_status_raises_with_workflow_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": {"status": "failed", "error": "Quality check rejected the quest"}})

    with pytest.raises(PipelineError, match="Quality check rejected the quest"):
        await _pipeline(handler).run(GenerationRequest(prompt="Rejected"), PipelineCallbacks())


async def test_http_error_status_raises() -> None:
    with pytest.raises(PipelineError, match="HTTP 503"):
        await _pipeline(lambda request: httpx.Response(503)).run(GenerationRequest(prompt="Down"), PipelineCallbacks())


async def test_missing_fields_are_rejected() -> None:
    payload = pipeline_payload(5)
    payload["creator_payload"]["spots"] = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": {"status": "succeeded", "outputs": payload}})

    with pytest.raises(PipelineError, match="No spots"):
        await _pipeline(handler).run(GenerationRequest(prompt="Empty"), PipelineCallbacks())


async def test_streaming_forwards_nodes_and_replays_the_rest() -> None:
    payload = pipeline_payload(5)
    body = _sse(
        {"event": "node_started", "data": {"node_id": "plot_writer"}},
        {
            "event": "node_finished",
            "data": {"node_id": "plot_writer", "outputs": {"main_plot": json.dumps(payload["creator_payload"]["main_plot"])}},
        },
        {"event": "node_started", "data": {"node_id": "spot_puzzle", "index": 3}},
        {"event": "node_finished", "data": {"node_id": "spot_puzzle", "index": 3, "outputs": {"spot": spot_payload(3)}}},
        {"event": "workflow_finished", "data": {"status": "succeeded", "outputs": payload}},
    )

    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content)["response_mode"] == "streaming"
        return httpx.Response(200, content=body, headers={"Content-Type": "text/event-stream"})

    recorder = _Recorder()
    await _pipeline(handler, mode="streaming").run(GenerationRequest(prompt="Stream"), recorder.callbacks())

    assert [event for event in recorder.events if event[0] == "plot"] == [("plot", "The Harbour Cipher")]
    assert recorder.spots() == [3, 0, 1, 2, 4]


async def test_stream_error_event_raises() -> None:
    body = _sse({"event": "error", "message": "Out of credits"})

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=body)

    with pytest.raises(PipelineError, match="Out of credits"):
        await _pipeline(handler, mode="streaming").run(GenerationRequest(prompt="Broke"), PipelineCallbacks())


def test_constructor_validates_configuration() -> None:
    with pytest.raises(PipelineError):
        WorkflowPipeline(api_key="")
    with pytest.raises(PipelineError):
        WorkflowPipeline(api_key="key", response_mode="chunked")


def test_parse_accepts_camel_case_keys() -> None:
    payload = pipeline_payload(5)
    camel = {"playerPreview": payload["player_preview"], "creatorPayload": payload["creator_payload"]}
    assert parse_pipeline_output(json.dumps(camel)).player_preview.title == "The Harbour Cipher"


def test_parse_rejects_missing_title() -> None:
    payload = pipeline_payload(5)
    payload["creator_payload"]["quest_title"] = ""
    with pytest.raises(PipelineError, match="quest_title"):
        parse_pipeline_output(payload)
