"""Tests for the cover-image client."""

import json

import httpx
import pytest

from lantern_schemas import BasicInfo, PromptSupport, QuestDraft

from services.creator.app.cover import CoverRequest, HttpCoverImageGenerator
from services.creator.app.errors import AuxiliaryGenerationError


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _request() -> CoverRequest:
    draft = QuestDraft(basic_info=BasicInfo(title="Harbour Cipher", description="A cipher washed ashore.", tags=["sea"]))
    draft.mint_id()
    return CoverRequest.from_draft(draft, tone="eerie", prompt_support=PromptSupport(with_whom="friends"))


def _generator(handler) -> HttpCoverImageGenerator:
    return HttpCoverImageGenerator(
        endpoint="https://cover.test/generate",
        api_key="token",
        transport=httpx.MockTransport(handler),
    )


def test_payload_uses_service_field_names() -> None:
    payload = _request().to_payload()
    assert payload["title"] == "Harbour Cipher"
    assert payload["premise"] == "A cipher washed ashore."
    assert payload["withWhom"] == "friends"
    assert payload["tone"] == "eerie"
    assert payload["questId"]


async def test_returns_image_url() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"imageUrl": "https://img.test/cover.png"})

    url = await _generator(handler).generate(_request())

    assert url == "https://img.test/cover.png"
    assert seen["auth"] == "Bearer token"
    assert seen["body"]["tags"] == ["sea"]


async def test_missing_fields_are_rejected_before_calling() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not be called
        raise AssertionError("cover service should not be called")

    with pytest.raises(AuxiliaryGenerationError, match="title"):
        await _generator(handler).generate(CoverRequest(quest_id="q", title="", premise="p"))


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500),
        httpx.Response(200, json={"status": "ok"}),
        httpx.Response(200, content=b"<html>"),
    ],
)
async def test_failures_raise_auxiliary_error(response) -> None:
    with pytest.raises(AuxiliaryGenerationError):
        await _generator(lambda request: response).generate(_request())
