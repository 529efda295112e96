"""Cover-image generation, consumed as a best-effort side effect."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

import httpx

from lantern_schemas import PromptSupport, QuestDraft

from .errors import AuxiliaryGenerationError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CoverRequest:
    quest_id: str
    title: str
    premise: str
    goal: str = ""
    area: str = ""
    tags: list[str] = field(default_factory=list)
    tone: str = ""
    genre: str = ""
    prompt_support: Optional[PromptSupport] = None

    @classmethod
    def from_draft(
        cls, draft: QuestDraft, *, tone: str = "", genre: str = "", prompt_support: PromptSupport | None = None
    ) -> "CoverRequest":
        info = draft.basic_info
        return cls(
            quest_id=str(draft.id) if draft.id else "",
            title=info.title,
            premise=info.description,
            goal=info.clear_condition,
            area=info.area,
            tags=list(info.tags),
            tone=tone,
            genre=genre,
            prompt_support=prompt_support,
        )

    def to_payload(self) -> dict[str, object]:
        support = self.prompt_support
        payload: dict[str, object] = {
            "questId": self.quest_id,
            "title": self.title,
            "premise": self.premise,
            "goal": self.goal,
            "area": self.area,
            "tags": self.tags,
            "tone": self.tone,
            "genre": self.genre,
        }
        if support:
            payload.update(
                protagonist=support.protagonist,
                objective=support.objective,
                ending=support.ending,
                when=support.when,
                where=support.where,
                purpose=support.purpose,
                withWhom=support.with_whom,
            )
        return payload


class CoverImageGenerator(ABC):
    @abstractmethod
    async def generate(self, request: CoverRequest) -> str:
        """Return a reference (URL) to the generated cover image."""


class HttpCoverImageGenerator(CoverImageGenerator):
    """Calls a cover-image service that answers ``{"imageUrl": ...}``."""

    def __init__(
        self,
        *,
        endpoint: str,
        api_key: str = "",
        timeout_seconds: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._transport = transport

    async def generate(self, request: CoverRequest) -> str:
        missing = [name for name in ("quest_id", "title", "premise") if not getattr(request, name)]
        if missing:
            raise AuxiliaryGenerationError(f"Cover request missing: {', '.join(missing)}")

        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._endpoint, json=request.to_payload(), headers=headers)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise AuxiliaryGenerationError(f"Cover service call failed: {exc}") from exc

        image_url = body.get("imageUrl") if isinstance(body, dict) else None
        if not image_url:
            raise AuxiliaryGenerationError("Cover service returned no imageUrl")
        logger.info("Cover image generated", extra={"quest_id": request.quest_id})
        return image_url
