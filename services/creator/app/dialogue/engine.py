"""Scene dialogue generation backed by the provider abstraction."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Sequence

from lantern_observability import log_context, observe_provider_response
from lantern_providers import (
    LLMProvider,
    ProviderConfig,
    ProviderFactory,
    ProviderRequest,
    decode_json_text,
    resolve_provider_config,
)
from lantern_providers.exceptions import ProviderError, ProviderResponseError
from lantern_schemas import CastMember, DialogueLine, DialogueStage, NarrativeTimeline, Scene, SpeakerType

from ..errors import AuxiliaryGenerationError
from .prompts import DIALOGUE_SCHEMA, DIALOGUE_SYSTEM_PROMPT, POST_PUZZLE_PROMPT, PRE_PUZZLE_PROMPT

logger = logging.getLogger(__name__)

NARRATOR_NAME = "Guide"
DIALOGUE_TEMPERATURE = 0.7


class DialogueGenerator(ABC):
    @abstractmethod
    async def generate(
        self, timeline: NarrativeTimeline, scenes: Sequence[Scene], *, theme: str = ""
    ) -> list[DialogueLine]:
        """Return pre- and post-puzzle lines for every scene, keyed by scene position."""


class LLMDialogueGenerator(DialogueGenerator):
    def __init__(
        self,
        provider: LLMProvider | None = None,
        provider_config: ProviderConfig | None = None,
        *,
        service_name: str = "creator",
    ) -> None:
        if provider is None:
            provider_config = provider_config or resolve_provider_config()
            provider = ProviderFactory.create(provider_config)
        self._provider = provider
        self._service_name = service_name

    async def generate(
        self, timeline: NarrativeTimeline, scenes: Sequence[Scene], *, theme: str = ""
    ) -> list[DialogueLine]:
        cast_json = json.dumps(
            [{"name": member.name, "role": member.role} for member in timeline.cast], ensure_ascii=False
        )
        story_theme = theme or timeline.prologue[:200]
        lines: list[DialogueLine] = []

        for index, scene in enumerate(scenes):
            previous_spot = scenes[index - 1].name if index > 0 else "(start of the quest)"
            next_spot = scenes[index + 1].name if index + 1 < len(scenes) else "(finale)"
            fields = {
                "theme": story_theme,
                "cast_json": cast_json,
                "previous_spot": previous_spot,
                "next_spot": next_spot,
                "spot_name": scene.name,
                "puzzle_text": scene.puzzle.prompt,
                "puzzle_answer": scene.puzzle.answer,
            }
            for stage, template in (
                (DialogueStage.PRE_PUZZLE, PRE_PUZZLE_PROMPT),
                (DialogueStage.POST_PUZZLE, POST_PUZZLE_PROMPT),
            ):
                with log_context(scene_index=index, stage=stage.value):
                    try:
                        stage_lines = await self._generate_stage(
                            template.format(**fields), index, stage, scene, timeline
                        )
                    except ProviderError as exc:
                        raise AuxiliaryGenerationError(f"Dialogue generation failed for scene {index}: {exc}") from exc
                    lines.extend(stage_lines)

        logger.info("Dialogue generated", extra={"line_count": len(lines), "scene_count": len(scenes)})
        return lines

    async def _generate_stage(
        self, prompt: str, index: int, stage: DialogueStage, scene: Scene, timeline: NarrativeTimeline
    ) -> list[DialogueLine]:
        response = await self._provider.generate(
            ProviderRequest(
                prompt=prompt,
                system_prompt=DIALOGUE_SYSTEM_PROMPT,
                json_schema=DIALOGUE_SCHEMA,
                temperature=DIALOGUE_TEMPERATURE,
                metadata={
                    "task": "dialogue",
                    "stage": stage.value,
                    "spot_name": scene.name,
                    "speaker": _lead_character(timeline.cast),
                },
            )
        )
        observe_provider_response(
            stage="aux_dialogue",
            provider=self._provider.name,
            service_name=self._service_name,
            response=response,
        )
        return parse_dialogue_lines(response.text, index, stage, timeline.cast)


def parse_dialogue_lines(
    payload: str, scene_index: int, stage: DialogueStage, cast: Sequence[CastMember] = ()
) -> list[DialogueLine]:
    """Decode a provider answer into normalised lines.

    Accepts ``{"lines": [...]}`` or a bare list. Lines without text are dropped;
    missing speaker types and names fall back to the narrator or the lead character.
    """

    data: Any = decode_json_text(payload)
    raw_lines = data.get("lines") if isinstance(data, dict) else data
    if not isinstance(raw_lines, list):
        raise ProviderResponseError("Dialogue response did not contain a list of lines")

    lead = _lead_character(cast)
    lines: list[DialogueLine] = []
    for raw in raw_lines:
        if not isinstance(raw, dict):
            continue
        text = str(raw.get("text") or "").strip()
        if not text:
            continue
        speaker_name = str(raw.get("speakerName") or raw.get("speaker_name") or "").strip()
        kind = str(raw.get("speakerType") or raw.get("speaker_type") or "").strip().lower()
        if kind == SpeakerType.NARRATOR.value:
            speaker_type = SpeakerType.NARRATOR
            speaker_name = speaker_name or NARRATOR_NAME
        else:
            speaker_type = SpeakerType.CHARACTER
            speaker_name = speaker_name or lead
        lines.append(
            DialogueLine(
                scene_index=scene_index,
                stage=stage,
                order_index=len(lines) + 1,
                speaker_type=speaker_type,
                speaker_name=speaker_name,
                text=text,
            )
        )
    return lines


def _lead_character(cast: Sequence[CastMember]) -> str:
    for member in cast:
        if member.name != NARRATOR_NAME:
            return member.name
    return NARRATOR_NAME
