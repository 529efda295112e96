"""Builders for pipeline payloads and a scripted pipeline used across unit tests."""

from __future__ import annotations

from typing import Any, Iterable, Optional

from lantern_schemas import GenerationRequest, MainPlot, PipelineProgress, PipelineResult, PipelineScene

from services.creator.app.pipeline import GenerationPipeline, PipelineCallbacks, PipelineError, parse_pipeline_output


def spot_payload(index: int, *, role: str = "development") -> dict[str, Any]:
    return {
        "spot_id": f"S{index + 1}",
        "spot_name": f"Spot {index + 1}",
        "lat": 35.68 + index * 0.001,
        "lng": 139.76 + index * 0.001,
        "scene_role": role,
        "nav_text": f"Walk north to spot {index + 1}.",
        "lore_card": {"short_story_text": f"Story {index + 1}", "player_handout": f"Handout {index + 1}"},
        "puzzle": {
            "type": "arithmetic" if index == 0 else "logic",
            "prompt": f"Question {index + 1}",
            "answer": f"A{index + 1}",
            "hints": ["first", "second"],
            "solution_steps": ["step"],
            "difficulty": 2,
        },
        "reward": {"lore_reveal": "lore", "plot_key": f"K{index + 1}", "next_hook": "onward"},
    }


def pipeline_payload(count: int = 7, *, roles: Optional[list[str]] = None, **creator_extra: Any) -> dict[str, Any]:
    roles = roles or ["development"] * count
    spots = [spot_payload(index, role=roles[index]) for index in range(count)]
    creator = {
        "quest_id": "quest-1",
        "quest_title": "The Harbour Cipher",
        "main_plot": {
            "title": "The Harbour Cipher",
            "premise": "A cipher washed ashore.",
            "goal": "Decode the harbour's last message.",
            "final_reveal_outline": "The harbourmaster wrote it.",
        },
        "spots": spots,
        "meta_puzzle": {"prompt": "Join the keys.", "answer": "-".join(s["reward"]["plot_key"] for s in spots)},
        "characters": [{"name": "Mira", "role": "detective", "personality": "dry"}],
        "generation_metadata": {"pipeline_version": "test", "validation_warnings": []},
    }
    creator.update(creator_extra)
    return {
        "player_preview": {
            "title": "The Harbour Cipher",
            "one_liner": "Crack the code by the sea.",
            "mission": "Find the harbourmaster's message.",
            "route_meta": {"area_start": "Pier 1", "difficulty_label": "medium"},
            "highlight_spots": [{"name": "Spot 1"}],
            "tags": ["sea", "cipher"],
        },
        "creator_payload": creator,
    }


class ScriptedPipeline(GenerationPipeline):
    """Replays plot and spot callbacks from a payload in a chosen order.

    ``fail_after`` raises :class:`PipelineError` once that many spots were delivered.
    """

    name = "scripted"

    def __init__(
        self,
        payload: dict[str, Any],
        *,
        order: Optional[Iterable[int]] = None,
        fail_after: Optional[int] = None,
        message: str = "Quality check rejected the quest",
    ) -> None:
        self.payload = payload
        self.order = list(order) if order is not None else None
        self.fail_after = fail_after
        self.message = message
        self.calls = 0

    async def run(self, request: GenerationRequest, callbacks: PipelineCallbacks) -> PipelineResult:
        self.calls += 1
        creator = self.payload["creator_payload"]
        spots = creator["spots"]
        callbacks.on_progress(PipelineProgress(phase="plot_creation", progress=30))
        callbacks.on_plot_complete(MainPlot.model_validate(creator["main_plot"]))
        order = self.order if self.order is not None else range(len(spots))
        for delivered, index in enumerate(order):
            if self.fail_after is not None and delivered >= self.fail_after:
                raise PipelineError(self.message)
            callbacks.on_progress(
                PipelineProgress(phase="puzzle_design", progress=50, scene_index=index, scene_total=len(spots))
            )
            callbacks.on_spot_complete(PipelineScene.model_validate(spots[index]), index)
        if self.fail_after is not None:
            raise PipelineError(self.message)
        callbacks.on_progress(PipelineProgress(phase="validation", progress=100))
        return parse_pipeline_output(self.payload)
