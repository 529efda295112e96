"""Deterministic offline pipeline for local development and demos."""

from __future__ import annotations

import math

from lantern_schemas import (
    CreatorPayload,
    GenerationPhase,
    GenerationReport,
    GenerationRequest,
    HighlightSpot,
    LoreCard,
    MainPlot,
    MetaPuzzlePayload,
    PipelineCharacter,
    PipelineProgress,
    PipelinePuzzle,
    PipelineResult,
    PipelineReward,
    PipelineScene,
    PlayerPreview,
    RouteMeta,
    SceneRole,
)

from .base import GenerationPipeline, PipelineCallbacks

DEFAULT_CENTER = (35.6812, 139.7671)
_KM_PER_DEGREE_LAT = 111.32


def _role_for(index: int, total: int) -> str:
    if index == 0:
        return SceneRole.INTRODUCTION.value
    if index == total - 1:
        return SceneRole.CONCLUSION.value
    if index == (2 * total) // 3:
        return SceneRole.TURNING_POINT.value
    if index == total - 2:
        return SceneRole.TRUTH_APPROACH.value
    return SceneRole.DEVELOPMENT.value


class MockPipeline(GenerationPipeline):
    """Lays scenes out on a ring around the requested centre.

    Emits the same callback sequence as the hosted workflow so the rest of the
    service can run without network access.
    """

    name = "mock"

    async def run(self, request: GenerationRequest, callbacks: PipelineCallbacks) -> PipelineResult:
        total = request.scene_count
        callbacks.on_progress(
            PipelineProgress(phase=GenerationPhase.MOTIF_SELECTION.value, progress=20, scene_total=total)
        )

        theme = request.prompt[:60]
        plot = MainPlot(
            title=f"The Lantern Trail: {theme}",
            premise=f"A lantern keeper vanished while chasing {theme}.",
            goal="Follow the keeper's marks and relight the final lantern.",
            antagonist_or_mystery="Who moved the lanterns, and why?",
            final_reveal_outline="The keeper hid the lanterns to protect the district's oldest story.",
        )
        callbacks.on_progress(PipelineProgress(phase=GenerationPhase.PLOT_CREATION.value, progress=35))
        callbacks.on_plot_complete(plot)

        spots: list[PipelineScene] = []
        for index in range(total):
            callbacks.on_progress(
                PipelineProgress(
                    phase=GenerationPhase.PUZZLE_DESIGN.value,
                    progress=40 + (index * 40) // total,
                    scene_index=index,
                    scene_total=total,
                )
            )
            spot = self._scene(request, index, total)
            spots.append(spot)
            callbacks.on_spot_complete(spot, index)

        callbacks.on_progress(PipelineProgress(phase=GenerationPhase.VALIDATION.value, progress=90))
        keys = [spot.reward.plot_key for spot in spots]
        creator = CreatorPayload(
            quest_id=f"quest-mock-{total}",
            quest_title=plot.title,
            main_plot=plot,
            spots=spots,
            meta_puzzle=MetaPuzzlePayload(
                inputs=[f"{spot.spot_id}.plot_key" for spot in spots],
                prompt="Join every key in the order the scenes were visited.",
                answer="-".join(keys),
                explanation="Each scene hid one letter of the keeper's final word.",
            ),
            characters=[
                PipelineCharacter(name="Guide", role="narrator", tone="calm"),
                PipelineCharacter(name="Keeper", role="missing mentor", tone="cryptic", motivation="protect the story"),
            ],
            generation_metadata=GenerationReport(pipeline_version="mock-1", validation_passed=True),
        )
        preview = PlayerPreview(
            title=plot.title,
            one_liner=plot.premise,
            mission=plot.goal,
            route_meta=RouteMeta(
                area_start=spots[0].spot_name,
                area_end=spots[-1].spot_name,
                spots_count=total,
                difficulty_label=request.difficulty.value,
            ),
            highlight_spots=[HighlightSpot(name=spot.spot_name) for spot in spots[:3]],
            tags=request.theme_tags,
        )
        callbacks.on_progress(PipelineProgress(phase=GenerationPhase.VALIDATION.value, progress=100))
        return PipelineResult(player_preview=preview, creator_payload=creator)

    @staticmethod
    def _scene(request: GenerationRequest, index: int, total: int) -> PipelineScene:
        lat0, lng0 = (request.center.lat, request.center.lng) if request.center else DEFAULT_CENTER
        ring_km = request.radius_km * 0.6
        angle = 2 * math.pi * index / total
        lat = lat0 + (ring_km * math.sin(angle)) / _KM_PER_DEGREE_LAT
        lng = lng0 + (ring_km * math.cos(angle)) / (_KM_PER_DEGREE_LAT * math.cos(math.radians(lat0)))
        key = f"K{index + 1}"
        return PipelineScene(
            spot_id=f"S{index + 1}",
            spot_name=f"Lantern Stop {index + 1}",
            lat=round(lat, 6),
            lng=round(lng, 6),
            scene_role=_role_for(index, total),
            lore_card=LoreCard(
                short_story_text=f"A faded mark on stop {index + 1} points onward.",
                player_handout=f"Count the lanterns at stop {index + 1}.",
            ),
            puzzle=PipelinePuzzle(
                type="pattern",
                prompt=f"Which number continues the sequence {index + 1}, {index + 3}, {index + 5}?",
                answer=str(index + 7),
                solution_steps=["Notice the step of two.", f"{index + 5} + 2 = {index + 7}."],
                hints=["Look at the gaps.", "Each gap is the same.", "Add two."],
                difficulty=2,
            ),
            reward=PipelineReward(
                lore_reveal="The keeper passed here at dusk.",
                plot_key=key,
                next_hook="A second mark glints further down the street.",
            ),
            linking_rationale=f"Stop {index + 1} continues the keeper's trail.",
        )
