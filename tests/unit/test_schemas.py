"""Smoke tests for Pydantic schema validation."""

import pytest
from pydantic import ValidationError

from lantern_schemas import (
    Difficulty,
    GenerationRequest,
    PipelineProgress,
    PipelineResult,
    Puzzle,
    QuestDraft,
    Scene,
)


def test_request_defaults_and_aliases() -> None:
    request = GenerationRequest.model_validate(
        {
            "prompt": "  Night market  ",
            "spot_count": "9",
            "theme_tags": "food, night, food, ",
            "center_location": {"lat": 35.0, "lng": 139.0},
            "prompt_support": {"withWhom": "family"},
        }
    )
    assert request.prompt == "Night market"
    assert request.scene_count == 9
    assert request.theme_tags == ["food", "night"]
    assert request.difficulty is Difficulty.MEDIUM
    assert request.center.lat == 35.0
    assert request.prompt_support.with_whom == "family"
    assert request.radius_km == 1.0


def test_request_rejects_blank_prompt_and_bad_count() -> None:
    with pytest.raises(ValidationError):
        GenerationRequest(prompt="   ")
    with pytest.raises(ValidationError):
        GenerationRequest.model_validate({"prompt": "x", "scene_count": "many"})
    with pytest.raises(ValidationError):
        GenerationRequest.model_validate({"prompt": "x", "radius_km": 0})


def test_puzzle_type_is_normalised() -> None:
    assert Puzzle(type="Arithmetic").type == "math"
    assert Puzzle(type=None).type == "logic"


def test_progress_accepts_workflow_field_names() -> None:
    progress = PipelineProgress.model_validate(
        {"step_name": "puzzle_design", "progress": 40, "current_spot_index": 2, "total_spots": 7}
    )
    assert (progress.phase, progress.scene_index, progress.scene_total) == ("puzzle_design", 2, 7)


def test_pipeline_result_ignores_unknown_keys() -> None:
    result = PipelineResult.model_validate(
        {
            "player_preview": {"title": "T", "surprise": True},
            "creator_payload": {"quest_title": "T", "spots": [{"spot_name": "A", "lat": 1, "lng": 2, "extra": 1}]},
        }
    )
    assert result.creator_payload.spots[0].spot_name == "A"


def test_draft_positional_scenes() -> None:
    draft = QuestDraft()
    draft.place_scene(2, Scene(name="Third", lat=0, lng=0))
    assert draft.scenes[:2] == [None, None]
    assert [scene.name for scene in draft.ordered_scenes()] == ["Third"]
    assert draft.scenes[2].id.startswith("spot-tmp-")

    with pytest.raises(IndexError):
        draft.place_scene(-1, Scene(name="Nope", lat=0, lng=0))

    first_id = draft.mint_id()
    assert draft.mint_id() == first_id
    draft.reset_children()
    assert draft.scenes == [] and draft.id == first_id
