"""Generation request and the payloads exchanged with the generation pipeline.

Pipeline payloads are parsed leniently: unknown keys are ignored and optional
collections default to empty, because the upstream workflow revises its output
shape more often than the fields we actually consume.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..enums import Difficulty
from ..utils.validators import clamp_int, unique_trimmed
from .quest import Coordinate

MIN_SCENES = 5
MAX_SCENES = 12
DEFAULT_SCENES = 7


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class PromptSupport(_Payload):
    protagonist: str = ""
    objective: str = ""
    ending: str = ""
    when: str = ""
    where: str = ""
    purpose: str = ""
    with_whom: str = Field("", validation_alias=AliasChoices("with_whom", "withWhom"))


class GenerationRequest(_Payload):
    """User input for one generation run."""

    prompt: str
    difficulty: Difficulty = Difficulty.MEDIUM
    scene_count: int = Field(DEFAULT_SCENES, validation_alias=AliasChoices("scene_count", "spot_count"))
    theme_tags: list[str] = Field(default_factory=list)
    genre_support: str = ""
    tone_support: str = ""
    prompt_support: Optional[PromptSupport] = None
    center: Optional[Coordinate] = Field(None, validation_alias=AliasChoices("center", "center_location"))
    radius_km: float = Field(1.0, gt=0, le=50)

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("Prompt must not be empty")
        return text

    @field_validator("scene_count", mode="before")
    @classmethod
    def clamp_scene_count(cls, value: Any) -> int:
        return clamp_int(value, lower=MIN_SCENES, upper=MAX_SCENES, field_name="scene_count")

    @field_validator("theme_tags", mode="before")
    @classmethod
    def clean_tags(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            value = value.split(",")
        return unique_trimmed(value)


class PipelineProgress(_Payload):
    phase: str = Field("", validation_alias=AliasChoices("phase", "step_name"))
    progress: int = Field(0, ge=0, le=100)
    scene_index: Optional[int] = Field(
        None, ge=0, validation_alias=AliasChoices("scene_index", "current_spot_index")
    )
    scene_total: Optional[int] = Field(None, ge=0, validation_alias=AliasChoices("scene_total", "total_spots"))


class MainPlot(_Payload):
    title: str = ""
    premise: str = ""
    goal: str = ""
    antagonist_or_mystery: str = ""
    final_reveal_outline: str = ""


class LoreCard(_Payload):
    short_story_text: str = ""
    facts_used: list[str] = Field(default_factory=list)
    player_handout: str = ""


class PipelinePuzzle(_Payload):
    type: str = "logic"
    prompt: str = ""
    rules: Optional[str] = None
    answer: str = ""
    solution_steps: list[str] = Field(default_factory=list)
    hints: list[str] = Field(default_factory=list)
    difficulty: Optional[int] = Field(None, ge=1, le=5)


class PipelineReward(_Payload):
    lore_reveal: str = ""
    plot_key: str = ""
    next_hook: str = ""


class PipelineScene(_Payload):
    spot_id: str = ""
    spot_name: str = Field(..., min_length=1, max_length=200)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    address: str = ""
    place_id: Optional[str] = None
    scene_role: str = ""
    directions: str = Field("", validation_alias=AliasChoices("directions", "nav_text"))
    lore_card: LoreCard = Field(default_factory=LoreCard)
    puzzle: PipelinePuzzle = Field(default_factory=PipelinePuzzle)
    reward: PipelineReward = Field(default_factory=PipelineReward)
    linking_rationale: str = ""


class RouteMeta(_Payload):
    area_start: str = ""
    area_end: str = ""
    distance_km: Optional[float | str] = None
    estimated_time_min: Optional[int | str] = None
    spots_count: Optional[int] = None
    outdoor_ratio_percent: Optional[int | str] = None
    recommended_people: str = ""
    difficulty_label: str = ""
    difficulty_reason: str = ""
    weather_note: str = ""


class HighlightSpot(_Payload):
    name: str
    teaser_experience: str = ""


class PlayerPreview(_Payload):
    """Spoiler-free summary shown to players."""

    title: str = ""
    one_liner: str = ""
    trailer: str = ""
    mission: str = ""
    teasers: list[str] = Field(default_factory=list)
    summary_actions: list[str] = Field(default_factory=list)
    route_meta: RouteMeta = Field(default_factory=RouteMeta)
    highlight_spots: list[HighlightSpot] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    prep_and_safety: list[str] = Field(default_factory=list)
    cta_copy: str = ""


class MetaPuzzlePayload(_Payload):
    inputs: list[str] = Field(default_factory=list)
    prompt: str = ""
    answer: str = ""
    explanation: str = ""


class PipelineCharacter(_Payload):
    name: str
    role: str = ""
    tone: str = Field("", validation_alias=AliasChoices("tone", "personality"))
    motivation: str = ""
    sample_line: str = ""


class GenerationReport(_Payload):
    generated_at: Optional[datetime] = None
    pipeline_version: Optional[str] = None
    validation_passed: Optional[bool] = None
    validation_warnings: list[str] = Field(default_factory=list)


class CreatorPayload(_Payload):
    """Full quest content, spoilers included."""

    quest_id: str = ""
    quest_title: str = ""
    cover_image_url: Optional[str] = None
    main_plot: MainPlot = Field(default_factory=MainPlot)
    spots: list[PipelineScene] = Field(default_factory=list)
    meta_puzzle: Optional[MetaPuzzlePayload] = None
    characters: list[PipelineCharacter] = Field(default_factory=list)
    generation_metadata: GenerationReport = Field(default_factory=GenerationReport)


class PipelineResult(_Payload):
    player_preview: PlayerPreview = Field(validation_alias=AliasChoices("player_preview", "playerPreview"))
    creator_payload: CreatorPayload = Field(validation_alias=AliasChoices("creator_payload", "creatorPayload"))
