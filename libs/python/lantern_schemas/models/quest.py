"""Draft-side models: the quest being generated and edited in memory."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from ..enums import DialogueStage, Difficulty, PuzzleType, SpeakerType
from ..utils.validators import unique_trimmed

_PUZZLE_TYPE_ALIASES = {"arithmetic": PuzzleType.MATH.value}


def temporary_scene_id() -> str:
    return f"spot-tmp-{uuid4().hex[:12]}"


class Coordinate(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class Puzzle(BaseModel):
    type: str = PuzzleType.LOGIC.value
    prompt: str = ""
    rules: Optional[str] = None
    hints: list[str] = Field(default_factory=list, description="Ordered, weakest hint first")
    answer: str = ""
    solution_steps: list[str] = Field(default_factory=list)
    difficulty: Optional[int] = Field(None, ge=1, le=5)

    @field_validator("type", mode="before")
    @classmethod
    def normalise_type(cls, value: object) -> str:
        text = str(value or PuzzleType.LOGIC.value).strip().lower()
        return _PUZZLE_TYPE_ALIASES.get(text, text)


class SceneReward(BaseModel):
    next_hook: str = ""
    lore_reveal: str = ""
    plot_key: str = ""


class Scene(BaseModel):
    """One stop on the route.

    ``id`` is temporary until the first persisted save replaces it with the
    identifier assigned by the store.
    """

    id: str = Field(default_factory=temporary_scene_id)
    name: str = Field(..., min_length=1, max_length=200)
    address: str = ""
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    place_id: Optional[str] = None
    scene_role: str = ""
    directions: str = ""
    story_text: str = ""
    handout: str = ""
    puzzle: Puzzle = Field(default_factory=Puzzle)
    reward: SceneReward = Field(default_factory=SceneReward)
    linking_rationale: str = ""


class BasicInfo(BaseModel):
    title: str = ""
    description: str = ""
    difficulty: str = Difficulty.MEDIUM.value
    tags: list[str] = Field(default_factory=list)
    highlights: list[str] = Field(default_factory=list)
    area: str = ""
    mission: str = ""
    clear_condition: str = ""

    @field_validator("tags", "highlights", mode="before")
    @classmethod
    def clean_lists(cls, value: object) -> list[str]:
        return unique_trimmed(value if isinstance(value, (list, tuple, set)) else None)


class CastMember(BaseModel):
    name: str = Field(..., min_length=1)
    role: str = ""
    tone: str = ""
    motivation: str = ""
    sample_line: str = ""


class MetaPuzzleKey(BaseModel):
    position: int = Field(..., ge=1, description="1-based scene position the key comes from")
    plot_key: str


class MetaPuzzle(BaseModel):
    keys: list[MetaPuzzleKey] = Field(default_factory=list)
    question: str = ""
    final_answer: str = ""
    explanation: str = ""


class NarrativeTimeline(BaseModel):
    prologue: str = ""
    epilogue: str = ""
    cast: list[CastMember] = Field(default_factory=list)
    meta_puzzle: Optional[MetaPuzzle] = None


class DialogueLine(BaseModel):
    """A spoken line attached to a scene by its 0-based position in the draft."""

    scene_index: int = Field(..., ge=0)
    stage: DialogueStage
    order_index: int = Field(..., ge=1)
    speaker_type: SpeakerType = SpeakerType.CHARACTER
    speaker_name: str = ""
    avatar_url: Optional[str] = None
    text: str = Field(..., min_length=1)


class GenerationMetadata(BaseModel):
    warnings: list[str] = Field(default_factory=list)
    generated_at: Optional[datetime] = None
    pipeline_version: Optional[str] = None


class QuestDraft(BaseModel):
    """Root aggregate for one quest under construction.

    ``scenes`` is positional: slot ``i`` holds the scene the pipeline reported for
    index ``i`` and stays ``None`` until that scene arrives.
    """

    id: Optional[UUID] = None
    basic_info: BasicInfo = Field(default_factory=BasicInfo)
    scenes: list[Optional[Scene]] = Field(default_factory=list)
    timeline: Optional[NarrativeTimeline] = None
    cover_image_url: Optional[str] = None
    dialogue: list[DialogueLine] = Field(default_factory=list)
    metadata: GenerationMetadata = Field(default_factory=GenerationMetadata)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def mint_id(self) -> UUID:
        if self.id is None:
            self.id = uuid4()
        return self.id

    def place_scene(self, index: int, scene: Scene) -> None:
        """Insert or overwrite the scene at ``index``, padding any gap with empty slots."""

        if index < 0:
            raise IndexError(f"Scene index must be non-negative, got {index}")
        if index >= len(self.scenes):
            self.scenes.extend([None] * (index + 1 - len(self.scenes)))
        self.scenes[index] = scene
        self.touch()

    def ordered_scenes(self) -> list[Scene]:
        return [scene for scene in self.scenes if scene is not None]

    def reset_children(self) -> None:
        self.scenes = []
        self.timeline = None
        self.cover_image_url = None
        self.dialogue = []
        self.metadata = GenerationMetadata()
        self.touch()

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)
