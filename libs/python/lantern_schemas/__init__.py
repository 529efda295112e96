"""Shared pydantic models for Quest Lantern."""

from .enums import (
    DialogueStage,
    Difficulty,
    GenerationPhase,
    PuzzleType,
    QuestStatus,
    SceneRole,
    SectionStatus,
    SpeakerType,
)
from .models.pipeline import (
    CreatorPayload,
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
    PromptSupport,
    RouteMeta,
)
from .models.quest import (
    BasicInfo,
    CastMember,
    Coordinate,
    DialogueLine,
    GenerationMetadata,
    MetaPuzzle,
    MetaPuzzleKey,
    NarrativeTimeline,
    Puzzle,
    QuestDraft,
    Scene,
    SceneReward,
)

__all__ = [
    "DialogueStage",
    "Difficulty",
    "GenerationPhase",
    "PuzzleType",
    "QuestStatus",
    "SceneRole",
    "SectionStatus",
    "SpeakerType",
    "CreatorPayload",
    "GenerationReport",
    "GenerationRequest",
    "HighlightSpot",
    "LoreCard",
    "MainPlot",
    "MetaPuzzlePayload",
    "PipelineCharacter",
    "PipelineProgress",
    "PipelinePuzzle",
    "PipelineResult",
    "PipelineReward",
    "PipelineScene",
    "PlayerPreview",
    "PromptSupport",
    "RouteMeta",
    "BasicInfo",
    "CastMember",
    "Coordinate",
    "DialogueLine",
    "GenerationMetadata",
    "MetaPuzzle",
    "MetaPuzzleKey",
    "NarrativeTimeline",
    "Puzzle",
    "QuestDraft",
    "Scene",
    "SceneReward",
]
