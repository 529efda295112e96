"""Enum definitions shared across services."""

from __future__ import annotations

from enum import Enum


class SectionStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    READY = "ready"
    EDITING = "editing"
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    ERROR = "error"


class SceneRole(str, Enum):
    INTRODUCTION = "introduction"
    DEVELOPMENT = "development"
    TURNING_POINT = "turning_point"
    TRUTH_APPROACH = "truth_approach"
    MISDIRECT_CLEAR = "misdirect_clear"
    CONCLUSION = "conclusion"
    RESOLUTION = "resolution"


class PuzzleType(str, Enum):
    LOGIC = "logic"
    PATTERN = "pattern"
    CIPHER = "cipher"
    WORDPLAY = "wordplay"
    LATERAL = "lateral"
    MATH = "math"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class GenerationPhase(str, Enum):
    MOTIF_SELECTION = "motif_selection"
    PLOT_CREATION = "plot_creation"
    PUZZLE_DESIGN = "puzzle_design"
    VALIDATION = "validation"


class DialogueStage(str, Enum):
    PRE_PUZZLE = "pre_puzzle"
    POST_PUZZLE = "post_puzzle"


class SpeakerType(str, Enum):
    CHARACTER = "character"
    NARRATOR = "narrator"


class QuestStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
