"""Domain exceptions raised by the creator service."""

from __future__ import annotations


class QuestLanternError(RuntimeError):
    """Base error for the creator service."""


class ValidationError(QuestLanternError):
    """The generation request is malformed; it never reaches the pipeline."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class GenerationError(QuestLanternError):
    """The primary pipeline call failed, timed out or returned an unusable payload."""

    DEFAULT_MESSAGE = "Generation failed. Please try again later."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.DEFAULT_MESSAGE)
        self.message = message or self.DEFAULT_MESSAGE


class GenerationInFlightError(QuestLanternError):
    """A generation run is already in progress for this draft."""


class AuxiliaryGenerationError(QuestLanternError):
    """Cover image or dialogue generation failed. Logged and swallowed by callers."""


class EditConflictError(QuestLanternError):
    """An edit command does not apply to the section in its current state."""


class PersistenceError(QuestLanternError):
    """A store write failed; earlier steps of the same save may have committed."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"{step}: {message}")
        self.step = step
