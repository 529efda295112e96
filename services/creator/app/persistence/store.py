"""Relational store contract and an in-process implementation.

Each collection supports upsert-by-id, delete-by-parent-id and
select-by-parent-id-ordered. Every call is independent: there is no transaction
spanning several calls.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Sequence
from uuid import UUID, uuid4


@dataclass(slots=True)
class QuestRecord:
    id: UUID
    title: str
    description: str
    area_name: str
    difficulty: str
    tags: list[str]
    cover_image_url: Optional[str]
    mission: str
    clear_condition: str
    status: str = "draft"


@dataclass(slots=True)
class SceneRecord:
    quest_id: UUID
    order_index: int
    name: str
    address: str
    lat: float
    lng: float
    place_id: Optional[str]
    scene_role: str


@dataclass(slots=True)
class StoredScene:
    id: UUID
    order_index: int


@dataclass(slots=True)
class SceneDetailRecord:
    scene_id: UUID
    nav_text: str
    story_text: str
    handout_text: str
    puzzle_type: str
    question_text: str
    rules_text: Optional[str]
    hint_text: str
    answer_text: str
    solution_steps: list[str]
    puzzle_difficulty: Optional[int]
    completion_message: str
    lore_reveal: str
    plot_key: str
    linking_rationale: str


@dataclass(slots=True)
class TimelineRecord:
    quest_id: UUID
    prologue: str
    epilogue: str
    cast_members: list[dict[str, Any]]
    meta_puzzle: Optional[dict[str, Any]]


@dataclass(slots=True)
class DialogueRecord:
    quest_id: UUID
    scene_id: UUID
    stage: str
    order_index: int
    speaker_type: str
    speaker_name: str
    avatar_url: Optional[str]
    text: str


class QuestStore(ABC):
    """Synchronous store interface; the mapper calls it from a worker thread."""

    @abstractmethod
    def upsert_quest(self, record: QuestRecord) -> None: ...

    @abstractmethod
    def delete_scenes(self, quest_id: UUID) -> int:
        """Delete every scene of ``quest_id`` (details and dialogue go with them)."""

    @abstractmethod
    def insert_scenes(self, records: Sequence[SceneRecord]) -> None: ...

    @abstractmethod
    def select_scenes(self, quest_id: UUID) -> list[StoredScene]:
        """Return the quest's scenes ordered by ``order_index``."""

    @abstractmethod
    def upsert_scene_details(self, records: Sequence[SceneDetailRecord]) -> None: ...

    @abstractmethod
    def upsert_timeline(self, record: TimelineRecord) -> None: ...

    @abstractmethod
    def delete_dialogue(self, scene_ids: Sequence[UUID]) -> int: ...

    @abstractmethod
    def insert_dialogue(self, records: Sequence[DialogueRecord]) -> None: ...

    @abstractmethod
    def count_dialogue(self, quest_id: UUID) -> int:
        """Dialogue rows currently stored under any scene of ``quest_id``."""

    @abstractmethod
    def fetch_quest(self, quest_id: UUID) -> Optional[dict[str, Any]]: ...

    @abstractmethod
    def fetch_scenes(self, quest_id: UUID) -> list[dict[str, Any]]:
        """Scenes joined with their detail rows, ordered by ``order_index``."""

    @abstractmethod
    def fetch_timeline(self, quest_id: UUID) -> Optional[dict[str, Any]]: ...

    @abstractmethod
    def fetch_dialogue(self, quest_id: UUID) -> list[dict[str, Any]]:
        """Dialogue rows ordered by scene, stage and ``order_index``."""


@dataclass
class InMemoryQuestStore(QuestStore):
    """Dict-backed store with the same cascade rules as the Postgres schema."""

    quests: dict[UUID, dict[str, Any]] = field(default_factory=dict)
    scenes: dict[UUID, dict[str, Any]] = field(default_factory=dict)
    details: dict[UUID, dict[str, Any]] = field(default_factory=dict)
    timelines: dict[UUID, dict[str, Any]] = field(default_factory=dict)
    dialogue: list[dict[str, Any]] = field(default_factory=list)

    def upsert_quest(self, record: QuestRecord) -> None:
        self.quests[record.id] = asdict(record)

    def delete_scenes(self, quest_id: UUID) -> int:
        doomed = {scene_id for scene_id, row in self.scenes.items() if row["quest_id"] == quest_id}
        for scene_id in doomed:
            del self.scenes[scene_id]
            self.details.pop(scene_id, None)
        self.dialogue = [row for row in self.dialogue if row["scene_id"] not in doomed]
        return len(doomed)

    def insert_scenes(self, records: Sequence[SceneRecord]) -> None:
        for record in records:
            if record.quest_id not in self.quests:
                raise KeyError(f"Quest {record.quest_id} does not exist")
            if any(
                row["quest_id"] == record.quest_id and row["order_index"] == record.order_index
                for row in self.scenes.values()
            ):
                raise ValueError(f"Duplicate order_index {record.order_index} for quest {record.quest_id}")
            scene_id = uuid4()
            self.scenes[scene_id] = {"id": scene_id, **asdict(record)}

    def select_scenes(self, quest_id: UUID) -> list[StoredScene]:
        rows = sorted(
            (row for row in self.scenes.values() if row["quest_id"] == quest_id),
            key=lambda row: row["order_index"],
        )
        return [StoredScene(id=row["id"], order_index=row["order_index"]) for row in rows]

    def upsert_scene_details(self, records: Sequence[SceneDetailRecord]) -> None:
        for record in records:
            if record.scene_id not in self.scenes:
                raise KeyError(f"Scene {record.scene_id} does not exist")
            self.details[record.scene_id] = asdict(record)

    def upsert_timeline(self, record: TimelineRecord) -> None:
        self.timelines[record.quest_id] = asdict(record)

    def delete_dialogue(self, scene_ids: Sequence[UUID]) -> int:
        targets = set(scene_ids)
        before = len(self.dialogue)
        self.dialogue = [row for row in self.dialogue if row["scene_id"] not in targets]
        return before - len(self.dialogue)

    def insert_dialogue(self, records: Sequence[DialogueRecord]) -> None:
        for record in records:
            if record.scene_id not in self.scenes:
                raise KeyError(f"Scene {record.scene_id} does not exist")
            self.dialogue.append({"id": uuid4(), **asdict(record)})

    def count_dialogue(self, quest_id: UUID) -> int:
        targets = {scene_id for scene_id, row in self.scenes.items() if row["quest_id"] == quest_id}
        return sum(1 for row in self.dialogue if row["scene_id"] in targets)

    def fetch_quest(self, quest_id: UUID) -> Optional[dict[str, Any]]:
        row = self.quests.get(quest_id)
        return dict(row) if row else None

    def fetch_scenes(self, quest_id: UUID) -> list[dict[str, Any]]:
        joined = []
        for stored in self.select_scenes(quest_id):
            detail = self.details.get(stored.id, {})
            joined.append({**detail, **self.scenes[stored.id]})
        return joined

    def fetch_timeline(self, quest_id: UUID) -> Optional[dict[str, Any]]:
        row = self.timelines.get(quest_id)
        return dict(row) if row else None

    def fetch_dialogue(self, quest_id: UUID) -> list[dict[str, Any]]:
        order = {stored.id: stored.order_index for stored in self.select_scenes(quest_id)}
        rows = [row for row in self.dialogue if row["scene_id"] in order]
        return sorted(rows, key=lambda row: (order[row["scene_id"]], row["stage"] != "pre_puzzle", row["order_index"]))
