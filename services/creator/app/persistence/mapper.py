"""Translate an in-memory quest draft to and from the relational store.

A save is an ordered series of independent writes. A failing step stops the
save and surfaces as :class:`PersistenceError`; steps that already ran stay
committed, and the draft itself is never modified here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Callable, Optional, TypeVar
from uuid import UUID

from fastapi.concurrency import run_in_threadpool

from lantern_observability import log_context, observe_stage_duration
from lantern_schemas import (
    BasicInfo,
    CastMember,
    DialogueLine,
    MetaPuzzle,
    NarrativeTimeline,
    Puzzle,
    QuestDraft,
    Scene,
    SceneReward,
)

from ..errors import PersistenceError
from ..settings import SERVICE_NAME
from .store import (
    DialogueRecord,
    QuestRecord,
    QuestStore,
    SceneDetailRecord,
    SceneRecord,
    TimelineRecord,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class SaveReport:
    quest_id: UUID
    scene_ids: list[UUID] = field(default_factory=list)
    dialogue_rows: int = 0


class PersistenceMapper:
    def __init__(self, store: QuestStore, *, service_name: str = SERVICE_NAME) -> None:
        self._store = store
        self._service_name = service_name

    @property
    def store(self) -> QuestStore:
        return self._store

    async def save(self, draft_id: UUID, draft: QuestDraft) -> UUID:
        report = await self.save_with_report(draft_id, draft)
        return report.quest_id

    async def save_with_report(self, draft_id: UUID, draft: QuestDraft) -> SaveReport:
        scenes = draft.ordered_scenes()
        start = perf_counter()
        outcome = "success"
        with log_context(quest_id=str(draft_id)):
            logger.info("Saving quest", extra={"scene_count": len(scenes), "dialogue_count": len(draft.dialogue)})
            try:
                report = await self._save(draft_id, draft, scenes)
            except PersistenceError:
                outcome = "error"
                raise
            finally:
                observe_stage_duration(
                    "save",
                    perf_counter() - start,
                    service_name=self._service_name,
                    status=outcome,
                )
            logger.info(
                "Quest saved",
                extra={"scene_count": len(report.scene_ids), "dialogue_count": report.dialogue_rows},
            )
        return report

    async def _save(self, draft_id: UUID, draft: QuestDraft, scenes: list[Scene]) -> SaveReport:
        store = self._store
        await self._step("quest", store.upsert_quest, quest_record(draft_id, draft))
        # Replacing the scenes cascades to their dialogue, so count what was there first.
        previous_dialogue = 0
        if not draft.dialogue:
            previous_dialogue = await self._step("count_dialogue", store.count_dialogue, draft_id)

        deleted = await self._step("delete_scenes", store.delete_scenes, draft_id)
        if deleted:
            logger.debug("Replaced previous scenes", extra={"deleted": deleted})
        await self._step(
            "insert_scenes",
            store.insert_scenes,
            [scene_record(draft_id, position, scene) for position, scene in enumerate(scenes, start=1)],
        )

        stored = await self._step("select_scenes", store.select_scenes, draft_id)
        by_position = {row.order_index: row.id for row in stored}
        scene_ids: list[UUID] = []
        for position in range(1, len(scenes) + 1):
            if position not in by_position:
                raise PersistenceError("scene_ids", f"No stored scene for position {position}")
            scene_ids.append(by_position[position])

        await self._step(
            "scene_details",
            store.upsert_scene_details,
            [detail_record(scene_id, scene) for scene_id, scene in zip(scene_ids, scenes)],
        )

        if draft.timeline is not None:
            await self._step("timeline", store.upsert_timeline, timeline_record(draft_id, draft.timeline))
        else:
            logger.info("No narrative timeline to save")

        dialogue_rows = 0
        if draft.dialogue:
            records = dialogue_records(draft_id, draft.dialogue, scene_ids)
            await self._step("delete_dialogue", store.delete_dialogue, scene_ids)
            await self._step("insert_dialogue", store.insert_dialogue, records)
            dialogue_rows = len(records)
        elif previous_dialogue:
            logger.warning(
                "Draft has no dialogue; previously saved lines went with the replaced scenes",
                extra={"deleted": previous_dialogue},
            )
        else:
            logger.info("No dialogue to save; skipping")

        return SaveReport(quest_id=draft_id, scene_ids=scene_ids, dialogue_rows=dialogue_rows)

    async def _step(self, name: str, fn: Callable[..., T], *args: Any) -> T:
        with log_context(step=name):
            try:
                return await run_in_threadpool(fn, *args)
            except Exception as exc:
                logger.exception("Save step failed")
                raise PersistenceError(name, str(exc) or type(exc).__name__) from exc

    async def load(self, quest_id: UUID) -> Optional[QuestDraft]:
        """Rebuild a draft from the store, or ``None`` if the quest is unknown."""

        store = self._store
        quest = await run_in_threadpool(store.fetch_quest, quest_id)
        if quest is None:
            return None
        scene_rows = await run_in_threadpool(store.fetch_scenes, quest_id)
        timeline_row = await run_in_threadpool(store.fetch_timeline, quest_id)
        dialogue_rows = await run_in_threadpool(store.fetch_dialogue, quest_id)

        scenes = [scene_from_row(row) for row in scene_rows]
        positions = {str(row["id"]): index for index, row in enumerate(scene_rows)}
        dialogue = [
            DialogueLine(
                scene_index=positions[str(row["scene_id"])],
                stage=row["stage"],
                order_index=row["order_index"],
                speaker_type=row["speaker_type"],
                speaker_name=row.get("speaker_name") or "",
                avatar_url=row.get("avatar_url"),
                text=row["text"],
            )
            for row in dialogue_rows
            if str(row["scene_id"]) in positions
        ]

        draft = QuestDraft(
            id=quest_id,
            basic_info=BasicInfo(
                title=quest.get("title") or "",
                description=quest.get("description") or "",
                difficulty=quest.get("difficulty") or BasicInfo().difficulty,
                tags=list(quest.get("tags") or []),
                area=quest.get("area_name") or "",
                mission=quest.get("mission") or "",
                clear_condition=quest.get("clear_condition") or "",
            ),
            scenes=scenes,
            timeline=timeline_from_row(timeline_row) if timeline_row else None,
            cover_image_url=quest.get("cover_image_url"),
            dialogue=dialogue,
        )
        logger.info("Quest loaded", extra={"quest_id": str(quest_id), "scene_count": len(scenes)})
        return draft


def quest_record(draft_id: UUID, draft: QuestDraft) -> QuestRecord:
    info = draft.basic_info
    return QuestRecord(
        id=draft_id,
        title=info.title,
        description=info.description,
        area_name=info.area,
        difficulty=info.difficulty,
        tags=list(info.tags),
        cover_image_url=draft.cover_image_url,
        mission=info.mission,
        clear_condition=info.clear_condition,
    )


def scene_record(draft_id: UUID, position: int, scene: Scene) -> SceneRecord:
    return SceneRecord(
        quest_id=draft_id,
        order_index=position,
        name=scene.name,
        address=scene.address,
        lat=scene.lat,
        lng=scene.lng,
        place_id=scene.place_id,
        scene_role=scene.scene_role,
    )


def detail_record(scene_id: UUID, scene: Scene) -> SceneDetailRecord:
    puzzle = scene.puzzle
    return SceneDetailRecord(
        scene_id=scene_id,
        nav_text=scene.directions,
        story_text=scene.story_text,
        handout_text=scene.handout,
        puzzle_type=puzzle.type,
        question_text=puzzle.prompt,
        rules_text=puzzle.rules,
        hint_text="\n".join(puzzle.hints),
        answer_text=puzzle.answer,
        solution_steps=list(puzzle.solution_steps),
        puzzle_difficulty=puzzle.difficulty,
        completion_message=scene.reward.next_hook,
        lore_reveal=scene.reward.lore_reveal,
        plot_key=scene.reward.plot_key,
        linking_rationale=scene.linking_rationale,
    )


def timeline_record(draft_id: UUID, timeline: NarrativeTimeline) -> TimelineRecord:
    return TimelineRecord(
        quest_id=draft_id,
        prologue=timeline.prologue,
        epilogue=timeline.epilogue,
        cast_members=[member.model_dump() for member in timeline.cast],
        meta_puzzle=timeline.meta_puzzle.model_dump() if timeline.meta_puzzle else None,
    )


def dialogue_records(draft_id: UUID, lines: list[DialogueLine], scene_ids: list[UUID]) -> list[DialogueRecord]:
    records: list[DialogueRecord] = []
    for line in lines:
        if line.scene_index >= len(scene_ids):
            logger.warning(
                "Dropping dialogue line for a scene that is not being saved",
                extra={"scene_index": line.scene_index},
            )
            continue
        records.append(
            DialogueRecord(
                quest_id=draft_id,
                scene_id=scene_ids[line.scene_index],
                stage=line.stage.value,
                order_index=line.order_index,
                speaker_type=line.speaker_type.value,
                speaker_name=line.speaker_name,
                avatar_url=line.avatar_url,
                text=line.text,
            )
        )
    return records


def scene_from_row(row: dict[str, Any]) -> Scene:
    hint_text = row.get("hint_text") or ""
    return Scene(
        id=str(row["id"]),
        name=row["name"],
        address=row.get("address") or "",
        lat=row["lat"],
        lng=row["lng"],
        place_id=row.get("place_id"),
        scene_role=row.get("scene_role") or "",
        directions=row.get("nav_text") or "",
        story_text=row.get("story_text") or "",
        handout=row.get("handout_text") or "",
        puzzle=Puzzle(
            type=row.get("puzzle_type"),
            prompt=row.get("question_text") or "",
            rules=row.get("rules_text"),
            hints=[hint for hint in hint_text.split("\n") if hint.strip()],
            answer=row.get("answer_text") or "",
            solution_steps=list(row.get("solution_steps") or []),
            difficulty=row.get("puzzle_difficulty"),
        ),
        reward=SceneReward(
            next_hook=row.get("completion_message") or "",
            lore_reveal=row.get("lore_reveal") or "",
            plot_key=row.get("plot_key") or "",
        ),
        linking_rationale=row.get("linking_rationale") or "",
    )


def timeline_from_row(row: dict[str, Any]) -> NarrativeTimeline:
    meta = row.get("meta_puzzle")
    return NarrativeTimeline(
        prologue=row.get("prologue") or "",
        epilogue=row.get("epilogue") or "",
        cast=[CastMember.model_validate(member) for member in row.get("cast_members") or []],
        meta_puzzle=MetaPuzzle.model_validate(meta) if meta else None,
    )
