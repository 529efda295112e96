"""One editable quest draft and the state the editing surface reads alongside it."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator, Mapping, Optional
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from lantern_observability import log_context
from lantern_schemas import GenerationRequest, QuestDraft, SectionStatus

from . import geometry
from .errors import EditConflictError, GenerationInFlightError
from .sections import BASIC_INFO, STORY, SectionStore, is_known_section, spot_index, spot_section_id

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from .persistence.mapper import PersistenceMapper

logger = logging.getLogger(__name__)


class QuestWorkspace:
    """Owns a draft, its section statuses and the generation bookkeeping.

    ``run_id`` increases with every generation; auxiliary results tagged with an
    older run are discarded instead of being written into the newer draft.
    """

    def __init__(self, draft: QuestDraft | None = None, sections: SectionStore | None = None) -> None:
        self.draft = draft or QuestDraft()
        self.sections = sections or SectionStore()
        self.phase_label = ""
        self.progress = 0
        self.error: Optional[str] = None
        self.in_flight = False
        self.run_id = 0
        self.last_request: Optional[GenerationRequest] = None

    @contextmanager
    def generation_guard(self) -> Iterator[None]:
        """Hold the draft for one generation run or one save; reject anything that overlaps."""

        if self.in_flight:
            raise GenerationInFlightError("A generation run or save is already in progress for this draft")
        self.in_flight = True
        try:
            yield
        finally:
            self.in_flight = False

    def mark_loaded(self) -> None:
        """Mark every section present in a freshly loaded draft as ready."""

        self.sections.set_status(BASIC_INFO, SectionStatus.READY)
        if self.draft.timeline is not None:
            self.sections.set_status(STORY, SectionStatus.READY)
        for index, scene in enumerate(self.draft.scenes):
            if scene is not None:
                self.sections.set_status(spot_section_id(index), SectionStatus.READY)

    # Edit commands

    def start_edit(self, section_id: str) -> Any:
        source = self._section_source(section_id)
        with log_context(section_id=section_id):
            logger.info("Edit started")
        return self.sections.start_edit(section_id, source)

    def update_edit(self, section_id: str, changes: Mapping[str, Any]) -> Any:
        """Apply ``changes`` to the scratch copy, validating the result."""

        scratch = self.sections.scratch(section_id)
        try:
            updated = type(scratch).model_validate({**scratch.model_dump(), **dict(changes)})
        except PydanticValidationError as exc:
            raise EditConflictError(f"Invalid changes for {section_id}: {exc.error_count()} error(s)") from exc
        self.sections.replace_scratch(section_id, updated)
        return updated

    def cancel_edit(self, section_id: str) -> None:
        self.sections.cancel_edit(section_id)

    def commit_edit(self, section_id: str) -> Any:
        edited = self.sections.commit_edit(section_id)
        if section_id == BASIC_INFO:
            self.draft.basic_info = edited
        elif section_id == STORY:
            self.draft.timeline = edited
        else:
            self.draft.place_scene(spot_index(section_id), edited)
        self.draft.touch()
        with log_context(section_id=section_id):
            logger.info("Edit committed")
        return edited

    def lock(self, section_id: str) -> None:
        self._require_known(section_id)
        self.sections.lock(section_id)

    def unlock(self, section_id: str) -> None:
        self._require_known(section_id)
        self.sections.unlock(section_id)

    def toggle_collapse(self, section_id: str) -> bool:
        self._require_known(section_id)
        return self.sections.toggle_collapse(section_id)

    async def save(self, mapper: "PersistenceMapper") -> UUID:
        """Persist the draft and adopt the store-assigned scene ids.

        On failure the draft is left exactly as it was so the save can be retried.
        The workspace stays in flight until the store answers, so no generation
        can reset the draft underneath the save.
        """

        if self.in_flight:
            raise GenerationInFlightError("Cannot save while a generation run is in progress")
        run_id = self.run_id
        with self.generation_guard():
            report = await mapper.save_with_report(self.draft.mint_id(), self.draft)
        if self.run_id != run_id:
            logger.warning("Draft was regenerated during save; keeping its temporary scene ids")
            return report.quest_id
        scenes = self.draft.ordered_scenes()
        self.draft.scenes = [
            scene.model_copy(update={"id": str(store_id)}) for scene, store_id in zip(scenes, report.scene_ids)
        ]
        return report.quest_id

    # Read side

    def route_metrics(self) -> geometry.RouteMetrics:
        return geometry.route_metrics(self.draft.ordered_scenes())

    def climax_indices(self) -> list[int]:
        return geometry.climax_indices(self.draft.ordered_scenes())

    def snapshot(self) -> dict[str, Any]:
        metrics = self.route_metrics()
        return {
            "draft": self.draft.model_dump(mode="json"),
            "sections": self.sections.snapshot(),
            "collapsed": self.sections.collapsed,
            "phase_label": self.phase_label,
            "progress": self.progress,
            "error": self.error,
            "in_flight": self.in_flight,
            "route": {
                "total_km": round(metrics.total_km, 3),
                "total_minutes": metrics.total_minutes,
                "segment_minutes": metrics.segment_minutes,
            },
            "climax_indices": self.climax_indices(),
        }

    def _section_source(self, section_id: str) -> Any:
        self._require_known(section_id)
        if section_id == BASIC_INFO:
            return self.draft.basic_info
        if section_id == STORY:
            if self.draft.timeline is None:
                raise EditConflictError("Story has not been generated yet")
            return self.draft.timeline
        index = spot_index(section_id)
        if index >= len(self.draft.scenes) or self.draft.scenes[index] is None:
            raise EditConflictError(f"Scene {index} has not been generated yet")
        return self.draft.scenes[index]

    @staticmethod
    def _require_known(section_id: str) -> None:
        if not is_known_section(section_id):
            raise EditConflictError(f"Unknown section: {section_id}")
