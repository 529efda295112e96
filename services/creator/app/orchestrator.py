"""Generation run lifecycle: pipeline callbacks, reconciliation and auxiliary work."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from time import perf_counter
from typing import Any, Awaitable, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from lantern_observability import log_context, observe_pipeline_event, observe_stage_duration
from lantern_schemas import (
    BasicInfo,
    CastMember,
    GenerationMetadata,
    GenerationPhase,
    GenerationRequest,
    MainPlot,
    MetaPuzzle,
    MetaPuzzleKey,
    NarrativeTimeline,
    PipelineProgress,
    PipelineResult,
    PipelineScene,
    Puzzle,
    QuestDraft,
    Scene,
    SceneReward,
    SectionStatus,
)

from .cover import CoverImageGenerator, CoverRequest
from .dialogue import DialogueGenerator
from .dialogue.engine import NARRATOR_NAME
from .errors import GenerationError, ValidationError
from .pipeline import GenerationPipeline, PipelineCallbacks, PipelineError, parse_pipeline_output
from .pipeline.base import describe_validation_error
from .sections import BASIC_INFO, STORY, spot_section_id
from .settings import SERVICE_NAME
from .workspace import QuestWorkspace

logger = logging.getLogger(__name__)

PHASE_LABELS = {
    GenerationPhase.MOTIF_SELECTION.value: "Selecting motifs...",
    GenerationPhase.PLOT_CREATION.value: "Building the story...",
    GenerationPhase.PUZZLE_DESIGN.value: "Designing puzzles...",
    GenerationPhase.VALIDATION.value: "Validating quality...",
}
DEFAULT_PHASE_LABEL = "Designing quest..."

# Sections in these states belong to the user; pipeline writes update the draft
# but leave the status alone.
_USER_HELD = (SectionStatus.EDITING, SectionStatus.LOCKED)


def phase_label(progress: PipelineProgress) -> str:
    label = PHASE_LABELS.get(progress.phase, DEFAULT_PHASE_LABEL)
    if progress.phase == GenerationPhase.PUZZLE_DESIGN.value and progress.scene_index is not None:
        position = progress.scene_index + 1
        label = f"{label} ({position}/{progress.scene_total})" if progress.scene_total else f"{label} ({position})"
    return label


def coerce_request(request: GenerationRequest | Mapping[str, Any]) -> GenerationRequest:
    """Validate raw input into a request, raising :class:`ValidationError` on the first bad field."""

    if isinstance(request, GenerationRequest):
        if not request.prompt.strip():
            raise ValidationError("prompt", "Prompt must not be empty")
        return request
    try:
        return GenerationRequest.model_validate(dict(request))
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "request"
        message = str(first.get("msg", "Invalid value")).removeprefix("Value error, ")
        raise ValidationError(field, message) from exc


def scene_from_pipeline(spot: PipelineScene) -> Scene:
    return Scene(
        name=spot.spot_name,
        address=spot.address,
        lat=spot.lat,
        lng=spot.lng,
        place_id=spot.place_id,
        scene_role=spot.scene_role,
        directions=spot.directions,
        story_text=spot.lore_card.short_story_text,
        handout=spot.lore_card.player_handout,
        puzzle=Puzzle(
            type=spot.puzzle.type,
            prompt=spot.puzzle.prompt,
            rules=spot.puzzle.rules,
            hints=spot.puzzle.hints,
            answer=spot.puzzle.answer,
            solution_steps=spot.puzzle.solution_steps,
            difficulty=spot.puzzle.difficulty,
        ),
        reward=SceneReward(
            next_hook=spot.reward.next_hook,
            lore_reveal=spot.reward.lore_reveal,
            plot_key=spot.reward.plot_key,
        ),
        linking_rationale=spot.linking_rationale,
    )


def build_timeline(result: PipelineResult, scenes: list[Scene]) -> NarrativeTimeline:
    creator = result.creator_payload
    plot = creator.main_plot
    meta = creator.meta_puzzle
    cast = [
        CastMember(
            name=character.name,
            role=character.role,
            tone=character.tone,
            motivation=character.motivation,
            sample_line=character.sample_line,
        )
        for character in creator.characters
        if character.name.strip()
    ] or [CastMember(name=NARRATOR_NAME, role="narrator")]
    return NarrativeTimeline(
        prologue=_join_paragraphs(plot.premise, plot.goal),
        epilogue=_join_paragraphs(plot.final_reveal_outline, meta.explanation if meta else ""),
        cast=cast,
        meta_puzzle=MetaPuzzle(
            keys=[
                MetaPuzzleKey(position=position, plot_key=scene.reward.plot_key)
                for position, scene in enumerate(scenes, start=1)
                if scene.reward.plot_key
            ],
            question=meta.prompt if meta else "",
            final_answer=meta.answer if meta else "",
            explanation=meta.explanation if meta else "",
        ),
    )


def _join_paragraphs(*parts: str) -> str:
    return "\n\n".join(part.strip() for part in parts if part and part.strip())


class GenerationOrchestrator:
    """Drives one workspace through generation runs.

    Callbacks run synchronously and are applied in the order the pipeline emits
    them. Primary generation is all-or-nothing; cover and dialogue generation run
    afterwards as fire-and-forget tasks whose failures are logged and dropped.
    Re-entrancy is guarded by the caller through
    :meth:`QuestWorkspace.generation_guard`.
    """

    def __init__(
        self,
        pipeline: GenerationPipeline,
        workspace: QuestWorkspace,
        *,
        cover_generator: CoverImageGenerator | None = None,
        dialogue_generator: DialogueGenerator | None = None,
        service_name: str = SERVICE_NAME,
    ) -> None:
        self._pipeline = pipeline
        self._workspace = workspace
        self._cover_generator = cover_generator
        self._dialogue_generator = dialogue_generator
        self._service_name = service_name
        self._auxiliary_tasks: set[asyncio.Task] = set()
        self._request: Optional[GenerationRequest] = None

    @property
    def workspace(self) -> QuestWorkspace:
        return self._workspace

    @property
    def draft(self) -> QuestDraft:
        return self._workspace.draft

    async def generate(self, request: GenerationRequest | Mapping[str, Any]) -> QuestDraft:
        request = coerce_request(request)
        workspace = self._workspace
        draft_id = workspace.draft.mint_id()
        workspace.run_id += 1
        run_id = workspace.run_id
        workspace.last_request = request
        self._request = request

        workspace.draft.reset_children()
        workspace.sections.clear()
        workspace.error = None
        workspace.phase_label = DEFAULT_PHASE_LABEL
        workspace.progress = 0

        callbacks = PipelineCallbacks(
            on_progress=self._on_progress,
            on_plot_complete=self._on_plot_complete,
            on_spot_complete=self._on_spot_complete,
        )

        start = perf_counter()
        outcome = "success"
        with log_context(draft_id=str(draft_id), run_id=run_id):
            logger.info(
                "Starting generation",
                extra={
                    "pipeline": self._pipeline.name,
                    "scene_count": request.scene_count,
                    "difficulty": request.difficulty.value,
                },
            )
            try:
                result = parse_pipeline_output(await self._pipeline.run(request, callbacks))
                self._reconcile(request, result)
            except Exception as exc:
                outcome = "error"
                message = str(exc) if isinstance(exc, (PipelineError, GenerationError)) and str(exc) else None
                logger.exception("Generation failed")
                self._reset_after_failure(message or GenerationError.DEFAULT_MESSAGE)
                raise GenerationError(message) from exc
            finally:
                observe_stage_duration(
                    "generation",
                    perf_counter() - start,
                    service_name=self._service_name,
                    status=outcome,
                )
            logger.info("Generation completed", extra={"scene_count": len(self.draft.ordered_scenes())})

        self._schedule_auxiliary(run_id, request)
        return self.draft

    async def wait_for_auxiliary(self) -> None:
        """Await outstanding cover/dialogue tasks. Their failures are already handled."""

        if self._auxiliary_tasks:
            await asyncio.gather(*list(self._auxiliary_tasks))

    # Pipeline callbacks. No awaits in here: each one is applied in full before
    # the pipeline can deliver the next.

    def _on_progress(self, progress: PipelineProgress) -> None:
        observe_pipeline_event("progress", service_name=self._service_name)
        workspace = self._workspace
        workspace.phase_label = phase_label(progress)
        workspace.progress = max(workspace.progress, progress.progress)

        if progress.phase == GenerationPhase.PLOT_CREATION.value and workspace.sections.status(BASIC_INFO) is None:
            workspace.sections.set_status(BASIC_INFO, SectionStatus.GENERATING)
        if progress.scene_index is not None:
            self._mark(spot_section_id(progress.scene_index), SectionStatus.GENERATING)
        logger.debug("Pipeline progress", extra={"phase": progress.phase, "progress": progress.progress})

    def _on_plot_complete(self, plot: MainPlot) -> None:
        observe_pipeline_event("plot", service_name=self._service_name)
        request = self._request
        self.draft.basic_info = BasicInfo(
            title=plot.title,
            description=plot.premise,
            difficulty=request.difficulty.value if request else self.draft.basic_info.difficulty,
            tags=list(request.theme_tags) if request else [],
            clear_condition=plot.goal,
        )
        self.draft.touch()
        self._mark(BASIC_INFO, SectionStatus.READY)
        logger.info("Plot received", extra={"has_title": bool(plot.title)})

    def _on_spot_complete(self, spot: PipelineScene, index: int) -> None:
        observe_pipeline_event("spot", service_name=self._service_name)
        try:
            scene = scene_from_pipeline(spot)
        except PydanticValidationError as exc:
            raise PipelineError(f"Scene {index + 1} is invalid: {describe_validation_error(exc)}") from exc
        self.draft.place_scene(index, scene)
        self._mark(spot_section_id(index), SectionStatus.READY)
        logger.info("Scene received", extra={"scene_index": index})

    def _mark(self, section_id: str, status: SectionStatus) -> None:
        sections = self._workspace.sections
        if sections.status(section_id) in _USER_HELD:
            return
        sections.set_status(section_id, status)

    def _reconcile(self, request: GenerationRequest, result: PipelineResult) -> None:
        """Fold the final payload into the draft once every scene is known."""

        draft = self.draft
        preview = result.player_preview
        creator = result.creator_payload

        for index, spot in enumerate(creator.spots):
            if index >= len(draft.scenes) or draft.scenes[index] is None:
                draft.place_scene(index, scene_from_pipeline(spot))
                self._mark(spot_section_id(index), SectionStatus.READY)

        info = draft.basic_info
        draft.basic_info = BasicInfo(
            title=preview.title or creator.quest_title or info.title,
            description=creator.main_plot.premise or preview.one_liner or info.description,
            difficulty=preview.route_meta.difficulty_label or request.difficulty.value,
            tags=preview.tags or request.theme_tags,
            highlights=[spot.name for spot in preview.highlight_spots],
            area=preview.route_meta.area_start or info.area,
            mission=preview.mission or info.mission,
            clear_condition=creator.main_plot.goal or info.clear_condition,
        )

        scenes = draft.ordered_scenes()
        draft.timeline = build_timeline(result, scenes)
        if creator.cover_image_url:
            draft.cover_image_url = creator.cover_image_url

        report = creator.generation_metadata
        draft.metadata = GenerationMetadata(
            warnings=list(report.validation_warnings),
            generated_at=report.generated_at or datetime.now(timezone.utc),
            pipeline_version=report.pipeline_version,
        )
        if report.validation_warnings:
            logger.warning("Pipeline reported validation warnings", extra={"warnings": report.validation_warnings})

        self._mark(BASIC_INFO, SectionStatus.READY)
        self._workspace.sections.set_status(STORY, SectionStatus.READY)
        self._workspace.progress = 100
        draft.touch()

    def _reset_after_failure(self, message: str) -> None:
        workspace = self._workspace
        workspace.sections.clear()
        workspace.draft.reset_children()
        workspace.draft.basic_info = BasicInfo()
        workspace.error = message
        workspace.phase_label = ""
        workspace.progress = 0

    # Auxiliary generation

    def _schedule_auxiliary(self, run_id: int, request: GenerationRequest) -> None:
        draft = self.draft
        if self._cover_generator is not None and not draft.cover_image_url:
            self._spawn(self._run_cover(run_id, request))
        if self._dialogue_generator is not None:
            if draft.timeline is None or not draft.ordered_scenes():
                logger.info("Skipping dialogue generation: narrative or scenes missing")
            else:
                self._spawn(self._run_dialogue(run_id, request))

    def _spawn(self, work: Awaitable[None]) -> None:
        task = asyncio.ensure_future(work)
        self._auxiliary_tasks.add(task)
        task.add_done_callback(self._auxiliary_tasks.discard)

    async def _run_cover(self, run_id: int, request: GenerationRequest) -> None:
        cover_request = CoverRequest.from_draft(
            self.draft,
            tone=request.tone_support,
            genre=request.genre_support,
            prompt_support=request.prompt_support,
        )
        image_url = await self._run_auxiliary("cover", run_id, self._cover_generator.generate(cover_request))
        if image_url is not None:
            self.draft.cover_image_url = image_url
            self.draft.touch()

    async def _run_dialogue(self, run_id: int, request: GenerationRequest) -> None:
        lines = await self._run_auxiliary(
            "dialogue",
            run_id,
            self._dialogue_generator.generate(self.draft.timeline, self.draft.ordered_scenes(), theme=request.prompt),
        )
        if lines is not None:
            self.draft.dialogue = lines
            self.draft.touch()

    async def _run_auxiliary(self, task_name: str, run_id: int, work: Awaitable[Any]) -> Any:
        """Await ``work``; return its result, or ``None`` if it failed or the run was superseded."""

        start = perf_counter()
        outcome = "success"
        with log_context(draft_id=str(self.draft.id), run_id=run_id, task=task_name):
            try:
                result = await work
            except Exception:
                outcome = "error"
                logger.warning("Auxiliary %s generation failed; continuing without it", task_name, exc_info=True)
                return None
            finally:
                observe_stage_duration(
                    f"aux_{task_name}",
                    perf_counter() - start,
                    service_name=self._service_name,
                    status=outcome,
                )
            if self._workspace.run_id != run_id:
                logger.info("Discarding %s result from a superseded run", task_name)
                return None
            logger.info("Auxiliary %s generation finished", task_name)
            return result
