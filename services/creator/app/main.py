"""FastAPI entrypoint for the Quest Lantern creator service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID, uuid4

from fastapi import Body, FastAPI, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from lantern_observability import log_context, setup_fastapi_metrics, setup_logging

from . import settings
from .cover import CoverImageGenerator, HttpCoverImageGenerator
from .dialogue import DialogueGenerator, LLMDialogueGenerator
from .errors import (
    EditConflictError,
    GenerationError,
    GenerationInFlightError,
    PersistenceError,
    ValidationError,
)
from .orchestrator import GenerationOrchestrator
from .persistence import InMemoryQuestStore, PersistenceMapper, PostgresQuestStore, QuestStore
from .pipeline import GenerationPipeline, MockPipeline, WorkflowPipeline
from .settings import SERVICE_NAME
from .workspace import QuestWorkspace

setup_logging(SERVICE_NAME)
logger = logging.getLogger(__name__)

SAVE_FAILED_DETAIL = "Save failed, please retry."


def build_pipeline() -> GenerationPipeline:
    if settings.PIPELINE_KIND == "workflow":
        return WorkflowPipeline(
            api_key=settings.WORKFLOW_API_KEY,
            endpoint=settings.WORKFLOW_URL,
            user=settings.WORKFLOW_USER,
            response_mode=settings.WORKFLOW_MODE,
            timeout_seconds=settings.GENERATION_TIMEOUT_SECONDS,
        )
    if settings.PIPELINE_KIND != "mock":
        logger.warning("Unknown pipeline kind; using the mock pipeline", extra={"pipeline": settings.PIPELINE_KIND})
    return MockPipeline()


def build_cover_generator() -> Optional[CoverImageGenerator]:
    if not settings.COVER_URL:
        return None
    return HttpCoverImageGenerator(
        endpoint=settings.COVER_URL,
        api_key=settings.COVER_API_KEY,
        timeout_seconds=settings.COVER_TIMEOUT_SECONDS,
    )


def build_dialogue_generator() -> Optional[DialogueGenerator]:
    if not settings.DIALOGUE_ENABLED:
        return None
    return LLMDialogueGenerator(service_name=SERVICE_NAME)


def build_store() -> QuestStore:
    if settings.DATABASE_URL:
        return PostgresQuestStore.from_url(settings.DATABASE_URL)
    logger.warning("DATABASE_URL is not set; quests are kept in memory only")
    return InMemoryQuestStore()


@dataclass
class DraftSession:
    workspace: QuestWorkspace
    orchestrator: GenerationOrchestrator


PIPELINE = build_pipeline()
COVER_GENERATOR = build_cover_generator()
DIALOGUE_GENERATOR = build_dialogue_generator()
STORE = build_store()
MAPPER = PersistenceMapper(STORE, service_name=SERVICE_NAME)
SESSIONS: dict[UUID, DraftSession] = {}


def _new_session(workspace: QuestWorkspace | None = None) -> tuple[UUID, DraftSession]:
    workspace = workspace or QuestWorkspace()
    session = DraftSession(
        workspace=workspace,
        orchestrator=GenerationOrchestrator(
            PIPELINE,
            workspace,
            cover_generator=COVER_GENERATOR,
            dialogue_generator=DIALOGUE_GENERATOR,
            service_name=SERVICE_NAME,
        ),
    )
    session_id = uuid4()
    SESSIONS[session_id] = session
    return session_id, session


def _get_session(draft_id: UUID) -> DraftSession:
    session = SESSIONS.get(draft_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Draft not found")
    return session


def _conflict(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


app = FastAPI(title="Quest Lantern Creator", version="0.1.0")
setup_fastapi_metrics(app, service_name=SERVICE_NAME)


@app.on_event("startup")
async def _on_startup() -> None:
    if isinstance(STORE, PostgresQuestStore):
        await run_in_threadpool(STORE.initialise_schema)


@app.get("/health", tags=["health"])
async def health() -> dict[str, str]:
    return {"status": "ok", "pipeline": PIPELINE.name}


@app.post("/drafts", status_code=status.HTTP_201_CREATED, tags=["drafts"])
async def create_draft() -> dict[str, Any]:
    draft_id, session = _new_session()
    logger.info("Draft workspace created", extra={"draft_id": str(draft_id)})
    return {"id": str(draft_id), **session.workspace.snapshot()}


@app.get("/drafts/{draft_id}", tags=["drafts"])
async def get_draft(draft_id: UUID) -> dict[str, Any]:
    return {"id": str(draft_id), **_get_session(draft_id).workspace.snapshot()}


@app.post("/drafts/{draft_id}/generate", tags=["generation"])
async def generate(draft_id: UUID, payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
    session = _get_session(draft_id)
    workspace = session.workspace
    with log_context(draft_id=str(draft_id)):
        try:
            with workspace.generation_guard():
                await session.orchestrator.generate(payload)
        except GenerationInFlightError as exc:
            raise _conflict(exc) from exc
        except ValidationError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail={"field": exc.field, "message": exc.message},
            ) from exc
        except GenerationError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message) from exc
    return {"id": str(draft_id), **workspace.snapshot()}


@app.post("/drafts/{draft_id}/sections/{section_id}/edit", tags=["sections"])
async def start_edit(draft_id: UUID, section_id: str) -> dict[str, Any]:
    workspace = _get_session(draft_id).workspace
    try:
        scratch = workspace.start_edit(section_id)
    except EditConflictError as exc:
        raise _conflict(exc) from exc
    return {"section_id": section_id, "scratch": scratch.model_dump(mode="json")}


@app.patch("/drafts/{draft_id}/sections/{section_id}/scratch", tags=["sections"])
async def update_scratch(draft_id: UUID, section_id: str, changes: dict[str, Any] = Body(...)) -> dict[str, Any]:
    workspace = _get_session(draft_id).workspace
    try:
        scratch = workspace.update_edit(section_id, changes)
    except EditConflictError as exc:
        raise _conflict(exc) from exc
    return {"section_id": section_id, "scratch": scratch.model_dump(mode="json")}


@app.post("/drafts/{draft_id}/sections/{section_id}/cancel", tags=["sections"])
async def cancel_edit(draft_id: UUID, section_id: str) -> dict[str, Any]:
    workspace = _get_session(draft_id).workspace
    try:
        workspace.cancel_edit(section_id)
    except EditConflictError as exc:
        raise _conflict(exc) from exc
    return {"id": str(draft_id), **workspace.snapshot()}


@app.post("/drafts/{draft_id}/sections/{section_id}/commit", tags=["sections"])
async def commit_edit(draft_id: UUID, section_id: str) -> dict[str, Any]:
    workspace = _get_session(draft_id).workspace
    try:
        workspace.commit_edit(section_id)
    except EditConflictError as exc:
        raise _conflict(exc) from exc
    return {"id": str(draft_id), **workspace.snapshot()}


@app.post("/drafts/{draft_id}/sections/{section_id}/lock", tags=["sections"])
async def lock_section(draft_id: UUID, section_id: str) -> dict[str, Any]:
    workspace = _get_session(draft_id).workspace
    try:
        workspace.lock(section_id)
    except EditConflictError as exc:
        raise _conflict(exc) from exc
    return {"id": str(draft_id), **workspace.snapshot()}


@app.post("/drafts/{draft_id}/sections/{section_id}/unlock", tags=["sections"])
async def unlock_section(draft_id: UUID, section_id: str) -> dict[str, Any]:
    workspace = _get_session(draft_id).workspace
    try:
        workspace.unlock(section_id)
    except EditConflictError as exc:
        raise _conflict(exc) from exc
    return {"id": str(draft_id), **workspace.snapshot()}


@app.post("/drafts/{draft_id}/sections/{section_id}/collapse", tags=["sections"])
async def toggle_collapse(draft_id: UUID, section_id: str) -> dict[str, Any]:
    workspace = _get_session(draft_id).workspace
    try:
        collapsed = workspace.toggle_collapse(section_id)
    except EditConflictError as exc:
        raise _conflict(exc) from exc
    return {"section_id": section_id, "collapsed": collapsed}


@app.post("/drafts/{draft_id}/save", tags=["persistence"])
async def save_draft(draft_id: UUID) -> dict[str, str]:
    session = _get_session(draft_id)
    with log_context(draft_id=str(draft_id)):
        try:
            quest_id = await session.workspace.save(MAPPER)
        except GenerationInFlightError as exc:
            raise _conflict(exc) from exc
        except PersistenceError as exc:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=SAVE_FAILED_DETAIL) from exc
    return {"quest_id": str(quest_id)}


@app.post("/quests/{quest_id}/open", status_code=status.HTTP_201_CREATED, tags=["persistence"])
async def open_quest(quest_id: UUID) -> dict[str, Any]:
    """Load a saved quest into a fresh editable workspace."""

    draft = await MAPPER.load(quest_id)
    if draft is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quest not found")
    draft_id, session = _new_session(QuestWorkspace(draft))
    session.workspace.mark_loaded()
    logger.info("Saved quest opened", extra={"draft_id": str(draft_id), "quest_id": str(quest_id)})
    return {"id": str(draft_id), **session.workspace.snapshot()}
