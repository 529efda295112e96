"""Environment-driven settings for the creator service."""

from __future__ import annotations

import os


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


SERVICE_NAME = "creator"

PIPELINE_KIND = os.getenv("LANTERN_PIPELINE", "mock").strip().lower()
WORKFLOW_URL = os.getenv("LANTERN_WORKFLOW_URL", "https://api.dify.ai/v1/workflows/run")
WORKFLOW_API_KEY = os.getenv("LANTERN_WORKFLOW_API_KEY", "")
WORKFLOW_MODE = os.getenv("LANTERN_WORKFLOW_MODE", "blocking").strip().lower()
WORKFLOW_USER = os.getenv("LANTERN_WORKFLOW_USER", "quest-lantern")
GENERATION_TIMEOUT_SECONDS = float(os.getenv("LANTERN_GENERATION_TIMEOUT", "300"))

COVER_URL = os.getenv("LANTERN_COVER_URL", "")
COVER_API_KEY = os.getenv("LANTERN_COVER_API_KEY", "")
COVER_TIMEOUT_SECONDS = float(os.getenv("LANTERN_COVER_TIMEOUT", "60"))

DIALOGUE_ENABLED = _flag("LANTERN_DIALOGUE_ENABLED", "true")

# psycopg connection URLs do not use SQLAlchemy's driver suffix.
DATABASE_URL = os.getenv("DATABASE_URL", "").replace("+psycopg", "")
