"""Structured JSON logging with context binding."""

from __future__ import annotations

import json
import logging
import logging.config
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator


_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("lantern_log_context", default={})


class ContextFilter(logging.Filter):
    """Copy fields bound through :func:`log_context` onto each record."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 - inherited docstring
        bound = _LOG_CONTEXT.get()
        if bound:
            record.lantern_context = bound
            for key, value in bound.items():
                if not hasattr(record, key):
                    setattr(record, key, value)
        if getattr(record, "service", None) is None:
            record.service = self.service_name
        return True


class JsonFormatter(logging.Formatter):
    """Emit one JSON object per record."""

    _STDLIB_FIELDS = frozenset(
        {
            "args",
            "asctime",
            "created",
            "exc_info",
            "exc_text",
            "filename",
            "funcName",
            "levelname",
            "levelno",
            "lineno",
            "module",
            "msecs",
            "msg",
            "name",
            "pathname",
            "process",
            "processName",
            "relativeCreated",
            "stack_info",
            "taskName",
            "thread",
            "threadName",
            "lantern_context",
        }
    )

    _ALWAYS_INCLUDE = (
        "service",
        "draft_id",
        "quest_id",
        "run_id",
        "phase",
        "section_id",
        "scene_index",
        "step",
        "task",
        "provider",
        "route",
        "method",
        "status_code",
        "latency_ms",
    )

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited docstring
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self._ALWAYS_INCLUDE:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        bound = getattr(record, "lantern_context", None)
        if isinstance(bound, dict):
            for key, value in bound.items():
                if value is not None:
                    payload.setdefault(key, value)

        for key, value in record.__dict__.items():
            if key in payload or key in self._STDLIB_FIELDS or key.startswith("_"):
                continue
            if _json_safe(value):
                payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)
        return json.dumps(payload, ensure_ascii=False)


def _json_safe(value: Any) -> bool:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return False
    return True


def setup_logging(
    service_name: str,
    level: str | int | None = None,
    *,
    capture_warnings: bool | None = None,
) -> None:
    """Configure JSON logging on stdout for the current process.

    Safe to call repeatedly; each call rebuilds the handler set with the new level.
    """

    resolved_level = level or os.getenv("LANTERN_LOG_LEVEL", "INFO")
    handlers = ["stdout"]
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": "lantern_observability.logging.JsonFormatter"}},
            "filters": {
                "context": {
                    "()": "lantern_observability.logging.ContextFilter",
                    "service_name": service_name,
                }
            },
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "stream": sys.stdout,
                    "formatter": "json",
                    "filters": ["context"],
                }
            },
            "root": {"level": resolved_level, "handlers": handlers},
            "loggers": {
                name: {"handlers": handlers, "level": resolved_level, "propagate": False}
                for name in ("uvicorn", "uvicorn.error", "uvicorn.access")
            },
        }
    )

    if capture_warnings is None:
        flag = os.getenv("LANTERN_CAPTURE_WARNINGS", "")
        capture_warnings = flag.strip().lower() in {"1", "true", "yes", "on"}
    if capture_warnings:
        logging.captureWarnings(True)


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Bind fields to every log record emitted inside the block.

    Passing ``None`` for a key removes it for the duration of the block.
    """

    merged = dict(_LOG_CONTEXT.get())
    for key, value in fields.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value
    token = _LOG_CONTEXT.set(merged)
    try:
        yield
    finally:
        _LOG_CONTEXT.reset(token)
