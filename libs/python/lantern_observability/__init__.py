"""Shared observability helpers used across Quest Lantern services."""

from .logging import log_context, setup_logging
from .metrics import (
    observe_pipeline_event,
    observe_provider_response,
    observe_stage_duration,
    setup_fastapi_metrics,
    start_metrics_server,
)

__all__ = [
    "setup_logging",
    "log_context",
    "setup_fastapi_metrics",
    "start_metrics_server",
    "observe_pipeline_event",
    "observe_provider_response",
    "observe_stage_duration",
]
