"""Generation pipeline capability and its implementations."""

from .base import GenerationPipeline, PipelineCallbacks, PipelineError, parse_pipeline_output
from .mock import MockPipeline
from .workflow import WorkflowPipeline, build_workflow_inputs

__all__ = [
    "GenerationPipeline",
    "PipelineCallbacks",
    "PipelineError",
    "parse_pipeline_output",
    "MockPipeline",
    "WorkflowPipeline",
    "build_workflow_inputs",
]
