"""Task pipeline: planning, step execution, correction, validation and scheduling."""

from agentic_pipeline.pipeline.cancellation import CancellationToken
from agentic_pipeline.pipeline.correction import CORRECTION_FAILED_PREFIX, ErrorCorrector
from agentic_pipeline.pipeline.exceptions import (
    ConfigurationUpdateError,
    ConstraintViolationError,
    CorrectionError,
    GraphBuildError,
    MissingStepOutputError,
    PipelineError,
    ResponseParseError,
    SimulationConflictError,
    StepExecutionError,
    TaskConfigurationError,
    UnknownTaskTypeError,
)
from agentic_pipeline.pipeline.executor import StepExecutor, StepOutcome
from agentic_pipeline.pipeline.graph import build_task_graph, run_task_graph
from agentic_pipeline.pipeline.handlers import StepHandlers
from agentic_pipeline.pipeline.lookup import compute_progress, latest_output
from agentic_pipeline.pipeline.planner import StepPlanner
from agentic_pipeline.pipeline.scheduler import PipelineScheduler
from agentic_pipeline.pipeline.service import AgenticPipeline
from agentic_pipeline.pipeline.state import TaskRunState, make_initial_state
from agentic_pipeline.pipeline.store import TaskStore
from agentic_pipeline.pipeline.validation import ValidationPipeline

__all__ = [
    "CORRECTION_FAILED_PREFIX",
    "AgenticPipeline",
    "CancellationToken",
    "ConfigurationUpdateError",
    "ConstraintViolationError",
    "CorrectionError",
    "ErrorCorrector",
    "GraphBuildError",
    "MissingStepOutputError",
    "PipelineError",
    "PipelineScheduler",
    "ResponseParseError",
    "SimulationConflictError",
    "StepExecutionError",
    "StepExecutor",
    "StepHandlers",
    "StepOutcome",
    "StepPlanner",
    "TaskConfigurationError",
    "TaskRunState",
    "TaskStore",
    "UnknownTaskTypeError",
    "ValidationPipeline",
    "build_task_graph",
    "compute_progress",
    "latest_output",
    "make_initial_state",
    "run_task_graph",
]
