"""Runs one step by dispatching to its handler."""

import logging
import time
from collections.abc import Callable
from enum import Enum

from agentic_pipeline.models import (
    PipelineConfiguration,
    StepStatus,
    StepType,
    Task,
    TaskStep,
)
from agentic_pipeline.pipeline.cancellation import CancellationToken
from agentic_pipeline.pipeline.exceptions import PipelineError, StepExecutionError
from agentic_pipeline.pipeline.handlers import StepHandlers
from agentic_pipeline.pipeline.lookup import OUTPUT_TYPES

logger = logging.getLogger(__name__)


class StepOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


def skip_reason(step: TaskStep, task: Task, config: PipelineConfiguration) -> str | None:
    """Why ``step`` should not run, or None if it should."""
    if step.type == StepType.VALIDATION:
        if not config.enable_validation:
            return "validation disabled"
        if not task.context.constraints.require_validation:
            return "validation not required by task constraints"
    if step.type == StepType.TESTING and not config.enable_testing:
        return "testing disabled"
    return None


class StepExecutor:
    """Executes steps and records status, output, error and duration on them.

    This is the only place handler exceptions are caught.
    """

    def __init__(
        self,
        handlers: StepHandlers,
        config_provider: Callable[[], PipelineConfiguration] | None = None,
    ):
        self.config_provider = config_provider or PipelineConfiguration
        self._dispatch: dict[StepType, Callable] = {
            StepType.ANALYSIS: handlers.run_analysis,
            StepType.PLANNING: handlers.run_planning,
            StepType.IMPLEMENTATION: handlers.run_implementation,
            StepType.VALIDATION: handlers.run_validation,
            StepType.TESTING: handlers.run_testing,
            StepType.DOCUMENTATION: handlers.run_documentation,
        }
        missing = set(StepType) - set(self._dispatch)
        if missing:
            raise PipelineError(
                f"No handler for step type(s): {', '.join(sorted(t.value for t in missing))}"
            )

    def run_step(
        self, task: Task, step: TaskStep, token: CancellationToken | None = None
    ) -> StepOutcome:
        """Run ``step`` of ``task`` once.

        Args:
            task: Owning task, read by handlers for earlier outputs
            step: Step to run; mutated in place
            token: Checked before the step starts

        Returns:
            StepOutcome of this run
        """
        if token is not None and token.is_cancelled:
            return StepOutcome.CANCELLED

        reason = skip_reason(step, task, self.config_provider())
        if reason is not None:
            step.status = StepStatus.SKIPPED
            logger.info("Skipped %s of %s: %s", step.id, task.id, reason)
            return StepOutcome.SKIPPED

        step.status = StepStatus.IN_PROGRESS
        step.attempts += 1
        step.error = None
        started = time.perf_counter()
        try:
            output = self._dispatch[step.type](task, step)
            expected = OUTPUT_TYPES[step.type]
            if not isinstance(output, expected):
                raise StepExecutionError(
                    f"Handler for {step.type.value} returned {type(output).__name__}, "
                    f"expected {expected.__name__}"
                )
            step.output = output
            step.status = StepStatus.COMPLETED
        except Exception as e:
            step.status = StepStatus.FAILED
            step.error = str(e) or type(e).__name__
            logger.warning("Step %s of %s failed: %s", step.id, task.id, step.error)
        finally:
            step.duration_ms = (time.perf_counter() - started) * 1000

        if step.status == StepStatus.COMPLETED:
            logger.info("Step %s of %s completed in %.0f ms", step.id, task.id, step.duration_ms)
            return StepOutcome.COMPLETED
        return StepOutcome.FAILED
