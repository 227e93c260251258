"""Error-correction loop: one AI-proposed fix and one retry per failed step."""

import logging

from agentic_pipeline.capabilities.protocols import CompletionProvider
from agentic_pipeline.models import StepStatus, Task, TaskStep
from agentic_pipeline.pipeline.cancellation import CancellationToken
from agentic_pipeline.pipeline.executor import StepExecutor, StepOutcome
from agentic_pipeline.pipeline.parsing import parse_correction_response
from agentic_pipeline.pipeline.prompts import build_correction_prompt

logger = logging.getLogger(__name__)

CORRECTION_FAILED_PREFIX = "Error correction failed"


class ErrorCorrector:
    """Requests fixes for a failed step and re-runs it exactly once."""

    def __init__(self, completion: CompletionProvider, executor: StepExecutor):
        self.completion = completion
        self.executor = executor

    def correct(
        self, task: Task, step: TaskStep, token: CancellationToken | None = None
    ) -> StepOutcome:
        """Correct and retry a failed step.

        Consumes one unit of the task's correction budget whether or not the
        retry succeeds. On failure the step keeps status failed and its error
        is prefixed with ``CORRECTION_FAILED_PREFIX``.

        Args:
            task: Owning task
            step: The failed step
            token: Passed through to the retry

        Returns:
            Outcome of the retry, or FAILED if no fix could be obtained
        """
        task.corrections_used += 1
        original_error = step.error
        try:
            raw = self.completion.complete(build_correction_prompt(task, step))
            fixes = parse_correction_response(raw)
        except Exception as e:
            step.status = StepStatus.FAILED
            step.error = f"{CORRECTION_FAILED_PREFIX}: {e}"
            logger.warning("No correction for %s of %s: %s", step.id, task.id, e)
            return StepOutcome.FAILED

        step_input = dict(step.input or {})
        step_input["previous_error"] = original_error
        step_input["corrections"] = list(step_input.get("corrections", [])) + [
            f"{fix.description} ({fix.detail})" if fix.detail else fix.description
            for fix in fixes
        ]
        step.input = step_input
        logger.info("Retrying %s of %s with %d fix(es)", step.id, task.id, len(fixes))

        outcome = self.executor.run_step(task, step, token)
        if outcome == StepOutcome.FAILED:
            step.error = f"{CORRECTION_FAILED_PREFIX}: {step.error}"
        return outcome
