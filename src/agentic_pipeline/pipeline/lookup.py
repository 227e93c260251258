"""Pure helpers for reading task state.

All functions are stateless and have no external dependencies.
"""

from typing import TypeVar

from agentic_pipeline.models import (
    AnalysisOutput,
    DocumentationOutput,
    ImplementationOutput,
    PlanningOutput,
    StepStatus,
    StepType,
    Task,
    TaskProgress,
    TaskStep,
    TestingOutput,
    ValidationOutput,
)

OutputT = TypeVar("OutputT")

OUTPUT_TYPES: dict[StepType, type] = {
    StepType.ANALYSIS: AnalysisOutput,
    StepType.PLANNING: PlanningOutput,
    StepType.IMPLEMENTATION: ImplementationOutput,
    StepType.VALIDATION: ValidationOutput,
    StepType.TESTING: TestingOutput,
    StepType.DOCUMENTATION: DocumentationOutput,
}


def latest_output(task: Task, output_type: type[OutputT]) -> OutputT | None:
    """Return the output of the most recent completed step producing ``output_type``.

    Args:
        task: Task whose steps are searched
        output_type: One of the StepOutput classes

    Returns:
        The newest matching output, or None if no such step has completed
    """
    for step in reversed(task.steps):
        if step.status == StepStatus.COMPLETED and isinstance(step.output, output_type):
            return step.output
    return None


def get_current_step(task: Task) -> TaskStep | None:
    """Return the step at ``current_step``, or None if the index is out of bounds."""
    if 0 <= task.current_step < len(task.steps):
        return task.steps[task.current_step]
    return None


def compute_progress(task: Task) -> TaskProgress:
    """Coarse progress: 1-based step position, clamped to the step count."""
    total = len(task.steps)
    step = get_current_step(task)
    return TaskProgress(
        task_id=task.id,
        current=min(task.current_step + 1, total),
        total=total,
        current_step_description=step.description if step else "Unknown",
    )
