"""Fixed step plans per task type."""

from typing import Any

from agentic_pipeline.models import StepType, TaskStep, TaskType
from agentic_pipeline.pipeline.exceptions import UnknownTaskTypeError

ANALYSIS_STEP = ("analysis", StepType.ANALYSIS, "Analyze current codebase and requirements")

# Steps that follow the initial analysis: (name, type, description)
STEP_PLANS: dict[TaskType, list[tuple[str, StepType, str]]] = {
    TaskType.CODE_GENERATION: [
        ("planning", StepType.PLANNING, "Plan code generation strategy"),
        ("implementation", StepType.IMPLEMENTATION, "Generate code implementation"),
        ("validation", StepType.VALIDATION, "Validate generated code"),
        ("testing", StepType.TESTING, "Test generated code"),
    ],
    TaskType.REFACTORING: [
        ("impact-analysis", StepType.ANALYSIS, "Analyze refactoring impact"),
        ("implementation", StepType.IMPLEMENTATION, "Perform refactoring"),
        ("validation", StepType.VALIDATION, "Validate refactored code"),
        ("testing", StepType.TESTING, "Test refactored code"),
    ],
    TaskType.ANALYSIS: [
        ("deep-analysis", StepType.ANALYSIS, "Perform deep code analysis"),
        ("documentation", StepType.DOCUMENTATION, "Document analysis results"),
    ],
    TaskType.TESTING: [
        ("test-planning", StepType.PLANNING, "Plan test strategy"),
        ("test-generation", StepType.IMPLEMENTATION, "Generate test cases"),
        ("test-execution", StepType.TESTING, "Execute tests"),
    ],
    TaskType.DOCUMENTATION: [
        ("content-generation", StepType.IMPLEMENTATION, "Generate documentation content"),
        ("formatting", StepType.IMPLEMENTATION, "Format documentation"),
    ],
}


class StepPlanner:
    """Maps a task type to its ordered list of fresh steps."""

    def plan(
        self,
        task_type: TaskType | str,
        description: str,
        context_hints: dict[str, Any] | None = None,
    ) -> list[TaskStep]:
        """Build the step list for a new task.

        Args:
            task_type: One of the supported task types
            description: Task description, passed to the first step
            context_hints: Caller context, passed to the first step

        Returns:
            Steps in execution order; only the first carries an input

        Raises:
            UnknownTaskTypeError: If the type has no plan
        """
        try:
            resolved = TaskType(task_type)
        except ValueError as e:
            raise UnknownTaskTypeError(f"Unsupported task type: {task_type!r}") from e
        if resolved not in STEP_PLANS:
            raise UnknownTaskTypeError(f"No step plan for task type: {resolved.value}")

        name, step_type, step_description = ANALYSIS_STEP
        steps = [
            TaskStep(
                id=f"{resolved.value}-{name}",
                name=name,
                type=step_type,
                description=step_description,
                input={"description": description, "context": dict(context_hints or {})},
            )
        ]
        steps.extend(
            TaskStep(
                id=f"{resolved.value}-{name}",
                name=name,
                type=step_type,
                description=step_description,
            )
            for name, step_type, step_description in STEP_PLANS[resolved]
        )
        return steps
