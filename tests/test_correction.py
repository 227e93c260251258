"""Tests for the error-correction loop."""

from unittest.mock import MagicMock

from agentic_pipeline.capabilities.exceptions import CompletionError
from agentic_pipeline.models import (
    PlanningOutput,
    StepStatus,
    StructuredPlan,
    Task,
    TaskContext,
    TaskType,
)
from agentic_pipeline.pipeline.correction import CORRECTION_FAILED_PREFIX, ErrorCorrector
from agentic_pipeline.pipeline.exceptions import ResponseParseError
from agentic_pipeline.pipeline.executor import StepExecutor, StepOutcome
from agentic_pipeline.pipeline.planner import StepPlanner
from fakes import CORRECTION_RESPONSE, FakeCompletion


def make_failed_planning_task() -> Task:
    task = Task(
        id="task_1_abc",
        type=TaskType.CODE_GENERATION,
        description="Add a greeting",
        context=TaskContext(workspace_root="/tmp/ws"),
        steps=StepPlanner().plan(TaskType.CODE_GENERATION, "Add a greeting"),
    )
    task.current_step = 1
    step = task.steps[1]
    step.status = StepStatus.FAILED
    step.error = "Planning response is empty"
    step.attempts = 1
    return task


def planning_output() -> PlanningOutput:
    return PlanningOutput(raw_plan="{}", structured_plan=StructuredPlan())


class TestErrorCorrector:
    def test_successful_retry_completes_step(self):
        handlers = MagicMock()
        handlers.run_planning.return_value = planning_output()
        completion = FakeCompletion(correction=CORRECTION_RESPONSE)
        task = make_failed_planning_task()
        step = task.steps[1]

        outcome = ErrorCorrector(completion, StepExecutor(handlers)).correct(task, step)

        assert outcome == StepOutcome.COMPLETED
        assert step.status == StepStatus.COMPLETED
        assert step.error is None
        assert step.attempts == 2
        assert step.id == "code-generation-planning"
        assert task.corrections_used == 1

    def test_fixes_recorded_in_step_input(self):
        handlers = MagicMock()
        handlers.run_planning.return_value = planning_output()
        task = make_failed_planning_task()
        step = task.steps[1]

        ErrorCorrector(FakeCompletion(correction=CORRECTION_RESPONSE), StepExecutor(handlers)).correct(task, step)

        assert step.input["corrections"] == ["Return valid JSON (No prose)"]
        assert step.input["previous_error"] == "Planning response is empty"

    def test_correction_prompt_contains_failure_details(self):
        handlers = MagicMock()
        handlers.run_planning.return_value = planning_output()
        completion = FakeCompletion(correction=CORRECTION_RESPONSE)
        task = make_failed_planning_task()

        ErrorCorrector(completion, StepExecutor(handlers)).correct(task, task.steps[1])

        kind, prompt = completion.prompts[0]
        assert kind == "correction"
        assert "Add a greeting" in prompt
        assert "Plan code generation strategy" in prompt
        assert "Planning response is empty" in prompt

    def test_failed_retry_prefixes_error(self):
        handlers = MagicMock()
        handlers.run_planning.side_effect = ResponseParseError("still empty")
        task = make_failed_planning_task()
        step = task.steps[1]

        outcome = ErrorCorrector(
            FakeCompletion(correction=CORRECTION_RESPONSE), StepExecutor(handlers)
        ).correct(task, step)

        assert outcome == StepOutcome.FAILED
        assert step.status == StepStatus.FAILED
        assert step.error == f"{CORRECTION_FAILED_PREFIX}: still empty"
        handlers.run_planning.assert_called_once()

    def test_unusable_correction_response_fails_without_retry(self):
        handlers = MagicMock()
        task = make_failed_planning_task()
        step = task.steps[1]

        outcome = ErrorCorrector(
            FakeCompletion(correction="I cannot help with that."), StepExecutor(handlers)
        ).correct(task, step)

        assert outcome == StepOutcome.FAILED
        assert step.error.startswith(CORRECTION_FAILED_PREFIX)
        assert "no fixes" in step.error
        handlers.run_planning.assert_not_called()
        assert task.corrections_used == 1

    def test_completion_error_fails_correction(self):
        handlers = MagicMock()
        task = make_failed_planning_task()
        step = task.steps[1]
        completion = FakeCompletion(correction=CompletionError("provider down"))

        outcome = ErrorCorrector(completion, StepExecutor(handlers)).correct(task, step)

        assert outcome == StepOutcome.FAILED
        assert step.error == f"{CORRECTION_FAILED_PREFIX}: provider down"
