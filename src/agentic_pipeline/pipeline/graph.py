"""LangGraph state machine that runs one task through its steps.

Edge topology:
  START -> prepare_node -> route_boundary -> {execute_node, complete_node, timeout_node, cancel_node}
  execute_node -> decide_after_step -> {advance_node, correct_node, fail_node, cancel_node}
  correct_node -> decide_after_correction -> {advance_node, fail_node, cancel_node}
  advance_node -> route_boundary
  complete_node, fail_node, timeout_node, cancel_node -> END
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime

from langgraph.graph import END, START, StateGraph

from agentic_pipeline.models import (
    PipelineConfiguration,
    TaskErrorKind,
    TaskStatus,
)
from agentic_pipeline.pipeline.cancellation import CancellationToken
from agentic_pipeline.pipeline.correction import CORRECTION_FAILED_PREFIX, ErrorCorrector
from agentic_pipeline.pipeline.exceptions import GraphBuildError
from agentic_pipeline.pipeline.executor import StepExecutor, StepOutcome
from agentic_pipeline.pipeline.lookup import compute_progress, get_current_step
from agentic_pipeline.pipeline.results import build_task_result
from agentic_pipeline.pipeline.state import ProgressSink, TaskRunState, make_initial_state

logger = logging.getLogger(__name__)

MIN_RECURSION_LIMIT = 25


def _report_progress(state: TaskRunState) -> None:
    sink = state["progress"]
    if sink is None:
        return
    try:
        sink(compute_progress(state["task"]))
    except Exception as e:
        logger.warning("Progress sink raised for %s: %s", state["task"].id, e)


def prepare_node(state: TaskRunState) -> dict:
    """Mark the task in-progress and place the cursor on its first step."""
    task = state["task"]
    task.status = TaskStatus.IN_PROGRESS
    task.started_at = datetime.now()
    task.current_step = 0
    logger.info("Task %s started (%d steps)", task.id, len(task.steps))
    return {"events": [f"started {task.id}"]}


def route_boundary(state: TaskRunState) -> str:
    """Router at every step boundary: end of steps, then cancellation, then deadline.

    A task whose last step finished completes even if cancelled meanwhile.

    Returns:
        One of: "cancel", "timeout", "complete", "execute"
    """
    task = state["task"]
    if task.current_step >= len(task.steps):
        return "complete"
    if state["cancellation"].is_cancelled:
        return "cancel"
    if time.monotonic() > state["deadline"]:
        return "timeout"
    return "execute"


def make_execute_node(executor: StepExecutor) -> Callable[[TaskRunState], dict]:
    """Factory: returns a node closure that runs the step under the cursor.

    The closure reports progress, then calls executor.run_step() and
    returns {"last_outcome": outcome}.
    """

    def execute_node(state: TaskRunState) -> dict:
        task = state["task"]
        step = task.steps[task.current_step]
        _report_progress(state)
        outcome = executor.run_step(task, step, state["cancellation"])
        return {
            "last_outcome": outcome.value,
            "events": [f"{step.id}: {outcome.value}"],
        }

    return execute_node


def make_decide_after_step(
    config_provider: Callable[[], PipelineConfiguration],
) -> Callable[[TaskRunState], str]:
    """Factory: returns router function for the edge after a step ran.

    Decision logic:
    1. cancelled -> "cancel"
    2. completed or skipped -> "advance"
    3. failed after a cancel request -> "cancel"
    4. failed, correction enabled, budget left, step not yet corrected -> "correct"
    5. else -> "fail"

    Returns:
        Callable that returns one of: "advance", "correct", "fail", "cancel"
    """

    def decide_after_step(state: TaskRunState) -> str:
        outcome = state["last_outcome"]
        if outcome == StepOutcome.CANCELLED.value:
            return "cancel"
        if outcome in (StepOutcome.COMPLETED.value, StepOutcome.SKIPPED.value):
            return "advance"

        if state["cancellation"].is_cancelled:
            return "cancel"
        config = config_provider()
        task = state["task"]
        step = get_current_step(task)
        if (
            config.correction_enabled
            and task.corrections_used < config.max_retries
            and step is not None
            and step.id not in state["corrected_step_ids"]
        ):
            return "correct"
        return "fail"

    return decide_after_step


def make_correct_node(corrector: ErrorCorrector) -> Callable[[TaskRunState], dict]:
    """Factory: returns a node closure that corrects and retries the failed step once."""

    def correct_node(state: TaskRunState) -> dict:
        task = state["task"]
        step = task.steps[task.current_step]
        outcome = corrector.correct(task, step, state["cancellation"])
        return {
            "last_outcome": outcome.value,
            "corrected_step_ids": [*state["corrected_step_ids"], step.id],
            "events": [f"{step.id}: corrected, {outcome.value}"],
        }

    return correct_node


def decide_after_correction(state: TaskRunState) -> str:
    """Router after a correction: a retried step is never corrected again.

    Returns:
        One of: "advance", "fail", "cancel"
    """
    outcome = state["last_outcome"]
    if outcome == StepOutcome.CANCELLED.value:
        return "cancel"
    if outcome in (StepOutcome.COMPLETED.value, StepOutcome.SKIPPED.value):
        return "advance"
    return "fail"


def advance_node(state: TaskRunState) -> dict:
    task = state["task"]
    task.current_step += 1
    return {"last_outcome": None}


def make_complete_node(
    config_provider: Callable[[], PipelineConfiguration],
) -> Callable[[TaskRunState], dict]:
    """Factory: returns a node closure that completes the task and builds its result."""

    def complete_node(state: TaskRunState) -> dict:
        task = state["task"]
        task.completed_at = datetime.now()
        task.current_step = len(task.steps)
        task.result = build_task_result(task, config_provider().validation_threshold)
        task.status = TaskStatus.COMPLETED
        logger.info("Task %s completed: %s", task.id, task.result.summary)
        return {"events": [f"completed {task.id}"]}

    return complete_node


def fail_node(state: TaskRunState) -> dict:
    """Fail the task on the step under the cursor; later steps stay pending."""
    task = state["task"]
    step = get_current_step(task)
    step_error = step.error if step is not None else "unknown step"
    task.error = f"Step '{step.id if step else task.current_step}' failed: {step_error}"
    if step_error and step_error.startswith(CORRECTION_FAILED_PREFIX):
        task.error_kind = TaskErrorKind.CORRECTION_FAILED
    else:
        task.error_kind = TaskErrorKind.STEP_FAILED
    task.status = TaskStatus.FAILED
    task.completed_at = datetime.now()
    logger.error("Task %s failed: %s", task.id, task.error)
    return {"events": [f"failed {task.id}"]}


def timeout_node(state: TaskRunState) -> dict:
    task = state["task"]
    task.error = f"Task timed out after {state['timeout_ms']} ms"
    task.error_kind = TaskErrorKind.TIMEOUT
    task.status = TaskStatus.FAILED
    task.completed_at = datetime.now()
    logger.error("Task %s timed out before step %d", task.id, task.current_step)
    return {"events": [f"timed out {task.id}"]}


def cancel_node(state: TaskRunState) -> dict:
    task = state["task"]
    task.status = TaskStatus.CANCELLED
    task.completed_at = datetime.now()
    logger.info("Task %s cancelled before step %d", task.id, task.current_step)
    return {"events": [f"cancelled {task.id}"]}


def build_task_graph(
    executor: StepExecutor,
    corrector: ErrorCorrector,
    config_provider: Callable[[], PipelineConfiguration],
):
    """Build and compile the per-task StateGraph.

    No checkpointer: state lives only for the duration of one run.

    Args:
        executor: Runs individual steps
        corrector: Corrects failed steps
        config_provider: Returns the current pipeline configuration

    Returns:
        CompiledStateGraph ready to invoke

    Raises:
        GraphBuildError: If graph construction fails
    """
    try:
        graph = StateGraph(TaskRunState)

        graph.add_node("prepare_node", prepare_node)
        graph.add_node("execute_node", make_execute_node(executor))
        graph.add_node("correct_node", make_correct_node(corrector))
        graph.add_node("advance_node", advance_node)
        graph.add_node("complete_node", make_complete_node(config_provider))
        graph.add_node("fail_node", fail_node)
        graph.add_node("timeout_node", timeout_node)
        graph.add_node("cancel_node", cancel_node)

        boundary_routes = {
            "execute": "execute_node",
            "complete": "complete_node",
            "timeout": "timeout_node",
            "cancel": "cancel_node",
        }

        graph.add_edge(START, "prepare_node")
        graph.add_conditional_edges("prepare_node", route_boundary, boundary_routes)
        graph.add_conditional_edges(
            "execute_node",
            make_decide_after_step(config_provider),
            {
                "advance": "advance_node",
                "correct": "correct_node",
                "fail": "fail_node",
                "cancel": "cancel_node",
            },
        )
        graph.add_conditional_edges(
            "correct_node",
            decide_after_correction,
            {
                "advance": "advance_node",
                "fail": "fail_node",
                "cancel": "cancel_node",
            },
        )
        graph.add_conditional_edges("advance_node", route_boundary, boundary_routes)

        for terminal in ("complete_node", "fail_node", "timeout_node", "cancel_node"):
            graph.add_edge(terminal, END)

        return graph.compile()

    except Exception as exc:
        raise GraphBuildError(f"Failed to build task graph: {exc}") from exc


def run_task_graph(
    graph,
    task,
    cancellation: CancellationToken,
    timeout_ms: int,
    progress: ProgressSink | None = None,
) -> None:
    """Run ``task`` to a terminal status. Never raises.

    A failure of the graph itself fails the task with error kind internal.
    """
    state = make_initial_state(task, cancellation, timeout_ms, progress)
    # Each step costs up to three supersteps (execute, correct, advance).
    recursion_limit = max(MIN_RECURSION_LIMIT, 3 * len(task.steps) + 5)
    try:
        graph.invoke(state, config={"recursion_limit": recursion_limit})
    except Exception as exc:
        logger.exception("Task %s aborted by an internal error", task.id)
        task.status = TaskStatus.FAILED
        task.error = f"Internal pipeline error: {exc}"
        task.error_kind = TaskErrorKind.INTERNAL
        task.completed_at = datetime.now()
