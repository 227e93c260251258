"""State definition for the per-task LangGraph state machine."""

import operator
import time
from collections.abc import Callable
from typing import Annotated, TypedDict

from agentic_pipeline.models import Task, TaskProgress
from agentic_pipeline.pipeline.cancellation import CancellationToken

ProgressSink = Callable[[TaskProgress], None]


class TaskRunState(TypedDict):
    """State for one run of a task through its steps.

    The task itself is mutated in place by the nodes; the remaining fields
    carry routing information between nodes. ``events`` accumulates across
    nodes, all other fields use default overwrite semantics.
    """

    task: Task
    cancellation: CancellationToken
    deadline: float  # time.monotonic() value
    timeout_ms: int
    progress: ProgressSink | None

    # Routing
    last_outcome: str | None
    corrected_step_ids: list[str]

    # Event accumulation
    events: Annotated[list[str], operator.add]


def make_initial_state(
    task: Task,
    cancellation: CancellationToken,
    timeout_ms: int,
    progress: ProgressSink | None = None,
) -> TaskRunState:
    """Create the initial state for running ``task``.

    Args:
        task: Pending task to run
        cancellation: Token checked at every step boundary
        timeout_ms: Budget for the whole run, measured from now
        progress: Optional sink for progress reports

    Returns:
        TaskRunState with all fields initialised
    """
    return {
        "task": task,
        "cancellation": cancellation,
        "deadline": time.monotonic() + timeout_ms / 1000,
        "timeout_ms": timeout_ms,
        "progress": progress,
        "last_outcome": None,
        "corrected_step_ids": [],
        "events": [],
    }
