"""Public facade of the agentic pipeline."""

import logging
import threading
import time
import uuid
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from agentic_pipeline.capabilities.protocols import (
    CodeChecker,
    CompletionProvider,
    EditApplier,
    RepositoryIndexReader,
    SemanticSearch,
    SuiteRunner,
)
from agentic_pipeline.models import (
    PipelineConfiguration,
    ProjectContext,
    Task,
    TaskConstraints,
    TaskContext,
    TaskProgress,
    TaskStatus,
    TaskType,
)
from agentic_pipeline.pipeline.cancellation import CancellationToken
from agentic_pipeline.pipeline.correction import ErrorCorrector
from agentic_pipeline.pipeline.exceptions import (
    ConfigurationUpdateError,
    TaskConfigurationError,
)
from agentic_pipeline.pipeline.executor import StepExecutor
from agentic_pipeline.pipeline.graph import build_task_graph, run_task_graph
from agentic_pipeline.pipeline.handlers import StepHandlers
from agentic_pipeline.pipeline.lookup import compute_progress
from agentic_pipeline.pipeline.planner import StepPlanner
from agentic_pipeline.pipeline.scheduler import PipelineScheduler
from agentic_pipeline.pipeline.store import TaskStore
from agentic_pipeline.pipeline.validation import ValidationPipeline

logger = logging.getLogger(__name__)

_CONTEXT_KEYS = {
    "workspace_root",
    "target_files",
    "selected_text",
    "user_instructions",
    "project_context",
}


def new_task_id() -> str:
    return f"task_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class AgenticPipeline:
    """Creates tasks, queues them and exposes their state.

    Args:
        completion: AI completion capability
        repository: Repository index of the workspace
        checker: Validation capability
        applier: File-edit applier
        suite_runner: Test runner
        workspace_root: Default workspace for tasks whose context names none
        retriever: Optional semantic search used during analysis
        config: Initial configuration; defaults apply when omitted
        progress_sink: Optional callback receiving progress reports
        background: Run tasks on a worker thread instead of inside create_task
    """

    def __init__(
        self,
        completion: CompletionProvider,
        repository: RepositoryIndexReader,
        checker: CodeChecker,
        applier: EditApplier,
        suite_runner: SuiteRunner,
        workspace_root: str = ".",
        retriever: SemanticSearch | None = None,
        config: PipelineConfiguration | None = None,
        progress_sink: Callable[[TaskProgress], None] | None = None,
        background: bool = True,
    ):
        self.repository = repository
        self.workspace_root = workspace_root
        self._config = config or PipelineConfiguration()
        self._config_lock = threading.Lock()
        self._warn_if_parallel(self._config)

        self.planner = StepPlanner()
        self.handlers = StepHandlers(
            completion=completion,
            repository=repository,
            validation=ValidationPipeline(checker),
            applier=applier,
            suite_runner=suite_runner,
            retriever=retriever,
            config_provider=self.get_configuration,
        )
        self.executor = StepExecutor(self.handlers, config_provider=self.get_configuration)
        self.corrector = ErrorCorrector(completion, self.executor)
        self._graph = build_task_graph(self.executor, self.corrector, self.get_configuration)

        self.store = TaskStore()
        self.scheduler = PipelineScheduler(
            store=self.store,
            run_task=self._run_task,
            progress_sink=progress_sink,
            background=background,
        )

    def _run_task(
        self,
        task: Task,
        token: CancellationToken,
        progress: Callable[[TaskProgress], None],
    ) -> None:
        run_task_graph(self._graph, task, token, self.get_configuration().timeout_ms, progress)

    def _build_context(
        self, context: TaskContext | dict[str, Any] | None, constraints: TaskConstraints
    ) -> TaskContext:
        if isinstance(context, TaskContext):
            return context.model_copy(update={"constraints": constraints})
        values = dict(context or {})
        unknown = set(values) - _CONTEXT_KEYS
        if unknown:
            raise TaskConfigurationError(f"Unknown context keys: {', '.join(sorted(unknown))}")
        values.setdefault("workspace_root", self.workspace_root)
        if "project_context" not in values:
            values["project_context"] = self.repository.project_context()
        elif isinstance(values["project_context"], dict):
            values["project_context"] = ProjectContext.model_validate(values["project_context"])
        return TaskContext(**values, constraints=constraints)

    def create_task(
        self,
        task_type: TaskType | str,
        description: str,
        context: TaskContext | dict[str, Any] | None = None,
        constraints: TaskConstraints | dict[str, Any] | None = None,
        priority: int = 1,
    ) -> str:
        """Plan a task and queue it.

        Args:
            task_type: One of the supported task types
            description: What the task should achieve
            context: TaskContext, or a dict of its fields
            constraints: TaskConstraints, or a dict of its fields
            priority: Stored with the task; the queue is FIFO

        Returns:
            The new task's id

        Raises:
            TaskConfigurationError: If the type, context or constraints are invalid
        """
        if not description or not description.strip():
            raise TaskConfigurationError("Task description must not be empty")
        if constraints is None and isinstance(context, TaskContext):
            constraints = context.constraints
        try:
            if not isinstance(constraints, TaskConstraints):
                constraints = TaskConstraints.model_validate(constraints or {})
            task_context = self._build_context(context, constraints)
        except ValidationError as e:
            raise TaskConfigurationError(f"Invalid task inputs: {e}") from e

        steps = self.planner.plan(
            task_type,
            description,
            context_hints={
                "target_files": list(task_context.target_files),
                "user_instructions": task_context.user_instructions,
                "has_selection": task_context.selected_text is not None,
            },
        )
        task = Task(
            id=new_task_id(),
            type=TaskType(task_type),
            description=description,
            priority=priority,
            context=task_context,
            steps=steps,
        )
        self.store.add(task)
        logger.info("Created %s task %s with %d steps", task.type.value, task.id, len(steps))
        return self.scheduler.submit(task)

    def get_task(self, task_id: str) -> Task | None:
        return self.store.get(task_id)

    def get_active_tasks(self) -> list[Task]:
        """Every task in the table, terminal ones included."""
        return self.store.list()

    def cancel_task(self, task_id: str) -> bool:
        """Cancel a task; True only if it was still pending."""
        return self.scheduler.cancel(task_id)

    def get_task_progress(self, task_id: str) -> TaskProgress | None:
        task = self.store.get(task_id)
        if task is None:
            return None
        if task.status == TaskStatus.IN_PROGRESS:
            reported = self.scheduler.last_progress(task_id)
            if reported is not None:
                return reported
        return compute_progress(task)

    def get_configuration(self) -> PipelineConfiguration:
        with self._config_lock:
            return self._config.model_copy()

    def update_configuration(self, partial: dict[str, Any]) -> PipelineConfiguration:
        """Apply a partial update; applies to steps that start afterwards.

        Raises:
            ConfigurationUpdateError: If a key is unknown or a value out of range
        """
        with self._config_lock:
            try:
                updated = self._config.merged(partial)
            except ValidationError as e:
                raise ConfigurationUpdateError(f"Invalid configuration update: {e}") from e
            self._config = updated
        self._warn_if_parallel(updated)
        logger.info("Configuration updated: %s", ", ".join(sorted(partial)))
        return updated.model_copy()

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        return self.scheduler.wait_until_idle(timeout)

    @staticmethod
    def _warn_if_parallel(config: PipelineConfiguration) -> None:
        if config.parallel_execution:
            logger.warning("parallel_execution is not supported; tasks run one at a time")
