"""FIFO scheduler that runs one task at a time."""

import logging
import threading
from collections import deque
from collections.abc import Callable

from agentic_pipeline.models import Task, TaskProgress, TaskStatus
from agentic_pipeline.pipeline.cancellation import CancellationToken
from agentic_pipeline.pipeline.store import TaskStore

logger = logging.getLogger(__name__)

TaskRunner = Callable[[Task, CancellationToken, Callable[[TaskProgress], None]], None]


class PipelineScheduler:
    """Queues tasks and drains them strictly one after another.

    Args:
        store: Table the submitted tasks live in
        run_task: Runs one task to a terminal status; must not raise
        progress_sink: Optional caller callback for progress reports
        auto_start: Begin draining on submit
        background: Drain on a daemon worker thread instead of the caller's thread
    """

    def __init__(
        self,
        store: TaskStore,
        run_task: TaskRunner,
        progress_sink: Callable[[TaskProgress], None] | None = None,
        auto_start: bool = True,
        background: bool = True,
    ):
        self.store = store
        self.run_task = run_task
        self.progress_sink = progress_sink
        self.auto_start = auto_start
        self.background = background

        self._queue: deque[str] = deque()
        self._tokens: dict[str, CancellationToken] = {}
        self._progress: dict[str, TaskProgress] = {}
        self._running: str | None = None
        self._lock = threading.RLock()
        self._idle = threading.Condition(self._lock)
        self._wakeup = threading.Event()
        self._worker: threading.Thread | None = None
        self._draining = False

    @property
    def running_task_id(self) -> str | None:
        with self._lock:
            return self._running

    def pending_task_ids(self) -> list[str]:
        with self._lock:
            return list(self._queue)

    def submit(self, task: Task) -> str:
        """Enqueue ``task`` and start draining if idle and auto-start is on."""
        with self._lock:
            if task.id not in self.store:
                self.store.add(task)
            self._tokens[task.id] = CancellationToken()
            self._queue.append(task.id)
        logger.debug("Queued task %s", task.id)
        if self.auto_start:
            self.start()
        return task.id

    def start(self) -> None:
        """Begin draining the queue, inline or on the worker thread."""
        if not self.background:
            self.drain()
            return
        with self._lock:
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(
                    target=self._worker_loop, name="agentic-pipeline-worker", daemon=True
                )
                self._worker.start()
        self._wakeup.set()

    def _worker_loop(self) -> None:
        while True:
            self._wakeup.wait()
            self._wakeup.clear()
            self.drain()

    def drain(self) -> None:
        """Run queued tasks one at a time until the queue is empty.

        Re-entrant calls while a drain is in progress return immediately.
        """
        with self._lock:
            if self._draining:
                return
            self._draining = True
        try:
            while True:
                with self._lock:
                    if not self._queue:
                        break
                    task_id = self._queue.popleft()
                    task = self.store.get(task_id)
                    token = self._tokens.get(task_id)
                    if task is None or token is None or task.status != TaskStatus.PENDING:
                        self._tokens.pop(task_id, None)
                        continue
                    self._running = task_id
                self._run_one(task, token)
        finally:
            with self._lock:
                self._draining = False
                self._running = None
                self._idle.notify_all()

    def _run_one(self, task: Task, token: CancellationToken) -> None:
        try:
            self.run_task(task, token, self._report)
        except Exception:
            # run_task handles its own failures; this guards the worker.
            logger.exception("Task %s escaped its runner", task.id)
            task.status = TaskStatus.FAILED
            task.error = task.error or "Task runner raised unexpectedly"
        finally:
            with self._lock:
                self._tokens.pop(task.id, None)
                self._progress.pop(task.id, None)
                self._running = None

    def _report(self, progress: TaskProgress) -> None:
        with self._lock:
            self._progress[progress.task_id] = progress
        if self.progress_sink is None:
            return
        try:
            self.progress_sink(progress)
        except Exception as e:
            logger.warning("Progress sink raised: %s", e)

    def last_progress(self, task_id: str) -> TaskProgress | None:
        with self._lock:
            return self._progress.get(task_id)

    def cancel(self, task_id: str) -> bool:
        """Cancel a task.

        A pending task is cancelled at once and removed from the store and
        queue. A running task is signalled and stops at the next step boundary.

        Returns:
            True only if a pending task was cancelled
        """
        with self._lock:
            task = self.store.get(task_id)
            if task is None:
                return False
            if task_id in self._queue and task.status == TaskStatus.PENDING:
                self._queue.remove(task_id)
                self._tokens.pop(task_id, None)
                task.status = TaskStatus.CANCELLED
                self.store.remove(task_id)
                logger.info("Cancelled pending task %s", task_id)
                return True
            token = self._tokens.get(task_id)
            if token is not None and self._running == task_id:
                token.cancel()
                logger.info("Cancellation requested for running task %s", task_id)
            return False

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        """Block until no task is queued or running.

        Returns:
            True if idle, False if ``timeout`` seconds elapsed first
        """
        with self._idle:
            return self._idle.wait_for(
                lambda: not self._queue and self._running is None and not self._draining,
                timeout=timeout,
            )
