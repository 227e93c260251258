"""Thread-safe table of tasks known to the pipeline."""

import threading

from agentic_pipeline.models import Task


class TaskStore:
    """Tasks by id. Terminal tasks stay until removed explicitly."""

    def __init__(self):
        self._tasks: dict[str, Task] = {}
        self._lock = threading.RLock()

    def add(self, task: Task) -> None:
        with self._lock:
            if task.id in self._tasks:
                raise ValueError(f"Task {task.id} already exists")
            self._tasks[task.id] = task

    def get(self, task_id: str) -> Task | None:
        with self._lock:
            return self._tasks.get(task_id)

    def remove(self, task_id: str) -> Task | None:
        with self._lock:
            return self._tasks.pop(task_id, None)

    def list(self) -> list[Task]:
        """All tasks in insertion order."""
        with self._lock:
            return list(self._tasks.values())

    def __contains__(self, task_id: object) -> bool:
        with self._lock:
            return task_id in self._tasks

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)
