"""Task, step and context models for the agentic pipeline."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from agentic_pipeline.models.result_models import TaskResult
from agentic_pipeline.models.step_models import StepOutput
from agentic_pipeline.models.validation_models import ValidationResult


class TaskType(str, Enum):
    CODE_GENERATION = "code-generation"
    REFACTORING = "refactoring"
    ANALYSIS = "analysis"
    TESTING = "testing"
    DOCUMENTATION = "documentation"


class TaskStatus(str, Enum):
    """Lifecycle of a task. COMPLETED, FAILED and CANCELLED are terminal."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED}
)


class TaskErrorKind(str, Enum):
    """Machine-readable companion to ``Task.error``."""

    STEP_FAILED = "step-failed"
    CORRECTION_FAILED = "correction-failed"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


class StepType(str, Enum):
    ANALYSIS = "analysis"
    PLANNING = "planning"
    IMPLEMENTATION = "implementation"
    VALIDATION = "validation"
    TESTING = "testing"
    DOCUMENTATION = "documentation"


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class TaskConstraints(BaseModel):
    """Limits a task's implementation must respect."""

    model_config = ConfigDict(frozen=False, extra="forbid")

    max_files_to_modify: int = Field(default=10, ge=1)
    preserve_existing_tests: bool = True
    maintain_backward_compatibility: bool = True
    follow_project_conventions: bool = True
    require_validation: bool = True
    allow_external_dependencies: bool = False


class ProjectContext(BaseModel):
    model_config = ConfigDict(frozen=False)

    framework: str = "unknown"
    dependencies: dict[str, str] = Field(default_factory=dict)
    architectural_patterns: list[str] = Field(default_factory=list)


class TaskContext(BaseModel):
    """Inputs of a task. Immutable once the task is created."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    workspace_root: str
    target_files: list[str] = Field(default_factory=list)
    selected_text: Optional[str] = None
    user_instructions: str = ""
    project_context: ProjectContext = Field(default_factory=ProjectContext)
    repository: Any = Field(default=None, exclude=True, repr=False)
    constraints: TaskConstraints = Field(default_factory=TaskConstraints)


class TaskStep(BaseModel):
    """One stage of a task's pipeline, mutated in place as it runs."""

    model_config = ConfigDict(frozen=False)

    id: str  # "{task_type}-{name}"
    name: str
    type: StepType
    description: str
    status: StepStatus = StepStatus.PENDING
    input: Optional[dict[str, Any]] = None
    output: Optional[StepOutput] = None
    error: Optional[str] = None
    duration_ms: Optional[float] = None
    validation: Optional[ValidationResult] = None
    attempts: int = 0


class Task(BaseModel):
    model_config = ConfigDict(frozen=False)

    id: str
    type: TaskType
    description: str
    priority: int = 1
    status: TaskStatus = TaskStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    context: TaskContext
    steps: list[TaskStep] = Field(default_factory=list)
    current_step: int = 0
    result: Optional[TaskResult] = None
    error: Optional[str] = None
    error_kind: Optional[TaskErrorKind] = None
    corrections_used: int = 0


class TaskProgress(BaseModel):
    """Coarse progress of a task: 1-based current step over total steps."""

    model_config = ConfigDict(frozen=False)

    task_id: str
    current: int
    total: int
    current_step_description: str
