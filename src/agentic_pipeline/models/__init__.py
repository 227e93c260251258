"""Data models for the agentic pipeline."""

from agentic_pipeline.models.config_models import MAX_RETRIES_LIMIT, PipelineConfiguration
from agentic_pipeline.models.result_models import (
    BreakingChange,
    BreakingChangeType,
    BreakingSeverity,
    Change,
    ChangeType,
    FileCreation,
    FileModification,
    ImpactAnalysis,
    PerformanceImpact,
    SecurityImpact,
    TaskMetrics,
    TaskResult,
)
from agentic_pipeline.models.schemas import (
    EmbeddingRecord,
    FileInfo,
    RepoIndex,
    RepoSummary,
    RetrievalResult,
    SymbolInfo,
)
from agentic_pipeline.models.step_models import (
    AnalysisOutput,
    CorrectionFix,
    DocumentationOutput,
    DocumentSection,
    FileAction,
    FileAnalysis,
    FileChange,
    GeneratedTest,
    GeneratedTestResult,
    ImplementationOutput,
    PlanningOutput,
    PlanStep,
    SimulationResult,
    StepOutput,
    StructuredPlan,
    TestingOutput,
    ValidationOutput,
)
from agentic_pipeline.models.task_models import (
    TERMINAL_STATUSES,
    ProjectContext,
    StepStatus,
    StepType,
    Task,
    TaskConstraints,
    TaskContext,
    TaskErrorKind,
    TaskProgress,
    TaskStatus,
    TaskStep,
    TaskType,
)
from agentic_pipeline.models.validation_models import (
    ErrorKind,
    FindingSeverity,
    ValidationErrorItem,
    ValidationResult,
    ValidationWarningItem,
    WarningKind,
)

__all__ = [
    "MAX_RETRIES_LIMIT",
    "TERMINAL_STATUSES",
    "AnalysisOutput",
    "BreakingChange",
    "BreakingChangeType",
    "BreakingSeverity",
    "Change",
    "ChangeType",
    "CorrectionFix",
    "DocumentSection",
    "DocumentationOutput",
    "EmbeddingRecord",
    "ErrorKind",
    "FileAction",
    "FileAnalysis",
    "FileChange",
    "FileCreation",
    "FileInfo",
    "FileModification",
    "FindingSeverity",
    "GeneratedTest",
    "GeneratedTestResult",
    "ImpactAnalysis",
    "ImplementationOutput",
    "PerformanceImpact",
    "PipelineConfiguration",
    "PlanStep",
    "PlanningOutput",
    "ProjectContext",
    "RepoIndex",
    "RepoSummary",
    "RetrievalResult",
    "SecurityImpact",
    "SimulationResult",
    "StepOutput",
    "StepStatus",
    "StepType",
    "StructuredPlan",
    "SymbolInfo",
    "Task",
    "TaskConstraints",
    "TaskContext",
    "TaskErrorKind",
    "TaskMetrics",
    "TaskProgress",
    "TaskResult",
    "TaskStatus",
    "TaskStep",
    "TaskType",
    "TestingOutput",
    "ValidationErrorItem",
    "ValidationOutput",
    "ValidationResult",
    "ValidationWarningItem",
    "WarningKind",
]
