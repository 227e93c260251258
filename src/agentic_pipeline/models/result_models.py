"""Result models produced when a task completes."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChangeType(str, Enum):
    ADDITION = "addition"
    DELETION = "deletion"
    MODIFICATION = "modification"


class BreakingChangeType(str, Enum):
    API = "api"
    SIGNATURE = "signature"
    BEHAVIOR = "behavior"
    DEPENDENCY = "dependency"


class BreakingSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PerformanceImpact(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class SecurityImpact(str, Enum):
    IMPROVED = "improved"
    DEGRADED = "degraded"
    NEUTRAL = "neutral"


class Change(BaseModel):
    """A contiguous line-range edit inside one file."""

    model_config = ConfigDict(frozen=False)

    type: ChangeType
    start_line: int
    end_line: int
    original_text: str = ""
    new_text: str = ""
    reason: str = ""


class BreakingChange(BaseModel):
    model_config = ConfigDict(frozen=False)

    type: BreakingChangeType
    description: str
    severity: BreakingSeverity
    mitigation: str = ""
    affected_elements: list[str] = Field(default_factory=list)


class ImpactAnalysis(BaseModel):
    model_config = ConfigDict(frozen=False)

    affected_files: list[str] = Field(default_factory=list)
    breaking_changes: list[BreakingChange] = Field(default_factory=list)
    performance_impact: PerformanceImpact = PerformanceImpact.NEUTRAL
    security_impact: SecurityImpact = SecurityImpact.NEUTRAL
    complexity: float = 0.0
    test_coverage: float = 0.0


class FileModification(BaseModel):
    model_config = ConfigDict(frozen=False)

    file_path: str
    original_content: str
    modified_content: str
    changes: list[Change] = Field(default_factory=list)
    impact: ImpactAnalysis = Field(default_factory=ImpactAnalysis)


class FileCreation(BaseModel):
    model_config = ConfigDict(frozen=False)

    file_path: str
    content: str
    purpose: str = ""
    impact: ImpactAnalysis = Field(default_factory=ImpactAnalysis)


class TaskMetrics(BaseModel):
    model_config = ConfigDict(frozen=False)

    execution_time_ms: float = 0.0
    lines_changed: int = 0
    files_affected: int = 0
    test_coverage: float = 0.0
    code_quality: float = 0.0
    complexity: float = 0.0
    performance_score: float = 1.0


class TaskResult(BaseModel):
    """Summary of a completed task, built from its step outputs."""

    model_config = ConfigDict(frozen=False)

    success: bool
    files_modified: list[FileModification] = Field(default_factory=list)
    files_created: list[FileCreation] = Field(default_factory=list)
    files_deleted: list[str] = Field(default_factory=list)
    summary: str = ""
    metrics: TaskMetrics = Field(default_factory=TaskMetrics)
    recommendations: list[str] = Field(default_factory=list)
