"""Typed outputs of pipeline steps.

Each step type produces exactly one output variant. The variants form a
union discriminated on ``kind`` so a stored step output always round-trips
to the right class.
"""

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from agentic_pipeline.models.result_models import ImpactAnalysis
from agentic_pipeline.models.schemas import RepoSummary, RetrievalResult
from agentic_pipeline.models.validation_models import ValidationResult


class FileAction(str, Enum):
    MODIFY = "modify"
    CREATE = "create"
    DELETE = "delete"


class FileChange(BaseModel):
    """A proposed edit to one file, relative to the workspace root."""

    model_config = ConfigDict(frozen=False)

    file_path: str
    action: FileAction = FileAction.MODIFY
    content: str | None = None  # full new content; None for deletes
    original_content: str | None = None
    reason: str = ""


class SimulationResult(BaseModel):
    model_config = ConfigDict(frozen=False)

    success: bool
    conflicts: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class FileAnalysis(BaseModel):
    model_config = ConfigDict(frozen=False)

    file_path: str
    language: str
    size: int
    line_count: int
    complexity: float
    structure: dict[str, int] = Field(default_factory=dict)
    imports: list[str] = Field(default_factory=list)


class PlanStep(BaseModel):
    model_config = ConfigDict(frozen=False)

    title: str
    description: str = ""
    files: list[str] = Field(default_factory=list)


class StructuredPlan(BaseModel):
    model_config = ConfigDict(frozen=False)

    steps: list[PlanStep] = Field(default_factory=list)
    requirements: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)
    prerequisites: list[str] = Field(default_factory=list)
    timeline: str = "TBD"


class GeneratedTest(BaseModel):
    """A test case derived from an implementation."""

    model_config = ConfigDict(frozen=False)

    name: str
    target: str | None = None  # test file or node id; None runs the whole suite
    source_file: str | None = None
    command: list[str] | None = None


class GeneratedTestResult(BaseModel):
    model_config = ConfigDict(frozen=False)

    name: str
    passed: bool
    output: str = ""
    duration_ms: float = 0.0


class DocumentSection(BaseModel):
    model_config = ConfigDict(frozen=False)

    title: str
    level: int = 1
    content: str = ""


class CorrectionFix(BaseModel):
    """One fix proposed by the correction prompt."""

    model_config = ConfigDict(frozen=False)

    description: str
    target: str = "step"
    detail: str = ""


class AnalysisOutput(BaseModel):
    model_config = ConfigDict(frozen=False)

    kind: Literal["analysis"] = "analysis"
    file_analysis: list[FileAnalysis] = Field(default_factory=list)
    dependency_analysis: dict[str, list[str]] = Field(default_factory=dict)
    impacted_files: list[str] = Field(default_factory=list)
    architectural_patterns: list[str] = Field(default_factory=list)
    naming_conventions: dict[str, str] = Field(default_factory=dict)
    repo_summary: RepoSummary = Field(default_factory=RepoSummary)
    relevant_context: list[RetrievalResult] = Field(default_factory=list)


class PlanningOutput(BaseModel):
    model_config = ConfigDict(frozen=False)

    kind: Literal["planning"] = "planning"
    raw_plan: str
    structured_plan: StructuredPlan
    estimated_complexity: float = 1.0
    risks: list[str] = Field(default_factory=list)
    prerequisites: list[str] = Field(default_factory=list)


class ImplementationOutput(BaseModel):
    model_config = ConfigDict(frozen=False)

    kind: Literal["implementation"] = "implementation"
    raw_implementation: str
    file_changes: list[FileChange] = Field(default_factory=list)
    simulation_result: SimulationResult
    impact_analysis: ImpactAnalysis = Field(default_factory=ImpactAnalysis)
    file_impacts: dict[str, ImpactAnalysis] = Field(default_factory=dict)


class ValidationOutput(BaseModel):
    model_config = ConfigDict(frozen=False)

    kind: Literal["validation"] = "validation"
    result: ValidationResult
    meets_threshold: bool


class TestingOutput(BaseModel):
    model_config = ConfigDict(frozen=False)

    kind: Literal["testing"] = "testing"
    test_cases: list[GeneratedTest] = Field(default_factory=list)
    test_results: list[GeneratedTestResult] = Field(default_factory=list)
    passed: int = 0
    failed: int = 0
    coverage: float = 0.0


class DocumentationOutput(BaseModel):
    model_config = ConfigDict(frozen=False)

    kind: Literal["documentation"] = "documentation"
    documentation: str
    format: str = "markdown"
    sections: list[DocumentSection] = Field(default_factory=list)


StepOutput = Annotated[
    Union[
        AnalysisOutput,
        PlanningOutput,
        ImplementationOutput,
        ValidationOutput,
        TestingOutput,
        DocumentationOutput,
    ],
    Field(discriminator="kind"),
]
