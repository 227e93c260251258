"""Validation findings and the aggregated validation result."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class FindingSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ErrorKind(str, Enum):
    """Categories of blocking findings."""

    SYNTAX = "syntax"
    SEMANTIC = "semantic"
    LOGICAL = "logical"
    PERFORMANCE = "performance"
    SECURITY = "security"


class WarningKind(str, Enum):
    """Categories of non-blocking findings."""

    STYLE = "style"
    CONVENTION = "convention"
    PERFORMANCE = "performance"
    MAINTAINABILITY = "maintainability"


class ValidationErrorItem(BaseModel):
    model_config = ConfigDict(frozen=False)

    kind: ErrorKind
    message: str
    file: str
    line: int = 1
    column: int = 1
    severity: FindingSeverity = FindingSeverity.ERROR
    rule_id: str | None = None


class ValidationWarningItem(BaseModel):
    model_config = ConfigDict(frozen=False)

    kind: WarningKind
    message: str
    file: str
    line: int = 1
    column: int = 1
    suggestion: str | None = None
    rule_id: str | None = None


class ValidationResult(BaseModel):
    """Outcome of one validation pass over a set of file changes.

    ``is_valid`` reflects errors only; warnings never block.
    """

    model_config = ConfigDict(frozen=False)

    is_valid: bool
    errors: list[ValidationErrorItem] = Field(default_factory=list)
    warnings: list[ValidationWarningItem] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
