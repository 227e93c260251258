"""Validation sub-pipeline: five independent checks aggregated into one result."""

import logging
from collections.abc import Callable, Sequence
from typing import TypeVar

from agentic_pipeline.capabilities.protocols import CodeChecker
from agentic_pipeline.models import FileChange, ValidationResult

logger = logging.getLogger(__name__)

ISSUE_PENALTY = 0.1
MAX_SUGGESTIONS = 20

FindingT = TypeVar("FindingT")


def compute_confidence(error_count: int, warning_count: int) -> float:
    """Each issue costs ten points of confidence, floored at zero."""
    return max(0.0, round(1.0 - ISSUE_PENALTY * (error_count + warning_count), 10))


class ValidationPipeline:
    """Runs the checker's five categories; a failing category contributes nothing."""

    def __init__(self, checker: CodeChecker):
        self.checker = checker

    def _run_check(
        self,
        name: str,
        check: Callable[[Sequence[FileChange]], list[FindingT]],
        changes: Sequence[FileChange],
    ) -> list[FindingT]:
        try:
            return list(check(changes))
        except Exception as e:
            logger.warning("%s check could not run: %s", name, e)
            return []

    def validate(self, changes: Sequence[FileChange]) -> ValidationResult:
        """Validate ``changes``. Never raises.

        Returns:
            ValidationResult; valid iff no errors, confidence from the issue count
        """
        errors = (
            self._run_check("syntax", self.checker.check_syntax, changes)
            + self._run_check("semantic", self.checker.check_semantics, changes)
            + self._run_check("security", self.checker.check_security, changes)
        )
        warnings = (
            self._run_check("style", self.checker.check_style, changes)
            + self._run_check("performance", self.checker.check_performance, changes)
        )

        suggestions: list[str] = []
        for warning in warnings:
            if warning.suggestion and warning.suggestion not in suggestions:
                suggestions.append(warning.suggestion)
        if errors:
            suggestions.insert(0, f"Resolve {len(errors)} blocking issue(s) before applying")

        return ValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            suggestions=suggestions[:MAX_SUGGESTIONS],
            confidence=compute_confidence(len(errors), len(warnings)),
        )
