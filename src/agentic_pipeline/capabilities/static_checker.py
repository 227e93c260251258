"""Static checks over proposed file changes.

Implements the five validation categories with tree-sitter/ast parsing,
import resolution against the repository index and pattern rules.
"""

from collections.abc import Sequence
from pathlib import PurePosixPath

from agentic_pipeline.capabilities.ast_parser import analyze_source, is_supported
from agentic_pipeline.capabilities.diff_utils import detect_code_style
from agentic_pipeline.capabilities.repo_indexer import JS_EXTENSIONS, resolve_import
from agentic_pipeline.capabilities.repository import IndexedRepository
from agentic_pipeline.capabilities.rules import (
    PERFORMANCE_RULES,
    SECURITY_RULES,
    CheckRule,
    find_rule_matches,
    language_of,
)
from agentic_pipeline.models import (
    ErrorKind,
    FileAction,
    FileChange,
    FindingSeverity,
    ValidationErrorItem,
    ValidationWarningItem,
    WarningKind,
)

DEFAULT_MAX_LINE_LENGTH = 120
COMPLEXITY_WARNING_THRESHOLD = 25
_BARREL_NAMES = {"__init__.py", "index.js", "index.ts", "index.tsx", "index.jsx"}


def _sources(changes: Sequence[FileChange]) -> list[tuple[FileChange, str]]:
    return [
        (change, change.content)
        for change in changes
        if change.action != FileAction.DELETE and change.content is not None
    ]


def _is_asset(specifier: str) -> bool:
    suffix = PurePosixPath(specifier).suffix
    return bool(suffix) and suffix not in JS_EXTENSIONS


class StaticChecker:
    """Default CodeChecker used by the validation step."""

    def __init__(
        self,
        repository: IndexedRepository | None = None,
        security_rules: list[CheckRule] | None = None,
        performance_rules: list[CheckRule] | None = None,
        max_line_length: int = DEFAULT_MAX_LINE_LENGTH,
    ):
        self.repository = repository
        self.security_rules = SECURITY_RULES if security_rules is None else security_rules
        self.performance_rules = (
            PERFORMANCE_RULES if performance_rules is None else performance_rules
        )
        self.max_line_length = max_line_length

    def check_syntax(self, changes: Sequence[FileChange]) -> list[ValidationErrorItem]:
        errors = []
        for change, content in _sources(changes):
            if not is_supported(change.file_path):
                continue
            analysis = analyze_source(content, change.file_path)
            errors.extend(
                ValidationErrorItem(
                    kind=ErrorKind.SYNTAX,
                    message=issue.message,
                    file=change.file_path,
                    line=issue.line,
                    column=issue.column,
                )
                for issue in analysis.syntax_errors
            )
        return errors

    def check_semantics(self, changes: Sequence[FileChange]) -> list[ValidationErrorItem]:
        """Find unused imports, unresolvable relative imports and dangling importers."""
        known = set(self.repository.file_paths) if self.repository else set()
        deleted = {c.file_path for c in changes if c.action == FileAction.DELETE}
        known |= {c.file_path for c in changes if c.action == FileAction.CREATE}
        known -= deleted

        errors = []
        for change, content in _sources(changes):
            if not is_supported(change.file_path):
                continue
            analysis = analyze_source(content, change.file_path)
            if analysis.syntax_errors:
                continue
            if PurePosixPath(change.file_path).name not in _BARREL_NAMES:
                errors.extend(
                    ValidationErrorItem(
                        kind=ErrorKind.SEMANTIC,
                        message=f"Import '{binding.name}' from '{binding.source}' is never used",
                        file=change.file_path,
                        line=binding.line,
                        severity=FindingSeverity.WARNING,
                        rule_id="unused-import",
                    )
                    for binding in analysis.import_bindings
                    if binding.name not in analysis.referenced_names
                )
            if not known:
                continue
            for specifier in analysis.imports:
                if not specifier.startswith("."):
                    continue
                if analysis.language != "python" and _is_asset(specifier):
                    continue
                if resolve_import(change.file_path, specifier, known) is None:
                    errors.append(ValidationErrorItem(
                        kind=ErrorKind.SEMANTIC,
                        message=f"Cannot resolve import '{specifier}'",
                        file=change.file_path,
                        rule_id="unresolved-import",
                    ))

        if self.repository is not None:
            changed = {c.file_path for c in changes}
            for path in sorted(deleted):
                importers = [p for p in self.repository.dependents_of(path) if p not in changed]
                if importers:
                    errors.append(ValidationErrorItem(
                        kind=ErrorKind.SEMANTIC,
                        message=f"Deleted file is still imported by: {', '.join(importers)}",
                        file=path,
                        rule_id="dangling-import",
                    ))
        return errors

    def check_style(self, changes: Sequence[FileChange]) -> list[ValidationWarningItem]:
        warnings = []
        for change, content in _sources(changes):
            lines = content.splitlines()
            long_lines = [
                i for i, line in enumerate(lines, start=1) if len(line) > self.max_line_length
            ]
            if long_lines:
                warnings.append(ValidationWarningItem(
                    kind=WarningKind.STYLE,
                    message=(
                        f"{len(long_lines)} line(s) exceed {self.max_line_length} characters"
                    ),
                    file=change.file_path,
                    line=long_lines[0],
                    suggestion="Wrap long lines",
                    rule_id="line-length",
                ))
            trailing = [i for i, line in enumerate(lines, start=1) if line != line.rstrip()]
            if trailing:
                warnings.append(ValidationWarningItem(
                    kind=WarningKind.STYLE,
                    message=f"{len(trailing)} line(s) have trailing whitespace",
                    file=change.file_path,
                    line=trailing[0],
                    suggestion="Strip trailing whitespace",
                    rule_id="trailing-whitespace",
                ))
            if change.action == FileAction.MODIFY and change.original_content:
                warnings.extend(self._convention_drift(change, content))
            if is_supported(change.file_path):
                analysis = analyze_source(content, change.file_path)
                if analysis.complexity > COMPLEXITY_WARNING_THRESHOLD:
                    warnings.append(ValidationWarningItem(
                        kind=WarningKind.MAINTAINABILITY,
                        message=f"Cyclomatic complexity {analysis.complexity:.0f} is high",
                        file=change.file_path,
                        suggestion="Split the logic into smaller functions",
                        rule_id="complexity",
                    ))
        return warnings

    def _convention_drift(self, change: FileChange, content: str) -> list[ValidationWarningItem]:
        before = detect_code_style(change.original_content or "")
        after = detect_code_style(content)
        checked = ["indent", "line_endings"]
        if language_of(change.file_path) != "python":
            checked.append("quotes")
        return [
            ValidationWarningItem(
                kind=WarningKind.CONVENTION,
                message=f"{key.replace('_', ' ').capitalize()} changed from {before[key]} to {after[key]}",
                file=change.file_path,
                suggestion=f"Keep the file's existing {key.replace('_', ' ')}: {before[key]}",
                rule_id=f"convention-{key}",
            )
            for key in checked
            if before[key] != after[key]
        ]

    def check_performance(self, changes: Sequence[FileChange]) -> list[ValidationWarningItem]:
        warnings = []
        for change, content in _sources(changes):
            language = language_of(change.file_path)
            for rule in self.performance_rules:
                if not rule.applies_to(language):
                    continue
                positions = find_rule_matches(rule, content)
                if positions:
                    line, column = positions[0]
                    warnings.append(ValidationWarningItem(
                        kind=WarningKind.PERFORMANCE,
                        message=f"{rule.description} ({len(positions)} occurrence(s))",
                        file=change.file_path,
                        line=line,
                        column=column,
                        suggestion=rule.suggestion,
                        rule_id=rule.rule_id,
                    ))
        return warnings

    def check_security(self, changes: Sequence[FileChange]) -> list[ValidationErrorItem]:
        errors = []
        for change, content in _sources(changes):
            language = language_of(change.file_path)
            for rule in self.security_rules:
                if not rule.applies_to(language):
                    continue
                positions = find_rule_matches(rule, content)
                if positions:
                    line, column = positions[0]
                    errors.append(ValidationErrorItem(
                        kind=ErrorKind.SECURITY,
                        message=f"{rule.description} ({len(positions)} occurrence(s))",
                        file=change.file_path,
                        line=line,
                        column=column,
                        severity=rule.severity,
                        rule_id=rule.rule_id,
                    ))
        return errors
