"""Narrow interfaces the pipeline consumes from its collaborators."""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from agentic_pipeline.models import (
    FileAnalysis,
    FileChange,
    GeneratedTest,
    GeneratedTestResult,
    ProjectContext,
    RepoSummary,
    RetrievalResult,
    SimulationResult,
    ValidationErrorItem,
    ValidationWarningItem,
)


@runtime_checkable
class CompletionProvider(Protocol):
    def complete(self, prompt: str) -> str: ...


class RepositoryIndexReader(Protocol):
    """Read-only queries over a repository snapshot."""

    def analyze_file(self, file_path: str) -> FileAnalysis | None: ...

    def file_imports(self, file_path: str) -> list[str]: ...

    def dependents_of(self, file_path: str) -> list[str]: ...

    def architectural_patterns(self) -> list[str]: ...

    def naming_conventions(self) -> dict[str, str]: ...

    def summary(self) -> RepoSummary: ...

    def project_context(self) -> ProjectContext: ...


class CodeChecker(Protocol):
    """The five validation categories, each over the full change set."""

    def check_syntax(self, changes: Sequence[FileChange]) -> list[ValidationErrorItem]: ...

    def check_semantics(self, changes: Sequence[FileChange]) -> list[ValidationErrorItem]: ...

    def check_style(self, changes: Sequence[FileChange]) -> list[ValidationWarningItem]: ...

    def check_performance(
        self, changes: Sequence[FileChange]
    ) -> list[ValidationWarningItem]: ...

    def check_security(self, changes: Sequence[FileChange]) -> list[ValidationErrorItem]: ...


class EditApplier(Protocol):
    def apply_or_simulate(
        self, changes: Sequence[FileChange], dry_run: bool
    ) -> SimulationResult: ...


class SemanticSearch(Protocol):
    def query(self, query: str, top_k: int = 10) -> list[RetrievalResult]: ...


class SuiteRunner(Protocol):
    def run_tests(
        self,
        test_cases: Sequence[GeneratedTest],
        file_changes: Sequence[FileChange] = (),
    ) -> list[GeneratedTestResult]: ...
