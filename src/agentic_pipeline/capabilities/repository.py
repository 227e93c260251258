"""Query surface over a RepoIndex snapshot."""

import re
from collections import Counter
from pathlib import Path, PurePosixPath

from agentic_pipeline.capabilities.repo_indexer import RepoIndexer
from agentic_pipeline.models import (
    FileAnalysis,
    FileInfo,
    ProjectContext,
    RepoIndex,
    RepoSummary,
)

_CAMEL = re.compile(r"^[a-z][a-z0-9]*(?:[A-Z][a-z0-9]*)+$")
_PASCAL = re.compile(r"^[A-Z][a-z0-9]+(?:[A-Z][a-z0-9]*)*$")
_SNAKE = re.compile(r"^[a-z][a-z0-9]*(?:_[a-z0-9]+)+$")
_KEBAB = re.compile(r"^[a-z][a-z0-9]*(?:-[a-z0-9]+)+$")
_UPPER_SNAKE = re.compile(r"^[A-Z][A-Z0-9]*(?:_[A-Z0-9]+)+$")

# Directory name -> pattern it suggests
DIRECTORY_PATTERNS = {
    "components": "component-based UI",
    "pages": "file-based routing",
    "app": "file-based routing",
    "routes": "route modules",
    "api": "API layer",
    "services": "service layer",
    "controllers": "MVC controllers",
    "models": "domain models",
    "views": "view layer",
    "hooks": "custom hooks",
    "store": "centralized state store",
    "reducers": "centralized state store",
    "repositories": "repository pattern",
    "middleware": "middleware pipeline",
    "utils": "shared utilities",
    "helpers": "shared utilities",
    "lib": "shared utilities",
    "tests": "dedicated test tree",
    "__tests__": "dedicated test tree",
    "migrations": "schema migrations",
    "packages": "monorepo packages",
}


def classify_name(name: str) -> str | None:
    """Return the naming style of an identifier or file stem, or None if ambiguous."""
    if _UPPER_SNAKE.match(name):
        return "UPPER_SNAKE_CASE"
    if _SNAKE.match(name):
        return "snake_case"
    if _KEBAB.match(name):
        return "kebab-case"
    if _CAMEL.match(name):
        return "camelCase"
    if _PASCAL.match(name):
        return "PascalCase"
    return None


def dominant_style(names: list[str]) -> str:
    styles = Counter(style for style in map(classify_name, names) if style)
    if not styles:
        return "unknown"
    (top, top_count), *rest = styles.most_common()
    if rest and rest[0][1] * 2 > top_count:
        return "mixed"
    return top


class IndexedRepository:
    """Answers pipeline queries from an in-memory RepoIndex."""

    def __init__(self, repo_index: RepoIndex):
        self.repo_index = repo_index
        self.root = Path(repo_index.repo_path)
        self._files = {f.relative_path: f for f in repo_index.files}
        self._dependents: dict[str, list[str]] = {}
        for source, targets in repo_index.dependency_graph.items():
            for target in targets:
                self._dependents.setdefault(target, []).append(source)

    @classmethod
    def from_path(cls, repo_path: str, exclude_patterns: list[str] | None = None) -> "IndexedRepository":
        return cls(RepoIndexer(exclude_patterns).index(repo_path))

    @property
    def file_paths(self) -> list[str]:
        return list(self._files)

    def _lookup(self, file_path: str) -> FileInfo | None:
        path = Path(file_path)
        if path.is_absolute():
            try:
                file_path = path.resolve().relative_to(self.root.resolve()).as_posix()
            except ValueError:
                return None
        return self._files.get(PurePosixPath(file_path).as_posix())

    def analyze_file(self, file_path: str) -> FileAnalysis | None:
        info = self._lookup(file_path)
        if info is None:
            return None
        structure = {"functions": 0, "classes": 0, "methods": 0, "imports": len(info.imports)}
        for symbol in info.symbols:
            if symbol.type == "class":
                structure["classes"] += 1
            elif symbol.type == "method":
                structure["methods"] += 1
            else:
                structure["functions"] += 1
        return FileAnalysis(
            file_path=info.relative_path,
            language=info.language,
            size=info.size,
            line_count=info.line_count,
            complexity=info.complexity,
            structure=structure,
            imports=list(info.imports),
        )

    def file_imports(self, file_path: str) -> list[str]:
        info = self._lookup(file_path)
        return list(info.imports) if info else []

    def dependents_of(self, file_path: str) -> list[str]:
        info = self._lookup(file_path)
        key = info.relative_path if info else PurePosixPath(file_path).as_posix()
        return sorted(self._dependents.get(key, []))

    def architectural_patterns(self) -> list[str]:
        directories = {
            part
            for relative_path in self._files
            for part in PurePosixPath(relative_path).parts[:-1]
        }
        patterns = {DIRECTORY_PATTERNS[d] for d in directories if d in DIRECTORY_PATTERNS}
        if {"controllers", "models", "views"} <= directories:
            patterns.add("model-view-controller")
        return sorted(patterns)

    def naming_conventions(self) -> dict[str, str]:
        functions: list[str] = []
        classes: list[str] = []
        for info in self._files.values():
            for symbol in info.symbols:
                if symbol.type == "class":
                    classes.append(symbol.name)
                elif not symbol.name.startswith("_"):
                    functions.append(symbol.name)
        stems = [
            PurePosixPath(p).stem.split(".")[0]
            for p in self._files
            if not PurePosixPath(p).name.startswith(("index.", "__init__"))
        ]
        return {
            "functions": dominant_style(functions),
            "classes": dominant_style(classes),
            "files": dominant_style(stems),
        }

    def file_complexities(self) -> dict[str, float]:
        return {path: info.complexity for path, info in self._files.items()}

    def summary(self) -> RepoSummary:
        complexities = [info.complexity for info in self._files.values() if not info.errors]
        return RepoSummary(
            total_files=self.repo_index.total_files,
            total_elements=self.repo_index.total_symbols,
            average_complexity=(
                round(sum(complexities) / len(complexities), 2) if complexities else 0.0
            ),
        )

    def project_context(self) -> ProjectContext:
        return ProjectContext(
            framework=self.repo_index.framework,
            dependencies=dict(self.repo_index.dependencies),
            architectural_patterns=self.architectural_patterns(),
        )
