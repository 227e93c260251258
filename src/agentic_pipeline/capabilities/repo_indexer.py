"""Repository indexer for JavaScript/TypeScript and Python codebases."""

import hashlib
import json
import logging
import tomllib
from pathlib import Path, PurePosixPath
from typing import Optional

from agentic_pipeline.capabilities.ast_parser import (
    LANGUAGE_BY_EXTENSION,
    analyze_source,
    get_language_for_file,
)
from agentic_pipeline.capabilities.exceptions import IndexingError
from agentic_pipeline.models import FileInfo, RepoIndex

logger = logging.getLogger(__name__)

MAX_FILE_BYTES = 1_000_000
JS_EXTENSIONS = (".js", ".ts", ".jsx", ".tsx", ".mjs", ".cjs")

# Checked in order; the first hit wins.
FRAMEWORK_MARKERS = [
    ("next", "nextjs"),
    ("@angular/core", "angular"),
    ("vue", "vue"),
    ("svelte", "svelte"),
    ("react", "react"),
    ("express", "express"),
    ("django", "django"),
    ("fastapi", "fastapi"),
    ("flask", "flask"),
]


class RepoIndexer:
    """Builds a RepoIndex from a working tree."""

    def __init__(self, exclude_patterns: list[str] | None = None):
        """Initialize the repo indexer.

        Args:
            exclude_patterns: List of directory/file patterns to exclude
        """
        self.exclude_patterns = exclude_patterns or [
            "node_modules",
            "dist",
            "build",
            ".git",
            "__pycache__",
            ".venv",
            "venv",
        ]

    def index(self, repo_path: str) -> RepoIndex:
        """Index a repository and extract symbols, imports and dependencies.

        Args:
            repo_path: Path to the repository root

        Returns:
            RepoIndex with all extracted information

        Raises:
            IndexingError: If the repository path does not exist
        """
        root = Path(repo_path).resolve()
        if not root.is_dir():
            raise IndexingError(f"Repository path not found: {repo_path}")

        framework, dependencies = detect_project(root)

        files: list[FileInfo] = []
        for path in self._discover_files(root):
            relative_path = path.relative_to(root).as_posix()
            try:
                files.append(self._index_file(path, relative_path))
            except (OSError, UnicodeDecodeError, ValueError) as e:
                logger.warning("Failed to index %s: %s", relative_path, e)
                files.append(FileInfo(
                    file_path=str(path),
                    relative_path=relative_path,
                    language="unknown",
                    hash="",
                    errors=[f"Failed to parse: {e}"],
                ))

        dependency_graph = build_dependency_graph(files)
        logger.info("Indexed %d files under %s", len(files), root)

        return RepoIndex(
            repo_path=str(root),
            files=files,
            dependency_graph=dependency_graph,
            framework=framework,
            dependencies=dependencies,
            total_files=len(files),
            total_symbols=sum(len(f.symbols) for f in files),
        )

    def _discover_files(self, root: Path) -> list[Path]:
        file_paths = []
        for path in sorted(root.rglob("*")):
            # Skip symlinks to prevent path traversal
            if path.is_symlink():
                continue
            if any(pattern in path.parts for pattern in self.exclude_patterns):
                continue
            if path.is_file() and path.suffix in LANGUAGE_BY_EXTENSION:
                if path.stat().st_size > MAX_FILE_BYTES:
                    logger.debug("Skipping oversized file %s", path)
                    continue
                file_paths.append(path)
        return file_paths

    def _index_file(self, path: Path, relative_path: str) -> FileInfo:
        source_bytes = path.read_bytes()
        source = source_bytes.decode("utf-8")
        analysis = analyze_source(source, relative_path)
        return FileInfo(
            file_path=str(path),
            relative_path=relative_path,
            language=get_language_for_file(relative_path),
            symbols=analysis.symbols,
            imports=analysis.imports,
            hash=hashlib.sha256(source_bytes).hexdigest(),
            size=len(source_bytes),
            line_count=len(source.splitlines()),
            complexity=analysis.complexity,
            errors=[
                f"Syntax error at {issue.line}:{issue.column}: {issue.message}"
                for issue in analysis.syntax_errors
            ],
        )


def detect_project(root: Path) -> tuple[str, dict[str, str]]:
    """Detect the framework and declared dependencies of a project.

    Reads package.json, requirements.txt and pyproject.toml when present.

    Returns:
        Tuple of (framework name or "unknown", dependency name -> version spec)
    """
    dependencies: dict[str, str] = {}

    package_json = root / "package.json"
    if package_json.exists():
        try:
            package_data = json.loads(package_json.read_text(encoding="utf-8"))
            dependencies.update(package_data.get("dependencies", {}))
            dependencies.update(package_data.get("devDependencies", {}))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable package.json: %s", e)

    requirements = root / "requirements.txt"
    if requirements.exists():
        for line in requirements.read_text(encoding="utf-8").splitlines():
            name, spec = _split_requirement(line)
            if name:
                dependencies[name] = spec

    pyproject = root / "pyproject.toml"
    if pyproject.exists():
        try:
            project = tomllib.loads(pyproject.read_text(encoding="utf-8")).get("project", {})
            for line in project.get("dependencies", []):
                name, spec = _split_requirement(line)
                if name:
                    dependencies[name] = spec
        except (tomllib.TOMLDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable pyproject.toml: %s", e)

    lowered = {name.lower() for name in dependencies}
    for marker, framework in FRAMEWORK_MARKERS:
        if marker in lowered:
            return framework, dependencies
    return "unknown", dependencies


def _split_requirement(line: str) -> tuple[str, str]:
    line = line.split("#", 1)[0].strip()
    if not line or line.startswith("-"):
        return "", ""
    for index, char in enumerate(line):
        if char in "<>=!~;[ ":
            return line[:index].strip(), line[index:].strip()
    return line, "*"


def build_dependency_graph(files: list[FileInfo]) -> dict[str, list[str]]:
    """Resolve each file's imports to other indexed files.

    Sets ``FileInfo.dependencies`` in place.

    Returns:
        Dictionary mapping relative path -> list of relative dependency paths
    """
    known = {f.relative_path for f in files}
    graph: dict[str, list[str]] = {}
    for file_info in files:
        dependencies = []
        for specifier in file_info.imports:
            resolved = resolve_import(file_info.relative_path, specifier, known)
            if resolved and resolved not in dependencies:
                dependencies.append(resolved)
        file_info.dependencies = dependencies
        graph[file_info.relative_path] = dependencies
    return graph


def resolve_import(from_file: str, specifier: str, known: set[str]) -> Optional[str]:
    """Resolve an import specifier to a known relative path.

    Args:
        from_file: Relative path of the importing file
        specifier: Import string as written ("./utils", "pkg.mod", "..mod")
        known: Relative paths of all files that exist

    Returns:
        The matching relative path, or None for external or unknown modules
    """
    if from_file.endswith(".py"):
        return _resolve_python_import(from_file, specifier, known)
    # Non-relative imports resolve to node_modules
    if not specifier.startswith("."):
        return None
    base = PurePosixPath(from_file).parent / specifier
    candidates = [_normalize(base)]
    candidates.extend(_normalize(base) + ext for ext in JS_EXTENSIONS)
    candidates.extend(_normalize(base / f"index{ext}") for ext in JS_EXTENSIONS)
    if base.suffix == ".js":
        # TypeScript sources are imported with their emitted .js extension
        candidates.extend(_normalize(base.with_suffix(ext)) for ext in (".ts", ".tsx"))
    for candidate in candidates:
        if candidate in known:
            return candidate
    return None


def _resolve_python_import(from_file: str, specifier: str, known: set[str]) -> Optional[str]:
    level = len(specifier) - len(specifier.lstrip("."))
    module_parts = [p for p in specifier[level:].split(".") if p]
    if level:
        base = PurePosixPath(from_file).parent
        for _ in range(level - 1):
            base = base.parent
        roots = [base]
    else:
        roots = [PurePosixPath("."), PurePosixPath("src")]
    for root in roots:
        module = root.joinpath(*module_parts) if module_parts else root
        for candidate in (f"{_normalize(module)}.py", _normalize(module / "__init__.py")):
            if candidate in known:
                return candidate
    return None


def _normalize(path: PurePosixPath) -> str:
    parts: list[str] = []
    for part in path.parts:
        if part == "..":
            if parts:
                parts.pop()
        elif part != ".":
            parts.append(part)
    return "/".join(parts)
