"""Impact analysis of proposed file changes."""

import sys
from collections.abc import Sequence
from pathlib import PurePosixPath

from agentic_pipeline.capabilities.ast_parser import analyze_source, is_supported
from agentic_pipeline.capabilities.protocols import RepositoryIndexReader
from agentic_pipeline.capabilities.rules import (
    PERFORMANCE_RULES,
    SECURITY_RULES,
    count_matches,
)
from agentic_pipeline.models import (
    BreakingChange,
    BreakingChangeType,
    BreakingSeverity,
    FileAction,
    FileChange,
    ImpactAnalysis,
    PerformanceImpact,
    SecurityImpact,
    TaskConstraints,
)


def _package_name(specifier: str, language: str) -> str | None:
    """Return the installable package an import refers to, or None for local modules."""
    if specifier.startswith((".", "/")):
        return None
    if language == "python":
        top = specifier.split(".")[0]
        return None if top in sys.stdlib_module_names else top
    if specifier.startswith("node:"):
        return None
    parts = specifier.split("/")
    return "/".join(parts[:2]) if specifier.startswith("@") else parts[0]


def _exported(content: str | None, file_path: str) -> set[str]:
    if not content or not is_supported(file_path):
        return set()
    analysis = analyze_source(content, file_path)
    if analysis.syntax_errors:
        return set()
    return set(analysis.exported_names)


def analyze_change_impact(
    change: FileChange,
    repository: RepositoryIndexReader,
    constraints: TaskConstraints,
    known_dependencies: dict[str, str],
    local_modules: frozenset[str] = frozenset(),
) -> ImpactAnalysis:
    """Assess one change: dependents, removed exports, new packages, rule deltas.

    Args:
        change: The proposed change, with original content filled for modifications
        repository: Index used to find the change's dependents
        constraints: Task constraints deciding breaking-change severity
        known_dependencies: Packages the project already declares
        local_modules: Top-level module names that belong to the workspace itself

    Returns:
        ImpactAnalysis for this file
    """
    path = change.file_path
    dependents = repository.dependents_of(path)
    impact = ImpactAnalysis(affected_files=[path, *dependents])
    api_severity = (
        BreakingSeverity.HIGH
        if constraints.maintain_backward_compatibility
        else BreakingSeverity.MEDIUM
    )

    if change.action == FileAction.DELETE:
        if dependents:
            impact.breaking_changes.append(BreakingChange(
                type=BreakingChangeType.API,
                description=f"{path} is deleted but still imported",
                severity=BreakingSeverity.CRITICAL,
                mitigation=f"Update the importers: {', '.join(dependents)}",
                affected_elements=sorted(_exported(change.original_content, path)),
            ))
        return impact

    content = change.content or ""
    removed = _exported(change.original_content, path) - _exported(content, path)
    if removed and change.action == FileAction.MODIFY:
        impact.breaking_changes.append(BreakingChange(
            type=BreakingChangeType.API,
            description=f"Exported names removed from {path}",
            severity=api_severity if dependents else BreakingSeverity.LOW,
            mitigation=(
                "Keep deprecated aliases for the removed names"
                + (f" or update: {', '.join(dependents)}" if dependents else "")
            ),
            affected_elements=sorted(removed),
        ))

    if is_supported(path):
        analysis = analyze_source(content, path)
        impact.complexity = analysis.complexity
        declared = {name.lower() for name in known_dependencies}
        new_packages = sorted({
            package
            for package in filter(None, (_package_name(s, analysis.language) for s in analysis.imports))
            if package.lower() not in declared and package not in local_modules
        })
        if new_packages and not constraints.allow_external_dependencies:
            impact.breaking_changes.append(BreakingChange(
                type=BreakingChangeType.DEPENDENCY,
                description=f"{path} imports undeclared packages",
                severity=BreakingSeverity.MEDIUM,
                mitigation="Declare the packages in the project manifest or avoid them",
                affected_elements=new_packages,
            ))

    before_perf = count_matches(PERFORMANCE_RULES, change.original_content or "", path)
    after_perf = count_matches(PERFORMANCE_RULES, content, path)
    if after_perf < before_perf:
        impact.performance_impact = PerformanceImpact.POSITIVE
    elif after_perf > before_perf:
        impact.performance_impact = PerformanceImpact.NEGATIVE

    before_sec = count_matches(SECURITY_RULES, change.original_content or "", path)
    after_sec = count_matches(SECURITY_RULES, content, path)
    if after_sec < before_sec:
        impact.security_impact = SecurityImpact.IMPROVED
    elif after_sec > before_sec:
        impact.security_impact = SecurityImpact.DEGRADED
    return impact


def merge_impacts(impacts: Sequence[ImpactAnalysis]) -> ImpactAnalysis:
    """Aggregate per-file impacts: negative qualitative effects dominate."""
    merged = ImpactAnalysis()
    for impact in impacts:
        for path in impact.affected_files:
            if path not in merged.affected_files:
                merged.affected_files.append(path)
        merged.breaking_changes.extend(impact.breaking_changes)
        merged.complexity = max(merged.complexity, impact.complexity)
    performance = {i.performance_impact for i in impacts}
    if PerformanceImpact.NEGATIVE in performance:
        merged.performance_impact = PerformanceImpact.NEGATIVE
    elif PerformanceImpact.POSITIVE in performance:
        merged.performance_impact = PerformanceImpact.POSITIVE
    security = {i.security_impact for i in impacts}
    if SecurityImpact.DEGRADED in security:
        merged.security_impact = SecurityImpact.DEGRADED
    elif SecurityImpact.IMPROVED in security:
        merged.security_impact = SecurityImpact.IMPROVED
    return merged


def is_test_file(file_path: str) -> bool:
    name = PurePosixPath(file_path).name
    parts = PurePosixPath(file_path).parts
    return (
        name.startswith("test_")
        or name.endswith("_test.py")
        or ".test." in name
        or ".spec." in name
        or "__tests__" in parts
        or "tests" in parts[:-1]
    )


def local_module_names(paths: Sequence[str]) -> frozenset[str]:
    """Top-level module names implied by workspace paths ("src/app/x.py" -> "app")."""
    names = set()
    for path in paths:
        parts = PurePosixPath(path).parts
        if parts and parts[0] == "src":
            parts = parts[1:]
        if not parts:
            continue
        names.add(PurePosixPath(parts[0]).stem if len(parts) == 1 else parts[0])
    return frozenset(names)
