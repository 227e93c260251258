"""Builds the TaskResult of a completed task."""

from agentic_pipeline.capabilities.diff_utils import compute_line_changes, count_changed_lines
from agentic_pipeline.models import (
    FileAction,
    FileChange,
    FileCreation,
    FileModification,
    ImpactAnalysis,
    ImplementationOutput,
    PerformanceImpact,
    PlanningOutput,
    StepStatus,
    Task,
    TaskMetrics,
    TaskResult,
    TestingOutput,
    ValidationOutput,
)
from agentic_pipeline.pipeline.lookup import latest_output

MAX_RECOMMENDATIONS = 15
PERFORMANCE_SCORES = {
    PerformanceImpact.POSITIVE: 1.0,
    PerformanceImpact.NEUTRAL: 0.8,
    PerformanceImpact.NEGATIVE: 0.5,
}


def final_changes(task: Task) -> list[FileChange]:
    """Changes of all completed implementation steps, later steps winning per file."""
    merged: dict[str, FileChange] = {}
    for step in task.steps:
        if step.status == StepStatus.COMPLETED and isinstance(step.output, ImplementationOutput):
            for change in step.output.file_changes:
                earlier = merged.get(change.file_path)
                if earlier is not None and change.original_content is None:
                    change = change.model_copy(
                        update={"original_content": earlier.original_content}
                    )
                merged[change.file_path] = change
    return list(merged.values())


def final_file_impacts(task: Task) -> dict[str, ImpactAnalysis]:
    """Per-file impacts of all completed implementation steps, later steps winning per file."""
    impacts: dict[str, ImpactAnalysis] = {}
    for step in task.steps:
        if step.status == StepStatus.COMPLETED and isinstance(step.output, ImplementationOutput):
            impacts.update(step.output.file_impacts)
    return impacts


def _file_impact(
    impacts: dict[str, ImpactAnalysis], file_path: str, coverage: float
) -> ImpactAnalysis:
    impact = impacts.get(file_path)
    if impact is None:
        return ImpactAnalysis(affected_files=[file_path], test_coverage=coverage)
    return impact.model_copy(update={"test_coverage": coverage})


def _summary(task: Task, modified: int, created: int, deleted: int) -> str:
    completed = sum(1 for s in task.steps if s.status == StepStatus.COMPLETED)
    skipped = sum(1 for s in task.steps if s.status == StepStatus.SKIPPED)
    parts = [f"{task.type.value} task completed: {completed}/{len(task.steps)} step(s) completed"]
    if skipped:
        parts.append(f"{skipped} skipped")
    if modified or created or deleted:
        parts.append(f"{modified} file(s) modified, {created} created, {deleted} deleted")
    if task.corrections_used:
        parts.append(f"{task.corrections_used} correction(s) applied")
    return "; ".join(parts)


def build_task_result(task: Task, validation_threshold: float) -> TaskResult:
    """Assemble the result of a task that finished all of its steps.

    Args:
        task: The completed task
        validation_threshold: Confidence below which a recommendation is added

    Returns:
        TaskResult describing the file changes, metrics and recommendations
    """
    implementation = latest_output(task, ImplementationOutput)
    impact = implementation.impact_analysis if implementation is not None else None
    validation = latest_output(task, ValidationOutput)
    testing = latest_output(task, TestingOutput)
    planning = latest_output(task, PlanningOutput)
    coverage = testing.coverage if testing is not None else 0.0
    file_impacts = final_file_impacts(task)

    modifications: list[FileModification] = []
    creations: list[FileCreation] = []
    deletions: list[str] = []
    lines_changed = 0
    for change in final_changes(task):
        if change.action == FileAction.DELETE:
            deletions.append(change.file_path)
            lines_changed += len((change.original_content or "").splitlines())
        elif change.action == FileAction.CREATE or change.original_content is None:
            content = change.content or ""
            creations.append(FileCreation(
                file_path=change.file_path,
                content=content,
                purpose=change.reason,
                impact=_file_impact(file_impacts, change.file_path, coverage),
            ))
            lines_changed += len(content.splitlines())
        else:
            line_changes = compute_line_changes(
                change.original_content, change.content or "", change.reason
            )
            modifications.append(FileModification(
                file_path=change.file_path,
                original_content=change.original_content,
                modified_content=change.content or "",
                changes=line_changes,
                impact=_file_impact(file_impacts, change.file_path, coverage),
            ))
            lines_changed += count_changed_lines(line_changes)

    started = task.started_at or task.created_at
    finished = task.completed_at or started
    code_quality = validation.result.confidence if validation is not None else 1.0
    performance_score = PERFORMANCE_SCORES[impact.performance_impact] if impact is not None else 1.0

    metrics = TaskMetrics(
        execution_time_ms=max(0.0, (finished - started).total_seconds() * 1000),
        lines_changed=lines_changed,
        files_affected=len(modifications) + len(creations) + len(deletions),
        test_coverage=coverage,
        code_quality=code_quality,
        complexity=planning.estimated_complexity if planning is not None else (
            impact.complexity if impact is not None else 0.0
        ),
        performance_score=performance_score,
    )

    recommendations: list[str] = []
    if validation is not None:
        recommendations += validation.result.suggestions
        if not validation.meets_threshold:
            recommendations.append(
                f"Validation confidence {validation.result.confidence:.2f} is below "
                f"the threshold {validation_threshold:.2f}; review the changes before applying"
            )
    if impact is not None:
        recommendations += [b.mitigation for b in impact.breaking_changes if b.mitigation]
    if testing is not None and testing.failed:
        failing = [r.name for r in testing.test_results if not r.passed]
        recommendations.append(f"Fix failing tests: {', '.join(failing)}")
    if planning is not None:
        recommendations += [f"Risk: {risk}" for risk in planning.risks]

    return TaskResult(
        success=True,
        files_modified=modifications,
        files_created=creations,
        files_deleted=deletions,
        summary=_summary(task, len(modifications), len(creations), len(deletions)),
        metrics=metrics,
        recommendations=list(dict.fromkeys(recommendations))[:MAX_RECOMMENDATIONS],
    )
