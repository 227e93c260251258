"""Step handlers: one per step type, each returning that type's typed output.

Handlers raise on failure. Exceptions are caught by the StepExecutor, never here,
except around optional collaborators whose failure must not fail the step.
"""

import logging
from collections.abc import Callable, Sequence
from pathlib import Path, PurePosixPath

from agentic_pipeline.capabilities.edit_applier import resolve_inside
from agentic_pipeline.capabilities.exceptions import ApplyError
from agentic_pipeline.capabilities.protocols import (
    CompletionProvider,
    EditApplier,
    RepositoryIndexReader,
    SemanticSearch,
    SuiteRunner,
)
from agentic_pipeline.models import (
    AnalysisOutput,
    DocumentationOutput,
    FileAction,
    FileChange,
    GeneratedTest,
    ImplementationOutput,
    PipelineConfiguration,
    PlanningOutput,
    Task,
    TaskStep,
    TestingOutput,
    ValidationOutput,
)
from agentic_pipeline.pipeline.exceptions import (
    ConstraintViolationError,
    MissingStepOutputError,
    SimulationConflictError,
)
from agentic_pipeline.pipeline.impact import (
    analyze_change_impact,
    is_test_file,
    local_module_names,
    merge_impacts,
)
from agentic_pipeline.pipeline.lookup import latest_output
from agentic_pipeline.pipeline.parsing import (
    parse_documentation_sections,
    parse_implementation_response,
    parse_plan_response,
)
from agentic_pipeline.pipeline.prompts import (
    build_documentation_prompt,
    build_implementation_prompt,
    build_planning_prompt,
)
from agentic_pipeline.pipeline.validation import ValidationPipeline

logger = logging.getLogger(__name__)

CONTEXT_TOP_K = 5
MAX_COMPLEXITY = 10.0
FULL_SUITE_CASE = "full-suite"


def read_workspace_file(workspace_root: str, file_path: str) -> str | None:
    """Read a workspace file, or None if it is missing, unreadable or outside the root."""
    try:
        target = resolve_inside(Path(workspace_root), file_path)
    except ApplyError:
        return None
    if not target.is_file():
        return None
    try:
        return target.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read %s: %s", file_path, e)
        return None


def estimate_plan_complexity(
    step_count: int, file_count: int, risk_count: int, average_complexity: float
) -> float:
    """Heuristic 1..10 complexity of a plan."""
    score = 1.0 + 0.5 * step_count + 0.25 * file_count + 0.5 * risk_count + average_complexity / 10
    return round(min(MAX_COMPLEXITY, score), 2)


def counterpart_tests(file_path: str) -> list[str]:
    """Conventional locations of the tests for a source file."""
    path = PurePosixPath(file_path)
    parent = path.parent
    stem, suffix = path.stem, path.suffix
    if suffix == ".py":
        return [
            f"tests/test_{stem}.py",
            (parent / f"test_{stem}.py").as_posix(),
            (parent / "tests" / f"test_{stem}.py").as_posix(),
        ]
    return [
        (parent / f"{stem}.test{suffix}").as_posix(),
        (parent / f"{stem}.spec{suffix}").as_posix(),
        (parent / "__tests__" / f"{stem}.test{suffix}").as_posix(),
    ]


def derive_test_cases(changes: Sequence[FileChange], workspace_root: str) -> list[GeneratedTest]:
    """Test cases covering ``changes``: changed test files plus the tests of changed sources.

    Falls back to a single whole-suite case when no specific test can be found.
    """
    cases: dict[str, GeneratedTest] = {}
    proposed = {c.file_path for c in changes if c.action != FileAction.DELETE}
    for change in changes:
        if change.action == FileAction.DELETE:
            continue
        path = change.file_path
        if is_test_file(path):
            cases.setdefault(path, GeneratedTest(name=path, target=path))
            continue
        for candidate in counterpart_tests(path):
            exists = candidate in proposed or (Path(workspace_root) / candidate).is_file()
            if exists:
                existing = cases.get(candidate)
                if existing is None or existing.source_file is None:
                    cases[candidate] = GeneratedTest(name=candidate, target=candidate, source_file=path)
                break
    if not cases:
        return [GeneratedTest(name=FULL_SUITE_CASE)]
    return list(cases.values())


class StepHandlers:
    """Typed handlers for the six step types.

    Args:
        completion: AI completion capability
        repository: Repository index used when a task carries none of its own
        validation: Validation sub-pipeline
        applier: Edit applier, only ever called as a dry run here
        suite_runner: Runs derived test cases
        retriever: Optional semantic search for analysis context
        config_provider: Returns the current pipeline configuration
    """

    def __init__(
        self,
        completion: CompletionProvider,
        repository: RepositoryIndexReader,
        validation: ValidationPipeline,
        applier: EditApplier,
        suite_runner: SuiteRunner,
        retriever: SemanticSearch | None = None,
        config_provider: Callable[[], PipelineConfiguration] | None = None,
    ):
        self.completion = completion
        self.repository = repository
        self.validation = validation
        self.applier = applier
        self.suite_runner = suite_runner
        self.retriever = retriever
        self.config_provider = config_provider or PipelineConfiguration

    def _repository(self, task: Task) -> RepositoryIndexReader:
        return task.context.repository or self.repository

    def run_analysis(self, task: Task, step: TaskStep) -> AnalysisOutput:
        """Analyze the target files; follow-up analyses also cover their dependents."""
        repository = self._repository(task)
        targets = list(dict.fromkeys(task.context.target_files))
        previous = latest_output(task, AnalysisOutput)
        if previous is not None:
            targets += [p for p in previous.impacted_files if p not in targets]

        file_analysis = []
        for path in targets:
            analysis = repository.analyze_file(path)
            if analysis is None:
                logger.warning("Skipping %s: not in the repository index", path)
                continue
            file_analysis.append(analysis)

        analyzed = [a.file_path for a in file_analysis]
        impacted: list[str] = []
        for path in analyzed:
            for dependent in repository.dependents_of(path):
                if dependent not in targets and dependent not in impacted:
                    impacted.append(dependent)

        relevant_context = []
        if self.retriever is not None:
            query = task.description
            if task.context.user_instructions:
                query = f"{query}\n{task.context.user_instructions}"
            try:
                relevant_context = self.retriever.query(query, top_k=CONTEXT_TOP_K)
            except Exception as e:
                logger.warning("Semantic context unavailable: %s", e)

        logger.info(
            "Analyzed %d file(s) for %s; %d dependent file(s)",
            len(file_analysis), step.id, len(impacted),
        )
        return AnalysisOutput(
            file_analysis=file_analysis,
            dependency_analysis={path: repository.file_imports(path) for path in analyzed},
            impacted_files=impacted,
            architectural_patterns=repository.architectural_patterns(),
            naming_conventions=repository.naming_conventions(),
            repo_summary=repository.summary(),
            relevant_context=relevant_context,
        )

    def run_planning(self, task: Task, step: TaskStep) -> PlanningOutput:
        analysis = latest_output(task, AnalysisOutput)
        raw = self.completion.complete(build_planning_prompt(task, step, analysis))
        plan = parse_plan_response(raw)

        constraints = task.context.constraints
        files = {path for plan_step in plan.steps for path in plan_step.files}
        risks = list(plan.risks)
        if len(files) > constraints.max_files_to_modify:
            risks.append(
                f"Plan touches {len(files)} files; at most "
                f"{constraints.max_files_to_modify} may be modified"
            )
        if analysis is not None and analysis.impacted_files:
            risks.append(f"{len(analysis.impacted_files)} dependent file(s) may be affected")

        prerequisites = list(plan.prerequisites)
        prerequisites += [r for r in plan.requirements if r not in prerequisites]
        average = analysis.repo_summary.average_complexity if analysis is not None else 0.0
        return PlanningOutput(
            raw_plan=raw,
            structured_plan=plan,
            estimated_complexity=estimate_plan_complexity(
                len(plan.steps), len(files), len(risks), average
            ),
            risks=risks,
            prerequisites=prerequisites,
        )

    def run_implementation(self, task: Task, step: TaskStep) -> ImplementationOutput:
        """Ask for file changes, check them against the constraints and dry-run them.

        Raises:
            ConstraintViolationError: If the changes exceed the task's limits
            SimulationConflictError: If the dry run reports conflicts
        """
        context = task.context
        plan = latest_output(task, PlanningOutput)
        analysis = latest_output(task, AnalysisOutput)
        previous = latest_output(task, ImplementationOutput)

        file_contents: dict[str, str] = {}
        if previous is not None:
            for change in previous.file_changes:
                if change.content is not None:
                    file_contents[change.file_path] = change.content
        wanted = list(context.target_files)
        if plan is not None:
            wanted += [p for s in plan.structured_plan.steps for p in s.files]
        for path in wanted:
            if path not in file_contents:
                content = read_workspace_file(context.workspace_root, path)
                if content is not None:
                    file_contents[path] = content

        raw = self.completion.complete(
            build_implementation_prompt(task, step, plan, analysis, previous, file_contents)
        )
        changes = parse_implementation_response(raw)
        for change in changes:
            change.original_content = read_workspace_file(context.workspace_root, change.file_path)
            if change.action == FileAction.MODIFY and change.original_content is None:
                change.action = FileAction.CREATE
            elif change.action == FileAction.CREATE and change.original_content is not None:
                change.action = FileAction.MODIFY

        self._check_constraints(task, changes)

        simulation = self.applier.apply_or_simulate(changes, dry_run=True)
        if not simulation.success:
            raise SimulationConflictError(
                "Simulated apply reported conflicts: " + "; ".join(simulation.conflicts)
            )

        repository = self._repository(task)
        local_paths = [c.file_path for c in changes] + list(context.target_files)
        if analysis is not None:
            local_paths += list(analysis.dependency_analysis)
        local_modules = local_module_names(local_paths)
        file_impacts = {
            change.file_path: analyze_change_impact(
                change,
                repository,
                context.constraints,
                context.project_context.dependencies,
                local_modules,
            )
            for change in changes
        }
        logger.info("%s proposed %d change(s)", step.id, len(changes))
        return ImplementationOutput(
            raw_implementation=raw,
            file_changes=changes,
            simulation_result=simulation,
            impact_analysis=merge_impacts(list(file_impacts.values())),
            file_impacts=file_impacts,
        )

    def _check_constraints(self, task: Task, changes: list[FileChange]) -> None:
        constraints = task.context.constraints
        paths = {c.file_path for c in changes}
        if len(paths) > constraints.max_files_to_modify:
            raise ConstraintViolationError(
                f"Changes touch {len(paths)} files; at most "
                f"{constraints.max_files_to_modify} may be modified"
            )
        if constraints.preserve_existing_tests:
            removed = [
                c.file_path
                for c in changes
                if c.action == FileAction.DELETE
                and c.original_content is not None
                and is_test_file(c.file_path)
            ]
            if removed:
                raise ConstraintViolationError(
                    f"Existing tests must be preserved: {', '.join(sorted(removed))}"
                )

    def run_validation(self, task: Task, step: TaskStep) -> ValidationOutput:
        implementation = latest_output(task, ImplementationOutput)
        if implementation is None:
            raise MissingStepOutputError("Validation requires a completed implementation step")
        result = self.validation.validate(implementation.file_changes)
        step.validation = result
        threshold = self.config_provider().validation_threshold
        logger.info(
            "Validation of %s: %d error(s), %d warning(s), confidence %.2f",
            task.id, len(result.errors), len(result.warnings), result.confidence,
        )
        return ValidationOutput(result=result, meets_threshold=result.confidence >= threshold)

    def run_testing(self, task: Task, step: TaskStep) -> TestingOutput:
        """Run tests for the implemented changes. Failing tests are reported, not raised."""
        implementation = latest_output(task, ImplementationOutput)
        if implementation is None:
            raise MissingStepOutputError("Testing requires a completed implementation step")

        changes = implementation.file_changes
        cases = derive_test_cases(changes, task.context.workspace_root)
        results = self.suite_runner.run_tests(cases, changes)
        passed = sum(1 for r in results if r.passed)
        failed = len(results) - passed

        sources = [
            c.file_path
            for c in changes
            if c.action != FileAction.DELETE and not is_test_file(c.file_path)
        ]
        if sources:
            covered = {case.source_file for case in cases if case.source_file}
            coverage = sum(1 for path in sources if path in covered) / len(sources)
        else:
            coverage = 1.0 if results and failed == 0 else 0.0

        return TestingOutput(
            test_cases=cases,
            test_results=results,
            passed=passed,
            failed=failed,
            coverage=round(coverage, 4),
        )

    def run_documentation(self, task: Task, step: TaskStep) -> DocumentationOutput:
        implementation = latest_output(task, ImplementationOutput)
        analysis = latest_output(task, AnalysisOutput)
        documentation = self.completion.complete(
            build_documentation_prompt(task, step, implementation, analysis)
        )
        return DocumentationOutput(
            documentation=documentation,
            sections=parse_documentation_sections(documentation),
        )
