"""CLI entry point for the agentic pipeline."""
import argparse
from dotenv import load_dotenv
import json
import logging
import os
import sys
import traceback
from pathlib import Path

from agentic_pipeline.capabilities.exceptions import CapabilityError
from agentic_pipeline.models import TaskType
from agentic_pipeline.pipeline.exceptions import PipelineError, TaskConfigurationError

load_dotenv()

# Exit codes
EXIT_SUCCESS = 0
EXIT_INVALID_INPUT = 1
EXIT_CAPABILITY_ERROR = 2
EXIT_PIPELINE_ERROR = 3
EXIT_TASK_FAILED = 4
EXIT_TASK_CANCELLED = 5
EXIT_UNEXPECTED = 6
EXIT_KEYBOARD_INTERRUPT = 130

# Defaults
DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_MS = 300_000
DEFAULT_MAX_FILES = 10
DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

# Safe keys allowed in config output (no secrets)
_SAFE_CONFIG_KEYS = frozenset({
    "task_type", "description", "workspace", "target_files", "instructions",
    "max_files", "allow_external_deps", "validation", "testing", "error_correction",
    "max_retries", "timeout_ms", "model", "llm_provider", "llm_fallback_provider",
    "allow_llm_fallback", "vector_store_dir", "apply", "output_json", "verbose",
})

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="agentic-pipeline",
        description="Plan, implement, validate and test a code change with an AI pipeline",
    )
    parser.add_argument(
        "task_type",
        type=str,
        choices=[t.value for t in TaskType],
        help="Kind of task to run",
    )
    parser.add_argument("description", type=str, help="What the task should achieve")
    parser.add_argument(
        "--workspace", type=str, default=".", help="Workspace root (default: current directory)"
    )
    parser.add_argument(
        "--target-file",
        dest="target_files",
        action="append",
        default=[],
        help="File the task focuses on, relative to the workspace (repeatable)",
    )
    parser.add_argument("--selected-text", type=str, default=None, help="Selected source text")
    parser.add_argument("--instructions", type=str, default="", help="Extra user instructions")
    parser.add_argument(
        "--max-files",
        type=int,
        default=DEFAULT_MAX_FILES,
        help=f"Maximum number of files the task may modify (default: {DEFAULT_MAX_FILES})",
    )
    parser.add_argument(
        "--allow-external-deps",
        action="store_true",
        help="Allow changes to import packages the project does not declare",
    )
    parser.add_argument("--no-validation", action="store_true", help="Skip validation steps")
    parser.add_argument("--no-testing", action="store_true", help="Skip testing steps")
    parser.add_argument(
        "--no-error-correction", action="store_true", help="Do not retry failed steps"
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=DEFAULT_MAX_RETRIES,
        help=f"Correction attempts per task (default: {DEFAULT_MAX_RETRIES})",
    )
    parser.add_argument(
        "--timeout-ms",
        type=int,
        default=DEFAULT_TIMEOUT_MS,
        help=f"Task timeout in milliseconds (default: {DEFAULT_TIMEOUT_MS})",
    )
    parser.add_argument(
        "--model",
        type=str,
        default=DEFAULT_MODEL,
        help=f"Model ID to use (default: {DEFAULT_MODEL})",
    )
    parser.add_argument(
        "--llm-provider",
        type=str,
        default="auto",
        choices=("auto", "anthropic", "openai"),
        help="LLM provider: auto (default), anthropic, or openai",
    )
    parser.add_argument(
        "--llm-fallback-provider",
        type=str,
        default="",
        choices=("", "anthropic", "openai"),
        help="Optional fallback provider when the primary provider fails",
    )
    parser.add_argument(
        "--allow-llm-fallback",
        action="store_true",
        help="Allow fallback to the alternate provider when the primary provider fails",
    )
    parser.add_argument(
        "--vector-store-dir",
        type=str,
        default="",
        help="Enable semantic context, persisting embeddings in this directory",
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Write the changes when validation confidence meets the threshold",
    )
    parser.add_argument("--output-json", action="store_true", help="Output results as JSON")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--dry-run", action="store_true", help="Print config and exit without running"
    )
    return parser


def validate_workspace(raw_path: str) -> str:
    """Validate and resolve the workspace path.

    Raises:
        SystemExit: If path is not a valid directory.
    """
    resolved = Path(raw_path).resolve()
    if not resolved.is_dir():
        print(f"Error: '{raw_path}' is not a valid directory.", file=sys.stderr)
        raise SystemExit(EXIT_INVALID_INPUT)
    return str(resolved)


def create_collaborators(args: argparse.Namespace, workspace: str) -> dict:
    """Create the default collaborators for ``workspace``.

    Capability and RAG imports are deferred to avoid heavy startup cost
    for --help and --dry-run paths.

    Returns:
        Dict with keys: completion, repository, checker, applier, suite_runner, retriever.
    """
    from agentic_pipeline.capabilities.edit_applier import WorkspaceEditApplier
    from agentic_pipeline.capabilities.llm_client import LLMClient
    from agentic_pipeline.capabilities.repository import IndexedRepository
    from agentic_pipeline.capabilities.static_checker import StaticChecker
    from agentic_pipeline.capabilities.suite_runner import CommandSuiteRunner

    completion = LLMClient(
        api_key=os.getenv("ANTHROPIC_API_KEY"),
        model=args.model,
        llm_provider=args.llm_provider,
        llm_fallback_provider=args.llm_fallback_provider or None,
        allow_fallback=args.allow_llm_fallback,
    )
    repository = IndexedRepository.from_path(workspace)

    retriever = None
    if args.vector_store_dir:
        from agentic_pipeline.rag.embeddings import EmbeddingService
        from agentic_pipeline.rag.exceptions import RAGError
        from agentic_pipeline.rag.retriever import Retriever
        from agentic_pipeline.rag.vector_store import VectorStore

        try:
            retriever = Retriever(
                embedding_service=EmbeddingService(api_key=os.getenv("OPENAI_API_KEY")),
                vector_store=VectorStore(persist_dir=args.vector_store_dir),
            )
            retriever.index_repo(repository.repo_index)
        except RAGError as exc:
            logger.warning("Semantic context disabled: %s", exc)
            retriever = None

    return {
        "completion": completion,
        "repository": repository,
        "checker": StaticChecker(repository=repository),
        "applier": WorkspaceEditApplier(workspace),
        "suite_runner": CommandSuiteRunner(workspace),
        "retriever": retriever,
    }


def format_result_json(result: dict) -> str:
    """Serialize result dict to JSON string.

    Calls .model_dump() on Pydantic model values. Falls back to str()
    for non-serializable types (datetime, Path, etc.) via default=str.
    """

    def _serialize(obj):
        if obj is None:
            return None
        if hasattr(obj, "model_dump"):
            return obj.model_dump(mode="json")
        return obj

    prepared = {k: _serialize(v) for k, v in result.items()}
    return json.dumps(prepared, indent=2, default=str)


def print_task_human(task, applied: bool | None) -> None:
    """Print a finished task in human-readable format."""
    print(f"\n{'='*60}")
    print("Agentic Pipeline Results")
    print(f"{'='*60}")
    print(f"\nTask: {task.id} ({task.type.value})")
    print(f"Status: {task.status.value}")
    print(f"\nSteps ({len(task.steps)} total):")
    for step in task.steps:
        duration = f" {step.duration_ms:.0f} ms" if step.duration_ms is not None else ""
        print(f"  [{step.status.value}] {step.description}{duration}")
        if step.error:
            print(f"      error: {step.error}")

    if task.error:
        print(f"\nError ({task.error_kind.value if task.error_kind else 'unknown'}): {task.error}")

    result = task.result
    if result is not None:
        print(f"\n{result.summary}")
        metrics = result.metrics
        print(
            f"Lines changed: {metrics.lines_changed}, files affected: {metrics.files_affected}, "
            f"code quality: {metrics.code_quality:.2f}, coverage: {metrics.test_coverage:.0%}"
        )
        for modification in result.files_modified:
            print(f"  M {modification.file_path}")
        for creation in result.files_created:
            print(f"  A {creation.file_path}")
        for deleted in result.files_deleted:
            print(f"  D {deleted}")
        if result.recommendations:
            print(f"\nRecommendations ({len(result.recommendations)}):")
            for recommendation in result.recommendations:
                print(f"  - {recommendation}")
    if applied is not None:
        print(f"\nChanges applied: {'yes' if applied else 'no'}")

    print(f"\n{'='*60}")


def print_config_human(config: dict) -> None:
    """Print configuration in human-readable format.

    Only prints keys in the safe allowlist to prevent secret leakage.
    """
    print("\nConfiguration:")
    print(f"{'='*40}")
    for key, value in config.items():
        if key in _SAFE_CONFIG_KEYS:
            print(f"  {key}: {value}")
    print(f"{'='*40}")


def apply_changes(task, applier, threshold: float) -> bool:
    """Write a completed task's changes when validation confidence meets ``threshold``.

    Returns:
        True if the changes were written
    """
    from agentic_pipeline.models import ValidationOutput
    from agentic_pipeline.pipeline.lookup import latest_output
    from agentic_pipeline.pipeline.results import final_changes

    validation = latest_output(task, ValidationOutput)
    if validation is not None and validation.result.confidence < threshold:
        print(
            f"Not applying: validation confidence {validation.result.confidence:.2f} "
            f"is below {threshold:.2f}",
            file=sys.stderr,
        )
        return False
    changes = final_changes(task)
    if not changes:
        return False
    outcome = applier.apply_or_simulate(changes, dry_run=False)
    for conflict in outcome.conflicts:
        print(f"Conflict: {conflict}", file=sys.stderr)
    return outcome.success


def determine_exit_code(task) -> int:
    """Determine the exit code from the task's terminal status."""
    from agentic_pipeline.models import TaskStatus

    if task.status == TaskStatus.COMPLETED:
        return EXIT_SUCCESS
    if task.status == TaskStatus.CANCELLED:
        return EXIT_TASK_CANCELLED
    return EXIT_TASK_FAILED


def _handle_error(label: str, exc: BaseException, verbose: bool, exit_code: int) -> int:
    """Print error message to stderr and return the exit code."""
    print(f"{label}: {exc}", file=sys.stderr)
    if verbose:
        traceback.print_exc(file=sys.stderr)
    return exit_code


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code integer.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        workspace = validate_workspace(args.workspace)
    except SystemExit as exc:
        return exc.code

    config = {
        "task_type": args.task_type,
        "description": args.description,
        "workspace": workspace,
        "target_files": args.target_files,
        "instructions": args.instructions,
        "max_files": args.max_files,
        "allow_external_deps": args.allow_external_deps,
        "validation": not args.no_validation,
        "testing": not args.no_testing,
        "error_correction": not args.no_error_correction,
        "max_retries": args.max_retries,
        "timeout_ms": args.timeout_ms,
        "model": args.model,
        "llm_provider": args.llm_provider,
        "llm_fallback_provider": args.llm_fallback_provider,
        "allow_llm_fallback": args.allow_llm_fallback,
        "vector_store_dir": args.vector_store_dir,
        "apply": args.apply,
        "output_json": args.output_json,
        "verbose": args.verbose,
    }

    if args.dry_run:
        if args.output_json:
            print(json.dumps(config, indent=2))
        else:
            print_config_human(config)
        return EXIT_SUCCESS

    try:
        from pydantic import ValidationError

        from agentic_pipeline.models import PipelineConfiguration
        from agentic_pipeline.pipeline.service import AgenticPipeline

        try:
            pipeline_config = PipelineConfiguration(
                enable_validation=not args.no_validation,
                enable_testing=not args.no_testing,
                enable_error_correction=not args.no_error_correction,
                max_retries=args.max_retries,
                timeout_ms=args.timeout_ms,
            )
        except ValidationError as exc:
            return _handle_error("Invalid configuration", exc, args.verbose, EXIT_INVALID_INPUT)

        collaborators = create_collaborators(args, workspace)
        pipeline = AgenticPipeline(
            workspace_root=workspace,
            config=pipeline_config,
            background=False,
            **collaborators,
        )
        task_id = pipeline.create_task(
            args.task_type,
            args.description,
            context={
                "target_files": args.target_files,
                "selected_text": args.selected_text,
                "user_instructions": args.instructions,
            },
            constraints={
                "max_files_to_modify": args.max_files,
                "allow_external_dependencies": args.allow_external_deps,
            },
        )
        pipeline.wait_until_idle()
        task = pipeline.get_task(task_id)

        applied = None
        if args.apply and task.result is not None:
            applied = apply_changes(
                task, collaborators["applier"], pipeline_config.validation_threshold
            )

        if args.output_json:
            print(format_result_json({"task": task, "applied": applied}))
        else:
            print_task_human(task, applied)

        return determine_exit_code(task)

    except TaskConfigurationError as exc:
        return _handle_error("Invalid task", exc, args.verbose, EXIT_INVALID_INPUT)

    except CapabilityError as exc:
        return _handle_error("Capability error", exc, args.verbose, EXIT_CAPABILITY_ERROR)

    except PipelineError as exc:
        return _handle_error("Pipeline error", exc, args.verbose, EXIT_PIPELINE_ERROR)

    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_KEYBOARD_INTERRUPT

    except Exception as exc:
        return _handle_error("Unexpected error", exc, args.verbose, EXIT_UNEXPECTED)
