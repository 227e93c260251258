"""Runs derived test cases with the project's own test command."""

import json
import logging
import shutil
import subprocess
import sys
import tempfile
import time
from collections.abc import Sequence
from pathlib import Path

from agentic_pipeline.capabilities.edit_applier import write_changes
from agentic_pipeline.capabilities.exceptions import ApplyError, SuiteRunError
from agentic_pipeline.models import FileChange, GeneratedTest, GeneratedTestResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120
MAX_OUTPUT_CHARS = 4000
COPY_IGNORE = shutil.ignore_patterns("node_modules", ".git", "__pycache__", ".venv", "venv")


def detect_runner(workspace_root: str) -> str | None:
    """Pick the test runner for a workspace.

    Returns:
        "pytest", "vitest", "jest", "npm_test", or None when nothing is configured
    """
    root = Path(workspace_root)
    package_json = root / "package.json"
    if package_json.exists():
        try:
            scripts = json.loads(package_json.read_text(encoding="utf-8")).get("scripts", {})
        except (json.JSONDecodeError, OSError):
            scripts = {}
        test_script = scripts.get("test", "")
        if "vitest" in test_script:
            return "vitest"
        if "jest" in test_script:
            return "jest"
        if test_script:
            return "npm_test"

    python_markers = ("pytest.ini", "conftest.py", "pyproject.toml", "setup.cfg", "tox.ini")
    if any((root / marker).exists() for marker in python_markers) or (root / "tests").is_dir():
        return "pytest"
    return None


def build_command(runner: str, target: str | None) -> list[str]:
    targets = [target] if target else []
    if runner == "pytest":
        return [sys.executable, "-m", "pytest", "-q", *targets]
    if runner == "vitest":
        return ["npx", "vitest", "run", *targets]
    if runner == "jest":
        return ["npx", "jest", *targets]
    return ["npm", "test", "--", *targets]


class CommandSuiteRunner:
    """Default SuiteRunner: runs each case as a subprocess in a scratch copy of the workspace."""

    def __init__(self, workspace_root: str, timeout_seconds: int = DEFAULT_TIMEOUT):
        self.workspace_root = workspace_root
        self.timeout_seconds = timeout_seconds

    def run_tests(
        self,
        test_cases: Sequence[GeneratedTest],
        file_changes: Sequence[FileChange] = (),
    ) -> list[GeneratedTestResult]:
        """Run ``test_cases`` against the workspace with ``file_changes`` applied.

        Raises:
            SuiteRunError: If the scratch workspace cannot be prepared
        """
        runner = detect_runner(self.workspace_root)
        if runner is None and not any(case.command for case in test_cases):
            return [
                GeneratedTestResult(name=case.name, passed=False, output="No test runner detected")
                for case in test_cases
            ]

        scratch = self._prepare_workspace(file_changes)
        try:
            return [self._run_case(case, runner, scratch) for case in test_cases]
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

    def _prepare_workspace(self, file_changes: Sequence[FileChange]) -> str:
        tmp_dir = tempfile.mkdtemp(prefix="agentic-tests-")
        try:
            shutil.copytree(
                self.workspace_root, tmp_dir,
                dirs_exist_ok=True, symlinks=False, ignore=COPY_IGNORE,
            )
            node_modules = Path(self.workspace_root) / "node_modules"
            if node_modules.is_dir():
                (Path(tmp_dir) / "node_modules").symlink_to(node_modules.resolve())
            write_changes(Path(tmp_dir), file_changes)
        except (OSError, ApplyError) as e:
            shutil.rmtree(tmp_dir, ignore_errors=True)
            raise SuiteRunError(f"Failed to prepare test workspace: {e}") from e
        return tmp_dir

    def _run_case(
        self, case: GeneratedTest, runner: str | None, cwd: str
    ) -> GeneratedTestResult:
        if case.command:
            command = list(case.command)
        elif runner is not None:
            command = build_command(runner, case.target)
        else:
            return GeneratedTestResult(name=case.name, passed=False, output="No test runner detected")

        started = time.perf_counter()
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                cwd=cwd,
            )
        except subprocess.TimeoutExpired:
            return GeneratedTestResult(
                name=case.name,
                passed=False,
                output=f"Test run timed out after {self.timeout_seconds}s",
                duration_ms=(time.perf_counter() - started) * 1000,
            )
        except OSError as e:
            return GeneratedTestResult(name=case.name, passed=False, output=str(e))

        output = (result.stdout + result.stderr)[-MAX_OUTPUT_CHARS:]
        logger.debug("%s exited with %d", " ".join(command), result.returncode)
        return GeneratedTestResult(
            name=case.name,
            passed=result.returncode == 0,
            output=output,
            duration_ms=(time.perf_counter() - started) * 1000,
        )
