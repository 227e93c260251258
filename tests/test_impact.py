"""Tests for per-change impact analysis."""

import pytest

from agentic_pipeline.models import (
    BreakingChangeType,
    BreakingSeverity,
    FileAction,
    FileChange,
    ImpactAnalysis,
    PerformanceImpact,
    SecurityImpact,
    TaskConstraints,
)
from agentic_pipeline.pipeline.impact import (
    analyze_change_impact,
    is_test_file,
    local_module_names,
    merge_impacts,
)
from fakes import FakeRepository

ORIGINAL = "def greet(name):\n    return name\n\n\ndef wave():\n    return 1\n"


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository(dependents={"src/app.py": ["src/cli.py"]})


def analyze(change, repository, constraints=None, dependencies=None, local=frozenset()):
    return analyze_change_impact(
        change,
        repository,
        constraints or TaskConstraints(),
        dependencies if dependencies is not None else {"pydantic": ">=2"},
        local,
    )


class TestAnalyzeChangeImpact:
    def test_affected_files_include_dependents(self, repository):
        change = FileChange(file_path="src/app.py", content=ORIGINAL, original_content=ORIGINAL)
        impact = analyze(change, repository)
        assert impact.affected_files == ["src/app.py", "src/cli.py"]
        assert impact.breaking_changes == []
        assert impact.complexity == 1.0

    def test_removed_export_with_dependents_is_high(self, repository):
        change = FileChange(
            file_path="src/app.py",
            content="def greet(name):\n    return name\n",
            original_content=ORIGINAL,
        )
        impact = analyze(change, repository)
        breaking = impact.breaking_changes[0]
        assert breaking.type == BreakingChangeType.API
        assert breaking.severity == BreakingSeverity.HIGH
        assert breaking.affected_elements == ["wave"]
        assert breaking.mitigation == "Keep deprecated aliases for the removed names or update: src/cli.py"

    def test_removed_export_without_compatibility_constraint(self, repository):
        change = FileChange(file_path="src/app.py", content="x = 1\n", original_content=ORIGINAL)
        impact = analyze(change, repository, TaskConstraints(maintain_backward_compatibility=False))
        assert impact.breaking_changes[0].severity == BreakingSeverity.MEDIUM

    def test_removed_export_without_dependents_is_low(self, repository):
        change = FileChange(file_path="src/lib.py", content="x = 1\n", original_content=ORIGINAL)
        impact = analyze(change, repository)
        assert impact.breaking_changes[0].severity == BreakingSeverity.LOW

    def test_deleted_file_still_imported_is_critical(self, repository):
        change = FileChange(
            file_path="src/app.py", action=FileAction.DELETE, original_content=ORIGINAL
        )
        impact = analyze(change, repository)
        breaking = impact.breaking_changes[0]
        assert breaking.severity == BreakingSeverity.CRITICAL
        assert breaking.affected_elements == ["greet", "wave"]

    def test_undeclared_package(self, repository):
        content = "import os\nimport requests\nimport pydantic\nfrom app import util\n"
        change = FileChange(file_path="src/new.py", action=FileAction.CREATE, content=content)
        impact = analyze(change, repository, local=frozenset({"app"}))
        breaking = impact.breaking_changes[0]
        assert breaking.type == BreakingChangeType.DEPENDENCY
        assert breaking.affected_elements == ["requests"]

    def test_external_dependencies_allowed(self, repository):
        change = FileChange(file_path="src/new.py", action=FileAction.CREATE, content="import requests\n")
        impact = analyze(change, repository, TaskConstraints(allow_external_dependencies=True))
        assert impact.breaking_changes == []

    def test_scoped_npm_package(self, repository):
        content = "import { z } from '@scope/pkg/sub';\nimport fs from 'node:fs';\nexport const a = z;\n"
        change = FileChange(file_path="web/a.js", action=FileAction.CREATE, content=content)
        impact = analyze(change, repository, dependencies={})
        assert impact.breaking_changes[0].affected_elements == ["@scope/pkg"]

    def test_performance_and_security_deltas(self, repository):
        original = "import time\n\ntime.sleep(1)\n"
        content = "import subprocess\n\nsubprocess.run(cmd, shell=True)\n"
        change = FileChange(file_path="src/job.py", content=content, original_content=original)
        impact = analyze(change, repository)
        assert impact.performance_impact == PerformanceImpact.POSITIVE
        assert impact.security_impact == SecurityImpact.DEGRADED


class TestMergeImpacts:
    def test_negative_effects_dominate(self):
        merged = merge_impacts([
            ImpactAnalysis(
                affected_files=["a.py", "b.py"],
                performance_impact=PerformanceImpact.POSITIVE,
                security_impact=SecurityImpact.IMPROVED,
                complexity=2.0,
            ),
            ImpactAnalysis(
                affected_files=["b.py", "c.py"],
                performance_impact=PerformanceImpact.NEGATIVE,
                complexity=5.0,
            ),
        ])
        assert merged.affected_files == ["a.py", "b.py", "c.py"]
        assert merged.performance_impact == PerformanceImpact.NEGATIVE
        assert merged.security_impact == SecurityImpact.IMPROVED
        assert merged.complexity == 5.0

    def test_empty(self):
        assert merge_impacts([]) == ImpactAnalysis()


@pytest.mark.parametrize("path, expected", [
    ("tests/test_app.py", True),
    ("src/app_test.py", True),
    ("web/app.test.ts", True),
    ("web/__tests__/app.js", True),
    ("src/app.py", False),
    ("src/contest.py", False),
])
def test_is_test_file(path, expected):
    assert is_test_file(path) is expected


def test_local_module_names():
    names = local_module_names(["src/app/core.py", "cli.py", "tests/test_cli.py"])
    assert names == frozenset({"app", "cli", "tests"})
