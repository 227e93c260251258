"""Tests for WorkspaceEditApplier and write_changes."""

import subprocess
from unittest.mock import patch

import pytest

from agentic_pipeline.capabilities.edit_applier import (
    WorkspaceEditApplier,
    resolve_inside,
    write_changes,
)
from agentic_pipeline.capabilities.exceptions import ApplyError
from agentic_pipeline.models import FileAction, FileChange
from fakes import APP_SOURCE, UPDATED_APP_SOURCE


@pytest.fixture
def applier(workspace) -> WorkspaceEditApplier:
    return WorkspaceEditApplier(str(workspace), check_with_git=False)


def modify(content=UPDATED_APP_SOURCE, **kwargs) -> FileChange:
    return FileChange(file_path="src/app.py", action=FileAction.MODIFY, content=content, **kwargs)


class TestResolveInside:
    def test_nested_path(self, tmp_path):
        assert resolve_inside(tmp_path, "a/b.py") == (tmp_path / "a" / "b.py").resolve()

    @pytest.mark.parametrize("path", ["../outside.py", "a/../../outside.py", "/etc/passwd"])
    def test_escape_rejected(self, tmp_path, path):
        with pytest.raises(ApplyError, match="Path traversal"):
            resolve_inside(tmp_path, path)


class TestWriteChanges:
    def test_create_modify_delete(self, workspace):
        write_changes(workspace, [
            FileChange(file_path="src/new/mod.py", action=FileAction.CREATE, content="x = 1\n"),
            modify(),
            FileChange(file_path="tests/test_app.py", action=FileAction.DELETE),
        ])
        assert (workspace / "src/new/mod.py").read_text() == "x = 1\n"
        assert (workspace / "src/app.py").read_text() == UPDATED_APP_SOURCE
        assert not (workspace / "tests/test_app.py").exists()

    def test_missing_content(self, workspace):
        with pytest.raises(ApplyError, match="No content for modify of src/app.py"):
            write_changes(workspace, [modify(content=None)])


class TestDryRun:
    def test_clean_change_not_written(self, applier, workspace):
        result = applier.apply_or_simulate([modify()], dry_run=True)
        assert result.success is True
        assert result.conflicts == []
        assert (workspace / "src/app.py").read_text() == APP_SOURCE

    def test_duplicate_paths(self, applier):
        result = applier.apply_or_simulate([modify(), modify()], dry_run=True)
        assert result.success is False
        assert result.conflicts == ["src/app.py: changed more than once"]

    def test_traversal(self, applier):
        change = FileChange(file_path="../evil.py", action=FileAction.CREATE, content="x")
        result = applier.apply_or_simulate([change], dry_run=True)
        assert "Path traversal" in result.conflicts[0]

    def test_create_existing_file(self, applier):
        change = FileChange(file_path="src/app.py", action=FileAction.CREATE, content="x")
        result = applier.apply_or_simulate([change], dry_run=True)
        assert result.conflicts == ["src/app.py: file already exists"]

    def test_modify_missing_file(self, applier):
        change = FileChange(file_path="src/missing.py", action=FileAction.MODIFY, content="x")
        result = applier.apply_or_simulate([change], dry_run=True)
        assert result.conflicts == ["src/missing.py: file to modify does not exist"]

    def test_stale_original_content(self, applier):
        result = applier.apply_or_simulate([modify(original_content="old text\n")], dry_run=True)
        assert result.conflicts == ["src/app.py: file changed on disk since it was read"]

    def test_delete_absent_is_warning(self, applier):
        change = FileChange(file_path="src/gone.py", action=FileAction.DELETE)
        result = applier.apply_or_simulate([change], dry_run=True)
        assert result.success is True
        assert result.warnings == ["src/gone.py: already absent"]

    def test_unchanged_content_is_warning(self, applier):
        result = applier.apply_or_simulate([modify(content=APP_SOURCE)], dry_run=True)
        assert result.success is True
        assert result.warnings == ["src/app.py: change leaves the file unchanged"]


class TestApply:
    def test_writes_changes(self, applier, workspace):
        result = applier.apply_or_simulate([modify()], dry_run=False)
        assert result.success is True
        assert (workspace / "src/app.py").read_text() == UPDATED_APP_SOURCE

    def test_conflicts_block_all_writes(self, applier, workspace):
        changes = [
            FileChange(file_path="src/extra.py", action=FileAction.CREATE, content="y = 2\n"),
            FileChange(file_path="src/missing.py", action=FileAction.MODIFY, content="x"),
        ]
        result = applier.apply_or_simulate(changes, dry_run=False)
        assert result.success is False
        assert not (workspace / "src/extra.py").exists()


class TestGitCheck:
    def test_invalid_diff_is_conflict(self, workspace):
        applier = WorkspaceEditApplier(str(workspace))
        with patch(
            "agentic_pipeline.capabilities.edit_applier.validate_diff_with_git",
            return_value=(False, "patch does not apply\n"),
        ):
            result = applier.apply_or_simulate([modify()], dry_run=True)
        assert result.conflicts == ["src/app.py: diff does not apply: patch does not apply"]

    def test_git_unavailable_is_warning(self, workspace):
        applier = WorkspaceEditApplier(str(workspace))
        with patch(
            "agentic_pipeline.capabilities.edit_applier.validate_diff_with_git",
            side_effect=FileNotFoundError("git"),
        ):
            result = applier.apply_or_simulate([modify()], dry_run=True)
        assert result.success is True
        assert result.warnings[0].startswith("src/app.py: diff not checked with git")

    def test_git_timeout_is_warning(self, workspace):
        applier = WorkspaceEditApplier(str(workspace))
        with patch(
            "agentic_pipeline.capabilities.edit_applier.validate_diff_with_git",
            side_effect=subprocess.TimeoutExpired("git", 30),
        ):
            result = applier.apply_or_simulate([modify()], dry_run=True)
        assert result.success is True
        assert len(result.warnings) == 1
