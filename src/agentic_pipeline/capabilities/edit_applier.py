"""Applies or previews file changes inside a workspace."""

import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path

from agentic_pipeline.capabilities.diff_utils import (
    generate_unified_diff,
    validate_diff_with_git,
)
from agentic_pipeline.capabilities.exceptions import ApplyError
from agentic_pipeline.models import FileAction, FileChange, SimulationResult

logger = logging.getLogger(__name__)


def resolve_inside(root: Path, relative_path: str) -> Path:
    """Resolve ``relative_path`` under ``root``.

    Raises:
        ApplyError: If the path escapes ``root``
    """
    resolved_root = root.resolve()
    target = (resolved_root / relative_path).resolve()
    if not target.is_relative_to(resolved_root):
        raise ApplyError(
            f"Path traversal attempt detected: '{relative_path}' "
            f"resolves outside of {resolved_root}."
        )
    return target


def write_changes(root: Path, changes: Sequence[FileChange]) -> None:
    """Write ``changes`` under ``root``: create/modify write content, delete removes the file.

    Raises:
        ApplyError: On path traversal or a change without content
    """
    for change in changes:
        target = resolve_inside(root, change.file_path)
        if change.action == FileAction.DELETE:
            target.unlink(missing_ok=True)
            continue
        if change.content is None:
            raise ApplyError(f"No content for {change.action.value} of {change.file_path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(change.content, encoding="utf-8")


class WorkspaceEditApplier:
    """Default EditApplier: dry runs check every change, real runs write them."""

    def __init__(self, workspace_root: str, check_with_git: bool = True):
        self.workspace_root = Path(workspace_root)
        self.check_with_git = check_with_git

    def apply_or_simulate(
        self, changes: Sequence[FileChange], dry_run: bool
    ) -> SimulationResult:
        """Check ``changes`` against the workspace and write them unless ``dry_run``.

        Conflicts make the result unsuccessful and prevent any write.

        Args:
            changes: Proposed file changes
            dry_run: Only report conflicts and warnings when True

        Returns:
            SimulationResult with conflicts and warnings
        """
        conflicts: list[str] = []
        warnings: list[str] = []
        seen: set[str] = set()
        for change in changes:
            if change.file_path in seen:
                conflicts.append(f"{change.file_path}: changed more than once")
                continue
            seen.add(change.file_path)
            try:
                target = resolve_inside(self.workspace_root, change.file_path)
            except ApplyError as e:
                conflicts.append(str(e))
                continue
            self._check_change(change, target, conflicts, warnings)

        if conflicts or dry_run:
            return SimulationResult(success=not conflicts, conflicts=conflicts, warnings=warnings)

        try:
            write_changes(self.workspace_root, changes)
        except (ApplyError, OSError) as e:
            logger.error("Writing changes failed: %s", e)
            return SimulationResult(success=False, conflicts=[str(e)], warnings=warnings)
        logger.info("Applied %d change(s) under %s", len(changes), self.workspace_root)
        return SimulationResult(success=True, warnings=warnings)

    def _check_change(
        self,
        change: FileChange,
        target: Path,
        conflicts: list[str],
        warnings: list[str],
    ) -> None:
        path = change.file_path
        if change.action == FileAction.CREATE:
            if target.exists():
                conflicts.append(f"{path}: file already exists")
            elif change.content is None:
                conflicts.append(f"{path}: create without content")
            return

        if change.action == FileAction.DELETE:
            if not target.exists():
                warnings.append(f"{path}: already absent")
            return

        if not target.is_file():
            conflicts.append(f"{path}: file to modify does not exist")
            return
        if change.content is None:
            conflicts.append(f"{path}: modify without content")
            return
        current = target.read_text(encoding="utf-8")
        if change.original_content is not None and change.original_content != current:
            conflicts.append(f"{path}: file changed on disk since it was read")
            return
        diff_text = generate_unified_diff(path, current, change.content)
        if not diff_text:
            warnings.append(f"{path}: change leaves the file unchanged")
            return
        if self.check_with_git:
            try:
                is_valid, error = validate_diff_with_git(diff_text, {path: current})
            except (OSError, subprocess.SubprocessError) as e:
                warnings.append(f"{path}: diff not checked with git ({e})")
                return
            if not is_valid:
                conflicts.append(f"{path}: diff does not apply: {error.strip()}")
