"""Unified diffs, line-level change records and code style detection."""

import difflib
import subprocess
import tempfile
from collections import Counter
from pathlib import Path

from agentic_pipeline.models import Change, ChangeType

GIT_TIMEOUT_SECONDS = 30


def generate_unified_diff(
    file_path: str,
    original_content: str,
    modified_content: str,
) -> str:
    """Generate a git-compatible unified diff.

    Args:
        file_path: Relative path from the workspace root (e.g. "src/app.tsx").
        original_content: File content before the change.
        modified_content: File content after the change.

    Returns:
        Unified diff string with a/ b/ prefixes. Empty string if no changes.
    """
    if original_content == modified_content:
        return ""

    diff_lines = difflib.unified_diff(
        original_content.splitlines(keepends=True),
        modified_content.splitlines(keepends=True),
        fromfile=f"a/{file_path}",
        tofile=f"b/{file_path}",
        lineterm="",
    )
    # keepends=True leaves the newline on content lines but not on headers
    return "\n".join(line.rstrip("\n") for line in diff_lines)


def _git(cwd: str, *args: str, stdin: bytes | None = None) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", *args],
        cwd=cwd,
        input=stdin,
        capture_output=True,
        timeout=GIT_TIMEOUT_SECONDS,
    )


def validate_diff_with_git(
    diff_text: str,
    original_files: dict[str, str],
) -> tuple[bool, str]:
    """Check that a diff applies cleanly with ``git apply --check`` in a scratch repo.

    Args:
        diff_text: The unified diff to check.
        original_files: Mapping of {relative_path: content} for files the diff touches.

    Returns:
        Tuple of (is_valid, error_message). error_message is empty on success.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        scratch = Path(tmpdir).resolve()
        for relative_path, content in original_files.items():
            target = (scratch / relative_path).resolve()
            if ".." in Path(relative_path).parts or not target.is_relative_to(scratch):
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")

        for args in (
            ("init", "-q"),
            ("-c", "user.email=pipeline@localhost", "-c", "user.name=pipeline",
             "add", "."),
            ("-c", "user.email=pipeline@localhost", "-c", "user.name=pipeline",
             "commit", "-q", "-m", "baseline"),
        ):
            setup = _git(tmpdir, *args)
            if setup.returncode != 0:
                return False, setup.stderr.decode("utf-8", errors="replace")

        diff_input = diff_text if diff_text.endswith("\n") else diff_text + "\n"
        result = _git(tmpdir, "apply", "--check", stdin=diff_input.encode("utf-8"))
        if result.returncode == 0:
            return True, ""
        return False, result.stderr.decode("utf-8", errors="replace")


def compute_line_changes(
    original_content: str,
    modified_content: str,
    reason: str = "",
) -> list[Change]:
    """Describe the edit from ``original_content`` to ``modified_content`` as Change records.

    Line numbers are 1-based and refer to the modified content, except for
    deletions, which refer to the original.
    """
    original_lines = original_content.splitlines()
    modified_lines = modified_content.splitlines()
    matcher = difflib.SequenceMatcher(a=original_lines, b=modified_lines, autojunk=False)

    changes: list[Change] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue
        if tag == "insert":
            change_type, start, end = ChangeType.ADDITION, j1 + 1, j2
        elif tag == "delete":
            change_type, start, end = ChangeType.DELETION, i1 + 1, i2
        else:
            change_type, start, end = ChangeType.MODIFICATION, j1 + 1, j2
        changes.append(Change(
            type=change_type,
            start_line=start,
            end_line=end,
            original_text="\n".join(original_lines[i1:i2]),
            new_text="\n".join(modified_lines[j1:j2]),
            reason=reason,
        ))
    return changes


def count_changed_lines(changes: list[Change]) -> int:
    total = 0
    for change in changes:
        removed = len(change.original_text.splitlines())
        added = len(change.new_text.splitlines())
        total += max(removed, added)
    return total


def detect_code_style(source_code: str) -> dict[str, str]:
    """Detect code style conventions from source code.

    Args:
        source_code: The source code to analyse.

    Returns:
        Dict with keys:
            "indent": e.g. "2 spaces", "4 spaces", "tabs"
            "quotes": "single" or "double"
            "line_endings": "lf" or "crlf"
    """
    style = {
        "indent": "4 spaces",
        "quotes": "double",
        "line_endings": "crlf" if "\r\n" in source_code else "lf",
    }
    if not source_code:
        return style

    widths: Counter[int] = Counter()
    tab_lines = 0
    for line in source_code.splitlines():
        if not line.strip():
            continue
        leading = line[: len(line) - len(line.lstrip(" \t"))]
        if leading.startswith("\t"):
            tab_lines += 1
        elif leading:
            widths[len(leading)] += 1

    if tab_lines and tab_lines >= sum(widths.values()):
        style["indent"] = "tabs"
    elif widths:
        # The smallest indent in use is the base unit
        style["indent"] = f"{min(widths)} spaces"

    if source_code.count("'") > source_code.count('"'):
        style["quotes"] = "single"
    return style
