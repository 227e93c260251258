"""Parsers that turn completion text into typed step data."""

import json
import re
from pathlib import PurePosixPath
from typing import Any

from pydantic import ValidationError

from agentic_pipeline.models import (
    CorrectionFix,
    DocumentSection,
    FileAction,
    FileChange,
    PlanStep,
    StructuredPlan,
)
from agentic_pipeline.pipeline.exceptions import CorrectionError, ResponseParseError

_LIST_ITEM_RE = re.compile(r"^\s*(?:\d+[.)]|[-*+])\s+(.+?)\s*$")
_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_FENCED_FILE_RE = re.compile(
    r"(?:^|\n)(?:#{1,6}\s*|File:\s*|\*\*)?`?(?P<path>[\w@./-]+\.\w+)`?\**:?\s*\n"
    r"```[\w+-]*\n(?P<body>.*?)```",
    re.DOTALL,
)
_CHANGE_LIST_KEYS = ("changes", "file_changes", "files")


def _strip_code_fence(payload: str) -> str:
    """Remove a Markdown code fence wrapping the whole payload."""
    if not payload.startswith("```"):
        return payload
    header_end = payload.find("\n")
    fence_end = payload.rfind("```")
    if header_end == -1 or fence_end <= header_end:
        return payload
    return payload[header_end + 1 : fence_end].strip()


def _normalise_json_string(payload: str) -> str:
    """Replace typographic quotes and invisible characters models like to emit."""
    translation = {
        0x201C: '"',
        0x201D: '"',
        0x00A0: " ",
        0xFEFF: "",
    }
    return payload.translate(str.maketrans(translation))


def _strip_trailing_commas(payload: str) -> str:
    return re.sub(r",(\s*[}\]])", r"\1", payload)


def extract_json(raw: str) -> Any | None:
    """Find the first JSON object or array in noisy completion text.

    Returns:
        The decoded value, or None when the text holds no JSON
    """
    text = _normalise_json_string(_strip_code_fence(raw.strip()))
    if not text:
        return None
    decoder = json.JSONDecoder()
    for candidate in (text, _strip_trailing_commas(text)):
        for index, char in enumerate(candidate):
            if char not in "{[":
                continue
            try:
                value, _ = decoder.raw_decode(candidate, index)
            except json.JSONDecodeError:
                continue
            if isinstance(value, (dict, list)) and value:
                return value
    return None


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(item) for item in value if str(item).strip()]


def parse_plan_response(raw: str) -> StructuredPlan:
    """Parse a planning completion into a StructuredPlan.

    Accepts the requested JSON shape; otherwise falls back to numbered or
    bulleted lines, and finally to the whole text as a single step.

    Raises:
        ResponseParseError: If the completion is empty
    """
    if not raw or not raw.strip():
        raise ResponseParseError("Planning response is empty")

    data = extract_json(raw)
    if isinstance(data, list):
        data = {"steps": data}
    if isinstance(data, dict) and data.get("steps"):
        steps = []
        for item in data["steps"]:
            if isinstance(item, str):
                steps.append(PlanStep(title=item))
            elif isinstance(item, dict):
                steps.append(PlanStep(
                    title=str(item.get("title") or item.get("name") or item.get("description", "")),
                    description=str(item.get("description", "")),
                    files=_as_str_list(item.get("files")),
                ))
        return StructuredPlan(
            steps=[s for s in steps if s.title],
            requirements=_as_str_list(data.get("requirements")),
            risks=_as_str_list(data.get("risks")),
            prerequisites=_as_str_list(data.get("prerequisites")),
            timeline=str(data.get("timeline") or "TBD"),
        )

    items = [m.group(1) for m in map(_LIST_ITEM_RE.match, raw.splitlines()) if m]
    if items:
        return StructuredPlan(steps=[PlanStep(title=item) for item in items])
    first_line = raw.strip().splitlines()[0]
    return StructuredPlan(steps=[PlanStep(title=first_line[:80], description=raw.strip())])


def _safe_relative_path(path: str) -> str:
    normalized = path.strip().replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    pure = PurePosixPath(normalized)
    if not normalized or pure.is_absolute() or ".." in pure.parts:
        raise ResponseParseError(f"Unsafe file path in response: {path!r}")
    return pure.as_posix()


def parse_implementation_response(raw: str) -> list[FileChange]:
    """Parse an implementation completion into file changes.

    Accepts the requested JSON shape or fenced code blocks headed by a file path.

    Raises:
        ResponseParseError: If no change can be recovered or a path is unsafe
    """
    data = extract_json(raw or "")
    items: list[Any] = []
    if isinstance(data, list):
        items = data
    elif isinstance(data, dict):
        for key in _CHANGE_LIST_KEYS:
            if isinstance(data.get(key), list):
                items = data[key]
                break

    changes: list[FileChange] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        path = item.get("file_path") or item.get("path") or item.get("file")
        if not path:
            raise ResponseParseError("File change without a path")
        try:
            changes.append(FileChange(
                file_path=_safe_relative_path(str(path)),
                action=FileAction(str(item.get("action", "modify")).lower()),
                content=item.get("content"),
                reason=str(item.get("reason", "")),
            ))
        except (ValueError, ValidationError) as e:
            raise ResponseParseError(f"Invalid file change for {path}: {e}") from e

    if not changes:
        for match in _FENCED_FILE_RE.finditer(raw or ""):
            changes.append(FileChange(
                file_path=_safe_relative_path(match.group("path")),
                content=match.group("body"),
            ))

    if not changes:
        raise ResponseParseError("Implementation response contains no file changes")
    for change in changes:
        if change.action != FileAction.DELETE and change.content is None:
            raise ResponseParseError(f"No content for {change.action.value} of {change.file_path}")
    return changes


def parse_documentation_sections(text: str) -> list[DocumentSection]:
    """Split Markdown into sections at headings outside code fences."""
    sections: list[DocumentSection] = []
    preamble: list[str] = []
    body = preamble
    in_fence = False
    for line in text.splitlines():
        if line.lstrip().startswith("```"):
            in_fence = not in_fence
        heading = None if in_fence else _HEADING_RE.match(line)
        if heading:
            if sections:
                sections[-1].content = "\n".join(body).strip()
            sections.append(DocumentSection(title=heading.group(2), level=len(heading.group(1))))
            body = []
        else:
            body.append(line)
    if sections:
        sections[-1].content = "\n".join(body).strip()
    overview = "\n".join(preamble).strip()
    if overview:
        sections.insert(0, DocumentSection(title="Overview", level=1, content=overview))
    return sections


def parse_correction_response(raw: str) -> list[CorrectionFix]:
    """Parse a correction completion into fixes.

    Raises:
        CorrectionError: If the completion proposes no fix
    """
    data = extract_json(raw or "")
    items: list[Any] = []
    if isinstance(data, dict):
        items = data.get("fixes") or data.get("corrections") or []
    elif isinstance(data, list):
        items = data

    fixes = []
    for item in items:
        if isinstance(item, str) and item.strip():
            fixes.append(CorrectionFix(description=item.strip()))
        elif isinstance(item, dict) and item.get("description"):
            fixes.append(CorrectionFix(
                description=str(item["description"]),
                target=str(item.get("target", "step")),
                detail=str(item.get("detail", "")),
            ))
    if not fixes and data is None:
        fixes = [
            CorrectionFix(description=m.group(1))
            for m in map(_LIST_ITEM_RE.match, (raw or "").splitlines())
            if m
        ]
    if not fixes:
        raise CorrectionError("Correction response proposes no fixes")
    return fixes
