"""Tests for the completion parsers."""

import json

import pytest

from agentic_pipeline.models import FileAction
from agentic_pipeline.pipeline.exceptions import CorrectionError, ResponseParseError
from agentic_pipeline.pipeline.parsing import (
    extract_json,
    parse_correction_response,
    parse_documentation_sections,
    parse_implementation_response,
    parse_plan_response,
)


class TestExtractJson:
    def test_plain_object(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_fenced_with_prose_around(self):
        raw = "```json\n{\"steps\": [\"one\"]}\n```"
        assert extract_json(raw) == {"steps": ["one"]}

    def test_object_after_prose(self):
        assert extract_json('Here you go: {"a": [1, 2]} thanks') == {"a": [1, 2]}

    def test_trailing_commas_tolerated(self):
        assert extract_json('{"a": [1, 2,],}') == {"a": [1, 2]}

    def test_typographic_quotes_normalised(self):
        assert extract_json("{“a”: 1}") == {"a": 1}

    def test_no_json(self):
        assert extract_json("just words") is None
        assert extract_json("") is None


class TestParsePlanResponse:
    def test_json_plan(self):
        raw = json.dumps({
            "steps": [{"title": "Add helper", "files": ["src/a.py"]}, "Wire it up"],
            "requirements": "Keep API",
            "risks": ["Slow import"],
        })
        plan = parse_plan_response(raw)
        assert [s.title for s in plan.steps] == ["Add helper", "Wire it up"]
        assert plan.steps[0].files == ["src/a.py"]
        assert plan.requirements == ["Keep API"]
        assert plan.risks == ["Slow import"]
        assert plan.timeline == "TBD"

    def test_bare_list_of_steps(self):
        plan = parse_plan_response('["First", "Second"]')
        assert [s.title for s in plan.steps] == ["First", "Second"]

    def test_numbered_lines_fallback(self):
        plan = parse_plan_response("Plan:\n1. Read the code\n2) Change it\n- Test it\n")
        assert [s.title for s in plan.steps] == ["Read the code", "Change it", "Test it"]

    def test_free_text_becomes_single_step(self):
        plan = parse_plan_response("Rewrite the module in one go.\nThen ship.")
        assert len(plan.steps) == 1
        assert plan.steps[0].title == "Rewrite the module in one go."
        assert "Then ship." in plan.steps[0].description

    def test_empty_raises(self):
        with pytest.raises(ResponseParseError, match="empty"):
            parse_plan_response("\n  ")


class TestParseImplementationResponse:
    def test_json_changes(self):
        raw = json.dumps({"changes": [
            {"file_path": "./src/a.py", "action": "CREATE", "content": "x = 1\n", "reason": "new"},
            {"path": "src/old.py", "action": "delete"},
        ]})
        changes = parse_implementation_response(raw)
        assert changes[0].file_path == "src/a.py"
        assert changes[0].action == FileAction.CREATE
        assert changes[0].reason == "new"
        assert changes[1].action == FileAction.DELETE
        assert changes[1].content is None

    def test_alternative_list_key(self):
        raw = json.dumps({"files": [{"file": "a.py", "content": "pass\n"}]})
        assert parse_implementation_response(raw)[0].action == FileAction.MODIFY

    def test_fenced_blocks(self):
        raw = "Changes below.\n\n### src/app.py\n```python\nprint('hi')\n```\n"
        changes = parse_implementation_response(raw)
        assert changes[0].file_path == "src/app.py"
        assert changes[0].content == "print('hi')\n"

    @pytest.mark.parametrize("path", ["../escape.py", "/etc/passwd", "src/../../x.py"])
    def test_unsafe_paths_rejected(self, path):
        raw = json.dumps({"changes": [{"file_path": path, "content": "x"}]})
        with pytest.raises(ResponseParseError, match="Unsafe"):
            parse_implementation_response(raw)

    def test_unknown_action_rejected(self):
        raw = json.dumps({"changes": [{"file_path": "a.py", "action": "rename", "content": "x"}]})
        with pytest.raises(ResponseParseError, match="Invalid file change"):
            parse_implementation_response(raw)

    def test_missing_content_rejected(self):
        raw = json.dumps({"changes": [{"file_path": "a.py", "action": "modify"}]})
        with pytest.raises(ResponseParseError, match="No content"):
            parse_implementation_response(raw)

    def test_nothing_recoverable(self):
        with pytest.raises(ResponseParseError, match="no file changes"):
            parse_implementation_response("I would change some files.")


class TestParseDocumentationSections:
    def test_headings_split_sections(self):
        sections = parse_documentation_sections("# Title\nBody\n## Sub\nMore\n")
        assert [(s.title, s.level, s.content) for s in sections] == [
            ("Title", 1, "Body"),
            ("Sub", 2, "More"),
        ]

    def test_headings_inside_code_fences_ignored(self):
        text = "# Usage\n```bash\n# not a heading\nrun\n```\n"
        sections = parse_documentation_sections(text)
        assert len(sections) == 1
        assert "# not a heading" in sections[0].content

    def test_no_headings(self):
        sections = parse_documentation_sections("Only prose.")
        assert [(s.title, s.content) for s in sections] == [("Overview", "Only prose.")]


class TestParseCorrectionResponse:
    def test_json_fixes(self):
        fixes = parse_correction_response(json.dumps({
            "fixes": [{"description": "Use JSON", "target": "plan", "detail": "No prose"}, "Be brief"]
        }))
        assert [f.description for f in fixes] == ["Use JSON", "Be brief"]
        assert fixes[0].target == "plan"
        assert fixes[1].target == "step"

    def test_list_fallback(self):
        fixes = parse_correction_response("Try this:\n- Return JSON\n- Quote paths\n")
        assert [f.description for f in fixes] == ["Return JSON", "Quote paths"]

    def test_no_fixes_raises(self):
        with pytest.raises(CorrectionError):
            parse_correction_response('{"fixes": []}')
