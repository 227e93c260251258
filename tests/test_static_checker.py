"""Tests for StaticChecker and the pattern rules it runs."""

import pytest

from agentic_pipeline.capabilities.repository import IndexedRepository
from agentic_pipeline.capabilities.rules import (
    PERFORMANCE_RULES,
    SECURITY_RULES,
    CheckRule,
    count_matches,
    find_rule_matches,
    language_of,
)
from agentic_pipeline.capabilities.static_checker import StaticChecker
from agentic_pipeline.models import (
    ErrorKind,
    FileAction,
    FileChange,
    FindingSeverity,
    WarningKind,
)


def change(file_path, content, action=FileAction.MODIFY, original=None) -> FileChange:
    return FileChange(
        file_path=file_path, action=action, content=content, original_content=original
    )


@pytest.fixture
def repository(tmp_path) -> IndexedRepository:
    (tmp_path / "src" / "pkg").mkdir(parents=True)
    (tmp_path / "src" / "pkg" / "__init__.py").write_text("", encoding="utf-8")
    (tmp_path / "src" / "pkg" / "util.py").write_text("def helper():\n    return 1\n")
    (tmp_path / "src" / "pkg" / "core.py").write_text(
        "from .util import helper\n\n\ndef run():\n    return helper()\n"
    )
    (tmp_path / "web").mkdir()
    (tmp_path / "web" / "app.js").write_text("export const a = 1;\n")
    return IndexedRepository.from_path(str(tmp_path))


@pytest.fixture
def checker(repository) -> StaticChecker:
    return StaticChecker(repository)


# ---------------------------------------------------------------------------
# Syntax
# ---------------------------------------------------------------------------

class TestCheckSyntax:
    def test_python_error_located(self):
        errors = StaticChecker().check_syntax([change("src/a.py", "def f(:\n    pass\n")])
        assert len(errors) == 1
        assert errors[0].kind == ErrorKind.SYNTAX
        assert errors[0].file == "src/a.py"
        assert errors[0].line == 1

    def test_javascript_error(self):
        errors = StaticChecker().check_syntax([change("web/a.js", "function (\n")])
        assert errors
        assert all(e.kind == ErrorKind.SYNTAX for e in errors)

    def test_clean_unsupported_and_deleted_files_pass(self):
        errors = StaticChecker().check_syntax([
            change("src/a.py", "x = 1\n"),
            change("README.md", "def f(:\n"),
            FileChange(file_path="src/old.py", action=FileAction.DELETE),
        ])
        assert errors == []


# ---------------------------------------------------------------------------
# Semantics
# ---------------------------------------------------------------------------

class TestCheckSemantics:
    def test_unused_import_is_warning(self):
        errors = StaticChecker().check_semantics([change("src/a.py", "import os\n\nx = 1\n")])
        assert len(errors) == 1
        assert errors[0].rule_id == "unused-import"
        assert errors[0].severity == FindingSeverity.WARNING
        assert errors[0].message == "Import 'os' from 'os' is never used"

    def test_barrel_files_may_reexport(self):
        errors = StaticChecker().check_semantics(
            [change("src/pkg/__init__.py", "from .core import run\n")]
        )
        assert errors == []

    def test_unresolved_relative_import(self, checker):
        errors = checker.check_semantics([
            change("src/pkg/core.py", "from .missing import x\n\nprint(x)\n")
        ])
        assert [e.rule_id for e in errors] == ["unresolved-import"]
        assert errors[0].message == "Cannot resolve import '.missing'"

    def test_import_of_file_created_in_same_change(self, checker):
        errors = checker.check_semantics([
            change("src/pkg/core.py", "from .extra import y\n\nprint(y)\n"),
            change("src/pkg/extra.py", "y = 2\n", action=FileAction.CREATE),
        ])
        assert errors == []

    def test_asset_imports_ignored(self, checker):
        errors = checker.check_semantics([change("web/app.js", "import './styles.css';\n")])
        assert errors == []

    def test_without_repository_relative_imports_unchecked(self):
        errors = StaticChecker().check_semantics([
            change("src/pkg/core.py", "from .missing import x\n\nprint(x)\n")
        ])
        assert errors == []

    def test_deleted_file_still_imported(self, checker):
        errors = checker.check_semantics([
            FileChange(file_path="src/pkg/util.py", action=FileAction.DELETE)
        ])
        assert len(errors) == 1
        assert errors[0].rule_id == "dangling-import"
        assert errors[0].message == "Deleted file is still imported by: src/pkg/core.py"

    def test_deleting_importer_too_is_fine(self, checker):
        errors = checker.check_semantics([
            FileChange(file_path="src/pkg/util.py", action=FileAction.DELETE),
            FileChange(file_path="src/pkg/core.py", action=FileAction.DELETE),
        ])
        assert errors == []


# ---------------------------------------------------------------------------
# Style
# ---------------------------------------------------------------------------

class TestCheckStyle:
    def test_long_lines_and_trailing_whitespace(self):
        content = "x = 1  \n" + "y = '" + "a" * 130 + "'\n"
        warnings = StaticChecker().check_style([change("src/a.py", content)])
        by_rule = {w.rule_id: w for w in warnings}
        assert by_rule["line-length"].line == 2
        assert by_rule["line-length"].kind == WarningKind.STYLE
        assert by_rule["trailing-whitespace"].line == 1

    def test_custom_line_length(self):
        warnings = StaticChecker(max_line_length=5).check_style([change("src/a.py", "value = 1\n")])
        assert [w.rule_id for w in warnings] == ["line-length"]

    def test_convention_drift_in_javascript(self):
        original = "function f() {\n  return 'a';\n}\n"
        updated = 'function f() {\n    return "a";\n}\n'
        warnings = StaticChecker().check_style([change("web/a.js", updated, original=original)])
        drift = {w.rule_id: w for w in warnings if w.kind == WarningKind.CONVENTION}
        assert set(drift) == {"convention-indent", "convention-quotes"}
        assert drift["convention-indent"].message == "Indent changed from 2 spaces to 4 spaces"

    def test_python_quotes_not_checked(self):
        original = "def f():\n    return 'a'\n"
        updated = 'def f():\n    return "a"\n'
        warnings = StaticChecker().check_style([change("src/a.py", updated, original=original)])
        assert warnings == []

    def test_high_complexity(self):
        body = "".join(f"    if x == {i}:\n        return {i}\n" for i in range(30))
        warnings = StaticChecker().check_style([change("src/a.py", "def f(x):\n" + body)])
        assert [w.rule_id for w in warnings] == ["complexity"]
        assert warnings[0].kind == WarningKind.MAINTAINABILITY


# ---------------------------------------------------------------------------
# Performance and security
# ---------------------------------------------------------------------------

class TestCheckPerformance:
    def test_python_rules(self):
        content = "import time\n\nfor i in range(len(items)):\n    time.sleep(1)\n"
        warnings = StaticChecker().check_performance([change("src/a.py", content)])
        assert {w.rule_id for w in warnings} == {"perf-range-len", "perf-sleep"}
        range_len = next(w for w in warnings if w.rule_id == "perf-range-len")
        assert (range_len.line, range_len.column) == (3, 1)

    def test_rules_scoped_by_language(self):
        warnings = StaticChecker().check_performance(
            [change("src/a.py", "data = readFileSync('x')\n")]
        )
        assert warnings == []

    def test_javascript_rules_count_occurrences(self):
        content = "const a = fs.readFileSync(p);\nconst b = fs.readFileSync(q);\n"
        warnings = StaticChecker().check_performance([change("web/a.js", content)])
        assert len(warnings) == 1
        assert warnings[0].message == "Blocking filesystem call (2 occurrence(s))"


class TestCheckSecurity:
    def test_eval_is_error(self):
        errors = StaticChecker().check_security([change("src/a.py", "value = eval(text)\n")])
        assert [e.rule_id for e in errors] == ["sec-eval"]
        assert errors[0].kind == ErrorKind.SECURITY
        assert errors[0].severity == FindingSeverity.ERROR

    def test_method_named_eval_ignored(self):
        errors = StaticChecker().check_security([change("src/a.py", "model.eval()\n")])
        assert errors == []

    def test_inner_html_is_warning(self):
        errors = StaticChecker().check_security([change("web/a.js", "el.innerHTML = html;\n")])
        assert errors[0].rule_id == "sec-inner-html"
        assert errors[0].severity == FindingSeverity.WARNING

    def test_hardcoded_secret(self):
        errors = StaticChecker().check_security(
            [change("src/settings.py", 'API_KEY = "sk-abcdef123456"\n')]
        )
        assert [e.rule_id for e in errors] == ["sec-hardcoded-secret"]

    def test_custom_rules_replace_defaults(self):
        errors = StaticChecker(security_rules=[]).check_security(
            [change("src/a.py", "value = eval(text)\n")]
        )
        assert errors == []


class TestRules:
    def test_rule_ids_unique(self):
        ids = [rule.rule_id for rule in SECURITY_RULES + PERFORMANCE_RULES]
        assert len(ids) == len(set(ids))

    def test_find_rule_matches_positions(self):
        rule = CheckRule(
            rule_id="no-print",
            category="performance",
            severity=FindingSeverity.INFO,
            description="Debug print",
            pattern=r"\bprint\(",
        )
        assert find_rule_matches(rule, "a\n  print(1)\nprint(2)\n") == [(2, 3), (3, 1)]
        assert rule.applies_to("anything")

    def test_count_matches_respects_language(self):
        content = "subprocess.run(cmd, shell=True)\n"
        assert count_matches(SECURITY_RULES, content, "tool.py") == 1
        assert count_matches(SECURITY_RULES, content, "tool.js") == 0

    def test_language_of(self):
        assert language_of("src/a.tsx") == "tsx"
        assert language_of("notes.md") == "text"
