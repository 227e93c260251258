"""
Unit tests for the source analysis module.

Covers tree-sitter analysis of JavaScript/TypeScript and ast analysis of Python.
"""

import pytest

from agentic_pipeline.capabilities.ast_parser import (
    analyze_source,
    get_language_for_file,
    get_parser,
    is_supported,
    parse_source,
)

JS_SOURCE = """\
import React from 'react';
import { readFile as rf, join } from './fs';
const lodash = require('lodash');

export function greet(name) {
  if (name && name.length > 0) {
    return `Hello ${name}`;
  }
  return rf(join('a', 'b'));
}

const add = (a, b) => a + b;

class Greeter {
  greet() {
    return greet('world');
  }
}

export { add, Greeter as DefaultGreeter };
"""

TS_SOURCE = """\
import type { Config } from './config';

export class Service {
  run(config: Config): number {
    return config.retries > 0 ? 1 : 0;
  }
}
"""

PY_SOURCE = """\
from __future__ import annotations
import os
import numpy as np
from .models import Task, Step as PlanStep

__all__ = ["Runner"]


def helper(value):
    if value and os.path.exists(value):
        return [v for v in value if v]
    return None


def _private():
    return np.zeros(1)


class Runner:
    def run(self):
        return Task()

    async def stop(self):
        pass
"""


class TestGetLanguageForFile:
    """Test language detection from file extensions."""

    @pytest.mark.parametrize("file_path, language", [
        ("sample.js", "javascript"),
        ("sample.jsx", "javascript"),
        ("sample.mjs", "javascript"),
        ("sample.ts", "typescript"),
        ("sample.tsx", "tsx"),
        ("pkg/module.py", "python"),
    ])
    def test_known_extensions(self, file_path, language):
        assert get_language_for_file(file_path) == language

    def test_unsupported_extension(self):
        with pytest.raises(ValueError, match="Unsupported file extension"):
            get_language_for_file("README.md")

    def test_is_supported(self):
        assert is_supported("src/app.ts")
        assert not is_supported("styles.css")


class TestParser:
    def test_parse_javascript(self):
        tree = parse_source("const a = 1;", "javascript")
        assert tree.root_node.type == "program"
        assert not tree.root_node.has_error

    def test_python_has_no_tree_sitter_parser(self):
        with pytest.raises(ValueError, match="Unsupported language"):
            get_parser("python")


class TestJavaScriptAnalysis:
    """Symbols, imports and references from tree-sitter."""

    @pytest.fixture
    def analysis(self):
        return analyze_source(JS_SOURCE, "src/greet.js")

    def test_symbols(self, analysis):
        kinds = {(s.name, s.type) for s in analysis.symbols}
        assert ("greet", "function") in kinds
        assert ("add", "arrow_function") in kinds
        assert ("Greeter", "class") in kinds
        assert ("greet", "method") in kinds

    def test_symbol_lines_and_source(self, analysis):
        greet = next(s for s in analysis.symbols if s.type == "function")
        assert greet.start_line == 5
        assert greet.end_line == 10
        assert greet.source_code.startswith("function greet(name)")
        assert greet.file_path == "src/greet.js"

    def test_imports_include_require(self, analysis):
        assert analysis.imports == ["react", "./fs", "lodash"]

    def test_import_bindings_use_local_alias(self, analysis):
        names = {b.name: b.source for b in analysis.import_bindings}
        assert names == {"React": "react", "rf": "./fs", "join": "./fs"}

    def test_exported_names(self, analysis):
        assert analysis.exported_names == ["greet", "add", "DefaultGreeter"]

    def test_referenced_names(self, analysis):
        assert {"rf", "join", "greet"} <= analysis.referenced_names

    def test_complexity_counts_branches_and_logical_operators(self, analysis):
        # if + && on top of the base of one
        assert analysis.complexity == 3.0

    def test_structure(self, analysis):
        assert analysis.structure == {"functions": 2, "classes": 1, "methods": 1, "imports": 3}

    def test_no_syntax_errors(self, analysis):
        assert analysis.syntax_errors == []

    def test_syntax_errors_reported(self):
        analysis = analyze_source("function broken( {\n  return ;\n", "broken.js")
        assert analysis.syntax_errors
        assert analysis.syntax_errors[0].line >= 1


class TestTypeScriptAnalysis:
    def test_class_and_method(self):
        analysis = analyze_source(TS_SOURCE, "src/service.ts")
        kinds = {(s.name, s.type) for s in analysis.symbols}
        assert kinds == {("Service", "class"), ("run", "method")}
        assert analysis.exported_names == ["Service"]
        assert analysis.imports == ["./config"]

    def test_ternary_counts_toward_complexity(self):
        analysis = analyze_source(TS_SOURCE, "src/service.ts")
        assert analysis.complexity == 2.0

    def test_tsx_component(self):
        source = "export const App = () => <div>Hello</div>;\n"
        analysis = analyze_source(source, "src/App.tsx")
        assert [(s.name, s.type) for s in analysis.symbols] == [("App", "arrow_function")]
        assert analysis.language == "tsx"


class TestPythonAnalysis:
    """Python sources are analysed with the ast module."""

    @pytest.fixture
    def analysis(self):
        return analyze_source(PY_SOURCE, "pkg/runner.py")

    def test_symbols_include_methods(self, analysis):
        kinds = [(s.name, s.type) for s in analysis.symbols]
        assert kinds == [
            ("helper", "function"),
            ("_private", "function"),
            ("Runner", "class"),
            ("run", "method"),
            ("stop", "method"),
        ]

    def test_symbol_source_segment(self, analysis):
        helper = analysis.symbols[0]
        assert helper.start_line == 9
        assert helper.source_code.startswith("def helper(value):")

    def test_imports(self, analysis):
        assert analysis.imports == ["__future__", "os", "numpy", ".models"]

    def test_bindings_skip_future_imports(self, analysis):
        names = {b.name: b.source for b in analysis.import_bindings}
        assert names == {"os": "os", "np": "numpy", "Task": ".models", "PlanStep": ".models"}

    def test_exports_skip_private_names(self, analysis):
        assert analysis.exported_names == ["helper", "Runner"]

    def test_dunder_all_counts_as_reference(self, analysis):
        assert "Runner" in analysis.referenced_names
        assert "os" in analysis.referenced_names

    def test_complexity(self, analysis):
        # if, the `and`, the comprehension and its filter
        assert analysis.complexity == 5.0

    def test_syntax_error(self):
        analysis = analyze_source("def broken(:\n    pass\n", "broken.py")
        assert analysis.symbols == []
        assert len(analysis.syntax_errors) == 1
        assert analysis.syntax_errors[0].line == 1
