"""Source analysis for JavaScript/TypeScript (tree-sitter) and Python (ast)."""

import ast
from collections.abc import Iterator
from pathlib import Path

import tree_sitter_javascript as tsjs
import tree_sitter_typescript as tsts
from pydantic import BaseModel, ConfigDict, Field
from tree_sitter import Language, Node, Parser, Query, QueryCursor, Tree

from agentic_pipeline.models import SymbolInfo

# Initialize language objects
JS_LANGUAGE = Language(tsjs.language())
TS_LANGUAGE = Language(tsts.language_typescript())
TSX_LANGUAGE = Language(tsts.language_tsx())

LANGUAGE_BY_EXTENSION = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".py": "python",
}
TREE_SITTER_LANGUAGES = {
    "javascript": JS_LANGUAGE,
    "typescript": TS_LANGUAGE,
    "tsx": TSX_LANGUAGE,
}

MAX_SYNTAX_ISSUES = 20

_DECISION_NODE_TYPES = frozenset({
    "if_statement",
    "for_statement",
    "for_in_statement",
    "while_statement",
    "do_statement",
    "switch_case",
    "catch_clause",
    "ternary_expression",
})
_LOGICAL_OPERATORS = frozenset({"&&", "||", "??"})
_REFERENCE_NODE_TYPES = frozenset({
    "identifier",
    "type_identifier",
    "shorthand_property_identifier",
})
_PY_DECISION_NODES = (
    ast.If,
    ast.For,
    ast.AsyncFor,
    ast.While,
    ast.ExceptHandler,
    ast.IfExp,
    ast.match_case,
)


class ImportBinding(BaseModel):
    """A local name bound by an import statement."""

    model_config = ConfigDict(frozen=False)

    name: str
    source: str
    line: int


class SyntaxIssue(BaseModel):
    model_config = ConfigDict(frozen=False)

    line: int
    column: int
    message: str


class SourceAnalysis(BaseModel):
    """Everything the indexer and checker need to know about one source text."""

    model_config = ConfigDict(frozen=False)

    language: str
    symbols: list[SymbolInfo] = Field(default_factory=list)
    imports: list[str] = Field(default_factory=list)
    import_bindings: list[ImportBinding] = Field(default_factory=list)
    referenced_names: set[str] = Field(default_factory=set)
    exported_names: list[str] = Field(default_factory=list)
    complexity: float = 1.0
    syntax_errors: list[SyntaxIssue] = Field(default_factory=list)

    @property
    def structure(self) -> dict[str, int]:
        counts = {"functions": 0, "classes": 0, "methods": 0, "imports": len(self.imports)}
        for symbol in self.symbols:
            if symbol.type == "class":
                counts["classes"] += 1
            elif symbol.type == "method":
                counts["methods"] += 1
            else:
                counts["functions"] += 1
        return counts


def get_language_for_file(file_path: str) -> str:
    """Map file extension to a language name.

    Args:
        file_path: Path to the file

    Returns:
        Language name ("javascript", "typescript", "tsx", "python")

    Raises:
        ValueError: If file extension is not supported
    """
    ext = Path(file_path).suffix
    if ext not in LANGUAGE_BY_EXTENSION:
        raise ValueError(f"Unsupported file extension: {ext}")
    return LANGUAGE_BY_EXTENSION[ext]


def is_supported(file_path: str) -> bool:
    return Path(file_path).suffix in LANGUAGE_BY_EXTENSION


def get_parser(language: str) -> Parser:
    """Return a tree-sitter Parser for a JavaScript-family language.

    Raises:
        ValueError: If the language has no tree-sitter grammar here
    """
    if language not in TREE_SITTER_LANGUAGES:
        raise ValueError(f"Unsupported language: {language}")
    parser = Parser()
    parser.language = TREE_SITTER_LANGUAGES[language]
    return parser


def parse_source(source: str, language: str) -> Tree:
    return get_parser(language).parse(source.encode("utf-8"))


def analyze_source(source: str, file_path: str) -> SourceAnalysis:
    """Analyze source text according to the language implied by ``file_path``.

    Args:
        source: Source code text
        file_path: Path used for language detection and symbol attribution

    Returns:
        SourceAnalysis with symbols, imports, references, complexity and syntax errors

    Raises:
        ValueError: If file extension is not supported
    """
    language = get_language_for_file(file_path)
    if language == "python":
        return _analyze_python(source, file_path)
    return _analyze_tree_sitter(source, language, file_path)


def _walk(root: Node) -> Iterator[Node]:
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def _text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def _matches(language: Language, query_src: str, root: Node) -> list[dict[str, list[Node]]]:
    cursor = QueryCursor(Query(language, query_src))
    return [captures for _, captures in cursor.matches(root)]


def _symbol(name_node: Node, body_node: Node, kind: str, file_path: str) -> SymbolInfo:
    return SymbolInfo(
        name=_text(name_node),
        type=kind,
        file_path=file_path,
        start_line=body_node.start_point[0] + 1,
        end_line=body_node.end_point[0] + 1,
        source_code=_text(body_node),
    )


def _analyze_tree_sitter(source: str, language_name: str, file_path: str) -> SourceAnalysis:
    language = TREE_SITTER_LANGUAGES[language_name]
    tree = parse_source(source, language_name)
    root = tree.root_node

    # JavaScript names classes with 'identifier', TypeScript with 'type_identifier'
    class_name = "identifier" if language_name == "javascript" else "type_identifier"
    symbol_queries = [
        ("(function_declaration name: (identifier) @name) @body", "function"),
        ("(variable_declarator name: (identifier) @name value: (arrow_function)) @body",
         "arrow_function"),
        (f"(class_declaration name: ({class_name}) @name) @body", "class"),
        ("(method_definition name: (property_identifier) @name) @body", "method"),
    ]
    symbols: list[SymbolInfo] = []
    for query_src, kind in symbol_queries:
        for captures in _matches(language, query_src, root):
            if "name" in captures and "body" in captures:
                symbols.append(_symbol(captures["name"][0], captures["body"][0], kind, file_path))

    imports = [
        _text(captures["source"][0]).strip("'\"`")
        for captures in _matches(
            language, "(import_statement source: (string) @source)", root
        )
        if "source" in captures
    ]
    for captures in _matches(
        language,
        "(call_expression function: (identifier) @fn arguments: (arguments (string) @source))",
        root,
    ):
        if _text(captures["fn"][0]) == "require":
            imports.append(_text(captures["source"][0]).strip("'\"`"))

    bindings: list[ImportBinding] = []
    referenced: set[str] = set()
    exported: list[str] = []
    decision_points = 0
    syntax_errors: list[SyntaxIssue] = []

    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "import_statement":
            bindings.extend(_import_bindings(node))
            continue
        if node.type == "ERROR" or node.is_missing:
            if len(syntax_errors) < MAX_SYNTAX_ISSUES:
                message = (
                    f"Missing {node.type}" if node.is_missing else "Unexpected syntax"
                )
                syntax_errors.append(SyntaxIssue(
                    line=node.start_point[0] + 1,
                    column=node.start_point[1] + 1,
                    message=message,
                ))
            if node.type == "ERROR":
                continue
        if node.type == "export_statement":
            exported.extend(_exported_names(node))
        if node.type in _REFERENCE_NODE_TYPES:
            referenced.add(_text(node))
        elif node.type in _DECISION_NODE_TYPES:
            decision_points += 1
        elif node.type == "binary_expression":
            operator = node.child_by_field_name("operator")
            if operator is not None and operator.type in _LOGICAL_OPERATORS:
                decision_points += 1
        stack.extend(reversed(node.children))

    return SourceAnalysis(
        language=language_name,
        symbols=symbols,
        imports=imports,
        import_bindings=bindings,
        referenced_names=referenced,
        exported_names=exported,
        complexity=float(1 + decision_points),
        syntax_errors=syntax_errors,
    )


def _import_bindings(statement: Node) -> list[ImportBinding]:
    source = _text(statement.child_by_field_name("source")).strip("'\"`")
    line = statement.start_point[0] + 1
    names: list[str] = []
    for child in statement.children:
        if child.type != "import_clause":
            continue
        for part in child.children:
            if part.type == "identifier":
                names.append(_text(part))
            elif part.type == "namespace_import":
                names.extend(_text(n) for n in part.children if n.type == "identifier")
            elif part.type == "named_imports":
                for spec in part.children:
                    if spec.type != "import_specifier":
                        continue
                    local = spec.child_by_field_name("alias") or spec.child_by_field_name("name")
                    names.append(_text(local))
    return [ImportBinding(name=name, source=source, line=line) for name in names if name]


def _exported_names(statement: Node) -> list[str]:
    declaration = statement.child_by_field_name("declaration")
    if declaration is not None:
        name = declaration.child_by_field_name("name")
        if name is not None:
            return [_text(name)]
        # export const a = ..., b = ...
        return [
            _text(child.child_by_field_name("name"))
            for child in declaration.children
            if child.type == "variable_declarator"
        ]
    names = []
    for node in _walk(statement):
        if node.type == "export_specifier":
            exported = node.child_by_field_name("alias") or node.child_by_field_name("name")
            names.append(_text(exported))
    return names


def _analyze_python(source: str, file_path: str) -> SourceAnalysis:
    try:
        module = ast.parse(source, filename=file_path)
    except SyntaxError as exc:
        return SourceAnalysis(
            language="python",
            syntax_errors=[SyntaxIssue(
                line=exc.lineno or 1,
                column=exc.offset or 1,
                message=exc.msg,
            )],
        )

    symbols: list[SymbolInfo] = []
    exported: list[str] = []
    for node in module.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            kind = "class" if isinstance(node, ast.ClassDef) else "function"
            symbols.append(_py_symbol(node, kind, source, file_path))
            if not node.name.startswith("_"):
                exported.append(node.name)
            if isinstance(node, ast.ClassDef):
                symbols.extend(
                    _py_symbol(item, "method", source, file_path)
                    for item in node.body
                    if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef))
                )

    imports: list[str] = []
    bindings: list[ImportBinding] = []
    referenced: set[str] = set()
    decision_points = 0
    for node in ast.walk(module):
        if isinstance(node, ast.Import):
            for alias in node.names:
                imports.append(alias.name)
                bindings.append(ImportBinding(
                    name=alias.asname or alias.name.split(".")[0],
                    source=alias.name,
                    line=node.lineno,
                ))
        elif isinstance(node, ast.ImportFrom):
            specifier = "." * node.level + (node.module or "")
            imports.append(specifier)
            if node.module == "__future__":
                continue
            bindings.extend(
                ImportBinding(name=alias.asname or alias.name, source=specifier, line=node.lineno)
                for alias in node.names
                if alias.name != "*"
            )
        elif isinstance(node, ast.Name):
            referenced.add(node.id)
        elif isinstance(node, _PY_DECISION_NODES):
            decision_points += 1
        elif isinstance(node, ast.BoolOp):
            decision_points += len(node.values) - 1
        elif isinstance(node, ast.comprehension):
            decision_points += 1 + len(node.ifs)
        elif isinstance(node, ast.Assign):
            referenced.update(_dunder_all_names(node))

    return SourceAnalysis(
        language="python",
        symbols=symbols,
        imports=imports,
        import_bindings=bindings,
        referenced_names=referenced,
        exported_names=exported,
        complexity=float(1 + decision_points),
    )


def _py_symbol(node: ast.AST, kind: str, source: str, file_path: str) -> SymbolInfo:
    return SymbolInfo(
        name=node.name,  # type: ignore[attr-defined]
        type=kind,
        file_path=file_path,
        start_line=node.lineno,  # type: ignore[attr-defined]
        end_line=node.end_lineno or node.lineno,  # type: ignore[attr-defined]
        source_code=ast.get_source_segment(source, node) or "",
    )


def _dunder_all_names(node: ast.Assign) -> list[str]:
    if not any(isinstance(t, ast.Name) and t.id == "__all__" for t in node.targets):
        return []
    if not isinstance(node.value, (ast.List, ast.Tuple)):
        return []
    return [
        elt.value
        for elt in node.value.elts
        if isinstance(elt, ast.Constant) and isinstance(elt.value, str)
    ]
