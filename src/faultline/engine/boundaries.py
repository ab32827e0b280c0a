from __future__ import annotations

import ast
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from faultline.engine import tree_sitter
from faultline.languages import LanguageSpec, detect_language

logger = logging.getLogger(__name__)

ANONYMOUS = "<anonymous>"


@dataclass(frozen=True, slots=True)
class FunctionBoundary:
    name: str  # dotted with enclosing scopes, e.g. "Service.handle"
    start_line: int  # 1-based
    end_line: int  # 1-based, inclusive

    def contains(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line


def detect_function_boundaries(canonical_path: str, source: str) -> tuple[FunctionBoundary, ...]:
    """
    Return function-like scopes found in `source`, sorted by start line.

    Python is parsed with `ast`; other languages need the tree-sitter extra.
    Unsupported languages, parse failures and a missing extra all yield ().
    """

    spec = detect_language(canonical_path)
    if spec is None:
        return ()
    if spec.name == "python":
        found = _python_boundaries(source)
    else:
        found = _tree_sitter_boundaries(spec, source)
    return tuple(sorted(found, key=lambda b: (b.start_line, -b.end_line, b.name)))


def innermost_boundary(boundaries: Sequence[FunctionBoundary], line: int) -> FunctionBoundary | None:
    best: FunctionBoundary | None = None
    for boundary in boundaries:
        if not boundary.contains(line):
            continue
        if best is None or (boundary.end_line - boundary.start_line) < (best.end_line - best.start_line):
            best = boundary
    return best


class _PythonScopeVisitor(ast.NodeVisitor):
    def __init__(self) -> None:
        self.scope: list[str] = []
        self.found: list[FunctionBoundary] = []

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self.scope.append(node.name)
        self.generic_visit(node)
        self.scope.pop()

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._visit_function(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._visit_function(node)

    def _visit_function(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> None:
        self.scope.append(node.name)
        start = min([node.lineno, *(d.lineno for d in node.decorator_list)])
        end = node.end_lineno or node.lineno
        self.found.append(FunctionBoundary(name=".".join(self.scope), start_line=start, end_line=end))
        self.generic_visit(node)
        self.scope.pop()


def _python_boundaries(source: str) -> list[FunctionBoundary]:
    try:
        tree = ast.parse(source)
    except (SyntaxError, ValueError, RecursionError) as exc:
        logger.debug("Python source could not be parsed for function boundaries: %s", exc)
        return []
    visitor = _PythonScopeVisitor()
    visitor.visit(tree)
    return visitor.found


def _tree_sitter_boundaries(spec: LanguageSpec, source: str) -> list[FunctionBoundary]:
    if not spec.function_nodes:
        return []
    tree = tree_sitter.parse(spec.name, source)
    if tree is None:
        return []

    found: list[FunctionBoundary] = []
    function_nodes = set(spec.function_nodes)

    def walk(node: Any, scope: tuple[str, ...]) -> None:
        if node.type in function_nodes:
            name = _node_name(node)
            scope = (*scope, name)
            found.append(
                FunctionBoundary(
                    name=".".join(scope),
                    start_line=int(node.start_point[0]) + 1,
                    end_line=int(node.end_point[0]) + 1,
                )
            )
        for child in node.children:
            walk(child, scope)

    walk(tree.root_node, ())
    return found


def _node_name(node: Any) -> str:
    name_node = node.child_by_field_name("name")
    if name_node is None:
        # `const handler = () => {}`: take the declarator's name.
        parent = node.parent
        if parent is not None and parent.type == "variable_declarator":
            name_node = parent.child_by_field_name("name")
    if name_node is None or name_node.text is None:
        return ANONYMOUS
    return name_node.text.decode("utf-8", errors="replace")
