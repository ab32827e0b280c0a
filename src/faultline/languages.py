from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class LanguageSpec:
    name: str
    extensions: tuple[str, ...]
    # tree-sitter node types that open a function-like scope.
    function_nodes: tuple[str, ...] = ()


LANGUAGES: tuple[LanguageSpec, ...] = (
    LanguageSpec("python", (".py",)),
    LanguageSpec(
        "javascript",
        (".js", ".jsx", ".mjs", ".cjs"),
        ("function_declaration", "function_expression", "arrow_function", "method_definition", "generator_function_declaration"),
    ),
    LanguageSpec(
        "typescript",
        (".ts", ".mts", ".cts"),
        ("function_declaration", "function_expression", "arrow_function", "method_definition", "generator_function_declaration"),
    ),
    LanguageSpec(
        "tsx",
        (".tsx",),
        ("function_declaration", "function_expression", "arrow_function", "method_definition"),
    ),
    LanguageSpec("go", (".go",), ("function_declaration", "method_declaration", "func_literal")),
    LanguageSpec("rust", (".rs",), ("function_item", "closure_expression")),
    LanguageSpec("java", (".java",), ("method_declaration", "constructor_declaration", "lambda_expression")),
    LanguageSpec("kotlin", (".kt", ".kts"), ("function_declaration", "lambda_literal")),
    LanguageSpec("ruby", (".rb",), ("method", "singleton_method")),
    LanguageSpec("php", (".php",), ("function_definition", "method_declaration")),
    LanguageSpec("c", (".c", ".h"), ("function_definition",)),
    LanguageSpec("cpp", (".cc", ".cpp", ".cxx", ".hpp", ".hh"), ("function_definition", "lambda_expression")),
)

_EXT_TO_LANG = {ext: spec for spec in LANGUAGES for ext in spec.extensions}


def detect_language(canonical_path: str) -> LanguageSpec | None:
    """
    Best-effort language detection based on the file extension.

    Returns None for unsupported extensions and for identifiers without one.
    """

    name = canonical_path.rsplit("/", 1)[-1]
    if "." not in name:
        return None
    return _EXT_TO_LANG.get("." + name.rsplit(".", 1)[-1].lower())
