from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, cast

logger = logging.getLogger(__name__)

ParserFactory = Callable[[str], Any]

_factory: ParserFactory | None

try:  # pragma: no cover
    from tree_sitter_language_pack import get_parser as _pack_get_parser
except (ImportError, OSError):  # pragma: no cover
    _factory = None
else:  # pragma: no cover (depends on installed grammars)
    _factory = cast(ParserFactory, _pack_get_parser)

# Module attribute so tests can swap in a fake factory or None.
get_parser: ParserFactory | None = _factory


class GrammarUnavailable(RuntimeError):
    """Raised when no tree-sitter grammar can be loaded for a language."""


# Parser objects must not cross threads; each thread keeps its own cache.
_local = threading.local()


def _thread_cache() -> dict[str, Any]:
    cache: dict[str, Any] | None = getattr(_local, "by_language", None)
    if cache is None:
        cache = _local.by_language = {}
    return cache


def parser_for(language: str) -> Any:
    factory = get_parser
    if factory is None:
        raise GrammarUnavailable(
            "Install `faultline[treesitter]` to detect function boundaries in non-Python sources."
        )
    cache = _thread_cache()
    if language not in cache:
        try:
            cache[language] = factory(language)
        except (LookupError, ValueError, RuntimeError) as exc:  # pragma: no cover (depends on installed grammars)
            raise GrammarUnavailable(f"no tree-sitter grammar for {language!r}") from exc
    return cache[language]


def parse(language: str, source: str) -> Any | None:
    """Syntax tree for `source`, or None without the extra or on a parser failure."""

    if get_parser is None:
        return None
    try:
        return parser_for(language).parse(source.encode("utf-8", errors="replace"))
    except (GrammarUnavailable, ValueError, TypeError, RuntimeError) as exc:
        logger.debug("No syntax tree for %s source: %s", language, exc)
        return None


def is_available() -> bool:
    return get_parser is not None
