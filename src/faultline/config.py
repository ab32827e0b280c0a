from __future__ import annotations

import fnmatch
import tomllib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, cast

from faultline.engine.types import DEFAULT_SEVERITY_WEIGHTS, SEVERITIES, Severity


class ConfigurationError(ValueError):
    """Raised when a Faultline option is missing, malformed, or out of range."""


DEFAULT_DEDUP_LINE_THRESHOLD = 3
DEFAULT_DEDUP_SIMILARITY_THRESHOLD = 0.6
DEFAULT_CORRELATION_LINE_WINDOW = 10
DEFAULT_HOTSPOT_MIN_SCORE = 50
# Hotspots below this score are never emitted, whatever the configuration says.
HOTSPOT_SCORE_FLOOR = 50

_TABLE = "tool.faultline"


@dataclass(frozen=True, slots=True)
class FaultlineConfig:
    project_root: str
    include_dev_dependencies: bool = False
    scan_paths: tuple[str, ...] = ()
    exclude_paths: tuple[str, ...] = ()
    file_extensions: tuple[str, ...] = ()
    max_issues_per_repository: int | None = None
    max_files_per_repository: int | None = None
    dedup_line_threshold: int = DEFAULT_DEDUP_LINE_THRESHOLD
    dedup_similarity_threshold: float = DEFAULT_DEDUP_SIMILARITY_THRESHOLD
    correlation_line_window: int = DEFAULT_CORRELATION_LINE_WINDOW
    hotspot_min_score: int = DEFAULT_HOTSPOT_MIN_SCORE
    severity_weights: Mapping[Severity, int] = field(default_factory=lambda: DEFAULT_SEVERITY_WEIGHTS)
    tool_priority: tuple[str, ...] = ()
    function_boundary_mode: bool = False
    plugins: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.project_root, str) or not self.project_root.strip():
            raise ConfigurationError(f"`{_TABLE}.project-root` is required and must be a non-empty string.")
        if self.dedup_line_threshold < 0:
            raise ConfigurationError(f"`{_TABLE}.dedup-line-threshold` must be >= 0.")
        if not (0.0 < self.dedup_similarity_threshold <= 1.0):
            raise ConfigurationError(f"`{_TABLE}.dedup-similarity-threshold` must be in (0, 1].")
        if self.correlation_line_window < 1:
            raise ConfigurationError(f"`{_TABLE}.correlation-line-window` must be >= 1.")
        if not (HOTSPOT_SCORE_FLOOR <= self.hotspot_min_score <= 100):
            raise ConfigurationError(f"`{_TABLE}.hotspot-min-score` must be between {HOTSPOT_SCORE_FLOOR} and 100.")
        for name in ("max_issues_per_repository", "max_files_per_repository"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ConfigurationError(f"`{_TABLE}.{name.replace('_', '-')}` must be > 0.")


def load_config(project_dir: Path | str = ".", *, overrides: Mapping[str, Any] | None = None) -> FaultlineConfig:
    """
    Load Faultline configuration from `pyproject.toml` within `project_dir`.

    Without a `[tool.faultline]` table the defaults apply and `project-root`
    falls back to `project_dir` itself. `overrides` (same keys as the table)
    win over file values; the CLI uses them for command-line flags.
    """

    project_dir_path = Path(project_dir)
    table: dict[str, Any] = {}
    pyproject_path = project_dir_path / "pyproject.toml"
    if pyproject_path.exists():
        try:
            data = tomllib.loads(pyproject_path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Invalid TOML in {pyproject_path}: {exc}") from exc
        tool_table = data.get("tool", {})
        if isinstance(tool_table, dict):
            faultline_table = tool_table.get("faultline", {})
            if not isinstance(faultline_table, dict):
                raise ConfigurationError(f"`{_TABLE}` must be a table.")
            table.update(faultline_table)

    if overrides:
        table.update(overrides)
    if _get(table, "project-root") is None:
        table["project-root"] = str(project_dir_path.resolve())
    return parse_config(table)


def parse_config(table: Mapping[str, Any]) -> FaultlineConfig:
    """Build a validated config from a mapping with kebab- or snake-case keys."""

    known = {name.replace("_", "-") for name in FaultlineConfig.__dataclass_fields__}
    for key in table:
        if str(key).replace("_", "-") not in known:
            raise ConfigurationError(f"`{_TABLE}` contains unknown option: {key!r}.")

    project_root = _get(table, "project-root")
    if not isinstance(project_root, str):
        raise ConfigurationError(f"`{_TABLE}.project-root` is required and must be a non-empty string.")

    return FaultlineConfig(
        project_root=project_root,
        include_dev_dependencies=_parse_bool(table, "include-dev-dependencies", False),
        scan_paths=_parse_str_list(table, "scan-paths"),
        exclude_paths=_parse_str_list(table, "exclude-paths"),
        file_extensions=tuple(_normalize_extension(v) for v in _parse_str_list(table, "file-extensions")),
        max_issues_per_repository=_parse_optional_int(table, "max-issues-per-repository"),
        max_files_per_repository=_parse_optional_int(table, "max-files-per-repository"),
        dedup_line_threshold=_parse_int(table, "dedup-line-threshold", DEFAULT_DEDUP_LINE_THRESHOLD),
        dedup_similarity_threshold=_parse_float(table, "dedup-similarity-threshold", DEFAULT_DEDUP_SIMILARITY_THRESHOLD),
        correlation_line_window=_parse_int(table, "correlation-line-window", DEFAULT_CORRELATION_LINE_WINDOW),
        hotspot_min_score=_parse_int(table, "hotspot-min-score", DEFAULT_HOTSPOT_MIN_SCORE),
        severity_weights=_parse_severity_weights(_get(table, "severity-weights")),
        tool_priority=tuple(v.lower() for v in _parse_str_list(table, "tool-priority")),
        function_boundary_mode=_parse_bool(table, "function-boundary-mode", False),
        plugins=_parse_str_list(table, "plugins"),
    )


def _get(table: Mapping[str, Any], key: str) -> Any:
    if key in table:
        return table[key]
    return table.get(key.replace("-", "_"))


def _parse_bool(table: Mapping[str, Any], key: str, default: bool) -> bool:
    value = _get(table, key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigurationError(f"`{_TABLE}.{key}` must be a boolean.")
    return value


def _parse_int(table: Mapping[str, Any], key: str, default: int) -> int:
    value = _get(table, key)
    if value is None:
        return default
    # bool is an int subclass; `true` is never a valid window.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"`{_TABLE}.{key}` must be an integer.")
    return value


def _parse_optional_int(table: Mapping[str, Any], key: str) -> int | None:
    if _get(table, key) is None:
        return None
    return _parse_int(table, key, 0)


def _parse_float(table: Mapping[str, Any], key: str, default: float) -> float:
    value = _get(table, key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ConfigurationError(f"`{_TABLE}.{key}` must be a number.")
    return float(value)


def _parse_str_list(table: Mapping[str, Any], key: str) -> tuple[str, ...]:
    value = _get(table, key)
    if value is None:
        return ()
    if not isinstance(value, list | tuple) or any(not isinstance(v, str) for v in value):
        raise ConfigurationError(f"`{_TABLE}.{key}` must be a list of strings.")
    return tuple(v.strip() for v in value if v.strip())


def _normalize_extension(value: str) -> str:
    ext = value.strip().lower()
    return ext if ext.startswith(".") else f".{ext}"


def _parse_severity_weights(value: Any) -> Mapping[Severity, int]:
    if value is None:
        return DEFAULT_SEVERITY_WEIGHTS
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"`{_TABLE}.severity-weights` must be a table.")

    merged: dict[Severity, int] = dict(DEFAULT_SEVERITY_WEIGHTS)
    for raw_key, raw_value in value.items():
        sev = str(raw_key).strip().lower()
        if sev not in SEVERITIES:
            valid = ", ".join(SEVERITIES)
            raise ConfigurationError(f"`{_TABLE}.severity-weights` contains unknown severity: {raw_key!r}. ({valid})")
        if isinstance(raw_value, bool) or not isinstance(raw_value, int) or raw_value < 0:
            raise ConfigurationError(f"`{_TABLE}.severity-weights.{sev}` must be an integer >= 0.")
        merged[cast(Severity, sev)] = raw_value
    return MappingProxyType(merged)


def path_is_excluded(canonical_path: str, *, patterns: Iterable[str]) -> bool:
    """
    Return True if a canonical path matches any pattern.

    Supported patterns:
    - Directory prefixes: "tests/" matches "tests/...".
    - Globs without slashes: "*.min.js" matches basenames.
    - Globs with slashes: "src/**/generated/*.ts" matches full paths.
    """

    basename = canonical_path.rsplit("/", 1)[-1]
    for raw_pattern in patterns:
        pattern = raw_pattern.strip().replace("\\", "/")
        if not pattern:
            continue
        if pattern.startswith("./"):
            pattern = pattern[2:]

        if pattern.endswith("/"):
            if canonical_path.startswith(pattern):
                return True
            continue

        if "/" in pattern:
            if fnmatch.fnmatch(canonical_path, pattern):
                return True
        elif fnmatch.fnmatch(basename, pattern) or fnmatch.fnmatch(canonical_path, pattern):
            return True

    return False


def path_in_scan_scope(canonical_path: str, *, scan_paths: Iterable[str]) -> bool:
    """True when no scan paths are configured or the path sits under one of them."""

    prefixes = [p.strip().replace("\\", "/").removeprefix("./").rstrip("/") for p in scan_paths if p.strip()]
    if not prefixes or any(prefix in {"", "."} for prefix in prefixes):
        return True
    return any(canonical_path == prefix or canonical_path.startswith(prefix + "/") for prefix in prefixes)
