"""
Field checks for unified-issue-shaped records.

Every check returns a list of `(field, message)` pairs and never stops at the
first problem, so a rejected finding reports everything that is wrong with it.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

FieldErrors = list[tuple[str, str]]
Validator = Callable[[Mapping[str, Any]], FieldErrors]

PERFORMANCE_CATEGORIES = frozenset(
    {"response_time", "memory", "cpu", "bundle_size", "loading", "availability", "web_vitals", "throughput"}
)
IMPACT_LEVELS = frozenset({"user_facing", "system_level", "resource_consumption"})
DEPENDENCY_TYPES = frozenset({"direct", "transitive", "dev", "peer"})
RISK_LEVELS = frozenset({"low", "medium", "high", "critical"})
COMPONENT_TYPES = frozenset({"module", "class", "function", "interface", "package"})
COUPLING_LEVELS = frozenset({"low", "medium", "high"})

_PERFORMANCE_METRIC_KEYS = frozenset(
    {
        "responseTime",
        "memoryUsage",
        "cpuUsage",
        "bundleSize",
        "loadTime",
        "throughput",
        "errorRate",
        "availabilityScore",
        "coreWebVitals",
    }
)


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _one_of(record: Mapping[str, Any], key: str, allowed: frozenset[str], errors: FieldErrors, *, prefix: str = "") -> None:
    value = record.get(key)
    name = f"{prefix}{key}"
    if value is None:
        errors.append((name, "is required"))
    elif not isinstance(value, str) or value not in allowed:
        errors.append((name, f"must be one of: {', '.join(sorted(allowed))}"))


def validate_common(record: Mapping[str, Any]) -> FieldErrors:
    errors: FieldErrors = []
    if not isinstance(record.get("path"), str):
        errors.append(("path", "is required and must be a string"))
    if not _non_empty_str(record.get("severity")):
        errors.append(("severity", "is required and must be a string"))
    if not _non_empty_str(record.get("title")):
        errors.append(("title", "is required and must be a non-empty string"))
    for key in ("ruleId", "description", "id", "analysisType", "entityType"):
        if record.get(key) is not None and not isinstance(record.get(key), str):
            errors.append((key, "must be a string"))
    if record.get("metadata") is not None and not isinstance(record.get("metadata"), Mapping):
        errors.append(("metadata", "must be an object"))

    line = record.get("line")
    column = record.get("column")
    end_line = record.get("endLine")
    end_column = record.get("endColumn")
    for key, value in (("line", line), ("column", column), ("endLine", end_line), ("endColumn", end_column)):
        if value is not None and not _is_positive_int(value):
            errors.append((key, "must be a positive integer (1-based)"))
    if column is not None and line is None:
        errors.append(("column", "requires line"))
    if end_line is not None and line is None:
        errors.append(("endLine", "requires line"))
    if _is_positive_int(line) and _is_positive_int(end_line) and end_line < line:
        errors.append(("endLine", "must not be before line"))
    return errors


def validate_performance(record: Mapping[str, Any]) -> FieldErrors:
    errors: FieldErrors = []
    metrics = record.get("performanceMetrics")
    if metrics is None:
        errors.append(("performanceMetrics", "is required"))
    elif not isinstance(metrics, Mapping) or not metrics:
        errors.append(("performanceMetrics", "must be a non-empty object"))
    else:
        for key, value in metrics.items():
            if key not in _PERFORMANCE_METRIC_KEYS:
                errors.append((f"performanceMetrics.{key}", "is not a known metric"))
            elif key == "coreWebVitals":
                if not isinstance(value, Mapping) or any(not _is_number(v) for v in value.values()):
                    errors.append((f"performanceMetrics.{key}", "must map vital names to numbers"))
            elif not _is_number(value):
                errors.append((f"performanceMetrics.{key}", "must be a number"))
    _one_of(record, "performanceCategory", PERFORMANCE_CATEGORIES, errors)
    _one_of(record, "impactLevel", IMPACT_LEVELS, errors)
    return errors


def validate_dependency(record: Mapping[str, Any]) -> FieldErrors:
    errors: FieldErrors = []
    info = record.get("dependencyInfo")
    if info is None:
        errors.append(("dependencyInfo", "is required"))
    elif not isinstance(info, Mapping):
        errors.append(("dependencyInfo", "must be an object"))
    else:
        prefix = "dependencyInfo."
        for key in ("packageName", "version"):
            if not _non_empty_str(info.get(key)):
                errors.append((prefix + key, "is required and must be a non-empty string"))
        _one_of(info, "type", DEPENDENCY_TYPES, errors, prefix=prefix)
        depth = info.get("depth")
        if isinstance(depth, bool) or not isinstance(depth, int) or depth < 0:
            errors.append((prefix + "depth", "is required and must be an integer >= 0"))
        licenses = info.get("licenses")
        if not isinstance(licenses, list) or any(not isinstance(v, str) for v in licenses):
            errors.append((prefix + "licenses", "is required and must be a list of strings"))
        vulnerabilities = info.get("vulnerabilities")
        if not isinstance(vulnerabilities, list) or any(not isinstance(v, Mapping) for v in vulnerabilities):
            errors.append((prefix + "vulnerabilities", "is required and must be a list of objects"))
        usage = info.get("usageAnalysis")
        if usage is not None and not isinstance(usage, Mapping):
            errors.append((prefix + "usageAnalysis", "must be an object"))
    _one_of(record, "supplyChainRisk", RISK_LEVELS, errors)
    suggestion = record.get("remediationSuggestion")
    if suggestion is not None and not isinstance(suggestion, str):
        errors.append(("remediationSuggestion", "must be a string"))
    return errors


def validate_architecture(record: Mapping[str, Any]) -> FieldErrors:
    errors: FieldErrors = []
    info = record.get("architectureInfo")
    if info is None:
        errors.append(("architectureInfo", "is required"))
    elif not isinstance(info, Mapping):
        errors.append(("architectureInfo", "must be an object"))
    else:
        prefix = "architectureInfo."
        _one_of(info, "componentType", COMPONENT_TYPES, errors, prefix=prefix)
        if not isinstance(info.get("complexityMetrics"), Mapping):
            errors.append((prefix + "complexityMetrics", "is required and must be an object"))
        _one_of(info, "couplingLevel", COUPLING_LEVELS, errors, prefix=prefix)
        _one_of(info, "cohesionLevel", COUPLING_LEVELS, errors, prefix=prefix)
        index = info.get("maintainabilityIndex")
        if index is not None and not _is_number(index):
            errors.append((prefix + "maintainabilityIndex", "must be a number"))
        minutes = info.get("technicalDebtMinutes")
        if minutes is not None and (isinstance(minutes, bool) or not isinstance(minutes, int) or minutes < 0):
            errors.append((prefix + "technicalDebtMinutes", "must be an integer >= 0"))
        cycles = info.get("circularDependencies")
        if cycles is not None and (not isinstance(cycles, list) or any(not isinstance(v, str) for v in cycles)):
            errors.append((prefix + "circularDependencies", "must be a list of strings"))
    if not _non_empty_str(record.get("architectureCategory")):
        errors.append(("architectureCategory", "is required and must be a non-empty string"))
    _one_of(record, "technicalDebtLevel", RISK_LEVELS, errors)
    return errors


def validate_nothing(record: Mapping[str, Any]) -> FieldErrors:
    return []


_CATEGORY_VALIDATORS: Mapping[str, Validator] = MappingProxyType(
    {
        "performance": validate_performance,
        "apm": validate_performance,
        "bundle": validate_performance,
        "web-vitals": validate_performance,
        "dependency": validate_dependency,
        "architecture": validate_architecture,
    }
)


def validator_for_category(category: str) -> Validator:
    return _CATEGORY_VALIDATORS.get(category, validate_nothing)
