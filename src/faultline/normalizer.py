from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from hashlib import sha256
from types import MappingProxyType
from typing import Any, cast

from faultline.adapters.base import Adapter
from faultline.engine.types import (
    AnalysisType,
    ArchitectureDetails,
    DependencyDetails,
    Entity,
    IssueDetails,
    PerformanceDetails,
    UnifiedIssue,
    ValidationError,
)
from faultline.paths import PathKind, PathNormalizer
from faultline.validation import FieldErrors, validate_common, validator_for_category

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_SERVICE_ENTITY_TYPES = frozenset({"service", "host", "endpoint"})
_PERFORMANCE_CATEGORIES = frozenset({"performance", "apm", "bundle", "web-vitals"})


def utc_now() -> datetime:
    return datetime.now(UTC)


def format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def issue_fingerprint(
    *,
    tool: str,
    rule_id: str,
    path: str,
    line: int | None,
    column: int | None,
    title: str,
    description: str = "",
) -> str:
    fields = [tool, rule_id, path, line, column, title, description]
    payload = json.dumps(fields, separators=(",", ":"), ensure_ascii=False)
    return sha256(payload.encode("utf-8")).hexdigest()[:16]


def _path_kind(entity_type: str) -> PathKind:
    if entity_type == "dependency":
        return "dependency"
    if entity_type in _SERVICE_ENTITY_TYPES:
        return "service"
    return "file"


def _reject(errors: FieldErrors, *, tool: str, identifier: str) -> ValidationError:
    return ValidationError(
        field=errors[0][0],
        errors=tuple(f"{field}: {message}" for field, message in errors),
        tool_name=tool,
        original_identifier=identifier,
    )


def normalize_record(
    record: Any,
    *,
    adapter: Adapter,
    paths: PathNormalizer,
    clock: Clock = utc_now,
) -> UnifiedIssue | ValidationError:
    """
    Turn one unified-issue-shaped record into a `UnifiedIssue`.

    Problems are returned as a `ValidationError` listing every offending field;
    nothing here raises for bad input.
    """

    if not isinstance(record, Mapping):
        return ValidationError(field="record", errors=("record: must be an object",), tool_name=adapter.name)

    tool_name = str(record.get("toolName") or adapter.name)
    raw_path = record.get("path")
    identifier = raw_path if isinstance(raw_path, str) else ""

    errors = validate_common(record)
    errors.extend(validator_for_category(adapter.category)(record))
    errors.extend(adapter.validate(record))

    raw_severity = record.get("severity")
    severity = adapter.map_severity(raw_severity) if isinstance(raw_severity, str) else None
    if raw_severity is not None and severity is None and not any(f == "severity" for f, _ in errors):
        errors.append(("severity", f"unknown severity {raw_severity!r} for {adapter.name}"))

    analysis_type: AnalysisType = adapter.analysis_types[0]
    requested = record.get("analysisType")
    if isinstance(requested, str):
        if requested not in adapter.analysis_types:
            allowed = ", ".join(adapter.analysis_types)
            errors.append(("analysisType", f"must be one of: {allowed} for category {adapter.category}"))
        else:
            analysis_type = cast(AnalysisType, requested)

    entity_type = str(record.get("entityType") or "file")
    canonical_path = ""
    path_confidence = 1.0
    if isinstance(raw_path, str):
        normalized = paths.try_normalize(raw_path, tool=tool_name, kind=_path_kind(entity_type))
        if normalized.error is not None:
            errors.append(("path", str(normalized.error)))
        elif not normalized.canonical_path:
            errors.append(("path", "must not be empty"))
        else:
            canonical_path = normalized.canonical_path
            path_confidence = normalized.confidence

    if errors or severity is None:
        if not errors:
            errors.append(("severity", "is required"))
        rejected = _reject(errors, tool=tool_name, identifier=identifier)
        logger.debug("Dropped %s finding for %r: %s", tool_name, identifier, "; ".join(rejected.errors))
        return rejected

    line = record.get("line")
    column = record.get("column")
    if line is not None and column is None:
        column = 1
    title = str(record["title"]).strip()
    rule_id = str(record.get("ruleId") or "")
    description = str(record.get("description") or "")
    issue_id = record.get("id")
    if not issue_id:
        fingerprint = issue_fingerprint(
            tool=tool_name,
            rule_id=rule_id,
            path=canonical_path,
            line=line,
            column=column,
            title=title,
            description=description,
        )
        issue_id = f"{tool_name}-{fingerprint}"

    entity = Entity(
        id=f"{entity_type}:{canonical_path}",
        type=entity_type,
        name=canonical_path.rstrip("/").rsplit("/", 1)[-1],
        canonical_path=canonical_path,
        original_identifier=identifier,
        tool_name=tool_name,
        confidence=round(adapter.confidence * path_confidence, 3),
    )
    return UnifiedIssue(
        id=str(issue_id),
        entity=entity,
        severity=severity,
        analysis_type=analysis_type,
        title=title,
        tool_name=tool_name,
        created_at=format_timestamp(clock()),
        description=description,
        rule_id=rule_id,
        line=line,
        column=column,
        end_line=record.get("endLine"),
        end_column=record.get("endColumn"),
        category=adapter.category,
        details=_details(adapter.category, record),
        metadata=MappingProxyType(dict(record.get("metadata") or {})),
    )


def _details(category: str, record: Mapping[str, Any]) -> IssueDetails | None:
    if category in _PERFORMANCE_CATEGORIES:
        return PerformanceDetails(
            metrics=MappingProxyType(dict(record["performanceMetrics"])),
            performance_category=str(record["performanceCategory"]),
            impact_level=str(record["impactLevel"]),
        )
    if category == "dependency":
        info = record["dependencyInfo"]
        usage = info.get("usageAnalysis")
        return DependencyDetails(
            package_name=str(info["packageName"]),
            version=str(info["version"]),
            dependency_type=str(info["type"]),
            depth=int(info["depth"]),
            licenses=tuple(info["licenses"]),
            vulnerabilities=tuple(MappingProxyType(dict(v)) for v in info["vulnerabilities"]),
            supply_chain_risk=str(record["supplyChainRisk"]),
            usage_analysis=MappingProxyType(dict(usage)) if usage is not None else None,
            remediation_suggestion=record.get("remediationSuggestion"),
        )
    if category == "architecture":
        info = record["architectureInfo"]
        minutes = info.get("technicalDebtMinutes")
        index = info.get("maintainabilityIndex")
        return ArchitectureDetails(
            component_type=str(info["componentType"]),
            complexity_metrics=MappingProxyType(dict(info["complexityMetrics"])),
            coupling_level=str(info["couplingLevel"]),
            cohesion_level=str(info["cohesionLevel"]),
            architecture_category=str(record["architectureCategory"]),
            technical_debt_level=str(record["technicalDebtLevel"]),
            maintainability_index=float(index) if index is not None else None,
            technical_debt_minutes=int(minutes) if minutes is not None else None,
            circular_dependencies=tuple(info.get("circularDependencies") or ()),
        )
    return None
