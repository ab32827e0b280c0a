from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

from faultline import __version__
from faultline.config import FaultlineConfig, path_in_scan_scope, path_is_excluded
from faultline.engine.correlation import CorrelationEngine
from faultline.engine.dedup import DeduplicationEngine
from faultline.engine.hotspots import detect_hotspots
from faultline.engine.metrics import FileMetrics, build_file_metrics
from faultline.engine.types import (
    ANALYSIS_TYPES,
    SEVERITIES,
    ArchitectureDetails,
    CorrelationGroup,
    DedupStats,
    DependencyDetails,
    Excluded,
    Hotspot,
    LineRange,
    PerformanceDetails,
    ResourceExhausted,
    UnifiedIssue,
    ValidationError,
)

logger = logging.getLogger(__name__)

RESULT_SCHEMA_VERSION = 1

AddOutcome = ValidationError | ResourceExhausted | Excluded | None


@dataclass(slots=True)
class ValidationReport:
    rejected: list[ValidationError] = field(default_factory=list)
    excluded: dict[str, int] = field(default_factory=dict)

    def reject(self, error: ValidationError) -> None:
        self.rejected.append(error)

    def exclude(self, reason: str) -> None:
        self.excluded[reason] = self.excluded.get(reason, 0) + 1

    def to_dict(self) -> dict[str, Any]:
        by_field: dict[str, int] = {}
        for error in self.rejected:
            by_field[error.field] = by_field.get(error.field, 0) + 1
        return {
            "rejected": len(self.rejected),
            "rejectedByField": dict(sorted(by_field.items())),
            "excluded": sum(self.excluded.values()),
            "excludedByReason": dict(sorted(self.excluded.items())),
            "errors": [
                {"tool": e.tool_name, "identifier": e.original_identifier, "field": e.field, "errors": list(e.errors)}
                for e in self.rejected
            ],
        }


class UnifiedResult:
    """
    Everything one analysis run knows: issues, metrics, groups, hotspots.

    Issues keep insertion order. Metrics are maintained incrementally on
    `add_issue` and rebuilt from scratch after deduplication; groups and
    hotspots are recomputed on demand and are empty until then.
    """

    def __init__(self, config: FaultlineConfig, *, metadata: Mapping[str, Any] | None = None) -> None:
        self.config = config
        self.project_root = config.project_root
        self.metadata: dict[str, Any] = dict(metadata or {})
        self.validation = ValidationReport()
        self.resource_exhausted: ResourceExhausted | None = None
        self.deduplication_stats: DedupStats | None = None
        self.file_metrics: dict[str, FileMetrics] = {}
        self.correlation_groups: tuple[CorrelationGroup, ...] = ()
        self.hotspots: tuple[Hotspot, ...] = ()
        self._issues: list[UnifiedIssue] = []
        self._ids: set[str] = set()

    @property
    def issues(self) -> tuple[UnifiedIssue, ...]:
        return tuple(self._issues)

    def add_issue(self, issue: UnifiedIssue) -> AddOutcome:
        """
        Validate and store one issue, updating its file metrics.

        Returns None when the issue was stored; otherwise the reason it was not
        (a `ValidationError`, the `ResourceExhausted` limit, or `Excluded`).
        """

        problem = self._check(issue)
        if problem is not None:
            self.validation.reject(problem)
            logger.debug("Rejected issue %s: %s", issue.id, "; ".join(problem.errors))
            return problem

        reason = self._exclusion_reason(issue)
        if reason is not None:
            self.validation.exclude(reason)
            return Excluded(reason=reason)

        limit = self._limit_hit(issue)
        if limit is not None:
            if self.resource_exhausted is None:
                logger.warning("Resource limit reached (%s=%d); further issues are dropped", limit.limit, limit.value)
            self.resource_exhausted = limit
            return limit

        metrics = self.file_metrics.get(issue.canonical_path)
        if metrics is None:
            metrics = FileMetrics(canonical_path=issue.canonical_path, weights=self.config.severity_weights)
            self.file_metrics[issue.canonical_path] = metrics
        metrics.add_issue(issue)
        self._issues.append(issue)
        self._ids.add(issue.id)
        return None

    def record_rejection(self, error: ValidationError) -> None:
        """Count a finding the normalizer dropped before it became an issue."""

        self.validation.reject(error)

    def _check(self, issue: UnifiedIssue) -> ValidationError | None:
        errors: list[tuple[str, str]] = []
        if not issue.id:
            errors.append(("id", "must not be empty"))
        elif issue.id in self._ids:
            errors.append(("id", f"duplicate issue id {issue.id!r}"))
        if issue.severity not in SEVERITIES:
            errors.append(("severity", f"unknown severity {issue.severity!r}"))
        if issue.analysis_type not in ANALYSIS_TYPES:
            errors.append(("analysisType", f"unknown analysis type {issue.analysis_type!r}"))
        if not issue.canonical_path:
            errors.append(("path", "canonical path must not be empty"))
        if not issue.tool_name:
            errors.append(("toolName", "must not be empty"))
        if (issue.line is None) != (issue.column is None):
            errors.append(("line", "line and column must both be present or both absent"))
        for name, value in (("line", issue.line), ("column", issue.column), ("endLine", issue.end_line)):
            if value is not None and (not isinstance(value, int) or value <= 0):
                errors.append((name, "must be a positive integer"))
        if issue.line is not None and issue.end_line is not None and issue.end_line < issue.line:
            errors.append(("endLine", "must not be before line"))
        if not errors:
            return None
        return ValidationError(
            field=errors[0][0],
            errors=tuple(f"{f}: {m}" for f, m in errors),
            tool_name=issue.tool_name,
            original_identifier=issue.entity.original_identifier,
        )

    def _exclusion_reason(self, issue: UnifiedIssue) -> str | None:
        config = self.config
        path = issue.canonical_path
        if config.exclude_paths and path_is_excluded(path, patterns=config.exclude_paths):
            return "exclude-paths"
        if issue.entity.type == "file":
            if not path_in_scan_scope(path, scan_paths=config.scan_paths):
                return "scan-paths"
            if config.file_extensions and not path.lower().endswith(config.file_extensions):
                return "file-extensions"
        details = issue.details
        if isinstance(details, DependencyDetails) and details.dependency_type == "dev" and not config.include_dev_dependencies:
            return "dev-dependency"
        return None

    def _limit_hit(self, issue: UnifiedIssue) -> ResourceExhausted | None:
        max_issues = self.config.max_issues_per_repository
        if max_issues is not None and len(self._issues) >= max_issues:
            return ResourceExhausted(limit="max-issues-per-repository", value=max_issues)
        max_files = self.config.max_files_per_repository
        if max_files is not None and issue.canonical_path not in self.file_metrics and len(self.file_metrics) >= max_files:
            return ResourceExhausted(limit="max-files-per-repository", value=max_files)
        return None

    def deduplicate_issues(self) -> DedupStats:
        engine = DeduplicationEngine(
            line_threshold=self.config.dedup_line_threshold,
            similarity_threshold=self.config.dedup_similarity_threshold,
            tool_priority=self.config.tool_priority,
        )
        outcome = engine.deduplicate(self._issues)
        self._issues = list(outcome.issues)
        self._ids = {issue.id for issue in self._issues}
        self.file_metrics = build_file_metrics(self._issues, self.config.severity_weights)
        self.correlation_groups = ()
        self.hotspots = ()
        self.deduplication_stats = outcome.stats
        logger.info(
            "Deduplicated %d issues into %d (%d duplicate groups)",
            outcome.stats.original_count,
            outcome.stats.deduplicated_count,
            outcome.stats.groups_found,
        )
        return outcome.stats

    def build_correlation_groups(self, file_contents: Mapping[str, str] | None = None) -> tuple[CorrelationGroup, ...]:
        engine = CorrelationEngine(
            line_window=self.config.correlation_line_window,
            severity_weights=self.config.severity_weights,
            function_boundary_mode=self.config.function_boundary_mode,
        )
        self.correlation_groups = engine.build_groups(self._issues, file_contents=file_contents)
        return self.correlation_groups

    def generate_hotspots(self) -> tuple[Hotspot, ...]:
        self.hotspots = detect_hotspots(
            self.file_metrics.values(),
            self.correlation_groups,
            min_score=self.config.hotspot_min_score,
        )
        return self.hotspots

    def get_summary(self) -> dict[str, Any]:
        by_severity = {sev: 0 for sev in SEVERITIES}
        by_type: dict[str, int] = {}
        tools: set[str] = set()
        for issue in self._issues:
            by_severity[issue.severity] += 1
            by_type[issue.analysis_type] = by_type.get(issue.analysis_type, 0) + 1
            tools.add(issue.tool_name)
        return {
            "projectRoot": self.project_root,
            "totalIssues": len(self._issues),
            "bySeverity": by_severity,
            "byAnalysisType": {t: by_type[t] for t in ANALYSIS_TYPES if t in by_type},
            "toolsCovered": sorted(tools),
            "filesAnalyzed": len(self.file_metrics),
            "correlationGroups": len(self.correlation_groups),
            "hotspots": len(self.hotspots),
            "deduplication": _dedup_stats_to_dict(self.deduplication_stats),
            "validation": {k: v for k, v in self.validation.to_dict().items() if k != "errors"},
            "resourceExhausted": asdict(self.resource_exhausted) if self.resource_exhausted is not None else None,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "schemaVersion": RESULT_SCHEMA_VERSION,
            "tool": {"name": "Faultline", "version": __version__},
            "projectRoot": self.project_root,
            "metadata": to_plain(self.metadata),
            "summary": self.get_summary(),
            "issues": [issue_to_dict(issue) for issue in self._issues],
            "fileMetrics": [self.file_metrics[path].to_dict() for path in sorted(self.file_metrics)],
            "correlationGroups": [group_to_dict(g) for g in self.correlation_groups],
            "hotspots": [hotspot_to_dict(h) for h in self.hotspots],
            "deduplicationStats": _dedup_stats_to_dict(self.deduplication_stats),
            "validation": self.validation.to_dict(),
        }


def to_plain(value: Any) -> Any:
    """Convert mapping proxies and tuples into JSON-friendly dicts and lists."""

    if isinstance(value, Mapping):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, list | tuple | set | frozenset):
        items = [to_plain(v) for v in value]
        return sorted(items, key=str) if isinstance(value, set | frozenset) else items
    return value


def _line_range_to_dict(line_range: LineRange) -> dict[str, int | None]:
    return {"start": line_range.start, "end": line_range.end}


def _dedup_stats_to_dict(stats: DedupStats | None) -> dict[str, int] | None:
    if stats is None:
        return None
    return {
        "originalCount": stats.original_count,
        "deduplicatedCount": stats.deduplicated_count,
        "duplicatesRemoved": stats.duplicates_removed,
        "groupsFound": stats.groups_found,
    }


def _details_to_dict(issue: UnifiedIssue) -> dict[str, Any] | None:
    details = issue.details
    if isinstance(details, PerformanceDetails):
        return {
            "kind": "performance",
            "performanceMetrics": to_plain(details.metrics),
            "performanceCategory": details.performance_category,
            "impactLevel": details.impact_level,
        }
    if isinstance(details, DependencyDetails):
        return {
            "kind": "dependency",
            "dependencyInfo": {
                "packageName": details.package_name,
                "version": details.version,
                "type": details.dependency_type,
                "depth": details.depth,
                "licenses": list(details.licenses),
                "vulnerabilities": to_plain(details.vulnerabilities),
                "usageAnalysis": to_plain(details.usage_analysis),
            },
            "supplyChainRisk": details.supply_chain_risk,
            "remediationSuggestion": details.remediation_suggestion,
        }
    if isinstance(details, ArchitectureDetails):
        return {
            "kind": "architecture",
            "architectureInfo": {
                "componentType": details.component_type,
                "complexityMetrics": to_plain(details.complexity_metrics),
                "couplingLevel": details.coupling_level,
                "cohesionLevel": details.cohesion_level,
                "maintainabilityIndex": details.maintainability_index,
                "technicalDebtMinutes": details.technical_debt_minutes,
                "circularDependencies": list(details.circular_dependencies),
            },
            "architectureCategory": details.architecture_category,
            "technicalDebtLevel": details.technical_debt_level,
        }
    return None


def issue_to_dict(issue: UnifiedIssue) -> dict[str, Any]:
    entity = issue.entity
    return {
        "id": issue.id,
        "entity": {
            "id": entity.id,
            "type": entity.type,
            "name": entity.name,
            "canonicalPath": entity.canonical_path,
            "originalIdentifier": entity.original_identifier,
            "toolName": entity.tool_name,
            "confidence": entity.confidence,
        },
        "severity": issue.severity,
        "analysisType": issue.analysis_type,
        "category": issue.category,
        "title": issue.title,
        "description": issue.description,
        "ruleId": issue.rule_id,
        "line": issue.line,
        "column": issue.column,
        "endLine": issue.end_line,
        "endColumn": issue.end_column,
        "toolName": issue.tool_name,
        "createdAt": issue.created_at,
        "details": _details_to_dict(issue),
        "metadata": to_plain(issue.metadata),
    }


def group_to_dict(group: CorrelationGroup) -> dict[str, Any]:
    return {
        "id": group.id,
        "canonicalPath": group.canonical_path,
        "issueIds": [issue.id for issue in group.issues],
        "lineRange": _line_range_to_dict(group.line_range),
        "riskScore": group.risk_score,
        "analysisTypes": list(group.analysis_types),
        "toolCoverage": list(group.tool_coverage),
        "functionName": group.function_name,
    }


def hotspot_to_dict(hotspot: Hotspot) -> dict[str, Any]:
    return {
        "id": hotspot.id,
        "kind": hotspot.kind,
        "canonicalPath": hotspot.canonical_path,
        "riskScore": hotspot.risk_score,
        "riskLevel": hotspot.risk_level,
        "issueCount": hotspot.issue_count,
        "lineRange": _line_range_to_dict(hotspot.line_range),
        "severityDistribution": dict(hotspot.severity_distribution),
        "analysisTypeDistribution": dict(hotspot.analysis_type_distribution),
        "toolCoverage": list(hotspot.tool_coverage),
        "recommendedActions": list(hotspot.recommended_actions),
    }

