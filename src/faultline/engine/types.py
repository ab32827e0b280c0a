from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal

Severity = Literal["critical", "high", "medium", "low", "info"]
AnalysisType = Literal[
    "quality",
    "security",
    "performance",
    "style",
    "complexity",
    "semantic",
    "ai-assisted",
    "apm-performance",
    "dependency-security",
    "dependency-licensing",
    "dependency-usage",
    "architecture-design",
    "architecture-debt",
    "bundle",
    "web-vitals",
]
RiskLevel = Literal["critical", "high", "medium", "low"]
HotspotKind = Literal["file", "cluster"]

# Most severe first. Used for ranking and for stable presentation order.
SEVERITIES: tuple[Severity, ...] = ("critical", "high", "medium", "low", "info")
SEVERITY_RANK: Mapping[str, int] = MappingProxyType({sev: idx for idx, sev in enumerate(SEVERITIES)})

ANALYSIS_TYPES: tuple[AnalysisType, ...] = (
    "quality",
    "security",
    "performance",
    "style",
    "complexity",
    "semantic",
    "ai-assisted",
    "apm-performance",
    "dependency-security",
    "dependency-licensing",
    "dependency-usage",
    "architecture-design",
    "architecture-debt",
    "bundle",
    "web-vitals",
)

DEFAULT_SEVERITY_WEIGHTS: Mapping[Severity, int] = MappingProxyType(
    {"critical": 10, "high": 7, "medium": 4, "low": 2, "info": 1}
)

_EMPTY: Mapping[str, Any] = MappingProxyType({})


@dataclass(frozen=True, slots=True)
class Entity:
    id: str
    type: str
    name: str
    canonical_path: str
    original_identifier: str
    tool_name: str
    confidence: float = 1.0


@dataclass(frozen=True, slots=True)
class PerformanceDetails:
    metrics: Mapping[str, Any]
    performance_category: str
    impact_level: str


@dataclass(frozen=True, slots=True)
class DependencyDetails:
    package_name: str
    version: str
    dependency_type: str
    depth: int
    licenses: tuple[str, ...]
    vulnerabilities: tuple[Mapping[str, Any], ...]
    supply_chain_risk: str
    usage_analysis: Mapping[str, Any] | None = None
    remediation_suggestion: str | None = None


@dataclass(frozen=True, slots=True)
class ArchitectureDetails:
    component_type: str
    complexity_metrics: Mapping[str, Any]
    coupling_level: str
    cohesion_level: str
    architecture_category: str
    technical_debt_level: str
    maintainability_index: float | None = None
    technical_debt_minutes: int | None = None
    circular_dependencies: tuple[str, ...] = ()


IssueDetails = PerformanceDetails | DependencyDetails | ArchitectureDetails


@dataclass(frozen=True, slots=True)
class UnifiedIssue:
    id: str
    entity: Entity
    severity: Severity
    analysis_type: AnalysisType
    title: str
    tool_name: str
    created_at: str
    description: str = ""
    rule_id: str = ""
    line: int | None = None  # 1-based
    column: int | None = None  # 1-based
    end_line: int | None = None  # 1-based
    end_column: int | None = None  # 1-based
    category: str = "quality"
    details: IssueDetails | None = None
    metadata: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)

    @property
    def canonical_path(self) -> str:
        return self.entity.canonical_path


@dataclass(frozen=True, slots=True)
class LineRange:
    start: int
    end: int | None = None  # None: spans to the end of the file


@dataclass(frozen=True, slots=True)
class CorrelationGroup:
    id: str
    canonical_path: str
    issues: tuple[UnifiedIssue, ...]
    line_range: LineRange
    risk_score: int
    analysis_types: tuple[AnalysisType, ...]
    tool_coverage: tuple[str, ...]
    function_name: str | None = None


@dataclass(frozen=True, slots=True)
class Hotspot:
    id: str
    kind: HotspotKind
    canonical_path: str
    risk_score: int
    risk_level: RiskLevel
    issue_count: int
    line_range: LineRange
    severity_distribution: Mapping[Severity, int]
    analysis_type_distribution: Mapping[str, int]
    tool_coverage: tuple[str, ...]
    recommended_actions: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class DedupStats:
    original_count: int
    deduplicated_count: int
    duplicates_removed: int
    groups_found: int


@dataclass(frozen=True, slots=True)
class ValidationError:
    """A finding rejected during normalization, with every offending field."""

    field: str
    errors: tuple[str, ...]
    tool_name: str = ""
    original_identifier: str = ""


@dataclass(frozen=True, slots=True)
class ResourceExhausted:
    limit: str
    value: int


@dataclass(frozen=True, slots=True)
class Excluded:
    """A valid issue left out by scope options (scan/exclude paths, extensions, dev dependencies)."""

    reason: str
