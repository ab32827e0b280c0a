from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from faultline.engine.types import (
    DEFAULT_SEVERITY_WEIGHTS,
    SEVERITIES,
    RiskLevel,
    Severity,
    UnifiedIssue,
)

MAX_SCORE = 100
# Tool diversity saturates at six tools (multiplier 2.0).
TOOL_DIVERSITY_DIVISOR = 3
TOOL_DIVERSITY_CAP = 2.0

RISK_LEVEL_THRESHOLDS: tuple[tuple[int, RiskLevel], ...] = (
    (80, "critical"),
    (60, "high"),
    (30, "medium"),
)


def round_score(value: float) -> int:
    """Round to the nearest integer; exact halves round down (31.5 -> 31)."""

    return int(math.ceil(value - 0.5))


def weighted_severity_sum(
    severity_distribution: Mapping[Severity, int],
    weights: Mapping[Severity, int] = DEFAULT_SEVERITY_WEIGHTS,
) -> int:
    return sum(int(weights.get(sev, 0)) * int(severity_distribution.get(sev, 0)) for sev in SEVERITIES)


def compute_hotspot_score(
    severity_distribution: Mapping[Severity, int],
    tool_count: int,
    weights: Mapping[Severity, int] = DEFAULT_SEVERITY_WEIGHTS,
) -> int:
    """
    Score a file in [0, 100] from its severity counts and tool coverage.

    `min(round(sqrt(weighted_sum) * min(tools / 3, 2.0) * 10), 100)`. The square
    root keeps a pile of low findings from outranking a few critical ones, and
    the multiplier rewards files that several independent tools agree on.
    """

    weighted = weighted_severity_sum(severity_distribution, weights)
    if weighted <= 0 or tool_count <= 0:
        return 0
    multiplier = min(tool_count / TOOL_DIVERSITY_DIVISOR, TOOL_DIVERSITY_CAP)
    return min(round_score(math.sqrt(weighted) * multiplier * 10), MAX_SCORE)


def risk_level(score: int) -> RiskLevel:
    for threshold, level in RISK_LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return "low"


@dataclass(slots=True)
class FileMetrics:
    """Per-path counters. Mutated only through `add_issue`; never owns issues."""

    canonical_path: str
    weights: Mapping[Severity, int] = field(default_factory=lambda: DEFAULT_SEVERITY_WEIGHTS)
    issue_count: int = 0
    severity_distribution: dict[Severity, int] = field(default_factory=lambda: {sev: 0 for sev in SEVERITIES})
    analysis_type_distribution: dict[str, int] = field(default_factory=dict)
    tool_coverage: set[str] = field(default_factory=set)
    hotspot_score: int = 0
    last_updated: str = ""

    def add_issue(self, issue: UnifiedIssue) -> None:
        if issue.canonical_path != self.canonical_path:
            raise ValueError(f"issue for {issue.canonical_path!r} routed to metrics of {self.canonical_path!r}")
        self.issue_count += 1
        self.severity_distribution[issue.severity] += 1
        self.analysis_type_distribution[issue.analysis_type] = self.analysis_type_distribution.get(issue.analysis_type, 0) + 1
        self.tool_coverage.add(issue.tool_name)
        # ISO-8601 UTC timestamps compare correctly as strings.
        if issue.created_at > self.last_updated:
            self.last_updated = issue.created_at
        self.hotspot_score = compute_hotspot_score(self.severity_distribution, len(self.tool_coverage), self.weights)

    @property
    def risk_level(self) -> RiskLevel:
        return risk_level(self.hotspot_score)

    def to_dict(self) -> dict[str, object]:
        return {
            "canonicalPath": self.canonical_path,
            "issueCount": self.issue_count,
            "severityDistribution": {sev: self.severity_distribution[sev] for sev in SEVERITIES},
            "analysisTypeDistribution": dict(sorted(self.analysis_type_distribution.items())),
            "toolCoverage": sorted(self.tool_coverage),
            "hotspotScore": self.hotspot_score,
            "riskLevel": self.risk_level,
            "lastUpdated": self.last_updated,
        }


def build_file_metrics(
    issues: Iterable[UnifiedIssue],
    weights: Mapping[Severity, int] = DEFAULT_SEVERITY_WEIGHTS,
) -> dict[str, FileMetrics]:
    """Rebuild metrics from scratch, keyed by canonical path in first-seen order."""

    metrics: dict[str, FileMetrics] = {}
    for issue in issues:
        entry = metrics.get(issue.canonical_path)
        if entry is None:
            entry = FileMetrics(canonical_path=issue.canonical_path, weights=weights)
            metrics[issue.canonical_path] = entry
        entry.add_issue(issue)
    return metrics
