from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from faultline.engine.correlation import path_slug
from faultline.engine.metrics import FileMetrics, risk_level
from faultline.engine.types import SEVERITIES, CorrelationGroup, Hotspot, LineRange, Severity

_KIND_ORDER = {"file": 0, "cluster": 1}


def recommended_actions(
    severity_distribution: Mapping[Severity, int],
    analysis_type_distribution: Mapping[str, int],
    tool_count: int,
) -> tuple[str, ...]:
    actions: list[str] = []
    critical = severity_distribution.get("critical", 0)
    high = severity_distribution.get("high", 0)
    if critical > 0:
        actions.append(f"Address {critical} critical issues immediately")
    if high > 2:
        actions.append(f"Refactor {high} high-severity issues")
    if analysis_type_distribution.get("security", 0) > 0:
        actions.append("Conduct security review")
    if analysis_type_distribution.get("complexity", 0) > 2:
        actions.append("Decompose complex functions")
    if tool_count >= 4:
        actions.append("Prioritize comprehensive review")
    return tuple(actions)


def file_hotspot(metrics: FileMetrics) -> Hotspot:
    severity = MappingProxyType({sev: metrics.severity_distribution.get(sev, 0) for sev in SEVERITIES})
    types = MappingProxyType(dict(sorted(metrics.analysis_type_distribution.items())))
    return Hotspot(
        id=f"hotspot-file-{path_slug(metrics.canonical_path)}",
        kind="file",
        canonical_path=metrics.canonical_path,
        risk_score=metrics.hotspot_score,
        risk_level=risk_level(metrics.hotspot_score),
        issue_count=metrics.issue_count,
        line_range=LineRange(start=1, end=None),
        severity_distribution=severity,
        analysis_type_distribution=types,
        tool_coverage=tuple(sorted(metrics.tool_coverage)),
        recommended_actions=recommended_actions(severity, types, len(metrics.tool_coverage)),
    )


def cluster_hotspot(group: CorrelationGroup) -> Hotspot:
    severity_counts = {sev: 0 for sev in SEVERITIES}
    type_counts: dict[str, int] = {}
    for issue in group.issues:
        severity_counts[issue.severity] += 1
        type_counts[issue.analysis_type] = type_counts.get(issue.analysis_type, 0) + 1
    severity = MappingProxyType(severity_counts)
    types = MappingProxyType(dict(sorted(type_counts.items())))
    return Hotspot(
        id=f"hotspot-cluster-{group.id.removeprefix('correlation-')}",
        kind="cluster",
        canonical_path=group.canonical_path,
        risk_score=group.risk_score,
        risk_level=risk_level(group.risk_score),
        issue_count=len(group.issues),
        line_range=group.line_range,
        severity_distribution=severity,
        analysis_type_distribution=types,
        tool_coverage=group.tool_coverage,
        recommended_actions=recommended_actions(severity, types, len(group.tool_coverage)),
    )


def detect_hotspots(
    metrics: Iterable[FileMetrics],
    groups: Iterable[CorrelationGroup],
    *,
    min_score: int = 50,
) -> tuple[Hotspot, ...]:
    """
    Derive file- and cluster-level hotspots at or above `min_score`.

    A file can appear twice (as a file and as one of its clusters); the two
    entries keep distinct ids. Ordered by descending risk score, then file
    before cluster, then path and id.
    """

    found = [file_hotspot(m) for m in metrics if m.hotspot_score >= min_score]
    found.extend(cluster_hotspot(g) for g in groups if g.risk_score >= min_score)
    found.sort(key=lambda h: (-h.risk_score, _KIND_ORDER[h.kind], h.canonical_path, h.id))
    return tuple(found)
