from __future__ import annotations

from helpers import make_issue

from faultline.engine.correlation import CorrelationEngine
from faultline.engine.hotspots import cluster_hotspot, detect_hotspots, recommended_actions
from faultline.engine.metrics import build_file_metrics


def _file_with(tools: str) -> list:
    severities = ["critical", "critical", "critical", "high", "high"]
    return [
        make_issue(f"i{idx}", severity=sev, tool=tools[idx % len(tools)], line=10 + idx * 20)
        for idx, sev in enumerate(severities)
    ]


def test_file_below_default_threshold_is_not_a_hotspot() -> None:
    metrics = build_file_metrics(_file_with("AB"))
    assert metrics["src/a.ts"].hotspot_score == 44
    assert detect_hotspots(metrics.values(), ()) == ()


def test_third_tool_makes_a_high_risk_file_hotspot() -> None:
    metrics = build_file_metrics(_file_with("ABC"))
    (hotspot,) = detect_hotspots(metrics.values(), ())

    assert hotspot.kind == "file"
    assert hotspot.risk_score == 66
    assert hotspot.risk_level == "high"
    assert hotspot.issue_count == 5
    assert hotspot.tool_coverage == ("A", "B", "C")
    assert hotspot.id.startswith("hotspot-file-src-a-ts-")
    assert hotspot.recommended_actions == ("Address 3 critical issues immediately",)


def test_min_score_is_configurable_upwards() -> None:
    metrics = build_file_metrics(_file_with("ABC"))
    assert detect_hotspots(metrics.values(), (), min_score=70) == ()


def test_cluster_hotspots_sit_beside_file_hotspots() -> None:
    issues = [
        make_issue("a", severity="critical", tool="A", line=5),
        make_issue("b", severity="critical", tool="B", line=6),
        make_issue("c", severity="critical", tool="C", line=7),
        make_issue("d", severity="critical", tool="D", line=8, analysis_type="security"),
    ]
    metrics = build_file_metrics(issues)
    groups = CorrelationEngine().build_groups(issues)
    hotspots = detect_hotspots(metrics.values(), groups)

    assert [h.kind for h in hotspots] == ["file", "cluster"]
    file_spot, cluster_spot = hotspots
    assert file_spot.risk_score == 84
    assert cluster_spot.risk_score == 60
    assert file_spot.id != cluster_spot.id
    assert cluster_spot.id == "hotspot-cluster-" + groups[0].id.removeprefix("correlation-")
    assert (cluster_spot.line_range.start, cluster_spot.line_range.end) == (5, 8)
    assert cluster_spot.recommended_actions == (
        "Address 4 critical issues immediately",
        "Conduct security review",
        "Prioritize comprehensive review",
    )


def test_hotspots_are_ordered_by_descending_risk() -> None:
    hot = [make_issue(f"h{i}", path="src/hot.ts", severity="critical", tool=t, line=100 * i + 1) for i, t in enumerate("ABCD")]
    warm = [make_issue(f"w{i}", path="src/warm.ts", severity="critical", tool=t, line=100 * i + 1) for i, t in enumerate("ABC")]
    metrics = build_file_metrics(hot + warm)
    hotspots = detect_hotspots(metrics.values(), ())
    assert [h.canonical_path for h in hotspots] == ["src/hot.ts", "src/warm.ts"]
    assert [h.risk_score for h in hotspots] == sorted((h.risk_score for h in hotspots), reverse=True)


def test_recommended_actions_rules() -> None:
    assert recommended_actions({"high": 3}, {"complexity": 3}, 1) == (
        "Refactor 3 high-severity issues",
        "Decompose complex functions",
    )
    assert recommended_actions({"high": 2}, {"complexity": 2}, 3) == ()


def test_cluster_hotspot_counts_its_members() -> None:
    issues = [make_issue("a", severity="high", tool="A"), make_issue("b", severity="low", tool="B", analysis_type="style")]
    (group,) = CorrelationEngine().build_groups(issues)
    hotspot = cluster_hotspot(group)
    assert hotspot.severity_distribution["high"] == 1
    assert hotspot.severity_distribution["low"] == 1
    assert dict(hotspot.analysis_type_distribution) == {"quality": 1, "style": 1}
