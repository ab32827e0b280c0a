from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from faultline.engine.correlation import path_slug
from faultline.engine.metrics import FileMetrics
from faultline.engine.types import RiskLevel
from faultline.result import UnifiedResult

CITY_SCHEMA_VERSION = 1

SHAPES: Mapping[RiskLevel, str] = {
    "critical": "pyramid",
    "high": "cylinder",
    "medium": "cone",
    "low": "box",
}
COLORS: Mapping[RiskLevel, str] = {
    "critical": "#dc3545",
    "high": "#fd7e14",
    "medium": "#ffc107",
    "low": "#28a745",
}

DISTRICT_SPACING = 100
BUILDING_SPACING = 15
BUILDING_FOOTPRINT = 10
MIN_HEIGHT = 5
MAX_HEIGHT = 50
HEIGHT_PER_ISSUE = 3

ROOT_DISTRICT = "."


def _directory(canonical_path: str) -> str:
    head, sep, _ = canonical_path.rstrip("/").rpartition("/")
    return head if sep and head else ROOT_DISTRICT


def _grid(index: int, columns: int) -> tuple[int, int]:
    return index % columns, index // columns


def _columns(count: int) -> int:
    return max(1, math.ceil(math.sqrt(count)))


def _building(metrics: FileMetrics, *, x: float, z: float) -> dict[str, Any]:
    level = metrics.risk_level
    return {
        "id": f"building-{path_slug(metrics.canonical_path)}",
        "name": metrics.canonical_path.rstrip("/").rsplit("/", 1)[-1],
        "canonicalPath": metrics.canonical_path,
        "shape": SHAPES[level],
        "color": COLORS[level],
        "riskLevel": level,
        "riskScore": metrics.hotspot_score,
        "issueCount": metrics.issue_count,
        "toolCoverage": sorted(metrics.tool_coverage),
        "height": max(MIN_HEIGHT, min(MAX_HEIGHT, metrics.issue_count * HEIGHT_PER_ISSUE)),
        "width": BUILDING_FOOTPRINT,
        "depth": BUILDING_FOOTPRINT,
        "position": {"x": x, "y": 0, "z": z},
    }


def build_city(result: UnifiedResult) -> dict[str, Any]:
    """
    Derive the 3D city payload from a finished result.

    One building per file with metrics, one road per correlation group and one
    district per directory. Districts sit on a square grid in sorted directory
    order; buildings sit on a smaller grid inside their district, sorted by
    path. The payload depends only on the result, never on wall-clock or
    randomness.
    """

    by_directory: dict[str, list[FileMetrics]] = {}
    for path in sorted(result.file_metrics):
        by_directory.setdefault(_directory(path), []).append(result.file_metrics[path])

    district_columns = _columns(len(by_directory))
    districts: list[dict[str, Any]] = []
    buildings: list[dict[str, Any]] = []
    for index, directory in enumerate(sorted(by_directory)):
        members = by_directory[directory]
        col, row = _grid(index, district_columns)
        origin_x = col * DISTRICT_SPACING
        origin_z = row * DISTRICT_SPACING

        inner_columns = _columns(len(members))
        for inner, metrics in enumerate(members):
            bx, bz = _grid(inner, inner_columns)
            buildings.append(
                _building(
                    metrics,
                    x=origin_x + bx * BUILDING_SPACING + BUILDING_FOOTPRINT / 2,
                    z=origin_z + bz * BUILDING_SPACING + BUILDING_FOOTPRINT / 2,
                )
            )

        total_issues = sum(m.issue_count for m in members)
        districts.append(
            {
                "id": f"district-{path_slug(directory)}",
                "name": directory,
                "files": [m.canonical_path for m in members],
                "totalIssues": total_issues,
                "averageRisk": round(sum(m.hotspot_score for m in members) / len(members), 2),
                "position": {"x": origin_x, "z": origin_z},
                "size": {
                    "width": inner_columns * BUILDING_SPACING,
                    "depth": math.ceil(len(members) / inner_columns) * BUILDING_SPACING,
                },
            }
        )

    groups = result.correlation_groups
    max_risk = max((g.risk_score for g in groups), default=0)
    roads = [
        {
            "id": f"road-{group.id}",
            "type": "correlation",
            "canonicalPath": group.canonical_path,
            "building": f"building-{path_slug(group.canonical_path)}",
            "lineRange": {"start": group.line_range.start, "end": group.line_range.end},
            "issueIds": [issue.id for issue in group.issues],
            "riskScore": group.risk_score,
            "weight": round(group.risk_score / max_risk, 4) if max_risk > 0 else 0.0,
        }
        for group in groups
    ]

    summary = result.get_summary()
    return {
        "schemaVersion": CITY_SCHEMA_VERSION,
        "buildings": buildings,
        "roads": roads,
        "districts": districts,
        "metadata": {
            "projectRoot": result.project_root,
            "totalIssues": summary["totalIssues"],
            "totalFiles": summary["filesAnalyzed"],
            "totalHotspots": summary["hotspots"],
            "generatedAt": result.metadata.get("generatedAt"),
        },
    }
