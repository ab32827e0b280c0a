from __future__ import annotations

import json

from helpers import make_issue

from faultline.core import CorrelationCore
from faultline.reporters import build_city, render_city_json


def _populate(core: CorrelationCore) -> None:
    issues = [
        make_issue("l1", path="src/api/login.ts", severity="critical", tool="A", line=5, title="SQL injection"),
        make_issue("l2", path="src/api/login.ts", severity="critical", tool="B", line=6, title="Hardcoded password"),
        make_issue("l3", path="src/api/login.ts", severity="critical", tool="C", line=7, title="Weak hash"),
        make_issue("l4", path="src/api/login.ts", severity="critical", tool="D", line=8, title="Open redirect"),
        make_issue("u1", path="src/api/util.ts", severity="low", tool="A", line=3, title="Unused import"),
        make_issue("w1", path="src/web/app.ts", severity="high", tool="A", line=10, title="Unused variable"),
        make_issue("w2", path="src/web/app.ts", severity="high", tool="B", line=12, title="Deep nesting"),
        make_issue("w3", path="src/web/app.ts", severity="high", tool="C", line=14, title="Magic number"),
        make_issue("r1", path="README.md", severity="medium", tool="A", line=1, title="Broken link"),
        make_issue("r2", path="README.md", severity="medium", tool="B", line=50, title="Typo heading"),
    ]
    for issue in issues:
        assert core.result.add_issue(issue) is None


def test_buildings_take_shape_and_color_from_risk(core: CorrelationCore) -> None:
    _populate(core)
    city = build_city(core.run())

    buildings = {b["canonicalPath"]: b for b in city["buildings"]}
    assert [b["canonicalPath"] for b in city["buildings"]] == [
        "README.md",
        "src/api/login.ts",
        "src/api/util.ts",
        "src/web/app.ts",
    ]

    login = buildings["src/api/login.ts"]
    assert (login["riskScore"], login["riskLevel"], login["shape"], login["color"]) == (84, "critical", "pyramid", "#dc3545")
    assert login["height"] == 12
    assert login["toolCoverage"] == ["A", "B", "C", "D"]

    app = buildings["src/web/app.ts"]
    assert (app["riskScore"], app["shape"], app["color"]) == (46, "cone", "#ffc107")

    util = buildings["src/api/util.ts"]
    assert (util["riskScore"], util["shape"]) == (5, "box")
    assert util["height"] == 5


def test_districts_follow_directories_on_a_grid(core: CorrelationCore) -> None:
    _populate(core)
    city = build_city(core.run())

    districts = {d["name"]: d for d in city["districts"]}
    assert [d["name"] for d in city["districts"]] == [".", "src/api", "src/web"]
    assert districts["."]["position"] == {"x": 0, "z": 0}
    assert districts["src/api"]["position"] == {"x": 100, "z": 0}
    assert districts["src/web"]["position"] == {"x": 0, "z": 100}

    api = districts["src/api"]
    assert api["files"] == ["src/api/login.ts", "src/api/util.ts"]
    assert api["totalIssues"] == 5
    assert api["averageRisk"] == 44.5
    assert api["size"] == {"width": 30, "depth": 15}

    positions = {b["canonicalPath"]: b["position"] for b in city["buildings"]}
    assert positions["src/api/login.ts"] == {"x": 105.0, "y": 0, "z": 5.0}
    assert positions["src/api/util.ts"] == {"x": 120.0, "y": 0, "z": 5.0}


def test_roads_connect_correlated_lines(core: CorrelationCore) -> None:
    _populate(core)
    city = build_city(core.run())

    roads = {r["canonicalPath"]: r for r in city["roads"]}
    assert sorted(roads) == ["src/api/login.ts", "src/web/app.ts"]
    assert roads["src/api/login.ts"]["riskScore"] == 60
    assert roads["src/api/login.ts"]["weight"] == 1.0
    assert roads["src/api/login.ts"]["issueIds"] == ["l1", "l2", "l3", "l4"]
    assert roads["src/api/login.ts"]["lineRange"] == {"start": 5, "end": 8}
    # 21 * 1.5 = 31.5 rounds down.
    assert roads["src/web/app.ts"]["riskScore"] == 31
    assert roads["src/web/app.ts"]["weight"] == 0.5167
    assert all(r["building"].startswith("building-") for r in city["roads"])
    building_ids = {b["id"] for b in city["buildings"]}
    assert {r["building"] for r in city["roads"]} <= building_ids


def test_city_metadata_and_determinism(core: CorrelationCore) -> None:
    _populate(core)
    result = core.run()

    city = build_city(result)
    assert city["schemaVersion"] == 1
    assert city["metadata"] == {
        "projectRoot": result.project_root,
        "totalIssues": 10,
        "totalFiles": 4,
        "totalHotspots": 2,
        "generatedAt": "2024-05-01T12:00:00.000Z",
    }
    assert render_city_json(result) == render_city_json(result)
    assert json.loads(render_city_json(result)) == city


def test_empty_result_gives_an_empty_city(core: CorrelationCore) -> None:
    city = build_city(core.run())
    assert (city["buildings"], city["roads"], city["districts"]) == ([], [], [])
    assert city["metadata"]["totalFiles"] == 0
