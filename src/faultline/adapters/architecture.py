from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from faultline.adapters.base import Adapter, Finding, as_list, as_mapping, make_adapter

HIGH_FAN_OUT = 15
VERY_HIGH_FAN_OUT = 25


def _cycle_findings(cycles: list[Any]) -> Iterator[Finding]:
    for cycle in cycles:
        files = [str(f) for f in as_list(cycle) if isinstance(f, str)]
        if not files:
            continue
        size = len(files)
        chain = " -> ".join([*files, files[0]])
        # One id per cycle, whichever file madge lists first.
        start = files.index(min(files))
        ordered = files[start:] + files[:start]
        yield {
            "id": f"madge-circular-{'-'.join(ordered)}",
            "path": files[0],
            "entityType": "module",
            "severity": "critical" if size > 3 else "high",
            "title": f"Circular dependency across {size} files",
            "description": f"Import cycle: {chain}.",
            "ruleId": "circular-dependency",
            "analysisType": "architecture-design",
            "architectureInfo": {
                "componentType": "module",
                "complexityMetrics": {"cyclomaticComplexity": size, "cognitiveComplexity": size * 2},
                "couplingLevel": "high" if size > 5 else ("medium" if size > 3 else "low"),
                "cohesionLevel": "low",
                "maintainabilityIndex": max(0, 100 - size * 10),
                "circularDependencies": files,
            },
            "architectureCategory": "dependency_cycle",
            "technicalDebtLevel": "critical" if size > 5 else ("high" if size > 3 else "medium"),
            "metadata": {"cycle": files},
        }


def _fan_out_findings(dependencies: dict[str, Any]) -> Iterator[Finding]:
    for module in sorted(dependencies):
        deps = [str(d) for d in as_list(dependencies[module])]
        if len(deps) <= HIGH_FAN_OUT:
            continue
        very_high = len(deps) > VERY_HIGH_FAN_OUT
        yield {
            "path": module,
            "entityType": "module",
            "severity": "high" if very_high else "medium",
            "title": f"High module fan-out: {len(deps)} imports",
            "description": f"Module {module!r} imports {len(deps)} modules; split it into focused modules.",
            "ruleId": "high-module-fan-out",
            "analysisType": "architecture-debt",
            "architectureInfo": {
                "componentType": "module",
                "complexityMetrics": {"fanOut": len(deps)},
                "couplingLevel": "high" if very_high else "medium",
                "cohesionLevel": "low",
                "maintainabilityIndex": max(0, 100 - len(deps) * 3),
            },
            "architectureCategory": "coupling",
            "technicalDebtLevel": "high" if very_high else "medium",
            "metadata": {"dependencies": deps},
        }


def _madge_findings(raw: Any) -> Iterator[Finding]:
    """
    Read madge output.

    Accepts `madge --circular --json` (a list of cycles), `madge --json` (a
    module -> imports map), or an object combining both under `circular` and
    `dependencies`.
    """

    if isinstance(raw, list):
        yield from _cycle_findings(raw)
        return
    data = as_mapping(raw)
    if "circular" in data or "dependencies" in data:
        yield from _cycle_findings(as_list(data.get("circular")))
        yield from _fan_out_findings(dict(as_mapping(data.get("dependencies"))))
        return
    yield from _fan_out_findings(dict(data))


def madge_adapter() -> Adapter:
    return make_adapter(
        name="madge",
        version="1",
        category="architecture",
        to_findings=_madge_findings,
        description="madge dependency graphs and import cycles.",
    )
