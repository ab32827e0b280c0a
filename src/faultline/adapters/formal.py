from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from faultline.adapters.base import Adapter, Finding, as_list, as_mapping, make_adapter

# Property classes taken from CBMC property ids such as `main.pointer_dereference.3`.
CBMC_SEVERITY = {
    "pointer_dereference": "critical",
    "array_bounds": "critical",
    "memory-leak": "critical",
    "memory_leak": "critical",
    "bounds": "critical",
    "overflow": "high",
    "division-by-zero": "high",
    "undefined-shift": "high",
    "nan": "high",
    "assertion": "high",
    "precondition": "medium",
    "postcondition": "medium",
    "unwind": "low",
}
_MEMORY_SAFETY = frozenset({"pointer_dereference", "array_bounds", "memory-leak", "memory_leak", "bounds"})


def _property_class(property_id: str) -> str:
    parts = property_id.split(".")
    if len(parts) >= 3:
        return parts[-2]
    return "assertion"


def _line(value: Any) -> int | None:
    # CBMC reports line numbers as strings.
    try:
        line = int(value)
    except (TypeError, ValueError):
        return None
    return line if line > 0 else None


def _cbmc_findings(raw: Any) -> Iterator[Finding]:
    """Read `cbmc --json-ui` output; only failed properties become findings."""

    messages = raw if isinstance(raw, list) else [raw]
    for message in messages:
        for result in as_list(as_mapping(message).get("result")):
            result = as_mapping(result)
            if str(result.get("status", "")).upper() != "FAILURE":
                continue
            property_id = str(result.get("property", ""))
            prop_class = _property_class(property_id)
            location = as_mapping(result.get("sourceLocation"))
            description = str(result.get("description", property_id))
            yield {
                "id": f"cbmc-{property_id}" if property_id else None,
                "path": location.get("file"),
                "severity": prop_class if prop_class in CBMC_SEVERITY else "assertion",
                "title": f"Verification failed: {description}",
                "description": f"CBMC found a counterexample for {property_id} in {location.get('function', '?')}.",
                "ruleId": prop_class,
                "analysisType": "security" if prop_class in _MEMORY_SAFETY else "semantic",
                "line": _line(location.get("line")),
                "metadata": {
                    "property": property_id,
                    "function": location.get("function"),
                    "traceSteps": len(as_list(result.get("trace"))),
                },
            }


def cbmc_adapter() -> Adapter:
    return make_adapter(
        name="cbmc",
        version="5",
        category="formal",
        to_findings=_cbmc_findings,
        severity_map=CBMC_SEVERITY,
        description="CBMC bounded model checker `--json-ui` output.",
    )
