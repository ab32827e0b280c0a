from __future__ import annotations

import json
from typing import Any

from faultline.reporters.city import build_city
from faultline.result import RESULT_SCHEMA_VERSION, UnifiedResult

REPORT_SCHEMA_URI = "schemas/faultline-result.schema.json"


def render_json(result: UnifiedResult) -> str:
    payload = {"$schema": REPORT_SCHEMA_URI, **result.to_dict()}
    return json.dumps(payload, indent=2, sort_keys=False)


def render_city_json(result: UnifiedResult) -> str:
    return json.dumps(build_city(result), indent=2, sort_keys=False)


def parse_json_report(text: str) -> dict[str, Any]:
    """Load a report written by `render_json`, checking its schema version."""

    payload = json.loads(text)
    if not isinstance(payload, dict):
        raise ValueError("Report must be a JSON object.")
    version = payload.get("schemaVersion")
    if version != RESULT_SCHEMA_VERSION:
        raise ValueError(f"Unsupported report schemaVersion: {version!r} (expected {RESULT_SCHEMA_VERSION}).")
    for key in ("summary", "issues", "hotspots"):
        if key not in payload:
            raise ValueError(f"Report is missing {key!r}.")
    return payload
