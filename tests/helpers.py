from __future__ import annotations

from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from faultline.engine.types import Entity, UnifiedIssue

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)
FIXED_STAMP = "2024-05-01T12:00:00.000Z"


def fixed_clock() -> datetime:
    return FIXED_NOW


def make_issue(
    issue_id: str,
    *,
    path: str = "src/a.ts",
    line: int | None = 5,
    severity: str = "medium",
    tool: str = "A",
    title: str | None = None,
    analysis_type: str = "quality",
    rule_id: str = "",
    confidence: float = 0.85,
    end_line: int | None = None,
    entity_type: str = "file",
    created_at: str = FIXED_STAMP,
    metadata: dict[str, Any] | None = None,
) -> UnifiedIssue:
    entity = Entity(
        id=f"{entity_type}:{path}",
        type=entity_type,
        name=path.rsplit("/", 1)[-1],
        canonical_path=path,
        original_identifier=path,
        tool_name=tool,
        confidence=confidence,
    )
    return UnifiedIssue(
        id=issue_id,
        entity=entity,
        severity=severity,  # type: ignore[arg-type]
        analysis_type=analysis_type,  # type: ignore[arg-type]
        title=title if title is not None else f"Finding {issue_id}",
        tool_name=tool,
        created_at=created_at,
        rule_id=rule_id,
        line=line,
        column=1 if line is not None else None,
        end_line=end_line,
        metadata=MappingProxyType(dict(metadata or {})),
    )


def unified_record(**overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "path": "src/app.py",
        "severity": "high",
        "title": "Hardcoded secret",
        "ruleId": "secret",
        "line": 3,
    }
    record.update(overrides)
    return record
