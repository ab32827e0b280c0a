from __future__ import annotations

from datetime import datetime, timedelta, timezone

from helpers import FIXED_STAMP, fixed_clock, unified_record

from faultline.adapters.static import unified_adapter
from faultline.engine.types import DependencyDetails, PerformanceDetails, UnifiedIssue, ValidationError
from faultline.normalizer import format_timestamp, issue_fingerprint, normalize_record
from faultline.paths import PathNormalizer


def _normalize(record, *, category: str = "quality", paths: PathNormalizer | None = None):
    adapter = unified_adapter(category, name="unified")
    return normalize_record(record, adapter=adapter, paths=paths or PathNormalizer("/repo"), clock=fixed_clock)


def test_valid_record_becomes_unified_issue() -> None:
    issue = _normalize(unified_record(path="/repo/src/app.py", column=7, metadata={"cwe": "CWE-798"}))
    assert isinstance(issue, UnifiedIssue)
    assert issue.canonical_path == "src/app.py"
    assert issue.severity == "high"
    assert issue.analysis_type == "quality"
    assert issue.line == 3
    assert issue.column == 7
    assert issue.created_at == FIXED_STAMP
    assert issue.tool_name == "unified"
    assert issue.metadata["cwe"] == "CWE-798"
    assert issue.entity.original_identifier == "/repo/src/app.py"
    assert issue.entity.name == "app.py"
    # Adapter confidence (0.85) times absolute-in-project path confidence (0.8).
    assert issue.entity.confidence == 0.68


def test_column_defaults_to_one_when_only_line_is_given() -> None:
    issue = _normalize(unified_record())
    assert isinstance(issue, UnifiedIssue)
    assert issue.column == 1


def test_generated_ids_are_stable_fingerprints() -> None:
    first = _normalize(unified_record())
    second = _normalize(unified_record())
    assert isinstance(first, UnifiedIssue) and isinstance(second, UnifiedIssue)
    assert first.id == second.id
    assert first.id.startswith("unified-")

    expected = issue_fingerprint(tool="unified", rule_id="secret", path="src/app.py", line=3, column=1, title="Hardcoded secret")
    assert first.id == f"unified-{expected}"


def test_explicit_id_and_tool_name_are_preserved() -> None:
    issue = _normalize(unified_record(id="custom-1", toolName="codeql"))
    assert isinstance(issue, UnifiedIssue)
    assert issue.id == "custom-1"
    assert issue.tool_name == "codeql"


def test_every_offending_field_is_reported() -> None:
    rejected = _normalize({"path": "../etc/passwd", "severity": "", "title": "   ", "line": 0})
    assert isinstance(rejected, ValidationError)
    fields = {message.split(":", 1)[0] for message in rejected.errors}
    assert {"path", "severity", "title", "line"} <= fields


def test_unknown_severity_is_rejected() -> None:
    rejected = _normalize(unified_record(severity="catastrophic"))
    assert isinstance(rejected, ValidationError)
    assert rejected.field == "severity"


def test_analysis_type_must_belong_to_the_adapter_category() -> None:
    accepted = _normalize(unified_record(analysisType="complexity"))
    assert isinstance(accepted, UnifiedIssue)
    assert accepted.analysis_type == "complexity"

    rejected = _normalize(unified_record(analysisType="dependency-security"))
    assert isinstance(rejected, ValidationError)
    assert rejected.field == "analysisType"


def test_non_mapping_record_is_rejected() -> None:
    rejected = _normalize(["not", "a", "record"])
    assert isinstance(rejected, ValidationError)
    assert rejected.field == "record"


def test_performance_records_require_their_sub_record() -> None:
    rejected = _normalize(unified_record(), category="performance")
    assert isinstance(rejected, ValidationError)
    assert "performanceMetrics: is required" in rejected.errors

    issue = _normalize(
        unified_record(
            performanceMetrics={"loadTime": 4200},
            performanceCategory="loading",
            impactLevel="user_facing",
        ),
        category="performance",
    )
    assert isinstance(issue, UnifiedIssue)
    assert isinstance(issue.details, PerformanceDetails)
    assert issue.details.metrics["loadTime"] == 4200
    assert issue.analysis_type == "performance"


def test_dependency_records_carry_dependency_details() -> None:
    issue = _normalize(
        {
            "path": "minimist",
            "entityType": "dependency",
            "severity": "critical",
            "title": "Prototype pollution in minimist",
            "dependencyInfo": {
                "packageName": "minimist",
                "version": "1.2.0",
                "type": "transitive",
                "depth": 3,
                "licenses": ["MIT"],
                "vulnerabilities": [{"id": "GHSA-xvch-5gv4-984h"}],
            },
            "supplyChainRisk": "critical",
        },
        category="dependency",
    )
    assert isinstance(issue, UnifiedIssue)
    assert issue.canonical_path == "node_modules/minimist"
    assert isinstance(issue.details, DependencyDetails)
    assert issue.details.depth == 3
    assert issue.details.licenses == ("MIT",)
    assert issue.analysis_type == "dependency-security"


def test_format_timestamp_is_utc_with_milliseconds() -> None:
    moment = datetime(2024, 1, 2, 5, 4, 3, 123456, tzinfo=timezone(timedelta(hours=2)))
    assert format_timestamp(moment) == "2024-01-02T03:04:03.123Z"
