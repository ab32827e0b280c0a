from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest
from helpers import FIXED_STAMP, fixed_clock, unified_record

from faultline.adapters import Adapter, AdapterRegistry, AdapterUnavailable, builtin_adapters, make_adapter
from faultline.config import FaultlineConfig
from faultline.core import AdapterBatch, CorrelationCore, gather_batches


def _semgrep_result(path: str, line: int, check_id: str, message: str, severity: str = "ERROR") -> dict:
    return {
        "check_id": check_id,
        "path": path,
        "start": {"line": line, "col": 1},
        "end": {"line": line, "col": 10},
        "extra": {"severity": severity, "message": message},
    }


def test_unknown_tool_raises_adapter_unavailable(core: CorrelationCore) -> None:
    with pytest.raises(AdapterUnavailable, match="No adapter registered for 'pmd'"):
        core.ingest("pmd", {})


def test_ingest_counts_outcomes_per_adapter(core: CorrelationCore) -> None:
    records = [
        unified_record(),
        unified_record(line=20, title="Weak hash"),
        unified_record(path="../outside.py"),
    ]
    report = core.ingest("unified", records)
    assert (report.received, report.accepted, report.rejected) == (3, 2, 1)
    assert core.result.metadata["adapters"]["unified"] == {
        "received": 3,
        "accepted": 2,
        "rejected": 1,
        "excluded": 0,
        "dropped": 0,
    }
    assert all(issue.created_at == FIXED_STAMP for issue in core.result.issues)


def test_converter_errors_become_adapter_failures(config: FaultlineConfig) -> None:
    def explode(raw):
        raise ValueError("unexpected report layout")

    broken = make_adapter(name="broken", version="1", category="quality", to_findings=explode)
    core = CorrelationCore(config, registry=AdapterRegistry([*builtin_adapters(), broken]), clock=fixed_clock)

    report = core.ingest("broken", {})
    assert report.failed is True
    assert core.result.metadata["adapterFailures"] == [{"tool": "broken", "error": "ValueError: unexpected report layout"}]


def test_run_produces_groups_and_hotspots(core: CorrelationCore) -> None:
    core.ingest(
        "semgrep",
        {
            "results": [
                _semgrep_result("src/login.py", 14, "python.sqli", "SQL injection in login"),
                _semgrep_result("src/login.py", 18, "python.eval", "Use of eval"),
            ]
        },
    )
    core.ingest(
        "unified",
        [
            unified_record(path="src/login.py", line=14, severity="critical", title="SQL Injection Vulnerability", toolName="codeql", analysisType="security"),
            unified_record(path="src/login.py", line=20, severity="critical", title="Hardcoded password", toolName="gitleaks", analysisType="security"),
        ],
    )

    result = core.run()
    assert result.deduplication_stats.duplicates_removed == 1
    assert len(result.issues) == 3
    (group,) = result.correlation_groups
    assert group.canonical_path == "src/login.py"
    assert group.tool_coverage == ("codeql", "gitleaks", "semgrep")
    assert group.risk_score == 45
    assert [(h.kind, h.risk_score) for h in result.hotspots] == [("file", 55)]
    assert result.metadata["generatedAt"] == FIXED_STAMP


def test_identical_input_gives_identical_output(tmp_path: Path) -> None:
    def run_once() -> str:
        core = CorrelationCore(FaultlineConfig(project_root=str(tmp_path)), clock=fixed_clock)
        core.ingest("unified", [unified_record(), unified_record(line=4, title="Other", toolName="x")])
        return json.dumps(core.run().to_dict(), sort_keys=True)

    assert run_once() == run_once()


def test_gather_batches_isolates_slow_and_broken_adapters() -> None:
    async def ok():
        return {"results": []}

    async def slow():
        await asyncio.sleep(5)

    async def broken():
        raise RuntimeError("api returned 500")

    batches = asyncio.run(gather_batches({"semgrep": ok, "datadog": slow, "sonarqube": broken}, timeout=0.05))

    assert [b.tool for b in batches] == ["semgrep", "datadog", "sonarqube"]
    assert batches[0] == AdapterBatch(tool="semgrep", raw={"results": []})
    assert batches[1].failed and "timed out" in (batches[1].error or "")
    assert batches[2].failed and batches[2].error == "RuntimeError: api returned 500"


def test_failed_batches_are_recorded_and_the_run_continues(core: CorrelationCore) -> None:
    core.ingest_batch(AdapterBatch(tool="datadog", failed=True, error="timed out after 30s"))
    core.ingest_batch(AdapterBatch(tool="unified", raw=[unified_record()]))

    result = core.run()
    assert len(result.issues) == 1
    assert result.metadata["adapterFailures"] == [{"tool": "datadog", "error": "timed out after 30s"}]


def test_category_checks_apply_to_hand_built_adapters(config: FaultlineConfig) -> None:
    newrelic = Adapter(
        name="newrelic",
        version="1",
        category="apm",
        to_findings=lambda raw: raw,
        validate=lambda record: [],
    )
    core = CorrelationCore(config, registry=AdapterRegistry([*builtin_adapters(), newrelic]), clock=fixed_clock)
    slow = unified_record(
        path="services/api",
        entityType="service",
        title="Slow endpoint",
        performanceMetrics={"responseTime": 2400},
        performanceCategory="response_time",
        impactLevel="user_facing",
    )
    bare = unified_record(path="services/api", entityType="service", title="Error burst", line=9)

    report = core.ingest("newrelic", [slow, bare])

    assert (report.received, report.accepted, report.rejected) == (2, 1, 1)
    (rejected,) = core.result.validation.rejected
    assert rejected.field == "performanceMetrics"
    assert core.result.metadata["adapters"]["newrelic"]["rejected"] == 1
