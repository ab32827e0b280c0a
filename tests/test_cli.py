from __future__ import annotations

import json
from pathlib import Path

from helpers import unified_record
from typer.testing import CliRunner

from faultline import __version__
from faultline.cli import app

SERVICE_SOURCE = """\
def load(path):
    with open(path) as fh:
        return fh.read()


def save(path, data):
    with open(path, "w") as fh:
        fh.write(data)
"""


def _write_json(path: Path, payload: object) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def _hot_records() -> list[dict]:
    titles = ("Command injection", "Eval call", "Path traversal", "Open redirect")
    return [
        unified_record(
            path="src/login.py",
            line=10 + idx,
            severity="critical",
            title=title,
            ruleId=f"rule-{idx}",
            toolName=tool,
            analysisType="security",
        )
        for idx, (tool, title) in enumerate(zip(("codeql", "semgrep", "bandit", "gitleaks"), titles, strict=True))
    ]


def test_version_option() -> None:
    res = CliRunner().invoke(app, ["--version"])
    assert res.exit_code == 0
    assert res.stdout.strip() == __version__


def test_verbose_and_quiet_are_mutually_exclusive(tmp_path: Path) -> None:
    res = CliRunner().invoke(app, ["--verbose", "--quiet", "adapters", str(tmp_path)])
    assert res.exit_code == 2


def test_analyze_json_output(tmp_path: Path) -> None:
    semgrep = _write_json(
        tmp_path / "semgrep.json",
        {
            "results": [
                {
                    "check_id": "python.sqli",
                    "path": "src/login.py",
                    "start": {"line": 10, "col": 1},
                    "end": {"line": 10, "col": 20},
                    "extra": {"severity": "ERROR", "message": "SQL injection in login"},
                }
            ]
        },
    )
    unified = _write_json(tmp_path / "unified.json", _hot_records())

    res = CliRunner().invoke(
        app,
        ["--quiet", "analyze", str(tmp_path), "-i", f"semgrep={semgrep}", "-i", f"unified={unified}", "--format", "json"],
    )
    assert res.exit_code == 0, res.output

    payload = json.loads(res.stdout)
    assert payload["schemaVersion"] == 1
    assert payload["projectRoot"] == str(tmp_path.resolve())
    assert payload["summary"]["totalIssues"] == 5
    assert payload["summary"]["toolsCovered"] == ["bandit", "codeql", "gitleaks", "semgrep"]
    assert payload["metadata"]["adapters"]["semgrep"]["accepted"] == 1
    assert payload["hotspots"][0]["canonicalPath"] == "src/login.py"
    assert payload["hotspots"][0]["riskLevel"] == "critical"


def test_analyze_city_output(tmp_path: Path) -> None:
    unified = _write_json(tmp_path / "unified.json", _hot_records())

    res = CliRunner().invoke(app, ["--quiet", "analyze", str(tmp_path), "-i", f"unified={unified}", "--format", "city"])
    assert res.exit_code == 0, res.output

    city = json.loads(res.stdout)
    assert [b["shape"] for b in city["buildings"]] == ["pyramid"]
    assert len(city["roads"]) == 1
    assert city["districts"][0]["name"] == "src"


def test_analyze_terminal_output(tmp_path: Path) -> None:
    unified = _write_json(tmp_path / "unified.json", _hot_records())

    res = CliRunner().invoke(app, ["--quiet", "analyze", str(tmp_path), "-i", f"unified={unified}"])
    assert res.exit_code == 0, res.output
    assert "Hotspots" in res.stdout
    assert "src/login.py" in res.stdout


def test_fail_on_exits_nonzero_when_a_hotspot_reaches_the_level(tmp_path: Path) -> None:
    unified = _write_json(tmp_path / "unified.json", _hot_records())
    runner = CliRunner()

    res = runner.invoke(
        app, ["--quiet", "analyze", str(tmp_path), "-i", f"unified={unified}", "--format", "json", "--fail-on", "critical"]
    )
    assert res.exit_code == 1

    quiet_input = _write_json(tmp_path / "low.json", [unified_record(severity="low")])
    res = runner.invoke(
        app, ["--quiet", "analyze", str(tmp_path), "-i", f"unified={quiet_input}", "--format", "json", "--fail-on", "low"]
    )
    assert res.exit_code == 0, res.output


def test_function_boundaries_flag_splits_groups_by_function(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "svc.py").write_text(SERVICE_SOURCE, encoding="utf-8")
    records = [
        unified_record(path="src/svc.py", line=line, title=title, ruleId=f"r{line}", toolName=tool)
        for line, title, tool in (
            (2, "Unclosed resource", "a"),
            (3, "Unbounded read", "b"),
            (7, "Insecure write", "c"),
            (8, "Missing fsync", "d"),
        )
    ]
    unified = _write_json(tmp_path / "unified.json", records)
    runner = CliRunner()

    res = runner.invoke(app, ["--quiet", "analyze", str(tmp_path), "-i", f"unified={unified}", "--format", "json"])
    assert res.exit_code == 0, res.output
    groups = json.loads(res.stdout)["correlationGroups"]
    assert [(g["lineRange"]["start"], g["functionName"]) for g in groups] == [(2, None)]

    res = runner.invoke(
        app,
        ["--quiet", "analyze", str(tmp_path), "-i", f"unified={unified}", "--format", "json", "--function-boundaries"],
    )
    assert res.exit_code == 0, res.output
    groups = json.loads(res.stdout)["correlationGroups"]
    assert [(g["functionName"], g["lineRange"]["start"], g["lineRange"]["end"]) for g in groups] == [
        ("load", 1, 3),
        ("save", 6, 8),
    ]


def test_function_boundaries_never_read_files_outside_the_project(tmp_path: Path) -> None:
    project = tmp_path / "project"
    project.mkdir()
    outside = tmp_path / "elsewhere" / "svc.py"
    outside.parent.mkdir()
    outside.write_text(SERVICE_SOURCE, encoding="utf-8")
    records = [
        unified_record(path=str(outside), line=line, title=title, ruleId=f"r{line}", toolName=tool)
        for line, title, tool in ((2, "Unclosed resource", "a"), (7, "Insecure write", "b"))
    ]
    unified = _write_json(tmp_path / "unified.json", records)

    res = CliRunner().invoke(
        app,
        ["--quiet", "analyze", str(project), "-i", f"unified={unified}", "--format", "json", "--function-boundaries"],
    )
    assert res.exit_code == 0, res.output
    (group,) = json.loads(res.stdout)["correlationGroups"]
    assert group["canonicalPath"] == outside.as_posix()
    assert group["functionName"] is None


def test_analyze_rejects_bad_input_specs(tmp_path: Path) -> None:
    runner = CliRunner()
    existing = _write_json(tmp_path / "x.json", [])

    res = runner.invoke(app, ["analyze", str(tmp_path), "-i", "semgrep"])
    assert res.exit_code == 2

    res = runner.invoke(app, ["analyze", str(tmp_path), "-i", f"pmd={existing}"])
    assert res.exit_code == 2
    assert "No adapter registered for 'pmd'" in res.output

    res = runner.invoke(app, ["analyze", str(tmp_path), "-i", f"semgrep={tmp_path / 'missing.json'}"])
    assert res.exit_code == 2
    assert "Failed to read" in res.output

    (tmp_path / "broken.json").write_text("{oops", encoding="utf-8")
    res = runner.invoke(app, ["analyze", str(tmp_path), "-i", f"semgrep={tmp_path / 'broken.json'}"])
    assert res.exit_code == 2


def test_analyze_rejects_bad_options(tmp_path: Path) -> None:
    runner = CliRunner()
    assert runner.invoke(app, ["analyze", str(tmp_path), "--format", "xml"]).exit_code == 2
    assert runner.invoke(app, ["analyze", str(tmp_path), "--fail-on", "urgent"]).exit_code == 2
    assert runner.invoke(app, ["analyze", str(tmp_path), "--min-score", "40"]).exit_code == 2


def test_invalid_configuration_exits_with_usage_error(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text("[tool.faultline]\nhotspot-min-score = 10\n", encoding="utf-8")

    res = CliRunner().invoke(app, ["analyze", str(tmp_path)])
    assert res.exit_code == 2
    assert "Invalid configuration" in res.output


def test_analyze_reads_stdin(tmp_path: Path) -> None:
    res = CliRunner().invoke(
        app,
        ["--quiet", "analyze", str(tmp_path), "-i", "unified=-", "--format", "json"],
        input=json.dumps([unified_record()]),
    )
    assert res.exit_code == 0, res.output
    assert json.loads(res.stdout)["summary"]["totalIssues"] == 1


def test_adapters_command_json_lists_builtins(tmp_path: Path) -> None:
    res = CliRunner().invoke(app, ["adapters", str(tmp_path), "--format", "json"])
    assert res.exit_code == 0, res.stdout

    rows = {row["name"]: row for row in json.loads(res.stdout)}
    assert {"unified", "semgrep", "sarif", "npm-audit", "datadog", "cbmc"} <= set(rows)
    assert rows["cbmc"]["confidence"] == 0.95
    assert rows["semgrep"]["analysis_types"] == ["security"]


def test_adapters_command_terminal(tmp_path: Path) -> None:
    res = CliRunner().invoke(app, ["adapters", str(tmp_path)])
    assert res.exit_code == 0, res.output
    assert "Faultline Adapters" in res.stdout


def test_report_renders_a_saved_result(tmp_path: Path) -> None:
    unified = _write_json(tmp_path / "unified.json", _hot_records())
    runner = CliRunner()
    res = runner.invoke(app, ["--quiet", "analyze", str(tmp_path), "-i", f"unified={unified}", "--format", "json"])
    assert res.exit_code == 0, res.output
    saved = tmp_path / "result.json"
    saved.write_text(res.stdout, encoding="utf-8")

    res = runner.invoke(app, ["report", str(saved)])
    assert res.exit_code == 0, res.output
    assert "src/login.py" in res.stdout
    assert "Correlation groups: 1  Hotspots: 2" in res.stdout


def test_report_rejects_invalid_json(tmp_path: Path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text('{"schemaVersion": 99}', encoding="utf-8")

    res = CliRunner().invoke(app, ["report", str(bad)])
    assert res.exit_code == 2
    assert "Invalid JSON report" in res.output
