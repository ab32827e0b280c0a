from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from faultline.adapters.base import Adapter, Finding, as_list, as_mapping, make_adapter
from faultline.validation import FieldErrors

_TITLE_LIMIT = 120


def _title(message: str) -> str:
    first = message.strip().splitlines()[0] if message.strip() else ""
    if len(first) > _TITLE_LIMIT:
        first = first[: _TITLE_LIMIT - 3].rstrip() + "..."
    return first


def _positive(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return None


def _from_zero_based(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value + 1
    return None


# -- unified -----------------------------------------------------------------


def _unified_findings(raw: Any) -> Iterator[Finding]:
    if isinstance(raw, dict):
        raw = raw.get("findings", raw.get("issues", []))
    for item in as_list(raw):
        yield item


def unified_adapter(category: str = "quality", *, name: str = "unified") -> Adapter:
    """Pass-through for records that already follow the ingestion contract."""

    return make_adapter(
        name=name,
        version="1",
        category=category,
        to_findings=_unified_findings,
        description="Unified-issue-shaped JSON records.",
    )


# -- semgrep -----------------------------------------------------------------

SEMGREP_SEVERITY = {"error": "critical", "warning": "high", "info": "medium", "inventory": "info", "experiment": "info"}


def _semgrep_findings(raw: Any) -> Iterator[Finding]:
    for result in as_list(as_mapping(raw).get("results")):
        result = as_mapping(result)
        extra = as_mapping(result.get("extra"))
        start = as_mapping(result.get("start"))
        end = as_mapping(result.get("end"))
        metadata = as_mapping(extra.get("metadata"))
        message = str(extra.get("message", ""))
        line = _positive(start.get("line"))
        yield {
            "path": result.get("path"),
            "severity": extra.get("severity"),
            "title": _title(message),
            "description": message,
            "ruleId": result.get("check_id"),
            "line": line,
            "column": _positive(start.get("col")) if line else None,
            "endLine": _positive(end.get("line")) if line else None,
            "endColumn": _positive(end.get("col")) if line else None,
            "metadata": {
                "cwe": metadata.get("cwe", []),
                "owasp": metadata.get("owasp", []),
                "confidence": metadata.get("confidence", "medium"),
                "raw": dict(result),
            },
        }


def semgrep_adapter() -> Adapter:
    return make_adapter(
        name="semgrep",
        version="1",
        category="security",
        to_findings=_semgrep_findings,
        severity_map=SEMGREP_SEVERITY,
        description="Semgrep `--json` output.",
    )


# -- SARIF (CodeQL and friends) ----------------------------------------------

SARIF_SEVERITY = {
    "critical": "critical",
    "high": "high",
    "medium": "medium",
    "low": "low",
    "error": "high",
    "warning": "medium",
    "note": "low",
    "none": "info",
}


def _security_severity(value: Any) -> str | None:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if score >= 9.0:
        return "critical"
    if score >= 7.0:
        return "high"
    if score >= 4.0:
        return "medium"
    return "low"


def _sarif_findings(raw: Any) -> Iterator[Finding]:
    for run in as_list(as_mapping(raw).get("runs")):
        run = as_mapping(run)
        driver = as_mapping(as_mapping(run.get("tool")).get("driver"))
        tool_name = str(driver.get("name") or "sarif").strip().lower().replace(" ", "-")
        rules: dict[str, Any] = {}
        for rule_entry in as_list(driver.get("rules")):
            rule_entry = as_mapping(rule_entry)
            if rule_entry.get("id") is not None:
                rules[str(rule_entry["id"])] = rule_entry
        for result in as_list(run.get("results")):
            result = as_mapping(result)
            rule_id = str(result.get("ruleId") or as_mapping(result.get("rule")).get("id") or "")
            rule = rules.get(rule_id, {})
            rule_props = as_mapping(rule.get("properties"))
            level = result.get("level") or as_mapping(rule.get("defaultConfiguration")).get("level") or "warning"
            severity = _security_severity(rule_props.get("security-severity")) or level
            message = str(as_mapping(result.get("message")).get("text", ""))
            locations = as_list(result.get("locations"))
            physical = as_mapping(as_mapping(locations[0]).get("physicalLocation")) if locations else {}
            uri = as_mapping(physical.get("artifactLocation")).get("uri")
            region = as_mapping(physical.get("region"))
            line = _positive(region.get("startLine"))
            short = as_mapping(rule.get("shortDescription")).get("text")
            yield {
                "toolName": tool_name,
                "path": uri,
                "severity": severity,
                "title": _title(str(short or message)),
                "description": message,
                "ruleId": rule_id,
                "line": line,
                "column": _positive(region.get("startColumn")) if line else None,
                "endLine": _positive(region.get("endLine")) if line else None,
                "endColumn": _positive(region.get("endColumn")) if line else None,
                "metadata": {"tags": list(as_list(rule_props.get("tags"))), "raw": dict(result)},
            }


def sarif_adapter() -> Adapter:
    return make_adapter(
        name="sarif",
        version="2.1.0",
        category="security",
        to_findings=_sarif_findings,
        severity_map=SARIF_SEVERITY,
        description="SARIF 2.1.0 logs (CodeQL, and any other SARIF producer).",
    )


# -- SonarQube ---------------------------------------------------------------

SONARQUBE_SEVERITY = {"blocker": "critical", "critical": "high", "major": "medium", "minor": "low", "info": "info"}
_SONAR_TYPES = {"VULNERABILITY": "security", "SECURITY_HOTSPOT": "security", "BUG": "quality", "CODE_SMELL": "quality"}


def _sonarqube_findings(raw: Any) -> Iterator[Finding]:
    for issue in as_list(as_mapping(raw).get("issues")):
        issue = as_mapping(issue)
        text_range = as_mapping(issue.get("textRange"))
        line = _positive(issue.get("line")) or _positive(text_range.get("startLine"))
        rule = str(issue.get("rule", ""))
        analysis_type = _SONAR_TYPES.get(str(issue.get("type", "")).upper(), "quality")
        if "cognitive" in rule.lower() or "complexity" in rule.lower():
            analysis_type = "complexity"
        message = str(issue.get("message", ""))
        yield {
            "id": f"sonarqube-{issue['key']}" if issue.get("key") else None,
            "path": issue.get("component"),
            "severity": issue.get("severity"),
            "title": _title(message),
            "description": message,
            "ruleId": rule,
            "analysisType": analysis_type,
            "line": line,
            "column": _from_zero_based(text_range.get("startOffset")) if line else None,
            "endLine": _positive(text_range.get("endLine")) if line else None,
            "endColumn": _from_zero_based(text_range.get("endOffset")) if line else None,
            "metadata": {"effort": issue.get("effort"), "tags": list(as_list(issue.get("tags"))), "raw": dict(issue)},
        }


def sonarqube_adapter() -> Adapter:
    return make_adapter(
        name="sonarqube",
        version="1",
        category="quality",
        to_findings=_sonarqube_findings,
        severity_map=SONARQUBE_SEVERITY,
        description="SonarQube `api/issues/search` responses.",
    )


# -- ESLint ------------------------------------------------------------------

ESLINT_SEVERITY = {"fatal": "critical", "2": "high", "1": "medium", "0": "info"}
_ESLINT_COMPLEXITY_RULES = frozenset(
    {"complexity", "max-depth", "max-lines", "max-lines-per-function", "max-nested-callbacks", "max-params", "max-statements"}
)


def _eslint_rule_type(rule_id: str) -> str:
    if rule_id in _ESLINT_COMPLEXITY_RULES or rule_id.endswith("/cognitive-complexity"):
        return "complexity"
    if rule_id.startswith(("prettier/", "@stylistic/")) or rule_id in {"indent", "quotes", "semi"}:
        return "style"
    if rule_id.startswith(("security/", "no-unsanitized/")) or rule_id in {"no-eval", "no-implied-eval"}:
        return "security"
    return "quality"


def _eslint_findings(raw: Any) -> Iterator[Finding]:
    for file_result in as_list(raw):
        file_result = as_mapping(file_result)
        for message in as_list(file_result.get("messages")):
            message = as_mapping(message)
            rule_id = str(message.get("ruleId") or "parse-error")
            severity = "fatal" if message.get("fatal") else str(message.get("severity", 1))
            text = str(message.get("message", ""))
            line = _positive(message.get("line"))
            yield {
                "path": file_result.get("filePath"),
                "severity": severity,
                "title": _title(text),
                "description": text,
                "ruleId": rule_id,
                "analysisType": _eslint_rule_type(rule_id),
                "line": line,
                "column": _positive(message.get("column")) if line else None,
                "endLine": _positive(message.get("endLine")) if line else None,
                "endColumn": _positive(message.get("endColumn")) if line else None,
                "metadata": {"raw": dict(message)},
            }


def eslint_adapter() -> Adapter:
    return make_adapter(
        name="eslint",
        version="1",
        category="quality",
        to_findings=_eslint_findings,
        severity_map=ESLINT_SEVERITY,
        description="ESLint `--format json` output.",
    )


# -- Bandit ------------------------------------------------------------------

BANDIT_SEVERITY = {"high": "high", "medium": "medium", "low": "low", "undefined": "info"}


def _bandit_findings(raw: Any) -> Iterator[Finding]:
    for result in as_list(as_mapping(raw).get("results")):
        result = as_mapping(result)
        text = str(result.get("issue_text", ""))
        line = _positive(result.get("line_number"))
        line_range = [v for v in as_list(result.get("line_range")) if _positive(v)]
        cwe = as_mapping(result.get("issue_cwe")).get("id")
        yield {
            "path": result.get("filename"),
            "severity": result.get("issue_severity"),
            "title": _title(f"{result.get('test_name', '')}: {text}" if result.get("test_name") else text),
            "description": text,
            "ruleId": result.get("test_id"),
            "line": line,
            # Bandit columns are 0-based offsets.
            "column": _from_zero_based(result.get("col_offset")) if line else None,
            "endLine": max(line_range) if line and line_range and max(line_range) >= line else None,
            "metadata": {"confidence": result.get("issue_confidence"), "cwe": cwe, "raw": dict(result)},
        }


def _bandit_validate(record: Finding) -> FieldErrors:
    path = record.get("path")
    if isinstance(path, str) and path and not path.endswith((".py", ".pyw", ".pyi")):
        return [("path", "bandit findings must point at Python sources")]
    return []


def bandit_adapter() -> Adapter:
    return make_adapter(
        name="bandit",
        version="1",
        category="security",
        to_findings=_bandit_findings,
        severity_map=BANDIT_SEVERITY,
        extra_validate=_bandit_validate,
        description="Bandit `-f json` output.",
    )
