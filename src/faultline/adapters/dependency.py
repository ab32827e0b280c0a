from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from faultline.adapters.base import Adapter, Finding, as_list, as_mapping, make_adapter

NPM_AUDIT_SEVERITY = {"critical": "critical", "high": "high", "moderate": "medium", "medium": "medium", "low": "low", "info": "info"}
_SUPPLY_CHAIN_RISK = {"critical": "critical", "high": "high", "moderate": "medium", "medium": "medium", "low": "low", "info": "low"}


def _depth(node_path: str, *, is_direct: bool) -> int:
    if is_direct:
        return 1
    return max(2, node_path.count("node_modules/"))


def _npm_audit_findings(raw: Any) -> Iterator[Finding]:
    """
    Read `npm audit --json` (lockfile v2+) output.

    One finding per advisory in `via`; packages that are only vulnerable
    through another package get a single summary finding.
    """

    vulnerabilities = as_mapping(as_mapping(raw).get("vulnerabilities"))
    for package_name in sorted(vulnerabilities):
        info = as_mapping(vulnerabilities[package_name])
        npm_severity = str(info.get("severity", "info")).lower()
        nodes = [str(n) for n in as_list(info.get("nodes")) if isinstance(n, str)]
        node_path = nodes[0] if nodes else package_name
        is_direct = bool(info.get("isDirect"))
        dependency_type = "dev" if info.get("dev") else ("direct" if is_direct else "transitive")
        advisories = [as_mapping(v) for v in as_list(info.get("via")) if isinstance(v, dict)]
        via_packages = [str(v) for v in as_list(info.get("via")) if isinstance(v, str)]

        dependency_info = {
            "packageName": package_name,
            "version": str(info.get("range") or "*"),
            "type": dependency_type,
            "depth": _depth(node_path, is_direct=is_direct),
            "licenses": [],
            "vulnerabilities": [
                {
                    "id": str(a.get("source", "")),
                    "title": a.get("title", ""),
                    "url": a.get("url", ""),
                    "severity": a.get("severity", npm_severity),
                    "cwe": list(as_list(a.get("cwe"))),
                }
                for a in advisories
            ],
        }
        fix = info.get("fixAvailable")
        remediation = None
        if isinstance(fix, dict) and fix.get("name"):
            remediation = f"Upgrade {fix['name']} to {fix.get('version', 'a fixed release')}"
        elif fix is True:
            remediation = "Run `npm audit fix`"

        common = {
            "path": node_path,
            "entityType": "dependency",
            "dependencyInfo": dependency_info,
            "supplyChainRisk": _SUPPLY_CHAIN_RISK.get(npm_severity, "low"),
            "remediationSuggestion": remediation,
        }

        if not advisories:
            through = f" via {', '.join(via_packages)}" if via_packages else ""
            yield {
                **common,
                "id": f"npm-audit-{package_name}-general",
                "severity": npm_severity,
                "title": f"Vulnerable dependency {package_name}",
                "description": f"Package {package_name} is affected by known vulnerabilities{through}.",
                "ruleId": f"npm-audit-general-{package_name}",
                "metadata": {"effects": list(as_list(info.get("effects"))), "range": info.get("range")},
            }
            continue

        for advisory in advisories:
            source = str(advisory.get("source", ""))
            severity = str(advisory.get("severity") or npm_severity).lower()
            yield {
                **common,
                "id": f"npm-audit-{package_name}-{source}",
                "severity": severity,
                "title": str(advisory.get("title") or f"Vulnerability in {package_name}"),
                "description": f"{advisory.get('title', '')} ({advisory.get('url', '')})".strip(),
                "ruleId": source or f"npm-audit-{package_name}",
                "metadata": {"url": advisory.get("url", ""), "cvss": as_mapping(advisory.get("cvss")), "range": advisory.get("range")},
            }


def npm_audit_adapter() -> Adapter:
    return make_adapter(
        name="npm-audit",
        version="2",
        category="dependency",
        to_findings=_npm_audit_findings,
        severity_map=NPM_AUDIT_SEVERITY,
        description="`npm audit --json` reports.",
    )
