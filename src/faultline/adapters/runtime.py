from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from faultline.adapters.base import Adapter, Finding, as_list, as_mapping, make_adapter

RESPONSE_TIME_MS = 1000
RESPONSE_TIME_HIGH_MS = 3000
ERROR_RATE_PERCENT = 5.0
ERROR_RATE_HIGH_PERCENT = 10.0
APDEX_MIN = 0.7
APDEX_HIGH = 0.5
ERROR_COUNT = 10
ERROR_COUNT_HIGH = 100
CPU_PERCENT = 80.0
CPU_HIGH_PERCENT = 90.0


def _number(value: Any) -> float | None:
    if isinstance(value, int | float) and not isinstance(value, bool):
        return float(value)
    return None


def _service_findings(service: dict[str, Any]) -> Iterator[Finding]:
    name = str(service.get("service") or service.get("name") or "")
    if not name:
        return
    stats = as_mapping(service.get("apm_stats"))
    path = f"services/{name}"
    base = {"path": path, "entityType": "service", "impactLevel": "user_facing"}

    duration = _number(stats.get("avg_duration_ms"))
    hits = _number(stats.get("hits"))
    if duration is not None and duration > RESPONSE_TIME_MS:
        metrics: dict[str, float] = {"responseTime": duration}
        if hits is not None:
            metrics["throughput"] = hits
        yield {
            **base,
            "id": f"datadog-response-time-{name}",
            "severity": "high" if duration > RESPONSE_TIME_HIGH_MS else "medium",
            "title": "High response time",
            "description": f"Service {name!r} averages {round(duration)}ms per request (target: <{RESPONSE_TIME_MS}ms).",
            "ruleId": "datadog-response-time",
            "performanceMetrics": metrics,
            "performanceCategory": "response_time",
        }

    error_rate = _number(stats.get("error_rate"))
    if error_rate is not None and error_rate > ERROR_RATE_PERCENT:
        yield {
            **base,
            "id": f"datadog-error-rate-{name}",
            "severity": "high" if error_rate > ERROR_RATE_HIGH_PERCENT else "medium",
            "title": "High error rate",
            "description": f"Service {name!r} fails {error_rate:.1f}% of requests (target: <{ERROR_RATE_PERCENT:.0f}%).",
            "ruleId": "datadog-error-rate",
            "performanceMetrics": {"errorRate": error_rate},
            "performanceCategory": "availability",
        }

    apdex = _number(stats.get("apdex"))
    if apdex is not None and apdex < APDEX_MIN:
        yield {
            **base,
            "id": f"datadog-apdex-{name}",
            "severity": "high" if apdex < APDEX_HIGH else "medium",
            "title": "Low Apdex score",
            "description": f"Service {name!r} has an Apdex score of {apdex:.2f} (target: >={APDEX_MIN}).",
            "ruleId": "datadog-apdex",
            "performanceMetrics": {"availabilityScore": apdex},
            "performanceCategory": "loading",
        }


def _datadog_findings(raw: Any) -> Iterator[Finding]:
    """
    Read a DataDog APM export: `services`, `errors` and `hosts` lists.

    Findings are keyed by `services/<name>` and `hosts/<name>/cpu`, which the
    path normalizer keeps verbatim.
    """

    data = as_mapping(raw)
    for service in as_list(data.get("services")):
        yield from _service_findings(dict(as_mapping(service)))

    for error in as_list(data.get("errors")):
        error = as_mapping(error)
        count = _number(error.get("count"))
        service_name = str(error.get("service", ""))
        if count is None or count <= ERROR_COUNT or not service_name:
            continue
        resource = str(error.get("resource") or "")
        yield {
            "path": f"services/{service_name}",
            "entityType": "service",
            "severity": "high" if count > ERROR_COUNT_HIGH else "medium",
            "title": f"Frequent errors in {resource or service_name}",
            "description": str(error.get("message") or f"{int(count)} errors recorded."),
            "ruleId": "datadog-frequent-errors",
            "performanceMetrics": {"errorRate": count},
            "performanceCategory": "availability",
            "impactLevel": "user_facing",
            "metadata": {"resource": resource, "count": int(count)},
        }

    for host in as_list(data.get("hosts")):
        host = as_mapping(host)
        host_name = str(host.get("name", ""))
        cpu = _number(host.get("cpu"))
        if not host_name or cpu is None or cpu <= CPU_PERCENT:
            continue
        yield {
            "id": f"datadog-cpu-{host_name}",
            "path": f"hosts/{host_name}/cpu",
            "entityType": "host",
            "severity": "high" if cpu > CPU_HIGH_PERCENT else "medium",
            "title": "High CPU usage",
            "description": f"Host {host_name!r} runs at {cpu:.0f}% CPU.",
            "ruleId": "datadog-cpu",
            "performanceMetrics": {"cpuUsage": cpu},
            "performanceCategory": "cpu",
            "impactLevel": "resource_consumption",
        }


def datadog_adapter() -> Adapter:
    return make_adapter(
        name="datadog",
        version="1",
        category="apm",
        to_findings=_datadog_findings,
        description="DataDog APM service/error/host exports.",
    )
