from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from faultline.config import ConfigurationError
from faultline.engine.types import SEVERITIES, AnalysisType, Severity
from faultline.validation import Validator, validate_nothing

Finding = Mapping[str, Any]
Converter = Callable[[Any], Iterable[Finding]]

_NAME_RE = re.compile(r"^[a-z][a-z0-9_-]*$")

# First entry is the default; a finding may pick any other listed type.
CATEGORY_ANALYSIS_TYPES: Mapping[str, tuple[AnalysisType, ...]] = MappingProxyType(
    {
        "quality": ("quality", "style", "complexity", "security"),
        "security": ("security",),
        "performance": ("performance", "bundle", "web-vitals"),
        "style": ("style",),
        "complexity": ("complexity",),
        "semantic": ("semantic",),
        "ai": ("ai-assisted",),
        "apm": ("apm-performance", "performance"),
        "dependency": ("dependency-security", "dependency-licensing", "dependency-usage"),
        "architecture": ("architecture-design", "architecture-debt"),
        "bundle": ("bundle",),
        "web-vitals": ("web-vitals",),
        "formal": ("semantic", "security"),
    }
)

# Normalization confidence by adapter category. Proof-based results are the most
# trustworthy, runtime sampling and model output the least.
CATEGORY_CONFIDENCE: Mapping[str, float] = MappingProxyType(
    {
        "formal": 0.95,
        "dependency": 0.9,
        "security": 0.85,
        "quality": 0.85,
        "style": 0.85,
        "complexity": 0.85,
        "semantic": 0.85,
        "architecture": 0.8,
        "performance": 0.75,
        "bundle": 0.75,
        "web-vitals": 0.75,
        "apm": 0.7,
        "ai": 0.6,
    }
)

GENERIC_SEVERITY_MAP: Mapping[str, Severity] = MappingProxyType(
    {
        "critical": "critical",
        "blocker": "critical",
        "fatal": "critical",
        "error": "high",
        "high": "high",
        "major": "medium",
        "warning": "medium",
        "warn": "medium",
        "medium": "medium",
        "moderate": "medium",
        "minor": "low",
        "low": "low",
        "style": "low",
        "note": "info",
        "info": "info",
        "none": "info",
    }
)


@dataclass(frozen=True, slots=True)
class Adapter:
    """
    Capabilities of one tool integration.

    `to_findings` turns tool-native output into unified-issue-shaped records;
    `validate` reports tool-specific problems with one record; the category
    field checks always run on top of it during normalization. There is no
    adapter class hierarchy: a tool is fully described by this record.
    """

    name: str
    version: str
    category: str
    to_findings: Converter
    validate: Validator
    severity_map: Mapping[str, Severity] = field(default_factory=lambda: GENERIC_SEVERITY_MAP)
    description: str = ""

    @property
    def confidence(self) -> float:
        return CATEGORY_CONFIDENCE[self.category]

    @property
    def analysis_types(self) -> tuple[AnalysisType, ...]:
        return CATEGORY_ANALYSIS_TYPES[self.category]

    def map_severity(self, raw: str) -> Severity | None:
        return self.severity_map.get(raw.strip().lower())


def make_adapter(
    *,
    name: str,
    version: str,
    category: str,
    to_findings: Converter,
    severity_map: Mapping[str, Severity] = GENERIC_SEVERITY_MAP,
    extra_validate: Validator | None = None,
    description: str = "",
) -> Adapter:
    """Build and check an adapter; `extra_validate` adds tool-specific record checks."""

    adapter = Adapter(
        name=name,
        version=version,
        category=category,
        to_findings=to_findings,
        validate=extra_validate if extra_validate is not None else validate_nothing,
        severity_map=MappingProxyType({k.lower(): v for k, v in severity_map.items()}),
        description=description,
    )
    check_adapter(adapter)
    return adapter


def check_adapter(adapter: Adapter) -> None:
    if not isinstance(adapter.name, str) or not _NAME_RE.match(adapter.name):
        raise ConfigurationError(f"Adapter name must be lowercase (letters, digits, '-', '_'): {adapter.name!r}")
    if adapter.category not in CATEGORY_ANALYSIS_TYPES:
        valid = ", ".join(sorted(CATEGORY_ANALYSIS_TYPES))
        raise ConfigurationError(f"Adapter {adapter.name!r} has unknown category {adapter.category!r}. ({valid})")
    if not callable(adapter.to_findings) or not callable(adapter.validate):
        raise ConfigurationError(f"Adapter {adapter.name!r} must provide callable `to_findings` and `validate`.")
    for raw, sev in adapter.severity_map.items():
        if sev not in SEVERITIES:
            raise ConfigurationError(f"Adapter {adapter.name!r} maps severity {raw!r} to unknown value {sev!r}.")


def as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, list | tuple) else []


def as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}
