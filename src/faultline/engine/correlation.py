from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from hashlib import sha256

from faultline.engine.boundaries import FunctionBoundary, detect_function_boundaries, innermost_boundary
from faultline.engine.metrics import round_score
from faultline.engine.types import (
    ANALYSIS_TYPES,
    DEFAULT_SEVERITY_WEIGHTS,
    CorrelationGroup,
    LineRange,
    Severity,
    UnifiedIssue,
)

logger = logging.getLogger(__name__)

# Two tools agreeing already counts fully; a third adds half again, no more.
TOOL_DIVERSITY_DIVISOR = 2
TOOL_DIVERSITY_CAP = 1.5

_SLUG_RE = re.compile(r"[^A-Za-z0-9]+")


def path_slug(canonical_path: str) -> str:
    """Readable, collision-resistant id fragment for a canonical path."""

    readable = _SLUG_RE.sub("-", canonical_path).strip("-") or "root"
    digest = sha256(canonical_path.encode("utf-8")).hexdigest()[:8]
    return f"{readable}-{digest}"


def correlation_risk_score(
    issues: Sequence[UnifiedIssue],
    weights: Mapping[Severity, int] = DEFAULT_SEVERITY_WEIGHTS,
) -> int:
    weighted = sum(int(weights.get(issue.severity, 0)) for issue in issues)
    tools = len({issue.tool_name for issue in issues})
    multiplier = min(tools / TOOL_DIVERSITY_DIVISOR, TOOL_DIVERSITY_CAP)
    return round_score(weighted * multiplier)


class CorrelationEngine:
    """
    Cluster surviving issues that sit close together in the same file.

    Proximity is either a line window (an issue joins the current cluster when
    it is fewer than `line_window` lines below the previous one) or, when file
    contents are supplied in function-boundary mode, the innermost enclosing
    function. Only clusters with two or more members become groups.
    """

    def __init__(
        self,
        *,
        line_window: int = 10,
        severity_weights: Mapping[Severity, int] = DEFAULT_SEVERITY_WEIGHTS,
        function_boundary_mode: bool = False,
    ) -> None:
        self.line_window = line_window
        self.severity_weights = severity_weights
        self.function_boundary_mode = function_boundary_mode

    def build_groups(
        self,
        issues: Sequence[UnifiedIssue],
        *,
        file_contents: Mapping[str, str] | None = None,
    ) -> tuple[CorrelationGroup, ...]:
        by_path: dict[str, list[UnifiedIssue]] = {}
        for issue in issues:
            by_path.setdefault(issue.canonical_path, []).append(issue)

        groups: list[CorrelationGroup] = []
        for path in sorted(by_path):
            path_issues = by_path[path]
            if len(path_issues) < 2:
                continue

            lined = sorted((i for i in path_issues if i.line is not None), key=lambda i: (i.line, i.id))
            lineless = sorted((i for i in path_issues if i.line is None), key=lambda i: i.id)

            boundaries: tuple[FunctionBoundary, ...] = ()
            if self.function_boundary_mode and file_contents and path in file_contents:
                boundaries = detect_function_boundaries(path, file_contents[path])
                if not boundaries:
                    logger.debug("No function boundaries for %s; using the line window", path)

            if boundaries:
                groups.extend(self._function_groups(path, lined, boundaries))
            else:
                groups.extend(self._window_groups(path, lined))

            if len(lineless) >= 2:
                groups.append(self._make_group(path, lineless, LineRange(start=1, end=None), suffix="file"))

        return tuple(groups)

    def _window_groups(self, path: str, lined: Sequence[UnifiedIssue]) -> list[CorrelationGroup]:
        clusters: list[list[UnifiedIssue]] = []
        current: list[UnifiedIssue] = []
        for issue in lined:
            if current and issue.line - current[-1].line >= self.line_window:  # type: ignore[operator]
                clusters.append(current)
                current = []
            current.append(issue)
        if current:
            clusters.append(current)

        groups: list[CorrelationGroup] = []
        for cluster in clusters:
            if len(cluster) < 2:
                continue
            start = min(i.line for i in cluster if i.line is not None)
            end = max(max(i.line or 0, i.end_line or 0) for i in cluster)
            groups.append(self._make_group(path, cluster, LineRange(start=start, end=end), suffix=str(start)))
        return groups

    def _function_groups(
        self,
        path: str,
        lined: Sequence[UnifiedIssue],
        boundaries: Sequence[FunctionBoundary],
    ) -> list[CorrelationGroup]:
        by_function: dict[FunctionBoundary, list[UnifiedIssue]] = {}
        outside: list[UnifiedIssue] = []
        for issue in lined:
            boundary = innermost_boundary(boundaries, issue.line)  # type: ignore[arg-type]
            if boundary is None:
                outside.append(issue)
            else:
                by_function.setdefault(boundary, []).append(issue)

        groups: list[CorrelationGroup] = []
        for boundary in sorted(by_function, key=lambda b: (b.start_line, b.end_line, b.name)):
            members = by_function[boundary]
            if len(members) < 2:
                continue
            groups.append(
                self._make_group(
                    path,
                    members,
                    LineRange(start=boundary.start_line, end=boundary.end_line),
                    suffix=f"{boundary.start_line}-{boundary.end_line}-fn",
                    function_name=boundary.name,
                )
            )
        groups.extend(self._window_groups(path, outside))
        groups.sort(key=lambda g: (g.line_range.start, g.id))
        return groups

    def _make_group(
        self,
        path: str,
        members: Sequence[UnifiedIssue],
        line_range: LineRange,
        *,
        suffix: str,
        function_name: str | None = None,
    ) -> CorrelationGroup:
        present = {i.analysis_type for i in members}
        return CorrelationGroup(
            id=f"correlation-{path_slug(path)}-{suffix}",
            canonical_path=path,
            issues=tuple(members),
            line_range=line_range,
            risk_score=correlation_risk_score(members, self.severity_weights),
            analysis_types=tuple(t for t in ANALYSIS_TYPES if t in present),
            tool_coverage=tuple(sorted({i.tool_name for i in members})),
            function_name=function_name,
        )
