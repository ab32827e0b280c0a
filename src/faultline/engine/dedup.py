from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, replace
from types import MappingProxyType

from faultline.engine.types import SEVERITY_RANK, DedupStats, UnifiedIssue

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[a-z0-9]+")
_RULE_ID_RE = re.compile(r"[^a-z0-9]+")

STOPWORDS = frozenset(
    {
        "a",
        "an",
        "and",
        "are",
        "as",
        "at",
        "be",
        "by",
        "for",
        "from",
        "in",
        "is",
        "it",
        "its",
        "of",
        "on",
        "or",
        "that",
        "the",
        "to",
        "uses",
        "using",
        "with",
        "without",
        "does",
    }
)

# Words every tool sprinkles into titles; they say nothing about which defect it is.
GENERIC_FINDING_WORDS = frozenset(
    {
        "vulnerability",
        "vulnerabilities",
        "vulnerable",
        "issue",
        "issues",
        "detected",
        "found",
        "possible",
        "potential",
        "warning",
        "error",
        "finding",
        "problem",
    }
)


def title_tokens(title: str) -> frozenset[str]:
    return frozenset(t for t in _TOKEN_RE.findall(title.lower()) if t not in STOPWORDS and t not in GENERIC_FINDING_WORDS)


def jaccard(a: frozenset[str], b: frozenset[str]) -> float:
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def normalize_rule_id(rule_id: str) -> str:
    return _RULE_ID_RE.sub("-", rule_id.lower()).strip("-")


@dataclass(frozen=True, slots=True)
class DedupResult:
    issues: tuple[UnifiedIssue, ...]
    stats: DedupStats


class _UnionFind:
    def __init__(self, size: int) -> None:
        self._parent = list(range(size))

    def find(self, idx: int) -> int:
        root = idx
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[idx] != root:
            self._parent[idx], idx = root, self._parent[idx]
        return root

    def union(self, a: int, b: int) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra != rb:
            # Smaller index wins so roots do not depend on call order.
            if rb < ra:
                ra, rb = rb, ra
            self._parent[rb] = ra


class DeduplicationEngine:
    """
    Collapse findings that describe the same defect.

    Two issues match when they share a canonical path, their lines are at most
    `line_threshold` apart, and they either carry the same normalized rule id or
    the same analysis type with similar titles. Matches are closed
    transitively, and each class keeps a single representative.
    """

    def __init__(
        self,
        *,
        line_threshold: int = 3,
        similarity_threshold: float = 0.6,
        tool_priority: Sequence[str] = (),
    ) -> None:
        self.line_threshold = line_threshold
        self.similarity_threshold = similarity_threshold
        self._tool_rank = {tool.lower(): idx for idx, tool in enumerate(tool_priority)}

    def matches(self, a: UnifiedIssue, b: UnifiedIssue) -> bool:
        if a.canonical_path != b.canonical_path:
            return False
        if (a.line is None) != (b.line is None):
            return False
        if a.line is not None and b.line is not None and abs(a.line - b.line) > self.line_threshold:
            return False
        rule_a, rule_b = normalize_rule_id(a.rule_id), normalize_rule_id(b.rule_id)
        if rule_a and rule_a == rule_b:
            return True
        if a.analysis_type != b.analysis_type:
            return False
        return jaccard(title_tokens(a.title), title_tokens(b.title)) >= self.similarity_threshold

    def representative_key(self, issue: UnifiedIssue) -> tuple[int, float, int, str, str]:
        tool = issue.tool_name.lower()
        return (
            SEVERITY_RANK[issue.severity],
            -issue.entity.confidence,
            self._tool_rank.get(tool, len(self._tool_rank)),
            tool,
            issue.id,
        )

    def deduplicate(self, issues: Sequence[UnifiedIssue]) -> DedupResult:
        issues = list(issues)
        uf = _UnionFind(len(issues))

        by_path: dict[str, list[int]] = {}
        for idx, issue in enumerate(issues):
            by_path.setdefault(issue.canonical_path, []).append(idx)

        for indices in by_path.values():
            lined = sorted((i for i in indices if issues[i].line is not None), key=lambda i: (issues[i].line, i))
            for pos, i in enumerate(lined):
                for j in lined[pos + 1 :]:
                    if issues[j].line - issues[i].line > self.line_threshold:  # type: ignore[operator]
                        break
                    if self.matches(issues[i], issues[j]):
                        uf.union(i, j)
            lineless = [i for i in indices if issues[i].line is None]
            for pos, i in enumerate(lineless):
                for j in lineless[pos + 1 :]:
                    if self.matches(issues[i], issues[j]):
                        uf.union(i, j)

        classes: dict[int, list[int]] = {}
        for idx in range(len(issues)):
            classes.setdefault(uf.find(idx), []).append(idx)

        survivors: list[tuple[int, UnifiedIssue]] = []
        groups_found = 0
        for members in classes.values():
            keep = min(members, key=lambda i: self.representative_key(issues[i]))
            if len(members) == 1:
                survivors.append((keep, issues[keep]))
                continue
            groups_found += 1
            merged = [issues[i] for i in sorted(members, key=lambda i: issues[i].id) if i != keep]
            survivors.append((keep, _with_duplicates(issues[keep], merged)))
            logger.debug(
                "Merged %d duplicate(s) into %s (%s)",
                len(merged),
                issues[keep].id,
                issues[keep].canonical_path,
            )

        survivors.sort(key=lambda pair: pair[0])
        kept = tuple(issue for _, issue in survivors)
        stats = DedupStats(
            original_count=len(issues),
            deduplicated_count=len(kept),
            duplicates_removed=len(issues) - len(kept),
            groups_found=groups_found,
        )
        return DedupResult(issues=kept, stats=stats)


def _with_duplicates(issue: UnifiedIssue, merged: list[UnifiedIssue]) -> UnifiedIssue:
    metadata = dict(issue.metadata)
    previous = list(metadata.get("duplicates", ()))
    previous.extend(
        {"id": dup.id, "tool": dup.tool_name, "ruleId": dup.rule_id, "severity": dup.severity} for dup in merged
    )
    metadata["duplicates"] = tuple(previous)
    tools = {issue.tool_name, *(dup.tool_name for dup in merged), *metadata.get("confirmedBy", ())}
    metadata["confirmedBy"] = tuple(sorted(tools))
    return replace(issue, metadata=MappingProxyType(metadata))
