from __future__ import annotations

from helpers import make_issue

from faultline.engine.dedup import DeduplicationEngine, jaccard, normalize_rule_id, title_tokens


def test_title_tokens_drop_stopwords_and_generic_words() -> None:
    assert title_tokens("SQL injection in login") == {"sql", "injection", "login"}
    assert title_tokens("SQL Injection Vulnerability") == {"sql", "injection"}


def test_jaccard_edge_cases() -> None:
    assert jaccard(frozenset(), frozenset()) == 1.0
    assert jaccard(frozenset({"a"}), frozenset()) == 0.0
    assert jaccard(frozenset({"a", "b"}), frozenset({"b", "c"})) == 1 / 3


def test_rule_ids_are_compared_loosely() -> None:
    assert normalize_rule_id("Security/Detect-Eval") == normalize_rule_id("security.detect_eval")


def test_similar_titles_from_different_tools_collapse() -> None:
    issues = [
        make_issue("a", tool="semgrep", severity="high", title="SQL injection in login", analysis_type="security"),
        make_issue("b", tool="codeql", severity="critical", title="SQL Injection Vulnerability", analysis_type="security"),
    ]
    outcome = DeduplicationEngine().deduplicate(issues)

    assert [i.id for i in outcome.issues] == ["b"]
    survivor = outcome.issues[0]
    assert survivor.metadata["duplicates"] == ({"id": "a", "tool": "semgrep", "ruleId": "", "severity": "high"},)
    assert survivor.metadata["confirmedBy"] == ("codeql", "semgrep")
    assert outcome.stats.original_count == 2
    assert outcome.stats.deduplicated_count == 1
    assert outcome.stats.duplicates_removed == 1
    assert outcome.stats.groups_found == 1


def test_dissimilar_titles_are_kept_apart() -> None:
    issues = [
        make_issue("c", severity="critical", tool="A", title="Hardcoded password"),
        make_issue("h", severity="high", tool="B", title="Unbounded recursion"),
        make_issue("m", severity="medium", tool="C", title="Missing docstring"),
    ]
    outcome = DeduplicationEngine().deduplicate(issues)
    assert [i.id for i in outcome.issues] == ["c", "h", "m"]
    assert outcome.stats.groups_found == 0


def test_same_rule_id_matches_even_with_different_titles() -> None:
    issues = [
        make_issue("a", tool="A", rule_id="no-eval", title="eval is evil", analysis_type="security"),
        make_issue("b", tool="B", rule_id="No_Eval", title="Dynamic code execution", analysis_type="quality"),
    ]
    assert len(DeduplicationEngine().deduplicate(issues).issues) == 1


def test_line_threshold_and_path_bound_matches() -> None:
    engine = DeduplicationEngine(line_threshold=3)
    base = make_issue("a", line=10, title="SQL injection")
    assert engine.matches(base, make_issue("b", line=13, title="SQL injection"))
    assert not engine.matches(base, make_issue("c", line=14, title="SQL injection"))
    assert not engine.matches(base, make_issue("d", line=10, title="SQL injection", path="src/b.ts"))
    assert not engine.matches(base, make_issue("e", line=None, title="SQL injection"))


def test_matches_close_transitively() -> None:
    issues = [
        make_issue("a", line=10, title="SQL injection", severity="low"),
        make_issue("b", line=13, title="SQL injection", severity="medium"),
        make_issue("c", line=16, title="SQL injection", severity="high"),
    ]
    outcome = DeduplicationEngine(line_threshold=3).deduplicate(issues)
    assert [i.id for i in outcome.issues] == ["c"]
    assert [d["id"] for d in outcome.issues[0].metadata["duplicates"]] == ["a", "b"]


def test_representative_prefers_confidence_then_tool_priority() -> None:
    issues = [
        make_issue("low-confidence", tool="A", severity="high", title="Weak hash", confidence=0.6),
        make_issue("high-confidence", tool="B", severity="high", title="Weak hash", confidence=0.9),
    ]
    assert DeduplicationEngine().deduplicate(issues).issues[0].id == "high-confidence"

    tied = [
        make_issue("from-a", tool="A", severity="high", title="Weak hash"),
        make_issue("from-b", tool="B", severity="high", title="Weak hash"),
    ]
    assert DeduplicationEngine().deduplicate(tied).issues[0].id == "from-a"
    assert DeduplicationEngine(tool_priority=["b"]).deduplicate(tied).issues[0].id == "from-b"


def test_issues_without_lines_match_each_other() -> None:
    issues = [
        make_issue("a", line=None, tool="A", title="Outdated lodash"),
        make_issue("b", line=None, tool="B", title="Outdated lodash"),
    ]
    assert len(DeduplicationEngine().deduplicate(issues).issues) == 1


def test_deduplication_is_idempotent_and_order_independent() -> None:
    issues = [
        make_issue("a", line=10, tool="A", severity="high", title="SQL injection in login"),
        make_issue("b", line=11, tool="B", severity="critical", title="SQL Injection Vulnerability"),
        make_issue("c", line=40, tool="A", title="Unused import"),
        make_issue("d", line=41, tool="C", title="Unused import os"),
        make_issue("e", line=5, path="src/b.ts", tool="B", title="Unused import"),
    ]
    engine = DeduplicationEngine()
    once = engine.deduplicate(issues)
    twice = engine.deduplicate(once.issues)
    assert [i.id for i in twice.issues] == [i.id for i in once.issues]
    assert twice.stats.duplicates_removed == 0

    reversed_once = engine.deduplicate(list(reversed(issues)))
    assert sorted(i.id for i in reversed_once.issues) == sorted(i.id for i in once.issues)
