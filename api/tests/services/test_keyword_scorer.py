"""Unit tests for keyword_scorer: pure functions, no I/O."""
import re

from grylin.services.keyword_scorer import (
    KeywordRule,
    evaluate,
    match_patterns,
    match_phrases,
    points_for,
    score,
    total_points,
)


class TestMatching:
    def test_phrases_case_insensitive(self):
        assert match_phrases("Please ACT NOW", ("act now", "later")) == ["act now"]

    def test_phrases_keep_list_order(self):
        assert match_phrases("b then a", ("a", "b")) == ["a", "b"]

    def test_substring_not_token(self):
        # "otp" inside "hotpot" still counts
        assert match_phrases("hotpot recipe", ("otp",)) == ["otp"]

    def test_patterns_return_matched_text(self):
        patterns = (re.compile(r"order\s*#\d+", re.IGNORECASE),)
        assert match_patterns("Your Order #42 shipped", patterns) == ["Order #42"]

    def test_no_match(self):
        assert match_phrases("hello", ("bye",)) == []
        assert match_patterns("hello", (re.compile(r"\d"),)) == []


class TestEvaluate:
    def test_per_match_points(self):
        rule = KeywordRule("r", phrases=("a", "b", "c"), per_match=5)
        hit = evaluate("a b", rule)
        assert hit.points == 10
        assert hit.matches == ["a", "b"]

    def test_cap_applies(self):
        rule = KeywordRule("r", phrases=("a", "b", "c"), per_match=15, cap=40)
        assert evaluate("a b c", rule).points == 40

    def test_flat_ignores_match_count(self):
        rule = KeywordRule("r", phrases=("a", "b"), per_match=100, flat=25)
        assert evaluate("a b", rule).points == 25

    def test_none_when_nothing_matches(self):
        assert evaluate("zzz", KeywordRule("r", phrases=("a",), per_match=1)) is None


class TestScore:
    def test_rules_are_independent(self):
        rules = (
            KeywordRule("one", phrases=("x",), per_match=1),
            KeywordRule("two", phrases=("y",), per_match=2),
            KeywordRule("three", phrases=("q",), per_match=3),
        )
        hits = score("x y", rules)
        assert [h.rule for h in hits] == ["one", "two"]
        assert total_points(hits) == 3
        assert points_for(hits, "two") == 2
        assert points_for(hits, "three") == 0
