"""
Keyword scorer: pure functions, no I/O, shared by the scam assessor and the
transactional email classifier.

A rule is a named set of phrases (case-insensitive substring match) and/or
regular expressions, plus a weighting:

  per_match  points for each distinct phrase/pattern that matched
  cap        upper bound on the rule's points (None = unbounded)
  flat       points awarded once when anything matched (ignores per_match)

Scoring a text against a list of rules yields one Indicator per rule that
fired, in rule order.  Callers sum ``points`` and format ``matches`` for
display; the scorer itself never clamps a total.
"""
import re
from dataclasses import dataclass, field


# ── Rule / result types ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class KeywordRule:
    name: str
    phrases: tuple[str, ...] = ()
    patterns: tuple[re.Pattern[str], ...] = ()
    per_match: int = 0
    cap: int | None = None
    flat: int = 0


@dataclass
class Indicator:
    rule: str
    matches: list[str] = field(default_factory=list)
    points: int = 0


# ── Matching ────────────────────────────────────────────────────────────────

def match_phrases(text: str, phrases: tuple[str, ...]) -> list[str]:
    """Return the phrases contained in ``text``, ignoring case, in list order."""
    folded = text.casefold()
    return [p for p in phrases if p.casefold() in folded]


def match_patterns(text: str, patterns: tuple[re.Pattern[str], ...]) -> list[str]:
    """Return the first matched substring of each pattern that hits ``text``."""
    found = []
    for pattern in patterns:
        m = pattern.search(text)
        if m:
            found.append(m.group(0))
    return found


def evaluate(text: str, rule: KeywordRule) -> Indicator | None:
    matches = match_phrases(text, rule.phrases) + match_patterns(text, rule.patterns)
    if not matches:
        return None

    if rule.flat:
        points = rule.flat
    else:
        points = len(matches) * rule.per_match
    if rule.cap is not None:
        points = min(points, rule.cap)

    return Indicator(rule=rule.name, matches=matches, points=points)


def score(text: str, rules: list[KeywordRule] | tuple[KeywordRule, ...]) -> list[Indicator]:
    """Evaluate every rule independently against ``text``."""
    indicators = []
    for rule in rules:
        hit = evaluate(text, rule)
        if hit is not None:
            indicators.append(hit)
    return indicators


def total_points(indicators: list[Indicator]) -> int:
    return sum(i.points for i in indicators)


def points_for(indicators: list[Indicator], rule_name: str) -> int:
    return sum(i.points for i in indicators if i.rule == rule_name)
