"""
Scam shield: explainable phishing/scam risk scoring.

Four independent detectors each contribute a capped number of points:

  urgency language          15 per phrase, max 40
  sensitive-info requests   20 per phrase, max 50
  suspicious sender domain  flat 25
  call-to-action links      flat 15

The sum is clamped to [0, 100].  A score of 70 or more is a scam verdict.
Matching is case-insensitive substring search; no tokenisation.
"""
import re
from dataclasses import dataclass, field

from grylin.services.keyword_scorer import KeywordRule, Indicator, evaluate, total_points

SCAM_THRESHOLD = 70
MEDIUM_THRESHOLD = 40
LOW_THRESHOLD = 20

# Number of example phrases quoted per indicator line
_EXAMPLES_PER_INDICATOR = 3

URGENCY_PHRASES: tuple[str, ...] = (
    "account blocked",
    "account suspended",
    "act now",
    "act immediately",
    "verify immediately",
    "urgent action required",
    "immediate action",
    "your account will be",
    "within 24 hours",
    "within 48 hours",
    "limited time",
    "expires today",
    "final notice",
    "last warning",
    "failure to respond",
    "avoid suspension",
    "prevent closure",
    "urgent",
    "immediately",
)

SENSITIVE_PHRASES: tuple[str, ...] = (
    "password",
    "pin number",
    "otp",
    "one-time password",
    "social security",
    "bank account number",
    "credit card number",
    "cvv",
    "security code",
    "login credentials",
    "verify your identity",
    "confirm your details",
    "update your information",
    "click here to verify",
    "click the link below",
)

SUSPICIOUS_DOMAIN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\d{4,}"),                                          # numeric-heavy
    re.compile(r"-{2,}"),                                           # stacked hyphens
    re.compile(r"\.(xyz|top|club|work|click|link|gq|ml|cf|tk)$", re.IGNORECASE),
    # Look-alikes of well known brands; the genuine spelling is not flagged
    re.compile(
        r"(?!paypal)paypa[l1]|(?!amazon)amaz[o0]n|(?!google)g[o0]{2}gle"
        r"|(?!microsoft)micr[o0]s[o0]ft|(?!apple)app[l1]e",
        re.IGNORECASE,
    ),
)

CALL_TO_ACTION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"click\s+here", re.IGNORECASE),
    re.compile(r"verify\s+now", re.IGNORECASE),
    re.compile(r"login\s+here", re.IGNORECASE),
    re.compile(r"update\s+account", re.IGNORECASE),
)

URGENCY_RULE = KeywordRule("urgency", phrases=URGENCY_PHRASES, per_match=15, cap=40)
SENSITIVE_RULE = KeywordRule("sensitive", phrases=SENSITIVE_PHRASES, per_match=20, cap=50)
DOMAIN_RULE = KeywordRule("domain", patterns=SUSPICIOUS_DOMAIN_PATTERNS, flat=25)
CALL_TO_ACTION_RULE = KeywordRule("call_to_action", patterns=CALL_TO_ACTION_PATTERNS, flat=15)

_DOMAIN_RE = re.compile(r"@([^>]+)")


@dataclass
class RiskAssessment:
    risk_score: int
    indicators: list[str] = field(default_factory=list)
    is_scam: bool = False
    recommendation: str = ""


def extract_domain(sender: str) -> str:
    """``"Bank <alerts@Bank.example>"`` → ``"bank.example"``; ``""`` when no ``@``."""
    m = _DOMAIN_RE.search(sender or "")
    return m.group(1).strip().lower() if m else ""


def recommendation_for(score: int) -> str:
    if score >= SCAM_THRESHOLD:
        return "HIGH RISK: This appears to be a scam. Do not click any links or provide personal information."
    if score >= MEDIUM_THRESHOLD:
        return "MEDIUM RISK: Exercise caution. Verify the sender through official channels before taking action."
    if score >= LOW_THRESHOLD:
        return "LOW RISK: Some suspicious elements detected. Review carefully before responding."
    return "This message appears to be legitimate."


def _describe(indicator: Indicator, domain: str) -> str:
    examples = ", ".join(indicator.matches[:_EXAMPLES_PER_INDICATOR])
    if indicator.rule == "urgency":
        return f"Urgency language detected: {examples}"
    if indicator.rule == "sensitive":
        return f"Requests for sensitive information: {examples}"
    if indicator.rule == "domain":
        return f"Suspicious domain pattern detected: {domain}"
    return "Contains suspicious call-to-action links"


def assess(content: str, sender: str = "") -> RiskAssessment:
    """Score ``content`` from ``sender`` and return the full assessment."""
    content = content or ""
    domain = extract_domain(sender)

    hits = [
        evaluate(content, URGENCY_RULE),
        evaluate(content, SENSITIVE_RULE),
        evaluate(domain, DOMAIN_RULE) if domain else None,
        evaluate(content, CALL_TO_ACTION_RULE),
    ]
    fired = [h for h in hits if h is not None]

    score = max(0, min(total_points(fired), 100))
    return RiskAssessment(
        risk_score=score,
        indicators=[_describe(h, domain) for h in fired],
        is_scam=score >= SCAM_THRESHOLD,
        recommendation=recommendation_for(score),
    )


def has_scam_indicators(content: str) -> bool:
    """Quick pre-check: any urgency or sensitive-info phrase present."""
    return evaluate(content or "", URGENCY_RULE) is not None or (
        evaluate(content or "", SENSITIVE_RULE) is not None
    )
