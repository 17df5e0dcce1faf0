"""
Transactional vs promotional email classifier.

Promotional language short-circuits: three or more promotional keywords and
the email is rejected whatever else it contains.  Otherwise a transactional
score is built from keywords (+1 each) and three structural patterns
(currency amount +2, date / "due by" +2, order or invoice number +3).
A score of 3 or more is transactional.
"""
import logging
import re

from grylin.services.keyword_scorer import KeywordRule, score, points_for

logger = logging.getLogger(__name__)

PROMOTIONAL_CUTOFF = 3
TRANSACTIONAL_THRESHOLD = 3

TRANSACTIONAL_KEYWORDS: tuple[str, ...] = (
    "invoice", "payment", "bill", "receipt", "transaction",
    "charge", "amount due", "balance", "statement", "pay now",
    "payment due", "order confirmation", "order #", "shipping", "delivery",
    "tracking", "account statement", "subscription", "renewal", "expiring",
    "due date", "bank", "credit card", "transfer", "deposit",
    "tuition", "fee", "warranty", "appointment", "booking",
    "reservation",
)

PROMOTIONAL_KEYWORDS: tuple[str, ...] = (
    "unsubscribe", "newsletter", "promotion", "sale", "discount",
    "offer", "deal", "limited time", "exclusive", "free shipping",
    "shop now", "buy now", "save", "% off", "coupon",
)

_AMOUNT_RE = re.compile(r"\$[\d,]+\.?\d*|₹[\d,]+\.?\d*|[\d,]+\.?\d*\s*(?:USD|INR|EUR|GBP)", re.IGNORECASE)
_DATE_RE = re.compile(r"\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}|due\s+(?:by|on|date)", re.IGNORECASE)
_REFERENCE_RE = re.compile(
    r"order\s*#?\s*\d+|invoice\s*#?\s*\d+|confirmation\s*#?\s*\d+", re.IGNORECASE
)

PROMOTIONAL_RULE = KeywordRule("promotional", phrases=PROMOTIONAL_KEYWORDS, per_match=1)
TRANSACTIONAL_RULES: tuple[KeywordRule, ...] = (
    KeywordRule("keywords", phrases=TRANSACTIONAL_KEYWORDS, per_match=1),
    KeywordRule("amount", patterns=(_AMOUNT_RE,), flat=2),
    KeywordRule("date", patterns=(_DATE_RE,), flat=2),
    KeywordRule("reference", patterns=(_REFERENCE_RE,), flat=3),
)


def promotional_score(text: str) -> int:
    return points_for(score(text, (PROMOTIONAL_RULE,)), "promotional")


def transactional_score(text: str) -> int:
    return sum(i.points for i in score(text, TRANSACTIONAL_RULES))


def is_transactional(subject: str, body: str) -> bool:
    text = f"{subject or ''} {body or ''}"

    promo = promotional_score(text)
    if promo >= PROMOTIONAL_CUTOFF:
        logger.debug("Promotional email skipped (score=%d): %s", promo, (subject or "")[:80])
        return False

    return transactional_score(text) >= TRANSACTIONAL_THRESHOLD
