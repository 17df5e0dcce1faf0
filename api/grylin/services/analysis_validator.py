"""
Analysis validator: pure functions, no I/O, fully unit-testable.

Turns the raw text returned by the completion service into a canonical
ExtractedAnalysis.  Model output is untrusted: the JSON may be wrapped in
prose or code fences, fields may be missing, or carry the wrong type.

Locating the object
───────────────────
  1. a ```json fenced block
  2. any ``` fenced block
  3. the first balanced {...} literal (braces inside strings are ignored)
  4. the whole text

Field rules (one coercer per field, each applied independently)
───────────────────────────────────────────────────────────────
  title            non-empty after trimming, else the whole result is a ParseError
  amount           int/float (not bool), finite, below 10^10 → float; else → None
  due_date         calendar date (ISO, ISO datetime or DD-MM-YYYY), year
                   2000..2100 → date; anything else → None
  category         one of CATEGORIES, exact match; else "Other"
  summary_bullets  string entries only; empty → [FALLBACK_BULLET]
  is_scam          bool; else False
  risk_score       optional int clamped to 0..100
  scam_indicators  optional list of strings

The result is tagged: ValidAnalysis when nothing was defaulted,
PartialAnalysis (with the names of defaulted fields) otherwise, or
ParseError when no usable object could be found.
"""
import json
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from grylin.core.errors import AnalysisParseError
from grylin.schemas.document import CATEGORIES
from grylin.schemas.scan import ExtractedAnalysis

logger = logging.getLogger(__name__)

FALLBACK_BULLET = "Document scanned successfully"
YEAR_MIN = 2000
YEAR_MAX = 2100
# documents.amount is NUMERIC(12, 2)
AMOUNT_LIMIT = 10 ** 10

_FENCED_JSON = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_FENCED_ANY = re.compile(r"```\s*(.*?)\s*```", re.DOTALL)
_DDMMYYYY = re.compile(r"^(\d{2})[-/](\d{2})[-/](\d{4})$")
_DDMMYY = re.compile(r"^(\d{2})[-/](\d{2})[-/](\d{2})$")


# ── Result types ────────────────────────────────────────────────────────────

@dataclass
class ValidAnalysis:
    analysis: ExtractedAnalysis


@dataclass
class PartialAnalysis:
    analysis: ExtractedAnalysis
    defaulted: list[str] = field(default_factory=list)


@dataclass
class ParseError:
    reason: str


ValidationResult = ValidAnalysis | PartialAnalysis | ParseError


# ── Locating the JSON object ────────────────────────────────────────────────

def _first_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` literal in ``text``, or None."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        # Unbalanced from this brace; try the next one
        start = text.find("{", start + 1)
    return None


def locate_json(text: str) -> str:
    m = _FENCED_JSON.search(text)
    if m:
        return m.group(1).strip()
    m = _FENCED_ANY.search(text)
    if m:
        return m.group(1).strip()
    obj = _first_object(text)
    if obj is not None:
        return obj
    return text.strip()


# ── Per-field coercers ──────────────────────────────────────────────────────

def coerce_title(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def coerce_amount(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if abs(value) >= AMOUNT_LIMIT or not math.isfinite(value):
        return None
    return float(value)


def normalise_date_string(value: str) -> str:
    """
    Rewrite day-first dates as ISO; other strings are returned unchanged.

    "26-01-2042" → "2042-01-26"; "26/01/42" → "2042-01-26" (yy > 50 → 19yy).
    """
    m = _DDMMYYYY.match(value)
    if m:
        day, month, year = m.groups()
        return f"{year}-{month}-{day}"
    m = _DDMMYY.match(value)
    if m:
        day, month, yy = m.groups()
        century = "19" if int(yy) > 50 else "20"
        return f"{century}{yy}-{month}-{day}"
    return value


def coerce_due_date(value: Any) -> date | None:
    if not isinstance(value, str) or not value.strip():
        return None
    raw = normalise_date_string(value.strip())
    try:
        parsed = date.fromisoformat(raw)
    except ValueError:
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
        except ValueError:
            return None
    if not YEAR_MIN <= parsed.year <= YEAR_MAX:
        return None
    return parsed


def coerce_category(value: Any) -> str:
    return value if value in CATEGORIES else "Other"


def coerce_summary_bullets(value: Any) -> list[str]:
    bullets = []
    if isinstance(value, list):
        bullets = [item for item in value if isinstance(item, str)]
    return bullets or [FALLBACK_BULLET]


def coerce_is_scam(value: Any) -> bool:
    return value if isinstance(value, bool) else False


def coerce_risk_score(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return max(0, min(int(round(value)), 100))


def coerce_scam_indicators(value: Any) -> list[str] | None:
    if not isinstance(value, list):
        return None
    return [item for item in value if isinstance(item, str)]


# ── Validation ──────────────────────────────────────────────────────────────

def _defaulted_fields(data: dict[str, Any], analysis: ExtractedAnalysis) -> list[str]:
    defaulted = []
    if data.get("amount") is not None and analysis.amount is None:
        defaulted.append("amount")
    if data.get("due_date") is not None and analysis.due_date is None:
        defaulted.append("due_date")
    if data.get("category") != analysis.category:
        defaulted.append("category")
    if data.get("summary_bullets") != analysis.summary_bullets:
        defaulted.append("summary_bullets")
    if data.get("is_scam") is not analysis.is_scam:
        defaulted.append("is_scam")
    if data.get("risk_score") is not None and analysis.risk_score is None:
        defaulted.append("risk_score")
    if data.get("scam_indicators") is not None and analysis.scam_indicators != data["scam_indicators"]:
        defaulted.append("scam_indicators")
    return defaulted


def validate_payload(payload: Any) -> ValidationResult:
    """Validate an already-decoded payload."""
    if not isinstance(payload, dict):
        return ParseError("Invalid AI response: not an object")

    title = coerce_title(payload.get("title"))
    if title is None:
        return ParseError("Invalid AI response: title must be a non-empty string")

    analysis = ExtractedAnalysis(
        title=title,
        amount=coerce_amount(payload.get("amount")),
        due_date=coerce_due_date(payload.get("due_date")),
        category=coerce_category(payload.get("category")),
        summary_bullets=coerce_summary_bullets(payload.get("summary_bullets")),
        is_scam=coerce_is_scam(payload.get("is_scam")),
        risk_score=coerce_risk_score(payload.get("risk_score")),
        scam_indicators=coerce_scam_indicators(payload.get("scam_indicators")),
    )

    defaulted = _defaulted_fields(payload, analysis)
    if defaulted:
        logger.debug("Analysis for %r defaulted fields: %s", title, ", ".join(defaulted))
        return PartialAnalysis(analysis=analysis, defaulted=defaulted)
    return ValidAnalysis(analysis=analysis)


def validate_text(text: str) -> ValidationResult:
    """Locate, decode and validate the JSON object embedded in ``text``."""
    candidate = locate_json(text or "")
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError as exc:
        return ParseError(f"Failed to parse AI response: {exc.msg}")
    return validate_payload(payload)


def parse_analysis(text: str) -> ExtractedAnalysis:
    """Like ``validate_text`` but unwraps the result, raising on ParseError."""
    result = validate_text(text)
    if isinstance(result, ParseError):
        raise AnalysisParseError(result.reason)
    return result.analysis
