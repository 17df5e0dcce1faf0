"""
Document and email analysis through the completion service.

Every call is queued on the injected RequestThrottle so the service sees at
most one request at a time, spaced by the throttle's minimum delay.  Raw
replies go through the analysis validator; a reply without a usable JSON
object raises AnalysisParseError.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone

from grylin.core.config import settings
from grylin.core.errors import AnalysisParseError
from grylin.schemas.document import DocumentCreate
from grylin.schemas.scan import ExtractedAnalysis
from grylin.services.analysis_validator import (
    coerce_amount,
    coerce_category,
    coerce_due_date,
    locate_json,
    parse_analysis,
)
from grylin.services.completion import CompletionClient
from grylin.services.gmail import EmailMessage
from grylin.services.throttle import RequestThrottle

logger = logging.getLogger(__name__)

DOCUMENT_PROMPT = """You analyse OCR text from personal documents: government IDs \
(driving licence, PAN card, Aadhaar, passport, voter ID, vehicle RC), bills, \
credit cards and card statements, invoices and receipts, medical and \
educational records.

Rules:
- Title is "[Document Type] - [Holder's Name]". Use the holder's name, never a \
parent's name from S/O or D/O lines.
- due_date is the expiry / validity / payment-due date in YYYY-MM-DD. A date of \
birth, issue date, bill date or statement date is NOT the due date.
- Card "VALID THRU MM/YY" means the last day of that month, e.g. 01/31 → 2031-01-31.
- Convert DD-MM-YYYY and "15 Jan 2025" style dates to YYYY-MM-DD.
- Category: government IDs → "Other"; cards, bills, banking → "Finance"; \
medical → "Health"; receipts → "Shopping"; certificates → "Education"; \
employment → "Career".

Respond with ONLY this JSON:
{
  "title": "...",
  "amount": null or number,
  "due_date": "YYYY-MM-DD" or null,
  "category": "Finance" | "Education" | "Shopping" | "Health" | "Career" | "Other",
  "summary_bullets": ["...", "...", "..."],
  "is_scam": false
}"""

DOCUMENT_USER_TEMPLATE = """Analyse this document OCR text:

=== DOCUMENT TEXT ===
{text}
=== END TEXT ===

Respond with JSON only."""

SUMMARY_PROMPT = "Summarize text into 3 concise bullet points. Respond with a JSON array of strings."

EMAIL_PROMPT = """Analyse this transactional email and respond with JSON only:
{
  "vendor_name": "Company name",
  "action_type": "payment_due" | "order_confirmation" | "shipping_update" | "account_alert" | "subscription" | "other",
  "due_date": null or "YYYY-MM-DD",
  "amount": null or number,
  "category": "Finance" | "Education" | "Shopping" | "Health" | "Career" | "Other",
  "summary_bullets": ["...", "...", "..."],
  "is_transactional": true or false
}"""

INSIGHT_PROMPT = """Generate a 3-part summary in JSON:
{
  "obligation": "What the user must do",
  "deadline": "When it is due",
  "consequence": "What happens if it is not done"
}"""

ACTION_TYPES = frozenset(
    {"payment_due", "order_confirmation", "shipping_update", "account_alert", "subscription", "other"}
)

EMAIL_TITLE_MAX = 100


# ── Result types ────────────────────────────────────────────────────────────

@dataclass
class EmailAnalysis:
    vendor_name: str = "Unknown"
    action_type: str = "other"
    due_date: date | None = None
    amount: float | None = None
    category: str = "Other"
    summary_bullets: list[str] = field(default_factory=list)
    is_transactional: bool = False


@dataclass
class InsightSummary:
    obligation: str = "Action required"
    deadline: str = "No deadline"
    consequence: str = "No penalty mentioned"


def mock_analysis() -> ExtractedAnalysis:
    """Fixed analysis returned for demo sessions when no extraction path works."""
    return ExtractedAnalysis(
        title="Driving Licence - Test User",
        amount=None,
        due_date=date(2042, 1, 26),
        category="Other",
        summary_bullets=["Driving Licence", "Valid for LMV", "Valid until 2042"],
        is_scam=False,
        risk_score=0,
    )


def as_due_datetime(value: date | None) -> datetime | None:
    """Calendar due date → midnight UTC, the form stored on documents."""
    if value is None:
        return None
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _decode_object(text: str) -> dict:
    try:
        parsed = json.loads(locate_json(text))
    except json.JSONDecodeError as e:
        raise AnalysisParseError("Failed to parse response") from e
    if not isinstance(parsed, dict):
        raise AnalysisParseError("Failed to parse response")
    return parsed


def _bullets_from_lines(text: str) -> list[str]:
    bullets = []
    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith(("-", "•")):
            bullets.append(stripped.lstrip("-•").strip())
    return bullets[:3]


class DocumentAnalyzer:
    def __init__(self, client: CompletionClient, throttle: RequestThrottle):
        self.client = client
        self.throttle = throttle

    async def analyze_document_text(self, ocr_text: str) -> ExtractedAnalysis:
        logger.info("Analysing OCR text (%d chars)", len(ocr_text))
        reply = await self.throttle.submit(
            lambda: self.client.complete(
                DOCUMENT_PROMPT,
                DOCUMENT_USER_TEMPLATE.format(text=ocr_text),
                model=settings.completion_model,
                temperature=0.1,
                max_tokens=1024,
            )
        )
        analysis = parse_analysis(reply)
        logger.info(
            "Analysis: title=%r category=%s due=%s", analysis.title, analysis.category, analysis.due_date
        )
        return analysis

    async def analyze_document_image(self, image_url: str) -> ExtractedAnalysis:
        logger.info("Analysing document image with the vision model")
        reply = await self.throttle.submit(
            lambda: self.client.complete_vision(
                DOCUMENT_PROMPT, image_url, model=settings.vision_model, temperature=0.1, max_tokens=1024
            )
        )
        return parse_analysis(reply)

    async def summarize_text(self, text: str) -> list[str]:
        reply = await self.throttle.submit(
            lambda: self.client.complete(
                SUMMARY_PROMPT,
                f"Summarize:\n\n{text}",
                model=settings.summary_model,
                temperature=0.3,
                max_tokens=512,
            )
        )
        try:
            parsed = json.loads(locate_json(reply))
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list) and parsed and all(isinstance(s, str) for s in parsed):
            return parsed
        return _bullets_from_lines(reply) or ["Summary not available"]

    async def analyze_email(self, email: EmailMessage) -> EmailAnalysis:
        email_text = f"From: {email.sender}\nSubject: {email.subject}\nDate: {email.date}\n\n{email.body}"
        reply = await self.throttle.submit(
            lambda: self.client.complete(
                EMAIL_PROMPT, email_text, model=settings.summary_model, temperature=0.1, max_tokens=1024
            )
        )
        data = _decode_object(reply)

        vendor = data.get("vendor_name")
        action = data.get("action_type")
        bullets = data.get("summary_bullets")
        return EmailAnalysis(
            vendor_name=vendor.strip() if isinstance(vendor, str) and vendor.strip() else "Unknown",
            action_type=action if action in ACTION_TYPES else "other",
            due_date=coerce_due_date(data.get("due_date")),
            amount=coerce_amount(data.get("amount")),
            category=coerce_category(data.get("category")),
            summary_bullets=[s for s in bullets if isinstance(s, str)] if isinstance(bullets, list) else [],
            is_transactional=data.get("is_transactional") is True,
        )

    async def generate_insight_summary(self, content: str) -> InsightSummary:
        reply = await self.throttle.submit(
            lambda: self.client.complete(
                INSIGHT_PROMPT, content, model=settings.summary_model, temperature=0.2, max_tokens=512
            )
        )
        data = _decode_object(reply)
        defaults = InsightSummary()
        return InsightSummary(
            obligation=data["obligation"] if isinstance(data.get("obligation"), str) else defaults.obligation,
            deadline=data["deadline"] if isinstance(data.get("deadline"), str) else defaults.deadline,
            consequence=data["consequence"] if isinstance(data.get("consequence"), str) else defaults.consequence,
        )


def email_to_document(analysis: EmailAnalysis, email: EmailMessage, email_account_id=None) -> DocumentCreate:
    return DocumentCreate(
        title=f"{analysis.vendor_name} - {email.subject}"[:EMAIL_TITLE_MAX],
        category=analysis.category,
        amount=analysis.amount,
        due_date=as_due_datetime(analysis.due_date),
        summary=analysis.summary_bullets,
        source_type="email",
        email_id=email.id,
        email_account_id=email_account_id,
    )


def default_analyzer(throttle: RequestThrottle | None = None) -> DocumentAnalyzer:
    """Analyzer on the configured completion service with its own throttle unless one is shared."""
    return DocumentAnalyzer(
        CompletionClient(), throttle or RequestThrottle(settings.throttle_min_delay_ms)
    )
