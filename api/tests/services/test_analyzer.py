"""DocumentAnalyzer tests with a fake completion client."""
import json
from datetime import date, datetime, timezone

import pytest

from grylin.core.errors import AnalysisParseError, CompletionError
from grylin.services.analyzer import EmailAnalysis, as_due_datetime, email_to_document, mock_analysis
from grylin.services.gmail import EmailMessage

BILL_REPLY = json.dumps(
    {
        "title": "Electricity Bill - Ravi Kumar",
        "amount": 1520.5,
        "due_date": "2026-04-05",
        "category": "Finance",
        "summary_bullets": ["Electricity bill for March", "Amount due ₹1520.50", "Pay by 5 April"],
        "is_scam": False,
    }
)


def email(**kw) -> EmailMessage:
    defaults = dict(
        id="m-1",
        sender="Power Co <billing@power.example>",
        subject="Your March invoice",
        body="Invoice 12 for ₹500, due by Friday",
        date="Mon, 2 Mar 2026 10:00:00 +0530",
    )
    return EmailMessage(**{**defaults, **kw})


class TestDocumentText:
    @pytest.mark.asyncio
    async def test_fenced_reply(self, analyzer, completion):
        completion.replies.append(f"Here you go:\n```json\n{BILL_REPLY}\n```")
        analysis = await analyzer.analyze_document_text("ELECTRICITY BILL ...")
        assert analysis.title == "Electricity Bill - Ravi Kumar"
        assert analysis.due_date == date(2026, 4, 5)
        assert analysis.category == "Finance"
        assert completion.calls[0][0] == "text"
        assert "ELECTRICITY BILL" in completion.calls[0][1]

    @pytest.mark.asyncio
    async def test_unparseable_reply(self, analyzer, completion):
        completion.replies.append("Sorry, I can't help with that.")
        with pytest.raises(AnalysisParseError):
            await analyzer.analyze_document_text("text")

    @pytest.mark.asyncio
    async def test_completion_error_propagates(self, analyzer, completion):
        completion.replies.append(CompletionError("No response from AI"))
        with pytest.raises(CompletionError):
            await analyzer.analyze_document_text("text")

    @pytest.mark.asyncio
    async def test_vision(self, analyzer, completion):
        completion.replies.append(BILL_REPLY)
        analysis = await analyzer.analyze_document_image("data:image/png;base64,AAAA")
        assert analysis.amount == 1520.5
        assert completion.calls == [("vision", "data:image/png;base64,AAAA")]


class TestSummarize:
    @pytest.mark.asyncio
    async def test_json_array(self, analyzer, completion):
        completion.replies.append('["one", "two", "three"]')
        assert await analyzer.summarize_text("long text") == ["one", "two", "three"]

    @pytest.mark.asyncio
    async def test_dash_lines(self, analyzer, completion):
        completion.replies.append("Summary:\n- one\n• two\n- three\n- four")
        assert await analyzer.summarize_text("long text") == ["one", "two", "three"]

    @pytest.mark.asyncio
    async def test_nothing_usable(self, analyzer, completion):
        completion.replies.append("no bullets here")
        assert await analyzer.summarize_text("long text") == ["Summary not available"]


class TestEmail:
    @pytest.mark.asyncio
    async def test_fields_are_coerced(self, analyzer, completion):
        completion.replies.append(
            json.dumps(
                {
                    "vendor_name": "  Power Co ",
                    "action_type": "pay_now",
                    "due_date": "06-03-2026",
                    "amount": "500",
                    "category": "Utilities",
                    "summary_bullets": ["Invoice 12", 3],
                    "is_transactional": "yes",
                }
            )
        )
        result = await analyzer.analyze_email(email())
        assert result.vendor_name == "Power Co"
        assert result.action_type == "other"
        assert result.due_date == date(2026, 3, 6)
        assert result.amount is None  # strings are not amounts
        assert result.category == "Other"
        assert result.summary_bullets == ["Invoice 12"]
        assert result.is_transactional is False

    @pytest.mark.asyncio
    async def test_array_reply_is_rejected(self, analyzer, completion):
        completion.replies.append('["not", "an", "object"]')
        with pytest.raises(AnalysisParseError):
            await analyzer.analyze_email(email())

    @pytest.mark.asyncio
    async def test_insight_defaults(self, analyzer, completion):
        completion.replies.append('{"obligation": "Pay the bill", "deadline": 5}')
        insight = await analyzer.generate_insight_summary("bill text")
        assert insight.obligation == "Pay the bill"
        assert insight.deadline == "No deadline"
        assert insight.consequence == "No penalty mentioned"


class TestConversions:
    def test_email_to_document(self):
        analysis = EmailAnalysis(vendor_name="Power Co", due_date=date(2026, 3, 6), category="Finance")
        data = email_to_document(analysis, email(subject="x" * 200))
        assert len(data.title) == 100
        assert data.title.startswith("Power Co - x")
        assert data.source_type == "email"
        assert data.email_id == "m-1"
        assert data.due_date == datetime(2026, 3, 6, tzinfo=timezone.utc)

    def test_as_due_datetime(self):
        assert as_due_datetime(None) is None
        assert as_due_datetime(date(2030, 1, 1)).tzinfo is timezone.utc

    def test_mock_analysis(self):
        mock = mock_analysis()
        assert mock.title == "Driving Licence - Test User"
        assert mock.due_date == date(2042, 1, 26)
