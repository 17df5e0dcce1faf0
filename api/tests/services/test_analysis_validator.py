"""
Unit tests for the analysis validator: pure functions, no I/O.

Model replies are untrusted: wrapped in prose, fenced, partially typed.
"""
import json
from datetime import date

import pytest

from grylin.core.errors import AnalysisParseError
from grylin.services.analysis_validator import (
    FALLBACK_BULLET,
    ParseError,
    PartialAnalysis,
    ValidAnalysis,
    coerce_amount,
    coerce_category,
    coerce_due_date,
    coerce_is_scam,
    coerce_risk_score,
    coerce_summary_bullets,
    coerce_title,
    locate_json,
    normalise_date_string,
    parse_analysis,
    validate_payload,
    validate_text,
)

GOOD = {
    "title": "Electric Bill - Asha Rao",
    "amount": 1520.5,
    "due_date": "2026-03-15",
    "category": "Finance",
    "summary_bullets": ["Bill for February", "Due 15 March"],
    "is_scam": False,
}


# ── Locating JSON ────────────────────────────────────────────────────────────

class TestLocateJson:
    def test_json_fence(self):
        text = 'Here you go:\n```json\n{"title": "A"}\n```\nThanks'
        assert locate_json(text) == '{"title": "A"}'

    def test_plain_fence(self):
        assert locate_json('```\n{"title": "B"}\n```') == '{"title": "B"}'

    def test_bare_object_in_prose(self):
        text = 'Sure! {"title": "C", "nested": {"x": 1}} Hope that helps.'
        assert json.loads(locate_json(text)) == {"title": "C", "nested": {"x": 1}}

    def test_braces_inside_strings(self):
        text = 'Result: {"title": "curly } brace", "n": 1} trailing }'
        assert json.loads(locate_json(text))["title"] == "curly } brace"

    def test_falls_back_to_whole_text(self):
        assert locate_json("  no object here  ") == "no object here"


# ── Field coercers ───────────────────────────────────────────────────────────

class TestCoerceTitle:
    def test_trims(self):
        assert coerce_title("  PAN Card  ") == "PAN Card"

    @pytest.mark.parametrize("value", ["", "   ", None, 42, ["x"]])
    def test_rejects(self, value):
        assert coerce_title(value) is None


class TestCoerceAmount:
    def test_int_and_float(self):
        assert coerce_amount(150) == 150.0
        assert coerce_amount(99.99) == 99.99

    @pytest.mark.parametrize("value", ["150", True, None, float("nan"), float("inf"), {}])
    def test_rejects(self, value):
        assert coerce_amount(value) is None

    def test_column_range(self):
        assert coerce_amount(9_999_999_999.99) == 9_999_999_999.99
        assert coerce_amount(1e13) is None
        assert coerce_amount(-10 ** 10) is None
        assert coerce_amount(10 ** 400) is None


class TestCoerceDueDate:
    def test_iso_date(self):
        assert coerce_due_date("2031-01-31") == date(2031, 1, 31)

    def test_iso_datetime(self):
        assert coerce_due_date("2030-06-01T00:00:00Z") == date(2030, 6, 1)

    def test_day_first(self):
        assert coerce_due_date("26-01-2042") == date(2042, 1, 26)

    @pytest.mark.parametrize("value, expected", [("2000-01-01", date(2000, 1, 1)), ("2100-12-31", date(2100, 12, 31))])
    def test_year_bounds_are_kept(self, value, expected):
        assert coerce_due_date(value) == expected

    @pytest.mark.parametrize("value", ["1999-12-31", "2101-01-01"])
    def test_year_out_of_range(self, value):
        assert coerce_due_date(value) is None

    @pytest.mark.parametrize("value", ["next Tuesday", "", None, 20260101, "2026-02-30"])
    def test_unparseable(self, value):
        assert coerce_due_date(value) is None


class TestNormaliseDateString:
    def test_four_digit_year(self):
        assert normalise_date_string("15/08/2027") == "2027-08-15"

    def test_two_digit_year_pivot(self):
        assert normalise_date_string("01-02-42") == "2042-02-01"
        assert normalise_date_string("01-02-75") == "1975-02-01"

    def test_iso_passthrough(self):
        assert normalise_date_string("2027-08-15") == "2027-08-15"


class TestOtherCoercers:
    def test_category_exact_match_only(self):
        assert coerce_category("Health") == "Health"
        assert coerce_category("health") == "Other"
        assert coerce_category(None) == "Other"

    def test_bullets_keep_strings(self):
        assert coerce_summary_bullets(["a", 3, None, "b"]) == ["a", "b"]

    @pytest.mark.parametrize("value", [[], None, "a bullet", [1, 2]])
    def test_bullets_fallback(self, value):
        assert coerce_summary_bullets(value) == [FALLBACK_BULLET]

    def test_is_scam_strict_bool(self):
        assert coerce_is_scam(True) is True
        assert coerce_is_scam("true") is False

    def test_risk_score_clamped(self):
        assert coerce_risk_score(140) == 100
        assert coerce_risk_score(-3) == 0
        assert coerce_risk_score(None) is None


# ── Whole payload ────────────────────────────────────────────────────────────

class TestValidatePayload:
    def test_clean_payload_is_valid(self):
        result = validate_payload(GOOD)
        assert isinstance(result, ValidAnalysis)
        assert result.analysis.due_date == date(2026, 3, 15)
        assert result.analysis.amount == 1520.5

    def test_bad_fields_default_independently(self):
        payload = {**GOOD, "amount": "lots", "category": "Bills", "due_date": "1850-01-01"}
        result = validate_payload(payload)
        assert isinstance(result, PartialAnalysis)
        assert set(result.defaulted) == {"amount", "category", "due_date"}
        # the good fields survive
        assert result.analysis.title == GOOD["title"]
        assert result.analysis.summary_bullets == GOOD["summary_bullets"]
        assert result.analysis.category == "Other"

    def test_missing_title_is_error(self):
        result = validate_payload({**GOOD, "title": "  "})
        assert isinstance(result, ParseError)
        assert "title" in result.reason

    def test_not_an_object(self):
        assert isinstance(validate_payload(["title"]), ParseError)


class TestValidateText:
    def test_fenced_reply(self):
        reply = f"Here is the analysis:\n```json\n{json.dumps(GOOD)}\n```"
        assert isinstance(validate_text(reply), ValidAnalysis)

    def test_malformed_json(self):
        result = validate_text('{"title": "A", }')
        assert isinstance(result, ParseError)
        assert result.reason.startswith("Failed to parse AI response")

    def test_parse_analysis_raises(self):
        with pytest.raises(AnalysisParseError):
            parse_analysis("I could not read this document.")

    def test_parse_analysis_returns_partial(self):
        analysis = parse_analysis('{"title": "Receipt"}')
        assert analysis.title == "Receipt"
        assert analysis.category == "Other"
        assert analysis.summary_bullets == [FALLBACK_BULLET]
        assert analysis.is_scam is False
