"""friendly_message mapping."""
import pytest

from grylin.core.errors import (
    AnalysisParseError,
    EmailAccountLimit,
    ExtractionFailure,
    InvalidStatusTransition,
    friendly_message,
)


class TestFriendlyMessage:
    @pytest.mark.parametrize(
        "error, expected",
        [
            (ExtractionFailure("Vision API error: 503"), "Image analysis failed. Please try with a clearer image."),
            (AnalysisParseError("Failed to parse AI response: x"), "Could not analyze the document. Please try again."),
            (EmailAccountLimit("Maximum 3 accounts allowed"), "You can only link up to 3 Gmail accounts."),
            ("request ETIMEDOUT", "Request timed out. Please try again."),
            ("Invalid login credentials", "Invalid email or password. Please try again."),
        ],
    )
    def test_known_messages(self, error, expected):
        assert friendly_message(error) == expected

    def test_keyword_fallback(self):
        assert friendly_message("Document not found") == "The requested item was not found."
        assert friendly_message("Upstream server hiccup") == "Server error. Please try again later."

    def test_transition_message(self):
        assert friendly_message(InvalidStatusTransition("paid", "new")) == "Something went wrong. Please try again."

    def test_unknown(self):
        assert friendly_message(RuntimeError("boom")) == "Something went wrong. Please try again."
