"""Gmail parsing and the REST client against httpx.MockTransport."""
import base64
from datetime import datetime, timezone

import httpx
import pytest

from grylin.core.errors import EmailSourceError
from grylin.services.gmail import GmailClient, decode_base64url, parse_message, refresh_access_token


def b64url(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")


HEADERS = [
    {"name": "From", "value": "Power Co <billing@power.example>"},
    {"name": "to", "value": "me@mail.example"},
    {"name": "Subject", "value": "Your March invoice"},
    {"name": "Date", "value": "Mon, 2 Mar 2026 10:00:00 +0530"},
]


class TestParseMessage:
    def test_single_part_body(self):
        message = parse_message(
            {"id": "m1", "payload": {"headers": HEADERS, "body": {"data": b64url("Amount due ₹500")}}}
        )
        assert message.id == "m1"
        assert message.sender == "Power Co <billing@power.example>"
        assert message.to == "me@mail.example"
        assert message.subject == "Your March invoice"
        assert message.body == "Amount due ₹500"

    def test_prefers_plain_text_part(self):
        parts = [
            {"mimeType": "text/html", "body": {"data": b64url("<p>html</p>")}},
            {"mimeType": "text/plain", "body": {"data": b64url("plain")}},
            {
                "mimeType": "application/pdf",
                "filename": "invoice.pdf",
                "body": {"attachmentId": "att-1", "size": 2048},
            },
        ]
        message = parse_message({"id": "m2", "payload": {"headers": HEADERS, "parts": parts}})
        assert message.body == "plain"
        [attachment] = message.attachments
        assert attachment.filename == "invoice.pdf"
        assert attachment.size == 2048

    def test_html_fallback(self):
        parts = [{"mimeType": "text/html", "body": {"data": b64url("<p>html</p>")}}]
        assert parse_message({"id": "m3", "payload": {"parts": parts}}).body == "<p>html</p>"

    def test_empty_payload(self):
        message = parse_message({"id": "m4"})
        assert message.subject == ""
        assert message.body == ""
        assert message.attachments == []

    def test_decode_base64url(self):
        assert decode_base64url(b64url("héllo?>")) == "héllo?>"
        assert decode_base64url("a") == ""


class TestGmailClient:
    @pytest.mark.asyncio
    async def test_list_follows_pages(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if "pageToken" not in request.url.params:
                return httpx.Response(200, json={"messages": [{"id": "a"}, {"id": "b"}], "nextPageToken": "p2"})
            return httpx.Response(200, json={"messages": [{"id": "c"}]})

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = GmailClient("tok", base_url="https://gmail.test", http=http)
        since = datetime(2026, 3, 1, tzinfo=timezone.utc)

        assert await client.list_message_ids(since) == ["a", "b", "c"]
        assert seen[0].headers["Authorization"] == "Bearer tok"
        assert seen[0].url.params["q"] == f"after:{int(since.timestamp())}"
        await http.aclose()

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        def handler(request):
            return httpx.Response(401, json={"error": {"message": "Invalid Credentials"}})

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = GmailClient("expired", base_url="https://gmail.test", http=http)
        with pytest.raises(EmailSourceError, match="Invalid Credentials"):
            await client.get_message("m1")
        await http.aclose()


TOKEN_URL = "https://oauth.test/token"


class TestTokenRefresh:
    @pytest.mark.asyncio
    async def test_expired_token_is_renewed_once(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if request.url.host == "oauth.test":
                assert b"grant_type=refresh_token" in request.content
                assert b"refresh_token=stored-refresh" in request.content
                return httpx.Response(200, json={"access_token": "fresh", "expires_in": 3599})
            if request.headers["Authorization"] == "Bearer fresh":
                return httpx.Response(200, json={"messages": [{"id": "a"}]})
            return httpx.Response(401, json={"error": {"message": "Invalid Credentials"}})

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = GmailClient(
            "stale", refresh_token="stored-refresh", base_url="https://gmail.test", token_url=TOKEN_URL, http=http
        )

        assert await client.list_message_ids(datetime(2026, 3, 1, tzinfo=timezone.utc)) == ["a"]
        assert client.refreshed is True
        assert client.access_token == "fresh"
        assert [r.url.host for r in calls] == ["gmail.test", "oauth.test", "gmail.test"]
        await http.aclose()

    @pytest.mark.asyncio
    async def test_no_refresh_token_means_no_retry(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401, json={"error": {"message": "Invalid Credentials"}})

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = GmailClient("stale", base_url="https://gmail.test", token_url=TOKEN_URL, http=http)
        with pytest.raises(EmailSourceError, match="401"):
            await client.get_message("m1")
        assert len(calls) == 1
        assert client.refreshed is False
        await http.aclose()

    @pytest.mark.asyncio
    async def test_revoked_refresh_token(self):
        def handler(request):
            if request.url.host == "oauth.test":
                return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Token has been expired or revoked."})
            return httpx.Response(401, json={"error": {"message": "Invalid Credentials"}})

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = GmailClient(
            "stale", refresh_token="revoked", base_url="https://gmail.test", token_url=TOKEN_URL, http=http
        )
        with pytest.raises(EmailSourceError, match="Token refresh failed"):
            await client.get_message("m1")
        assert client.access_token == "stale"
        await http.aclose()

    @pytest.mark.asyncio
    async def test_missing_access_token_in_reply(self):
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
        with pytest.raises(EmailSourceError, match="no access token returned"):
            await refresh_access_token(http, "stored-refresh", token_url=TOKEN_URL)
        await http.aclose()
