"""
Gmail REST client: read-only access with a caller-supplied OAuth token.

The OAuth consent happens on the device, which hands over both tokens.  This
module lists and fetches messages, renews an expired access token from the
refresh token, and turns Gmail's JSON into EmailMessage objects.
``parse_message`` is pure and unit-testable without the network.
"""
import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass, field
from datetime import datetime

import httpx

from grylin.core.config import settings
from grylin.core.errors import EmailSourceError

logger = logging.getLogger(__name__)

PAGE_SIZE = 100  # Gmail's maximum per page


@dataclass
class Attachment:
    filename: str
    mime_type: str
    size: int
    attachment_id: str


@dataclass
class EmailMessage:
    id: str
    sender: str = ""
    to: str = ""
    subject: str = ""
    body: str = ""
    date: str = ""
    attachments: list[Attachment] = field(default_factory=list)


# ── Parsing ─────────────────────────────────────────────────────────────────

def decode_base64url(data: str) -> str:
    """Decode Gmail's unpadded base64url payloads; ``""`` when malformed."""
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""


def _header(headers: list[dict], name: str) -> str:
    wanted = name.lower()
    for h in headers:
        if str(h.get("name", "")).lower() == wanted:
            return h.get("value") or ""
    return ""


def parse_message(data: dict) -> EmailMessage:
    payload = data.get("payload") or {}
    headers = payload.get("headers") or []
    parts = payload.get("parts") or []

    body = ""
    if (payload.get("body") or {}).get("data"):
        body = decode_base64url(payload["body"]["data"])
    else:
        # Prefer plain text; fall back to the first html part
        for mime in ("text/plain", "text/html"):
            part = next((p for p in parts if p.get("mimeType") == mime), None)
            if part and (part.get("body") or {}).get("data"):
                body = decode_base64url(part["body"]["data"])
                break

    attachments = []
    for part in parts:
        part_body = part.get("body") or {}
        if part.get("filename") and part_body.get("attachmentId"):
            attachments.append(
                Attachment(
                    filename=part["filename"],
                    mime_type=part.get("mimeType") or "application/octet-stream",
                    size=part_body.get("size") or 0,
                    attachment_id=part_body["attachmentId"],
                )
            )

    return EmailMessage(
        id=data.get("id", ""),
        sender=_header(headers, "From"),
        to=_header(headers, "To"),
        subject=_header(headers, "Subject"),
        body=body,
        date=_header(headers, "Date"),
        attachments=attachments,
    )


# ── HTTP client ─────────────────────────────────────────────────────────────

async def refresh_access_token(
    http: httpx.AsyncClient, refresh_token: str, *, token_url: str | None = None
) -> str:
    """Trade the account's stored refresh token for a fresh access token."""
    try:
        resp = await http.post(
            token_url or settings.google_token_url,
            data={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": settings.google_client_id,
                "client_secret": settings.google_client_secret,
            },
        )
    except httpx.HTTPError as e:
        raise EmailSourceError(f"Token refresh failed: {e}") from e

    try:
        body = resp.json()
    except ValueError:
        body = {}
    token = body.get("access_token") if resp.status_code == 200 else None
    if not token:
        reason = body.get("error_description") or body.get("error") or "no access token returned"
        raise EmailSourceError(f"Token refresh failed ({resp.status_code}): {reason}")
    return token


class GmailClient:
    """
    Read-only Gmail client.  With a ``refresh_token`` a 401 triggers one
    token refresh and a retry; ``refreshed`` then tells the caller to store
    the new ``access_token``.
    """

    def __init__(
        self,
        access_token: str,
        *,
        refresh_token: str = "",
        base_url: str | None = None,
        token_url: str | None = None,
        http: httpx.AsyncClient | None = None,
    ):
        self.access_token = access_token
        self.refreshed = False
        self._refresh_token = refresh_token
        self._refresh_lock = asyncio.Lock()
        self.base_url = (base_url or settings.gmail_api_base).rstrip("/")
        self.token_url = token_url
        self._http = http or httpx.AsyncClient(timeout=30)
        self._owns_http = http is None

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def _send(self, path: str, params: dict | None, token: str) -> httpx.Response:
        try:
            return await self._http.get(
                f"{self.base_url}{path}",
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            raise EmailSourceError(f"Gmail unreachable: {e}") from e

    async def _renew(self, stale: str) -> None:
        async with self._refresh_lock:
            # Concurrent fetches that hit the same 401 refresh only once
            if self.access_token != stale:
                return
            self.access_token = await refresh_access_token(
                self._http, self._refresh_token, token_url=self.token_url
            )
            self.refreshed = True
            logger.info("Gmail access token refreshed")

    async def _get(self, path: str, params: dict | None = None) -> dict:
        token = self.access_token
        resp = await self._send(path, params, token)
        if resp.status_code == 401 and self._refresh_token:
            await self._renew(token)
            resp = await self._send(path, params, self.access_token)

        if resp.status_code != 200:
            try:
                message = resp.json().get("error", {}).get("message", "Unknown error")
            except ValueError:
                message = resp.text[:200] or "Unknown error"
            raise EmailSourceError(f"Gmail request failed ({resp.status_code}): {message}")
        return resp.json()

    async def list_message_ids(self, since: datetime, max_results: int | None = None) -> list[str]:
        """IDs of messages received after ``since``, newest first, paginated."""
        limit = max_results or settings.email_sync_max_results
        query = f"after:{int(since.timestamp())}"
        ids: list[str] = []
        page_token: str | None = None

        while len(ids) < limit:
            params = {"q": query, "maxResults": min(PAGE_SIZE, limit - len(ids))}
            if page_token:
                params["pageToken"] = page_token
            data = await self._get("/messages", params)
            ids.extend(m["id"] for m in data.get("messages") or [] if m.get("id"))
            page_token = data.get("nextPageToken")
            if not page_token:
                break

        logger.info("Gmail listed %d message(s) since %s", len(ids), since.isoformat())
        return ids[:limit]

    async def get_message(self, message_id: str) -> EmailMessage:
        data = await self._get(f"/messages/{message_id}", {"format": "full"})
        return parse_message(data)
