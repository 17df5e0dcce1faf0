"""
Email sync: turns a linked mailbox into stored documents.

  list ids since the last sync (first sync: the last 30 days)
  → fetch in batches, at most ``max_in_flight`` requests at once
  → keep the ones the keyword classifier calls transactional
  → skip messages already filed (same email_id)
  → completion-service analysis, scam assessment, routing, alert

Fetching is bounded by a semaphore of its own; analysis calls are spaced by
the shared RequestThrottle inside the analyzer.  A message that cannot be
fetched or analysed is logged and counted, never fatal for the batch.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from grylin.core.config import settings
from grylin.core.errors import AnalysisParseError, CompletionError, EmailSourceError
from grylin.schemas.email_account import EmailSyncResult
from grylin.services import scam_detector
from grylin.services.analyzer import DocumentAnalyzer, email_to_document
from grylin.services.email_classifier import is_transactional
from grylin.services.gmail import EmailMessage, GmailClient
from grylin.services.scan_pipeline import file_document, merge_risk
from grylin.storage.base import StorageBackend

logger = logging.getLogger(__name__)

FIRST_SYNC_WINDOW = timedelta(days=30)


def sync_window_start(last_sync_at: datetime | None, now: datetime | None = None) -> datetime:
    if last_sync_at is not None:
        return last_sync_at
    return (now or datetime.now(timezone.utc)) - FIRST_SYNC_WINDOW


async def filter_transactional(
    client: GmailClient,
    message_ids: list[str],
    *,
    batch_size: int | None = None,
    max_in_flight: int | None = None,
    delay_ms: int | None = None,
) -> tuple[list[EmailMessage], int]:
    """Fetch ``message_ids`` and return (transactional messages, fetch failures)."""
    batch_size = batch_size or settings.email_sync_batch_size
    delay = (settings.email_sync_batch_delay_ms if delay_ms is None else delay_ms) / 1000
    semaphore = asyncio.Semaphore(max_in_flight or settings.email_sync_max_in_flight)

    async def fetch(message_id: str) -> EmailMessage | None:
        async with semaphore:
            try:
                return await client.get_message(message_id)
            except EmailSourceError as exc:
                logger.warning("Skipping message %s: %s", message_id, exc)
                return None

    kept: list[EmailMessage] = []
    failed = 0
    for start in range(0, len(message_ids), batch_size):
        if start and delay:
            await asyncio.sleep(delay)
        batch = message_ids[start:start + batch_size]
        for message in await asyncio.gather(*(fetch(i) for i in batch)):
            if message is None:
                failed += 1
            elif is_transactional(message.subject, message.body):
                kept.append(message)

    logger.info("%d of %d message(s) look transactional", len(kept), len(message_ids))
    return kept, failed


async def sync_account(
    storage: StorageBackend,
    user_id: uuid.UUID,
    client: GmailClient,
    analyzer: DocumentAnalyzer,
    *,
    email_account_id: uuid.UUID | None = None,
    since: datetime | None = None,
) -> EmailSyncResult:
    ids = await client.list_message_ids(sync_window_start(since))
    messages, failed = await filter_transactional(client, ids)

    already_filed = {d.email_id for d in await storage.list_documents(user_id) if d.email_id}
    prefs = await storage.get_notification_settings(user_id)

    created = 0
    for message in messages:
        if message.id in already_filed:
            continue
        try:
            analysis = await analyzer.analyze_email(message)
        except (AnalysisParseError, CompletionError) as exc:
            logger.warning("Email %s not analysed: %s", message.id, exc)
            failed += 1
            continue

        data = email_to_document(analysis, message, email_account_id)
        merge_risk(data, scam_detector.assess(f"{message.subject}\n{message.body}", message.sender))
        await file_document(storage, user_id, data, prefs)
        already_filed.add(message.id)
        created += 1

    result = EmailSyncResult(
        fetched=len(ids), transactional=len(messages), created=created, failed=failed
    )
    logger.info("Email sync for user %s: %s", user_id, result.model_dump())
    return result


@dataclass
class MailboxSync:
    result: EmailSyncResult
    # Set when the access token was renewed during the run; the caller stores it
    new_access_token: str | None = None


async def sync_mailbox(
    storage: StorageBackend,
    user_id: uuid.UUID,
    access_token: str,
    analyzer: DocumentAnalyzer,
    *,
    refresh_token: str = "",
    email_account_id: uuid.UUID | None = None,
    since: datetime | None = None,
    client: GmailClient | None = None,
) -> MailboxSync:
    """``sync_account`` with a Gmail client opened and closed around it."""
    client = client or GmailClient(access_token, refresh_token=refresh_token)
    try:
        result = await sync_account(
            storage, user_id, client, analyzer, email_account_id=email_account_id, since=since
        )
    finally:
        await client.aclose()
    return MailboxSync(result, client.access_token if client.refreshed else None)
