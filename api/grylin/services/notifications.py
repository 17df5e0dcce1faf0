"""
Background jobs: deadline checks, push delivery, mailbox sync.

Each function is registered as a Celery task so it can also be triggered
manually from the CLI.  Plain reads and flag updates use a sync SQLAlchemy
session; work that goes through the async storage layer runs under
``asyncio.run`` with a throwaway engine (no pooled connections survive the
event loop that opened them).

Scheduled tasks (via celery beat):
  check_deadlines_all     06:00 UTC daily
  send_pending_alerts     every 15 minutes
  sync_email_accounts     every 6 hours
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TypeVar

import redis.asyncio as aioredis
from cryptography.fernet import InvalidToken
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from grylin.core.config import settings
from grylin.core.database import sync_engine
from grylin.core.errors import EmailSourceError
from grylin.core.redis import AggregateCache
from grylin.core.security import decrypt_value, encrypt_value
from grylin.models.alert import GuardianAlert
from grylin.models.document import Document
from grylin.models.email_account import EmailAccount
from grylin.models.user import User
from grylin.services import alert_scheduler
from grylin.services.analyzer import default_analyzer
from grylin.services.email_sync import sync_mailbox
from grylin.services.push import alert_message, send_push
from grylin.storage.sql import SqlStorage
from grylin.worker import celery_app

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ── Helpers ───────────────────────────────────────────────────────────────────

async def _with_storage(work: Callable[[SqlStorage], Awaitable[T]]) -> T:
    """Run ``work`` against a fresh async session; commit when it returns."""
    engine = create_async_engine(settings.database_url, poolclass=NullPool)
    redis_client = aioredis.from_url(settings.redis_url, decode_responses=True)
    try:
        async with AsyncSession(engine, expire_on_commit=False) as db:
            result = await work(SqlStorage(db, AggregateCache(redis_client)))
            await db.commit()
            return result
    finally:
        await redis_client.aclose()
        await engine.dispose()


def _active_user_ids(db: Session) -> list[uuid.UUID]:
    return db.execute(
        select(User.id).where(
            User.is_active == True,  # noqa: E712
            User.push_notifications_enabled == True,  # noqa: E712
        )
    ).scalars().all()


# ── Deadline checks ───────────────────────────────────────────────────────────

@celery_app.task(name="grylin.services.notifications.check_deadlines_all")
def check_deadlines_all() -> int:
    """06:00 UTC: create the deadline alerts every unpaid document is due."""
    logger.info("Running deadline check for all users")

    with Session(sync_engine) as db:
        user_ids = _active_user_ids(db)

    async def work(storage: SqlStorage) -> int:
        created = 0
        for user_id in user_ids:
            created += len(await alert_scheduler.check_deadlines(storage, user_id))
        return created

    created = asyncio.run(_with_storage(work))
    logger.info("Deadline check: %d alert(s) created across %d user(s)", created, len(user_ids))
    return created


# ── Push delivery ─────────────────────────────────────────────────────────────

@celery_app.task(name="grylin.services.notifications.send_pending_alerts")
def send_pending_alerts() -> int:
    """Push every active alert not yet delivered; mark the ones that went out."""
    with Session(sync_engine) as db:
        rows = db.execute(
            select(GuardianAlert, Document.title, User.push_token)
            .join(Document, GuardianAlert.document_id == Document.id)
            .join(User, GuardianAlert.user_id == User.id)
            .where(
                GuardianAlert.is_sent == False,  # noqa: E712
                GuardianAlert.is_dismissed == False,  # noqa: E712
                User.push_notifications_enabled == True,  # noqa: E712
                User.push_token.isnot(None),
            )
            .order_by(GuardianAlert.trigger_date)
        ).all()

        sent = 0
        for alert, title, token in rows:
            heading, body = alert_message(alert.alert_type, title)
            data = {"alert_id": str(alert.id), "document_id": str(alert.document_id)}
            if send_push(token, heading, body, data):
                alert.is_sent = True
                sent += 1
        db.commit()

    if rows:
        logger.info("Delivered %d of %d pending alert(s)", sent, len(rows))
    return sent


# ── Mailbox sync ──────────────────────────────────────────────────────────────

@celery_app.task(name="grylin.services.notifications.sync_email_accounts")
def sync_email_accounts() -> int:
    """Pull new transactional mail for every active linked account."""
    with Session(sync_engine) as db:
        accounts = db.execute(
            select(
                EmailAccount.id,
                EmailAccount.user_id,
                EmailAccount.access_token_enc,
                EmailAccount.refresh_token_enc,
                EmailAccount.last_sync_at,
            )
            .where(EmailAccount.is_active == True)  # noqa: E712
        ).all()

    created = 0
    for account_id, user_id, access_enc, refresh_enc, last_sync_at in accounts:
        try:
            token = decrypt_value(access_enc)
            refresh = decrypt_value(refresh_enc) if refresh_enc else ""
        except InvalidToken:
            logger.error("Email account %s has an unreadable token; skipping", account_id)
            continue

        started = datetime.now(timezone.utc)
        # The throttle lives on one event loop, so each run gets its own
        analyzer = default_analyzer()

        async def work(storage: SqlStorage):
            return await sync_mailbox(
                storage,
                user_id,
                token,
                analyzer,
                refresh_token=refresh,
                email_account_id=account_id,
                since=last_sync_at,
            )

        try:
            run = asyncio.run(_with_storage(work))
        except EmailSourceError as exc:
            logger.warning("Email sync failed for account %s: %s", account_id, exc)
            continue

        values = {"last_sync_at": started}
        if run.new_access_token:
            values["access_token_enc"] = encrypt_value(run.new_access_token)
        with Session(sync_engine) as db:
            db.execute(update(EmailAccount).where(EmailAccount.id == account_id).values(**values))
            db.commit()
        created += run.result.created

    logger.info("Email sync: %d document(s) created from %d account(s)", created, len(accounts))
    return created
