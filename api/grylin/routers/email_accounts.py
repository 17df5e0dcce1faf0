import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from grylin.core.config import settings
from grylin.core.database import get_db
from grylin.core.deps import Principal, get_analyzer, get_principal, get_storage
from grylin.core.errors import EmailAccountLimit
from grylin.core.security import decrypt_value, encrypt_value
from grylin.models.email_account import EmailAccount
from grylin.schemas.email_account import EmailAccountCreate, EmailAccountResponse, EmailSyncResult
from grylin.services.analyzer import DocumentAnalyzer
from grylin.services.email_sync import sync_mailbox
from grylin.storage.base import StorageBackend

router = APIRouter(prefix="/email-accounts", tags=["email-accounts"])


def _require_linked_accounts(user: Principal) -> None:
    if user.demo:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email accounts are not available in demo mode",
        )


async def _account_or_404(db: AsyncSession, user: Principal, account_id: uuid.UUID) -> EmailAccount:
    result = await db.execute(
        select(EmailAccount).where(EmailAccount.id == account_id, EmailAccount.user_id == user.id)
    )
    account = result.scalar_one_or_none()
    if not account:
        raise HTTPException(status_code=404, detail="Email account not found")
    return account


@router.get("", response_model=list[EmailAccountResponse])
async def list_accounts(
    user: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    if user.demo:
        return []
    result = await db.execute(
        select(EmailAccount)
        .where(EmailAccount.user_id == user.id)
        .order_by(EmailAccount.created_at)
    )
    return result.scalars().all()


@router.post("", response_model=EmailAccountResponse, status_code=201)
async def link_account(
    payload: EmailAccountCreate,
    user: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    _require_linked_accounts(user)

    existing = await db.execute(
        select(EmailAccount).where(EmailAccount.user_id == user.id, EmailAccount.email == payload.email)
    )
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email account already linked",
        )

    count = await db.scalar(
        select(func.count()).select_from(EmailAccount).where(EmailAccount.user_id == user.id)
    )
    if (count or 0) >= settings.email_accounts_max:
        raise EmailAccountLimit(f"Maximum {settings.email_accounts_max} accounts allowed")

    account = EmailAccount(
        user_id=user.id,
        email=payload.email,
        account_type=payload.account_type,
        access_token_enc=encrypt_value(payload.access_token),
        refresh_token_enc=encrypt_value(payload.refresh_token) if payload.refresh_token else "",
    )
    db.add(account)
    await db.flush()
    await db.refresh(account)
    return account


@router.delete("/{account_id}", status_code=204)
async def remove_account(
    account_id: uuid.UUID,
    user: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    """Unlinks the mailbox; documents already filed from it stay."""
    _require_linked_accounts(user)
    account = await _account_or_404(db, user, account_id)
    await db.delete(account)
    await db.flush()


@router.post("/{account_id}/sync", response_model=EmailSyncResult)
async def sync_account(
    account_id: uuid.UUID,
    user: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
    analyzer: DocumentAnalyzer = Depends(get_analyzer),
):
    _require_linked_accounts(user)
    account = await _account_or_404(db, user, account_id)
    if not account.is_active:
        raise HTTPException(status_code=400, detail="Email account is disabled")

    started = datetime.now(timezone.utc)
    run = await sync_mailbox(
        storage,
        user.id,
        decrypt_value(account.access_token_enc),
        analyzer,
        refresh_token=decrypt_value(account.refresh_token_enc) if account.refresh_token_enc else "",
        email_account_id=account.id,
        since=account.last_sync_at,
    )
    if run.new_access_token:
        account.access_token_enc = encrypt_value(run.new_access_token)
    account.last_sync_at = started
    await db.flush()
    return run.result
