"""
Session endpoints.  Tokens travel as httpOnly cookies (or a bearer header
from the mobile app); refresh tokens rotate and the spent ``jti`` is
blacklisted in Redis until it would have expired anyway.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from grylin.core.config import settings
from grylin.core.database import get_db
from grylin.core.deps import DEMO_PRINCIPAL, Principal, get_principal, get_storage, load_user
from grylin.core.redis import blacklist_token, is_blacklisted
from grylin.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from grylin.models.user import User
from grylin.schemas.user import UserCreate, UserLogin, UserResponse, demo_profile
from grylin.storage.base import StorageBackend
from grylin.storage.local import LocalStorage

limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/auth", tags=["auth"])

_SECURE = settings.environment != "development"
# lax in development so the app on another localhost port still sends the cookie
_SAMESITE = "strict" if _SECURE else "lax"

DEMO_CLAIMS = {"sub": str(DEMO_PRINCIPAL.id), "demo": True}


def session_claims(user: User) -> dict:
    return {"sub": str(user.id)}


def _issue_session(response: Response, claims: dict) -> None:
    cookies = (
        ("access_token", create_access_token(claims), settings.access_token_expire_minutes * 60),
        ("refresh_token", create_refresh_token(claims), settings.refresh_token_expire_days * 86400),
    )
    for key, token, max_age in cookies:
        response.set_cookie(
            key=key,
            value=token,
            httponly=True,
            secure=_SECURE,
            samesite=_SAMESITE,
            max_age=max_age,
            path="/",
        )


def _seconds_left(claims: dict) -> int:
    return max(0, int(claims.get("exp", 0) - datetime.now(timezone.utc).timestamp()))


async def _revoke(claims: dict | None) -> None:
    if claims and claims.get("jti"):
        await blacklist_token(claims["jti"], _seconds_left(claims))


def _refresh_rejected(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


@router.post("/register", response_model=UserResponse, status_code=201)
@limiter.limit("5/hour")
async def register(request: Request, payload: UserCreate, db: AsyncSession = Depends(get_db)):
    taken = await db.scalar(select(User.id).where(User.email == payload.email))
    if taken is not None or payload.email == settings.demo_user_email:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = User(
        email=payload.email,
        hashed_password=hash_password(payload.password),
        full_name=payload.full_name,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    return user


@router.post("/login", response_model=UserResponse)
@limiter.limit("10/minute;30/hour")
async def login(
    request: Request,
    payload: UserLogin,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    user = await db.scalar(select(User).where(User.email == payload.email))
    if user is None or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid login credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")

    _issue_session(response, session_claims(user))
    return user


@router.post("/demo", response_model=UserResponse)
@limiter.limit("30/hour")
async def start_demo(request: Request, response: Response):
    """Offline session on the local store.  No account, no database."""
    if not settings.demo_mode_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Demo mode is disabled")

    _issue_session(response, DEMO_CLAIMS)
    prefs = await LocalStorage(settings.local_store_dir).get_notification_settings(DEMO_PRINCIPAL.id)
    return demo_profile(DEMO_PRINCIPAL.id, DEMO_PRINCIPAL.email, prefs)


@router.post("/refresh")
async def refresh_session(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    token = request.cookies.get("refresh_token")
    if not token:
        raise _refresh_rejected("No refresh token")

    claims = decode_token(token)
    if claims is None or claims.get("type") != "refresh":
        raise _refresh_rejected("Invalid refresh token")
    if claims.get("jti") and await is_blacklisted(claims["jti"]):
        raise _refresh_rejected("Token has been revoked")

    if claims.get("demo"):
        if not settings.demo_mode_enabled:
            raise _refresh_rejected("Demo mode is disabled")
        next_claims = DEMO_CLAIMS
    else:
        next_claims = session_claims(await load_user(db, claims))

    await _revoke(claims)
    _issue_session(response, next_claims)
    return {"ok": True}


@router.post("/logout", status_code=204)
async def logout(request: Request, response: Response):
    token = request.cookies.get("refresh_token")
    if token:
        await _revoke(decode_token(token))

    response.delete_cookie(key="access_token", path="/")
    response.delete_cookie(key="refresh_token", path="/")


@router.get("/me", response_model=UserResponse)
async def get_me(
    principal: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
    db: AsyncSession = Depends(get_db),
):
    if principal.demo:
        prefs = await storage.get_notification_settings(principal.id)
        return demo_profile(principal.id, principal.email, prefs)
    return await db.get(User, principal.id)
