"""
Request dependencies: who the request acts for, and the per-request services.

A session is either a registered user (a ``users`` row, PostgreSQL storage
with the Redis aggregate cache in front of the listings) or a demo session.
Demo sessions are issued by ``POST /auth/demo`` without touching the
database; the ``demo`` claim in the access token alone selects the local
JSON store and the mock analysis fallback.
"""
import uuid
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from grylin.core.config import settings
from grylin.core.database import get_db
from grylin.core.redis import get_cache
from grylin.core.security import decode_token
from grylin.models.user import User
from grylin.services.analyzer import DocumentAnalyzer, default_analyzer
from grylin.services.ocr import OcrClient
from grylin.services.scan_pipeline import ScanPipeline
from grylin.services.throttle import RequestThrottle
from grylin.storage.base import StorageBackend
from grylin.storage.local import LocalStorage
from grylin.storage.sql import SqlStorage

# Every demo session shares one local store keyed by this id
DEMO_USER_ID = uuid.uuid5(uuid.NAMESPACE_DNS, settings.demo_user_email)


@dataclass(frozen=True)
class Principal:
    id: uuid.UUID
    email: str
    demo: bool = False


DEMO_PRINCIPAL = Principal(DEMO_USER_ID, settings.demo_user_email, demo=True)

# One throttle per process: every completion call from every request queues here
_throttle: RequestThrottle | None = None


def get_throttle() -> RequestThrottle:
    global _throttle
    if _throttle is None:
        _throttle = RequestThrottle(settings.throttle_min_delay_ms)
    return _throttle


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
    )


def _token_from(request: Request) -> str | None:
    token = request.cookies.get("access_token")
    if token:
        return token
    # Mobile clients send the same JWT as a bearer header
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return None


def access_claims(request: Request) -> dict:
    token = _token_from(request)
    if not token:
        raise _unauthorized()
    claims = decode_token(token)
    if claims is None or claims.get("type") != "access":
        raise _unauthorized()
    if claims.get("demo") and not settings.demo_mode_enabled:
        raise _unauthorized()
    return claims


async def load_user(db: AsyncSession, claims: dict) -> User:
    try:
        user_id = uuid.UUID(str(claims.get("sub")))
    except ValueError:
        raise _unauthorized()

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise _unauthorized()
    return user


async def get_principal(request: Request, db: AsyncSession = Depends(get_db)) -> Principal:
    claims = access_claims(request)
    if claims.get("demo"):
        return DEMO_PRINCIPAL
    user = await load_user(db, claims)
    return Principal(user.id, user.email)


def get_storage(
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> StorageBackend:
    if principal.demo:
        return LocalStorage(settings.local_store_dir)
    return SqlStorage(db, get_cache())


def get_analyzer() -> DocumentAnalyzer:
    return default_analyzer(get_throttle())


def get_scan_pipeline(
    principal: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
    analyzer: DocumentAnalyzer = Depends(get_analyzer),
) -> ScanPipeline:
    return ScanPipeline(storage, analyzer, OcrClient(), demo=principal.demo)
