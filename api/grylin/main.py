import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from grylin.core.config import settings
from grylin.core.errors import (
    AnalysisParseError,
    CompletionError,
    EmailAccountLimit,
    EmailSourceError,
    ExtractionFailure,
    GuardianError,
    InvalidStatusTransition,
    NotFound,
    friendly_message,
)
from grylin.routers import alerts, auth, documents, email_accounts, folders, health, life_stacks, scan, users

logging.basicConfig(
    level=getattr(logging, settings.api_log_level.upper()),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger("grylin")


# ─── Security headers middleware ───────────────────────────────────────────────
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=()"
        if settings.environment != "development":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


# Rate limiter backed by Redis so limits survive across worker restarts
limiter = Limiter(key_func=get_remote_address, storage_uri=settings.redis_url)

app = FastAPI(
    title="GryLin Guardian API",
    version="0.1.0",
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url=None,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

# ─── CORS ──────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=(
        ["http://localhost:8081", "http://localhost:19006", "http://localhost", f"http://{settings.domain}"]
        if settings.environment == "development"
        else [f"https://{settings.domain}"]
    ),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
)


# ─── Domain errors ────────────────────────────
_STATUS_FOR: tuple[tuple[type[GuardianError], int], ...] = (
    (NotFound, 404),
    (InvalidStatusTransition, 409),
    (EmailAccountLimit, 409),
    (AnalysisParseError, 422),
    (ExtractionFailure, 422),
    (CompletionError, 502),
    (EmailSourceError, 502),
)


def status_for(exc: GuardianError) -> int:
    for cls, code in _STATUS_FOR:
        if isinstance(exc, cls):
            return code
    return 400


@app.exception_handler(GuardianError)
async def guardian_error_handler(request: Request, exc: GuardianError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s → %d: %s", request.method, request.url.path, code, exc)
    return JSONResponse(
        status_code=code,
        content={"detail": str(exc), "message": friendly_message(exc), "error": type(exc).__name__},
    )


# ─── Routers ──────────────────────────────────
app.include_router(health.router)
app.include_router(auth.router, prefix="/api/v1")
app.include_router(users.router, prefix="/api/v1")
app.include_router(documents.router, prefix="/api/v1")
app.include_router(scan.router, prefix="/api/v1")
app.include_router(folders.router, prefix="/api/v1")
app.include_router(life_stacks.router, prefix="/api/v1")
app.include_router(alerts.router, prefix="/api/v1")
app.include_router(email_accounts.router, prefix="/api/v1")
