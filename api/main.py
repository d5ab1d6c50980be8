"""
api/main.py -- FastAPI application entry point for the Music Library API.

Run with:  python main.py serve
           uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the process-wide state every request handler reads from
app.state (credential store, catalog store, token service with its session
registry, login attempt limiter) and tears it down symmetrically. Tests swap
in isolated instances by patching lifespan (tests/conftest.py).
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import HealthData, envelope
from api.routes.albums import router as albums_router
from api.routes.artists import router as artists_router
from api.routes.auth import router as auth_router
from api.routes.favorites import router as favorites_router
from api.routes.tracks import router as tracks_router
from api.routes.users import router as users_router
from auth.attempts import LoginAttemptLimiter
from auth.sessions import SessionRegistry
from auth.store import CredentialStore
from auth.tokens import TokenService
from catalog.store import CatalogStore
from core.config import get_settings
from core.database import ping
from core.errors import ApiError, RateLimitedError

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("musiclib.api")

settings = get_settings()

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval_seconds: int) -> None:
    """Drop expired sessions and stale login failures every interval.

    Runs as a background asyncio task started in lifespan startup.
    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        sessions = app.state.tokens.registry.purge_expired()
        identities = app.state.attempts.purge_expired()
        if sessions or identities:
            logger.info("Purged %d expired sessions, %d login-attempt windows", sessions, identities)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. The purge task starts last because it reads app.state.tokens
    and app.state.attempts.
    """
    logger.info("Music Library API starting up")
    app.state.credentials = CredentialStore()
    app.state.catalog = CatalogStore()
    logger.info("Stores initialized")
    app.state.tokens = TokenService(
        settings.secret_key,
        SessionRegistry(),
        ttl_seconds=settings.token_expire_seconds,
    )
    app.state.attempts = LoginAttemptLimiter(
        max_attempts=settings.login_max_attempts,
        window_seconds=settings.login_window_seconds,
    )
    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.session_purge_interval_seconds))

    yield

    app.state.purge_task.cancel()
    app.state.credentials.close()
    app.state.catalog.close()
    logger.info("Music Library API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Music Library API",
    description="Multi-tenant music catalog with organization-scoped users, roles, and sessions.",
    version=API_VERSION,
    lifespan=lifespan,
    # Interactive docs only in development.
    docs_url="/docs" if settings.debug else None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Logs method, path, status, latency, and client. Never logs headers
# or bodies, so tokens and passwords stay out of the log.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])
app.include_router(users_router, tags=["Users"])
app.include_router(artists_router, tags=["Artists"])
app.include_router(albums_router, tags=["Albums"])
app.include_router(tracks_router, tags=["Tracks"])
app.include_router(favorites_router, tags=["Favorites"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same envelope so API clients can parse errors
# uniformly: {"status", "data": null, "message", "error"}.
# ---------------------------------------------------------------------------


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Render errors raised by flows, stores, and auth dependencies."""
    headers = None
    if isinstance(exc, RateLimitedError) and exc.retry_after > 0:
        headers = {"Retry-After": str(exc.retry_after)}
    return envelope(exc.status_code, exc.message, headers=headers)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when slowapi's per-IP limit is exceeded.

    slowapi stores the wait time on the exception as exc.retry_after when it
    knows it.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    return envelope(
        429,
        "Too many requests. Please try again later.",
        error=str(exc.detail),
        headers={"Retry-After": str(retry_after)},
    )


def _field_errors(exc: RequestValidationError) -> list[dict]:
    """Flatten pydantic errors into [{"field": ..., "message": ...}].

    The location prefix (body/query/path) is dropped and so is pydantic's
    "Value error, " prefix on messages raised from our own validators.
    """
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "header")]
        message = str(err.get("msg", "Invalid value."))
        if message.startswith("Value error, "):
            message = message[len("Value error, ") :]
        errors.append({"field": ".".join(loc), "message": message})
    return errors


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with the first failing field in message and all of them in error."""
    errors = _field_errors(exc)
    if errors:
        first = errors[0]
        message = f"{first['field']}: {first['message']}" if first["field"] else first["message"]
    else:
        message = "Bad Request"
    return envelope(400, message, error=errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Envelope for framework-raised HTTP errors (unknown route, wrong method)."""
    return envelope(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return envelope(500, "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No auth, no rate limit.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> JSONResponse:
    """Return API liveness, version, and whether the database answers."""
    try:
        ping(request.app.state.credentials.engine)
    except SQLAlchemyError:
        logger.exception("Health check: database unavailable")
        return envelope(
            503,
            "Database unavailable.",
            data=HealthData(status="degraded", version=API_VERSION, database="unavailable").model_dump(),
        )
    return envelope(200, "Service is healthy.", data=HealthData(version=API_VERSION).model_dump())
