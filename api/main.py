"""
api/main.py -- FastAPI application entry point for the LukaMath portal API.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests      -- one access-log line per request, with the caller's id
  2. SlowAPIMiddleware -- per-route rate limits from api.limiter
  3. CORSMiddleware    -- CORS headers for the configured front-end origins

Lifespan checks the signing key, opens the credential store and the homework
store on startup, and disposes both on shutdown.

Every error leaves through one of the exception handlers below and has the
same envelope: {success: false, code, message, messageKey[, errors]}.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import HealthResponse
from api.routes.v1.admin import router as admin_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.homework import router as homework_router
from api.routes.v1.questions import router as questions_router
from api.routes.v1.submissions import router as submissions_router
from auth.store import UserStore
from core.config import get_settings
from core.errors import ErrorKind, PortalError, RateLimitedError, ValidationFailedError
from homework.store import HomeworkStore

logger = logging.getLogger("lukamath.api")

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open both stores before the first request; dispose them on shutdown."""
    logger.info("LukaMath API starting up")
    # Refuse to serve without a usable signing key.
    get_settings().signing_key()
    app.state.user_store = UserStore()
    app.state.homework_store = HomeworkStore()
    logger.info("Stores initialized (has_users=%s)", app.state.user_store.has_users())

    yield

    app.state.homework_store.close()
    app.state.user_store.close()
    logger.info("LukaMath API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="LukaMath Portal API",
    description="Student/tutor portal: accounts, homework, submissions and questions.",
    version=API_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPIMiddleware locates the limiter at app.state.limiter.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """One line per request. The caller is identified by user id only."""
    started = time.perf_counter()
    response = await call_next(request)
    identity = getattr(request.state, "identity", None)
    logger.info(
        "%s %s -> %d in %.1fms (ip=%s user=%s)",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
        request.client.host if request.client else "-",
        identity.subject if identity else "-",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(homework_router, prefix="/api", tags=["Homework"])
app.include_router(submissions_router, prefix="/api", tags=["Submissions"])
app.include_router(questions_router, prefix="/api", tags=["Questions"])
app.include_router(admin_router, prefix="/api", tags=["Admin"])


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _error_response(exc: PortalError) -> JSONResponse:
    response = JSONResponse(status_code=exc.status_code, content=exc.to_dict())
    if exc.kind in (ErrorKind.INVALID_CREDENTIALS, ErrorKind.MISSING_TOKEN, ErrorKind.INVALID_TOKEN):
        response.headers["Cache-Control"] = "no-store"
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    """Render any domain error raised by a dependency or handler.

    Authorization denials are logged so every one leaves a trace; they are
    never converted into success responses.
    """
    if exc.kind is ErrorKind.FORBIDDEN:
        logger.warning("Forbidden %s %s: %s", request.method, request.url.path, exc.message)
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with one {field, message, code} entry per failed field."""
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]),
            "message": err.get("msg", ""),
            "code": err.get("type", ""),
        }
        for err in exc.errors()
    ]
    return _error_response(ValidationFailedError(details=details))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the usual envelope; Retry-After is the length of the limit's window."""
    limit = getattr(exc, "limit", None)
    window = limit.limit.get_expiry() if limit is not None else 60
    logger.warning("Rate limit hit on %s from %s", request.url.path, request.client.host if request.client else "-")
    response = _error_response(RateLimitedError())
    response.headers["Retry-After"] = str(window)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes (404) and wrong methods (405) get the same envelope."""
    kind = ErrorKind.NOT_FOUND if exc.status_code == 404 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "code": kind.value if kind else f"http_{exc.status_code}",
            "message": str(exc.detail),
            "messageKey": f"error.http_{exc.status_code}",
        },
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The traceback goes to the log only; the client receives a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(PortalError())


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Liveness plus a trivial query against the credential store."""
    database = "ok"
    try:
        with request.app.state.user_store.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check database query failed")
        database = "error"
    return HealthResponse(version=API_VERSION, components={"app": "ok", "database": database})
