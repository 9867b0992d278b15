"""
api/main.py -- FastAPI application entry point for SafeConnect.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed origins
  3. log_requests          -- one log line per request with latency
  4. enforce_timeout       -- 504 when a request runs past REQUEST_TIMEOUT_SECONDS

Lifespan handles startup (engine, auth service, contact store, session purge
task) and shutdown (cancel purge task, dispose engine) symmetrically.
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
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.contacts import router as contacts_router
from auth.errors import (
    AccountNotFoundError,
    AuthError,
    DuplicateAccountError,
    InternalError,
    InvalidCredentialsError,
    InvalidSessionError,
    MissingCredentialError,
    ValidationError,
)
from auth.service import build_auth_service
from auth.store import create_auth_engine
from contacts.store import ContactStore
from core.config import get_settings

API_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("safeconnect.api")

settings = get_settings()

# HTTP status for each auth failure kind. Anything not listed is a 500.
_AUTH_ERROR_STATUS: dict[type[AuthError], int] = {
    ValidationError: 400,
    MissingCredentialError: 400,
    InvalidCredentialsError: 401,
    InvalidSessionError: 401,
    AccountNotFoundError: 404,
    DuplicateAccountError: 409,
    InternalError: 500,
}

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Delete expired session rows every SESSION_PURGE_INTERVAL_SECONDS.

    Expired rows are already rejected by SessionIssuer.verify(); purging only
    keeps the table small. CancelledError from task.cancel() during shutdown
    propagates out of asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(settings.session_purge_interval_seconds)
        try:
            await asyncio.to_thread(app.state.auth_service.purge_expired_sessions)
        except InternalError:
            # Already logged with traceback by AuthService; retry next cycle.
            continue


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters: the engine creates the auth tables, the contact
    store adds its own table on the same engine, and the purge task starts
    last because it references app.state.auth_service.
    """
    logger.info("SafeConnect API starting up")
    app.state.engine = create_auth_engine(settings.database_url)
    app.state.auth_service = build_auth_service(settings, app.state.engine)
    app.state.contact_store = ContactStore(app.state.engine)
    logger.info("Auth initialized (session_ttl=%ds)", settings.session_ttl_seconds)
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.engine.dispose()
    logger.info("SafeConnect API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SafeConnect API",
    description="Account registration, sign-in sessions and emergency contacts for the SafeConnect app.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Functions decorated with @app.middleware("http") and add_middleware() calls
# both wrap what came before, so the last one registered runs first.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def enforce_timeout(request: Request, call_next):
    """Answer 504 when a request exceeds REQUEST_TIMEOUT_SECONDS.

    Sync handlers keep running in their worker thread after the timeout, so a
    registration that already started still commits or fails as a whole.
    """
    try:
        return await asyncio.wait_for(call_next(request), timeout=settings.request_timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning("Request timed out: %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=504,
            content=ErrorResponse(
                error=ErrorDetail(code="timeout", message="The request took too long. Please try again.")
            ).model_dump(),
        )


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


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=settings.allowed_hosts,
)

# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(contacts_router, prefix="/api/v1", tags=["Contacts"])

# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render an auth failure kind with its HTTP status and user-safe message.

    InternalError carries only a generic message; the cause was already
    logged with its traceback where it was translated.
    """
    status_code = _AUTH_ERROR_STATUS.get(type(exc), 500)
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message)).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with structured error when request body or params fail validation."""
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str([{"loc": e.get("loc"), "msg": e.get("msg")} for e in exc.errors()]),
            )
        ).model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with a dict detail. When detail is
    already structured, use it directly as the error field.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability."""
    try:
        db_status = "ok" if request.app.state.auth_service.accounts.ping() else "error"
    except SQLAlchemyError:
        logger.exception("Health check database ping failed")
        db_status = "error"
    return HealthResponse(
        status="healthy" if db_status == "ok" else "degraded",
        version=API_VERSION,
        components={"app": "ok", "database": db_status},
    )
