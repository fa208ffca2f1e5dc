"""
api/main.py -- FastAPI application entry point for CarVault.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- applies static limits from api.limiter; the
                              callable signup/login limit is checked by the
                              @limiter.limit wrapper on those routes

Lifespan builds every collaborator from one Settings object (stores, blob
storage, token signer, identity and car services) and hangs them on
app.state; route handlers and the token gate read them from there. Shutdown
disposes the database engines.
"""

from __future__ import annotations

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

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.v1.cars import router as cars_router
from api.routes.v1.users import router as users_router
from auth.service import IdentityService
from auth.store import UserStore
from auth.tokens import TokenSigner
from cars.service import CarService
from cars.store import CarStore
from core.config import get_settings
from core.errors import CarVaultError, Unauthorized
from storage.blobs import BlobStore

__version__ = "1.0.0"

settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("carvault.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build collaborators on startup and release them on shutdown.

    Configuration flows one way: Settings -> constructors. Nothing below
    app.state reads the environment.
    """
    logger.info("CarVault API starting up")
    app.state.settings = settings
    app.state.user_store = UserStore(settings.database_url)
    app.state.car_store = CarStore(settings.database_url)
    app.state.blobs = BlobStore(settings.upload_dir)
    app.state.signer = TokenSigner(settings.secret_key, settings.token_expire_seconds)
    app.state.identity = IdentityService(app.state.user_store, app.state.signer, settings.bcrypt_rounds)
    app.state.cars = CarService(
        app.state.car_store,
        app.state.blobs,
        max_files=settings.max_upload_files,
        max_file_bytes=settings.max_upload_bytes,
    )
    logger.info("Stores initialized (uploads in %s)", app.state.blobs.root)

    yield

    app.state.car_store.close()
    app.state.user_store.close()
    logger.info("CarVault API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="CarVault API",
    description="Owner-scoped car listings with image uploads and bearer-token auth.",
    version=__version__,
    docs_url=f"{settings.api_prefix}/docs",
    openapi_url=f"{settings.api_prefix}/openapi.json",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() wraps the existing stack, so the last one registered is
# the outermost. Register innermost first: SlowAPI -> CORS -> TrustedHost.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
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

app.include_router(users_router, prefix=settings.api_prefix, tags=["Users"])
app.include_router(cars_router, prefix=settings.api_prefix, tags=["Cars"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns the same {message, error} envelope so clients can
# parse errors uniformly. No handler ever returns a stack trace.
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str, error: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, error=error).model_dump(exclude_none=True),
    )


@app.exception_handler(CarVaultError)
async def carvault_error_handler(request: Request, exc: CarVaultError) -> JSONResponse:
    """Render a domain error with its own status code.

    Only 400-class errors carry the underlying cause; 401 and 404 bodies are
    fixed so they reveal nothing about which check failed.
    """
    detail = exc.detail if exc.status_code == 400 and exc.detail else None
    response = _error(exc.status_code, exc.message, detail)
    if isinstance(exc, Unauthorized):
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when a rate limit is exceeded. Retry-After is in seconds."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "Too many requests.", str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when the request body or query params fail schema validation."""
    return _error(400, "Request validation failed", str(exc.errors()))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. Not rate limited.
# ---------------------------------------------------------------------------


@app.get(f"{settings.api_prefix}/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version and a database round-trip check."""
    try:
        request.app.state.user_store.ping()
        request.app.state.car_store.ping()
        database = "ok"
    except SQLAlchemyError:
        logger.exception("Health check database probe failed")
        database = "error"
    status = "healthy" if database == "ok" else "degraded"
    return HealthResponse(status=status, version=__version__, components={"app": "ok", "database": database})
