"""
api/main.py -- FastAPI application entry point for the Aria Creative API.

Backs the agency's marketing site (public project list, contact form, images)
and its admin back office (JWT-protected CRUD).

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for the configured front-end origins
  3. SlowAPIMiddleware     -- enforces the app-wide per-IP limit from api.limiter
                              (health is exempt; decorated routes check their own)

Lifespan owns every persistence client: stores are built on startup, attached
to app.state, and disposed on shutdown. Nothing connects to a database at
import time.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import LoginRateLimiter, limiter
from api.models import ErrorResponse, FieldViolation, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.categories import router as categories_router
from api.routes.v1.contact import router as contact_router
from api.routes.v1.projects import router as projects_router
from api.routes.v1.upload import router as upload_router
from auth.store import UserStore
from core.config import get_settings
from core.errors import ApiError, ValidationError
from portfolio.mailer import ContactMailer
from portfolio.store import PortfolioStore
from portfolio.uploads import ImageStorage

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("ariacreative.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build and dispose every application-level resource.

    Startup order matters:
      1. Stores first -- everything else depends on them.
      2. Image storage -- wraps the portfolio store.
      3. Mailer and login limiter -- no dependencies.
    """
    logger.info("Aria Creative API starting up (debug=%s)", _settings.debug)
    app.state.user_store = UserStore(_settings.database_url)
    app.state.portfolio = PortfolioStore(_settings.database_url)
    logger.info("Database initialized")
    app.state.image_storage = ImageStorage(
        app.state.portfolio,
        backend=_settings.upload_storage,
        upload_dir=_settings.upload_dir,
        max_size=_settings.max_file_size,
        max_files=_settings.max_files,
    )
    logger.info("Upload storage: %s", _settings.upload_storage)
    app.state.mailer = ContactMailer(_settings)
    if not app.state.mailer.configured:
        logger.warning("EMAIL_HOST/EMAIL_USER/EMAIL_PASSWORD not set -- contact notifications disabled")
    app.state.login_limiter = LoginRateLimiter(_settings.login_rate_limit)
    app.state.start_time = time.monotonic()

    yield

    # Shutdown
    app.state.portfolio.close()
    app.state.user_store.close()
    logger.info("Aria Creative API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Aria Creative API",
    description="Portfolio, contact inbox and image uploads for the Aria Creative agency site.",
    version=_settings.app_version,
    lifespan=lifespan,
    docs_url="/docs" if _settings.debug else None,
    redoc_url="/redoc" if _settings.debug else None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() wraps the existing app, so the LAST call becomes the
# outermost layer. Register innermost first: SlowAPI -> CORS -> TrustedHost.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,  # the auth cookie must travel with cross-origin requests
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

# Attach the shared limiter to app.state so SlowAPIMiddleware can locate it.
# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Captures wall-clock time before and after call_next so every response is
# logged with its latency. A request whose handler raises is logged as 500.
# Bodies and headers are never logged.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %.1fms %s",
            request.method,
            request.url.path,
            status_code,
            ms,
            request.client.host if request.client else "unknown",
        )


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(projects_router, prefix="/api/v1", tags=["Projects"])
app.include_router(contact_router, prefix="/api/v1", tags=["Contact"])
app.include_router(categories_router, prefix="/api/v1", tags=["Categories"])
app.include_router(upload_router, prefix="/api/v1", tags=["Upload"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly:  {"success": false, "error": code, "message": ..., "details"?: ...}
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, details=None, extra: dict | None = None) -> JSONResponse:
    content = ErrorResponse(error=code, message=message, details=details).model_dump(exclude_none=True)
    if extra:
        content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Render any domain error raised by a store, service or route."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    response = _error_response(exc.status_code, exc.code, exc.message, exc.details, exc.extra)
    retry_after = getattr(exc, "retry_after", None)
    if retry_after is not None:
        seconds = max(0, int((retry_after - datetime.now(timezone.utc)).total_seconds()))
        response.headers["Retry-After"] = str(seconds)
    return response


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when a slowapi limit (app-wide or per-route) is exceeded.

    Sync on purpose: SlowAPIMiddleware calls this handler directly and does
    not await it.
    """
    # The window length is an upper bound on the wait.
    limit = getattr(exc, "limit", None)
    retry_after = limit.limit.get_expiry() if limit is not None else 3600
    response = _error_response(429, "rate_limited", "Too many requests. Try again later.", details=str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 listing every violation as {field, message}."""
    violations = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path", "header", "cookie"):
            loc = loc[1:]
        violations.append(FieldViolation(field=".".join(loc) or "body", message=error.get("msg", "Invalid value.")))
    failure = ValidationError("Request validation failed.", details=[v.model_dump() for v in violations])
    return _error_response(failure.status_code, failure.code, failure.message, failure.details)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return the envelope for framework-raised HTTP errors (404 route, 405 method)."""
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The stack trace goes to the log only. details carries the exception text
    in debug mode and is omitted in production.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(
        500,
        "internal_error",
        "An unexpected error occurred.",
        details=str(exc) if _settings.debug else None,
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit applied -- health
# checks from load balancers and monitoring systems must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
@limiter.exempt
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, uptime and database reachability."""
    try:
        db_ok = request.app.state.user_store.ping() and request.app.state.portfolio.ping()
    except Exception:
        logger.exception("Health check database ping failed")
        db_ok = False
    return HealthResponse(
        status="ok" if db_ok else "degraded",
        version=_settings.app_version,
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime=round(time.monotonic() - request.app.state.start_time, 3),
        database="connected" if db_ok else "error",
    )
