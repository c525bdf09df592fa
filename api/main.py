"""
api/main.py -- FastAPI application entry point for Assure Health.

Run with:  uvicorn asgi:app --reload
           python asgi.py

Middleware stack (outermost to innermost). Starlette wraps the most recently
registered middleware outermost, so this is the reverse of registration order:
  1. log_requests        -- method, path, status and latency per request
  2. security_headers    -- nosniff / frame deny / XSS / HSTS on every response
  3. CORSMiddleware      -- adds CORS headers for the origins in Settings

Lifespan builds the account directory, token service, mailer and AuthFlow
from Settings on startup and releases them on shutdown. A Settings object
that fails validation aborts startup, so a misconfigured process never
accepts connections.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import API_VERSION, ApiIndexResponse, HealthResponse, WelcomeResponse
from api.routes.users import error_response
from api.routes.users import router as users_router
from auth.dependencies import optional_authenticate
from auth.models import TokenClaim
from auth.service import AuthFlow
from auth.store import AccountDirectory
from auth.tokens import TokenService
from core.config import get_settings
from core.mailer import SendGridMailer

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("assurehealth.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Wire application services onto app.state.

    Startup order: settings (raises on bad config), directory (creates the
    schema), token service, mailer, then the AuthFlow that composes them.
    Shutdown releases the mailer session and the database engine.
    """
    settings = get_settings()
    logger.info("Assure Health API starting up (environment=%s)", settings.environment)

    app.state.settings = settings
    app.state.directory = AccountDirectory(settings.database_url)
    app.state.token_service = TokenService(settings.jwt_key)
    app.state.mailer = SendGridMailer(settings)
    app.state.auth_flow = AuthFlow(
        app.state.directory,
        app.state.token_service,
        app.state.mailer,
        bcrypt_rounds=settings.bcrypt_rounds,
    )
    logger.info("Account directory ready (%d accounts)", app.state.directory.count())

    yield

    app.state.mailer.close()
    app.state.directory.close()
    logger.info("Assure Health API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Assure Health API",
    description="Account signup, email verification, login and profile management.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# CORS origins must be known when the middleware stack is built, which happens
# before the lifespan runs, so Settings are read here as well. The call is
# cached; the lifespan gets the same instance.
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in _SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


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

app.include_router(users_router, tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error leaves the service as {success: false, status, error}.
# ---------------------------------------------------------------------------


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Envelope for guard rejections and router misses.

    The router raises 404 "Not Found" for an unknown path and 405 for a known
    path with the wrong method. Both are reported as a missing route.
    """
    if exc.status_code in (404, 405) and exc.detail in ("Not Found", "Method Not Allowed"):
        return error_response(404, f"Route {request.method} {request.url.path} not found")
    response = error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Unparseable request bodies are a 400, like every other validation failure."""
    errors = exc.errors()
    if any(err.get("type") == "json_invalid" for err in errors):
        return error_response(400, "Request body must be valid JSON")
    return error_response(400, ", ".join(str(err.get("msg", "Invalid request")) for err in errors))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors. The traceback goes to the log only."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return error_response(500, "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# System endpoints
#
# Defined directly in main.py so they stay reachable regardless of router
# registration state.
# ---------------------------------------------------------------------------


@app.get("/", tags=["System"])
def index(request: Request) -> JSONResponse:
    """Service banner with the running environment."""
    settings = request.app.state.settings
    return JSONResponse(content=WelcomeResponse(environment=settings.environment).to_wire())


@app.get("/health", tags=["System"])
def health(request: Request) -> JSONResponse:
    """Liveness plus a database probe. 503 when the directory cannot be read."""
    components = {"app": "ok"}
    try:
        request.app.state.directory.count()
        components["database"] = "ok"
    except Exception:
        logger.exception("Health check database probe failed")
        components["database"] = "error"

    healthy = components["database"] == "ok"
    body = HealthResponse(
        success=healthy,
        message="API is running successfully" if healthy else "Database unavailable",
        timestamp=datetime.now(timezone.utc).isoformat(),
        components=components,
    )
    return JSONResponse(status_code=200 if healthy else 503, content=body.to_wire())


_ENDPOINTS = {
    "auth": [
        "POST /user/signup",
        "GET /user/verify_mail/{email}",
        "POST /user/login",
    ],
    "users": [
        "PATCH /user/update",
        "PATCH /user/update/health_plan",
        "DELETE /user/delete",
        "GET /users",
    ],
    "system": [
        "GET /",
        "GET /health",
        "GET /api",
    ],
}


@app.get("/api", tags=["System"])
def api_index(claim: TokenClaim | None = Depends(optional_authenticate)) -> JSONResponse:
    """Route listing. Names the caller when a valid bearer token is sent."""
    body = ApiIndexResponse(
        endpoints=_ENDPOINTS,
        authenticated_as=claim.email if claim is not None else None,
    )
    return JSONResponse(content=body.to_wire())
