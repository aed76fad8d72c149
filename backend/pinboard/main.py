"""
Pinboard Backend — FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app(settings) builds the application-scoped objects (database,
       token codec, ImageKit client) from one Settings instance, stores them
       on app.state, and wires middleware, exception handlers and routers.
Who:   uvicorn (pinboard.main:app) and the test suite (create_app(test_settings)).

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                       FastAPI App                        │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌────────────┐ ┌──────────┐ ┌────────────┐ ┌─────────┐  │
    │  │ Rate Limit │→│ Req ID   │→│ Access Log │→│ CORS    │  │
    │  └────────────┘ └──────────┘ └────────────┘ └─────────┘  │
    │                                                          │
    │  Routers:                                                │
    │  /users  /pins  /boards  /comments  /health              │
    │                                                          │
    │  app.state:                                              │
    │  settings │ db (Database) │ token_codec │ image_service  │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:   logging, configuration report
    Shutdown:  close the ImageKit HTTP client, dispose the engine
"""

import logging
import secrets
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from pinboard import __version__
from pinboard.config import Settings
from pinboard.database import Database
from pinboard.exceptions import (
    AuthenticationError,
    CircuitBreakerOpenError,
    ConflictError,
    DatabaseError,
    ImageServiceError,
    NotFoundError,
    PermissionDeniedError,
    PinboardError,
    ValidationError,
)
from pinboard.middleware.logging import RequestLoggingMiddleware
from pinboard.middleware.rate_limit import RateLimitMiddleware
from pinboard.middleware.request_id import RequestIDMiddleware, request_id_var
from pinboard.routes import boards, comments, health, pins, users
from pinboard.security import TokenCodec
from pinboard.services.imagekit_service import ImageKitService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once for the whole process.

    Format: 2025-01-15T12:00:00 [INFO] pinboard.services.pin_service: Pin created: ...
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # These log every connection, statement or request at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(settings.log_level)
    logger.info("=" * 60)
    logger.info("Pinboard Backend %s starting up (%s)...", __version__, settings.environment)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: /health reports the degraded state
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Pinboard Backend shutting down...")
    await app.state.image_service.aclose()
    await app.state.db.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[dict] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "details": details,
            "request_id": request_id_var.get("") or None,
        },
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to status codes and the common error body.

    Handler table:
        RequestValidationError  → 400 (schema/form/query validation)
        ValidationError         → 400
        AuthenticationError     → 401
        PermissionDeniedError   → 403
        NotFoundError           → 404
        ConflictError           → 409
        ImageServiceError       → 500 (upstream error text in details)
        CircuitBreakerOpenError → 503
        DatabaseError           → 500 (generic message)
        PinboardError / other   → 500 (generic message)

    Internal details (SQL, stack traces) are logged, never returned.
    """

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(loc) for loc in err["loc"] if loc not in ("body", "query", "path", "form")),
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        logger.warning("[%s] Request validation failed: %s", request_id_var.get(""), errors)
        return _error_response(
            400,
            "validation_error",
            "Request validation failed",
            details={"errors": errors},
        )

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, details=exc.context)

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return _error_response(401, "unauthorized", exc.message)

    @app.exception_handler(PermissionDeniedError)
    async def handle_permission_denied(request: Request, exc: PermissionDeniedError):
        return _error_response(403, "forbidden", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return _error_response(409, "conflict", exc.message, details=exc.context or None)

    @app.exception_handler(ImageServiceError)
    async def handle_image_service_error(request: Request, exc: ImageServiceError):
        logger.error("[%s] Image service error: %s | %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "image_service_error", exc.message, details=exc.context)

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("[%s] Circuit breaker open: %s", request_id_var.get(""), exc.message)
        return _error_response(
            503,
            "service_unavailable",
            exc.message,
            details={"recovery_time": exc.recovery_time},
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(PinboardError)
    async def handle_pinboard_error(request: Request, exc: PinboardError):
        logger.error("[%s] Unhandled application error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return _error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Assemble the application.

    Args:
        settings: configuration; read from the environment when omitted.

    Raises:
        ValueError: JWT_SECRET is empty in production. Outside production an
            empty secret is replaced by a random one for this process.

    Everything a request needs is created here rather than in the lifespan
    so that an app driven without lifespan events (httpx ASGITransport in
    the tests) is fully usable.
    """
    settings = settings or Settings()

    if not settings.jwt_secret:
        if settings.is_production:
            raise ValueError("JWT_SECRET must be set when ENVIRONMENT=production")
        logger.warning(
            "JWT_SECRET is not set; signing sessions with a random per-process secret. "
            "Sessions will not survive a restart."
        )
        settings = settings.model_copy(update={"jwt_secret": secrets.token_urlsafe(32)})

    app = FastAPI(
        title="Pinboard API",
        description=(
            "Pinterest-style media sharing: accounts, pins with server-side image "
            "composition, boards, follows, likes, saves and comments."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.db = Database(settings)
    app.state.token_codec = TokenCodec(settings)
    app.state.image_service = ImageKitService(settings)

    # ── Middleware ────────────────────────────────────────────────────────
    # Executes in reverse order of addition: the rate limiter runs first.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        # The session lives in a cookie
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window,
    )

    register_exception_handlers(app)

    # ── Routes ────────────────────────────────────────────────────────────
    app.include_router(users.router)
    app.include_router(pins.router)
    app.include_router(boards.router)
    app.include_router(comments.router)
    app.include_router(health.router)

    return app


# uvicorn pinboard.main:app
app = create_app()
