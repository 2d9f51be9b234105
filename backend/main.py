"""
Tribeworks FastAPI Application
Main entry point for the bounty and grant lifecycle API.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.api import applications, bounties, cron, health, organizations
from backend.core.config import settings
from backend.core.exceptions import LifecycleError
from backend.core.sentry import capture_exception, init_sentry
from backend.database import close_db, init_db
from backend.schemas.common import format_validation_errors

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan Events
# =============================================================================


def validate_security_settings() -> None:
    """
    Validate critical security settings at startup.
    Raises RuntimeError if insecure configuration detected in production.
    """
    is_production = settings.environment.lower() in ("production", "prod")
    warnings = []
    errors = []

    insecure_keys = [
        "CHANGE-THIS-IN-PRODUCTION-REQUIRED",
        "secret",
        "changeme",
    ]
    if settings.secret_key in insecure_keys or len(settings.secret_key) < 32:
        msg = "SECRET_KEY is insecure or too short (minimum 32 characters required)"
        if is_production:
            errors.append(msg)
        else:
            warnings.append(msg)

    if is_production and settings.debug:
        errors.append("DEBUG mode must be disabled in production (set DEBUG=false)")

    if is_production and not settings.cron_secret:
        warnings.append("CRON_SECRET is not set - /cron endpoints are unauthenticated")

    for warning in warnings:
        logger.warning(f"SECURITY WARNING: {warning}")

    if errors:
        for error in errors:
            logger.error(f"SECURITY ERROR: {error}")
        raise RuntimeError(f"Cannot start in production with insecure configuration: {'; '.join(errors)}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handle application startup and shutdown events.

    Startup: validate settings, enable Sentry, create tables in debug mode.
    Shutdown: close database connections.
    """
    logger.info("Starting Tribeworks API...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"Version: {settings.app_version}")

    validate_security_settings()

    if init_sentry():
        logger.info("Sentry error tracking enabled")
    else:
        logger.info("Sentry error tracking disabled (no DSN configured)")

    # In production, use migrations instead
    if settings.debug:
        try:
            await init_db()
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Database initialization failed: {e}")

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down Tribeworks API...")
    await close_db()
    logger.info("Database connections closed")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Tribeworks API",
    description="""
    Bounty and Grant Lifecycle API

    Tribeworks connects funding organizations with builders through bounties
    (fixed-prize competitions) and grants (open-ended funding programs).

    ## Features

    - **Grant Applications**: Apply to open grants; reviewers approve or reject
    - **Bounty Submissions**: Submit work, pick winners, announce results
    - **Deadline Automation**: Expired bounties move to review on a schedule

    ## Authentication

    Endpoints that act on behalf of a user require a JWT bearer token issued
    by the auth provider.
    """,
    version=settings.app_version,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

# =============================================================================
# CORS Middleware
# =============================================================================

allowed_origins = [settings.frontend_url, settings.dashboard_url]
if settings.debug:
    allowed_origins.extend(
        [
            "http://localhost:3000",
            "http://localhost:3001",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:3001",
        ]
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =============================================================================
# Exception Handlers
# =============================================================================

_KIND_BY_STATUS = {
    status.HTTP_400_BAD_REQUEST: "ValidationFailed",
    status.HTTP_401_UNAUTHORIZED: "Unauthenticated",
    status.HTTP_403_FORBIDDEN: "Forbidden",
    status.HTTP_404_NOT_FOUND: "NotFound",
    status.HTTP_405_METHOD_NOT_ALLOWED: "MethodNotAllowed",
    status.HTTP_409_CONFLICT: "Duplicate",
}


def error_response(status_code: int, kind: str, message: Any, headers: dict | None = None, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": True,
            "kind": kind,
            "message": message,
            "status_code": status_code,
            **extra,
        },
        headers=headers,
    )


@app.exception_handler(LifecycleError)
async def lifecycle_exception_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    """Render tagged lifecycle errors with their kind."""
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} error on {request.method} {request.url.path}: {exc.message}")
    return error_response(exc.status_code, exc.kind, exc.message, getattr(exc, "headers", None))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions (including routing 404/405) with consistent format."""
    kind = _KIND_BY_STATUS.get(exc.status_code, "Unknown")
    return error_response(exc.status_code, kind, exc.detail, getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and parameters are ValidationFailed like service-side checks."""
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "ValidationFailed",
        format_validation_errors(exc),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")

    event_id = capture_exception(
        exc,
        extra={
            "request_url": str(request.url),
            "request_method": request.method,
            "request_path": request.url.path,
        },
    )

    # Don't expose internal errors in production
    if settings.debug:
        detail = str(exc)
    else:
        detail = f"Internal server error (ref: {event_id})" if event_id else "Internal server error"

    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Unknown",
        detail,
        error_id=event_id,
    )


# =============================================================================
# API Routers
# =============================================================================

# Public endpoints - no auth required
app.include_router(health.router)
app.include_router(cron.router)

app.include_router(applications.router)
app.include_router(bounties.router)
app.include_router(organizations.router)


# =============================================================================
# Root Endpoint
# =============================================================================


@app.get(
    "/",
    tags=["Root"],
    summary="API root",
)
async def root() -> dict[str, Any]:
    """API root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Bounty and Grant Lifecycle API",
        "docs_url": "/docs" if settings.debug else None,
        "health_url": "/health",
        "readiness_url": "/health/ready",
    }


# For running with uvicorn directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "backend.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )
