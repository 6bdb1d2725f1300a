"""
Taiko Club API application.

Main application entry point that configures:
- CORS middleware
- API routers
- Logging system
- Exception handlers (every error rendered as {"success": false, "error": ...})
- Prometheus metrics
- Rate limiting
"""
import logging
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from club_api.config import get_settings
from club_api.middlewares.logging_middleware import LoggingMiddleware
from club_api.middlewares.rate_limit_middleware import setup_rate_limit_exception_handler
from club_api.routers import (
    challenge_data_router,
    challenge_generator_router,
    health_router,
    photos_router,
    songs_router,
)
from club_api.schemas.common import ErrorResponse
from club_api.utils.logger import get_request_id, log_error, log_info, setup_logging
from club_api.utils.prometheus_metrics import exceptions_total, ready, setup_prometheus

settings = get_settings()
logger = logging.getLogger("club_api")

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan.

    Startup validates configuration (production only) and marks the instance
    ready; shutdown marks it not ready so health checks fail first.
    """
    if settings.is_production:
        from club_api.utils.config_validator import validate_all_config
        config_ok, config_errors = await validate_all_config()
        if not config_ok:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in config_errors)
            log_error(
                "Startup failed: configuration validation errors",
                error_message=error_msg,
                event="lifecycle",
            )
            raise RuntimeError(error_msg)
        log_info("Configuration validation passed", event="lifecycle")

    ready.set(1)
    log_info(
        "Application startup completed",
        event="lifecycle",
        version=settings.app_version,
        environment=settings.environment.value,
    )

    yield

    ready.set(0)
    log_info("Application shutdown completed", event="lifecycle")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
## Taiko Club API

Read-mostly JSON API behind the club website.

### Features
- **Songs**: Browse and filter the song catalog
- **Photos**: Gallery listing with search and sort, API-key protected upload
- **Challenges**: Monthly challenge sets, generator and publishing

### Responses
Successful responses carry `success: true`; errors are `{"success": false, "error": "..."}`.
    """,
    openapi_tags=[
        {"name": "Songs", "description": "Song catalog"},
        {"name": "Photos", "description": "Photo gallery and upload"},
        {"name": "Challenges", "description": "Monthly challenge files"},
        {"name": "Challenge Generator", "description": "Build and export challenge sets"},
        {"name": "Health", "description": "Probes and monitoring"},
    ],
    lifespan=lifespan,
)

# Prometheus: FastAPI metrics + node info at /metrics
setup_prometheus(app)

# Rate limiting: limiter state and 429 handler
setup_rate_limit_exception_handler(app)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add structured logging middleware
app.add_middleware(LoggingMiddleware)


def _error_message(detail, status_code: int) -> str:
    if isinstance(detail, str):
        return detail
    return HTTPStatus(status_code).phrase


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors in the response envelope."""
    content = ErrorResponse(error=_error_message(exc.detail, exc.status_code)).model_dump()
    if not isinstance(exc.detail, str) and exc.detail is not None:
        content["details"] = exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request body validation errors are 400 with the first problem as the message."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error=message).model_dump(),
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Unhandled exception handler with structured logging.

    Logs at ERROR with the request id and returns a 500 envelope; the id lets
    a client report the failure.
    """
    exceptions_total.inc()
    rid = get_request_id()

    log_error(
        "Unhandled exception occurred",
        error_type=type(exc).__name__,
        error_message=str(exc),
        error_code="INTERNAL_SERVER_ERROR",
        http_method=request.method,
        http_path=request.url.path,
        request_id=rid,
        event="exception",
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "Internal server error",
            "request_id": rid,
        },
    )


# Include routers
app.include_router(health_router)
app.include_router(songs_router)
app.include_router(photos_router)
app.include_router(challenge_data_router)
app.include_router(challenge_generator_router)


# Root endpoint
@app.get(
    "/",
    tags=["Root"],
    summary="API information",
)
async def root():
    """
    Root endpoint with API information.
    """
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
