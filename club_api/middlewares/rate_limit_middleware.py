"""
Rate limiting using slowapi.
Applied to the write endpoints (photo upload).
"""
import logging
from typing import Callable

from fastapi import Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from club_api.config import get_settings
from club_api.utils.client_ip import get_client_ip
from club_api.utils.prometheus_metrics import rate_limit_hits_total

logger = logging.getLogger("club_api.rate_limit")
settings = get_settings()


def get_client_identifier(request: Request) -> str:
    """Rate limiting key: the real client IP behind proxies."""
    return get_client_ip(request) or "unknown"


# In-memory storage; each instance keeps its own counters
limiter = Limiter(
    key_func=get_client_identifier,
    enabled=settings.rate_limit_enabled,
    storage_uri="memory://",
)


def upload_rate_limit() -> str:
    return f"{get_settings().upload_rate_limit_per_minute}/minute"


def setup_rate_limit_exception_handler(app) -> None:
    """
    Register the limiter on the app and render 429 in the error envelope.
    """
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        client_id = get_client_identifier(request)
        endpoint = request.url.path

        rate_limit_hits_total.labels(endpoint=endpoint).inc()
        logger.warning(
            "Rate limit exceeded",
            extra={
                "event": "rate_limit",
                "client_id": client_id,
                "endpoint": endpoint,
                "limit": getattr(exc, "detail", "unknown"),
            },
        )

        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"success": False, "error": f"Rate limit exceeded: {exc.detail}"},
        )


def get_rate_limit_decorator(limit) -> Callable:
    """
    Rate limit decorator helper.

    Args:
        limit: Limit string (e.g. "10/minute") or a callable returning one

    Returns:
        The slowapi decorator, or a no-op when rate limiting is disabled
    """
    if not settings.rate_limit_enabled:
        def noop_decorator(func: Callable) -> Callable:
            return func
        return noop_decorator

    return limiter.limit(limit)
