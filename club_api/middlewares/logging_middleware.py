"""
Structured request logging middleware.

Sets the request id for every request and logs failed or slow requests.
"""
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from club_api.config import get_settings
from club_api.utils.client_ip import get_client_ip
from club_api.utils.logger import log_error, log_warning, set_request_id

REQUEST_ID_HEADER = "X-Request-ID"

# Probes, docs and scrapes are neither logged nor tagged
EXCLUDED_PATHS = {
    "/health",
    "/health/liveness",
    "/health/readiness",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/metrics",
    "/favicon.ico",
}


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Request logging middleware.

    - Request id: taken from X-Request-ID or generated, echoed in the response
    - 5xx → ERROR
    - 4xx → WARNING
    - Slower than SLOW_REQUEST_THRESHOLD_MS → WARNING
    - Successful requests are not logged
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXCLUDED_PATHS:
            return await call_next(request)

        rid = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        client_ip = get_client_ip(request)
        user_agent = request.headers.get("user-agent")
        threshold_ms = get_settings().slow_request_threshold_ms

        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            log_error(
                f"Request exception: {str(e)}",
                error_type=type(e).__name__,
                error_message=str(e),
                http_method=request.method,
                http_path=request.url.path,
                duration_ms=duration_ms,
                client_ip=client_ip,
                user_agent=user_agent,
                request_id=rid,
                event="request",
                exc_info=True,
            )
            raise

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        response.headers[REQUEST_ID_HEADER] = rid
        status_code = response.status_code

        if status_code >= 500:
            log_error(
                "Request error - Server error occurred",
                error_type="ServerError",
                error_code=f"HTTP_{status_code}",
                http_method=request.method,
                http_path=request.url.path,
                http_status=status_code,
                duration_ms=duration_ms,
                client_ip=client_ip,
                user_agent=user_agent,
                request_id=rid,
                event="request",
            )
        elif status_code >= 400:
            log_warning(
                "Request failed - Client error",
                http_method=request.method,
                http_path=request.url.path,
                http_status=status_code,
                duration_ms=duration_ms,
                client_ip=client_ip,
                user_agent=user_agent,
                request_id=rid,
                event="request",
            )
        elif duration_ms >= threshold_ms:
            log_warning(
                "Slow request detected",
                http_method=request.method,
                http_path=request.url.path,
                http_status=status_code,
                duration_ms=duration_ms,
                client_ip=client_ip,
                user_agent=user_agent,
                request_id=rid,
                event="request",
                performance_issue=True,
            )

        return response
