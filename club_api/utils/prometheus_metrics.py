"""
Prometheus metrics.

- FastAPI: request count, latency (Instrumentator)
- Node/instance: app_info
- Stability: exceptions_total, external_request_errors_total, item_read_failures_total
- HA: ready gauge (1=up, 0=shutting down)
- Performance: external_request_duration_seconds, song_cache_requests_total
"""
import logging
import socket
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from prometheus_client import REGISTRY, Counter, Gauge, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

from club_api.config import get_settings

logger = logging.getLogger(__name__)

# --- Stability ---
exceptions_total = Counter(
    "club_api_exceptions_total",
    "Total unhandled exceptions",
    registry=REGISTRY,
)
external_request_errors_total = Counter(
    "club_api_external_request_errors_total",
    "Total external API request failures",
    ["service"],
    registry=REGISTRY,
)
external_request_total = Counter(
    "club_api_external_request_total",
    "Total external API requests by service and outcome",
    ["service", "status"],  # status: success | failure
    registry=REGISTRY,
)

# Items dropped from a best-effort batch (corrupt metadata document, unreadable monthly file)
item_read_failures_total = Counter(
    "club_api_item_read_failures_total",
    "Items excluded from a batch because they could not be read or parsed",
    ["source"],  # source: photo_metadata | challenge_file
    registry=REGISTRY,
)

# --- HA ---
ready = Gauge(
    "club_api_ready",
    "Application ready (1=up, 0=shutting down)",
    registry=REGISTRY,
)

# --- Performance ---
external_request_duration_seconds = Histogram(
    "club_api_external_request_duration_seconds",
    "External API request duration in seconds",
    ["service", "result"],  # result: success | failure
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

song_cache_requests_total = Counter(
    "club_api_song_cache_requests_total",
    "Song catalog lookups by cache outcome",
    ["result"],  # hit | miss
    registry=REGISTRY,
)

# --- Business ---
photo_upload_total = Counter(
    "club_api_photo_upload_total",
    "Photo uploads by outcome",
    ["result"],  # success | failure | rejected
    registry=REGISTRY,
)

rate_limit_hits_total = Counter(
    "club_api_rate_limit_hits_total",
    "Requests rejected by the rate limiter",
    ["endpoint"],
    registry=REGISTRY,
)

challenge_sets_published_total = Counter(
    "club_api_challenge_sets_published_total",
    "Monthly challenge sets written to the challenge data directory",
    registry=REGISTRY,
)

app_info = Gauge(
    "club_api_app_info",
    "Application and node identity (labels only, value is 1)",
    ["node", "app", "version", "environment"],
    registry=REGISTRY,
)


def _node_identity() -> str:
    """Node/instance identifier: NODE_NAME env or hostname."""
    settings = get_settings()
    if settings.node_name:
        return settings.node_name
    try:
        return socket.gethostname()
    except OSError:
        return "unknown"


@asynccontextmanager
async def record_external_request(service: str) -> AsyncGenerator[None, None]:
    """
    Context manager to record external request duration, total count, and errors.
    Use around Object Storage HTTP calls.
    """
    start = time.perf_counter()
    exc_raised = None
    try:
        yield
    except Exception as e:
        exc_raised = e
        external_request_errors_total.labels(service=service).inc()
        external_request_total.labels(service=service, status="failure").inc()
        raise
    finally:
        duration = time.perf_counter() - start
        result = "failure" if exc_raised is not None else "success"
        if exc_raised is None:
            external_request_total.labels(service=service, status="success").inc()
        external_request_duration_seconds.labels(service=service, result=result).observe(duration)


def setup_prometheus(app) -> None:
    """
    Register Prometheus instrumentation.

    1. app_info labels.
    2. Instrumentator (FastAPI request metrics).
    3. /metrics endpoint.
    """
    settings = get_settings()
    app_info.labels(
        node=_node_identity(),
        app=settings.app_name,
        version=settings.app_version,
        environment=settings.environment.value,
    ).set(1)

    Instrumentator(should_group_status_codes=False).instrument(app).expose(
        app, endpoint="/metrics"
    )
