"""
Health check router.

Endpoints for load balancers, Kubernetes probes and monitoring.
"""
import asyncio
import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from club_api.config import Settings, get_settings
from club_api.services.challenge_data import ChallengeDataRepository, get_challenge_data_repository
from club_api.services.object_storage import ObjectStorageService, get_storage_service
from club_api.services.song import SongRepository, get_song_repository
from club_api.utils.prometheus_metrics import REGISTRY, Gauge, ready

logger = logging.getLogger("club_api.health")
router = APIRouter(prefix="/health", tags=["Health"])

health_check_status = Gauge(
    "club_api_health_check_status",
    "Health check status (1=healthy, 0=unhealthy)",
    ["check_type"],
    registry=REGISTRY,
)

CHECK_TIMEOUT_SECONDS = 1.0


def _is_ready() -> bool:
    return ready._value.get() != 0


@router.get(
    "",
    summary="Health check (fast)",
)
async def health_check(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    """
    Fast health check for load balancers.

    Only reports whether the application is accepting requests.
    """
    start_time = time.perf_counter()

    if not _is_ready():
        health_check_status.labels(check_type="fast").set(0)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application is shutting down",
        )

    health_check_status.labels(check_type="fast").set(1)
    return {
        "status": "healthy",
        "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
        "instance": settings.instance_ip or "unknown",
    }


@router.get(
    "/liveness",
    summary="Liveness probe (Kubernetes)",
)
async def liveness_probe() -> Dict[str, str]:
    if not _is_ready():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application is shutting down",
        )
    return {"status": "alive"}


@router.get(
    "/readiness",
    summary="Readiness probe (Kubernetes)",
)
async def readiness_probe(settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    """
    Readiness probe: the song catalog file and the challenge data directory exist.
    """
    if not _is_ready():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application is not ready",
        )

    if not settings.songs_file.is_file():
        logger.warning("Readiness check failed: songs file", extra={"event": "health", "path": str(settings.songs_file)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Songs data not available",
        )

    if not settings.challenge_data_dir.is_dir():
        logger.warning(
            "Readiness check failed: challenge data directory",
            extra={"event": "health", "path": str(settings.challenge_data_dir)},
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Challenge data not available",
        )

    return {"status": "ready"}


@router.get(
    "/detailed",
    summary="Detailed health check (monitoring)",
)
async def detailed_health_check(
    settings: Settings = Depends(get_settings),
    songs: SongRepository = Depends(get_song_repository),
    challenges: ChallengeDataRepository = Depends(get_challenge_data_repository),
    storage: ObjectStorageService = Depends(get_storage_service),
) -> Dict[str, Any]:
    """
    Detailed health check for monitoring.

    - Song catalog loads
    - Challenge data directory is listable
    - Object Storage issues a token (skipped when not configured)
    """
    start_time = time.perf_counter()
    checks: Dict[str, Any] = {
        "status": "healthy",
        "checks": {},
    }

    if not _is_ready():
        checks["status"] = "unhealthy"
        checks["checks"]["ready"] = {"status": "down", "error": "Application is shutting down"}
        health_check_status.labels(check_type="detailed").set(0)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=checks,
        )

    try:
        catalog = await asyncio.wait_for(songs.cache.get(), timeout=CHECK_TIMEOUT_SECONDS)
        checks["checks"]["songs"] = {"status": "up", "song_count": len(catalog)}
    except asyncio.TimeoutError:
        checks["status"] = "unhealthy"
        checks["checks"]["songs"] = {"status": "down", "error": "Timeout"}
    except Exception as e:
        checks["status"] = "unhealthy"
        checks["checks"]["songs"] = {"status": "down", "error": str(e)[:200]}
        logger.warning("Songs health check failed", extra={"event": "health", "error": str(e)})

    try:
        file_names = await challenges.list_file_names()
        checks["checks"]["challenge_data"] = {"status": "up", "file_count": len(file_names)}
    except OSError as e:
        checks["status"] = "unhealthy"
        checks["checks"]["challenge_data"] = {"status": "down", "error": str(e)[:200]}
        logger.warning("Challenge data health check failed", extra={"event": "health", "error": str(e)})

    if storage.is_configured:
        try:
            authenticated = await asyncio.wait_for(storage.check_auth(), timeout=CHECK_TIMEOUT_SECONDS)
            if authenticated:
                checks["checks"]["object_storage"] = {"status": "up"}
            else:
                checks["status"] = "unhealthy"
                checks["checks"]["object_storage"] = {"status": "down", "error": "Failed to get auth token"}
        except asyncio.TimeoutError:
            checks["status"] = "unhealthy"
            checks["checks"]["object_storage"] = {"status": "down", "error": "Timeout"}
        except Exception as e:
            checks["status"] = "unhealthy"
            checks["checks"]["object_storage"] = {"status": "down", "error": str(e)[:200]}
            logger.warning("Object Storage health check failed", extra={"event": "health", "error": str(e)})
    else:
        checks["checks"]["object_storage"] = {"status": "skipped", "reason": "Not configured"}

    checks["duration_ms"] = round((time.perf_counter() - start_time) * 1000, 2)
    checks["instance"] = settings.instance_ip or "unknown"

    if checks["status"] == "unhealthy":
        health_check_status.labels(check_type="detailed").set(0)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=checks,
        )

    health_check_status.labels(check_type="detailed").set(1)
    return checks
