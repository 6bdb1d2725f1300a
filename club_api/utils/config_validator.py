"""
Configuration validation.

Run at startup in production; collects every problem so one failed start
reports all of them.
"""
import logging
from typing import List, Optional, Tuple

from club_api.config import Settings, get_settings

logger = logging.getLogger("club_api.config_validator")


def _validate_storage_config(settings: Settings) -> List[str]:
    """Object Storage credentials and container."""
    errors: List[str] = []

    if not settings.storage_iam_user:
        errors.append("STORAGE_IAM_USER is required")
    if not settings.storage_iam_password:
        errors.append("STORAGE_IAM_PASSWORD is required")
    if not settings.storage_tenant_id:
        errors.append("STORAGE_TENANT_ID is required")
    if not settings.storage_container:
        errors.append("STORAGE_CONTAINER is required")

    if not settings.storage_public_url:
        logger.warning(
            "STORAGE_PUBLIC_URL not set (image URLs will point at the storage API)",
            extra={"event": "config"},
        )

    if errors:
        logger.error(
            "Object Storage configuration validation failed",
            extra={"event": "config", "errors": errors},
        )
    else:
        logger.info("Object Storage configuration: OK", extra={"event": "config"})

    return errors


def _validate_upload_config(settings: Settings) -> List[str]:
    errors: List[str] = []
    if not settings.upload_api_key:
        errors.append("UPLOAD_API_KEY is required (uploads and publishing are rejected without it)")
    if settings.upload_max_file_size <= 0:
        errors.append("UPLOAD_MAX_FILE_SIZE must be positive")
    return errors


def _validate_data_paths(settings: Settings) -> List[str]:
    """Song catalog file and challenge data directory."""
    errors: List[str] = []
    if not settings.songs_file.is_file():
        errors.append(f"SONGS_FILE not found: {settings.songs_file}")
    if not settings.challenge_data_dir.is_dir():
        errors.append(f"CHALLENGE_DATA_DIR not found: {settings.challenge_data_dir}")
    return errors


async def validate_all_config(settings: Optional[Settings] = None) -> Tuple[bool, List[str]]:
    """
    Validate production configuration.

    Returns:
        (ok, error messages)
    """
    settings = settings or get_settings()
    logger.info("Starting configuration validation", extra={"event": "config"})

    errors: List[str] = []
    errors.extend(_validate_storage_config(settings))
    errors.extend(_validate_upload_config(settings))
    errors.extend(_validate_data_paths(settings))

    if errors:
        return False, errors

    logger.info("Configuration validation completed successfully", extra={"event": "config"})
    return True, []
