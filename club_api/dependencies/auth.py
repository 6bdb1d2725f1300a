"""
API key dependency for the write endpoints.
"""
import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

from club_api.config import Settings, get_settings

logger = logging.getLogger("club_api.auth")

API_KEY_HEADER = "X-API-Key"

api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


async def require_api_key(
    api_key: Optional[str] = Depends(api_key_header),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Dependency that rejects requests whose X-API-Key does not match UPLOAD_API_KEY.

    An unset UPLOAD_API_KEY rejects every request.

    Raises:
        HTTPException: 401 when the key is missing or wrong
    """
    expected = settings.upload_api_key
    if not expected or not api_key or not secrets.compare_digest(api_key.encode(), expected.encode()):
        reason = "not_configured" if not expected else ("no_key" if not api_key else "invalid_key")
        logger.warning("Auth failed", extra={"event": "auth", "reason": reason})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Invalid API key",
        )
