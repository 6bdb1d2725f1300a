"""
Photos router: gallery listing and photo upload.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status

from club_api.config import Settings, get_settings
from club_api.dependencies.auth import require_api_key
from club_api.exceptions import SourceUnavailableError, StorageError
from club_api.middlewares.rate_limit_middleware import get_rate_limit_decorator, upload_rate_limit
from club_api.schemas.photo import PhotoListData, PhotoListResponse, PhotoQuery, PhotoSort, PhotoUploadResponse
from club_api.services.photo import PhotoRepository, get_photo_repository
from club_api.utils.pagination import parse_page_params
from club_api.utils.prometheus_metrics import photo_upload_total

logger = logging.getLogger("club_api.photos")

router = APIRouter(prefix="/api", tags=["Photos"])

# Allowed content types for photo upload
ALLOWED_CONTENT_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
}

upload_limit = get_rate_limit_decorator(upload_rate_limit)


def _reject(detail: str, status_code: int = status.HTTP_400_BAD_REQUEST) -> HTTPException:
    photo_upload_total.labels(result="rejected").inc()
    return HTTPException(status_code=status_code, detail=detail)


@router.get(
    "/photos",
    response_model=PhotoListResponse,
    summary="List gallery photos",
)
async def list_photos(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Matches title, upload time or original filename"),
    sort: Optional[str] = Query(None, description="newest (default), oldest or title"),
    photos: PhotoRepository = Depends(get_photo_repository),
    settings: Settings = Depends(get_settings),
) -> PhotoListResponse:
    """
    Search, sort and paginate the gallery.

    Metadata documents that cannot be read are left out; the listing itself
    failing is a 500.
    """
    page_number, page_size = parse_page_params(page, limit, settings.default_page_size)
    params = PhotoQuery(
        page=page_number,
        limit=page_size,
        search=search or "",
        sort=sort or PhotoSort.NEWEST.value,
    )

    try:
        items, pagination = await photos.query(params)
    except SourceUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return PhotoListResponse(data=PhotoListData(photos=items, pagination=pagination))


@router.post(
    "/upload",
    response_model=PhotoUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a photo",
    dependencies=[Depends(require_api_key)],
)
@upload_limit
async def upload_photo(
    request: Request,
    file: Optional[UploadFile] = File(None, description="Image file (JPEG, PNG, GIF or WebP)"),
    title: Optional[str] = Form(None, description="Photo title"),
    photos: PhotoRepository = Depends(get_photo_repository),
    settings: Settings = Depends(get_settings),
) -> PhotoUploadResponse:
    """
    Upload a photo with its metadata document.

    - Requires the `X-API-Key` header.
    - **file**: JPEG, PNG, GIF or WebP, at most 10MB
    - **title**: Required, surrounding whitespace is removed
    """
    if file is None:
        raise _reject("No file provided")

    clean_title = (title or "").strip()
    if not clean_title:
        raise _reject("Title is required")

    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise _reject("Invalid file type. Only JPEG, PNG, GIF, and WebP are allowed")

    content = await file.read()
    if len(content) > settings.upload_max_file_size:
        raise _reject(
            f"File too large. Maximum size is {settings.upload_max_file_size // (1024 * 1024)}MB"
        )

    try:
        photo = await photos.upload_photo(
            file_content=content,
            filename=file.filename or "photo",
            content_type=file.content_type,
            title=clean_title,
        )
    except StorageError as e:
        photo_upload_total.labels(result="failure").inc()
        logger.error("Photo upload failed", exc_info=e, extra={"event": "upload"})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upload photo",
        )

    photo_upload_total.labels(result="success").inc()
    return PhotoUploadResponse(photo=photo)
