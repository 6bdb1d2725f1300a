"""
Photo-related Pydantic schemas for request/response validation.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from club_api.schemas.common import Pagination

METADATA_SUFFIX = ".metadata.json"


class PhotoSort(str, Enum):
    """Supported photo orderings."""
    NEWEST = "newest"
    OLDEST = "oldest"
    TITLE = "title"


class Photo(BaseModel):
    """
    Photo as described by its metadata document.
    The metadata document is stored next to the image as `<base>.metadata.json`.
    """

    id: str
    url: str
    title: str
    uploadedAt: str
    size: int = Field(..., ge=0)
    contentType: str
    originalFilename: Optional[str] = None
    imageUrl: str


class PhotoQuery(BaseModel):
    """Search, sort and page parameters for the photo list."""

    page: int = 1
    limit: int = 20
    search: str = ""
    sort: str = PhotoSort.NEWEST.value


class PhotoListData(BaseModel):
    photos: List[Photo]
    pagination: Pagination


class PhotoListResponse(BaseModel):
    success: bool = True
    data: PhotoListData


class PhotoUploadResponse(BaseModel):
    """Schema for photo upload response."""

    success: bool = True
    message: str = "Photo uploaded successfully"
    photo: Photo
