"""
Schemas shared by every endpoint: pagination metadata and the response envelope.
"""
from pydantic import BaseModel, Field


class Pagination(BaseModel):
    """Pagination metadata returned next to every paged list."""

    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    totalPages: int = Field(..., ge=0)
    hasNextPage: bool
    hasPrevPage: bool


class ErrorResponse(BaseModel):
    """Envelope for every failed request."""

    success: bool = False
    error: str
