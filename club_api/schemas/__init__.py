"""
Pydantic schemas package.
All schemas are exported here for easy import.
"""
from club_api.schemas.common import ErrorResponse, Pagination
from club_api.schemas.song import (
    Song,
    SongLevel,
    SongQuery,
    SongOption,
    SongListResponse,
    SongOptionsResponse,
)
from club_api.schemas.photo import (
    Photo,
    PhotoQuery,
    PhotoSort,
    PhotoListResponse,
    PhotoUploadResponse,
)
from club_api.schemas.challenge import (
    Challenge,
    ChallengeCreate,
    ChallengeReward,
    ChallengeSet,
    ChallengeExportRequest,
    ChallengeFileContent,
    MonthlyChallengeFile,
)

__all__ = [
    # Common
    "ErrorResponse",
    "Pagination",
    # Song schemas
    "Song",
    "SongLevel",
    "SongQuery",
    "SongOption",
    "SongListResponse",
    "SongOptionsResponse",
    # Photo schemas
    "Photo",
    "PhotoQuery",
    "PhotoSort",
    "PhotoListResponse",
    "PhotoUploadResponse",
    # Challenge schemas
    "Challenge",
    "ChallengeCreate",
    "ChallengeReward",
    "ChallengeSet",
    "ChallengeExportRequest",
    "ChallengeFileContent",
    "MonthlyChallengeFile",
]
