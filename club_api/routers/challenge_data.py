"""
Challenge data router: browse and publish monthly challenge files.
"""
import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, status

from club_api.dependencies.auth import require_api_key
from club_api.exceptions import ChallengeValidationError, SourceUnavailableError
from club_api.schemas.challenge import (
    ChallengeFileListResponse,
    ChallengeSet,
    LatestChallengeFileResponse,
    PublishedChallengeFile,
    PublishedChallengeFileResponse,
)
from club_api.services.challenge_data import ChallengeDataRepository, get_challenge_data_repository

logger = logging.getLogger("club_api.challenges")

router = APIRouter(prefix="/api/challenge-data", tags=["Challenges"])


@router.get(
    "",
    response_model=Union[LatestChallengeFileResponse, ChallengeFileListResponse],
    summary="List monthly challenge files",
)
async def get_challenge_data(
    latest: Optional[str] = Query(None, description="'true' returns only the most recent month"),
    repository: ChallengeDataRepository = Depends(get_challenge_data_repository),
):
    """
    Monthly challenge files, newest first.

    With `latest=true` the most recent file is returned flattened as
    `{latest, fileName, yearMonth, generatedAt}`. When that file cannot be read,
    or without `latest`, the response is `{count, files}`.
    """
    latest_only = latest == "true"
    try:
        batch = await repository.list_monthly_files(latest_only=latest_only)
    except SourceUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    if latest_only and batch.items:
        newest = batch.items[0]
        return LatestChallengeFileResponse(
            latest=newest.data,
            fileName=newest.fileName,
            yearMonth=newest.yearMonth,
            generatedAt=newest.data.generatedAt,
        )

    return ChallengeFileListResponse(count=len(batch.items), files=batch.items)


@router.put(
    "/{year_month}",
    response_model=PublishedChallengeFileResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Publish a monthly challenge set",
    dependencies=[Depends(require_api_key)],
)
async def publish_challenge_set(
    year_month: str,
    challenge_set: ChallengeSet,
    repository: ChallengeDataRepository = Depends(get_challenge_data_repository),
) -> PublishedChallengeFileResponse:
    """
    Write a generated set as `<year_month>.json`, replacing that month's file.

    Requires the `X-API-Key` header.
    """
    try:
        saved = await repository.save_monthly_file(year_month, challenge_set)
    except ChallengeValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SourceUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return PublishedChallengeFileResponse(
        data=PublishedChallengeFile(
            fileName=saved.fileName,
            yearMonth=saved.yearMonth,
            totalChallenges=saved.data.totalChallenges,
        )
    )
