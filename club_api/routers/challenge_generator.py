"""
Challenge generator router.
"""
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from club_api.exceptions import ChallengeValidationError, NotFoundError, SourceUnavailableError
from club_api.schemas.challenge import ChallengeCreate, ChallengeExportRequest, ChallengeResponse
from club_api.services.challenge_generator import ChallengeGenerator, get_challenge_generator

logger = logging.getLogger("club_api.challenges")

router = APIRouter(prefix="/api/challenge-generator", tags=["Challenge Generator"])


@router.post(
    "/challenges",
    response_model=ChallengeResponse,
    summary="Build a challenge",
)
async def create_challenge(
    form: ChallengeCreate,
    generator: ChallengeGenerator = Depends(get_challenge_generator),
) -> ChallengeResponse:
    """
    Validate a song/difficulty/score/reward choice and return the challenge entry.

    The star rating and song titles are filled in from the catalog.
    """
    try:
        challenge = await generator.build_challenge(form)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ChallengeValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SourceUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return ChallengeResponse(data=challenge)


@router.post(
    "/export",
    summary="Export challenges as this month's file",
    responses={200: {"content": {"application/json": {}}, "description": "YYYY-MM.json attachment"}},
)
async def export_challenges(
    request: ChallengeExportRequest,
    generator: ChallengeGenerator = Depends(get_challenge_generator),
) -> Response:
    """
    Bundle challenges into a monthly set and return it as a `YYYY-MM.json` download.
    """
    try:
        challenge_set = generator.generate_set(request.challenges)
    except ChallengeValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    file_name = generator.export_file_name()
    logger.info(
        "Challenge set exported",
        extra={"event": "challenges", "file_name": file_name, "total_challenges": challenge_set.totalChallenges},
    )
    return Response(
        content=json.dumps(challenge_set.model_dump(mode="json"), ensure_ascii=False, indent=2),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )
