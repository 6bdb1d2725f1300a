"""
Songs router: catalog browsing and the generator's song picker.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from club_api.config import Settings, get_settings
from club_api.exceptions import NotFoundError, SourceUnavailableError
from club_api.schemas.song import (
    SongListData,
    SongListResponse,
    SongOptionsData,
    SongOptionsResponse,
    SongQuery,
)
from club_api.services.song import SongRepository, get_song_repository
from club_api.utils.pagination import parse_int, parse_page_params

logger = logging.getLogger("club_api.songs")

router = APIRouter(prefix="/api/songs", tags=["Songs"])


@router.get(
    "",
    response_model=SongListResponse,
    summary="List songs",
)
async def list_songs(
    id: Optional[str] = Query(None, description="Exact song id"),
    title: Optional[str] = Query(None, description="Case-insensitive substring of the title"),
    title_cn: Optional[str] = Query(None, description="Case-insensitive substring of the Chinese title"),
    level: Optional[str] = Query(None, description="Difficulty key the song must offer"),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    songs: SongRepository = Depends(get_song_repository),
    settings: Settings = Depends(get_settings),
) -> SongListResponse:
    """
    Filter and paginate the song catalog.

    - Filters combine with AND and keep catalog order.
    - `page`/`limit` that are missing, non-numeric or below 1 use the defaults (1, 20).
    - An `id` that matches nothing is a 404.
    """
    page_number, page_size = parse_page_params(page, limit, settings.default_page_size)

    song_id = None
    if id is not None:
        song_id = parse_int(id)
        if song_id is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Song with id {id} not found",
            )

    params = SongQuery(
        id=song_id,
        title=title,
        title_cn=title_cn,
        level=level,
        page=page_number,
        limit=page_size,
    )

    try:
        items, pagination = await songs.query(params)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SourceUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return SongListResponse(data=SongListData(songs=items, pagination=pagination))


@router.get(
    "/options",
    response_model=SongOptionsResponse,
    summary="Song picker options",
)
async def song_options(
    q: Optional[str] = Query(None, description="Title or Chinese title search"),
    songs: SongRepository = Depends(get_song_repository),
) -> SongOptionsResponse:
    """
    Compact song entries for the challenge generator.

    A blank `q` returns the first 100 catalog songs; otherwise up to 50 English
    and 50 Chinese title matches, merged by id.
    """
    try:
        options = await songs.search_options(q)
    except SourceUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return SongOptionsResponse(data=SongOptionsData(options=options))
