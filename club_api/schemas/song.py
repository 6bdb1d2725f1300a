"""
Song catalog schemas.
"""
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from club_api.schemas.common import Pagination


class SongLevel(BaseModel):
    """
    Difficulty metrics for one song/difficulty pair.
    Only `constant` (star rating) is read by the service; other metrics pass through.
    """

    constant: Optional[Union[int, float]] = None

    model_config = ConfigDict(extra="allow")


class Song(BaseModel):
    """One entry of the static song catalog."""

    id: int
    title: str
    title_cn: str = ""
    level: Dict[str, SongLevel] = {}

    model_config = ConfigDict(extra="allow")


class SongQuery(BaseModel):
    """Filter and page parameters for the song list."""

    id: Optional[int] = None
    title: Optional[str] = None
    title_cn: Optional[str] = None
    level: Optional[str] = None
    page: int = 1
    limit: int = 20


class SongOption(BaseModel):
    """Compact song entry used by the challenge generator's song picker."""

    id: int
    title: str
    title_cn: str
    levels: List[str]


class SongListData(BaseModel):
    songs: List[Song]
    pagination: Pagination


class SongListResponse(BaseModel):
    success: bool = True
    data: SongListData


class SongOptionsData(BaseModel):
    options: List[SongOption]


class SongOptionsResponse(BaseModel):
    success: bool = True
    data: SongOptionsData
