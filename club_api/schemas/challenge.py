"""
Challenge and monthly challenge-set schemas.
"""
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

Number = Union[int, float]


class ChallengeReward(str, Enum):
    """Rewards offered for clearing a challenge."""
    COINS_15 = "15币"
    COINS_30 = "30币"
    COINS_45 = "45币"
    OTHER = "其他奖励"


class Challenge(BaseModel):
    """One song/difficulty/score-target/reward task of a monthly set."""

    id: str
    songId: int
    songTitle: str
    songTitleCn: str
    difficulty: str
    stars: Number
    requiredScore: Number
    reward: ChallengeReward
    customReward: Optional[str] = None
    notes: Optional[str] = None
    createdAt: str


class ChallengeCreate(BaseModel):
    """Generator input for a single challenge."""

    songId: int = Field(..., description="Catalog id of the song")
    difficulty: str = Field(..., description="Difficulty key present in the song's level map")
    requiredScore: Number = Field(..., description="Score target, in units of 10,000")
    reward: ChallengeReward = ChallengeReward.COINS_15
    customReward: Optional[str] = Field(None, description="Required when reward is 其他奖励")
    notes: Optional[str] = None


class ChallengeSet(BaseModel):
    """Content of one monthly file."""

    challenges: List[Challenge]
    generatedAt: str
    totalChallenges: int = Field(..., ge=0)


class ChallengeExportRequest(BaseModel):
    challenges: List[Challenge]


class ChallengeFileContent(BaseModel):
    """
    Content of a monthly file as stored on disk.

    Only the envelope is checked; challenge entries and unknown keys are
    served as written.
    """

    model_config = ConfigDict(extra="allow")

    challenges: List[Any]
    generatedAt: str
    totalChallenges: int


class MonthlyChallengeFile(BaseModel):
    """A parsed `YYYY-MM.json` file from the challenge data directory."""

    yearMonth: str
    fileName: str
    data: ChallengeFileContent


class ChallengeResponse(BaseModel):
    success: bool = True
    data: Challenge


class ChallengeFileListResponse(BaseModel):
    success: bool = True
    count: int
    files: List[MonthlyChallengeFile]


class LatestChallengeFileResponse(BaseModel):
    success: bool = True
    latest: ChallengeFileContent
    fileName: str
    yearMonth: str
    generatedAt: str


class PublishedChallengeFile(BaseModel):
    fileName: str
    yearMonth: str
    totalChallenges: int


class PublishedChallengeFileResponse(BaseModel):
    success: bool = True
    data: PublishedChallengeFile
