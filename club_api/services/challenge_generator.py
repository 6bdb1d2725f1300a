"""
Challenge-set generator.

Turns song/difficulty/score-target/reward choices into Challenge entries and
bundles them into the monthly document format read by ChallengeDataRepository.
"""
import logging
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from club_api.exceptions import ChallengeValidationError
from club_api.schemas.challenge import Challenge, ChallengeCreate, ChallengeReward, ChallengeSet
from club_api.services.song import SongRepository, get_song_repository
from club_api.utils.timestamps import to_iso

logger = logging.getLogger("club_api.challenges")

_BASE36 = string.digits + string.ascii_lowercase


def generate_challenge_id(now_ms: Optional[int] = None) -> str:
    """challenge_<epoch ms>_<9 base36 chars>"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"challenge_{now_ms}_{suffix}"


def export_file_name(now: Optional[datetime] = None) -> str:
    """File name of the current month's set, e.g. 2025-12.json."""
    now = now or datetime.now(timezone.utc)
    return f"{now.year}-{now.month:02d}.json"


class ChallengeGenerator:
    """
    Builds challenges against the song catalog.
    """

    def __init__(
        self,
        songs: SongRepository,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.songs = songs
        self.clock = clock

    async def build_challenge(self, form: ChallengeCreate) -> Challenge:
        """
        Validate the form and resolve song details.

        Raises:
            NotFoundError: Unknown song id
            ChallengeValidationError: Difficulty not offered by the song,
                non-positive score target, or missing custom reward
        """
        song = await self.songs.get_song(form.songId)

        difficulty = form.difficulty.strip()
        if not difficulty:
            raise ChallengeValidationError("Difficulty is required")
        level = song.level.get(difficulty)
        if level is None:
            raise ChallengeValidationError(
                f"Difficulty '{difficulty}' is not available for song {song.id}"
            )

        if form.requiredScore <= 0:
            raise ChallengeValidationError("Required score must be greater than 0")

        custom_reward = None
        if form.reward == ChallengeReward.OTHER:
            custom_reward = (form.customReward or "").strip()
            if not custom_reward:
                raise ChallengeValidationError("Custom reward is required for 其他奖励")

        now = self.clock()
        return Challenge(
            id=generate_challenge_id(int(now.timestamp() * 1000)),
            songId=song.id,
            songTitle=song.title,
            songTitleCn=song.title_cn,
            difficulty=difficulty,
            stars=level.constant if level.constant is not None else 0,
            requiredScore=form.requiredScore,
            reward=form.reward,
            customReward=custom_reward,
            notes=form.notes or None,
            createdAt=to_iso(now),
        )

    def generate_set(self, challenges: List[Challenge]) -> ChallengeSet:
        """
        Bundle challenges into a monthly document.

        Raises:
            ChallengeValidationError: No challenges given
        """
        if not challenges:
            raise ChallengeValidationError("At least one challenge is required")
        return ChallengeSet(
            challenges=list(challenges),
            generatedAt=to_iso(self.clock()),
            totalChallenges=len(challenges),
        )

    def export_file_name(self) -> str:
        return export_file_name(self.clock())


def get_challenge_generator() -> ChallengeGenerator:
    return ChallengeGenerator(get_song_repository())
