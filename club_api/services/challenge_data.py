"""
Monthly challenge files.

One JSON file per month in the challenge data directory, named `YYYY-MM.json`
so that descending filename order is reverse-chronological order.
"""
import asyncio
import json
import logging
import os
import re
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from club_api.config import get_settings
from club_api.exceptions import ChallengeValidationError, SourceUnavailableError
from club_api.schemas.challenge import ChallengeFileContent, ChallengeSet, MonthlyChallengeFile
from club_api.utils.batch import BatchResult, ItemFailure
from club_api.utils.prometheus_metrics import challenge_sets_published_total, item_read_failures_total

logger = logging.getLogger("club_api.challenges")

JSON_EXTENSION = ".json"
YEAR_MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def year_month_from_file_name(file_name: str) -> str:
    return file_name[: -len(JSON_EXTENSION)] if file_name.endswith(JSON_EXTENSION) else file_name


class ChallengeDataRepository:
    """
    Read and publish monthly challenge files.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def _list_json_files(self) -> List[str]:
        names = [name for name in os.listdir(self.data_dir) if name.endswith(JSON_EXTENSION)]
        return sorted(names, reverse=True)

    async def list_file_names(self) -> List[str]:
        """
        Names of the `*.json` files in the data directory, newest month first.

        Raises:
            OSError: The directory could not be listed
        """
        return await asyncio.to_thread(self._list_json_files)

    def _read_file(self, file_name: str) -> MonthlyChallengeFile:
        content = (self.data_dir / file_name).read_text(encoding="utf-8")
        data = ChallengeFileContent.model_validate(json.loads(content))
        return MonthlyChallengeFile(
            yearMonth=year_month_from_file_name(file_name),
            fileName=file_name,
            data=data,
        )

    async def list_monthly_files(self, latest_only: bool = False) -> BatchResult[MonthlyChallengeFile]:
        """
        Read monthly files, newest first.

        Args:
            latest_only: Read only the most recent file

        Returns:
            Files that parsed, plus one failure entry per unreadable file

        Raises:
            SourceUnavailableError: The directory could not be listed
        """
        try:
            file_names = await self.list_file_names()
        except OSError as e:
            logger.error(
                "Challenge data directory read failed",
                exc_info=e,
                extra={"event": "challenges", "path": str(self.data_dir)},
            )
            raise SourceUnavailableError("Failed to read challenge data") from e

        if latest_only:
            file_names = file_names[:1]

        results = await asyncio.gather(
            *(asyncio.to_thread(self._read_file, name) for name in file_names),
            return_exceptions=True,
        )

        batch: BatchResult[MonthlyChallengeFile] = BatchResult()
        for file_name, result in zip(file_names, results):
            if isinstance(result, MonthlyChallengeFile):
                batch.items.append(result)
                continue
            if not isinstance(result, (OSError, ValueError, ValidationError)):
                raise result
            reason = str(result) or type(result).__name__
            batch.failures.append(ItemFailure(key=file_name, reason=reason))
            item_read_failures_total.labels(source="challenge_file").inc()
            logger.warning(
                "Challenge file skipped",
                extra={"event": "challenges", "file_name": file_name, "error_type": type(result).__name__},
            )
        return batch

    def _write_file(self, file_name: str, challenge_set: ChallengeSet) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        target = self.data_dir / file_name
        tmp = target.with_name(f".{file_name}.tmp")
        tmp.write_text(
            json.dumps(challenge_set.model_dump(mode="json"), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        os.replace(tmp, target)

    async def save_monthly_file(self, year_month: str, challenge_set: ChallengeSet) -> MonthlyChallengeFile:
        """
        Write `<year_month>.json`, replacing an existing file for that month.

        Raises:
            ChallengeValidationError: year_month is not YYYY-MM, the set is
                empty, or totalChallenges disagrees with the challenge list
            SourceUnavailableError: The file could not be written
        """
        if not YEAR_MONTH_PATTERN.match(year_month):
            raise ChallengeValidationError(f"Invalid month '{year_month}', expected YYYY-MM")
        if not challenge_set.challenges:
            raise ChallengeValidationError("At least one challenge is required")
        if challenge_set.totalChallenges != len(challenge_set.challenges):
            raise ChallengeValidationError("totalChallenges does not match the number of challenges")

        file_name = f"{year_month}{JSON_EXTENSION}"
        try:
            await asyncio.to_thread(self._write_file, file_name, challenge_set)
        except OSError as e:
            logger.error(
                "Challenge file write failed",
                exc_info=e,
                extra={"event": "challenges", "file_name": file_name},
            )
            raise SourceUnavailableError("Failed to write challenge data") from e

        challenge_sets_published_total.inc()
        logger.info(
            "Challenge set published",
            extra={"event": "challenges", "file_name": file_name, "total_challenges": challenge_set.totalChallenges},
        )
        return MonthlyChallengeFile(
            yearMonth=year_month,
            fileName=file_name,
            data=ChallengeFileContent.model_validate(challenge_set.model_dump(mode="json")),
        )


# Singleton instance
_challenge_data_repository: Optional[ChallengeDataRepository] = None


def get_challenge_data_repository() -> ChallengeDataRepository:
    """Get the singleton challenge data repository instance."""
    global _challenge_data_repository
    if _challenge_data_repository is None:
        _challenge_data_repository = ChallengeDataRepository(get_settings().challenge_data_dir)
    return _challenge_data_repository
