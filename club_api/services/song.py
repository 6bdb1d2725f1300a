"""
Song catalog service.

The catalog is a static JSON document (a list of songs). It is read through a
SongCatalogCache owned by the repository, so the file is read at most once per
cache window no matter how many requests arrive.
"""
import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from club_api.config import get_settings
from club_api.exceptions import NotFoundError, SourceUnavailableError
from club_api.schemas.common import Pagination
from club_api.schemas.song import Song, SongOption, SongQuery
from club_api.utils.pagination import paginate
from club_api.utils.prometheus_metrics import song_cache_requests_total

logger = logging.getLogger("club_api.songs")

OPTIONS_DEFAULT_LIMIT = 100
OPTIONS_SEARCH_LIMIT = 50

_song_list_adapter = TypeAdapter(List[Song])


def load_song_catalog(path: Path) -> List[Song]:
    """
    Read and validate the song catalog file.

    Raises:
        SourceUnavailableError: File missing, unreadable, not JSON or not a song list
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return _song_list_adapter.validate_python(raw)
    except (OSError, ValueError, ValidationError) as e:
        logger.error(
            "Song catalog read failed",
            exc_info=e,
            extra={"event": "songs", "path": str(path)},
        )
        raise SourceUnavailableError("Failed to read songs data") from e


class SongCatalogCache:
    """
    Time-expiring holder for the song catalog.

    The loaded list and its load time are swapped together as one tuple, and
    a refresh runs under a lock with the expiry checked again after acquiring
    it, so concurrent requests on an expired cache trigger a single read.
    A failed reload propagates; the expired catalog is never served.
    """

    def __init__(
        self,
        loader: Callable[[], List[Song]],
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock
        self._entry: Optional[Tuple[List[Song], float]] = None
        self._lock = asyncio.Lock()

    def _fresh_entry(self) -> Optional[List[Song]]:
        entry = self._entry
        if entry is None:
            return None
        songs, loaded_at = entry
        if self._clock() - loaded_at < self._ttl:
            return songs
        return None

    async def get(self) -> List[Song]:
        songs = self._fresh_entry()
        if songs is not None:
            song_cache_requests_total.labels(result="hit").inc()
            return songs

        async with self._lock:
            songs = self._fresh_entry()
            if songs is not None:
                song_cache_requests_total.labels(result="hit").inc()
                return songs

            song_cache_requests_total.labels(result="miss").inc()
            songs = await asyncio.to_thread(self._loader)
            self._entry = (songs, self._clock())
            logger.info(
                "Song catalog loaded",
                extra={"event": "songs", "song_count": len(songs)},
            )
            return songs

    def invalidate(self) -> None:
        self._entry = None


def filter_songs(songs: List[Song], params: SongQuery) -> List[Song]:
    """Apply the id, title, title_cn and level filters (AND), keeping catalog order."""
    filtered = list(songs)

    if params.id is not None:
        filtered = [song for song in filtered if song.id == params.id]

    if params.title:
        term = params.title.lower()
        filtered = [song for song in filtered if term in song.title.lower()]

    if params.title_cn:
        term = params.title_cn.lower()
        filtered = [song for song in filtered if term in song.title_cn.lower()]

    if params.level:
        filtered = [song for song in filtered if params.level in song.level]

    return filtered


def to_option(song: Song) -> SongOption:
    return SongOption(
        id=song.id,
        title=song.title,
        title_cn=song.title_cn,
        levels=list(song.level.keys()),
    )


class SongRepository:
    """
    Read access to the song catalog.
    """

    def __init__(self, cache: SongCatalogCache):
        self.cache = cache

    async def query(self, params: SongQuery) -> Tuple[List[Song], Pagination]:
        """
        Filter and paginate the catalog.

        Args:
            params: Filters and page parameters

        Returns:
            (songs on the requested page, pagination metadata)

        Raises:
            NotFoundError: An id filter was given and no song matched
            SourceUnavailableError: The catalog could not be loaded
        """
        songs = await self.cache.get()
        filtered = filter_songs(songs, params)

        if params.id is not None and not filtered:
            raise NotFoundError(f"Song with id {params.id} not found")

        return paginate(filtered, params.page, params.limit)

    async def get_song(self, song_id: int) -> Song:
        songs = await self.cache.get()
        for song in songs:
            if song.id == song_id:
                return song
        raise NotFoundError(f"Song with id {song_id} not found")

    async def search_options(self, query: Optional[str] = None) -> List[SongOption]:
        """
        Song picker entries for the challenge generator.

        A blank query returns the first page of the catalog; otherwise English
        and Chinese title matches are merged, first occurrence of each id wins.
        """
        term = (query or "").strip()
        if not term:
            songs, _ = await self.query(SongQuery(limit=OPTIONS_DEFAULT_LIMIT))
            return [to_option(song) for song in songs]

        by_title, _ = await self.query(SongQuery(title=term, limit=OPTIONS_SEARCH_LIMIT))
        by_title_cn, _ = await self.query(SongQuery(title_cn=term, limit=OPTIONS_SEARCH_LIMIT))

        unique: Dict[int, Song] = {}
        for song in by_title + by_title_cn:
            unique.setdefault(song.id, song)
        return [to_option(song) for song in unique.values()]


# Singleton instance
_song_repository: Optional[SongRepository] = None


def get_song_repository() -> SongRepository:
    """Get the process-wide song repository (and its cache)."""
    global _song_repository
    if _song_repository is None:
        settings = get_settings()
        songs_file = settings.songs_file
        cache = SongCatalogCache(
            loader=lambda: load_song_catalog(songs_file),
            ttl_seconds=settings.song_cache_ttl_seconds,
        )
        _song_repository = SongRepository(cache)
    return _song_repository
