import json
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from club_api.config import Settings, get_settings
from club_api.exceptions import StorageError
from club_api.main import app
from club_api.middlewares.rate_limit_middleware import limiter
from club_api.services.challenge_data import ChallengeDataRepository, get_challenge_data_repository
from club_api.services.challenge_generator import ChallengeGenerator, get_challenge_generator
from club_api.services.object_storage import StoredObject, get_storage_service
from club_api.services.photo import PhotoRepository, get_photo_repository
from club_api.services.song import SongCatalogCache, SongRepository, get_song_repository, load_song_catalog

API_KEY = "test-upload-key"

SONGS = [
    {
        "id": 1,
        "title": "Kurenai",
        "title_cn": "红",
        "level": {"oni": {"constant": 9, "notes": 820}, "hard": {"constant": 6}},
    },
    {
        "id": 2,
        "title": "Senbonzakura",
        "title_cn": "千本樱",
        "level": {"oni": {"constant": 7}, "ura": {"constant": 9.5}},
    },
    {
        "id": 3,
        "title": "Kagerou Days",
        "title_cn": "阳炎日",
        "level": {"easy": {}},
    },
]


def make_challenge(song_id: int = 1, difficulty: str = "oni", created_at: str = "2025-02-01T00:00:00.000Z") -> dict:
    return {
        "id": f"challenge_1738368000000_abc{song_id}def00",
        "songId": song_id,
        "songTitle": "Kurenai",
        "songTitleCn": "红",
        "difficulty": difficulty,
        "stars": 9,
        "requiredScore": 100,
        "reward": "15币",
        "createdAt": created_at,
    }


def make_challenge_set(generated_at: str, count: int = 1) -> dict:
    return {
        "challenges": [make_challenge(created_at=generated_at) for _ in range(count)],
        "generatedAt": generated_at,
        "totalChallenges": count,
    }


def make_metadata(name: str, title: str, uploaded_at: str, original: Optional[str] = None, **extra) -> bytes:
    payload = {
        "id": name,
        "url": f"https://cdn.example.com/{name}",
        "title": title,
        "uploadedAt": uploaded_at,
        "size": 1234,
        "contentType": "image/jpeg",
        "imageUrl": f"https://cdn.example.com/{name}",
    }
    if original is not None:
        payload["originalFilename"] = original
    payload.update(extra)
    return json.dumps(payload).encode("utf-8")


class FakeStorage:
    """In-memory stand-in for ObjectStorageService."""

    is_configured = False

    def __init__(self, objects: Optional[Dict[str, bytes]] = None, fail_listing: bool = False):
        self.objects: Dict[str, bytes] = dict(objects or {})
        self.content_types: Dict[str, str] = {}
        self.fail_listing = fail_listing
        self.listings: List[str] = []
        self.batches = 0
        self.fail_auth = False

    async def list_objects(self, prefix: str, limit: int) -> List[StoredObject]:
        self.listings.append(prefix)
        if self.fail_listing:
            raise StorageError("Object listing failed: HTTP 503")
        names = sorted(name for name in self.objects if name.startswith(prefix))[:limit]
        return [StoredObject(name=name, size=len(self.objects[name])) for name in names]

    async def check_auth(self) -> bool:
        if self.fail_auth:
            raise StorageError("Storage authentication failed: HTTP 401")
        return True

    @asynccontextmanager
    async def batch_client(self):
        self.batches += 1
        yield None

    async def download_file(self, object_name: str, client=None) -> bytes:
        if object_name not in self.objects:
            raise StorageError("File download failed: HTTP 404")
        return self.objects[object_name]

    async def upload_file(self, file_content: bytes, object_name: str, content_type: str) -> str:
        self.objects[object_name] = file_content
        self.content_types[object_name] = content_type
        return object_name

    def public_url(self, object_name: str) -> str:
        return f"https://cdn.example.com/{object_name}"


@pytest.fixture(autouse=True)
def disable_rate_limit():
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture()
def songs_file(tmp_path: Path) -> Path:
    path = tmp_path / "songs.json"
    path.write_text(json.dumps(SONGS, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture()
def challenge_dir(tmp_path: Path) -> Path:
    path = tmp_path / "challenge-data"
    path.mkdir()
    return path


@pytest.fixture()
def test_settings(songs_file: Path, challenge_dir: Path) -> Settings:
    return Settings(
        songs_file=songs_file,
        challenge_data_dir=challenge_dir,
        upload_api_key=API_KEY,
        storage_fetch_timeout_seconds=2.0,
    )


@pytest.fixture()
def song_repository(songs_file: Path) -> SongRepository:
    return SongRepository(SongCatalogCache(loader=lambda: load_song_catalog(songs_file)))


@pytest.fixture()
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture()
def photo_repository(storage: FakeStorage, test_settings: Settings) -> PhotoRepository:
    return PhotoRepository(storage=storage, settings=test_settings)


@pytest.fixture()
def challenge_repository(challenge_dir: Path) -> ChallengeDataRepository:
    return ChallengeDataRepository(challenge_dir)


@pytest.fixture()
def client(song_repository, photo_repository, challenge_repository, storage, test_settings):
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_song_repository] = lambda: song_repository
    app.dependency_overrides[get_photo_repository] = lambda: photo_repository
    app.dependency_overrides[get_challenge_data_repository] = lambda: challenge_repository
    app.dependency_overrides[get_challenge_generator] = lambda: ChallengeGenerator(song_repository)
    app.dependency_overrides[get_storage_service] = lambda: storage
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
