import asyncio
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from club_api.config import Settings
from club_api.exceptions import StorageError
from club_api.services.object_storage import ObjectStorageService
from club_api.services.photo import PhotoRepository

from conftest import make_metadata

CONTAINER_PATH = "/v1/AUTH_tenant-1/club"


def storage_settings(**overrides) -> Settings:
    values = dict(
        storage_iam_user="user",
        storage_iam_password="secret",
        storage_tenant_id="tenant-1",
        storage_auth_url="https://identity.test/v2.0",
        storage_url="https://storage.test/v1",
        storage_container="club",
    )
    values.update(overrides)
    return Settings(**values)


class SwiftStub:
    """Identity + container endpoints served through httpx.MockTransport."""

    def __init__(self, listing=None, listing_status=200, auth_status=200, expires="2099-01-01T00:00:00Z"):
        self.listing = listing if listing is not None else []
        self.listing_status = listing_status
        self.auth_status = auth_status
        self.expires = expires
        self.auth_calls = 0
        self.stored = {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/v2.0/tokens":
            self.auth_calls += 1
            if self.auth_status != 200:
                return httpx.Response(self.auth_status, json={"error": "denied"})
            body = json.loads(request.content)
            assert body["auth"]["passwordCredentials"]["username"] == "user"
            return httpx.Response(
                200,
                json={
                    "access": {
                        "token": {
                            "id": "token-abc",
                            "expires": self.expires,
                            "tenant": {"id": "tenant-1"},
                        }
                    }
                },
            )

        assert request.headers["X-Auth-Token"] == "token-abc"
        if request.method == "GET" and request.url.path == CONTAINER_PATH:
            if self.listing_status != 200:
                return httpx.Response(self.listing_status)
            return httpx.Response(200, json=self.listing)
        if request.method == "GET":
            name = request.url.path[len(CONTAINER_PATH) + 1:]
            if name in self.stored:
                return httpx.Response(200, content=self.stored[name])
            return httpx.Response(404)
        if request.method == "PUT":
            name = request.url.path[len(CONTAINER_PATH) + 1:]
            self.stored[name] = request.content
            return httpx.Response(201)
        return httpx.Response(405)


@pytest.mark.asyncio
async def test_list_objects_parses_listing_and_reuses_token():
    stub = SwiftStub(
        listing=[
            {"name": "photos/1-a.jpg", "bytes": 2048, "content_type": "image/jpeg", "last_modified": "2025-01-01T00:00:00"},
            {"name": "photos/1-a.metadata.json", "bytes": 200, "content_type": "application/json"},
        ]
    )
    service = ObjectStorageService(settings=storage_settings(), transport=httpx.MockTransport(stub))

    objects = await service.list_objects(prefix="photos/", limit=1000)
    await service.list_objects(prefix="photos/", limit=1000)

    assert [obj.name for obj in objects] == ["photos/1-a.jpg", "photos/1-a.metadata.json"]
    assert objects[0].size == 2048
    assert stub.auth_calls == 1
    listing_request = stub.requests[1]
    assert listing_request.url.params["prefix"] == "photos/"
    assert listing_request.url.params["limit"] == "1000"
    assert listing_request.url.params["format"] == "json"


@pytest.mark.asyncio
async def test_empty_container_listing():
    stub = SwiftStub(listing_status=204)
    service = ObjectStorageService(settings=storage_settings(), transport=httpx.MockTransport(stub))

    assert await service.list_objects(prefix="photos/", limit=10) == []


@pytest.mark.asyncio
async def test_listing_error_raises_storage_error():
    stub = SwiftStub(listing_status=503)
    service = ObjectStorageService(settings=storage_settings(), transport=httpx.MockTransport(stub))

    with pytest.raises(StorageError):
        await service.list_objects(prefix="photos/", limit=10)


@pytest.mark.asyncio
async def test_auth_failure_raises_storage_error():
    stub = SwiftStub(auth_status=401)
    service = ObjectStorageService(settings=storage_settings(), transport=httpx.MockTransport(stub))

    with pytest.raises(StorageError, match="authentication failed"):
        await service.list_objects(prefix="photos/", limit=10)


@pytest.mark.asyncio
async def test_unconfigured_storage_raises_without_network():
    stub = SwiftStub()
    service = ObjectStorageService(
        settings=storage_settings(storage_iam_user=""),
        transport=httpx.MockTransport(stub),
    )

    assert service.is_configured is False
    with pytest.raises(StorageError):
        await service.download_file("photos/1-a.metadata.json")
    assert stub.requests == []


@pytest.mark.asyncio
async def test_upload_then_download():
    stub = SwiftStub()
    service = ObjectStorageService(settings=storage_settings(), transport=httpx.MockTransport(stub))

    await service.upload_file(b'{"title": "x"}', "photos/1-a.metadata.json", "application/json")

    assert stub.requests[-1].headers["Content-Type"] == "application/json"
    assert await service.download_file("photos/1-a.metadata.json") == b'{"title": "x"}'
    with pytest.raises(StorageError):
        await service.download_file("photos/missing.metadata.json")


def test_public_url():
    service = ObjectStorageService(settings=storage_settings(storage_public_url="https://cdn.example.com/club/"))
    assert service.public_url("photos/1 a.jpg") == "https://cdn.example.com/club/photos/1%20a.jpg"

    fallback = ObjectStorageService(settings=storage_settings())
    assert fallback.public_url("photos/1-a.jpg") == "https://storage.test/v1/AUTH_tenant-1/club/photos/1-a.jpg"


@pytest.mark.asyncio
async def test_token_expiry_offset_is_converted_to_utc():
    expires = datetime.now(timezone.utc) + timedelta(minutes=30)
    stub = SwiftStub(expires=expires.astimezone(timezone(timedelta(hours=-9))).isoformat())
    service = ObjectStorageService(settings=storage_settings(), transport=httpx.MockTransport(stub))

    await service.list_objects(prefix="photos/", limit=10)
    await service.list_objects(prefix="photos/", limit=10)

    assert stub.auth_calls == 1
    assert abs(service._token_expires - expires) < timedelta(seconds=1)


@pytest.mark.asyncio
async def test_token_close_to_expiry_is_refreshed():
    soon = datetime.now(timezone.utc) + timedelta(minutes=2)
    stub = SwiftStub(expires=soon.astimezone(timezone(timedelta(hours=9))).isoformat())
    service = ObjectStorageService(settings=storage_settings(), transport=httpx.MockTransport(stub))

    await service.list_objects(prefix="photos/", limit=10)
    await service.list_objects(prefix="photos/", limit=10)

    assert stub.auth_calls == 2


@pytest.mark.asyncio
async def test_check_auth():
    stub = SwiftStub()
    service = ObjectStorageService(settings=storage_settings(), transport=httpx.MockTransport(stub))

    assert await service.check_auth() is True
    assert await service.check_auth() is True
    assert stub.auth_calls == 1

    denied = ObjectStorageService(
        settings=storage_settings(),
        transport=httpx.MockTransport(SwiftStub(auth_status=401)),
    )
    with pytest.raises(StorageError, match="authentication failed"):
        await denied.check_auth()


class SlowSwiftStub(SwiftStub):
    """Object downloads take a moment; tracks how many overlap."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.in_flight = 0
        self.peak_in_flight = 0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET" and request.url.path.startswith(CONTAINER_PATH + "/"):
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                await asyncio.sleep(0.01)
            finally:
                self.in_flight -= 1
        return super().__call__(request)


class CountingStorageService(ObjectStorageService):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.clients_opened = 0

    def _client(self, timeout, limits=None):
        self.clients_opened += 1
        return super()._client(timeout, limits)


@pytest.mark.asyncio
async def test_metadata_downloads_share_one_client_and_stay_bounded():
    names = [f"photos/{i}-x.metadata.json" for i in range(40)]
    stub = SlowSwiftStub(listing=[{"name": name} for name in names])
    for i, name in enumerate(names):
        stub.stored[name] = make_metadata(f"photos/{i}-x.jpg", f"Photo {i}", "2025-01-01T00:00:00.000Z")
    settings = storage_settings(storage_fetch_concurrency=4)
    service = CountingStorageService(settings=settings, transport=httpx.MockTransport(stub))

    batch = await PhotoRepository(storage=service, settings=settings).load_photos()

    assert len(batch.items) == 40
    assert not batch.has_failures
    assert 1 < stub.peak_in_flight <= 4
    # token, listing, then one pool for all downloads
    assert service.clients_opened == 3
