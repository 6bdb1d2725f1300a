"""
Object Storage (Swift API) integration.
Lists, downloads and uploads objects of the club's container.

Layout inside the container:
    photos/<base>.<ext>             image object
    photos/<base>.metadata.json     metadata document describing the image
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, List, Optional
from urllib.parse import quote

import httpx

from club_api.config import Settings, get_settings
from club_api.exceptions import StorageError
from club_api.utils.prometheus_metrics import record_external_request
from club_api.utils.logger import log_error
from club_api.utils.timestamps import parse_timestamp

logger = logging.getLogger("club_api.storage")


@dataclass(frozen=True)
class StoredObject:
    """One entry of a container listing."""

    name: str
    size: int = 0
    content_type: Optional[str] = None
    last_modified: Optional[str] = None


class ObjectStorageService:
    """
    Client for a Swift-compatible Object Storage container.

    Token handling:
    - tokens are issued by the identity endpoint (Keystone v2 style)
    - cached until 5 minutes before expiry
    - refreshed under a lock so concurrent requests trigger a single auth call
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self._token: Optional[str] = None
        self._token_expires: Optional[datetime] = None
        self._account: Optional[str] = None
        self._lock = asyncio.Lock()

    @property
    def is_configured(self) -> bool:
        return bool(
            self.settings.storage_iam_user
            and self.settings.storage_iam_password
            and self.settings.storage_tenant_id
        )

    def _client(self, timeout: float, limits: Optional[httpx.Limits] = None) -> httpx.AsyncClient:
        if limits is None:
            return httpx.AsyncClient(timeout=timeout, transport=self._transport)
        return httpx.AsyncClient(timeout=timeout, limits=limits, transport=self._transport)

    @asynccontextmanager
    async def batch_client(self) -> AsyncIterator[httpx.AsyncClient]:
        """
        One connection pool for a batch of downloads.

        The pool holds at most `storage_fetch_concurrency` connections.
        """
        concurrency = self.settings.storage_fetch_concurrency
        limits = httpx.Limits(max_connections=concurrency, max_keepalive_connections=concurrency)
        async with self._client(timeout=self.settings.storage_fetch_timeout_seconds, limits=limits) as client:
            yield client

    def _token_valid(self) -> bool:
        return bool(
            self._token
            and self._token_expires
            and datetime.now(timezone.utc) < self._token_expires - timedelta(minutes=5)
        )

    async def _get_auth_token(self) -> str:
        """
        Get an authentication token from the identity service.
        Implements token caching and automatic refresh.
        """
        if self._token_valid():
            return self._token

        async with self._lock:
            if self._token_valid():
                return self._token

            if not self.is_configured:
                raise StorageError(
                    "Object Storage credentials are not configured "
                    "(STORAGE_IAM_USER, STORAGE_IAM_PASSWORD, STORAGE_TENANT_ID)."
                )

            auth_url = f"{self.settings.storage_auth_url.rstrip('/')}/tokens"
            auth_data = {
                "auth": {
                    "tenantId": self.settings.storage_tenant_id,
                    "passwordCredentials": {
                        "username": self.settings.storage_iam_user,
                        "password": self.settings.storage_iam_password,
                    },
                }
            }

            try:
                async with record_external_request("object_storage"):
                    async with self._client(timeout=30.0) as client:
                        response = await client.post(auth_url, json=auth_data)

                    if response.status_code != 200:
                        log_error(
                            "Storage authentication failed",
                            error_code="STORAGE_AUTH",
                            upstream_service="identity",
                            http_status=response.status_code,
                            event="storage",
                        )
                        raise StorageError(
                            f"Storage authentication failed: HTTP {response.status_code}"
                        )

                    try:
                        data = response.json()
                    except ValueError:
                        log_error(
                            "Storage authentication response parsing failed",
                            error_code="STORAGE_AUTH_PARSE",
                            upstream_service="identity",
                            event="storage",
                        )
                        raise StorageError("Storage authentication response is not JSON")

                    token_data = data.get("access", {}).get("token", {})
                    token = token_data.get("id")
                    if not token:
                        raise StorageError("Storage authentication response has no token")

                    expires = parse_timestamp(token_data.get("expires"))
                    if expires:
                        self._token_expires = expires.astimezone(timezone.utc)
                    else:
                        self._token_expires = datetime.now(timezone.utc) + timedelta(hours=24)

                    tenant_id = token_data.get("tenant", {}).get("id") or self.settings.storage_tenant_id
                    self._account = f"AUTH_{tenant_id}"
                    self._token = token
                    return self._token

            except httpx.HTTPError as e:
                log_error(
                    "Storage authentication network error",
                    error_type=type(e).__name__,
                    error_code="STORAGE_AUTH_NETWORK",
                    upstream_service="identity",
                    event="storage",
                    exc_info=True,
                )
                raise StorageError("Storage authentication network error") from e

    async def check_auth(self) -> bool:
        """
        Whether a storage token can be obtained (cached or freshly issued).

        Raises:
            StorageError: Credentials are missing or the identity service refused them
        """
        return bool(await self._get_auth_token())

    def _container_url(self) -> str:
        """
        {storage_url}/{account}/{container}
        """
        account = self._account or f"AUTH_{self.settings.storage_tenant_id}"
        return f"{self.settings.storage_url.rstrip('/')}/{account}/{self.settings.storage_container}"

    def public_url(self, object_name: str) -> str:
        """Public URL of an object, used for image links in metadata documents."""
        base = self.settings.storage_public_url.rstrip("/") or self._container_url()
        return f"{base}/{quote(object_name)}"

    async def list_objects(self, prefix: str, limit: int) -> List[StoredObject]:
        """
        List objects whose name starts with `prefix`.

        Args:
            prefix: Object name prefix (e.g. photos/)
            limit: Maximum number of entries returned by the storage

        Returns:
            Listed objects in storage order

        Raises:
            StorageError: Listing could not be retrieved
        """
        token = await self._get_auth_token()
        url = self._container_url()

        try:
            async with record_external_request("object_storage"):
                async with self._client(timeout=self.settings.storage_fetch_timeout_seconds) as client:
                    response = await client.get(
                        url,
                        params={"prefix": prefix, "limit": limit, "format": "json"},
                        headers={"X-Auth-Token": token},
                    )

                    if response.status_code == 204:
                        return []
                    if response.status_code != 200:
                        logger.error(
                            "Object listing failed",
                            extra={"event": "storage", "status": response.status_code, "prefix": prefix},
                        )
                        raise StorageError(f"Object listing failed: HTTP {response.status_code}")

                    entries = response.json()

        except httpx.TimeoutException as e:
            logger.error("Object listing timeout", extra={"event": "storage", "prefix": prefix})
            raise StorageError("Object listing timeout") from e
        except httpx.HTTPError as e:
            logger.error("Object listing HTTP error", exc_info=e, extra={"event": "storage", "prefix": prefix})
            raise StorageError(f"Object listing failed: {e}") from e
        except ValueError as e:
            logger.error("Object listing is not JSON", extra={"event": "storage", "prefix": prefix})
            raise StorageError("Object listing is not JSON") from e

        return [
            StoredObject(
                name=entry["name"],
                size=int(entry.get("bytes") or 0),
                content_type=entry.get("content_type"),
                last_modified=entry.get("last_modified"),
            )
            for entry in entries
            if isinstance(entry, dict) and entry.get("name")
        ]

    async def download_file(
        self,
        object_name: str,
        client: Optional[httpx.AsyncClient] = None,
    ) -> bytes:
        """
        Download an object.

        Args:
            object_name: Object path inside the container (e.g. photos/123-abc.metadata.json)
            client: Shared client from `batch_client()`; a short-lived one is opened otherwise

        Returns:
            The object content as bytes
        """
        token = await self._get_auth_token()
        url = f"{self._container_url()}/{quote(object_name)}"

        try:
            async with record_external_request("object_storage"):
                if client is None:
                    async with self._client(timeout=self.settings.storage_fetch_timeout_seconds) as own_client:
                        response = await own_client.get(url, headers={"X-Auth-Token": token})
                else:
                    response = await client.get(url, headers={"X-Auth-Token": token})

                if response.status_code != 200:
                    raise StorageError(f"File download failed: HTTP {response.status_code}")
                return response.content

        except httpx.TimeoutException as e:
            raise StorageError("File download timeout") from e
        except httpx.HTTPError as e:
            raise StorageError(f"File download failed: {e}") from e

    async def upload_file(
        self,
        file_content: bytes,
        object_name: str,
        content_type: str,
    ) -> str:
        """
        Upload an object.

        Args:
            file_content: The file content as bytes
            object_name: Object path inside the container
            content_type: MIME type of the file

        Returns:
            The object path (object_name)
        """
        token = await self._get_auth_token()
        url = f"{self._container_url()}/{quote(object_name)}"

        try:
            async with record_external_request("object_storage"):
                async with self._client(timeout=60.0) as client:
                    response = await client.put(
                        url,
                        content=file_content,
                        headers={
                            "X-Auth-Token": token,
                            "Content-Type": content_type,
                        },
                    )

                    if response.status_code not in (200, 201):
                        logger.error(
                            "File upload failed",
                            extra={"event": "storage", "status": response.status_code, "object": object_name},
                        )
                        raise StorageError("File upload failed")

                    return object_name

        except httpx.TimeoutException as e:
            logger.error("File upload timeout", extra={"event": "storage", "object": object_name})
            raise StorageError("File upload timeout") from e
        except httpx.HTTPError as e:
            logger.error("File upload HTTP error", exc_info=e, extra={"event": "storage", "object": object_name})
            raise StorageError("File upload failed") from e


# Singleton instance
_storage_service: Optional[ObjectStorageService] = None


def get_storage_service() -> ObjectStorageService:
    """Get the singleton storage service instance."""
    global _storage_service
    if _storage_service is None:
        _storage_service = ObjectStorageService()
    return _storage_service
