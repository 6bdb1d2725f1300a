"""
Photo gallery service.

Photos live in Object Storage as an image object plus a sibling metadata
document (`<base>.metadata.json`). Listing reads every metadata document on
each request; there is no cache.
"""
import asyncio
import json
import logging
import secrets
import string
import time
from typing import List, Optional, Tuple

from pydantic import ValidationError

from club_api.config import Settings, get_settings
from club_api.exceptions import SourceUnavailableError, StorageError
from club_api.schemas.common import Pagination
from club_api.schemas.photo import METADATA_SUFFIX, Photo, PhotoQuery, PhotoSort
from club_api.services.object_storage import ObjectStorageService, StoredObject, get_storage_service
from club_api.utils.batch import BatchResult, ItemFailure
from club_api.utils.pagination import paginate
from club_api.utils.prometheus_metrics import item_read_failures_total
from club_api.utils.timestamps import parse_timestamp, utc_now_iso

logger = logging.getLogger("club_api.photos")

_BASE36 = string.digits + string.ascii_lowercase


def parse_metadata_document(object_name: str, body: bytes) -> Photo:
    """
    Build a Photo from a metadata document.

    `id` falls back to the object path without the metadata suffix, and the
    image link is `imageUrl` or, for older documents, `url`.

    Raises:
        ValueError: Body is not a JSON object or lacks required fields
    """
    payload = json.loads(body)
    if not isinstance(payload, dict):
        raise ValueError("metadata document is not a JSON object")

    image_url = payload.get("imageUrl") or payload.get("url")
    try:
        return Photo.model_validate(
            {
                **payload,
                "id": payload.get("id") or object_name.removesuffix(METADATA_SUFFIX),
                "url": image_url,
                "imageUrl": image_url,
            }
        )
    except ValidationError as e:
        raise ValueError(f"invalid metadata document: {e.error_count()} field error(s)") from e


def search_photos(photos: List[Photo], search: str) -> List[Photo]:
    """Case-insensitive substring match on title, uploadedAt or originalFilename."""
    if not search:
        return list(photos)
    query = search.lower()
    return [
        photo for photo in photos
        if query in photo.title.lower()
        or query in photo.uploadedAt.lower()
        or (photo.originalFilename is not None and query in photo.originalFilename.lower())
    ]


def _uploaded_at_key(photo: Photo) -> float:
    # Unparseable timestamps sort as the epoch
    dt = parse_timestamp(photo.uploadedAt)
    return dt.timestamp() if dt else 0.0


def sort_photos(photos: List[Photo], sort: str) -> List[Photo]:
    """
    Order photos by the requested mode. Unknown modes keep the input order.
    """
    if sort == PhotoSort.NEWEST.value:
        return sorted(photos, key=_uploaded_at_key, reverse=True)
    if sort == PhotoSort.OLDEST.value:
        return sorted(photos, key=_uploaded_at_key)
    if sort == PhotoSort.TITLE.value:
        return sorted(photos, key=lambda photo: (photo.title.casefold(), photo.title))
    return list(photos)


class PhotoRepository:
    """
    Service for photo listing and upload.
    Integrates with Object Storage for both images and metadata documents.
    """

    def __init__(
        self,
        storage: Optional[ObjectStorageService] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.storage = storage or get_storage_service()

    async def _load_one(self, obj: StoredObject, client, semaphore: asyncio.Semaphore) -> Photo:
        async with semaphore:
            body = await asyncio.wait_for(
                self.storage.download_file(obj.name, client=client),
                timeout=self.settings.storage_fetch_timeout_seconds,
            )
        return parse_metadata_document(obj.name, body)

    async def load_photos(self) -> BatchResult[Photo]:
        """
        List metadata documents and read them concurrently over one shared
        client, at most `storage_fetch_concurrency` at a time.

        Returns:
            Photos that loaded, plus one failure entry per unreadable document

        Raises:
            SourceUnavailableError: The listing itself failed
        """
        try:
            objects = await self.storage.list_objects(
                prefix=self.settings.storage_photo_prefix,
                limit=self.settings.storage_list_limit,
            )
        except StorageError as e:
            logger.error(
                "Photo listing failed",
                exc_info=e,
                extra={"event": "photos", "prefix": self.settings.storage_photo_prefix},
            )
            raise SourceUnavailableError("Failed to list photos") from e

        metadata_objects = [obj for obj in objects if obj.name.endswith(METADATA_SUFFIX)]
        semaphore = asyncio.Semaphore(self.settings.storage_fetch_concurrency)
        async with self.storage.batch_client() as client:
            results = await asyncio.gather(
                *(self._load_one(obj, client, semaphore) for obj in metadata_objects),
                return_exceptions=True,
            )

        batch: BatchResult[Photo] = BatchResult()
        for obj, result in zip(metadata_objects, results):
            if isinstance(result, Photo):
                batch.items.append(result)
                continue
            if not isinstance(result, Exception):
                raise result
            reason = str(result) or type(result).__name__
            batch.failures.append(ItemFailure(key=obj.name, reason=reason))
            item_read_failures_total.labels(source="photo_metadata").inc()
            logger.warning(
                "Photo metadata skipped",
                extra={"event": "photos", "object": obj.name, "error_type": type(result).__name__, "reason": reason},
            )
        return batch

    async def query(self, params: PhotoQuery) -> Tuple[List[Photo], Pagination]:
        """
        Search, sort and paginate the gallery.

        Args:
            params: Search, sort and page parameters

        Returns:
            (photos on the requested page, pagination metadata)
        """
        batch = await self.load_photos()
        photos = search_photos(batch.items, params.search)
        photos = sort_photos(photos, params.sort)
        return paginate(photos, params.page, params.limit)

    async def upload_photo(
        self,
        file_content: bytes,
        filename: str,
        content_type: str,
        title: str,
    ) -> Photo:
        """
        Store an image and its metadata document.

        Args:
            file_content: Image bytes
            filename: Original filename from the client
            content_type: Validated MIME type
            title: Photo title (already stripped)

        Returns:
            The Photo written to the metadata document
        """
        extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else "jpg"
        suffix = "".join(secrets.choice(_BASE36) for _ in range(13))
        base = f"{self.settings.storage_photo_prefix}{int(time.time() * 1000)}-{suffix}"
        image_name = f"{base}.{extension}"
        metadata_name = f"{base}{METADATA_SUFFIX}"

        await self.storage.upload_file(
            file_content=file_content,
            object_name=image_name,
            content_type=content_type,
        )

        image_url = self.storage.public_url(image_name)
        photo = Photo(
            id=image_name,
            url=image_url,
            title=title,
            uploadedAt=utc_now_iso(),
            size=len(file_content),
            contentType=content_type,
            originalFilename=filename,
            imageUrl=image_url,
        )

        await self.storage.upload_file(
            file_content=json.dumps(photo.model_dump(), ensure_ascii=False, indent=2).encode("utf-8"),
            object_name=metadata_name,
            content_type="application/json",
        )

        logger.info("Photo uploaded", extra={"event": "upload", "object": image_name, "size": len(file_content)})
        return photo


# Singleton instance
_photo_repository: Optional[PhotoRepository] = None


def get_photo_repository() -> PhotoRepository:
    """Get the singleton photo repository instance."""
    global _photo_repository
    if _photo_repository is None:
        _photo_repository = PhotoRepository()
    return _photo_repository
