"""
Storage operations module for Supabase Storage.
Handles composite image uploads, public URLs and removals.
"""

from typing import Any, List, Optional, Protocol

from supabase import Client

from garment_compose.config import STORAGE_BUCKET, logger
from garment_compose.core.errors import StorageError, StorageErrorKind


class StorageBackend(Protocol):
    """Durable object storage used by the uploader."""

    def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str = "image/jpeg",
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> None: ...

    def get_public_url(self, key: str) -> str: ...

    def remove(self, keys: List[str]) -> None: ...

    def key_from_url(self, url: str) -> Optional[str]: ...


def _error_fields(exc: Exception) -> tuple[Optional[int], str]:
    """Pull a status code and message out of a storage client exception."""
    status: Any = getattr(exc, "status", None) or getattr(exc, "status_code", None)
    message = getattr(exc, "message", None) or str(exc)

    # Older storage clients raise with a dict payload as the first argument
    if exc.args and isinstance(exc.args[0], dict):
        payload = exc.args[0]
        status = status or payload.get("statusCode") or payload.get("status")
        message = payload.get("message") or payload.get("error") or message

    try:
        status = int(status) if status is not None else None
    except (TypeError, ValueError):
        status = None
    return status, str(message)


def classify_storage_error(exc: Exception) -> StorageErrorKind:
    """Map a storage client failure onto a :class:`StorageErrorKind`."""
    status, message = _error_fields(exc)
    lowered = message.lower()

    if status == 404 or "bucket not found" in lowered:
        return StorageErrorKind.BUCKET_NOT_FOUND
    if status in (401, 403) or "permission" in lowered or "unauthorized" in lowered:
        return StorageErrorKind.PERMISSION_DENIED
    if status == 413 or "quota" in lowered:
        return StorageErrorKind.QUOTA_EXCEEDED
    return StorageErrorKind.TRANSIENT


class SupabaseStorageBackend:
    """Supabase Storage implementation of :class:`StorageBackend`."""

    def __init__(self, client: Client, bucket: str = STORAGE_BUCKET):
        self._client = client
        self.bucket = bucket

    def _bucket(self):
        return self._client.storage.from_(self.bucket)

    def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str = "image/jpeg",
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> None:
        try:
            self._bucket().upload(
                path=key,
                file=data,
                file_options={
                    "content-type": content_type,
                    "cache-control": cache_control,
                    "upsert": "true" if upsert else "false",
                },
            )
        except Exception as e:
            kind = classify_storage_error(e)
            logger.error(f"Error uploading {key} ({kind.value}): {e}")
            raise StorageError(kind, f"Upload failed: {_error_fields(e)[1]}") from e

    def get_public_url(self, key: str) -> str:
        public_url = self._bucket().get_public_url(key)
        logger.debug(f"Generated public URL for path: {key}")
        return public_url

    def remove(self, keys: List[str]) -> None:
        try:
            self._bucket().remove(keys)
            logger.info(f"Successfully deleted files: {keys}")
        except Exception as e:
            kind = classify_storage_error(e)
            logger.error(f"Error deleting files {keys}: {e}")
            raise StorageError(kind, f"Delete failed: {_error_fields(e)[1]}") from e

    def key_from_url(self, url: str) -> Optional[str]:
        """Recover the object key from a public URL of this bucket."""
        marker = f"/{self.bucket}/"
        if marker not in url:
            return None
        return url.split(marker, 1)[-1].split("?", 1)[0] or None


__all__ = [
    "StorageBackend",
    "SupabaseStorageBackend",
    "classify_storage_error",
]
