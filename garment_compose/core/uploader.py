"""
Resilient upload of composite images.

Each attempt re-validates the payload, uploads it under the user's namespace
and returns the public URL. Structural storage failures stop immediately;
transient ones are retried with exponential backoff capped at 5 seconds.
"""

import asyncio
import base64
import binascii
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from garment_compose.config import logger
from garment_compose.core.errors import (
    FatalStorageError,
    ImmediateValidationError,
    StorageError,
    StorageErrorKind,
    UploadExhaustedError,
)
from garment_compose.core.storage_ops import StorageBackend
from garment_compose.models import estimate_decoded_size

MIN_UPLOAD_BYTES = 100
DEFAULT_MAX_ATTEMPTS = 3
BASE_DELAY_MS = 1000
MAX_DELAY_MS = 5000
KEY_PREFIX = "virtual-tryon"

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def backoff_delay_ms(attempt: int) -> int:
    """Delay before the attempt following ``attempt`` (1-based)."""
    return min(BASE_DELAY_MS * 2 ** (attempt - 1), MAX_DELAY_MS)


@dataclass(slots=True)
class UploadAttempt:
    number: int
    payload: bytes
    key: str

    @property
    def upsert(self) -> bool:
        # The first attempt must not clobber an existing object
        return self.number > 1


class ResilientUploader:
    def __init__(
        self,
        storage: StorageBackend,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = _utcnow,
    ):
        self.storage = storage
        self._sleep = sleep
        self._clock = clock

    def _build_key(self, user_id: str) -> str:
        timestamp_ms = int(self._clock().timestamp() * 1000)
        return f"{KEY_PREFIX}/{user_id}/{timestamp_ms}-composite.jpg"

    @staticmethod
    def _decode(base64_image: str) -> bytes:
        if not base64_image or estimate_decoded_size(base64_image) < MIN_UPLOAD_BYTES:
            raise ImmediateValidationError("Invalid composite image: too small or empty")

        try:
            decoded = base64.b64decode(base64_image, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ImmediateValidationError(
                f"Invalid composite image: not valid base64 ({exc})"
            ) from exc

        if len(decoded) < MIN_UPLOAD_BYTES:
            raise ImmediateValidationError("Generated image too small for upload")
        return decoded

    async def upload(
        self,
        base64_image: str,
        user_id: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> str:
        """
        Upload a composite image and return its public URL.

        Raises:
            ImmediateValidationError: The payload is empty or too small
            FatalStorageError: Missing bucket, permission denied or quota exceeded
            UploadExhaustedError: Transient failures on every attempt
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        last_error: Optional[Exception] = None

        for number in range(1, max_attempts + 1):
            logger.info(f"Uploading composite image (attempt {number}/{max_attempts})")

            attempt = UploadAttempt(
                number=number,
                payload=self._decode(base64_image),
                key=self._build_key(user_id),
            )

            try:
                self.storage.put_object(
                    attempt.key,
                    attempt.payload,
                    content_type="image/jpeg",
                    cache_control="3600",
                    upsert=attempt.upsert,
                )
                public_url = self.storage.get_public_url(attempt.key)
                if not public_url:
                    raise StorageError(
                        kind=StorageErrorKind.TRANSIENT,
                        message="Failed to generate public URL for uploaded image",
                    )
                logger.info(f"Composite image uploaded successfully: {public_url}")
                return public_url

            except Exception as exc:
                last_error = exc
                logger.error(f"Upload attempt {number} failed: {exc}")

                kind = (
                    exc.kind if isinstance(exc, StorageError) else StorageErrorKind.TRANSIENT
                )
                if kind.is_fatal:
                    raise FatalStorageError(str(exc), kind) from exc

                if number < max_attempts:
                    delay_ms = backoff_delay_ms(number)
                    logger.info(f"Retrying upload in {delay_ms}ms...")
                    await self._sleep(delay_ms / 1000)

        raise UploadExhaustedError(max_attempts, last_error)


__all__ = [
    "UploadAttempt",
    "ResilientUploader",
    "backoff_delay_ms",
    "MIN_UPLOAD_BYTES",
    "DEFAULT_MAX_ATTEMPTS",
]
