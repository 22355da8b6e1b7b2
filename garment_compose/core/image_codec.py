"""
Normalization of image references into canonical base64 payloads.

Supported references:
    - ``data:<mime>;base64,<payload>`` inline URIs (payload returned unchanged)
    - ``http://`` / ``https://`` URLs (fetched and re-encoded)

Anything else is treated as a device-local file path, which cannot be read
server-side; callers must upload such images first.
"""

import base64
from typing import Optional
from urllib.parse import urlparse

import httpx

from garment_compose.config import logger
from garment_compose.core.errors import ImageConversionError
from garment_compose.models import EncodedImage

FETCH_TIMEOUT_SECONDS = 60.0

MIME_BY_EXTENSION = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}


def _is_url(value: str) -> bool:
    return value.startswith("http://") or value.startswith("https://")


def _image_mime(content_type: Optional[str]) -> Optional[str]:
    """Base media type if it names an image, else None."""
    if not content_type:
        return None
    base = content_type.split(";", 1)[0].strip().lower()
    return base if base.startswith("image/") else None


def _extension_from_mime(mime_type: Optional[str]) -> Optional[str]:
    mime_type = _image_mime(mime_type)
    if not mime_type:
        return None
    return mime_type.split("/", 1)[1] or None


def _extension_from_url(url: str) -> Optional[str]:
    path = urlparse(url).path
    last = path.rsplit("/", 1)[-1]
    if "." not in last:
        return None
    return last.rsplit(".", 1)[-1].lower() or None


def _loggable_url(url: str) -> str:
    # Host and path only; query strings may hold signed tokens
    parsed = urlparse(url)
    return f"{parsed.netloc}{parsed.path}"


def encode_bytes(data: bytes, mime_type: str = "image/jpeg") -> str:
    """Build an inline data URI for raw image bytes."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('utf-8')}"


def decode_payload(payload: str) -> bytes:
    """Decode a canonical base64 payload (or data URI) back to raw bytes."""
    if payload.startswith("data:"):
        payload = payload.split(",", 1)[1]
    return base64.b64decode(payload, validate=True)


def parse_data_uri(reference: str) -> EncodedImage:
    """Strip the ``data:`` scheme prefix, keeping the payload untouched."""
    try:
        header, payload = reference.split(",", 1)
    except ValueError as exc:
        raise ImageConversionError(
            "Image conversion failed: invalid data URI provided for image input"
        ) from exc

    mime_type = _image_mime(header[len("data:"):])
    return EncodedImage(
        data=payload,
        mime_type=mime_type,
        extension=_extension_from_mime(mime_type),
    )


class ImageCodec:
    """Turns image references into :class:`EncodedImage` payloads."""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = FETCH_TIMEOUT_SECONDS,
    ):
        self._http_client = http_client
        self._timeout = timeout

    async def to_encoded(self, reference: str, label: str = "image") -> EncodedImage:
        """
        Normalize an image reference.

        Raises:
            ImageConversionError: for local references or failed fetches
        """
        if reference.startswith("data:"):
            logger.info(f"Using data URI provided for {label}")
            return parse_data_uri(reference)

        if _is_url(reference):
            logger.info(f"Fetching {label} from URL: {_loggable_url(reference)}")
            return await self._fetch_and_encode(reference, label)

        logger.error(f"Rejected local file reference for {label}")
        raise ImageConversionError(
            "Image conversion failed: Local file URIs not supported. "
            "Please upload the image first."
        )

    async def _fetch_and_encode(self, url: str, label: str) -> EncodedImage:
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(f"Failed to prepare {label}: HTTP {exc.response.status_code}")
            raise ImageConversionError(
                f"Image conversion failed: Failed to fetch image: "
                f"HTTP {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            logger.error(f"Failed to prepare {label}: {exc}")
            raise ImageConversionError(
                f"Image conversion failed: Network error fetching {_loggable_url(url)}: {exc}"
            ) from exc

        # Non-image content types fall back to the URL suffix
        mime_type = _image_mime(response.headers.get("content-type"))
        extension = _extension_from_mime(mime_type) or _extension_from_url(url)
        if mime_type is None and extension:
            mime_type = MIME_BY_EXTENSION.get(extension)

        data = base64.b64encode(response.content).decode("utf-8")

        return EncodedImage(data=data, mime_type=mime_type, extension=extension)


__all__ = [
    "ImageCodec",
    "encode_bytes",
    "decode_payload",
    "parse_data_uri",
]
