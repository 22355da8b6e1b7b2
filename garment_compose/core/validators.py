"""
Validation of edit requests and encoded image payloads.
Both validators are pure: they raise on failure and never touch the network.
"""

import re
from typing import List, Optional

from garment_compose.config import logger
from garment_compose.core.errors import ImageValidationError, ValidationError
from garment_compose.models import (
    MAX_INSTRUCTIONS_LENGTH,
    EditRequest,
    EncodedImage,
    Fit,
    Placement,
    RenderStyle,
    estimate_decoded_size,
)

MIN_IMAGE_SIZE = 1024  # 1KB
MAX_IMAGE_SIZE = 20 * 1024 * 1024  # 20MB
SUPPORTED_FORMATS = ["jpg", "jpeg", "png", "webp"]

_BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")

VALID_POSITIONS = [p.value for p in Placement]
VALID_FITS = [f.value for f in Fit]
VALID_STYLES = [s.value for s in RenderStyle]


def _check_image_ref(value, label: str, errors: List[str]) -> None:
    if not value:
        errors.append(f"{label} is required")
    elif not isinstance(value, str):
        errors.append(f"{label} must be a valid URL or base64 string")


def _check_choice(value, field_name: str, options: List[str], errors: List[str]) -> None:
    if value and value not in options:
        errors.append(
            f"Invalid {field_name}: {value}. Valid options: {', '.join(options)}"
        )


def validate_edit_request(request: EditRequest) -> None:
    """
    Check the structural constraints of an edit request.

    Every violation is collected before failing, so the caller sees them all.

    Raises:
        ValidationError: with message ``Validation failed: a; b; ...``
    """
    errors: List[str] = []

    _check_image_ref(request.subject_image_ref, "User image", errors)
    _check_image_ref(request.garment_image_ref, "Garment image", errors)

    _check_choice(request.placement, "position", VALID_POSITIONS, errors)
    _check_choice(request.fit, "fit", VALID_FITS, errors)
    _check_choice(request.render_style, "style", VALID_STYLES, errors)

    instructions = request.custom_instructions
    if instructions is not None and not isinstance(instructions, str):
        errors.append("Instructions must be a string")
    elif instructions and len(instructions) > MAX_INSTRUCTIONS_LENGTH:
        errors.append(
            f"Instructions too long: maximum {MAX_INSTRUCTIONS_LENGTH} characters"
        )

    if errors:
        raise ValidationError(f"Validation failed: {'; '.join(errors)}", errors)


def _image_error(reason: str, label: str) -> ImageValidationError:
    logger.warning(f"Image validation failed for {label}: {reason}")
    return ImageValidationError(f"Image validation failed: {reason}", [reason])


def validate_encoded_image(
    image: EncodedImage | str,
    label: str = "image",
    extension: Optional[str] = None,
) -> None:
    """
    Check size and format constraints of an encoded payload.

    Args:
        image: Encoded image, or its raw base64 text
        label: Name used in log messages
        extension: Known file extension; falls back to the image's own

    Raises:
        ImageValidationError: on the first failing check
    """
    if isinstance(image, EncodedImage):
        payload = image.data
        extension = extension or image.extension
    else:
        payload = image

    if not payload or not isinstance(payload, str):
        raise _image_error("Invalid image data: empty or not a string", label)

    estimated_size = estimate_decoded_size(payload)
    if estimated_size < MIN_IMAGE_SIZE:
        raise _image_error("Image too small: must be at least 1KB", label)

    if estimated_size > MAX_IMAGE_SIZE:
        raise _image_error(
            f"Image size exceeds {MAX_IMAGE_SIZE // 1024 // 1024}MB limit "
            f"(actual: {estimated_size / 1024 / 1024:.2f}MB)",
            label,
        )

    if not _BASE64_PATTERN.fullmatch(payload):
        raise _image_error("Invalid base64 image format", label)

    if extension:
        ext = extension.lower().lstrip(".")
        if ext not in SUPPORTED_FORMATS:
            raise _image_error(
                f"Unsupported image format: {ext}. "
                f"Supported: {', '.join(SUPPORTED_FORMATS)}",
                label,
            )


__all__ = [
    "MIN_IMAGE_SIZE",
    "MAX_IMAGE_SIZE",
    "SUPPORTED_FORMATS",
    "VALID_POSITIONS",
    "VALID_FITS",
    "VALID_STYLES",
    "validate_edit_request",
    "validate_encoded_image",
]
