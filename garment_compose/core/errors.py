"""Exception types raised across the garment composition pipeline."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional


class ImageEditError(Exception):
    """Base class for every pipeline failure."""


class ConfigurationError(ImageEditError):
    """Required configuration (e.g. the model credential) is missing."""


class ValidationError(ImageEditError):
    """Aggregated request-shape violations."""

    def __init__(self, message: str, violations: Optional[List[str]] = None):
        super().__init__(message)
        self.violations = list(violations or [])


class ImageValidationError(ValidationError):
    """An encoded image payload failed size or format checks."""


class ImageConversionError(ImageEditError):
    """An image reference could not be turned into an encoded payload."""


# --- model endpoint ---


class ModelInvocationError(ImageEditError):
    """Base class for failures classified from the model transport status."""

    status_code: Optional[int] = None


class RateLimitError(ModelInvocationError):
    status_code = 429


class AuthError(ModelInvocationError):
    status_code = 403


class BadRequestError(ModelInvocationError):
    status_code = 400


class ExternalServiceError(ModelInvocationError):
    def __init__(self, status_code: Optional[int], body: str, message: Optional[str] = None):
        super().__init__(message or f"API error: {status_code} - {body}")
        self.status_code = status_code
        self.body = body


class ExtractionError(ImageEditError):
    """No image could be located in a successful model response."""


# --- storage ---


class StorageErrorKind(str, Enum):
    BUCKET_NOT_FOUND = "bucket_not_found"
    PERMISSION_DENIED = "permission_denied"
    QUOTA_EXCEEDED = "quota_exceeded"
    TRANSIENT = "transient"

    @property
    def is_fatal(self) -> bool:
        return self is not StorageErrorKind.TRANSIENT


class StorageError(ImageEditError):
    """Raised by storage backends, tagged with the failure kind."""

    def __init__(self, kind: StorageErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class UploadError(ImageEditError):
    """Base class for upload protocol failures."""


class ImmediateValidationError(UploadError):
    """The payload can never be uploaded; retrying would not help."""


class FatalStorageError(UploadError):
    def __init__(self, message: str, kind: StorageErrorKind):
        super().__init__(message)
        self.kind = kind


class UploadExhaustedError(UploadError):
    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(f"Upload failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class HistoryError(ImageEditError):
    """A history row could not be written."""


__all__ = [
    "ImageEditError",
    "ConfigurationError",
    "ValidationError",
    "ImageValidationError",
    "ImageConversionError",
    "ModelInvocationError",
    "RateLimitError",
    "AuthError",
    "BadRequestError",
    "ExternalServiceError",
    "ExtractionError",
    "StorageErrorKind",
    "StorageError",
    "UploadError",
    "ImmediateValidationError",
    "FatalStorageError",
    "UploadExhaustedError",
    "HistoryError",
]
