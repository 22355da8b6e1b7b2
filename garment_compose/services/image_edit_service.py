"""Garment composition service: single edits, batches, history and usage."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import (
    Any,
    Awaitable,
    Callable,
    List,
    Optional,
    Protocol,
    Sequence,
    Union,
)

from garment_compose.config import DEFAULT_CONFIDENCE, logger
from garment_compose.core.errors import (
    AuthError,
    ConfigurationError,
    ExtractionError,
    ImageEditError,
)
from garment_compose.core.gemini import (
    GeminiImageEditor,
    extract_edited_image,
    extract_metadata,
)
from garment_compose.core.image_codec import ImageCodec
from garment_compose.core.prompt_templates import build_instructions_for
from garment_compose.core.storage_ops import SupabaseStorageBackend
from garment_compose.core.uploader import DEFAULT_MAX_ATTEMPTS, ResilientUploader
from garment_compose.core.user_history_ops import UserHistoryStore
from garment_compose.core.validators import (
    validate_edit_request,
    validate_encoded_image,
)
from garment_compose.db import get_supabase_client
from garment_compose.models import (
    EditDetails,
    EditRequest,
    EditResult,
    HistoryRecord,
    UsageSummary,
)

BATCH_PAUSE_SECONDS = 1.0


def _log(level: int, message: str, **context: Any) -> None:
    """Helper to emit structured logs with contextual metadata."""
    logger.log(level, "%s | context=%s", message, context)


class BatchProgressObserver(Protocol):
    """Receives one notification per processed batch item."""

    def on_progress(
        self, completed: int, total: int, current: Optional[EditResult]
    ) -> None: ...


class CallbackProgressObserver:
    """Adapts a plain ``(completed, total, current)`` callable to the observer."""

    def __init__(self, callback: Callable[[int, int, Optional[EditResult]], None]):
        self._callback = callback

    def on_progress(
        self, completed: int, total: int, current: Optional[EditResult]
    ) -> None:
        self._callback(completed, total, current)


ProgressArg = Union[
    BatchProgressObserver, Callable[[int, int, Optional[EditResult]], None]
]


def _as_observer(on_progress: Optional[ProgressArg]) -> Optional[BatchProgressObserver]:
    if on_progress is None or hasattr(on_progress, "on_progress"):
        return on_progress  # type: ignore[return-value]
    return CallbackProgressObserver(on_progress)


class ImageEditService:
    """
    Entry points of the composition pipeline for one authenticated user.

    All collaborators are injected, so tests can swap in fakes for the
    model, storage and history backends as well as the wait function.
    """

    def __init__(
        self,
        user_id: str,
        editor: GeminiImageEditor,
        uploader: ResilientUploader,
        history: UserHistoryStore,
        codec: Optional[ImageCodec] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        default_confidence: float = DEFAULT_CONFIDENCE,
        max_upload_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self.user_id = user_id
        self.editor = editor
        self.uploader = uploader
        self.history = history
        self.codec = codec or ImageCodec()
        self._sleep = sleep
        self.default_confidence = default_confidence
        self.max_upload_attempts = max_upload_attempts

    async def edit_with_model(self, request: EditRequest) -> EditResult:
        """
        Run one edit through validate → encode → invoke → extract → upload.

        Edit-level failures come back as a failed :class:`EditResult`.

        Raises:
            ConfigurationError: The model credential is missing
            AuthError: The model endpoint rejected the credential
        """
        start_time = time.time()
        self.editor.ensure_configured()

        _log(logging.INFO, "edit_started", user_id=self.user_id)

        try:
            validate_edit_request(request)

            subject = await self.codec.to_encoded(request.subject_image_ref, "user image")
            garment = await self.codec.to_encoded(
                request.garment_image_ref, "garment image"
            )
            validate_encoded_image(subject, "user-image")
            validate_encoded_image(garment, "garment-image")

            instructions = build_instructions_for(request)
            _log(logging.DEBUG, "instructions_generated", instructions=instructions)

            api_result = await self.editor.generate(instructions, subject, garment)

            edited_base64 = extract_edited_image(api_result)
            if not edited_base64:
                raise ExtractionError("Failed to extract edited image from API response")

            confidence, applied = extract_metadata(api_result, self.default_confidence)

            composite_url = await self.uploader.upload(
                edited_base64, self.user_id, self.max_upload_attempts
            )

        except (ConfigurationError, AuthError):
            raise
        except ImageEditError as exc:
            return self._failed(exc, start_time)
        except Exception as exc:
            logger.error("Unexpected error during image editing", exc_info=True)
            return self._failed(exc, start_time)

        processing_time_ms = int((time.time() - start_time) * 1000)
        _log(
            logging.INFO,
            "edit_completed",
            user_id=self.user_id,
            composite_url=composite_url,
            processing_time_ms=processing_time_ms,
        )
        return EditResult.succeeded(
            composite_image_url=composite_url,
            edited_image_url=f"data:image/jpeg;base64,{edited_base64}",
            confidence=confidence,
            processing_time_ms=processing_time_ms,
            details=EditDetails(
                model_used=self.editor.model,
                applied_instructions=applied or [instructions],
            ),
        )

    def _failed(self, exc: Exception, start_time: float) -> EditResult:
        processing_time_ms = int((time.time() - start_time) * 1000)
        message = str(exc) or "Unknown error occurred during image editing"
        _log(
            logging.ERROR,
            "edit_failed",
            user_id=self.user_id,
            error_type=type(exc).__name__,
            error=message,
        )
        return EditResult.failed(message, processing_time_ms)

    async def save_history(self, request: EditRequest, result: EditResult) -> str:
        """
        Record one edit attempt; returns the history id.

        Raises:
            ValidationError: The request breaks the history row constraints
            HistoryError: The row could not be written
        """
        validate_edit_request(request)
        return await self.history.create_record(self.user_id, request, result)

    async def batch_edit(
        self,
        requests: Sequence[EditRequest],
        on_progress: Optional[ProgressArg] = None,
    ) -> List[EditResult]:
        """
        Process edits one after another, pausing between items.

        A failing item yields a failed result in its slot; the run continues.
        History is written for successful items only.
        """
        observer = _as_observer(on_progress)
        total = len(requests)
        results: List[EditResult] = []

        _log(logging.INFO, "batch_started", user_id=self.user_id, total=total)

        for index, request in enumerate(requests):
            current: Optional[EditResult] = None
            try:
                current = await self.edit_with_model(request)
                results.append(current)

                if current.success:
                    try:
                        await self.save_history(request, current)
                    except Exception as exc:
                        _log(
                            logging.WARNING,
                            "batch_history_save_failed",
                            item=index + 1,
                            error=str(exc),
                        )
            except Exception as exc:
                _log(
                    logging.ERROR,
                    "batch_item_failed",
                    item=index + 1,
                    error=str(exc),
                )
                results.append(EditResult.failed(str(exc)))
                current = None

            self._notify(observer, index + 1, total, current)

            if index < total - 1:
                await self._sleep(BATCH_PAUSE_SECONDS)

        _log(
            logging.INFO,
            "batch_completed",
            user_id=self.user_id,
            total=total,
            succeeded=sum(1 for r in results if r.success),
        )
        return results

    @staticmethod
    def _notify(
        observer: Optional[BatchProgressObserver],
        completed: int,
        total: int,
        current: Optional[EditResult],
    ) -> None:
        if observer is None:
            return
        try:
            observer.on_progress(completed, total, current)
        except Exception as exc:
            _log(logging.WARNING, "progress_observer_error", error=str(exc))

    async def get_history(self, limit: int = 20) -> List[HistoryRecord]:
        return await self.history.list_records(self.user_id, limit)

    async def delete_history(self, history_id: str) -> bool:
        return await self.history.delete_record(history_id, self.user_id)

    async def get_usage_stats(self) -> UsageSummary:
        return await self.history.get_usage_stats(self.user_id)


def build_image_edit_service(user_id: str) -> ImageEditService:
    """Wire a service for ``user_id`` against the configured Gemini and Supabase."""
    client = get_supabase_client()
    storage = SupabaseStorageBackend(client)
    return ImageEditService(
        user_id=user_id,
        editor=GeminiImageEditor(),
        uploader=ResilientUploader(storage),
        history=UserHistoryStore(client, storage=storage),
    )


__all__ = [
    "BATCH_PAUSE_SECONDS",
    "BatchProgressObserver",
    "CallbackProgressObserver",
    "ImageEditService",
    "build_image_edit_service",
]
