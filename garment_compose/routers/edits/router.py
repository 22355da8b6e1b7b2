"""FastAPI router for garment composition endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query

from garment_compose.config import logger
from garment_compose.core.errors import (
    AuthError,
    ConfigurationError,
    HistoryError,
    ValidationError,
)
from garment_compose.services.image_edit_service import ImageEditService

from .dependencies import get_image_edit_service
from .models import (
    BatchEditRequest,
    BatchEditResponse,
    DeleteHistoryResponse,
    EditImageRequest,
    EditResponse,
    HistoryResponse,
    SaveHistoryRequest,
    SaveHistoryResponse,
    UsageStatsResponse,
    edit_response,
    history_item,
)

router = APIRouter(prefix="/api/v1", tags=["Garment Composition"])


@router.post("/edits", response_model=EditResponse)
async def create_edit(
    payload: EditImageRequest,
    service: ImageEditService = Depends(get_image_edit_service),
) -> EditResponse:
    """Compose a garment onto the user photo and return the result."""
    logger.info("Edit request received", extra={"user_id": service.user_id})

    try:
        result = await service.edit_with_model(payload.to_edit_request())
    except ConfigurationError as exc:
        logger.error("Edit pipeline misconfigured", extra={"error": str(exc)})
        raise HTTPException(status_code=500, detail=str(exc))
    except AuthError as exc:
        logger.error("Model endpoint rejected credentials", extra={"error": str(exc)})
        raise HTTPException(status_code=502, detail=str(exc))

    return edit_response(result)


@router.post("/edits/batch", response_model=BatchEditResponse)
async def create_batch_edit(
    payload: BatchEditRequest,
    service: ImageEditService = Depends(get_image_edit_service),
) -> BatchEditResponse:
    """Process several edits sequentially and return every result."""

    def log_progress(completed, total, current):
        logger.info(
            "Batch progress",
            extra={
                "user_id": service.user_id,
                "completed": completed,
                "total": total,
                "success": bool(current and current.success),
            },
        )

    requests = [item.to_edit_request() for item in payload.requests]
    results = await service.batch_edit(requests, log_progress)

    return BatchEditResponse(
        total=len(results),
        succeeded=sum(1 for result in results if result.success),
        results=[edit_response(result) for result in results],
    )


@router.post("/history", response_model=SaveHistoryResponse)
async def save_history(
    payload: SaveHistoryRequest,
    service: ImageEditService = Depends(get_image_edit_service),
) -> SaveHistoryResponse:
    """Record an edit attempt in the caller's history."""
    try:
        history_id = await service.save_history(
            payload.request.to_edit_request(), payload.result.to_edit_result()
        )
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except HistoryError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    return SaveHistoryResponse(success=True, history_id=history_id)


@router.get("/history", response_model=HistoryResponse)
async def list_history(
    limit: int = Query(20, ge=1, le=100),
    service: ImageEditService = Depends(get_image_edit_service),
) -> HistoryResponse:
    """Return the caller's most recent edit records."""
    try:
        records = await service.get_history(limit)
    except HistoryError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    return HistoryResponse(
        success=True,
        records=[history_item(record.to_dict()) for record in records],
    )


@router.delete("/history/{history_id}", response_model=DeleteHistoryResponse)
async def delete_history(
    history_id: str,
    service: ImageEditService = Depends(get_image_edit_service),
) -> DeleteHistoryResponse:
    """Delete one of the caller's edit records."""
    deleted = await service.delete_history(history_id)
    if not deleted:
        raise HTTPException(
            status_code=404, detail=f"History record not found: {history_id}"
        )

    return DeleteHistoryResponse(success=True, message="History record deleted")


@router.get("/stats", response_model=UsageStatsResponse)
async def usage_stats(
    service: ImageEditService = Depends(get_image_edit_service),
) -> UsageStatsResponse:
    """Return usage statistics for the caller."""
    try:
        summary = await service.get_usage_stats()
    except HistoryError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    return UsageStatsResponse(**summary.to_dict())


@router.get("/health")
async def health_check() -> dict:
    """Simple health check endpoint."""

    return {
        "status": "healthy",
        "service": "garment-compose-api",
        "version": "1.0.0",
    }
