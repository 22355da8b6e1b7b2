"""Pydantic models used by the edit router."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from garment_compose.models import EditDetails, EditRequest, EditResult


class EditImageRequest(BaseModel):
    """Request payload for one garment composition.

    Field values are checked by the pipeline's request validator so that
    every violation is reported together.
    """

    user_image: Optional[Any] = Field(None, description="Data URI or URL of the user photo")
    garment_image: Optional[Any] = Field(
        None, description="Data URI or URL of the garment photo"
    )
    position: Optional[str] = Field("full-body", description="Target body region")
    fit: Optional[str] = Field("regular", description="How closely the garment hugs")
    style: Optional[str] = Field("realistic", description="Render style")
    instructions: Optional[str] = Field(None, description="Custom instructions")

    def to_edit_request(self) -> EditRequest:
        return EditRequest(
            subject_image_ref=self.user_image,
            garment_image_ref=self.garment_image,
            placement=self.position or "full-body",
            fit=self.fit or "regular",
            render_style=self.style or "realistic",
            custom_instructions=self.instructions,
        )


class BatchEditRequest(BaseModel):
    requests: List[EditImageRequest] = Field(..., min_length=1)


class EditDetailsResponse(BaseModel):
    model_used: str
    applied_instructions: List[str] = Field(default_factory=list)


class EditResponse(BaseModel):
    """Result of one edit; either the success or the error fields are set."""

    success: bool
    composite_image_url: Optional[str] = None
    edited_image_url: Optional[str] = None
    confidence: Optional[float] = Field(None, ge=0, le=1)
    processing_time_ms: int = 0
    details: Optional[EditDetailsResponse] = None
    error: Optional[str] = None

    def to_edit_result(self) -> EditResult:
        details = None
        if self.details:
            details = EditDetails(
                model_used=self.details.model_used,
                applied_instructions=list(self.details.applied_instructions),
            )
        return EditResult(
            success=self.success,
            processing_time_ms=self.processing_time_ms,
            composite_image_url=self.composite_image_url,
            edited_image_url=self.edited_image_url,
            confidence=self.confidence,
            details=details,
            error=self.error,
        )


class BatchEditResponse(BaseModel):
    total: int
    succeeded: int
    results: List[EditResponse]


class SaveHistoryRequest(BaseModel):
    request: EditImageRequest
    result: EditResponse


class SaveHistoryResponse(BaseModel):
    success: bool
    history_id: str


class HistoryItem(BaseModel):
    id: str
    user_id: str
    user_image_url: str
    garment_image_url: str
    composite_image_url: Optional[str] = None
    instructions: str
    position: str
    fit: str
    style: str
    confidence: Optional[float] = None
    status: str
    processing_time: Optional[int] = None
    created_at: str


class HistoryResponse(BaseModel):
    success: bool
    records: List[HistoryItem]


class DeleteHistoryResponse(BaseModel):
    success: bool
    message: str


class UsageStatsResponse(BaseModel):
    total_edits: int
    successful_edits: int
    failed_edits: int
    this_month_edits: int
    average_processing_time: float
    success_rate: float


def edit_response(result: EditResult) -> EditResponse:
    return EditResponse(**result.to_dict())


def history_item(record: Dict[str, Any]) -> HistoryItem:
    return HistoryItem(**record)
