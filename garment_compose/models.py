"""Domain types shared by the composition pipeline."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class Placement(str, Enum):
    UPPER_BODY = "upper-body"
    LOWER_BODY = "lower-body"
    FULL_BODY = "full-body"
    ACCESSORY = "accessory"


class Fit(str, Enum):
    SNUG = "snug"
    REGULAR = "regular"
    LOOSE = "loose"


class RenderStyle(str, Enum):
    REALISTIC = "realistic"
    STYLIZED = "stylized"
    ENHANCED = "enhanced"


MAX_INSTRUCTIONS_LENGTH = 500


@dataclass
class EditRequest:
    """
    Parameters for one garment composition.

    Values are kept as plain strings so that invalid input can be reported
    in full by the request validator instead of failing on construction.
    """

    subject_image_ref: Any
    garment_image_ref: Any
    placement: str = Placement.FULL_BODY.value
    fit: str = Fit.REGULAR.value
    render_style: str = RenderStyle.REALISTIC.value
    custom_instructions: Optional[str] = None


@dataclass(slots=True)
class EncodedImage:
    """Canonical base64 payload for one image."""

    data: str
    mime_type: Optional[str] = None
    extension: Optional[str] = None

    @property
    def estimated_size(self) -> int:
        return estimate_decoded_size(self.data)


def estimate_decoded_size(payload: str) -> int:
    return math.ceil(len(payload) * 3 / 4)


@dataclass(slots=True)
class EditDetails:
    model_used: str
    applied_instructions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model_used": self.model_used,
            "applied_instructions": list(self.applied_instructions),
        }


@dataclass
class EditResult:
    """Outcome of one edit. Only one of the success/failure branches is set."""

    success: bool
    processing_time_ms: int = 0
    composite_image_url: Optional[str] = None
    edited_image_url: Optional[str] = None
    confidence: Optional[float] = None
    details: Optional[EditDetails] = None
    error: Optional[str] = None

    @classmethod
    def succeeded(
        cls,
        composite_image_url: str,
        edited_image_url: str,
        confidence: float,
        processing_time_ms: int,
        details: EditDetails,
    ) -> "EditResult":
        return cls(
            success=True,
            composite_image_url=composite_image_url,
            edited_image_url=edited_image_url,
            confidence=confidence,
            processing_time_ms=processing_time_ms,
            details=details,
        )

    @classmethod
    def failed(cls, error: str, processing_time_ms: int = 0) -> "EditResult":
        return cls(success=False, error=error, processing_time_ms=processing_time_ms)

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {
                "success": False,
                "error": self.error,
                "processing_time_ms": self.processing_time_ms,
            }
        return {
            "success": True,
            "composite_image_url": self.composite_image_url,
            "edited_image_url": self.edited_image_url,
            "confidence": self.confidence,
            "processing_time_ms": self.processing_time_ms,
            "details": self.details.to_dict() if self.details else None,
        }


@dataclass(frozen=True)
class HistoryRecord:
    """Persisted audit entry for one edit attempt."""

    id: str
    user_id: str
    user_image_url: str
    garment_image_url: str
    composite_image_url: Optional[str]
    instructions: str
    position: str
    fit: str
    style: str
    confidence: Optional[float]
    status: str
    processing_time: Optional[int]
    created_at: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "HistoryRecord":
        return cls(
            id=str(row.get("id")),
            user_id=str(row.get("user_id")),
            user_image_url=row.get("user_image_url") or "",
            garment_image_url=row.get("garment_image_url") or "",
            composite_image_url=row.get("composite_image_url"),
            instructions=row.get("instructions") or "",
            position=row.get("position") or Placement.FULL_BODY.value,
            fit=row.get("fit") or Fit.REGULAR.value,
            style=row.get("style") or RenderStyle.REALISTIC.value,
            confidence=row.get("confidence"),
            status=row.get("status") or "failed",
            processing_time=row.get("processing_time"),
            created_at=str(row.get("created_at") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_image_url": self.user_image_url,
            "garment_image_url": self.garment_image_url,
            "composite_image_url": self.composite_image_url,
            "instructions": self.instructions,
            "position": self.position,
            "fit": self.fit,
            "style": self.style,
            "confidence": self.confidence,
            "status": self.status,
            "processing_time": self.processing_time,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class UsageSummary:
    total_edits: int = 0
    successful_edits: int = 0
    this_month_edits: int = 0
    average_processing_time: float = 0.0

    @property
    def failed_edits(self) -> int:
        return self.total_edits - self.successful_edits

    @property
    def success_rate(self) -> float:
        if self.total_edits == 0:
            return 0
        return round((self.successful_edits / self.total_edits) * 100, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_edits": self.total_edits,
            "successful_edits": self.successful_edits,
            "failed_edits": self.failed_edits,
            "this_month_edits": self.this_month_edits,
            "average_processing_time": self.average_processing_time,
            "success_rate": self.success_rate,
        }


_FRACTION = re.compile(r"\.(\d+)(?=[+-]\d{2}:?\d{2}$|$)")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp as stored by Supabase (``Z`` suffix allowed)."""
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat on 3.10 accepts only 0, 3 or 6 fraction digits
    text = _FRACTION.sub(lambda m: "." + m.group(1).ljust(6, "0")[:6], text)
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None
