"""
Database operations for user-specific edit history.
Handles CRUD operations for a user's virtual try-on edit records.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from supabase import Client

from garment_compose.config import HISTORY_TABLE, logger
from garment_compose.core.errors import HistoryError
from garment_compose.core.prompt_templates import build_instructions_for
from garment_compose.core.storage_ops import StorageBackend
from garment_compose.core.usage import summarize_usage
from garment_compose.models import (
    EditRequest,
    EditResult,
    Fit,
    HistoryRecord,
    Placement,
    RenderStyle,
    UsageSummary,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserHistoryStore:
    """Reads and writes ``virtual_tryon_history`` rows for one table."""

    def __init__(
        self,
        client: Client,
        table: str = HISTORY_TABLE,
        storage: Optional[StorageBackend] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._client = client
        self.table = table
        self.storage = storage
        self._clock = clock

    def build_record(
        self, user_id: str, request: EditRequest, result: EditResult
    ) -> Dict[str, Any]:
        """Row payload for one edit attempt."""
        return {
            "user_id": user_id,
            "user_image_url": request.subject_image_ref,
            "garment_image_url": request.garment_image_ref,
            "composite_image_url": result.composite_image_url or None,
            "instructions": build_instructions_for(request),
            "position": request.placement or Placement.FULL_BODY.value,
            "fit": request.fit or Fit.REGULAR.value,
            "style": request.render_style or RenderStyle.REALISTIC.value,
            "confidence": result.confidence if result.success else None,
            "status": "completed" if result.success else "failed",
            "processing_time": result.processing_time_ms or None,
            "created_at": self._clock().isoformat(),
        }

    async def create_record(
        self, user_id: str, request: EditRequest, result: EditResult
    ) -> str:
        """
        Save one edit attempt.

        Returns:
            The generated record id

        Raises:
            HistoryError: If the insert fails or returns no row
        """
        record_data = self.build_record(user_id, request, result)
        logger.info(f"Creating edit history record for user: {user_id}")

        try:
            response = self._client.table(self.table).insert(record_data).execute()
        except Exception as e:
            logger.error(f"Error creating edit history record: {e}")
            raise HistoryError(f"Failed to save edit history: {e}") from e

        if response.data and len(response.data) > 0:
            record_id = str(response.data[0].get("id"))
            logger.info(f"Edit history saved: {record_id}")
            return record_id

        error_msg = "Failed to save edit history: No data returned"
        logger.error(error_msg)
        raise HistoryError(error_msg)

    async def list_records(self, user_id: str, limit: int = 20) -> List[HistoryRecord]:
        """
        Get the most recent edit records for a user, newest first.

        Raises:
            HistoryError: If the query fails
        """
        logger.info(f"Fetching edit history for user {user_id} (limit={limit})")

        try:
            response = (
                self._client.table(self.table)
                .select("*")
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            logger.error(f"Error fetching edit history for user {user_id}: {e}")
            raise HistoryError(f"Failed to fetch edit history: {e}") from e

        records = [HistoryRecord.from_row(row) for row in response.data or []]
        logger.info(f"Retrieved {len(records)} records for user {user_id}")
        return records

    async def delete_record(self, record_id: str, user_id: str) -> bool:
        """
        Delete a user's edit record and its stored composite image.

        Returns:
            True if a row owned by the user was deleted, False otherwise
        """
        logger.info(f"Deleting edit history record {record_id} for user {user_id}")

        try:
            lookup = (
                self._client.table(self.table)
                .select("composite_image_url")
                .eq("id", record_id)
                .eq("user_id", user_id)
                .execute()
            )
            rows = lookup.data or []
            composite_url = rows[0].get("composite_image_url") if rows else None
            if composite_url:
                self._remove_stored_image(composite_url)

            # Delete only if owned by user
            response = (
                self._client.table(self.table)
                .delete()
                .eq("id", record_id)
                .eq("user_id", user_id)
                .execute()
            )
        except Exception as e:
            logger.error(f"Error deleting edit history record {record_id}: {e}")
            return False

        success = bool(response.data and len(response.data) > 0)
        if success:
            logger.info(f"Edit history item deleted: {record_id}")
        else:
            logger.warning(
                f"Failed to delete edit history record {record_id} - not found or unauthorized"
            )
        return success

    def _remove_stored_image(self, composite_url: str) -> None:
        if self.storage is None:
            return
        key = self.storage.key_from_url(composite_url)
        if not key:
            logger.debug(f"Composite URL not in managed storage: {composite_url}")
            return
        try:
            self.storage.remove([key])
        except Exception as e:
            logger.warning(f"Failed to remove stored image {key}: {e}")

    async def get_usage_stats(self, user_id: str) -> UsageSummary:
        """
        Compute usage statistics from a user's edit history.

        Raises:
            HistoryError: If the query fails
        """
        logger.info(f"Fetching usage stats for user {user_id}")

        try:
            response = (
                self._client.table(self.table)
                .select("status, processing_time, created_at")
                .eq("user_id", user_id)
                .execute()
            )
        except Exception as e:
            logger.error(f"Error fetching usage stats for user {user_id}: {e}")
            raise HistoryError(f"Failed to fetch usage stats: {e}") from e

        summary = summarize_usage(response.data or [], self._clock())
        logger.info(f"Stats for user {user_id}: {summary.to_dict()}")
        return summary


__all__ = ["UserHistoryStore"]
