"""Tests for the edit history store."""

import pytest

from garment_compose.core.errors import HistoryError
from garment_compose.core.prompt_templates import build_instructions_for
from garment_compose.core.user_history_ops import UserHistoryStore
from garment_compose.models import EditDetails, EditRequest, EditResult, HistoryRecord
from tests.conftest import FIXED_NOW, PUBLIC_BASE

TABLE = "virtual_tryon_history"


def _request(**overrides):
    fields = {
        "subject_image_ref": "https://example.com/user.jpg",
        "garment_image_ref": "https://example.com/jacket.jpg",
        "placement": "upper-body",
        "fit": "snug",
        "custom_instructions": "zip it up",
    }
    fields.update(overrides)
    return EditRequest(**fields)


def _success(url=PUBLIC_BASE + "virtual-tryon/user-1/1-composite.jpg"):
    return EditResult.succeeded(
        composite_image_url=url,
        edited_image_url="data:image/jpeg;base64,QUJD",
        confidence=0.91,
        processing_time_ms=1530,
        details=EditDetails(model_used="gemini-2.5-flash-image"),
    )


@pytest.fixture
def store(fake_db, fake_storage):
    return UserHistoryStore(fake_db, table=TABLE, storage=fake_storage, clock=lambda: FIXED_NOW)


class TestBuildRecord:
    def test_successful_edit(self, store):
        request = _request()

        row = store.build_record("user-1", request, _success())

        assert row == {
            "user_id": "user-1",
            "user_image_url": "https://example.com/user.jpg",
            "garment_image_url": "https://example.com/jacket.jpg",
            "composite_image_url": PUBLIC_BASE + "virtual-tryon/user-1/1-composite.jpg",
            "instructions": build_instructions_for(request),
            "position": "upper-body",
            "fit": "snug",
            "style": "realistic",
            "confidence": 0.91,
            "status": "completed",
            "processing_time": 1530,
            "created_at": FIXED_NOW.isoformat(),
        }

    def test_failed_edit(self, store):
        row = store.build_record("user-1", _request(), EditResult.failed("boom", 0))

        assert row["status"] == "failed"
        assert row["composite_image_url"] is None
        assert row["confidence"] is None
        assert row["processing_time"] is None


class TestCreateRecord:
    @pytest.mark.asyncio
    async def test_returns_generated_id(self, store, fake_db):
        record_id = await store.create_record("user-1", _request(), _success())

        assert record_id == "hist-1"
        assert fake_db.rows[TABLE][0]["status"] == "completed"

    @pytest.mark.asyncio
    async def test_database_error(self, store, fake_db):
        fake_db.fail_with = RuntimeError("connection refused")

        with pytest.raises(HistoryError, match="connection refused"):
            await store.create_record("user-1", _request(), _success())

    @pytest.mark.asyncio
    async def test_no_row_returned(self, fake_storage):
        class EmptyInsert:
            def table(self, name):
                return self

            def insert(self, payload):
                return self

            def execute(self):
                return type("Response", (), {"data": []})()

        store = UserHistoryStore(EmptyInsert(), storage=fake_storage)

        with pytest.raises(HistoryError, match="No data returned"):
            await store.create_record("user-1", _request(), _success())


class TestListRecords:
    @pytest.mark.asyncio
    async def test_newest_first_and_scoped_to_user(self, store, fake_db):
        fake_db.rows[TABLE] = [
            {"id": "a", "user_id": "user-1", "status": "completed", "created_at": "2026-10-01T10:00:00+00:00"},
            {"id": "b", "user_id": "user-2", "status": "completed", "created_at": "2026-10-05T10:00:00+00:00"},
            {"id": "c", "user_id": "user-1", "status": "failed", "created_at": "2026-10-03T10:00:00+00:00"},
            {"id": "d", "user_id": "user-1", "status": "completed", "created_at": "2026-09-20T10:00:00+00:00"},
        ]

        records = await store.list_records("user-1", limit=2)

        assert [r.id for r in records] == ["c", "a"]
        assert all(isinstance(r, HistoryRecord) for r in records)
        assert records[0].position == "full-body"

    @pytest.mark.asyncio
    async def test_query_error(self, store, fake_db):
        fake_db.fail_with = RuntimeError("timeout")

        with pytest.raises(HistoryError):
            await store.list_records("user-1")


class TestDeleteRecord:
    @pytest.mark.asyncio
    async def test_deletes_row_and_stored_image(self, store, fake_db, fake_storage):
        record_id = await store.create_record("user-1", _request(), _success())

        deleted = await store.delete_record(record_id, "user-1")

        assert deleted is True
        assert fake_db.rows[TABLE] == []
        assert fake_storage.removed == ["virtual-tryon/user-1/1-composite.jpg"]

    @pytest.mark.asyncio
    async def test_other_users_record_is_untouched(self, store, fake_db, fake_storage):
        record_id = await store.create_record("user-1", _request(), _success())

        deleted = await store.delete_record(record_id, "intruder")

        assert deleted is False
        assert len(fake_db.rows[TABLE]) == 1
        assert fake_storage.removed == []

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_block_delete(self, store, fake_db, fake_storage):
        def broken_remove(keys):
            raise RuntimeError("storage offline")

        fake_storage.remove = broken_remove
        record_id = await store.create_record("user-1", _request(), _success())

        assert await store.delete_record(record_id, "user-1") is True

    @pytest.mark.asyncio
    async def test_database_error_returns_false(self, store, fake_db):
        fake_db.fail_with = RuntimeError("timeout")

        assert await store.delete_record("hist-9", "user-1") is False


class TestUsageStats:
    @pytest.mark.asyncio
    async def test_summarizes_user_rows(self, store, fake_db):
        fake_db.rows[TABLE] = [
            {"user_id": "user-1", "status": "completed", "processing_time": 1000, "created_at": "2026-10-02T08:00:00Z"},
            {"user_id": "user-1", "status": "failed", "processing_time": None, "created_at": "2026-09-29T08:00:00Z"},
            {"user_id": "user-1", "status": "completed", "processing_time": 3000, "created_at": "2026-10-10T08:00:00Z"},
            {"user_id": "user-2", "status": "completed", "processing_time": 9000, "created_at": "2026-10-10T08:00:00Z"},
        ]

        summary = await store.get_usage_stats("user-1")

        assert summary.total_edits == 3
        assert summary.successful_edits == 2
        assert summary.failed_edits == 1
        assert summary.this_month_edits == 2
        assert summary.average_processing_time == 2000
        assert summary.success_rate == 66.67

    @pytest.mark.asyncio
    async def test_query_error(self, store, fake_db):
        fake_db.fail_with = RuntimeError("timeout")

        with pytest.raises(HistoryError):
            await store.get_usage_stats("user-1")
