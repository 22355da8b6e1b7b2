# Test fixtures and configuration
import base64
import os
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import httpx
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

os.environ.setdefault(
    "LOG_FILE", os.path.join(tempfile.gettempdir(), "garment_compose_tests.log")
)

from garment_compose.core.errors import StorageError, StorageErrorKind  # noqa: E402
from garment_compose.core.gemini import GeminiImageEditor  # noqa: E402
from garment_compose.core.image_codec import ImageCodec  # noqa: E402
from garment_compose.core.uploader import ResilientUploader  # noqa: E402
from garment_compose.core.user_history_ops import UserHistoryStore  # noqa: E402
from garment_compose.services.image_edit_service import ImageEditService  # noqa: E402

FIXED_NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)
PUBLIC_BASE = "https://project.supabase.co/storage/v1/object/public/virtual-tryon-images/"


# -------------------------
# Image payloads
# -------------------------
@pytest.fixture
def jpeg_bytes():
    """JPEG-looking bytes comfortably above the 1KB minimum."""
    return b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + bytes(range(256)) * 8 + b"\xff\xd9"


@pytest.fixture
def image_data_uri(jpeg_bytes):
    return f"data:image/jpeg;base64,{base64.b64encode(jpeg_bytes).decode()}"


@pytest.fixture
def composite_base64():
    """Model output payload large enough to upload."""
    return base64.b64encode(b"\x89PNG\r\n\x1a\n" + b"\x01" * 600).decode()


def gemini_image_response(image_b64, extra_parts=None):
    parts = list(extra_parts or [])
    parts.append({"inline_data": {"mime_type": "image/jpeg", "data": image_b64}})
    return {"candidates": [{"content": {"parts": parts}}]}


# -------------------------
# Fakes
# -------------------------
class RecordingSleep:
    """Async stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class FakeStorage:
    """In-memory storage backend; ``failures`` are raised on successive puts."""

    bucket = "virtual-tryon-images"

    def __init__(self, failures=None):
        self.failures = list(failures or [])
        self.puts = []
        self.removed = []
        self.objects = {}

    def put_object(self, key, data, content_type="image/jpeg", cache_control="3600", upsert=False):
        self.puts.append(
            {
                "key": key,
                "size": len(data),
                "content_type": content_type,
                "cache_control": cache_control,
                "upsert": upsert,
            }
        )
        if self.failures:
            failure = self.failures.pop(0)
            if failure is not None:
                raise failure
        self.objects[key] = data

    def get_public_url(self, key):
        return f"{PUBLIC_BASE}{key}"

    def remove(self, keys):
        self.removed.extend(keys)

    def key_from_url(self, url):
        marker = f"/{self.bucket}/"
        if marker not in url:
            return None
        return url.split(marker, 1)[-1]


def transient(message="Upload failed: connection reset"):
    return StorageError(StorageErrorKind.TRANSIENT, message)


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.action = "select"
        self.payload = None
        self.columns = "*"
        self.filters = []
        self.order_by = None
        self.limit_to = None

    def insert(self, payload):
        self.action = "insert"
        self.payload = payload
        return self

    def select(self, columns="*", **kwargs):
        self.columns = columns
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, count):
        self.limit_to = count
        return self

    def _matching(self):
        rows = self.db.rows.setdefault(self.table, [])
        return [r for r in rows if all(r.get(c) == v for c, v in self.filters)]

    def execute(self):
        self.db.executed.append(self)
        if self.db.fail_with is not None:
            raise self.db.fail_with

        rows = self.db.rows.setdefault(self.table, [])
        if self.action == "insert":
            self.db.next_id += 1
            row = dict(self.payload, id=f"hist-{self.db.next_id}")
            rows.append(row)
            return SimpleNamespace(data=[row], count=None)

        matched = self._matching()
        if self.action == "delete":
            for row in matched:
                rows.remove(row)
            return SimpleNamespace(data=matched, count=None)

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda r: r.get(column) or "", reverse=desc)
        if self.limit_to is not None:
            matched = matched[: self.limit_to]
        if self.columns != "*":
            wanted = [c.strip() for c in self.columns.split(",")]
            matched = [{c: r.get(c) for c in wanted} for r in matched]
        return SimpleNamespace(data=matched, count=len(matched))


class FakeSupabase:
    """Just enough of the Supabase table API for the history store."""

    def __init__(self):
        self.rows = {}
        self.executed = []
        self.next_id = 0
        self.fail_with = None

    def table(self, name):
        return FakeQuery(self, name)


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def make_service(fake_storage, fake_db, recording_sleep):
    """Factory building an ImageEditService around a mocked model endpoint."""

    def _make(handler, api_key="test-gemini-key", storage=None, user_id="test-user-id"):
        storage = storage or fake_storage
        transport = httpx.MockTransport(handler)
        editor = GeminiImageEditor(
            api_key=api_key,
            model="gemini-2.5-flash-image",
            http_client=httpx.AsyncClient(transport=transport),
        )
        return ImageEditService(
            user_id=user_id,
            editor=editor,
            uploader=ResilientUploader(
                storage, sleep=recording_sleep, clock=lambda: FIXED_NOW
            ),
            history=UserHistoryStore(fake_db, storage=storage, clock=lambda: FIXED_NOW),
            codec=ImageCodec(http_client=httpx.AsyncClient(transport=transport)),
            sleep=recording_sleep,
            default_confidence=0.8,
        )

    return _make
