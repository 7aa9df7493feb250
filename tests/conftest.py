"""Shared fakes for the sticker pipeline tests."""

import io
import threading
from collections import defaultdict
from types import SimpleNamespace

import pytest
from PIL import Image

from languagesgo.gemini.image import GeneratedImage
from languagesgo.models import VocabularyCard
from languagesgo.stickers.generator import StickerGenerator
from languagesgo.stickers.mirror import JobMirror
from languagesgo.stickers.queue import StickerQueue
from languagesgo.supabase.client import SupabaseError

PROJECT_URL = "https://demo.supabase.co"


def png_bytes(color=(255, 200, 0)) -> bytes:
    out = io.BytesIO()
    Image.new("RGB", (8, 8), color).save(out, "PNG")
    return out.getvalue()


def jpeg_bytes() -> bytes:
    out = io.BytesIO()
    Image.new("RGB", (8, 8), (0, 120, 255)).save(out, "JPEG")
    return out.getvalue()


def fake_response(*parts, candidates=True):
    """Build an object shaped like a google-genai GenerateContentResponse."""
    if not candidates:
        return SimpleNamespace(candidates=[])
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def image_part(data, mime_type="image/png"):
    return SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=None)


def text_part(text):
    return SimpleNamespace(inline_data=None, text=text)


class FakeStore:
    """In-memory stand-in for SupabaseClient (tables and storage)."""

    def __init__(self, url: str = PROJECT_URL):
        self.url = url
        self.tables: dict[str, dict[str, dict]] = defaultdict(dict)
        self.objects: dict[tuple[str, str], bytes] = {}
        self.uploads: list[dict] = []
        self.failing_tables: set[str] = set()
        self.fail_uploads = False
        self._lock = threading.Lock()

    def add_card(self, card_id, word, *, language="es", category="nature", artwork_url=None, **extra):
        row = {
            "id": str(card_id),
            "word": word,
            "translation": extra.pop("translation", ""),
            "language": language,
            "difficulty": extra.pop("difficulty", 1),
            "category": category,
            "artwork_url": artwork_url,
            **extra,
        }
        self.tables["vocabulary_cards"][str(card_id)] = row
        return VocabularyCard.from_row(row)

    def _check(self, table):
        if table in self.failing_tables:
            raise SupabaseError(f"{table} is unavailable", status_code=503)

    def select(self, table, filters=None, *, or_=None, order=None, limit=None):
        self._check(table)
        with self._lock:
            rows = [dict(r) for r in self.tables[table].values()]
        for column, spec in (filters or {}).items():
            op, value = spec if isinstance(spec, tuple) else ("eq", spec)
            if op == "in":
                rows = [r for r in rows if r.get(column) in value]
            else:
                rows = [r for r in rows if r.get(column) == value]
        if or_ == "(artwork_url.is.null,artwork_url.eq.)":
            rows = [r for r in rows if not r.get("artwork_url")]
        if limit is not None:
            rows = rows[:limit]
        return rows

    def fetch_row(self, table, row_id):
        self._check(table)
        with self._lock:
            row = self.tables[table].get(str(row_id))
            return dict(row) if row else None

    def insert(self, table, row):
        self._check(table)
        with self._lock:
            self.tables[table][row["id"]] = dict(row)

    def update(self, table, row_id, values):
        self._check(table)
        with self._lock:
            if str(row_id) in self.tables[table]:
                self.tables[table][str(row_id)].update(values)

    def upload(self, bucket, path, data, *, content_type="application/octet-stream", cache_control="3600", upsert=False):
        if self.fail_uploads:
            raise SupabaseError("Storage upload failed: bucket not found", status_code=404)
        with self._lock:
            if (bucket, path) in self.objects and not upsert:
                raise SupabaseError("The resource already exists", status_code=409)
            self.objects[(bucket, path)] = data
            self.uploads.append({
                "bucket": bucket,
                "path": path,
                "content_type": content_type,
                "cache_control": cache_control,
                "upsert": upsert,
            })
        return path

    def get_public_url(self, bucket, path):
        return f"{self.url}/storage/v1/object/public/{bucket}/{path}"


class FakeImageClient:
    """Returns a PNG for every prompt unless the word is told to fail."""

    def __init__(self, data: bytes = None, mime_type: str = "image/png"):
        self.data = data if data is not None else png_bytes()
        self.mime_type = mime_type
        self.failures: dict[str, Exception] = {}
        self.prompts: list[str] = []
        self._lock = threading.Lock()

    def fail_for(self, word: str, error: Exception) -> None:
        self.failures[word] = error

    def generate(self, prompt: str) -> GeneratedImage:
        with self._lock:
            self.prompts.append(prompt)
        subject = prompt.splitlines()[1].split(",")[0]
        if subject in self.failures:
            raise self.failures[subject]
        return GeneratedImage(data=self.data, mime_type=self.mime_type)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def image_client():
    return FakeImageClient()


@pytest.fixture
def generator(image_client, store):
    return StickerGenerator(image_client, store, bucket="stickers")


@pytest.fixture
def mirror(store):
    return JobMirror(store, "sticker_generation_jobs")


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def queue(store, generator, mirror, sleeps):
    return StickerQueue(
        store,
        generator,
        mirror,
        batch_size=5,
        batch_delay_s=2.0,
        sleep=sleeps.append,
        autostart=False,
    )
