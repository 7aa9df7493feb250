"""Turn a vocabulary card into an uploaded sticker.

prompt -> Gemini image -> PNG -> sticker bucket -> public URL.
"""

import io
import logging
import re
import threading
import time
import unicodedata
from dataclasses import dataclass
from typing import Any, Optional

from PIL import Image, UnidentifiedImageError

from languagesgo.gemini.image import InvalidImageError, StickerGenerationError
from languagesgo.gemini.prompt import build_prompt
from languagesgo.models import VocabularyCard

logger = logging.getLogger(__name__)

STICKER_CONTENT_TYPE = "image/png"
STICKER_CACHE_SECONDS = "31536000"  # one year; keys are never reused

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
_stamp_lock = threading.Lock()
_last_stamp_ms = 0


def _base36(n: int) -> str:
    if n == 0:
        return "0"
    digits = []
    while n:
        n, r = divmod(n, 36)
        digits.append(_BASE36[r])
    return "".join(reversed(digits))


def _next_stamp_ms() -> int:
    """Millisecond clock that never repeats or goes backwards in-process."""
    global _last_stamp_ms
    with _stamp_lock:
        now = int(time.time() * 1000)
        _last_stamp_ms = max(now, _last_stamp_ms + 1)
        return _last_stamp_ms


def normalize_word(word: str) -> str:
    folded = unicodedata.normalize("NFKD", word).encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^a-z0-9]", "", folded.lower())
    return cleaned or "word"


def generate_sticker_id(word: str, language: str) -> str:
    """Unique sticker id: ``{language}_{normalized-word}_{base36 ms}``."""
    lang = re.sub(r"[^a-z0-9-]", "", language.lower()) or "xx"
    return f"{lang}_{normalize_word(word)}_{_base36(_next_stamp_ms())}"


def to_png(data: bytes) -> bytes:
    """Return PNG bytes, converting other image formats with Pillow.

    Raises:
        InvalidImageError: The bytes are not a decodable image.
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImageError(f"Invalid image data: {e}") from e

    if img.format == "PNG":
        return data

    logger.debug(f"Converting {img.format} sticker to PNG ({img.size[0]}x{img.size[1]})")
    out = io.BytesIO()
    img.save(out, "PNG")
    return out.getvalue()


@dataclass
class StickerGenerationResult:
    success: bool
    sticker_url: Optional[str] = None
    sticker_id: Optional[str] = None
    error: Optional[str] = None
    reason: Optional[str] = None  # refused, request_failed, no_image, invalid_image, upload_failed, error


class StickerGenerator:
    """Generates and stores the sticker artwork for one card at a time."""

    def __init__(self, image_client: Any, store: Any, bucket: str = "stickers"):
        self.image_client = image_client
        self.store = store
        self.bucket = bucket

    def generate(self, card: VocabularyCard) -> StickerGenerationResult:
        """Generate, upload and resolve the sticker for a card.

        Never raises for per-card failures; the result says what went wrong.
        """
        prompt = build_prompt(card.word, card.category)

        try:
            image = self.image_client.generate(prompt)
            png = to_png(image.data)
        except StickerGenerationError as e:
            logger.error(f"Sticker generation failed for '{card.word}': {e}")
            return StickerGenerationResult(success=False, error=str(e), reason=e.reason)

        sticker_id = generate_sticker_id(card.word, card.language)
        path = f"{sticker_id}.png"

        try:
            self.store.upload(
                self.bucket,
                path,
                png,
                content_type=STICKER_CONTENT_TYPE,
                cache_control=STICKER_CACHE_SECONDS,
                upsert=False,
            )
        except Exception as e:
            logger.error(f"Sticker upload failed for '{card.word}': {e}")
            return StickerGenerationResult(
                success=False, sticker_id=sticker_id, error=str(e), reason="upload_failed"
            )

        url = self.store.get_public_url(self.bucket, path)
        logger.info(f"Sticker generated for '{card.word}': {url}")
        return StickerGenerationResult(success=True, sticker_url=url, sticker_id=sticker_id)
