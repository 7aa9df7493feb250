#!/usr/bin/env python3
"""Gemini sticker image generation.

Sends one text prompt, asks for IMAGE and TEXT modalities, and returns the
first inline image found in the response. A response that carries text but
no image means the model declined; that is reported as a
ContentRefusalError so callers can tell it apart from transport failures.

Usage:
  python -m languagesgo.gemini.image tree nature out.png
"""

import base64
import logging
import os
import random
import sys
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from google import genai
from google.genai import errors, types

from languagesgo.gemini.prompt import build_prompt

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash-preview-image-generation"
RETRIABLE_STATUS = (429, 500, 502, 503, 504)

SAFETY_CATEGORIES = (
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
)


class StickerGenerationError(RuntimeError):
    """Base error for sticker image generation."""
    reason = "error"


class GeminiRequestError(StickerGenerationError):
    """The API call failed (non-2xx status or transport error)."""
    reason = "request_failed"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ContentRefusalError(StickerGenerationError):
    """The model answered with text instead of an image."""
    reason = "refused"

    def __init__(self, text: str):
        super().__init__("Model returned text instead of image")
        self.text = text


class NoImageError(StickerGenerationError):
    reason = "no_image"


class InvalidImageError(StickerGenerationError):
    reason = "invalid_image"


@dataclass
class GeneratedImage:
    data: bytes
    mime_type: str


def build_generation_config() -> types.GenerateContentConfig:
    """Fixed sampling and safety settings for sticker generation."""
    return types.GenerateContentConfig(
        response_modalities=["IMAGE", "TEXT"],
        temperature=0.4,
        top_k=32,
        top_p=1.0,
        safety_settings=[
            types.SafetySetting(
                category=category,
                threshold=types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
            )
            for category in SAFETY_CATEGORIES
        ],
    )


def extract_image(response: Any) -> GeneratedImage:
    """Find the first inline image in a generate_content response.

    Raises:
        ContentRefusalError: No image, but the model produced text.
        NoImageError: No candidates, no parts, or nothing usable.
    """
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        raise NoImageError("No candidates in response")

    texts: list[str] = []
    saw_parts = False
    for candidate in candidates:
        content = getattr(candidate, "content", None)
        parts = (content.parts if content is not None and content.parts else [])
        for part in parts:
            saw_parts = True
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data and (inline.mime_type or "").startswith("image/"):
                data = inline.data
                if isinstance(data, str):
                    data = base64.b64decode(data)
                return GeneratedImage(data=data, mime_type=inline.mime_type)
            text = getattr(part, "text", None)
            if text:
                texts.append(text)

    if texts:
        raise ContentRefusalError("\n".join(texts))
    if not saw_parts:
        raise NoImageError("No content in response")
    raise NoImageError("No image generated")


class StickerImageClient:
    """Calls the Gemini image model with retry on transient failures."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        model: str = DEFAULT_MODEL,
        timeout_s: float = 60.0,
        max_attempts: int = 3,
        retry_base_delay_s: float = 2.0,
        client: Any = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the image client.

        Args:
            api_key: Gemini API key (or GEMINI_API_KEY env var)
            model: Gemini model ID
            timeout_s: HTTP deadline per attempt
            max_attempts: Total attempts for retriable failures
            retry_base_delay_s: First backoff delay, doubled per attempt
            client: Preconstructed genai client (mainly for tests)
            sleep: Backoff sleep function
        """
        self.model = model
        self.max_attempts = max(1, max_attempts)
        self.retry_base_delay_s = retry_base_delay_s
        self._sleep = sleep

        if client is None:
            api_key = api_key or os.environ.get("GEMINI_API_KEY")
            if not api_key:
                raise RuntimeError("GEMINI_API_KEY env var is not set.")
            client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=int(timeout_s * 1000)),
            )
        self._client = client

    def _backoff(self, attempt: int) -> float:
        return self.retry_base_delay_s * (2 ** (attempt - 1)) + random.random()

    def generate(self, prompt: str) -> GeneratedImage:
        """Generate a sticker image for a prompt.

        Raises:
            GeminiRequestError: The request failed after all attempts.
            ContentRefusalError: The model declined to draw.
            NoImageError: The response held no image.
        """
        config = build_generation_config()
        response = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self._client.models.generate_content(
                    model=self.model,
                    contents=prompt,
                    config=config,
                )
                break
            except errors.APIError as e:
                retriable = e.code in RETRIABLE_STATUS
                if retriable and attempt < self.max_attempts:
                    delay = self._backoff(attempt)
                    logger.warning(
                        f"Gemini request failed with HTTP {e.code}. Retrying in {delay:.1f}s "
                        f"(attempt {attempt}/{self.max_attempts})."
                    )
                    self._sleep(delay)
                    continue
                raise GeminiRequestError(
                    f"Gemini API error: {e.code} {e.status or ''}".rstrip(),
                    status_code=e.code,
                ) from e
            except Exception as e:
                if attempt < self.max_attempts:
                    delay = self._backoff(attempt)
                    logger.warning(
                        f"Gemini request failed: {e}. Retrying in {delay:.1f}s "
                        f"(attempt {attempt}/{self.max_attempts})."
                    )
                    self._sleep(delay)
                    continue
                raise GeminiRequestError(f"Gemini request failed: {e}") from e

        try:
            return extract_image(response)
        except ContentRefusalError as e:
            logger.warning(f"Got text response instead of image: {e.text[:200]}")
            raise


def main() -> int:
    """CLI entrypoint for testing sticker generation."""
    if len(sys.argv) < 4:
        print("Usage: python -m languagesgo.gemini.image <word> <category> <out_png_path>")
        return 1

    word, category, out_png = sys.argv[1], sys.argv[2], sys.argv[3]
    image = StickerImageClient().generate(build_prompt(word, category))

    os.makedirs(os.path.dirname(out_png) or ".", exist_ok=True)
    with open(out_png, "wb") as f:
        f.write(image.data)
    print(f"Saved {image.mime_type} to {out_png}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
