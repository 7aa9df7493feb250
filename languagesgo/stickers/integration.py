"""Glue between newly discovered vocabulary and the sticker queue."""

import base64
import logging
import time
from typing import Any, Callable, Iterable, Optional

from languagesgo.models import StickerJob, VocabularyCard

logger = logging.getLogger(__name__)

CATEGORY_COLORS = {
    "animal": "#FF9B9B",
    "food": "#FFDAB9",
    "nature": "#90EE90",
    "object": "#B0C4DE",
    "building": "#D3D3D3",
    "person": "#FDBCB4",
}
DEFAULT_COLOR = "#E0E0E0"

CATEGORY_KEYWORDS = (
    ("animal", ("cat", "dog", "bird", "fish", "animal", "pet")),
    ("food", ("food", "eat", "drink", "fruit", "vegetable", "meal", "dessert")),
    ("nature", ("tree", "flower", "plant", "forest", "mountain", "river")),
    ("building", ("house", "building", "tower", "bridge", "castle")),
)

PLACEHOLDER_SVG = (
    '<svg width="200" height="200" xmlns="http://www.w3.org/2000/svg">'
    '<rect width="200" height="200" fill="{color}" rx="20"/>'
    '<text x="100" y="120" font-family="Arial, sans-serif" font-size="80" '
    'font-weight="bold" text-anchor="middle" fill="white">{letter}</text>'
    "</svg>"
)


def has_managed_sticker(card: VocabularyCard, bucket: str = "stickers") -> bool:
    """True when the card's artwork already lives in the sticker bucket."""
    return bool(card.artwork_url) and f"/{bucket}/" in card.artwork_url


def needs_sticker(card: VocabularyCard, bucket: str = "stickers") -> bool:
    return not has_managed_sticker(card, bucket)


def process_new_vocabulary(
    queue: Any,
    cards: Iterable[VocabularyCard],
    bucket: str = "stickers",
) -> list[dict[str, Any]]:
    """Queue sticker jobs for cards that do not have one yet.

    Cards already carrying a managed sticker are skipped without a job.
    A card that cannot be queued is reported as failed; the rest still go.

    Returns:
        One entry per card that was attempted.
    """
    cards = list(cards)
    logger.info(f"Processing {len(cards)} new vocabulary card(s) for sticker generation")

    results = []
    for card in cards:
        if has_managed_sticker(card, bucket):
            logger.debug(f"Card '{card.word}' already has a sticker, skipping")
            continue

        try:
            job_id = queue.enqueue(card)
        except Exception as e:
            logger.error(f"Failed to queue '{card.word}' for sticker generation: {e}")
            results.append({
                "card_id": card.id,
                "word": card.word,
                "status": "failed",
                "error": str(e),
            })
            continue

        results.append({
            "card_id": card.id,
            "word": card.word,
            "job_id": job_id,
            "status": "queued",
        })
    return results


def guess_category(word: str) -> str:
    lowered = word.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in lowered for k in keywords):
            return category
    return "object"


def determine_rarity(difficulty: int) -> str:
    if difficulty >= 3:
        return "epic"
    if difficulty >= 2:
        return "rare"
    return "common"


def queue_cards_missing_stickers(
    queue: Any,
    store: Any,
    *,
    cards_table: str = "vocabulary_cards",
    limit: Optional[int] = 50,
    bucket: str = "stickers",
) -> list[dict[str, Any]]:
    """Find cards with no artwork URL and queue them.

    Cards stored without a category get one guessed from the word.
    """
    rows = store.select(
        cards_table,
        or_="(artwork_url.is.null,artwork_url.eq.)",
        order="created_at.desc",
        limit=limit,
    )
    logger.info(f"Found {len(rows)} card(s) without stickers")

    cards = []
    for row in rows:
        card = VocabularyCard.from_row(row)
        if not row.get("category"):
            card.category = guess_category(card.word)
        cards.append(card)
    return process_new_vocabulary(queue, cards, bucket)


def get_category_color(category: str) -> str:
    return CATEGORY_COLORS.get(category.lower(), DEFAULT_COLOR)


def placeholder_sticker(card: VocabularyCard) -> str:
    """SVG data URL shown until the real sticker exists."""
    letter = (card.word.strip()[:1] or "?").upper()
    letter = letter.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    svg = PLACEHOLDER_SVG.format(color=get_category_color(card.category), letter=letter)
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


def sticker_url_for(card: VocabularyCard) -> str:
    if card.artwork_url:
        return card.artwork_url
    return placeholder_sticker(card)


def monitor_jobs(
    queue: Any,
    job_ids: Iterable[str],
    on_progress: Optional[Callable[[StickerJob], None]] = None,
    *,
    poll_interval: float = 3.0,
    timeout: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> dict[str, StickerJob]:
    """Poll job status until every job is finished or the timeout passes.

    Args:
        queue: StickerQueue to poll
        job_ids: Jobs to watch
        on_progress: Called once per job when it reaches a terminal state
        poll_interval: Seconds between polls
        timeout: Give up after this many seconds (None = wait forever)

    Returns:
        Terminal job snapshots keyed by job id; unfinished jobs are absent.
    """
    waiting = list(dict.fromkeys(job_ids))
    finished: dict[str, StickerJob] = {}
    deadline = None if timeout is None else clock() + timeout

    while waiting:
        for job_id in list(waiting):
            job = queue.get_job_status(job_id)
            if job is None or not job.is_terminal:
                continue
            waiting.remove(job_id)
            finished[job_id] = job
            if on_progress:
                on_progress(job)

        if not waiting:
            break
        if deadline is not None and clock() >= deadline:
            logger.warning(f"Timeout waiting for sticker generation ({len(waiting)} job(s) unfinished)")
            break
        sleep(poll_interval)

    return finished
