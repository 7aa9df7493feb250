"""Sticker generation pipeline: generator, status mirror, job queue.

Exports are lazily loaded to avoid import conflicts when running
submodules directly with `python -m languagesgo.stickers.<module>`.
"""

__all__ = [
    # generator.py
    "StickerGenerator",
    "StickerGenerationResult",
    "generate_sticker_id",
    # mirror.py
    "JobMirror",
    # queue.py
    "StickerQueue",
    "CardNotFoundError",
    # integration.py
    "has_managed_sticker",
    "needs_sticker",
    "process_new_vocabulary",
    "queue_cards_missing_stickers",
    "placeholder_sticker",
    "sticker_url_for",
    "monitor_jobs",
    "guess_category",
    "determine_rarity",
]


def __getattr__(name: str):
    """Lazy import for module exports."""
    if name in ("StickerGenerator", "StickerGenerationResult", "generate_sticker_id"):
        from languagesgo.stickers import generator
        return getattr(generator, name)
    elif name == "JobMirror":
        from languagesgo.stickers import mirror
        return getattr(mirror, name)
    elif name in ("StickerQueue", "CardNotFoundError"):
        from languagesgo.stickers import queue
        return getattr(queue, name)
    elif name in __all__:
        from languagesgo.stickers import integration
        return getattr(integration, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
