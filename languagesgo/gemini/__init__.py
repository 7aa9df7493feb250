"""Gemini API wrappers for sticker generation.

Exports are lazily loaded to avoid import conflicts when running
submodules directly with `python -m languagesgo.gemini.<module>`.
"""

__all__ = [
    # prompt.py
    "StickerConfig",
    "build_sticker_config",
    "build_prompt",
    "get_key_traits",
    # image.py
    "StickerImageClient",
    "GeneratedImage",
    "StickerGenerationError",
    "GeminiRequestError",
    "ContentRefusalError",
    "NoImageError",
    "InvalidImageError",
]

_PROMPT_EXPORTS = ("StickerConfig", "build_sticker_config", "build_prompt", "get_key_traits")


def __getattr__(name: str):
    """Lazy import for module exports."""
    if name in _PROMPT_EXPORTS:
        from languagesgo.gemini import prompt
        return getattr(prompt, name)
    elif name in __all__:
        from languagesgo.gemini import image
        return getattr(image, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
