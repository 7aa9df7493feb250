#!/usr/bin/env python3
"""Kawaii sticker prompt construction.

Everything here is a pure function of (word, category): no timestamps,
no randomness, so the same word always yields the same prompt text.

Usage:
  python -m languagesgo.gemini.prompt tree --category nature
"""

import argparse
import sys
from dataclasses import dataclass, field
from typing import Any

NEGATIVE_PROMPT = "photorealistic, text, watermark, busy background, noise"
STYLE_TAGS = ("kawaii", "chibi", "flat illustration", "die-cut sticker")
DEFAULT_TRAITS = "simple rounded shape, cute features"

DEFAULT_PALETTE = {
    "primary": "#FFE5B4",
    "secondary": "#FF9B9B",
    "outline": "#8A4F22",
    "cheek_blush": "#F78A54",
    "background": "#FFFFFF",
}

CATEGORY_PALETTES: dict[str, dict[str, str]] = {
    "animal": {"primary": "#FFF4E6", "secondary": "#8B6355"},
    "food": {"primary": "#FFDAB9", "secondary": "#D2691E"},
    "nature": {"primary": "#90EE90", "secondary": "#228B22"},
    "object": {"primary": "#E0E0E0", "secondary": "#808080"},
    "building": {"primary": "#D3D3D3", "secondary": "#696969"},
    "person": {"primary": "#FDBCB4", "secondary": "#CD5C5C"},
    "technology": {"primary": "#E6F3FF", "secondary": "#4169E1"},
}

# category -> ordered (keywords, traits); first keyword hit wins
KEY_TRAITS: dict[str, list[tuple[tuple[str, ...], str]]] = {
    "animal": [
        (("cat", "kitten"), "round body, pointed ears, curled tail"),
        (("dog", "puppy"), "floppy ears, wagging tail, round snout"),
        (("bird",), "small wings, tiny beak, round body"),
        (("fish",), "oval body, fins, big eyes, bubbles"),
        (("rabbit", "bunny"), "long ears, fluffy tail, round body"),
    ],
    "food": [
        (("ice cream",), "waffle cone, colorful scoops, cherry on top"),
        (("pizza",), "triangular slice, melted cheese, toppings"),
        (("apple",), "round red fruit, green leaf on top"),
        (("bread",), "golden brown loaf, steam lines"),
        (("cake",), "layered dessert, frosting, sprinkles"),
    ],
    "building": [
        (("house",), "triangular roof, square base, chimney"),
        (("tower",), "tall cylindrical shape, windows"),
    ],
    "nature": [
        (("tree",), "round crown, thick trunk"),
        (("flower",), "round petals, green stem"),
        (("sun",), "circular shape, radiating rays"),
        (("cloud",), "fluffy shape, soft edges"),
    ],
    "object": [
        (("computer", "laptop"), "rectangular screen with keyboard, cute pixel eyes on screen"),
        (("phone", "smartphone"), "rectangular device with screen, app icons"),
        (("keyboard",), "rectangular shape with tiny keys, cute keycaps"),
        (("mouse",), "oval shape with cord tail, two button eyes"),
        (("monitor", "screen"), "rectangular display, stand base, cute face on screen"),
        (("headphones",), "rounded ear cups, headband, music notes"),
        (("microphone",), "cylindrical shape, mesh top, stand"),
        (("camera",), "rectangular body with round lens eye"),
    ],
}
KEY_TRAITS["technology"] = KEY_TRAITS["object"]

CATEGORY_FALLBACK_TRAITS = {
    "animal": "cute face, round body",
    "food": "appetizing appearance",
    "building": "simplified geometric shape, tiny windows",
    "nature": "organic shapes",
    "object": "simplified geometric shape, friendly face",
    "technology": "simplified geometric shape, friendly face",
}


@dataclass
class StickerConfig:
    """Everything the image model is told about one sticker."""
    subject: str
    prompt: str
    negative_prompt: str = NEGATIVE_PROMPT
    style: list[str] = field(default_factory=lambda: list(STYLE_TAGS))
    palette: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_PALETTE))
    expression: str = "open-eye smile"
    features: dict[str, Any] = field(default_factory=dict)
    shading: str = "subtle radial"
    aspect_ratio: str = "1:1"


def get_key_traits(word: str, category: str) -> str:
    """Physical trait hint for a word within its category."""
    word = word.lower()
    category = category.lower()

    if category not in CATEGORY_FALLBACK_TRAITS:
        return DEFAULT_TRAITS

    for keywords, traits in KEY_TRAITS.get(category, []):
        if any(k in word for k in keywords):
            return traits
    return CATEGORY_FALLBACK_TRAITS[category]


def get_expression(word: str, category: str) -> str:
    word = word.lower()
    if any(k in word for k in ("baby", "little", "small")):
        return "closed-eye smile with sparkles"
    if category.lower() == "food":
        return "tongue-out grin"
    return "open-eye smile"


def build_features(word: str, category: str) -> dict[str, Any]:
    word = word.lower()
    category = category.lower()
    if category == "animal":
        return {"ears": True, "tail": True}
    if category == "food":
        return {"garnish": True, "steam": any(k in word for k in ("hot", "warm", "soup"))}
    if category == "building":
        return {"windows": True, "door": True}
    if category == "nature":
        return {"leaves": True}
    return {}


def build_sticker_config(word: str, category: str) -> StickerConfig:
    """Assemble the sticker description for a vocabulary word."""
    subject = word.strip().lower()
    category = category.strip().lower()
    palette = {**DEFAULT_PALETTE, **CATEGORY_PALETTES.get(category, {})}
    traits = get_key_traits(subject, category)

    return StickerConfig(
        subject=subject,
        prompt=f"{subject}, kawaii chibi sticker, {traits}, flat clean lines, thick outline, on white",
        palette=palette,
        expression=get_expression(subject, category),
        features=build_features(subject, category),
    )


def build_prompt(word: str, category: str) -> str:
    """Full text prompt sent to the image model."""
    config = build_sticker_config(word, category)
    style = ", ".join(config.style)
    return (
        "Generate an image with these exact specifications:\n"
        f"{config.prompt}\n"
        "\n"
        f"Style tags: {style}\n"
        "Style requirements:\n"
        "- Kawaii chibi art style\n"
        "- Die-cut sticker appearance\n"
        "- Thick black outline\n"
        "- Flat colors, no gradients\n"
        "- White background\n"
        f"- Cute facial expression: {config.expression}\n"
        "- Simple, rounded shapes\n"
        f"- Main color {config.palette['primary']}, accent {config.palette['secondary']}\n"
        "\n"
        f"Avoid: {config.negative_prompt}"
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Print the sticker prompt for a word")
    parser.add_argument("word", help="Vocabulary word (English)")
    parser.add_argument("--category", default="object", help="Card category")
    args = parser.parse_args()

    print(build_prompt(args.word, args.category))
    return 0


if __name__ == "__main__":
    sys.exit(main())
