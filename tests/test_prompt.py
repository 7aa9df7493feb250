"""Tests for sticker prompt construction."""

import pytest

from languagesgo.gemini.prompt import (
    DEFAULT_TRAITS,
    NEGATIVE_PROMPT,
    build_prompt,
    build_sticker_config,
    get_expression,
    get_key_traits,
)


def test_prompt_is_deterministic():
    assert build_prompt("tree", "nature") == build_prompt("tree", "nature")


def test_prompt_mentions_word_and_style():
    prompt = build_prompt("Tree", "nature")
    assert "tree, kawaii chibi sticker, round crown, thick trunk" in prompt
    assert "Style tags: kawaii, chibi, flat illustration, die-cut sticker" in prompt
    assert prompt.endswith(f"Avoid: {NEGATIVE_PROMPT}")


def test_prompt_uses_category_palette():
    prompt = build_prompt("tree", "nature")
    assert "Main color #90EE90, accent #228B22" in prompt


@pytest.mark.parametrize(
    "word,category,expected",
    [
        ("cat", "animal", "round body, pointed ears, curled tail"),
        ("kitten", "animal", "round body, pointed ears, curled tail"),
        ("puppy", "animal", "floppy ears, wagging tail, round snout"),
        ("elephant", "animal", "cute face, round body"),
        ("ice cream", "food", "waffle cone, colorful scoops, cherry on top"),
        ("soup", "food", "appetizing appearance"),
        ("laptop", "technology", "rectangular screen with keyboard, cute pixel eyes on screen"),
        ("rock", "nature", "organic shapes"),
        ("tree", "unknown", DEFAULT_TRAITS),
    ],
)
def test_key_traits(word, category, expected):
    assert get_key_traits(word, category) == expected


def test_expression():
    assert get_expression("baby bird", "animal") == "closed-eye smile with sparkles"
    assert get_expression("pizza", "food") == "tongue-out grin"
    assert get_expression("house", "building") == "open-eye smile"


def test_sticker_config_fields():
    config = build_sticker_config("  Hot Soup ", "Food")
    assert config.subject == "hot soup"
    assert config.features == {"garnish": True, "steam": True}
    assert config.aspect_ratio == "1:1"
    assert config.negative_prompt == NEGATIVE_PROMPT
    assert config.palette["background"] == "#FFFFFF"
