"""Languages Go! sticker generation toolkit."""

__version__ = "0.1.0"
