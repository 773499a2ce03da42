"""Utility helpers for lightweight text normalization."""

from .text import normalize_query, tokenize

__all__ = [
    "normalize_query",
    "tokenize",
]
