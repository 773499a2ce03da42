from __future__ import annotations

"""Normalization primitives shared by the matcher and the catalog tooling."""

import re
from typing import List

_RE_WHITESPACE = re.compile(r"\s+")
_RE_NON_ALNUM = re.compile(r"[^a-z0-9çğıöşü\s]")


def normalize_query(text: str) -> str:
    """Return a deterministic representation of *text* for token matching.

    The procedure lowercases, drops every character outside ``a-z``, ``0-9``,
    the Turkish letters ``çğıöşü`` and whitespace, collapses whitespace runs
    to a single space and trims. Empty or whitespace-only inputs yield ``""``.

    Uppercase ``İ`` lowercases to ``i`` plus a combining dot, which is then
    stripped, so ``"İSTANBUL"`` and ``"istanbul"`` normalize alike.
    """

    if not text:
        return ""

    normalized = str(text).lower()
    normalized = _RE_NON_ALNUM.sub("", normalized)
    normalized = _RE_WHITESPACE.sub(" ", normalized).strip()
    return normalized


def tokenize(text: str) -> List[str]:
    """Split the normalized form of *text* on single spaces.

    Order and duplicates are preserved. An empty input produces ``[""]``,
    a single empty token, so that an empty candidate still counts as one
    token in the overlap denominator.
    """

    return normalize_query(text).split(" ")
