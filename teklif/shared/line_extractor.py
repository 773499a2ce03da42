"""Split free-form customer requests into quantity/query pairs."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

_LINE_SPLIT_RE = re.compile(r"\n|,")
_QUANTITY_RE = re.compile(r"(\d+[.,]?\d*)")

DEFAULT_QUANTITY = 1.0


@dataclass(frozen=True)
class Request:
    query: str
    quantity: float = DEFAULT_QUANTITY


def extract_quantity(text: str) -> float:
    """Return the first number found in *text*, or ``1`` when there is none.

    A decimal comma is read as a decimal point (``"2,5 m"`` -> ``2.5``).
    """
    match = _QUANTITY_RE.search(text or "")
    if not match:
        return DEFAULT_QUANTITY
    return float(match.group(1).replace(",", "."))


def split_lines(raw_text: str) -> List[str]:
    return [segment.strip() for segment in _LINE_SPLIT_RE.split(raw_text or "") if segment.strip()]


def extract_lines(raw_text: str) -> List[Request]:
    """Turn *raw_text* into one :class:`Request` per non-empty segment.

    Segments are separated by newlines or commas. Because the comma doubles as
    a separator, ``"2,5 m boru"`` yields two segments; a decimal comma only
    survives inside a single segment for text that was never split on it
    (see :func:`extract_quantity`). The query keeps the full segment text,
    quantity included.
    """
    return [Request(query=line, quantity=extract_quantity(line)) for line in split_lines(raw_text)]
