from __future__ import annotations

import math
from typing import Any


def parse_number(value: Any, default: float = 0.0) -> float:
    """Parse *value* as a float, returning *default* for anything unusable.

    Accepts ints, floats and numeric strings (``"12.5"``, ``" 12,5 "``).
    ``None``, booleans, empty or non-numeric strings, NaN and infinities all
    collapse to *default*; this never raises.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", ".")
        if not text:
            return default
        try:
            number = float(text)
        except ValueError:
            return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def parse_positive(value: Any, default: float) -> float:
    """Like :func:`parse_number` but values <= 0 also fall back to *default*."""
    number = parse_number(value, default)
    return number if number > 0 else default
