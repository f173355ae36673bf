"""Canonicalization helpers for live form values.

Provides the two coercions used by condition comparisons: a stable string
form for equality checks and a float form (NaN when coercion fails) for
ordering checks.
"""

from __future__ import annotations

import math
from typing import Any


def canonical_string(value: Any) -> str:
    """Return a stable string representation of a form value.

    - Booleans -> "true" / "false"
    - Numbers  -> integer form when integral, else decimal string
    - Lists    -> comma-joined canonical items
    - None     -> ""
    - Text     -> as-is string
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        f = float(value)
        if math.isfinite(f) and float(int(f)) == f:
            return str(int(f))
        return str(value)
    if isinstance(value, (list, tuple)):
        return ",".join(canonical_string(v) for v in value)
    return str(value)


def to_number(value: Any) -> float:
    """Coerce a value to float; NaN when it is not numeric.

    Blank strings and None are unanswered values and coerce to NaN so that
    every ordering comparison against them is false.
    """
    if value is None:
        return math.nan
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return math.nan
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def is_blank(value: Any) -> bool:
    """True for values that count as "not answered" for required checks."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


__all__ = ["canonical_string", "to_number", "is_blank"]
