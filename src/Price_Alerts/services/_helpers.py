"""Shared helpers for parsing loosely typed exchange API values."""

from __future__ import annotations

import math


def safe_float(value: object) -> float:
    """Convert an API number or numeric string to float.

    Strings may carry thousands separators (``"1,250.50"``). NaN, infinity,
    None, and unparseable values become 0.0, which callers treat as unknown.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.replace(",", "").strip()
        if not value:
            return 0.0
    try:
        float_val = float(value)  # type: ignore[arg-type]
    except (ValueError, TypeError):
        return 0.0
    if math.isnan(float_val) or math.isinf(float_val):
        return 0.0
    return float_val


def positive_or_none(value: float | None) -> float | None:
    """Return *value* when it is a usable price, else None."""
    if value is None or value <= 0:
        return None
    return value
