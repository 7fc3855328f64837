"""Shared parsing helpers for tolerant numeric/string coercion."""

from __future__ import annotations

from typing import Any

_TRUE_VALUES = frozenset({"1", "true", "t", "yes", "y", "si", "final"})
_FALSE_VALUES = frozenset({"", "0", "false", "f", "no", "n"})


def safe_float(value: Any) -> float | None:
    """Parse number-like input into float, returning None when invalid."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if raw.endswith("%"):
            parsed = safe_float(raw[:-1])
            return parsed / 100.0 if parsed is not None else None
        try:
            return float(raw)
        except ValueError:
            return None
    return None


def safe_bool(value: Any) -> bool | None:
    """Parse flag-like input, returning None when it is not recognizably a boolean."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if value is None:
        return False
    raw = str(value).strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    return None
