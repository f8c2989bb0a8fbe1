"""Coercion helpers for loosely typed record fields."""

from __future__ import annotations

import math
from typing import Any, Iterable, Set

from .errors import TypeCoercionError

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def _check_range(value: Any, number: int) -> int:
    if number < INT64_MIN or number > INT64_MAX:
        raise TypeCoercionError(value, "int64", "out of range")
    return number


def get_int64(value: Any) -> int:
    """Return ``value`` as a 64-bit integer or raise ``TypeCoercionError``.

    Accepts ints, floats without a fractional part and numeric strings.
    Booleans and ``None`` are rejected.
    """
    if value is None or isinstance(value, bool):
        raise TypeCoercionError(value, "int64")
    if isinstance(value, int):
        return _check_range(value, value)
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise TypeCoercionError(value, "int64", "not an integral number")
        return _check_range(value, int(value))
    if isinstance(value, str):
        text = value.strip()
        if "_" in text:
            raise TypeCoercionError(value, "int64", "not numeric")
        try:
            return _check_range(value, int(text, 10))
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            raise TypeCoercionError(value, "int64", "not numeric") from None
        if not math.isfinite(number):
            raise TypeCoercionError(value, "int64", "not numeric")
        return get_int64(number)
    raise TypeCoercionError(value, "int64")


def get_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None or isinstance(value, bool):
        raise TypeCoercionError(value, "string")
    if isinstance(value, (int, float)):
        return str(value)
    raise TypeCoercionError(value, "string")


def unique_ints(values: Iterable[int]) -> Set[int]:
    return set(values)
