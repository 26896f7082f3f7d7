"""Value validation helpers used by the settings services.

Every helper returns the corrected value together with a flag telling the
caller whether a correction happened.  None of them raise: invalid input
falls back to the documented default (or bound, for the *limited* flavour).
"""

from __future__ import annotations

import math
from enum import IntEnum
from numbers import Real
from typing import Any, TypeVar

E = TypeVar("E", bound=IntEnum)


def _finite(value: Any) -> float | int | None:
    """Return *value* if it is a finite real number, else ``None``.

    ``bool`` is rejected even though it subclasses ``int``.
    """
    if isinstance(value, bool) or not isinstance(value, Real):
        return None
    if not math.isfinite(value):
        return None
    return value


def clamp_paired(
    min_value: Any,
    max_value: Any,
    valid_min: float,
    valid_max: float,
    default_min: float,
    default_max: float,
) -> tuple[float, float, bool]:
    """Validate a (min, max) pair against ``[valid_min, valid_max]``.

    An out-of-domain bound is replaced by its default; if the resulting
    pair is not strictly increasing, *both* bounds revert to the defaults.
    """
    lo = _finite(min_value)
    hi = _finite(max_value)
    corrected = False

    if lo is None or lo < valid_min:
        lo = default_min
        corrected = True
    if hi is None or hi > valid_max:
        hi = default_max
        corrected = True
    if hi <= lo:
        lo, hi = default_min, default_max
        corrected = True

    return lo, hi, corrected


def clamp_single(
    value: Any,
    valid_min: float,
    valid_max: float,
    default: float,
) -> tuple[float, bool]:
    """Out of ``[valid_min, valid_max]`` (or non-finite) yields *default*."""
    v = _finite(value)
    if v is None or v < valid_min or v > valid_max:
        return default, True
    return v, False


def clamp_limited(
    value: Any,
    valid_min: float,
    valid_max: float,
    default: float,
) -> tuple[float, bool]:
    """Out of range snaps to the nearest bound; non-finite yields *default*."""
    v = _finite(value)
    if v is None:
        return default, True
    if v < valid_min:
        return valid_min, True
    if v > valid_max:
        return valid_max, True
    return v, False


def clamp_enum(value: Any, enum_type: type[E], default: E) -> tuple[E, bool]:
    """Coerce *value* to a member of *enum_type*, falling back to *default*."""
    if isinstance(value, enum_type):
        return value, False
    v = _finite(value)
    if v is None or int(v) != v:
        return default, True
    try:
        return enum_type(int(v)), False
    except ValueError:
        return default, True


def clamp_bool(value: Any, default: bool) -> tuple[bool, bool]:
    if isinstance(value, bool):
        return value, False
    return default, True
