# volhedge/core/fixed_point.py
# Integer fixed-point helpers shared by the oracle, volatility and policy
# modules.
#
# Every quantity in the engine is an integer (bps, 1e6 fixed point, SOL,
# USD). Python's // floors toward -inf; the arithmetic here truncates
# toward zero so that signed returns and signed hedge notionals round the
# same way for positive and negative inputs.
#
# Prohibited: float arithmetic, random, time, IO.

from __future__ import annotations

import math
from typing import Sequence

from volhedge.utils.constants import BPS_DENOM


def div_trunc(numerator: int, denominator: int) -> int:
    """Integer division truncating toward zero. denominator must be non-zero."""
    if denominator == 0:
        raise ZeroDivisionError("div_trunc: denominator must be non-zero")
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def clamp(value: int, lo: int, hi: int) -> int:
    """Clamp value into [lo, hi]."""
    if value < lo:
        return lo
    if value > hi:
        return hi
    return value


def clamp_bps(value: int) -> int:
    return clamp(value, 0, BPS_DENOM)


def isqrt(value: int) -> int:
    """Floor square root; negative input is treated as zero."""
    if value <= 0:
        return 0
    return math.isqrt(value)


def median_trunc(values: Sequence[int]) -> int:
    """
    Median of a non-empty integer sequence.

    For an even count the two middle elements are averaged with
    truncation toward zero.
    """
    if not values:
        raise ValueError("median_trunc: values must be non-empty")
    ordered = sorted(values)
    n = len(ordered)
    mid = n // 2
    if n % 2 == 1:
        return ordered[mid]
    return div_trunc(ordered[mid - 1] + ordered[mid], 2)


def relative_change_bps(value: int, reference: int) -> int:
    """
    |value - reference| expressed in bps of reference, capped at BPS_DENOM.

    A non-positive reference yields BPS_DENOM (maximal change).
    """
    if reference <= 0:
        return BPS_DENOM
    return min(abs(value - reference) * BPS_DENOM // reference, BPS_DENOM)


__all__ = [
    "div_trunc",
    "clamp",
    "clamp_bps",
    "isqrt",
    "median_trunc",
    "relative_change_bps",
]
