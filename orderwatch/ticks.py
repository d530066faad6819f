# orderwatch/ticks.py
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[Decimal, int, float, str]


def to_decimal(x: Number) -> Decimal:
    """Decimal from Decimal/int/float/str; floats go through str so 0.1 stays 0.1."""
    if isinstance(x, Decimal):
        return x
    if isinstance(x, float):
        return Decimal(str(x))
    return Decimal(x)


def round_to_tick(size: Number, tick: Number) -> Decimal:
    """
    Round size to the nearest multiple of tick.

    Halves round away from zero (0.15 on a 0.1 tick -> 0.2, -0.15 -> -0.2).
    A non-positive tick means "no rounding" and size is returned unchanged.
    """
    size_d = to_decimal(size)
    tick_d = to_decimal(tick)
    if tick_d <= 0:
        return size_d
    n_ticks = (size_d / tick_d).to_integral_value(rounding=ROUND_HALF_UP)
    return n_ticks * tick_d
