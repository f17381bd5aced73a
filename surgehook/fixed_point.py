"""
18-decimal fixed-point helpers on top of ``decimal.Decimal``.

Every result is quantized to 1e-18. ``*_down`` rounds toward zero and
``*_up`` away from zero, matching the rounding direction the ledger engine
expects for amounts in and out of a pool.

The helpers run under their own 78-digit context, so results do not depend on
the calling thread's decimal context.
"""

from __future__ import annotations

from decimal import Context, Decimal, DefaultContext, ROUND_DOWN, ROUND_UP, getcontext
from typing import Iterable

from .constants import FP_ONE, FP_QUANTUM, FP_ZERO

# Products of two 18-decimal values with large integer parts need headroom
FP_PRECISION = 78
_CTX = Context(prec=FP_PRECISION, rounding=ROUND_DOWN)
_CTX_UP = Context(prec=FP_PRECISION, rounding=ROUND_UP)

getcontext().prec = FP_PRECISION
# Threads started after import inherit DefaultContext instead of this thread's context
DefaultContext.prec = FP_PRECISION

ONE = FP_ONE
ZERO = FP_ZERO


def _quantize(value: Decimal, rounding: str) -> Decimal:
    return value.quantize(FP_QUANTUM, rounding=rounding, context=_CTX)


def to_fixed(value) -> Decimal:
    """Coerce ints, strings and Decimals to an 18-decimal value (rounded down)."""
    if isinstance(value, float):
        value = str(value)
    return _quantize(Decimal(value), ROUND_DOWN)


def mul_down(a: Decimal, b: Decimal) -> Decimal:
    return _quantize(_CTX.multiply(a, b), ROUND_DOWN)


def mul_up(a: Decimal, b: Decimal) -> Decimal:
    return _quantize(_CTX.multiply(a, b), ROUND_UP)


def div_down(a: Decimal, b: Decimal) -> Decimal:
    if b == 0:
        raise ZeroDivisionError("fixed-point division by zero")
    return _quantize(_CTX.divide(a, b), ROUND_DOWN)


def div_up(a: Decimal, b: Decimal) -> Decimal:
    if b == 0:
        raise ZeroDivisionError("fixed-point division by zero")
    return _quantize(_CTX_UP.divide(a, b), ROUND_UP)


def complement(x: Decimal) -> Decimal:
    """``1 - x`` saturating at zero."""
    return _CTX.subtract(ONE, x) if x < ONE else ZERO


def abs_sub(a: Decimal, b: Decimal) -> Decimal:
    return _CTX.subtract(a, b) if a >= b else _CTX.subtract(b, a)


def clamp(x: Decimal, low: Decimal, high: Decimal) -> Decimal:
    if x < low:
        return low
    if x > high:
        return high
    return x


def total(values: Iterable[Decimal]) -> Decimal:
    result = ZERO
    for value in values:
        result = _CTX.add(result, value)
    return result
