"""
Deterministic fixed-point primitives for the TWAP oracle.

Every value the oracle stores or returns is a ``Decimal`` with a fixed number
of fractional digits:

  - price_sqrt inputs:                          36 digits
  - logs, accumulators, slopes, geometric means: 18 digits

All arithmetic runs in a private context instead of the thread's current
``decimal`` context, so results do not depend on what the embedding
application configured. ``Decimal.ln`` and ``Decimal.exp`` are implemented in
software and correctly rounded, which makes the results reproducible on any
platform. After each operation the result is truncated toward negative
infinity, the single rounding rule used throughout the oracle.
"""

from __future__ import annotations

import decimal
import math
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_EVEN
from typing import Union

from ..constants import (
    DECIMAL_MAX,
    DECIMAL_PLACES,
    FIXED_POINT_PRECISION,
    PRECISE_DECIMAL_PLACES,
)
from ..exceptions import ArithmeticOverflow, InvalidPrice

Number = Union[Decimal, int, str, float]

CONTEXT = decimal.Context(
    prec=FIXED_POINT_PRECISION,
    rounding=ROUND_HALF_EVEN,
    traps=[decimal.InvalidOperation, decimal.DivisionByZero, decimal.Overflow],
)

ZERO = Decimal("0")
QUANTUM = Decimal(1).scaleb(-DECIMAL_PLACES)
PRECISE_QUANTUM = Decimal(1).scaleb(-PRECISE_DECIMAL_PLACES)

# Largest exponent whose exp() still fits the representable range
EXP_INPUT_MAX = CONTEXT.ln(DECIMAL_MAX)


def checked(value: Decimal) -> Decimal:
    """Truncate to 18 fractional digits, raising if out of range."""
    if value.copy_abs() > DECIMAL_MAX:
        raise ArithmeticOverflow(f"Fixed-point value {value} exceeds ±{DECIMAL_MAX}")
    return value.quantize(QUANTUM, rounding=ROUND_FLOOR, context=CONTEXT)


def to_price_sqrt(value: Number) -> Decimal:
    """
    Normalise a price_sqrt input to a positive 36-digit Decimal.

    Floats are converted through ``str`` so that ``1.1`` means ``1.1`` and not
    its binary expansion.

    Raises:
        InvalidPrice: if the value is not a positive finite number
    """
    if isinstance(value, bool):
        raise InvalidPrice(f"price_sqrt must be a number, got {value!r}")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidPrice(f"price_sqrt must be finite, got {value!r}")
        value = str(value)
    try:
        price = Decimal(value)
    except (decimal.InvalidOperation, TypeError, ValueError) as e:
        raise InvalidPrice(f"price_sqrt is not a number: {value!r}") from e

    if not price.is_finite():
        raise InvalidPrice(f"price_sqrt must be finite, got {value!r}")
    if price.copy_abs() > DECIMAL_MAX:
        raise InvalidPrice(f"price_sqrt {price} exceeds ±{DECIMAL_MAX}")

    price = price.quantize(PRECISE_QUANTUM, rounding=ROUND_FLOOR, context=CONTEXT)
    if price <= 0:
        raise InvalidPrice(f"price_sqrt must be positive, got {value!r}")
    return price


def ln(x: Decimal) -> Decimal:
    """Natural logarithm, truncated to 18 digits."""
    if x <= 0:
        raise InvalidPrice(f"Logarithm of non-positive value {x}")
    return checked(CONTEXT.ln(x))


def exp(y: Decimal) -> Decimal:
    """
    Exponential, truncated to 18 digits.

    Very negative inputs underflow to zero.

    Raises:
        ArithmeticOverflow: if the result exceeds the representable range
    """
    if y > EXP_INPUT_MAX:
        raise ArithmeticOverflow(f"exp({y}) exceeds ±{DECIMAL_MAX}")
    return checked(CONTEXT.exp(y))


def add(a: Decimal, b: Decimal) -> Decimal:
    return checked(CONTEXT.add(a, b))


def sub(a: Decimal, b: Decimal) -> Decimal:
    return checked(CONTEXT.subtract(a, b))


def mul(a: Decimal, n: Union[Decimal, int]) -> Decimal:
    return checked(CONTEXT.multiply(a, Decimal(n)))


def div(a: Decimal, n: Union[Decimal, int]) -> Decimal:
    return checked(CONTEXT.divide(a, Decimal(n)))
