from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation
from numbers import Number

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Wide enough that no product of two invoice figures is ever truncated.
_CTX = Context(prec=80, rounding=ROUND_HALF_UP)


def to_decimal(value: object, *, allow_str: bool = False) -> Decimal:
    """Convert a number to Decimal without going through binary floating point.

    Floats are converted via their shortest repr, so ``0.1`` becomes
    ``Decimal("0.1")`` and not ``Decimal(0.1000000000000000055...)``.
    Strings are accepted only when *allow_str* is set. Raises TypeError
    for anything else (including bool).
    """
    if isinstance(value, bool):
        raise TypeError(f"Expected a number, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, str) and allow_str:
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise TypeError(f"Not a numeric string: {value!r}") from None
    elif isinstance(value, Number):
        result = Decimal(str(value))
    else:
        raise TypeError(f"Expected a number, got {value!r}")
    if not result.is_finite():
        raise TypeError(f"Expected a finite number, got {value!r}")
    return result


def round2(value: Decimal) -> Decimal:
    """Round half-up (away from zero on ties) to exactly 2 decimal places."""
    return _CTX.quantize(value, CENT)


def mul(a: Decimal, b: Decimal) -> Decimal:
    return _CTX.multiply(a, b)


def total(values: Iterable[Decimal]) -> Decimal:
    """Exact sum of *values*; an empty iterable sums to 0.00."""
    result = ZERO
    for v in values:
        result = _CTX.add(result, v)
    return result


def format_amount(value: Decimal) -> str:
    """Render as a plain 2-decimal string (``"25.00"``, ``"-2.50"``), never ``"-0.00"``."""
    rounded = round2(value)
    if rounded.is_zero():
        rounded = abs(rounded)
    return f"{rounded:.2f}"
