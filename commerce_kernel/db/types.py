"""
Module: commerce_kernel.db.types
Responsibility: Decimal coercion and rounding helpers for monetary values.
    Centralizes precision and rounding so that every model, engine and
    service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/ and engines.  MUST NOT import from any of those.

Invariants enforced:
    - round_money() is the ONLY sanctioned rounding function for monetary
      values.  Default mode is ROUND_HALF_UP at the currency minor unit.
    - No floats: all monetary amounts use Decimal with explicit precision.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

MINOR_UNIT_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce an int, str or Decimal to Decimal.

    Floats are rejected: binary fractions cannot represent currency exactly.

    Raises:
        TypeError: If value is a float, bool or unsupported type.
        ValueError: If a string cannot be parsed.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Monetary values must not be {type(value).__name__}: {value!r}")
    if isinstance(value, (int, str)):
        try:
            return Decimal(value)
        except InvalidOperation as exc:
            raise ValueError(f"Not a decimal amount: {value!r}") from exc
    raise TypeError(f"Unsupported monetary type {type(value).__name__}")


def round_money(
    value: Decimal,
    decimal_places: int = MINOR_UNIT_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    Preconditions: value is a Decimal.
    Postconditions: Returns value quantized with the given rounding mode.
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=rounding)


_STORAGE_QUANTUM = Decimal("0.000000001")


def normalize_stored(value: Decimal, min_places: int = MINOR_UNIT_PLACES) -> Decimal:
    """
    Normalize a Numeric(38, 9) column value read back from storage.

    Keeps at least ``min_places`` decimals and drops trailing zeros beyond
    that, so ``Decimal("500.000000000")`` reads as ``500.00`` while
    ``10.005`` keeps its third decimal.  SQLite hands back binary floats
    coerced to Decimal; quantizing to the column scale first removes the
    float noise.
    """
    value = Decimal(value).quantize(_STORAGE_QUANTUM, rounding=DEFAULT_ROUNDING)
    short = value.quantize(Decimal(1).scaleb(-min_places))
    if short == value:
        return short
    return value.normalize()
