from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: object) -> Decimal:
    """Lenient numeric coercion: anything unparsable or non-finite becomes 0."""
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if value is None:
        return ZERO
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, TypeError, ValueError):
        return ZERO
    return d if d.is_finite() else ZERO


def to_int(value: object, default: int = 0) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    return int(to_decimal(value))


def money(value: object) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
