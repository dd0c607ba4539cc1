# payments/services/money.py

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

TWOPLACES = Decimal("0.01")


def parse_charge_amount(value) -> Decimal | None:
    """
    Positive decimal with at most 2 fraction digits, or None.
    Floats are read through str() so 19.99 stays 19.99.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None

    if not amount.is_finite() or amount <= 0:
        return None
    if amount != amount.quantize(TWOPLACES):
        return None
    return amount.quantize(TWOPLACES)


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(value) -> Decimal:
    return (Decimal(int(value)) / 100).quantize(TWOPLACES)
