"""Money helpers for OCR-extracted amounts.

Every amount that reaches the reconciliation engine went through OCR, so
parsing is total: anything that is not a finite number of plausible size
becomes zero.
"""

from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

ZERO = Decimal("0")

# Largest decimal exponent kept; anything bigger is an OCR artifact.
MAX_EXPONENT = 15


def _usable(value: Decimal) -> Decimal:
    if not value.is_finite() or value.adjusted() > MAX_EXPONENT:
        return ZERO
    return value


def to_amount(value) -> Decimal:
    """Convert a value to Decimal, defaulting to zero.

    Accepts Decimals, ints, floats and strings like "$1,200.50" or
    "(35.00)". Booleans, unknown types and magnitudes beyond 10**15
    become zero. Never raises.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return _usable(value)
    if isinstance(value, int):
        return _usable(Decimal(value))
    if isinstance(value, float):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            return ZERO
        return _usable(result)
    if isinstance(value, str):
        s = value.strip().replace("$", "").replace(",", "").replace(" ", "")
        if s == "":
            return ZERO
        if s.startswith("(") and s.endswith(")"):
            s = "-" + s[1:-1]
        try:
            result = Decimal(s)
        except InvalidOperation:
            return ZERO
        return _usable(result)
    return ZERO


def to_optional_amount(value) -> Optional[Decimal]:
    """Like to_amount, but keeps "no value" distinguishable from zero."""
    if value is None:
        return None
    if isinstance(value, str) and value.strip() == "":
        return None
    return to_amount(value)


def sum_amounts(values: Iterable) -> Decimal:
    """Sum values with to_amount semantics."""
    total = ZERO
    for value in values:
        total += to_amount(value)
    return total


def amounts_match(a: Decimal, b: Decimal, tolerance: Decimal) -> bool:
    """True when two amounts differ by strictly less than tolerance."""
    return abs(to_amount(a) - to_amount(b)) < tolerance


def format_amount(value) -> str:
    """Render an amount as a plain decimal string (no exponent)."""
    return format(to_amount(value), "f")


def format_currency(value) -> str:
    """Render an amount for operator-facing messages, e.g. -$1,250.00."""
    amount = to_amount(value)
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"
