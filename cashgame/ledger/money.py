"""Money helpers shared by the ledger."""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

# Tolerance for P/L comparisons: anything within a cent of zero is break-even.
BALANCE_TOLERANCE = Decimal("0.01")

CENT = Decimal("0.01")

# Amounts are stored as NUMERIC(12, 2)
MAX_AMOUNT = Decimal(10) ** 10

Amount = Union[Decimal, int, float, str]


def to_money(value: Amount) -> Decimal:
    """Coerce a numeric value to Decimal.

    Floats go through ``str`` first so 0.1 becomes Decimal("0.1") rather than
    the binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def format_money(value: Amount) -> str:
    """Render an amount with exactly two decimals."""
    return str(to_money(value).quantize(CENT, rounding=ROUND_HALF_UP))


def is_zero(value: Decimal) -> bool:
    """True when the value is within tolerance of zero."""
    return abs(value) <= BALANCE_TOLERANCE
