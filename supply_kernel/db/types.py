"""
Module: supply_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for money and
    quantity columns.  Centralizes precision so that every ORM model and
    service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/ and
    services/.  MUST NOT import from any of those layers.

Invariants enforced:
    CRITICAL: No floats anywhere.  Money and quantities are Decimal with
    explicit precision.  round_money() is the only sanctioned rounding
    function for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated

from sqlalchemy import Numeric, String

# 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Stock quantities share the money precision
Quantity = Annotated[Decimal, Numeric(38, 9)]

ShortCode = Annotated[str, String(50)]

Name = Annotated[str, String(255)]

LongText = Annotated[str, String(4000)]

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    Preconditions: value is a Decimal.
    Postconditions: Returns value quantized with the given rounding mode.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    """Total price of a line, rounded as money."""
    return round_money(quantity * unit_price)
