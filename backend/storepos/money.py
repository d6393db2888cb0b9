# Overview: Decimal helpers for money and quantity arithmetic.

"""
Money semantics:
- Amounts are decimal.Decimal, stored as Numeric(14, 4).
- Intermediate results are quantized to 4 places (half-up) before storage.
- Display (receipts) rounds to 2 places.
- Quantities may be fractional (weighed goods), 3 places.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

MONEY_PLACES = Decimal("0.0001")
QUANTITY_PLACES = Decimal("0.001")
DISPLAY_PLACES = Decimal("0.01")

# Largest magnitudes Numeric(14, 4) and Numeric(14, 3) columns can hold
MAX_AMOUNT = Decimal("9999999999.9999")
MAX_QUANTITY = Decimal("99999999999.999")

ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Coerce int/float/str/Decimal to Decimal; floats go through str() to avoid binary noise."""
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, Decimal):
        result = value
    else:
        if isinstance(value, float):
            value = repr(value)
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, AttributeError):
            raise ValueError(f"not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


def _quantize(value, places: Decimal) -> Decimal:
    number = to_decimal(value)
    try:
        return number.quantize(places, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # Result would exceed the context precision
        raise ValueError(f"number out of range: {value!r}")


def quantize_money(value) -> Decimal:
    return _quantize(value, MONEY_PLACES)


def round_quantity(value) -> Decimal:
    return _quantize(value, QUANTITY_PLACES)


def quantize_quantity(value) -> Decimal:
    """Quantize to 3 places. Raises ValueError beyond what a quantity column holds."""
    qty = round_quantity(value)
    if abs(qty) > MAX_QUANTITY:
        raise ValueError(f"quantity out of range: {value!r}")
    return qty


def format_money(value) -> str:
    """Two-decimal display with a leading '-' for negatives (never '-0.00')."""
    amount = to_decimal(value or 0).quantize(DISPLAY_PLACES, rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    return f"{sign}{abs(amount):.2f}"


def format_quantity(value) -> str:
    """Drop trailing zeros: 3.000 -> '3', 1.250 -> '1.25'."""
    qty = to_decimal(value or 0)
    text = f"{qty:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def decimal_str(value) -> str | None:
    """JSON-safe string form of a stored decimal."""
    if value is None:
        return None
    return str(to_decimal(value))
