"""
Unit conversion for purchase-limit arithmetic.

Purchase limits are expressed in a weight unit (grams by default). Cart lines
sold by weight are converted into that unit; lines sold by count ("each",
"pack", pre-rolls) carry no weight conversion and count their quantity as-is.
"""
from decimal import Decimal
from typing import Optional

from .money import D, format_quantity

GRAMS_PER_OUNCE = Decimal("28.3495")

# grams per one unit
WEIGHT_UNITS = {
    "g": Decimal("1"),
    "gram": Decimal("1"),
    "grams": Decimal("1"),
    "mg": Decimal("0.001"),
    "oz": GRAMS_PER_OUNCE,
    "ounce": GRAMS_PER_OUNCE,
}


def normalize_unit(unit: Optional[str]) -> str:
    return (unit or "").strip().lower()


def convert_quantity(quantity, from_unit: Optional[str], to_unit: str) -> Decimal:
    """Convert a quantity between weight units; non-weight units pass through unchanged."""
    qty = D(quantity)
    source = normalize_unit(from_unit)
    target = normalize_unit(to_unit)
    if source == target or source not in WEIGHT_UNITS or target not in WEIGHT_UNITS:
        return qty
    return qty * WEIGHT_UNITS[source] / WEIGHT_UNITS[target]


def format_limit(amount, unit: str) -> str:
    """Format a purchase-limit amount for operator-facing messages."""
    if normalize_unit(unit) == "oz":
        return f"{format_quantity(round(D(amount), 2))} oz"
    text = format_quantity(amount)
    return f"{text}{unit}"
