# dispensary_pos/utils/money.py

from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0")


def D(x) -> Decimal:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))


def round_money(x) -> Decimal:
    return D(x).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(x, symbol: str = "$") -> str:
    return f"{symbol}{round_money(x):,.2f}"


def format_quantity(x) -> str:
    """Render a quantity without trailing zeros: 10.000 -> '10', 3.50 -> '3.5'."""
    q = D(x)
    if q == q.to_integral_value():
        return str(q.to_integral_value())
    return f"{q.normalize():f}"
