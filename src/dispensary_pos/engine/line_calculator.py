"""
Line Item Calculator - turns a (product, quantity) pair into a priced cart line.

Price and tax rate are read from the product once, when the line is first
priced. Re-pricing an existing line for a new quantity reuses the captured
values so the shopper's displayed price never changes mid-transaction.
"""
from decimal import Decimal, InvalidOperation
from typing import Optional

import structlog

from ..utils.money import D, format_quantity, round_money
from .errors import InvalidQuantity, QuantityExceedsStock, errmsg
from .models import CartLine, Product

log = structlog.get_logger()

DEFAULT_TAX_RATE = Decimal("0.08")


def coerce_quantity(quantity) -> Decimal:
    """Coerce to Decimal; non-numeric and non-finite input is rejected, sign is not checked."""
    try:
        qty = D(quantity)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidQuantity(errmsg.QUANTITY_POSITIVE)
    if not qty.is_finite():
        raise InvalidQuantity(errmsg.QUANTITY_POSITIVE)
    return qty


def validate_quantity(product: Product, quantity) -> Decimal:
    """Coerce quantity to Decimal and check it against the product's stock."""
    qty = coerce_quantity(quantity)
    if qty <= 0:
        raise InvalidQuantity(errmsg.QUANTITY_POSITIVE)
    if qty > product.available_quantity:
        raise QuantityExceedsStock(
            errmsg.QUANTITY_EXCEEDS_STOCK.format(
                available=format_quantity(product.available_quantity),
                unit=product.unit,
                name=product.name,
                requested=format_quantity(qty),
            ),
            product_id=product.product_id,
            requested=qty,
            available=product.available_quantity,
        )
    return qty


class LineItemCalculator:
    """
    Prices cart lines.

    The default tax rate applies only to products whose catalog record has
    no tax rate of its own. It is configuration (Settings.default_tax_rate),
    not a business invariant.
    """

    def __init__(self, default_tax_rate: Optional[Decimal] = None):
        self.default_tax_rate = D(default_tax_rate) if default_tax_rate is not None else DEFAULT_TAX_RATE

    def tax_rate_for(self, product: Product) -> Decimal:
        if product.tax_rate is None:
            return self.default_tax_rate
        return product.tax_rate

    def price_line(self, product: Product, quantity) -> CartLine:
        """Create a new line at the product's current price and tax rate."""
        qty = validate_quantity(product, quantity)
        return self._build(product, qty, product.price, self.tax_rate_for(product))

    def reprice(self, line: CartLine, quantity, stock_from: Optional[Product] = None) -> CartLine:
        """
        Return the line at a new quantity, keeping its captured price and tax rate.

        Stock is checked against stock_from when given (a fresher catalog
        record), otherwise against the product captured on the line.
        """
        qty = validate_quantity(stock_from or line.product, quantity)
        return self._build(line.product, qty, line.unit_price, line.tax_rate)

    def _build(self, product: Product, qty: Decimal, unit_price: Decimal, tax_rate: Decimal) -> CartLine:
        subtotal = round_money(unit_price * qty)
        tax = round_money(subtotal * tax_rate)
        line = CartLine(
            product=product,
            quantity=qty,
            unit_price=unit_price,
            tax_rate=tax_rate,
            subtotal=subtotal,
            tax=tax,
            total=subtotal + tax,
        )
        log.debug(
            "line_priced",
            product_id=product.product_id,
            quantity=str(qty),
            unit_price=str(unit_price),
            subtotal=str(subtotal),
            tax=str(tax),
        )
        return line
