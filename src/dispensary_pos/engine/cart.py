"""
Cart Aggregate - owns the ordered line collection and the applied discounts.

Totals are never stored; totals() folds over the current lines every time it
is called, so there is no cached state to go stale after a mutation.
"""
from typing import Optional

import structlog

from ..utils.money import ZERO
from .discounts import DiscountEvaluator
from .errors import LineNotFound, errmsg
from .line_calculator import LineItemCalculator, coerce_quantity, validate_quantity
from .models import CartLine, CartTotals, CustomerProfile, Discount, Product

log = structlog.get_logger()


class Cart:
    """
    One checkout session's cart.

    Lines keep insertion order; replacing a line's quantity keeps its
    position. Products and customers are borrowed, never mutated.
    """

    def __init__(
        self,
        calculator: Optional[LineItemCalculator] = None,
        discount_evaluator: Optional[DiscountEvaluator] = None,
    ):
        self.calculator = calculator or LineItemCalculator()
        self.discount_evaluator = discount_evaluator or DiscountEvaluator()
        self._lines: dict[str, CartLine] = {}
        self._discounts: dict[str, Discount] = {}

    # --------- lines ----------
    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    def line_for(self, product_id: str) -> Optional[CartLine]:
        return self._lines.get(product_id)

    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self) -> int:
        return len(self._lines)

    def add_line(self, product: Product, quantity=1) -> CartLine:
        """
        Add quantity of a product. An existing line grows by quantity and
        keeps its captured price.
        """
        existing = self._lines.get(product.product_id)
        if existing is None:
            return self.add_or_update_line(product, quantity)

        increment = coerce_quantity(quantity)
        validate_quantity(product, increment)
        return self.add_or_update_line(product, existing.quantity + increment)

    def add_or_update_line(self, product: Product, quantity) -> CartLine:
        """
        Create the product's line, or replace an existing line's quantity.

        Stock is checked against the product passed in. An existing line is
        re-priced at its captured unit price, not the product's current one.
        """
        existing = self._lines.get(product.product_id)
        if existing is None:
            line = self.calculator.price_line(product, quantity)
            log.info("line_added", product_id=product.product_id, quantity=str(line.quantity))
        else:
            qty = validate_quantity(product, quantity)
            line = self.calculator.reprice(existing, qty, stock_from=product)
            log.info("line_updated", product_id=product.product_id, quantity=str(line.quantity))
        self._lines[product.product_id] = line
        return line

    def update_quantity(self, product_id: str, new_quantity) -> Optional[CartLine]:
        """Set a line's quantity; zero or less removes the line."""
        existing = self._lines.get(product_id)
        if existing is None:
            raise LineNotFound(errmsg.LINE_NOT_FOUND.format(product_id=product_id))

        if coerce_quantity(new_quantity) <= 0:
            self.remove_line(product_id)
            return None

        line = self.calculator.reprice(existing, new_quantity)
        self._lines[product_id] = line
        log.info("line_updated", product_id=product_id, quantity=str(line.quantity))
        return line

    def remove_line(self, product_id: str) -> CartLine:
        try:
            line = self._lines.pop(product_id)
        except KeyError:
            raise LineNotFound(errmsg.LINE_NOT_FOUND.format(product_id=product_id))
        log.info("line_removed", product_id=product_id)
        return line

    def clear(self):
        """Reset to an empty cart: no lines, no discounts."""
        self._lines.clear()
        self._discounts.clear()
        log.info("cart_cleared")

    # --------- discounts ----------
    @property
    def applied_discounts(self) -> list[Discount]:
        return list(self._discounts.values())

    @property
    def applied_discount_ids(self) -> tuple[str, ...]:
        return tuple(self._discounts)

    def has_discount(self, discount_id: str) -> bool:
        return discount_id in self._discounts

    def apply_discount(self, discount: Discount, customer: Optional[CustomerProfile] = None, as_of=None) -> tuple[str, ...]:
        return self.discount_evaluator.apply(self, customer, discount, as_of=as_of)

    def remove_discount(self, discount_id: str) -> tuple[str, ...]:
        return self.discount_evaluator.remove(self, discount_id)

    def attach_discount(self, discount: Discount):
        """Storage hook for the discount evaluator; eligibility is not checked here."""
        self._discounts.setdefault(discount.discount_id, discount)

    def detach_discount(self, discount_id: str) -> bool:
        return self._discounts.pop(discount_id, None) is not None

    # --------- totals ----------
    def subtotal(self):
        return sum((line.subtotal for line in self._lines.values()), ZERO)

    def totals(self) -> CartTotals:
        """
        subtotal = sum of line subtotals, tax = sum of line taxes,
        total = max(0, subtotal + tax - discount_amount).
        """
        subtotal = self.subtotal()
        tax = sum((line.tax for line in self._lines.values()), ZERO)
        item_count = sum((line.quantity for line in self._lines.values()), ZERO)
        discount_amount = self.discount_evaluator.compute_amount(self)

        total = subtotal + tax - discount_amount
        if total < 0:
            total = ZERO

        return CartTotals(
            subtotal=subtotal,
            tax=tax,
            discount_amount=discount_amount,
            total=total,
            total_item_count=item_count,
        )

    def as_api(self) -> dict:
        totals = self.totals()
        return {
            "lines": [line.as_api() for line in self._lines.values()],
            "discounts": [
                {"discount_id": d.discount_id, "name": d.name, "kind": d.kind, "value": d.value}
                for d in self._discounts.values()
            ],
            "totals": {
                "subtotal": totals.subtotal,
                "tax": totals.tax,
                "discount_amount": totals.discount_amount,
                "total": totals.total,
                "total_item_count": totals.total_item_count,
            },
        }
