"""
Discount Evaluator - eligibility at apply time and aggregate discount amounts.

Stacking is additive: every applied discount is computed independently
against the pre-discount, pre-tax cart subtotal and the results are summed.
The same base is used for cart totals and for the amounts frozen into a
transaction record at settlement.
"""
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Optional

import structlog

from ..utils.money import ZERO, format_money, round_money
from .errors import DiscountNotEligible, errmsg
from .models import (
    BOGO, FIXED, LOYALTY, PERCENTAGE,
    AppliedDiscount, CartLine, CustomerProfile, Discount,
)

if TYPE_CHECKING:
    from .cart import Cart

log = structlog.get_logger()

HUNDRED = Decimal("100")


class DiscountEvaluator:
    """
    Applies named discounts to a cart and computes what they are worth.

    Eligibility is evaluated once, when a discount is applied. A discount that
    was eligible when applied stays applied even if the customer or cart later
    stops meeting its predicate; the operator removes it explicitly.
    """

    def eligibility_failures(
        self,
        cart: "Cart",
        customer: Optional[CustomerProfile],
        discount: Discount,
        as_of: Optional[date] = None,
    ) -> list[str]:
        """Return every failed eligibility predicate, empty when eligible."""
        failures = []
        needs_customer = bool(
            discount.customer_types
            or discount.requires_new_customer
            or discount.min_age is not None
            or discount.kind == LOYALTY
        )

        if needs_customer and customer is None:
            failures.append("No customer selected")
        elif customer is not None:
            if discount.customer_types and customer.customer_type not in discount.customer_types:
                allowed = ", ".join(sorted(discount.customer_types))
                failures.append(f"Limited to {allowed} customers")

            if discount.requires_new_customer and not customer.is_new_customer:
                failures.append("Customer has purchased before")

            if discount.min_age is not None:
                age = customer.age_on(as_of or date.today())
                if age < discount.min_age:
                    failures.append(f"Customer must be {discount.min_age} or older")

            if discount.kind == LOYALTY and customer.loyalty_points <= 0:
                failures.append("Customer is not a loyalty member")

        if discount.min_subtotal is not None:
            subtotal = cart.subtotal()
            if subtotal < discount.min_subtotal:
                failures.append(
                    f"Subtotal {format_money(subtotal)} is below the "
                    f"{format_money(discount.min_subtotal)} minimum"
                )

        return failures

    def apply(
        self,
        cart: "Cart",
        customer: Optional[CustomerProfile],
        discount: Discount,
        as_of: Optional[date] = None,
    ) -> tuple[str, ...]:
        """
        Apply a discount to the cart.

        Re-applying an already-applied discount id is a no-op. Returns the
        applied discount ids in application order.
        """
        if cart.has_discount(discount.discount_id):
            log.info("discount_already_applied", discount_id=discount.discount_id)
            return cart.applied_discount_ids

        failures = self.eligibility_failures(cart, customer, discount, as_of)
        if failures:
            log.info("discount_rejected", discount_id=discount.discount_id, reasons=failures)
            raise DiscountNotEligible(
                errmsg.DISCOUNT_NOT_ELIGIBLE.format(name=discount.name, reasons="; ".join(failures)),
                discount_id=discount.discount_id,
                reasons=failures,
            )

        cart.attach_discount(discount)
        log.info("discount_applied", discount_id=discount.discount_id, kind=discount.kind)
        return cart.applied_discount_ids

    def remove(self, cart: "Cart", discount_id: str) -> tuple[str, ...]:
        """Drop a discount from the cart; removing one that is not applied is a no-op."""
        if cart.detach_discount(discount_id):
            log.info("discount_removed", discount_id=discount_id)
        return cart.applied_discount_ids

    def amount_for(self, discount: Discount, cart: "Cart") -> Decimal:
        """Currency amount one discount contributes against the cart subtotal."""
        subtotal = cart.subtotal()

        if discount.kind in (PERCENTAGE, LOYALTY):
            return round_money(subtotal * discount.value / HUNDRED)
        if discount.kind == FIXED:
            return round_money(discount.value)
        if discount.kind == BOGO:
            return round_money(sum(
                (self._bogo_line_amount(discount, line) for line in cart.lines),
                ZERO,
            ))
        return ZERO

    def compute_amount(self, cart: "Cart", applied: Optional[Iterable[Discount]] = None) -> Decimal:
        """Sum of every applied discount's amount. Not clamped; the cart clamps its total."""
        discounts = cart.applied_discounts if applied is None else applied
        return sum((self.amount_for(d, cart) for d in discounts), ZERO)

    def resolve(
        self,
        cart: "Cart",
        applied: Optional[Iterable[Discount]] = None,
        cap: Optional[Decimal] = None,
    ) -> tuple[AppliedDiscount, ...]:
        """
        Freeze every applied discount to a concrete currency amount.

        With a cap, amounts are allocated in application order until the cap
        is used up; later discounts are frozen at whatever is left, possibly zero.
        """
        discounts = cart.applied_discounts if applied is None else applied
        remaining = cap
        resolved = []
        for d in discounts:
            amount = self.amount_for(d, cart)
            if remaining is not None:
                amount = min(amount, remaining)
                remaining -= amount
            resolved.append(AppliedDiscount(
                discount_id=d.discount_id,
                name=d.name,
                kind=d.kind,
                value=d.value,
                amount=amount,
            ))
        return tuple(resolved)

    def _bogo_line_amount(self, discount: Discount, line: CartLine) -> Decimal:
        # value% off every second whole unit
        if discount.applicable_products and line.product_id not in discount.applicable_products:
            return ZERO
        paired_units = Decimal(int(line.quantity // 2))
        return line.unit_price * paired_units * discount.value / HUNDRED
