"""
Payment Settlement - finalizes payment against a compliant cart.
"""
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

import structlog

from ..engine.cart import Cart
from ..engine.errors import (
    ComplianceBlocked, EmptyCart, InsufficientTender, InvalidTender,
    PaymentMethodMissing, PaymentMethodUnavailable, SettlementError, errmsg,
)
from ..engine.models import CustomerProfile, PaymentMethod, TransactionLine, TransactionRecord
from ..utils.money import D, ZERO, format_money
from .compliance import ComplianceEvaluator

log = structlog.get_logger()


def coerce_tender(amount) -> Decimal:
    """Cash tendered as a finite, non-negative Decimal; anything else raises InvalidTender."""
    try:
        tendered = D(amount)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidTender(errmsg.TENDER_INVALID)
    if not tendered.is_finite() or tendered < 0:
        raise InvalidTender(errmsg.TENDER_INVALID)
    return tendered


class PaymentSettlement:
    """
    Settles a cart into a TransactionRecord.

    Preconditions, checked in order; the first failure refuses settlement
    with no record created:
    1. Compliance passes for the current customer and cart
    2. Cart is not empty
    3. A payment method is selected
    4. The payment method is enabled
    5. Cash tendered covers the total (cash only)
    """

    def __init__(self, compliance: Optional[ComplianceEvaluator] = None):
        self.compliance = compliance or ComplianceEvaluator()

    def check(
        self,
        cart: Cart,
        customer: Optional[CustomerProfile],
        method: Optional[PaymentMethod],
        tendered=None,
        as_of: Optional[datetime] = None,
    ) -> Decimal:
        """Raise the first failed precondition; return the amount to charge."""
        result = self.compliance.evaluate(customer, cart, as_of=as_of)
        if not result.passed:
            raise ComplianceBlocked(errmsg.COMPLIANCE_BLOCKED, violations=list(result.violations))

        if cart.is_empty():
            raise EmptyCart(errmsg.CART_EMPTY)

        if method is None:
            raise PaymentMethodMissing(errmsg.PAYMENT_METHOD_MISSING)

        if not method.enabled:
            raise PaymentMethodUnavailable(errmsg.PAYMENT_METHOD_UNAVAILABLE.format(name=method.name))

        total = cart.totals().total
        if method.is_cash:
            cash = coerce_tender(tendered) if tendered is not None else ZERO
            if cash < total:
                raise InsufficientTender(
                    errmsg.INSUFFICIENT_TENDER.format(tendered=format_money(cash), total=format_money(total)),
                    tendered=cash,
                    total=total,
                )
        return total

    def settle(
        self,
        cart: Cart,
        customer: Optional[CustomerProfile],
        method: Optional[PaymentMethod],
        tendered=None,
        notes: str = "",
        attempt_id: Optional[str] = None,
        as_of: Optional[datetime] = None,
    ) -> TransactionRecord:
        """
        Settle the cart.

        Args:
            cart: Cart to settle; not modified
            customer: Attached customer, None if none selected
            method: Selected payment method, None if none selected
            tendered: Cash handed over (cash payments only)
            notes: Free-text transaction notes
            attempt_id: Caller-supplied id for de-duplicating retries
            as_of: Evaluation time, defaults to now

        Returns:
            TransactionRecord with every discount frozen to a currency amount
            capped in application order at subtotal plus tax

        Raises:
            ComplianceBlocked, EmptyCart, PaymentMethodMissing,
            PaymentMethodUnavailable, InsufficientTender, InvalidTender
        """
        try:
            total = self.check(cart, customer, method, tendered, as_of)
        except SettlementError as e:
            log.warning(
                "settlement_refused",
                reason=type(e).__name__,
                detail=str(e),
                customer_id=customer.customer_id if customer else None,
                attempt_id=attempt_id,
            )
            raise

        totals = cart.totals()
        discounts = cart.discount_evaluator.resolve(cart, cap=totals.subtotal + totals.tax)
        amount_tendered = None
        change_due = ZERO
        if method.is_cash:
            amount_tendered = coerce_tender(tendered)
            change_due = amount_tendered - total

        record = TransactionRecord(
            transaction_id=str(uuid.uuid4()),
            attempt_id=attempt_id,
            customer_id=customer.customer_id,
            lines=tuple(TransactionLine.from_cart_line(line) for line in cart.lines),
            payment_method=method.type,
            subtotal=totals.subtotal,
            tax=totals.tax,
            discount_amount=sum((d.amount for d in discounts), ZERO),
            amount_charged=total,
            amount_tendered=amount_tendered,
            change_due=change_due,
            discounts=discounts,
            notes=notes or "",
            created_at=as_of or datetime.now(),
        )

        log.info(
            "transaction_settled",
            transaction_id=record.transaction_id,
            customer_id=record.customer_id,
            payment_method=record.payment_method,
            amount_charged=str(record.amount_charged),
            change_due=str(record.change_due),
        )
        return record
