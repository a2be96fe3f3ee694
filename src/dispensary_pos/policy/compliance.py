"""
Compliance Evaluator - gates checkout on cannabis regulatory constraints.

Checks run in a fixed order and each one appends its own violation, so a
single evaluation lists every current problem. Only the customer-presence
check short-circuits. Violations are data, never exceptions.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Optional, Union

import structlog

from ..engine.models import ADULT_USE, CartLine, ComplianceResult, CustomerProfile, LimitCounter
from ..utils.money import ZERO
from ..utils.units import convert_quantity, format_limit
from .rule_book import ComplianceRules

if TYPE_CHECKING:
    from ..engine.cart import Cart

log = structlog.get_logger()


class violation:
    """Violation message templates."""

    NO_CUSTOMER = "No customer selected"
    UNDER_AGE = "Customer under {age} for adult-use cannabis"
    ID_EXPIRED = "Customer ID has expired"
    MEDICAL_CARD_REQUIRED = "Medical cannabis products require verified medical card"
    MEDICAL_CARD_EXPIRED = "Medical card has expired"
    LIMIT_EXCEEDED = "Cart exceeds {period} limit ({attempted} > {remaining} remaining)"


class ComplianceEvaluator:
    """
    Evaluates a customer and the cart contents against jurisdiction rules.

    Check order:
    1. Customer presence (short-circuits)
    2. Adult-use minimum age
    3. ID expiration
    4. Medical card for medical-only categories
    5. Daily purchase limit
    6. Monthly purchase limit
    """

    def __init__(self, rules: Optional[ComplianceRules] = None):
        self.rules = rules or ComplianceRules()

    def evaluate(
        self,
        customer: Optional[CustomerProfile],
        cart: Union["Cart", Iterable[CartLine]],
        as_of: Optional[Union[date, datetime]] = None,
    ) -> ComplianceResult:
        """Run every check and return all violations in check order."""
        today = _as_date(as_of)
        lines = cart.lines if hasattr(cart, "lines") else list(cart)
        result = ComplianceResult()

        if customer is None:
            result.add_violation(violation.NO_CUSTOMER)
            return result

        self._check_age(customer, today, result)
        self._check_identification(customer, today, result)
        self._check_medical_card(customer, lines, today, result)

        weight = self.cart_weight(lines)
        self._check_limit("daily", customer.purchase_limits.daily, weight, result)
        self._check_limit("monthly", customer.purchase_limits.monthly, weight, result)

        log.info(
            "compliance_evaluated",
            customer_id=customer.customer_id,
            jurisdiction=self.rules.jurisdiction,
            passed=result.passed,
            violations=len(result.violations),
        )
        return result

    def cart_weight(self, lines: Iterable[CartLine]) -> Decimal:
        """Total cart quantity expressed in the rules' limit unit."""
        return sum(
            (convert_quantity(line.quantity, line.product.unit, self.rules.limit_unit) for line in lines),
            ZERO,
        )

    def _check_age(self, customer: CustomerProfile, today: date, result: ComplianceResult):
        min_age = self.rules.adult_use_min_age
        if customer.customer_type == ADULT_USE and customer.age_on(today) < min_age:
            result.add_violation(violation.UNDER_AGE.format(age=min_age))

    def _check_identification(self, customer: CustomerProfile, today: date, result: ComplianceResult):
        # Valid through its expiration date
        if customer.identification.expiration_date < today:
            result.add_violation(violation.ID_EXPIRED)

    def _check_medical_card(self, customer: CustomerProfile, lines: list[CartLine], today: date, result: ComplianceResult):
        medical_only = self.rules.medical_only_categories
        if not any(line.product.category.strip().lower() in medical_only for line in lines):
            return

        card = customer.medical_card
        if card is None or not card.verified:
            result.add_violation(violation.MEDICAL_CARD_REQUIRED)
        elif card.expiration_date < today:
            result.add_violation(violation.MEDICAL_CARD_EXPIRED)

    def _check_limit(self, period: str, counter: LimitCounter, weight: Decimal, result: ComplianceResult):
        remaining = counter.remaining
        if weight > remaining:
            unit = self.rules.limit_unit
            result.add_violation(violation.LIMIT_EXCEEDED.format(
                period=period,
                attempted=format_limit(weight, unit),
                remaining=format_limit(remaining, unit),
            ))


def _as_date(as_of: Optional[Union[date, datetime]]) -> date:
    if as_of is None:
        return date.today()
    if isinstance(as_of, datetime):
        return as_of.date()
    return as_of
