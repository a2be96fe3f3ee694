from datetime import date, datetime
from decimal import Decimal

import pytest

from dispensary_pos.engine.errors import (
    ComplianceBlocked, EmptyCart, InsufficientTender, InvalidTender, PaymentMethodMissing,
    PaymentMethodUnavailable, SettlementError,
)
from dispensary_pos.engine.models import Discount, LimitCounter, PurchaseLimits
from dispensary_pos.policy.settlement import PaymentSettlement

NOW = datetime(2026, 6, 1, 15, 0)


@pytest.fixture
def settlement():
    return PaymentSettlement()


def test_scenario_five_insufficient_cash(settlement, cart, flower, customer, cash):
    """Total 21.60, tendered 20.00 -> refused, no record."""
    cart.add_line(flower, 2)

    with pytest.raises(InsufficientTender) as exc:
        settlement.settle(cart, customer, cash, tendered="20.00", as_of=NOW)

    assert exc.value.total == Decimal("21.60")
    assert exc.value.tendered == Decimal("20.00")
    assert str(exc.value) == "Cash tendered $20.00 is less than total $21.60"


def test_cash_settlement_with_change(settlement, cart, flower, customer, cash):
    cart.add_line(flower, 2)

    record = settlement.settle(cart, customer, cash, tendered=25, notes="bag please", as_of=NOW)

    assert record.amount_charged == Decimal("21.60")
    assert record.amount_tendered == Decimal("25")
    assert record.change_due == Decimal("3.40")
    assert record.payment_method == "cash"
    assert record.customer_id == "cust-001"
    assert record.notes == "bag please"
    assert record.created_at == NOW
    assert [(l.product_id, l.quantity, l.subtotal, l.tax) for l in record.lines] == [
        ("blue-dream", Decimal("2"), Decimal("20.00"), Decimal("1.60")),
    ]


def test_exact_cash_no_change(settlement, cart, flower, customer, cash):
    cart.add_line(flower, 2)
    record = settlement.settle(cart, customer, cash, tendered="21.60", as_of=NOW)
    assert record.change_due == 0


def test_card_settlement_ignores_tender(settlement, cart, flower, customer, debit):
    cart.add_line(flower, 2)
    record = settlement.settle(cart, customer, debit, as_of=NOW)
    assert record.amount_tendered is None
    assert record.change_due == 0
    assert record.payment_method == "debit"


def test_discounts_frozen_into_record(settlement, cart, flower, customer, first_time, cash):
    cart.add_line(flower, 2)
    cart.apply_discount(first_time, customer, as_of=date(2026, 6, 1))

    record = settlement.settle(cart, customer, cash, tendered=20, as_of=NOW)

    assert record.discount_amount == Decimal("3.00")
    assert record.amount_charged == Decimal("18.60")
    assert [(d.discount_id, d.amount) for d in record.discounts] == [("first_time", Decimal("3.00"))]


def test_compliance_failure_blocks_settlement(settlement, cart, flower, make_customer, cash):
    over_limit = make_customer(purchase_limits=PurchaseLimits(
        daily=LimitCounter(current=20, limit=28),
        monthly=LimitCounter(current=0, limit=224),
    ))
    cart.add_line(flower, 10)

    with pytest.raises(ComplianceBlocked) as exc:
        settlement.settle(cart, over_limit, cash, tendered=500, as_of=NOW)

    assert str(exc.value) == "Compliance issues must be resolved before payment"
    assert exc.value.violations == ["Cart exceeds daily limit (10g > 8g remaining)"]


def test_no_customer_is_a_compliance_failure(settlement, cart, flower, cash):
    cart.add_line(flower, 1)
    with pytest.raises(ComplianceBlocked) as exc:
        settlement.settle(cart, None, cash, tendered=100, as_of=NOW)
    assert exc.value.violations == ["No customer selected"]


def test_empty_cart(settlement, cart, customer, cash):
    with pytest.raises(EmptyCart):
        settlement.settle(cart, customer, cash, tendered=10, as_of=NOW)


def test_payment_method_missing(settlement, cart, flower, customer):
    cart.add_line(flower, 1)
    with pytest.raises(PaymentMethodMissing):
        settlement.settle(cart, customer, None, as_of=NOW)


def test_disabled_payment_method(settlement, cart, flower, customer, credit):
    cart.add_line(flower, 1)
    with pytest.raises(PaymentMethodUnavailable) as exc:
        settlement.settle(cart, customer, credit, as_of=NOW)
    assert str(exc.value) == "Credit Card is not accepted"


def test_compliance_checked_before_empty_cart(settlement, cart, cash):
    with pytest.raises(ComplianceBlocked):
        settlement.settle(cart, None, cash, as_of=NOW)


def test_refusal_leaves_cart_untouched(settlement, cart, flower, customer, cash):
    cart.add_line(flower, 2)
    before = cart.totals()

    with pytest.raises(SettlementError):
        settlement.settle(cart, customer, cash, tendered=1, as_of=NOW)

    assert cart.totals() == before
    assert len(cart) == 1


def test_each_settlement_gets_its_own_id(settlement, cart, flower, customer, debit):
    cart.add_line(flower, 1)
    first = settlement.settle(cart, customer, debit, attempt_id="a-1", as_of=NOW)
    second = settlement.settle(cart, customer, debit, attempt_id="a-2", as_of=NOW)

    assert first.transaction_id != second.transaction_id
    assert first.attempt_id == "a-1"


def test_receipt_text(settlement, cart, flower, customer, first_time, cash):
    cart.add_line(flower, 2)
    cart.apply_discount(first_time, customer, as_of=date(2026, 6, 1))
    record = settlement.settle(cart, customer, cash, tendered=20, as_of=NOW)

    receipt = record.get_receipt_text()

    assert "Blue Dream x2 @ $10.00 = $20.00" in receipt
    assert "First Time Customer: -$3.00" in receipt
    assert "Total: $18.60" in receipt
    assert "Change: $1.40" in receipt


@pytest.mark.parametrize("tendered", ["abc", "NaN", float("nan"), "Infinity", "-5.00", -1])
def test_unusable_cash_tender_is_refused(settlement, cart, flower, customer, cash, tendered):
    cart.add_line(flower, 2)

    with pytest.raises(InvalidTender) as exc:
        settlement.settle(cart, customer, cash, tendered=tendered, as_of=NOW)

    assert str(exc.value) == "Cash tendered must be a non-negative amount"
    assert len(cart) == 1


def test_card_payment_ignores_tender_value(settlement, cart, flower, customer, debit):
    cart.add_line(flower, 1)
    assert settlement.check(cart, customer, debit, tendered="abc", as_of=NOW) == Decimal("10.80")


def test_frozen_discounts_capped_at_subtotal_plus_tax(settlement, cart, preroll, customer, five_off, cash):
    twenty_off = Discount(discount_id="twenty_off", name="$20 Off", kind="fixed", value=20)
    cart.add_line(preroll, 1)
    cart.apply_discount(twenty_off, customer, as_of=date(2026, 6, 1))
    cart.apply_discount(five_off, customer, as_of=date(2026, 6, 1))

    record = settlement.settle(cart, customer, cash, tendered=0, as_of=NOW)

    assert record.subtotal == Decimal("8.00")
    assert record.tax == Decimal("0.64")
    assert record.amount_charged == 0
    assert [(d.discount_id, d.amount) for d in record.discounts] == [
        ("twenty_off", Decimal("8.64")),
        ("five_off", Decimal("0")),
    ]
    assert record.discount_amount == Decimal("8.64")
    assert record.subtotal + record.tax - sum(d.amount for d in record.discounts) == record.amount_charged

    # the live cart still reports the full, unclamped discount
    assert cart.totals().discount_amount == Decimal("25.00")


def test_partial_cap_keeps_earlier_discounts_whole(settlement, cart, flower, customer, five_off, debit):
    ten_off = Discount(discount_id="ten_off", name="$10 Off", kind="fixed", value=10)
    cart.add_line(flower, 1)
    cart.apply_discount(five_off, customer, as_of=date(2026, 6, 1))
    cart.apply_discount(ten_off, customer, as_of=date(2026, 6, 1))

    record = settlement.settle(cart, customer, debit, as_of=NOW)

    assert [d.amount for d in record.discounts] == [Decimal("5.00"), Decimal("5.80")]
    assert record.discount_amount == Decimal("10.80")
    assert record.amount_charged == 0


@pytest.mark.parametrize("method", [None, "debit", "credit"])
def test_compliance_refuses_whatever_the_payment_method(settlement, cart, flower, make_customer, method, request):
    over_limit = make_customer(purchase_limits=PurchaseLimits(
        daily=LimitCounter(current=20, limit=28),
        monthly=LimitCounter(current=0, limit=224),
    ))
    cart.add_line(flower, 10)
    payment_method = request.getfixturevalue(method) if method else None

    with pytest.raises(ComplianceBlocked) as exc:
        settlement.settle(cart, over_limit, payment_method, as_of=NOW)

    assert exc.value.violations == ["Cart exceeds daily limit (10g > 8g remaining)"]
