from decimal import Decimal

import pytest

from dispensary_pos.config.settings import Settings
from dispensary_pos.engine.errors import (
    ComplianceBlocked, DiscountNotEligible, InsufficientTender, InvalidTender, LineNotFound,
    PaymentMethodUnavailable, ProductNotFound, SessionNotFound, UnknownDiscount, UnknownPaymentMethod,
)
from dispensary_pos.services.checkout_service import SETTLED_ATTEMPTS_KEPT, CheckoutService


def ring_up(session, customer):
    session.select_customer(customer)
    session.add_product("blue-dream", 2)
    session.select_payment_method("cash")


def test_checkout_emits_one_record_and_resets(session, customer, first_time):
    ring_up(session, customer)
    session.apply_discount("first_time")
    session.tender_cash("20.00")
    session.set_notes("first visit")

    record = session.checkout()

    assert record.amount_charged == Decimal("18.60")
    assert record.change_due == Decimal("1.40")
    assert record.notes == "first visit"
    assert session.sink.list_transactions() == [record]

    assert session.cart.is_empty()
    assert session.customer is None
    assert session.payment_method is None
    assert session.amount_tendered is None
    assert session.notes == ""
    assert session.cart.applied_discounts == []


def test_repeated_attempt_id_is_not_settled_twice(session, customer):
    ring_up(session, customer)
    session.tender_cash(50)

    first = session.checkout(attempt_id="attempt-1")
    again = session.checkout(attempt_id="attempt-1")

    assert again is first
    assert len(session.sink) == 1


def test_replay_memory_is_bounded(session, customer):
    for n in range(SETTLED_ATTEMPTS_KEPT + 1):
        session.select_customer(customer)
        session.add_product("blue-dream", 1)
        session.select_payment_method("debit")
        session.checkout(attempt_id=f"attempt-{n}")

    assert len(session._settled) == SETTLED_ATTEMPTS_KEPT
    assert "attempt-0" not in session._settled
    assert f"attempt-{SETTLED_ATTEMPTS_KEPT}" in session._settled


def test_refused_checkout_keeps_session_state(session, customer):
    ring_up(session, customer)
    session.tender_cash(20)

    with pytest.raises(InsufficientTender):
        session.checkout(attempt_id="attempt-1")

    assert len(session.sink) == 0
    assert session.customer == customer
    assert not session.cart.is_empty()

    # the same attempt may be retried once the tender is fixed
    session.tender_cash(25)
    record = session.checkout(attempt_id="attempt-1")
    assert record.amount_charged == Decimal("21.60")
    assert len(session.sink) == 1


def test_compliance_gates_checkout(session, make_customer):
    from dispensary_pos.engine.models import LimitCounter, PurchaseLimits

    over_limit = make_customer(purchase_limits=PurchaseLimits(
        daily=LimitCounter(current=20, limit=28),
        monthly=LimitCounter(current=0, limit=224),
    ))
    session.select_customer(over_limit)
    session.add_product("blue-dream", 10)
    session.select_payment_method("debit")

    assert session.compliance().violations == ["Cart exceeds daily limit (10g > 8g remaining)"]
    assert not session.can_checkout()
    with pytest.raises(ComplianceBlocked):
        session.checkout()

    session.set_quantity("blue-dream", 8)
    assert session.compliance().passed
    assert session.can_checkout()


def test_can_checkout_requires_payment(session, customer):
    session.select_customer(customer)
    session.add_product("blue-dream", 1)
    assert not session.can_checkout()

    session.select_payment_method("debit")
    assert session.can_checkout()


def test_disabled_method_refused_at_checkout(session, customer):
    session.select_customer(customer)
    session.add_product("blue-dream", 1)
    session.select_payment_method("credit")

    with pytest.raises(PaymentMethodUnavailable):
        session.checkout()


def test_change_due_preview(session, customer):
    ring_up(session, customer)
    assert session.change_due() == 0
    session.tender_cash(30)
    assert session.change_due() == Decimal("8.40")


def test_switching_to_card_drops_tender(session, customer):
    ring_up(session, customer)
    session.tender_cash(30)
    session.select_payment_method("debit")
    assert session.amount_tendered is None


@pytest.mark.parametrize("amount", [-1, "abc", "NaN", float("inf")])
def test_bad_tender(session, amount):
    with pytest.raises(InvalidTender):
        session.tender_cash(amount)


def test_select_payment_with_tender(session, customer):
    ring_up(session, customer)
    session.select_payment("cash", "30.00")
    assert session.amount_tendered == Decimal("30.00")
    assert session.change_due() == Decimal("8.40")


@pytest.mark.parametrize("method_id, amount", [("debit", "abc"), ("cash", -5), ("bitcoin", 10)])
def test_rejected_payment_selection_changes_nothing(session, customer, method_id, amount):
    ring_up(session, customer)
    session.tender_cash(30)

    with pytest.raises((InvalidTender, UnknownPaymentMethod)):
        session.select_payment(method_id, amount)

    assert session.payment_method.method_id == "cash"
    assert session.amount_tendered == Decimal("30")


def test_lookup_errors(session, customer):
    session.select_customer(customer)
    with pytest.raises(ProductNotFound):
        session.add_product("nope")
    with pytest.raises(UnknownDiscount):
        session.apply_discount("nope")
    with pytest.raises(LineNotFound):
        session.set_quantity("blue-dream", 2)


def test_discount_eligibility_uses_selected_customer(session, make_customer):
    session.select_customer(make_customer(total_spent=Decimal("99.00")))
    session.add_product("blue-dream", 1)
    with pytest.raises(DiscountNotEligible):
        session.apply_discount("first_time")


def test_set_quantity_zero_removes(session, customer):
    session.add_product("blue-dream", 2)
    assert session.set_quantity("blue-dream", 0) is None
    assert session.cart.is_empty()


def test_cancel_clears_everything(session, customer):
    ring_up(session, customer)
    session.apply_discount("five_off")
    session.cancel()
    assert session.cart.is_empty()
    assert session.customer is None
    assert session.cart.applied_discounts == []


def test_as_api(session, customer):
    ring_up(session, customer)
    data = session.as_api()
    assert data["customer_id"] == "cust-001"
    assert data["customer_name"] == "Jordan Lee"
    assert data["payment_method"] == "cash"
    assert data["compliance"] == {"passed": True, "violations": []}
    assert data["can_checkout"] is False
    assert data["totals"]["total"] == Decimal("21.60")


class TestCheckoutService:

    @pytest.fixture
    def service(self):
        return CheckoutService.from_settings(Settings.load())

    def test_sessions_share_the_journal(self, service, customer):
        one = service.open_session()
        two = service.open_session()

        for session in (one, two):
            session.select_customer(customer)
            session.add_product("blue-dream-flower", 1)
            session.select_payment_method("debit")
            session.checkout()

        assert len(service.journal) == 2

    def test_session_registry(self, service):
        session = service.open_session()
        assert service.get_session(session.session_id) is session

        service.close_session(session.session_id)
        with pytest.raises(SessionNotFound):
            service.get_session(session.session_id)

    def test_default_tax_rate_from_settings(self, service):
        session = service.open_session()
        line = session.add_product("rso-syringe", 1)
        assert line.tax_rate == Decimal("0.08")

    def test_jurisdiction_rules_from_settings(self):
        settings = Settings.load()
        settings.jurisdiction = "CO"
        service = CheckoutService.from_settings(settings)
        assert service.settlement.compliance.rules.limit_unit == "oz"
