#!/usr/bin/env python
"""
Walk one register session through compliance and checkout against the
shipped sample catalogs.

Usage:
    python scripts/demo_checkout.py [JURISDICTION]
"""
import sys
from datetime import date
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from dispensary_pos.config.log_setup import configure_logging
from dispensary_pos.config.settings import Settings
from dispensary_pos.engine.errors import SettlementError
from dispensary_pos.engine.models import (
    CustomerProfile, IdentificationRecord, LimitCounter, PurchaseLimits,
)
from dispensary_pos.services.checkout_service import CheckoutService


def demo():
    configure_logging()
    settings = Settings.load()
    if len(sys.argv) > 1:
        settings.jurisdiction = sys.argv[1]

    service = CheckoutService.from_settings(settings)
    session = service.open_session()
    rules = service.settlement.compliance.rules
    print(f"Jurisdiction: {rules.jurisdiction} (limits in {rules.limit_unit})")

    customer = CustomerProfile(
        customer_id="demo-001",
        first_name="Sam",
        last_name="Rivera",
        date_of_birth=date(1990, 5, 17),
        customer_type="adult-use",
        identification=IdentificationRecord(expiration_date=date(2030, 1, 1)),
        purchase_limits=PurchaseLimits(
            daily=LimitCounter(current=20, limit=28),
            monthly=LimitCounter(current=40, limit=224),
        ),
    )
    session.select_customer(customer)
    session.add_product("blue-dream-flower", 10)
    session.apply_discount("first_time")

    print("\n--- Over the daily limit ---")
    print(session.compliance().violations)

    session.set_quantity("blue-dream-flower", 2)
    print("\n--- Within limits ---")
    totals = session.totals()
    print(f"Subtotal {totals.subtotal}  Tax {totals.tax}  Discount {totals.discount_amount}  Total {totals.total}")

    session.select_payment_method("cash")
    session.tender_cash(15)
    try:
        session.checkout()
    except SettlementError as e:
        print(f"\nRefused: {e}")

    session.tender_cash(20)
    record = session.checkout(attempt_id="demo-attempt-1")
    print()
    print(record.get_receipt_text(settings.currency_symbol))


if __name__ == "__main__":
    demo()
