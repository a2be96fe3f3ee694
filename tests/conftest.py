import os
import sys
from datetime import date, datetime
from decimal import Decimal

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from dispensary_pos.data.catalog import DiscountCatalog, PaymentMethodCatalog, ProductCatalog
from dispensary_pos.engine.cart import Cart
from dispensary_pos.engine.models import (
    CustomerProfile, Discount, IdentificationRecord, LimitCounter, MedicalCard,
    PaymentMethod, Product, PurchaseLimits,
)
from dispensary_pos.services.checkout_service import CheckoutSession, TransactionJournal

AS_OF = date(2026, 6, 1)


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def flower():
    return Product(
        product_id="blue-dream", name="Blue Dream", brand="Green Valley", category="flower",
        sku="GV-BD-001", unit="g", price="10.00", tax_rate="0.08", available_quantity=100,
    )


@pytest.fixture
def preroll():
    """Sold by count, no tax rate of its own."""
    return Product(
        product_id="sd-preroll", name="Sour Diesel Pre-Roll", brand="Coastal Farms",
        category="pre-roll", sku="CF-SD-010", unit="each", price="8.00", available_quantity=20,
    )


@pytest.fixture
def tincture():
    return Product(
        product_id="cbd-tincture", name="CBD Tincture", brand="Summit Extracts", category="medical",
        sku="SE-CBD-500", unit="each", price="60.00", tax_rate="0", available_quantity=5,
    )


@pytest.fixture
def make_customer():
    """Factory for a compliant adult-use customer; override any field."""
    def _make(**overrides):
        fields = dict(
            customer_id="cust-001",
            first_name="Jordan",
            last_name="Lee",
            date_of_birth=date(1990, 3, 15),
            customer_type="adult-use",
            identification=IdentificationRecord(expiration_date=date(2028, 1, 1)),
            purchase_limits=PurchaseLimits(
                daily=LimitCounter(current=0, limit=28),
                monthly=LimitCounter(current=0, limit=224),
            ),
        )
        fields.update(overrides)
        return CustomerProfile(**fields)
    return _make


@pytest.fixture
def customer(make_customer):
    return make_customer()


@pytest.fixture
def medical_patient(make_customer):
    return make_customer(
        customer_id="cust-med",
        customer_type="medical",
        date_of_birth=date(2006, 9, 1),
        medical_card=MedicalCard(expiration_date=date(2027, 1, 1)),
    )


@pytest.fixture
def first_time():
    return Discount(
        discount_id="first_time", name="First Time Customer", kind="percentage", value=15,
        requires_new_customer=True,
    )


@pytest.fixture
def five_off():
    return Discount(discount_id="five_off", name="$5 Off", kind="fixed", value=5)


@pytest.fixture
def cart():
    return Cart()


@pytest.fixture
def cash():
    return PaymentMethod(method_id="cash", name="Cash", type="cash")


@pytest.fixture
def debit():
    return PaymentMethod(method_id="debit", name="Debit Card", type="debit", processing_fee=Decimal("0.025"))


@pytest.fixture
def credit():
    return PaymentMethod(method_id="credit", name="Credit Card", type="credit", enabled=False)


@pytest.fixture
def session(flower, preroll, tincture, first_time, five_off, cash, debit, credit):
    """Register session over in-memory catalogs with a fixed clock."""
    return CheckoutSession(
        catalog=ProductCatalog.from_products([flower, preroll, tincture]),
        discount_catalog=DiscountCatalog([first_time, five_off]),
        payment_methods=PaymentMethodCatalog([cash, debit, credit]),
        sink=TransactionJournal(),
        clock=lambda: datetime(2026, 6, 1, 12, 0),
    )
