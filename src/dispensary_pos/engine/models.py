"""
Data models for the cart and compliance engine.

Uses dataclasses for structured, type-safe data representation. Catalog and
customer records are frozen: the engine borrows them and never mutates them.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from ..utils.money import D, ZERO, format_money
from .errors import InvalidCustomer, InvalidDiscount, InvalidProduct, errmsg

ADULT_USE = "adult-use"

PERCENTAGE = "percentage"
FIXED = "fixed"
BOGO = "bogo"
LOYALTY = "loyalty"
VALID_DISCOUNT_KINDS = {PERCENTAGE, FIXED, BOGO, LOYALTY}

CASH = "cash"


def _number(value, field: str, error: type) -> Decimal:
    """Coerce to a finite Decimal or raise the record's own error type."""
    try:
        number = D(value)
    except (InvalidOperation, ValueError, TypeError):
        raise error(errmsg.NUMBER_INVALID.format(field=field, value=value))
    if not number.is_finite():
        raise error(errmsg.NUMBER_INVALID.format(field=field, value=value))
    return number


@dataclass(frozen=True)
class Product:
    """A catalog record as returned by the catalog lookup."""
    product_id: str
    name: str
    price: Decimal
    category: str = ""
    brand: str = ""
    sku: str = ""
    unit: str = "each"
    tax_rate: Optional[Decimal] = None  # None -> configured default
    available_quantity: Decimal = ZERO
    # Display only
    strain_type: Optional[str] = None
    thc_percentage: Optional[Decimal] = None
    cbd_percentage: Optional[Decimal] = None

    def __post_init__(self):
        object.__setattr__(self, "price", _number(self.price, "Price", InvalidProduct))
        object.__setattr__(self, "available_quantity",
                           _number(self.available_quantity, "Available quantity", InvalidProduct))
        if self.tax_rate is not None:
            object.__setattr__(self, "tax_rate", _number(self.tax_rate, "Tax rate", InvalidProduct))

        if self.price < 0:
            raise InvalidProduct(errmsg.PRICE_NEGATIVE)
        if self.tax_rate is not None and self.tax_rate < 0:
            raise InvalidProduct(errmsg.TAX_RATE_NEGATIVE)
        if self.available_quantity < 0:
            raise InvalidProduct(errmsg.STOCK_NEGATIVE)


@dataclass(frozen=True)
class CartLine:
    """
    One product/quantity pairing in a cart.

    unit_price and tax_rate are captured when the line is created and stay
    fixed for the life of the line, whatever the catalog does afterwards.
    """
    product: Product
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal
    subtotal: Decimal
    tax: Decimal
    total: Decimal

    @property
    def product_id(self) -> str:
        return self.product.product_id

    def as_api(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.product.name,
            "category": self.product.category,
            "unit": self.product.unit,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "tax_rate": self.tax_rate,
            "subtotal": self.subtotal,
            "tax": self.tax,
            "total": self.total,
        }


@dataclass(frozen=True)
class Discount:
    """A named discount from the discount catalog."""
    discount_id: str
    name: str
    kind: str
    value: Decimal
    description: str = ""
    # Eligibility, checked once at apply time
    min_subtotal: Optional[Decimal] = None
    customer_types: frozenset = frozenset()
    requires_new_customer: bool = False
    min_age: Optional[int] = None
    # BOGO only; empty means every line
    applicable_products: frozenset = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "value", _number(self.value, "Discount value", InvalidDiscount))
        object.__setattr__(self, "customer_types", frozenset(self.customer_types))
        object.__setattr__(self, "applicable_products", frozenset(self.applicable_products))
        if self.min_subtotal is not None:
            object.__setattr__(self, "min_subtotal",
                               _number(self.min_subtotal, "Minimum subtotal", InvalidDiscount))

        if self.kind not in VALID_DISCOUNT_KINDS:
            raise InvalidDiscount(errmsg.INVALID_DISCOUNT_KIND.format(kind=self.kind))
        if self.value < 0:
            raise InvalidDiscount(errmsg.DISCOUNT_VALUE_NEGATIVE)
        if self.kind in (PERCENTAGE, LOYALTY, BOGO) and self.value > 100:
            raise InvalidDiscount(errmsg.PERCENTAGE_RANGE)


@dataclass(frozen=True)
class IdentificationRecord:
    expiration_date: date
    verified: bool = True


@dataclass(frozen=True)
class MedicalCard:
    expiration_date: date
    verified: bool = True


@dataclass(frozen=True)
class LimitCounter:
    """Amount already purchased in the period and the period's limit."""
    current: Decimal
    limit: Decimal

    def __post_init__(self):
        object.__setattr__(self, "current", _number(self.current, "Purchased amount", InvalidCustomer))
        object.__setattr__(self, "limit", _number(self.limit, "Purchase limit", InvalidCustomer))

    @property
    def remaining(self) -> Decimal:
        return self.limit - self.current


@dataclass(frozen=True)
class PurchaseLimits:
    daily: LimitCounter
    monthly: LimitCounter


@dataclass(frozen=True)
class CustomerProfile:
    """Customer snapshot supplied by the customer records service."""
    customer_id: str
    date_of_birth: date
    customer_type: str
    identification: IdentificationRecord
    purchase_limits: PurchaseLimits
    medical_card: Optional[MedicalCard] = None
    first_name: str = ""
    last_name: str = ""
    loyalty_points: int = 0
    total_spent: Decimal = ZERO

    def age_on(self, as_of: date) -> int:
        """Whole years between date of birth and as_of."""
        dob = self.date_of_birth
        had_birthday = (as_of.month, as_of.day) >= (dob.month, dob.day)
        return as_of.year - dob.year - (0 if had_birthday else 1)

    @property
    def is_new_customer(self) -> bool:
        return D(self.total_spent) == 0

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.customer_id


@dataclass
class CartTotals:
    """Totals derived from the cart's lines and applied discounts."""
    subtotal: Decimal = ZERO
    tax: Decimal = ZERO
    discount_amount: Decimal = ZERO
    total: Decimal = ZERO
    total_item_count: Decimal = ZERO


@dataclass
class ComplianceResult:
    """Outcome of a compliance evaluation, violations in check order."""
    violations: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return len(self.violations) == 0

    def add_violation(self, reason: str):
        self.violations.append(reason)

    def as_api(self) -> dict:
        return {"passed": self.passed, "violations": list(self.violations)}


@dataclass(frozen=True)
class PaymentMethod:
    method_id: str
    name: str
    type: str
    enabled: bool = True
    processing_fee: Optional[Decimal] = None

    @property
    def is_cash(self) -> bool:
        return self.type == CASH


@dataclass(frozen=True)
class AppliedDiscount:
    """A discount frozen to a currency amount at settlement."""
    discount_id: str
    name: str
    kind: str
    value: Decimal
    amount: Decimal


@dataclass(frozen=True)
class TransactionLine:
    product_id: str
    name: str
    quantity: Decimal
    unit_price: Decimal
    subtotal: Decimal
    tax: Decimal

    @classmethod
    def from_cart_line(cls, line: CartLine) -> "TransactionLine":
        return cls(
            product_id=line.product_id,
            name=line.product.name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            subtotal=line.subtotal,
            tax=line.tax,
        )


@dataclass(frozen=True)
class TransactionRecord:
    """Immutable result of a successful settlement."""
    transaction_id: str
    customer_id: str
    lines: tuple[TransactionLine, ...]
    payment_method: str
    subtotal: Decimal
    tax: Decimal
    discount_amount: Decimal
    amount_charged: Decimal
    change_due: Decimal
    discounts: tuple[AppliedDiscount, ...] = ()
    amount_tendered: Optional[Decimal] = None  # cash only
    notes: str = ""
    attempt_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    def get_receipt_text(self, currency_symbol: str = "$") -> str:
        """Plain-text receipt body."""
        def money(x):
            return format_money(x, currency_symbol)

        rows = [f"Transaction {self.transaction_id}"]
        for line in self.lines:
            rows.append(f"  {line.name} x{line.quantity} @ {money(line.unit_price)} = {money(line.subtotal)}")
        rows.append(f"Subtotal: {money(self.subtotal)}")
        rows.append(f"Tax: {money(self.tax)}")
        for d in self.discounts:
            rows.append(f"{d.name}: -{money(d.amount)}")
        rows.append(f"Total: {money(self.amount_charged)}")
        rows.append(f"Payment: {self.payment_method}")
        if self.amount_tendered is not None:
            rows.append(f"Tendered: {money(self.amount_tendered)}")
            rows.append(f"Change: {money(self.change_due)}")
        return "\n".join(rows)
