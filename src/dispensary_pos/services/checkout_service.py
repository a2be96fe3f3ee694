"""
Checkout Service - register sessions wired to the catalogs, the cart engine
and payment settlement.

A CheckoutSession is one register screen: pick a customer, ring up products
by id, apply discounts by id, choose a payment method, tender cash, check
out. Each successful checkout hands exactly one TransactionRecord to the
session's sink and resets the session for the next customer.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

import structlog

from ..config.settings import Settings, get_settings
from ..data.catalog import DiscountCatalog, PaymentMethodCatalog, ProductCatalog
from ..engine.cart import Cart
from ..engine.errors import (
    LineNotFound, SessionNotFound, SettlementError, errmsg,
)
from ..engine.line_calculator import LineItemCalculator, coerce_quantity
from ..engine.models import (
    CartLine, CartTotals, ComplianceResult, CustomerProfile, PaymentMethod, TransactionRecord,
)
from ..policy.compliance import ComplianceEvaluator
from ..policy.rule_book import ComplianceRuleBook
from ..policy.settlement import PaymentSettlement, coerce_tender
from ..utils.money import ZERO

log = structlog.get_logger()

# attempt ids remembered per session for replaying a retried checkout
SETTLED_ATTEMPTS_KEPT = 32


class TransactionJournal:
    """In-memory transaction sink; keeps records in settlement order."""

    def __init__(self):
        self._records: dict[str, TransactionRecord] = {}

    def record(self, transaction: TransactionRecord):
        self._records[transaction.transaction_id] = transaction
        log.info("transaction_recorded", transaction_id=transaction.transaction_id)

    def get(self, transaction_id: str) -> Optional[TransactionRecord]:
        return self._records.get(transaction_id)

    def list_transactions(self) -> list[TransactionRecord]:
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)


class CheckoutSession:
    """
    One register session.

    The sink is any object with a record(TransactionRecord) method. The clock
    supplies the evaluation time for compliance, discount eligibility and
    the transaction timestamp.
    """

    def __init__(
        self,
        catalog: ProductCatalog,
        discount_catalog: DiscountCatalog,
        payment_methods: PaymentMethodCatalog,
        settlement: Optional[PaymentSettlement] = None,
        sink=None,
        calculator: Optional[LineItemCalculator] = None,
        session_id: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self.catalog = catalog
        self.discount_catalog = discount_catalog
        self.payment_methods = payment_methods
        self.settlement = settlement or PaymentSettlement()
        self.sink = sink if sink is not None else TransactionJournal()
        self.clock = clock or datetime.now
        self.cart = Cart(calculator=calculator)

        self.customer: Optional[CustomerProfile] = None
        self.payment_method: Optional[PaymentMethod] = None
        self.amount_tendered: Optional[Decimal] = None
        self.notes = ""
        self._settled: dict[str, TransactionRecord] = {}

    # --------- customer ----------
    def select_customer(self, customer: CustomerProfile):
        self.customer = customer
        log.info("customer_selected", session_id=self.session_id, customer_id=customer.customer_id)

    def clear_customer(self):
        self.customer = None

    # --------- lines ----------
    def add_product(self, product_id: str, quantity=1) -> CartLine:
        """Look the product up in the catalog and add it; repeated adds grow the line."""
        product = self.catalog.get(product_id)
        return self.cart.add_line(product, quantity)

    def set_quantity(self, product_id: str, quantity) -> Optional[CartLine]:
        """
        Replace a line's quantity, checking stock against the current catalog
        record. Zero or less removes the line.
        """
        if self.cart.line_for(product_id) is None:
            raise LineNotFound(errmsg.LINE_NOT_FOUND.format(product_id=product_id))

        if coerce_quantity(quantity) <= 0:
            self.cart.remove_line(product_id)
            return None
        return self.cart.add_or_update_line(self.catalog.get(product_id), quantity)

    def remove_product(self, product_id: str) -> CartLine:
        return self.cart.remove_line(product_id)

    def clear_cart(self):
        self.cart.clear()

    # --------- discounts ----------
    def apply_discount(self, discount_id: str) -> tuple[str, ...]:
        discount = self.discount_catalog.get(discount_id)
        return self.cart.apply_discount(discount, self.customer, as_of=self.clock().date())

    def remove_discount(self, discount_id: str) -> tuple[str, ...]:
        return self.cart.remove_discount(discount_id)

    # --------- payment ----------
    def select_payment_method(self, method_id: str) -> PaymentMethod:
        """Select a payment method; a disabled method is refused at checkout, not here."""
        method = self.payment_methods.get(method_id)
        self.payment_method = method
        if not method.is_cash:
            self.amount_tendered = None
        log.info("payment_method_selected", session_id=self.session_id, method_id=method_id)
        return method

    def tender_cash(self, amount) -> Decimal:
        tendered = coerce_tender(amount)
        self.amount_tendered = tendered
        return tendered

    def select_payment(self, method_id: str, amount_tendered=None) -> PaymentMethod:
        """
        Select a payment method and, optionally, the cash tendered with it.

        Both inputs are validated before either is stored, so a bad tender
        leaves the previous selection in place.
        """
        method = self.payment_methods.get(method_id)
        tendered = coerce_tender(amount_tendered) if amount_tendered is not None else None
        self.select_payment_method(method.method_id)
        if tendered is not None:
            self.amount_tendered = tendered
        return method

    def set_notes(self, notes: str):
        self.notes = notes or ""

    # --------- derived state ----------
    def totals(self) -> CartTotals:
        return self.cart.totals()

    def change_due(self) -> Decimal:
        """Change to hand back for the current cash tender, zero until it covers the total."""
        if self.payment_method is None or not self.payment_method.is_cash or self.amount_tendered is None:
            return ZERO
        change = self.amount_tendered - self.totals().total
        return change if change > 0 else ZERO

    def compliance(self) -> ComplianceResult:
        """Fresh compliance evaluation of the current customer and cart."""
        return self.settlement.compliance.evaluate(self.customer, self.cart, as_of=self.clock())

    def can_checkout(self) -> bool:
        try:
            self.settlement.check(
                self.cart, self.customer, self.payment_method, self.amount_tendered, as_of=self.clock()
            )
        except SettlementError:
            return False
        return True

    # --------- checkout ----------
    def checkout(self, attempt_id: Optional[str] = None) -> TransactionRecord:
        """
        Settle the session's cart and emit the transaction record.

        A repeated attempt_id returns the record already settled under it
        without settling or emitting again.

        Raises:
            SettlementError subclasses; the session is left untouched
        """
        if attempt_id is not None and attempt_id in self._settled:
            log.info("checkout_replayed", session_id=self.session_id, attempt_id=attempt_id)
            return self._settled[attempt_id]

        record = self.settlement.settle(
            self.cart,
            self.customer,
            self.payment_method,
            tendered=self.amount_tendered,
            notes=self.notes,
            attempt_id=attempt_id,
            as_of=self.clock(),
        )
        self.sink.record(record)
        if attempt_id is not None:
            self._remember(attempt_id, record)

        self.reset()
        return record

    def _remember(self, attempt_id: str, record: TransactionRecord):
        self._settled[attempt_id] = record
        while len(self._settled) > SETTLED_ATTEMPTS_KEPT:
            del self._settled[next(iter(self._settled))]

    def reset(self):
        """Clear cart, customer, discounts, payment selection and notes."""
        self.cart.clear()
        self.customer = None
        self.payment_method = None
        self.amount_tendered = None
        self.notes = ""

    cancel = reset

    def as_api(self) -> dict:
        data = self.cart.as_api()
        data.update({
            "session_id": self.session_id,
            "customer_id": self.customer.customer_id if self.customer else None,
            "customer_name": self.customer.display_name if self.customer else None,
            "payment_method": self.payment_method.method_id if self.payment_method else None,
            "amount_tendered": self.amount_tendered,
            "change_due": self.change_due(),
            "notes": self.notes,
            "compliance": self.compliance().as_api(),
            "can_checkout": self.can_checkout(),
        })
        return data


class CheckoutService:
    """
    Shared catalogs, the jurisdiction's settlement policy and the transaction
    journal, plus a registry of open sessions.
    """

    def __init__(
        self,
        catalog: ProductCatalog,
        discount_catalog: DiscountCatalog,
        payment_methods: PaymentMethodCatalog,
        settlement: Optional[PaymentSettlement] = None,
        journal: Optional[TransactionJournal] = None,
        default_tax_rate: Optional[Decimal] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.catalog = catalog
        self.discount_catalog = discount_catalog
        self.payment_methods = payment_methods
        self.settlement = settlement or PaymentSettlement()
        self.journal = journal if journal is not None else TransactionJournal()
        self.default_tax_rate = default_tax_rate
        self.clock = clock
        self._sessions: dict[str, CheckoutSession] = {}

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> 'CheckoutService':
        """Load catalogs and the jurisdiction's rules from the configured files."""
        settings = settings or get_settings()
        rules = ComplianceRuleBook(settings.compliance_rules_csv).rules_for(settings.jurisdiction)
        log.info(
            "checkout_service_configured",
            data_dir=str(settings.data_dir),
            jurisdiction=rules.jurisdiction,
            limit_unit=rules.limit_unit,
        )
        return cls(
            catalog=ProductCatalog.from_csv(settings.products_csv),
            discount_catalog=DiscountCatalog.from_csv(settings.discounts_csv),
            payment_methods=PaymentMethodCatalog.from_csv(settings.payment_methods_csv),
            settlement=PaymentSettlement(ComplianceEvaluator(rules)),
            default_tax_rate=settings.default_tax_rate,
        )

    def open_session(self) -> CheckoutSession:
        session = CheckoutSession(
            catalog=self.catalog,
            discount_catalog=self.discount_catalog,
            payment_methods=self.payment_methods,
            settlement=self.settlement,
            sink=self.journal,
            calculator=LineItemCalculator(self.default_tax_rate),
            clock=self.clock,
        )
        self._sessions[session.session_id] = session
        log.info("session_opened", session_id=session.session_id)
        return session

    def get_session(self, session_id: str) -> CheckoutSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFound(errmsg.SESSION_NOT_FOUND.format(session_id=session_id))

    def close_session(self, session_id: str):
        self.get_session(session_id)
        del self._sessions[session_id]
        log.info("session_closed", session_id=session_id)

    def get_transaction(self, transaction_id: str) -> Optional[TransactionRecord]:
        return self.journal.get(transaction_id)
