"""Engine errors and operator-facing message constants."""


class errmsg:
    """Message constants for cart, discount and settlement errors."""

    QUANTITY_POSITIVE = "Quantity must be positive"
    QUANTITY_EXCEEDS_STOCK = "Only {available} {unit} of {name} in stock (requested {requested})"
    LINE_NOT_FOUND = "Product {product_id} is not in the cart"
    PRODUCT_NOT_FOUND = "Product {product_id} not found in catalog"
    PRICE_NEGATIVE = "Product price cannot be negative"
    TAX_RATE_NEGATIVE = "Product tax rate cannot be negative"
    STOCK_NEGATIVE = "Available quantity cannot be negative"
    UNKNOWN_DISCOUNT = "Discount {discount_id} does not exist"
    DISCOUNT_NOT_ELIGIBLE = "{name} cannot be applied: {reasons}"
    DISCOUNT_VALUE_NEGATIVE = "Discount value cannot be negative"
    PERCENTAGE_RANGE = "Percentage must be 0-100"
    INVALID_DISCOUNT_KIND = "Invalid discount kind: {kind}"
    UNKNOWN_PAYMENT_METHOD = "Payment method {method_id} does not exist"
    COMPLIANCE_BLOCKED = "Compliance issues must be resolved before payment"
    CART_EMPTY = "Cart is empty"
    PAYMENT_METHOD_MISSING = "No payment method selected"
    PAYMENT_METHOD_UNAVAILABLE = "{name} is not accepted"
    INSUFFICIENT_TENDER = "Cash tendered {tendered} is less than total {total}"
    TENDER_INVALID = "Cash tendered must be a non-negative amount"
    NUMBER_INVALID = "{field} must be a number, got {value!r}"
    SESSION_NOT_FOUND = "Checkout session {session_id} not found"


class CartError(Exception):
    """Input was rejected before it could enter the cart."""


class InvalidProduct(CartError):
    """Catalog record violates a product invariant."""


class InvalidQuantity(CartError):
    """Quantity is zero, negative or not a number."""


class QuantityExceedsStock(CartError):
    """Requested quantity exceeds the product's available stock."""

    def __init__(self, message: str, product_id: str, requested, available):
        super().__init__(message)
        self.product_id = product_id
        self.requested = requested
        self.available = available


class LineNotFound(CartError):
    """No cart line for the product id."""


class ProductNotFound(CartError):
    """Catalog has no record for the product id."""


class InvalidDiscount(CartError):
    """Discount definition violates a discount invariant."""


class InvalidCustomer(CartError):
    """Customer record carries an unusable purchase-limit figure."""


class UnknownDiscount(CartError):
    """Discount catalog has no entry for the discount id."""


class DiscountNotEligible(CartError):
    """Discount predicate failed at apply time."""

    def __init__(self, message: str, discount_id: str, reasons: list[str]):
        super().__init__(message)
        self.discount_id = discount_id
        self.reasons = reasons


class UnknownPaymentMethod(CartError):
    """Payment-method catalog has no entry for the method id."""


class InvalidTender(CartError):
    """Cash tendered is negative or not a number."""


class SessionNotFound(Exception):
    """No open checkout session with the id."""


class SettlementError(Exception):
    """Settlement was refused; nothing was recorded."""


class ComplianceBlocked(SettlementError):
    """Compliance evaluation failed for the current cart and customer."""

    def __init__(self, message: str, violations: list[str]):
        super().__init__(message)
        self.violations = violations


class EmptyCart(SettlementError):
    """Nothing to settle."""


class PaymentMethodMissing(SettlementError):
    """No payment method selected."""


class PaymentMethodUnavailable(SettlementError):
    """Selected payment method is disabled at this register."""


class InsufficientTender(SettlementError):
    """Cash tendered is less than the cart total."""

    def __init__(self, message: str, tendered, total):
        super().__init__(message)
        self.tendered = tendered
        self.total = total
