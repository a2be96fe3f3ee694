"""Engine subpackage - line pricing, discounts and the cart aggregate."""
from .cart import Cart
from .discounts import DiscountEvaluator
from .line_calculator import LineItemCalculator
from .models import (
    CartLine, CartTotals, ComplianceResult, CustomerProfile, Discount,
    IdentificationRecord, LimitCounter, MedicalCard, PaymentMethod, Product,
    PurchaseLimits, TransactionRecord,
)

__all__ = [
    'Cart', 'DiscountEvaluator', 'LineItemCalculator',
    'CartLine', 'CartTotals', 'ComplianceResult', 'CustomerProfile', 'Discount',
    'IdentificationRecord', 'LimitCounter', 'MedicalCard', 'PaymentMethod', 'Product',
    'PurchaseLimits', 'TransactionRecord',
]
