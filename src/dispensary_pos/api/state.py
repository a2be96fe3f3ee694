"""
Shared API state - the checkout service every router uses.
"""
from ..services.checkout_service import CheckoutService

service = CheckoutService.from_settings()
