"""
Checkout API - FastAPI router for register sessions.
"""
from datetime import date
from decimal import Decimal
from typing import Literal, Optional

from fastapi import APIRouter, HTTPException
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from ..engine.errors import (
    CartError, ComplianceBlocked, DiscountNotEligible, LineNotFound, ProductNotFound,
    QuantityExceedsStock, SessionNotFound, SettlementError, UnknownDiscount, UnknownPaymentMethod,
)
from ..engine.models import (
    CustomerProfile, IdentificationRecord, LimitCounter, MedicalCard, PurchaseLimits,
)
from .state import service

router = APIRouter(prefix="/api", tags=["checkout"])

NOT_FOUND = (SessionNotFound, ProductNotFound, UnknownDiscount, UnknownPaymentMethod, LineNotFound)


# Pydantic models for API
class IdentificationIn(BaseModel):
    expiration_date: date
    verified: bool = True


class MedicalCardIn(BaseModel):
    expiration_date: date
    verified: bool = True


class LimitIn(BaseModel):
    current: Decimal = Decimal("0")
    limit: Decimal


class PurchaseLimitsIn(BaseModel):
    daily: LimitIn
    monthly: LimitIn


class CustomerIn(BaseModel):
    """Customer snapshot from the customer records service."""
    customer_id: str
    first_name: str = ""
    last_name: str = ""
    date_of_birth: date
    customer_type: Literal["adult-use", "medical", "dual"]
    identification: IdentificationIn
    medical_card: Optional[MedicalCardIn] = None
    purchase_limits: PurchaseLimitsIn
    loyalty_points: int = 0
    total_spent: Decimal = Decimal("0")

    def to_profile(self) -> CustomerProfile:
        card = self.medical_card
        return CustomerProfile(
            customer_id=self.customer_id,
            first_name=self.first_name,
            last_name=self.last_name,
            date_of_birth=self.date_of_birth,
            customer_type=self.customer_type,
            identification=IdentificationRecord(**self.identification.model_dump()),
            medical_card=MedicalCard(**card.model_dump()) if card else None,
            purchase_limits=PurchaseLimits(
                daily=LimitCounter(**self.purchase_limits.daily.model_dump()),
                monthly=LimitCounter(**self.purchase_limits.monthly.model_dump()),
            ),
            loyalty_points=self.loyalty_points,
            total_spent=self.total_spent,
        )


class LineRequest(BaseModel):
    product_id: str
    quantity: Decimal = Decimal("1")


class QuantityUpdate(BaseModel):
    quantity: Decimal


class PaymentRequest(BaseModel):
    method_id: str
    amount_tendered: Optional[Decimal] = None


class CheckoutRequest(BaseModel):
    attempt_id: Optional[str] = None
    notes: Optional[str] = None


def _http_error(e: Exception) -> HTTPException:
    """Map engine errors onto status codes, keeping the operator-facing message."""
    if isinstance(e, NOT_FOUND):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, QuantityExceedsStock):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, DiscountNotEligible):
        return HTTPException(status_code=409, detail={"message": str(e), "reasons": e.reasons})
    if isinstance(e, ComplianceBlocked):
        return HTTPException(status_code=409, detail={"message": str(e), "violations": e.violations})
    if isinstance(e, SettlementError):
        return HTTPException(status_code=422, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _session_state(session) -> dict:
    return jsonable_encoder(session.as_api())


# Endpoints

@router.post("/sessions")
async def open_session():
    """Open a new register session."""
    session = service.open_session()
    return _session_state(session)


@router.get("/sessions/{session_id}")
async def get_session(session_id: str):
    try:
        return _session_state(service.get_session(session_id))
    except SessionNotFound as e:
        raise _http_error(e)


@router.delete("/sessions/{session_id}")
async def close_session(session_id: str):
    try:
        service.close_session(session_id)
        return {"success": True, "message": f"Session '{session_id}' closed"}
    except SessionNotFound as e:
        raise _http_error(e)


@router.put("/sessions/{session_id}/customer")
async def select_customer(session_id: str, customer: CustomerIn):
    """Attach a customer to the session."""
    try:
        session = service.get_session(session_id)
        session.select_customer(customer.to_profile())
        return _session_state(session)
    except (SessionNotFound, CartError) as e:
        raise _http_error(e)


@router.delete("/sessions/{session_id}/customer")
async def clear_customer(session_id: str):
    try:
        session = service.get_session(session_id)
        session.clear_customer()
        return _session_state(session)
    except SessionNotFound as e:
        raise _http_error(e)


@router.post("/sessions/{session_id}/lines")
async def add_line(session_id: str, req: LineRequest):
    """Add a product; adding a product already in the cart grows its line."""
    try:
        session = service.get_session(session_id)
        session.add_product(req.product_id, req.quantity)
        return _session_state(session)
    except (SessionNotFound, CartError) as e:
        raise _http_error(e)


@router.put("/sessions/{session_id}/lines/{product_id}")
async def update_line(session_id: str, product_id: str, req: QuantityUpdate):
    """Replace a line's quantity; zero removes the line."""
    try:
        session = service.get_session(session_id)
        session.set_quantity(product_id, req.quantity)
        return _session_state(session)
    except (SessionNotFound, CartError) as e:
        raise _http_error(e)


@router.delete("/sessions/{session_id}/lines/{product_id}")
async def remove_line(session_id: str, product_id: str):
    try:
        session = service.get_session(session_id)
        session.remove_product(product_id)
        return _session_state(session)
    except (SessionNotFound, CartError) as e:
        raise _http_error(e)


@router.delete("/sessions/{session_id}/cart")
async def clear_cart(session_id: str):
    """Drop every line and applied discount."""
    try:
        session = service.get_session(session_id)
        session.clear_cart()
        return _session_state(session)
    except SessionNotFound as e:
        raise _http_error(e)


@router.post("/sessions/{session_id}/discounts/{discount_id}")
async def apply_discount(session_id: str, discount_id: str):
    try:
        session = service.get_session(session_id)
        session.apply_discount(discount_id)
        return _session_state(session)
    except (SessionNotFound, CartError) as e:
        raise _http_error(e)


@router.delete("/sessions/{session_id}/discounts/{discount_id}")
async def remove_discount(session_id: str, discount_id: str):
    try:
        session = service.get_session(session_id)
        session.remove_discount(discount_id)
        return _session_state(session)
    except SessionNotFound as e:
        raise _http_error(e)


@router.get("/sessions/{session_id}/compliance")
async def get_compliance(session_id: str):
    """Evaluate compliance for the session's current customer and cart."""
    try:
        session = service.get_session(session_id)
        return session.compliance().as_api()
    except SessionNotFound as e:
        raise _http_error(e)


@router.put("/sessions/{session_id}/payment")
async def select_payment(session_id: str, req: PaymentRequest):
    try:
        session = service.get_session(session_id)
        session.select_payment(req.method_id, req.amount_tendered)
        return _session_state(session)
    except (SessionNotFound, CartError) as e:
        raise _http_error(e)


@router.post("/sessions/{session_id}/checkout")
async def checkout(session_id: str, req: CheckoutRequest):
    """Settle the session's cart and return the transaction record."""
    try:
        session = service.get_session(session_id)
        if req.notes is not None:
            session.set_notes(req.notes)
        record = session.checkout(attempt_id=req.attempt_id)
        return jsonable_encoder(record)
    except (SessionNotFound, SettlementError) as e:
        raise _http_error(e)


@router.get("/transactions/{transaction_id}")
async def get_transaction(transaction_id: str):
    record = service.get_transaction(transaction_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Transaction '{transaction_id}' not found")
    return jsonable_encoder(record)
