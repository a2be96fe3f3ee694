from typing import Optional

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config.log_setup import configure_logging
from ..config.settings import get_settings
from .checkout_api import router as checkout_router
from .state import service

configure_logging()

app = FastAPI(
    title="Dispensary POS API",
    description="Cart, compliance and checkout engine for the dispensary register",
    version=__version__,
)

# Enable CORS for the register frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(checkout_router)


@app.get("/")
async def root():
    settings = get_settings()
    return {
        "status": "online",
        "message": "Dispensary POS API Active",
        "jurisdiction": service.settlement.compliance.rules.jurisdiction,
        "currency_symbol": settings.currency_symbol,
    }


@app.get("/catalog/products")
async def get_products(search: Optional[str] = None, category: Optional[str] = None):
    """In-stock products matching the search text and category."""
    products = service.catalog.search(search=search, category=category)
    return jsonable_encoder(products)


@app.get("/catalog/categories")
async def get_categories():
    return service.catalog.categories()


@app.get("/catalog/discounts")
async def get_discounts():
    return jsonable_encoder(service.discount_catalog.list_discounts())


@app.get("/catalog/payment-methods")
async def get_payment_methods():
    return jsonable_encoder(service.payment_methods.list_methods())
