"""
Catalog Lookup - read-only product, discount and payment-method catalogs.

Each catalog is backed by a pandas DataFrame loaded from CSV (all columns read
as strings and stripped) or built in memory from records. Records are
converted to frozen model objects on the way out; the engine never writes
back to a catalog.
"""
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd
import structlog

from ..engine.errors import ProductNotFound, UnknownDiscount, UnknownPaymentMethod, errmsg
from ..engine.models import Discount, PaymentMethod, Product

log = structlog.get_logger()


def _drop_duplicates(df: pd.DataFrame, key: str, source: str) -> pd.DataFrame:
    """Keep the first record for each key."""
    duplicates = int(df[key].duplicated().sum())
    if duplicates:
        log.warning("catalog_duplicates_dropped", source=source, key=key, count=duplicates)
        df = df.drop_duplicates(key)
    return df


def _load_csv(path: Path, key: str) -> pd.DataFrame:
    """Read a catalog CSV with every column as a stripped string."""
    df = pd.read_csv(path, dtype=str).fillna('')
    df.columns = [c.strip() for c in df.columns]
    for col in df.columns:
        df[col] = df[col].astype(str).str.strip()
    df = df[df[key] != '']
    return _drop_duplicates(df, key, source=str(path)).set_index(key, drop=False)


def _frame(records: Iterable[dict], columns: list[str], key: str) -> pd.DataFrame:
    df = pd.DataFrame(list(records), columns=columns)
    df = df.fillna('').astype(str)
    return _drop_duplicates(df, key, source="records").set_index(key, drop=False)


def _optional_decimal(value: str) -> Optional[Decimal]:
    value = (value or '').strip()
    return Decimal(value) if value else None


def _split_set(value: str) -> frozenset:
    return frozenset(v.strip() for v in (value or '').split('|') if v.strip())


def _parse_bool(value: str) -> bool:
    return str(value).strip().lower() in ('true', '1', 'yes', 'on')


class ProductCatalog:
    """Products keyed by product_id."""

    COLUMNS = [
        'product_id', 'name', 'brand', 'category', 'sku', 'unit', 'price', 'tax_rate',
        'available_quantity', 'strain_type', 'thc_percentage', 'cbd_percentage',
    ]

    def __init__(self, df: Optional[pd.DataFrame] = None):
        df = df if df is not None else _frame([], self.COLUMNS, 'product_id')
        for col in self.COLUMNS:
            if col not in df.columns:
                df[col] = ''
        self.df = df

    @classmethod
    def from_csv(cls, path: Path) -> 'ProductCatalog':
        if not path.exists():
            raise FileNotFoundError(f"Product catalog not found at {path}.")
        df = _load_csv(path, 'product_id')
        log.info("product_catalog_loaded", path=str(path), products=len(df))
        return cls(df)

    @classmethod
    def from_products(cls, products: Iterable[Product]) -> 'ProductCatalog':
        records = []
        for p in products:
            records.append({
                'product_id': p.product_id,
                'name': p.name,
                'brand': p.brand,
                'category': p.category,
                'sku': p.sku,
                'unit': p.unit,
                'price': str(p.price),
                'tax_rate': '' if p.tax_rate is None else str(p.tax_rate),
                'available_quantity': str(p.available_quantity),
                'strain_type': p.strain_type or '',
                'thc_percentage': '' if p.thc_percentage is None else str(p.thc_percentage),
                'cbd_percentage': '' if p.cbd_percentage is None else str(p.cbd_percentage),
            })
        return cls(_frame(records, cls.COLUMNS, 'product_id'))

    def __len__(self) -> int:
        return len(self.df)

    def __contains__(self, product_id: str) -> bool:
        return str(product_id) in self.df.index

    def get(self, product_id: str) -> Product:
        """Look up one product; raises ProductNotFound."""
        product_id = str(product_id).strip()
        if product_id not in self.df.index:
            raise ProductNotFound(errmsg.PRODUCT_NOT_FOUND.format(product_id=product_id))
        return self._row_to_product(self.df.loc[product_id])

    def search(self, search: Optional[str] = None, category: Optional[str] = None, in_stock_only: bool = True) -> list[Product]:
        """Filter by free text over name/brand/sku and by category, as the register's product grid does."""
        df = self.df
        if search:
            mask = (
                df['name'].str.contains(search, case=False, na=False, regex=False) |
                df['brand'].str.contains(search, case=False, na=False, regex=False) |
                df['sku'].str.contains(search, case=False, na=False, regex=False)
            )
            df = df[mask]
        if category and category != 'all':
            df = df[df['category'].str.lower() == category.lower()]

        products = [self._row_to_product(row) for _, row in df.iterrows()]
        if in_stock_only:
            products = [p for p in products if p.available_quantity > 0]
        return products

    def categories(self) -> list[str]:
        return sorted(c for c in self.df['category'].unique() if c)

    def _row_to_product(self, row: pd.Series) -> Product:
        return Product(
            product_id=row['product_id'],
            name=row.get('name', ''),
            brand=row.get('brand', ''),
            category=row.get('category', ''),
            sku=row.get('sku', ''),
            unit=row.get('unit', '') or 'each',
            price=Decimal(row.get('price') or '0'),
            tax_rate=_optional_decimal(row.get('tax_rate', '')),
            available_quantity=Decimal(row.get('available_quantity') or '0'),
            strain_type=row.get('strain_type') or None,
            thc_percentage=_optional_decimal(row.get('thc_percentage', '')),
            cbd_percentage=_optional_decimal(row.get('cbd_percentage', '')),
        )


class DiscountCatalog:
    """Discounts keyed by discount_id; injected rather than compiled in."""

    def __init__(self, discounts: Optional[Iterable[Discount]] = None):
        self._discounts = {d.discount_id: d for d in (discounts or [])}

    @classmethod
    def from_csv(cls, path: Path) -> 'DiscountCatalog':
        if not path.exists():
            raise FileNotFoundError(f"Discount catalog not found at {path}.")
        df = _load_csv(path, 'discount_id')
        if 'active' in df.columns:
            df = df[df['active'].map(lambda v: v == '' or _parse_bool(v))]

        discounts = []
        for _, row in df.iterrows():
            discounts.append(Discount(
                discount_id=row['discount_id'],
                name=row.get('name', '') or row['discount_id'],
                kind=row.get('kind', '').lower(),
                value=Decimal(row.get('value') or '0'),
                description=row.get('description', ''),
                min_subtotal=_optional_decimal(row.get('min_subtotal', '')),
                customer_types=_split_set(row.get('customer_types', '')),
                requires_new_customer=_parse_bool(row.get('requires_new_customer', '')),
                min_age=int(row['min_age']) if row.get('min_age') else None,
                applicable_products=_split_set(row.get('applicable_products', '')),
            ))
        log.info("discount_catalog_loaded", path=str(path), discounts=len(discounts))
        return cls(discounts)

    def __len__(self) -> int:
        return len(self._discounts)

    def __contains__(self, discount_id: str) -> bool:
        return discount_id in self._discounts

    def get(self, discount_id: str) -> Discount:
        try:
            return self._discounts[discount_id]
        except KeyError:
            raise UnknownDiscount(errmsg.UNKNOWN_DISCOUNT.format(discount_id=discount_id))

    def list_discounts(self) -> list[Discount]:
        return list(self._discounts.values())


class PaymentMethodCatalog:
    """Payment methods accepted at the register."""

    def __init__(self, methods: Optional[Iterable[PaymentMethod]] = None):
        self._methods = {m.method_id: m for m in (methods or [])}

    @classmethod
    def from_csv(cls, path: Path) -> 'PaymentMethodCatalog':
        if not path.exists():
            raise FileNotFoundError(f"Payment method catalog not found at {path}.")
        df = _load_csv(path, 'method_id')
        methods = [
            PaymentMethod(
                method_id=row['method_id'],
                name=row.get('name', '') or row['method_id'],
                type=row.get('type', '').lower(),
                enabled=_parse_bool(row.get('enabled', 'true')),
                processing_fee=_optional_decimal(row.get('processing_fee', '')),
            )
            for _, row in df.iterrows()
        ]
        return cls(methods)

    def get(self, method_id: str) -> PaymentMethod:
        try:
            return self._methods[method_id]
        except KeyError:
            raise UnknownPaymentMethod(errmsg.UNKNOWN_PAYMENT_METHOD.format(method_id=method_id))

    def list_methods(self, enabled_only: bool = False) -> list[PaymentMethod]:
        methods = list(self._methods.values())
        if enabled_only:
            methods = [m for m in methods if m.enabled]
        return methods
