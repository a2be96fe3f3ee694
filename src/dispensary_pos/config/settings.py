"""
Centralized settings and path configuration for the dispensary POS engine.
"""
import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Optional

ENV_PREFIX = "DISPENSARY_POS_"


def get_package_data_dir() -> Path:
    """Directory holding the sample catalog and rule CSVs shipped with the package."""
    return Path(__file__).resolve().parent.parent / 'data' / 'samples'


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Data directory
    data_dir: Path

    # Catalog files
    products_csv: Path
    discounts_csv: Path
    payment_methods_csv: Path

    # Compliance rule book
    compliance_rules_csv: Path
    jurisdiction: str = "DEFAULT"

    # Pricing policy; applies only to products without their own tax rate
    default_tax_rate: Decimal = Decimal("0.08")
    currency_symbol: str = "$"

    @classmethod
    def load(cls, data_dir: Optional[Path] = None) -> 'Settings':
        """Load settings, honouring DISPENSARY_POS_* environment overrides."""
        env_dir = os.environ.get(f"{ENV_PREFIX}DATA_DIR")
        root = Path(data_dir or env_dir or get_package_data_dir())

        return cls(
            data_dir=root,
            products_csv=root / 'products.csv',
            discounts_csv=root / 'discounts.csv',
            payment_methods_csv=root / 'payment_methods.csv',
            compliance_rules_csv=root / 'compliance_rules.csv',
            jurisdiction=os.environ.get(f"{ENV_PREFIX}JURISDICTION", "DEFAULT"),
            default_tax_rate=Decimal(os.environ.get(f"{ENV_PREFIX}DEFAULT_TAX_RATE", "0.08")),
            currency_symbol=os.environ.get(f"{ENV_PREFIX}CURRENCY_SYMBOL", "$"),
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reset_settings():
    """Drop the cached settings so the next get_settings() reloads them."""
    global _settings
    _settings = None
