"""
Compliance Rule Book - Resolves jurisdiction compliance parameters.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import pandas as pd
import structlog

log = structlog.get_logger()

DEFAULT_JURISDICTION = "DEFAULT"


@dataclass(frozen=True)
class ComplianceRules:
    """Jurisdiction parameters consumed by the compliance evaluator."""
    jurisdiction: str = DEFAULT_JURISDICTION
    adult_use_min_age: int = 21
    medical_only_categories: frozenset = field(default_factory=lambda: frozenset({"medical"}))
    limit_unit: str = "g"


class ComplianceRuleBook:
    """
    Resolves the ComplianceRules for a jurisdiction.

    Waterfall precedence:
    1. Exact jurisdiction row
    2. DEFAULT row
    3. Fallback: built-in ComplianceRules()
    """

    COLUMNS = ['jurisdiction', 'adult_use_min_age', 'medical_only_categories', 'limit_unit']

    def __init__(self, rules_path: Optional[Path] = None):
        self.rules_path = rules_path
        self.rules_df = pd.DataFrame(columns=self.COLUMNS)
        if rules_path is not None and rules_path.exists():
            df = pd.read_csv(rules_path, dtype=str).fillna('')
            df.columns = [c.strip() for c in df.columns]
            for col in df.columns:
                df[col] = df[col].astype(str).str.strip()
            self.rules_df = df
            log.info("compliance_rules_loaded", path=str(rules_path), rows=len(df))

    @classmethod
    def from_records(cls, records: list[dict]) -> 'ComplianceRuleBook':
        """Build a rule book from in-memory rows (same columns as the CSV)."""
        book = cls()
        df = pd.DataFrame(records, columns=cls.COLUMNS).fillna('').astype(str)
        book.rules_df = df
        return book

    @property
    def jurisdictions(self) -> list[str]:
        if self.rules_df.empty:
            return []
        return sorted(self.rules_df['jurisdiction'].unique())

    def rules_for(self, jurisdiction: Optional[str] = None) -> ComplianceRules:
        """Resolve rules for a jurisdiction code (case-insensitive)."""
        code = str(jurisdiction or DEFAULT_JURISDICTION).strip().upper()
        if self.rules_df.empty:
            return ComplianceRules(jurisdiction=code)

        codes = self.rules_df['jurisdiction'].str.upper()

        # 1. Exact jurisdiction
        match = self.rules_df[codes == code]

        # 2. DEFAULT row
        if match.empty:
            match = self.rules_df[codes == DEFAULT_JURISDICTION]

        # 3. Fallback
        if match.empty:
            log.warning("compliance_rules_fallback", jurisdiction=code)
            return ComplianceRules(jurisdiction=code)

        return self._row_to_rules(match.iloc[0], code)

    def _row_to_rules(self, row: pd.Series, code: str) -> ComplianceRules:
        defaults = ComplianceRules()

        age = row.get('adult_use_min_age', '')
        categories = row.get('medical_only_categories', '')
        unit = row.get('limit_unit', '')

        return ComplianceRules(
            jurisdiction=code,
            adult_use_min_age=int(age) if age else defaults.adult_use_min_age,
            medical_only_categories=(
                frozenset(c.strip().lower() for c in categories.split('|') if c.strip())
                if categories else defaults.medical_only_categories
            ),
            limit_unit=unit or defaults.limit_unit,
        )
