"""Policy subpackage - jurisdiction rules, compliance gating and settlement."""
from .compliance import ComplianceEvaluator
from .rule_book import ComplianceRuleBook, ComplianceRules
from .settlement import PaymentSettlement

__all__ = ['ComplianceEvaluator', 'ComplianceRuleBook', 'ComplianceRules', 'PaymentSettlement']
