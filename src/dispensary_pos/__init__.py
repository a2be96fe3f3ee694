"""
Dispensary POS Package

Cart and regulatory compliance engine for a cannabis-dispensary point of sale.
Accumulates priced line items, applies discounts, gates checkout on age, ID,
medical-card and purchase-limit rules, and settles payment into a
transaction record.
"""

__version__ = "1.0.0"
