"""
Quotation Module (``supply_modules.quotation``).

Supplier responses per purchase item and the selection that prices the
purchase lines.
"""

from supply_modules.quotation.models import (
    PriceHistory,
    Quotation,
    QuotationResponse,
    QuotationStatus,
)
from supply_modules.quotation.workflows import QUOTATION_WORKFLOW

__all__ = [
    "PriceHistory",
    "Quotation",
    "QuotationResponse",
    "QuotationStatus",
    "QUOTATION_WORKFLOW",
]
