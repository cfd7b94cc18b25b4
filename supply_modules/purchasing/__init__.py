"""
Purchasing Module (``supply_modules.purchasing``).

Purchase orders, their workflow, and finalization into the budget and stock
ledgers.
"""

from supply_modules.purchasing.models import (
    NewPurchaseLine,
    Purchase,
    PurchaseLine,
    PurchaseStatus,
)
from supply_modules.purchasing.workflows import PURCHASE_WORKFLOW

__all__ = [
    "NewPurchaseLine",
    "Purchase",
    "PurchaseLine",
    "PurchaseStatus",
    "PURCHASE_WORKFLOW",
]
