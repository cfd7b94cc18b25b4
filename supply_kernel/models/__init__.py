"""Kernel ORM models. Importing this package registers their tables on Base.metadata."""

from supply_kernel.models.audit import AuditEventModel
from supply_kernel.models.budget import BudgetModel, FinancialTransactionModel
from supply_kernel.models.stock import MovementModel, StockLevelModel
from supply_kernel.models.unit import ItemModel, UnitModel

__all__ = [
    "AuditEventModel",
    "BudgetModel",
    "FinancialTransactionModel",
    "ItemModel",
    "MovementModel",
    "StockLevelModel",
    "UnitModel",
]
