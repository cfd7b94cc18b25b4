"""
Financial Module (``supply_modules.financial``).

Budget administration, income recording and expense reporting per unit.
Persists only through the kernel ledger tables.
"""

from supply_modules.financial.service import ExpenseReport, FinancialService

__all__ = ["ExpenseReport", "FinancialService"]
