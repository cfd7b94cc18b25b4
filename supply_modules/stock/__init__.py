"""
Stock Module (``supply_modules.stock``).

Manual warehouse movements: transfers between two units' stock and
adjustments of a unit's stock to a physical count.
"""

from supply_modules.stock.service import ADJUSTMENT_REASON, TRANSFER_REASON, StockService

__all__ = [
    "ADJUSTMENT_REASON",
    "TRANSFER_REASON",
    "StockService",
]
