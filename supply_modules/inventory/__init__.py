"""
Inventory Module (``supply_modules.inventory``).

Individualized inventory records backed by transfers between a unit's
warehouse stock and its inventory location.
"""

from supply_modules.inventory.models import (
    InventoryEvent,
    InventoryEventType,
    InventoryRecord,
    InventoryStatus,
)

__all__ = [
    "InventoryEvent",
    "InventoryEventType",
    "InventoryRecord",
    "InventoryStatus",
]
