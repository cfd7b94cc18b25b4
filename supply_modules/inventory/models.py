"""
Inventory Domain Models (``supply_modules.inventory.models``).

Responsibility
--------------
Frozen value objects for individualized inventory: records created by
moving quantity out of a unit's warehouse stock, and the lifecycle events
(maintenance, repair, ...) attached to single-piece records.

Invariants
----------
- A record of a lifecycle item always has quantity 1.
- ``InventoryRecord.version`` increases by one on every persisted change;
  a save or delete carrying a stale version is rejected.
- Quantities use ``Decimal`` -- never ``float``.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class InventoryStatus(Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    DAMAGED = "damaged"
    EXPIRED = "expired"


class InventoryEventType(Enum):
    MAINTENANCE = "maintenance"
    REPAIR = "repair"
    INSPECTION = "inspection"
    RELOCATION = "relocation"
    STATUS_CHANGE = "status_change"
    OTHER = "other"


LIFECYCLE_QUANTITY = Decimal("1")


@dataclass(frozen=True)
class InventoryRecord:
    """Quantity of an item individualized at a unit."""
    id: UUID
    item_id: UUID
    unit_id: UUID
    quantity: Decimal
    location_label: str
    status: InventoryStatus = InventoryStatus.AVAILABLE
    notes: str | None = None
    version: int = 0


@dataclass(frozen=True)
class InventoryEvent:
    """A lifecycle event of a single-piece inventory record."""
    id: UUID
    record_id: UUID
    event_type: InventoryEventType
    description: str
    event_date: date
    cost: Decimal | None = None
    performed_by: str | None = None
    actor_id: UUID | None = None
