"""
Value objects (``supply_kernel.domain.values``).

Locations identify the three stock buckets each unit owns.  A quantity is
always held at exactly one location; moving it between locations is the
job of the transfer coordinator.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID


class LocationKind(str, Enum):
    """Stock buckets of a unit."""
    STOCK = "stock"
    IN_TRANSIT = "in_transit"
    INVENTORY = "inventory"


@dataclass(frozen=True)
class Location:
    """An (organizational unit, bucket) pair holding stock."""
    unit_id: UUID
    kind: LocationKind

    @classmethod
    def stock(cls, unit_id: UUID) -> Location:
        return cls(unit_id, LocationKind.STOCK)

    @classmethod
    def in_transit(cls, unit_id: UUID) -> Location:
        return cls(unit_id, LocationKind.IN_TRANSIT)

    @classmethod
    def inventory(cls, unit_id: UUID) -> Location:
        return cls(unit_id, LocationKind.INVENTORY)

    def __str__(self) -> str:
        return f"{self.unit_id}:{self.kind.value}"


@dataclass(frozen=True)
class Reference:
    """Business document that caused a ledger mutation."""
    type: str
    id: UUID


@dataclass(frozen=True)
class Shortfall:
    """Missing quantity of one item at one location."""
    item_id: UUID
    location: Location
    requested: Decimal
    available: Decimal

    @property
    def missing(self) -> Decimal:
        return self.requested - self.available


def require_positive(value: Decimal) -> bool:
    """True iff value is a finite Decimal strictly above zero."""
    return isinstance(value, Decimal) and value.is_finite() and value > 0
