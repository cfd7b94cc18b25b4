"""
Kernel DTOs (``supply_kernel.domain.dtos``).

Frozen dataclasses for the rows the ledgers own.  Services exchange these
with the repository; ORM classes convert to and from them.  Updates go
through ``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from supply_kernel.domain.values import Location


@dataclass(frozen=True)
class Unit:
    """An organizational unit; distribution centers supply the others."""
    id: UUID
    code: str
    name: str
    is_distribution_center: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class Item:
    """A catalog item.  Lifecycle items are tracked one record per piece."""
    id: UUID
    code: str
    name: str
    unit_of_measure: str = "un"
    category: str | None = None
    has_lifecycle: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class Budget:
    """Spending limit of one unit for an inclusive date range."""
    id: UUID
    unit_id: UUID
    period_start: date
    period_end: date
    budget_amount: Decimal
    used_amount: Decimal = Decimal("0")

    @property
    def available_amount(self) -> Decimal:
        return self.budget_amount - self.used_amount

    def covers(self, on: date) -> bool:
        return self.period_start <= on <= self.period_end

    def overlaps(self, start: date, end: date) -> bool:
        return self.period_start <= end and start <= self.period_end


@dataclass(frozen=True)
class StockLevel:
    item_id: UUID
    location: Location
    quantity: Decimal


@dataclass(frozen=True)
class MovementRecord:
    """Immutable record of a quantity moved between two locations.

    ``from_location`` is None for receipts from outside (finalized
    purchases); ``to_location`` is None for quantities leaving the system.
    """
    id: UUID
    item_id: UUID
    from_location: Location | None
    to_location: Location | None
    quantity: Decimal
    reason: str
    occurred_at: datetime
    reference_type: str | None = None
    reference_id: UUID | None = None


class TransactionKind(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    RELEASE = "release"


@dataclass(frozen=True)
class FinancialTransaction:
    """Immutable record of a budget change."""
    id: UUID
    unit_id: UUID
    budget_id: UUID
    kind: TransactionKind
    amount: Decimal
    description: str
    occurred_at: datetime
    reference_type: str | None = None
    reference_id: UUID | None = None
    actor_id: UUID | None = None


class AuditAction(str, Enum):
    PURCHASE_CREATED = "PURCHASE_CREATED"
    PURCHASE_STATUS_CHANGED = "PURCHASE_STATUS_CHANGED"
    PURCHASE_FINALIZED = "PURCHASE_FINALIZED"
    REQUEST_CREATED = "REQUEST_CREATED"
    REQUEST_STATUS_CHANGED = "REQUEST_STATUS_CHANGED"
    REQUEST_SENT = "REQUEST_SENT"
    REQUEST_RECEIPT_CONFIRMED = "REQUEST_RECEIPT_CONFIRMED"
    QUOTATION_RESPONSE_SELECTED = "QUOTATION_RESPONSE_SELECTED"
    QUOTATION_RESPONSE_DESELECTED = "QUOTATION_RESPONSE_DESELECTED"
    BUDGET_CREATED = "BUDGET_CREATED"
    INCOME_RECORDED = "INCOME_RECORDED"
    INVENTORY_INDIVIDUALIZED = "INVENTORY_INDIVIDUALIZED"
    INVENTORY_ADJUSTED = "INVENTORY_ADJUSTED"
    INVENTORY_REMOVED = "INVENTORY_REMOVED"
    STOCK_TRANSFERRED = "STOCK_TRANSFERRED"
    STOCK_ADJUSTED = "STOCK_ADJUSTED"


@dataclass(frozen=True)
class AuditEvent:
    id: UUID
    action: AuditAction
    entity_type: str
    entity_id: UUID
    occurred_at: datetime
    actor_id: UUID | None = None
    old_values: dict[str, Any] = field(default_factory=dict)
    new_values: dict[str, Any] = field(default_factory=dict)
