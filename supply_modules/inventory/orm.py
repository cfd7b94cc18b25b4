"""
SQLAlchemy ORM persistence models for the Inventory module.

Maps ``InventoryRecord`` and ``InventoryEvent``.  Events are deleted with
their record.  ``InventoryRecordModel.version`` backs optimistic concurrency
the same way ``PurchaseModel.version`` does.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import TrackedBase
from supply_modules.inventory.models import (
    InventoryEvent,
    InventoryEventType,
    InventoryRecord,
    InventoryStatus,
)


class InventoryRecordModel(TrackedBase):
    """Individualized inventory record."""

    __tablename__ = "inventory_records"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_inventory_quantity_positive"),
        Index("idx_inventory_unit", "unit_id"),
        Index("idx_inventory_item", "item_id"),
    )

    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)
    unit_id: Mapped[UUID] = mapped_column(ForeignKey("units.id"), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    location_label: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="available")
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def to_dto(self) -> InventoryRecord:
        return InventoryRecord(
            id=self.id,
            item_id=self.item_id,
            unit_id=self.unit_id,
            quantity=self.quantity,
            location_label=self.location_label,
            status=InventoryStatus(self.status),
            notes=self.notes,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: InventoryRecord, created_by_id: UUID | None = None) -> "InventoryRecordModel":
        return cls(
            id=dto.id,
            item_id=dto.item_id,
            unit_id=dto.unit_id,
            quantity=dto.quantity,
            location_label=dto.location_label,
            status=dto.status.value,
            notes=dto.notes,
            version=dto.version,
            created_by_id=created_by_id,
        )


class InventoryEventModel(TrackedBase):
    """Lifecycle event of an inventory record."""

    __tablename__ = "inventory_events"

    __table_args__ = (
        Index("idx_inventory_event_record", "record_id"),
    )

    record_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventory_records.id", ondelete="CASCADE"), nullable=False,
    )
    event_type: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)
    event_date: Mapped[date]
    cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    performed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def to_dto(self) -> InventoryEvent:
        return InventoryEvent(
            id=self.id,
            record_id=self.record_id,
            event_type=InventoryEventType(self.event_type),
            description=self.description,
            event_date=self.event_date,
            cost=self.cost,
            performed_by=self.performed_by,
            actor_id=self.created_by_id,
        )

    @classmethod
    def from_dto(cls, dto: InventoryEvent) -> "InventoryEventModel":
        return cls(
            id=dto.id,
            record_id=dto.record_id,
            event_type=dto.event_type.value,
            description=dto.description,
            event_date=dto.event_date,
            cost=dto.cost,
            performed_by=dto.performed_by,
            created_by_id=dto.actor_id,
        )
