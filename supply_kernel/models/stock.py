"""
ORM models for the stock ledger.

One ``StockLevelModel`` row per (item, unit, location kind).  The CHECK
constraint backs the conditional debit: a quantity never goes negative.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import TrackedBase
from supply_kernel.domain.dtos import MovementRecord, StockLevel
from supply_kernel.domain.values import Location, LocationKind


def _location(unit_id: UUID | None, kind: str | None) -> Location | None:
    if unit_id is None or kind is None:
        return None
    return Location(unit_id, LocationKind(kind))


class StockLevelModel(TrackedBase):
    """Quantity of one item held at one location."""

    __tablename__ = "stock_levels"

    __table_args__ = (
        UniqueConstraint("item_id", "unit_id", "location_kind", name="uq_stock_item_location"),
        CheckConstraint("quantity >= 0", name="ck_stock_non_negative"),
        Index("idx_stock_unit", "unit_id"),
    )

    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)
    unit_id: Mapped[UUID] = mapped_column(ForeignKey("units.id"), nullable=False)
    location_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    def to_dto(self) -> StockLevel:
        return StockLevel(
            item_id=self.item_id,
            location=Location(self.unit_id, LocationKind(self.location_kind)),
            quantity=self.quantity,
        )

    def __repr__(self) -> str:
        return f"<StockLevelModel {self.item_id}@{self.unit_id}:{self.location_kind} = {self.quantity}>"


class MovementModel(TrackedBase):
    """Append-only record of a stock movement."""

    __tablename__ = "stock_movements"

    __table_args__ = (
        Index("idx_movement_item", "item_id"),
        Index("idx_movement_reference", "reference_type", "reference_id"),
    )

    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)
    from_unit_id: Mapped[UUID | None] = mapped_column(nullable=True)
    from_kind: Mapped[str | None] = mapped_column(String(20), nullable=True)
    to_unit_id: Mapped[UUID | None] = mapped_column(nullable=True)
    to_kind: Mapped[str | None] = mapped_column(String(20), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(String(100), nullable=False)
    occurred_at: Mapped[datetime]
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self) -> MovementRecord:
        return MovementRecord(
            id=self.id,
            item_id=self.item_id,
            from_location=_location(self.from_unit_id, self.from_kind),
            to_location=_location(self.to_unit_id, self.to_kind),
            quantity=self.quantity,
            reason=self.reason,
            occurred_at=self.occurred_at,
            reference_type=self.reference_type,
            reference_id=self.reference_id,
        )

    @classmethod
    def from_dto(cls, dto: MovementRecord) -> "MovementModel":
        return cls(
            id=dto.id,
            item_id=dto.item_id,
            from_unit_id=dto.from_location.unit_id if dto.from_location else None,
            from_kind=dto.from_location.kind.value if dto.from_location else None,
            to_unit_id=dto.to_location.unit_id if dto.to_location else None,
            to_kind=dto.to_location.kind.value if dto.to_location else None,
            quantity=dto.quantity,
            reason=dto.reason,
            occurred_at=dto.occurred_at,
            reference_type=dto.reference_type,
            reference_id=dto.reference_id,
        )
