"""
SQLAlchemy ORM persistence models for the Purchasing module.

``PurchaseModel.version`` backs optimistic concurrency: the repository
updates a purchase only ``WHERE version = <expected>``.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import TrackedBase
from supply_modules.purchasing.models import Purchase, PurchaseLine, PurchaseStatus


class PurchaseModel(TrackedBase):
    """Purchase order header."""

    __tablename__ = "purchases"

    __table_args__ = (
        Index("idx_purchase_unit", "unit_id"),
        Index("idx_purchase_status", "status"),
    )

    unit_id: Mapped[UUID] = mapped_column(ForeignKey("units.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    total_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    supplier_id: Mapped[UUID | None] = mapped_column(nullable=True)
    request_id: Mapped[UUID | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    finalized_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self) -> Purchase:
        return Purchase(
            id=self.id,
            unit_id=self.unit_id,
            status=PurchaseStatus(self.status),
            total_value=self.total_value,
            supplier_id=self.supplier_id,
            request_id=self.request_id,
            notes=self.notes,
            version=self.version,
            finalized_at=self.finalized_at,
        )

    @classmethod
    def from_dto(cls, dto: Purchase) -> "PurchaseModel":
        return cls(
            id=dto.id,
            unit_id=dto.unit_id,
            status=dto.status.value,
            total_value=dto.total_value,
            supplier_id=dto.supplier_id,
            request_id=dto.request_id,
            notes=dto.notes,
            version=dto.version,
            finalized_at=dto.finalized_at,
        )

    def __repr__(self) -> str:
        return f"<PurchaseModel {self.id} [{self.status}] v{self.version}>"


class PurchaseLineModel(TrackedBase):
    """Purchase line item."""

    __tablename__ = "purchase_lines"

    __table_args__ = (
        Index("idx_purchase_line_purchase", "purchase_id"),
    )

    purchase_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False,
    )
    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    supplier_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self) -> PurchaseLine:
        return PurchaseLine(
            id=self.id,
            purchase_id=self.purchase_id,
            item_id=self.item_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
            total_price=self.total_price,
            supplier_id=self.supplier_id,
        )

    @classmethod
    def from_dto(cls, dto: PurchaseLine) -> "PurchaseLineModel":
        return cls(
            id=dto.id,
            purchase_id=dto.purchase_id,
            item_id=dto.item_id,
            quantity=dto.quantity,
            unit_price=dto.unit_price,
            total_price=dto.total_price,
            supplier_id=dto.supplier_id,
        )
