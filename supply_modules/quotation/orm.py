"""
SQLAlchemy ORM persistence models for the Quotation module.

``quotation_responses`` carries a partial unique index on
``(quotation_id, item_id) WHERE is_selected`` so the storage layer itself
refuses a second selected response for one pair.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import TrackedBase
from supply_modules.quotation.models import (
    PriceHistory,
    Quotation,
    QuotationResponse,
    QuotationStatus,
)


class QuotationModel(TrackedBase):
    """Quotation header, one per purchase being priced."""

    __tablename__ = "quotations"

    __table_args__ = (
        Index("idx_quotation_purchase", "purchase_id"),
    )

    purchase_id: Mapped[UUID] = mapped_column(ForeignKey("purchases.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="aberta")
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    deadline: Mapped[date | None] = mapped_column(nullable=True)

    def to_dto(self) -> Quotation:
        return Quotation(
            id=self.id,
            purchase_id=self.purchase_id,
            status=QuotationStatus(self.status),
            title=self.title,
            deadline=self.deadline,
        )

    @classmethod
    def from_dto(cls, dto: Quotation) -> "QuotationModel":
        return cls(
            id=dto.id,
            purchase_id=dto.purchase_id,
            status=dto.status.value,
            title=dto.title,
            deadline=dto.deadline,
        )


class QuotationResponseModel(TrackedBase):
    """Supplier response for one item."""

    __tablename__ = "quotation_responses"

    __table_args__ = (
        Index("idx_response_quotation_item", "quotation_id", "item_id"),
        Index(
            "uq_response_selected_per_item",
            "quotation_id",
            "item_id",
            unique=True,
            sqlite_where=text("is_selected = 1"),
            postgresql_where=text("is_selected"),
        ),
    )

    quotation_id: Mapped[UUID] = mapped_column(
        ForeignKey("quotations.id", ondelete="CASCADE"), nullable=False,
    )
    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)
    supplier_id: Mapped[UUID]
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    delivery_time_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_selected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def to_dto(self) -> QuotationResponse:
        return QuotationResponse(
            id=self.id,
            quotation_id=self.quotation_id,
            item_id=self.item_id,
            supplier_id=self.supplier_id,
            unit_price=self.unit_price,
            delivery_time_days=self.delivery_time_days,
            is_selected=self.is_selected,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto: QuotationResponse) -> "QuotationResponseModel":
        return cls(
            id=dto.id,
            quotation_id=dto.quotation_id,
            item_id=dto.item_id,
            supplier_id=dto.supplier_id,
            unit_price=dto.unit_price,
            delivery_time_days=dto.delivery_time_days,
            is_selected=dto.is_selected,
            notes=dto.notes,
        )


class PriceHistoryModel(TrackedBase):
    """Append-only price observations."""

    __tablename__ = "price_history"

    __table_args__ = (
        Index("idx_price_history_item", "item_id"),
    )

    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)
    supplier_id: Mapped[UUID]
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    quotation_id: Mapped[UUID] = mapped_column(ForeignKey("quotations.id"), nullable=False)
    recorded_on: Mapped[date]

    def to_dto(self) -> PriceHistory:
        return PriceHistory(
            id=self.id,
            item_id=self.item_id,
            supplier_id=self.supplier_id,
            unit_price=self.unit_price,
            quotation_id=self.quotation_id,
            recorded_on=self.recorded_on,
        )

    @classmethod
    def from_dto(cls, dto: PriceHistory) -> "PriceHistoryModel":
        return cls(
            id=dto.id,
            item_id=dto.item_id,
            supplier_id=dto.supplier_id,
            unit_price=dto.unit_price,
            quotation_id=dto.quotation_id,
            recorded_on=dto.recorded_on,
        )
