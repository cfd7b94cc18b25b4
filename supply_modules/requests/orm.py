"""
SQLAlchemy ORM persistence models for the Requests module.

Maps ``Request``, ``RequestLine`` and ``InTransitRecord``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import TrackedBase
from supply_modules.requests.models import (
    InTransitRecord,
    InTransitStatus,
    Request,
    RequestLine,
    RequestPriority,
    RequestStatus,
)


class RequestModel(TrackedBase):
    """Internal request header."""

    __tablename__ = "requests"

    __table_args__ = (
        Index("idx_request_requesting_unit", "requesting_unit_id"),
        Index("idx_request_cd_unit", "cd_unit_id"),
        Index("idx_request_status", "status"),
    )

    requesting_unit_id: Mapped[UUID] = mapped_column(ForeignKey("units.id"), nullable=False)
    cd_unit_id: Mapped[UUID] = mapped_column(ForeignKey("units.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="normal")
    total_estimated_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    budget_consumed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    budget_consumption_date: Mapped[date | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self) -> Request:
        return Request(
            id=self.id,
            requesting_unit_id=self.requesting_unit_id,
            cd_unit_id=self.cd_unit_id,
            status=RequestStatus(self.status),
            priority=RequestPriority(self.priority),
            total_estimated_cost=self.total_estimated_cost,
            budget_consumed=self.budget_consumed,
            budget_consumption_date=self.budget_consumption_date,
            rejection_reason=self.rejection_reason,
            notes=self.notes,
            version=self.version,
            sent_at=self.sent_at,
        )

    @classmethod
    def from_dto(cls, dto: Request) -> "RequestModel":
        return cls(
            id=dto.id,
            requesting_unit_id=dto.requesting_unit_id,
            cd_unit_id=dto.cd_unit_id,
            status=dto.status.value,
            priority=dto.priority.value,
            total_estimated_cost=dto.total_estimated_cost,
            budget_consumed=dto.budget_consumed,
            budget_consumption_date=dto.budget_consumption_date,
            rejection_reason=dto.rejection_reason,
            notes=dto.notes,
            version=dto.version,
            sent_at=dto.sent_at,
        )


class RequestLineModel(TrackedBase):
    """Internal request line."""

    __tablename__ = "request_lines"

    __table_args__ = (
        Index("idx_request_line_request", "request_id"),
    )

    request_id: Mapped[UUID] = mapped_column(
        ForeignKey("requests.id", ondelete="CASCADE"), nullable=False,
    )
    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)
    quantity_requested: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_approved: Mapped[Decimal | None] = mapped_column(nullable=True)
    quantity_sent: Mapped[Decimal | None] = mapped_column(nullable=True)
    estimated_unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    def to_dto(self) -> RequestLine:
        return RequestLine(
            id=self.id,
            request_id=self.request_id,
            item_id=self.item_id,
            quantity_requested=self.quantity_requested,
            quantity_approved=self.quantity_approved,
            quantity_sent=self.quantity_sent,
            estimated_unit_price=self.estimated_unit_price,
        )

    @classmethod
    def from_dto(cls, dto: RequestLine) -> "RequestLineModel":
        return cls(
            id=dto.id,
            request_id=dto.request_id,
            item_id=dto.item_id,
            quantity_requested=dto.quantity_requested,
            quantity_approved=dto.quantity_approved,
            quantity_sent=dto.quantity_sent,
            estimated_unit_price=dto.estimated_unit_price,
        )


class InTransitModel(TrackedBase):
    """Stock shipped from a CD to a requesting unit."""

    __tablename__ = "in_transit"

    __table_args__ = (
        Index("idx_in_transit_request", "request_id"),
        Index("idx_in_transit_status", "status"),
    )

    request_id: Mapped[UUID] = mapped_column(ForeignKey("requests.id"), nullable=False)
    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)
    from_unit_id: Mapped[UUID] = mapped_column(ForeignKey("units.id"), nullable=False)
    to_unit_id: Mapped[UUID] = mapped_column(ForeignKey("units.id"), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="in_transit")
    shipped_at: Mapped[datetime]
    delivered_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self) -> InTransitRecord:
        return InTransitRecord(
            id=self.id,
            request_id=self.request_id,
            item_id=self.item_id,
            from_unit_id=self.from_unit_id,
            to_unit_id=self.to_unit_id,
            quantity=self.quantity,
            shipped_at=self.shipped_at,
            status=InTransitStatus(self.status),
            delivered_at=self.delivered_at,
        )

    @classmethod
    def from_dto(cls, dto: InTransitRecord) -> "InTransitModel":
        return cls(
            id=dto.id,
            request_id=dto.request_id,
            item_id=dto.item_id,
            from_unit_id=dto.from_unit_id,
            to_unit_id=dto.to_unit_id,
            quantity=dto.quantity,
            shipped_at=dto.shipped_at,
            status=dto.status.value,
            delivered_at=dto.delivered_at,
        )
