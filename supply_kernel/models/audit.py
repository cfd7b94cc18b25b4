"""ORM model for audit trail rows written by the workflows."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import TrackedBase
from supply_kernel.domain.dtos import AuditAction, AuditEvent


class AuditEventModel(TrackedBase):
    """Append-only audit row."""

    __tablename__ = "audit_events"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
    )

    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID]
    occurred_at: Mapped[datetime]
    old_values: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    new_values: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    def to_dto(self) -> AuditEvent:
        return AuditEvent(
            id=self.id,
            action=AuditAction(self.action),
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            occurred_at=self.occurred_at,
            actor_id=self.created_by_id,
            old_values=dict(self.old_values or {}),
            new_values=dict(self.new_values or {}),
        )

    @classmethod
    def from_dto(cls, dto: AuditEvent) -> "AuditEventModel":
        return cls(
            id=dto.id,
            action=dto.action.value,
            entity_type=dto.entity_type,
            entity_id=dto.entity_id,
            occurred_at=dto.occurred_at,
            old_values=dict(dto.old_values),
            new_values=dict(dto.new_values),
            created_by_id=dto.actor_id,
        )
