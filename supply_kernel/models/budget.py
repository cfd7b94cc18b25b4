"""
ORM models for the budget ledger.

``BudgetModel`` stores ``budget_amount`` and ``used_amount`` only; the
available amount is always derived.  A CHECK constraint backs the
conditional debit: ``used_amount`` may never exceed ``budget_amount``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import TrackedBase
from supply_kernel.domain.dtos import Budget, FinancialTransaction, TransactionKind


class BudgetModel(TrackedBase):
    """Budget of one unit for an inclusive period."""

    __tablename__ = "budgets"

    __table_args__ = (
        CheckConstraint("used_amount >= 0", name="ck_budget_used_non_negative"),
        CheckConstraint("used_amount <= budget_amount", name="ck_budget_used_within_amount"),
        CheckConstraint("period_start <= period_end", name="ck_budget_period_order"),
        Index("idx_budget_unit_period", "unit_id", "period_start", "period_end"),
    )

    unit_id: Mapped[UUID] = mapped_column(ForeignKey("units.id"), nullable=False)
    period_start: Mapped[date]
    period_end: Mapped[date]
    budget_amount: Mapped[Decimal] = mapped_column(nullable=False)
    used_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    def to_dto(self) -> Budget:
        return Budget(
            id=self.id,
            unit_id=self.unit_id,
            period_start=self.period_start,
            period_end=self.period_end,
            budget_amount=self.budget_amount,
            used_amount=self.used_amount,
        )

    @classmethod
    def from_dto(cls, dto: Budget) -> "BudgetModel":
        return cls(
            id=dto.id,
            unit_id=dto.unit_id,
            period_start=dto.period_start,
            period_end=dto.period_end,
            budget_amount=dto.budget_amount,
            used_amount=dto.used_amount,
        )

    def __repr__(self) -> str:
        return f"<BudgetModel {self.unit_id} {self.period_start}..{self.period_end}>"


class FinancialTransactionModel(TrackedBase):
    """Append-only budget change record."""

    __tablename__ = "financial_transactions"

    __table_args__ = (
        Index("idx_fin_tx_unit_date", "unit_id", "occurred_at"),
    )

    unit_id: Mapped[UUID] = mapped_column(ForeignKey("units.id"), nullable=False)
    budget_id: Mapped[UUID] = mapped_column(ForeignKey("budgets.id"), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    occurred_at: Mapped[datetime]
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self) -> FinancialTransaction:
        return FinancialTransaction(
            id=self.id,
            unit_id=self.unit_id,
            budget_id=self.budget_id,
            kind=TransactionKind(self.kind),
            amount=self.amount,
            description=self.description,
            occurred_at=self.occurred_at,
            reference_type=self.reference_type,
            reference_id=self.reference_id,
            actor_id=self.created_by_id,
        )

    @classmethod
    def from_dto(cls, dto: FinancialTransaction) -> "FinancialTransactionModel":
        return cls(
            id=dto.id,
            unit_id=dto.unit_id,
            budget_id=dto.budget_id,
            kind=dto.kind.value,
            amount=dto.amount,
            description=dto.description,
            occurred_at=dto.occurred_at,
            reference_type=dto.reference_type,
            reference_id=dto.reference_id,
            created_by_id=dto.actor_id,
        )
