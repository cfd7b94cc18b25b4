"""
Financial Module Service (``supply_modules.financial.service``).

Responsibility
--------------
Administrative entry points over the budget ledger: opening budgets,
recording income and reporting what a unit spent over a date range.

Invariants enforced
-------------------
* Budgets of one unit never overlap (delegated to ``BudgetLedger``).
* The expense report is computed from the financial transaction log, so
  it always agrees with the sum of ledger debits minus releases.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from supply_config.schema import BudgetPolicy
from supply_kernel.domain.clock import Clock, SystemClock
from supply_kernel.domain.dtos import AuditAction, Budget, FinancialTransaction, TransactionKind
from supply_kernel.domain.repository import LedgerRepository
from supply_kernel.logging_config import get_logger
from supply_kernel.services.budget_ledger import BudgetLedger
from supply_modules._helpers import write_audit
from supply_services.rbac_authority import Actor, require_capability

logger = get_logger("modules.financial.service")

ENTITY_TYPE = "budget"


@dataclass(frozen=True)
class ExpenseReport:
    """Spending of one unit over an inclusive date range."""
    unit_id: UUID
    start: date
    end: date
    expenses: Decimal
    releases: Decimal
    income: Decimal
    transaction_count: int

    @property
    def net_expense(self) -> Decimal:
        return self.expenses - self.releases


class FinancialService:
    def __init__(
        self,
        repository: LedgerRepository,
        clock: Clock | None = None,
        budget_ledger: BudgetLedger | None = None,
        policy: BudgetPolicy | None = None,
    ):
        self._repo = repository
        self._clock = clock or SystemClock()
        policy = policy or BudgetPolicy()
        self._budget = budget_ledger or BudgetLedger(
            repository, clock=self._clock, income_period_days=policy.income_period_days,
        )

    def create_budget(
        self,
        unit_id: UUID,
        period_start: date,
        period_end: date,
        amount: Decimal,
        actor: Actor,
    ) -> Budget:
        """Open a budget for the unit; overlapping periods are rejected."""
        require_capability(actor, "budget.manage", unit_id)
        with self._repo.transaction():
            budget = self._budget.create_budget(
                unit_id, period_start, period_end, amount, actor_id=actor.id,
            )
            write_audit(
                self._repo, self._clock, AuditAction.BUDGET_CREATED,
                ENTITY_TYPE, budget.id, actor.id,
                new_values={
                    "unit_id": str(unit_id),
                    "period_start": period_start.isoformat(),
                    "period_end": period_end.isoformat(),
                    "budget_amount": str(amount),
                },
            )
        return budget

    def record_income(
        self,
        unit_id: UUID,
        amount: Decimal,
        description: str,
        actor: Actor,
        on: date | None = None,
    ) -> Budget:
        """Add income to the budget covering ``on``, opening one if needed."""
        require_capability(actor, "income.record", unit_id)
        with self._repo.transaction():
            budget = self._budget.record_income(
                unit_id, amount, description, on=on, actor_id=actor.id,
            )
            write_audit(
                self._repo, self._clock, AuditAction.INCOME_RECORDED,
                ENTITY_TYPE, budget.id, actor.id,
                new_values={
                    "amount": str(amount),
                    "budget_amount": str(budget.budget_amount),
                    "description": description,
                },
            )
        return budget

    def list_budgets(self, unit_id: UUID, actor: Actor) -> list[Budget]:
        require_capability(actor, "financial.view", unit_id)
        return self._repo.list_budgets(unit_id)

    def list_transactions(
        self,
        unit_id: UUID,
        actor: Actor,
        start: date | None = None,
        end: date | None = None,
    ) -> list[FinancialTransaction]:
        require_capability(actor, "financial.view", unit_id)
        return self._repo.list_financial_transactions(unit_id, start, end)

    def unit_expense_report(
        self,
        unit_id: UUID,
        start: date,
        end: date,
        actor: Actor,
    ) -> ExpenseReport:
        """Sum expense and release transactions of the unit between start and end, inclusive."""
        if start > end:
            raise ValueError(f"Report start {start} is after end {end}")
        require_capability(actor, "financial.view", unit_id)

        totals = {kind: Decimal("0") for kind in TransactionKind}
        transactions = self._repo.list_financial_transactions(unit_id, start, end)
        for tx in transactions:
            totals[tx.kind] += tx.amount

        report = ExpenseReport(
            unit_id=unit_id,
            start=start,
            end=end,
            expenses=totals[TransactionKind.EXPENSE],
            releases=totals[TransactionKind.RELEASE],
            income=totals[TransactionKind.INCOME],
            transaction_count=len(transactions),
        )
        logger.info(
            "unit_expense_report_built",
            extra={
                "unit_id": str(unit_id),
                "start": start.isoformat(),
                "end": end.isoformat(),
                "net_expense": str(report.net_expense),
                "transaction_count": report.transaction_count,
            },
        )
        return report
