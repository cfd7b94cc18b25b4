"""
BudgetLedger -- per-unit, per-period budget consumption.

Responsibility:
    Resolves the budget covering a date, debits and credits it through a
    single conditional write, and appends a FinancialTransaction for every
    change.  Also creates budgets and records income.

Architecture position:
    Kernel > Services.  Persists through ``LedgerRepository``; knows
    nothing about purchases, requests, roles or configuration.

Invariants enforced:
    BUDGET_NOT_EXCEEDED -- ``debit_budget_if_available`` applies the debit
        only when ``budget_amount - used_amount >= amount``.  There is no
        read-then-write path.
    SINGLE_BUDGET_PER_DATE -- ``create_budget`` rejects a period that
        overlaps another budget of the same unit.

Failure modes:
    - InvalidAmountError: non-positive amount, or a credit above used_amount.
    - NoBudgetForPeriodError: no budget of the unit covers the date.
    - InsufficientBudgetError: debit above the available amount.
    - BudgetOverlapError: new period overlaps an existing budget.
    - EntityNotFoundError: unknown unit.
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

from supply_kernel.domain.clock import Clock, SystemClock
from supply_kernel.domain.dtos import Budget, FinancialTransaction, TransactionKind
from supply_kernel.domain.repository import LedgerRepository
from supply_kernel.domain.values import Reference, require_positive
from supply_kernel.exceptions import (
    BudgetOverlapError,
    EntityNotFoundError,
    InsufficientBudgetError,
    InvalidAmountError,
    NoBudgetForPeriodError,
)
from supply_kernel.logging_config import get_logger

logger = get_logger("services.budget_ledger")

DEFAULT_INCOME_PERIOD_DAYS = 365


class BudgetLedger:
    """
    Budget ledger for all units.

    Contract:
        Every mutating method runs inside ``repository.transaction()``; when
        called inside an outer transaction it joins it, so a failure later in
        the caller's unit of work undoes the budget change too.

    Guarantees:
        - ``available_amount`` is never stored; it is derived from the row.
        - Each debit, credit and income appends exactly one
          FinancialTransaction in the same transaction.
    """

    def __init__(
        self,
        repository: LedgerRepository,
        clock: Clock | None = None,
        income_period_days: int = DEFAULT_INCOME_PERIOD_DAYS,
    ):
        self._repo = repository
        self._clock = clock or SystemClock()
        self._income_period_days = income_period_days

    # =========================================================================
    # Queries
    # =========================================================================

    def budget_for(self, unit_id: UUID, on: date) -> Budget:
        """Return the budget covering ``on`` or raise NoBudgetForPeriodError."""
        budget = self._repo.find_budget(unit_id, on)
        if budget is None:
            raise NoBudgetForPeriodError(str(unit_id), on.isoformat())
        return budget

    def available(self, unit_id: UUID, on: date) -> Decimal:
        return self.budget_for(unit_id, on).available_amount

    # =========================================================================
    # Debit / credit
    # =========================================================================

    def debit(
        self,
        unit_id: UUID,
        period_date: date,
        amount: Decimal,
        description: str = "",
        reference: Reference | None = None,
        actor_id: UUID | None = None,
    ) -> Decimal:
        """Consume ``amount`` from the budget covering ``period_date``.

        Returns the new available amount.  On failure nothing is mutated.
        """
        if not require_positive(amount):
            raise InvalidAmountError(amount, "debit amount must be positive")

        with self._repo.transaction():
            budget = self.budget_for(unit_id, period_date)
            if not self._repo.debit_budget_if_available(budget.id, amount):
                current = self._repo.get_budget(budget.id)
                available = current.available_amount if current else Decimal("0")
                logger.warning(
                    "budget_debit_rejected",
                    extra={
                        "unit_id": str(unit_id),
                        "budget_id": str(budget.id),
                        "requested": str(amount),
                        "available": str(available),
                    },
                )
                raise InsufficientBudgetError(
                    str(unit_id), str(budget.id), amount, available,
                )

            self._append_transaction(
                budget, TransactionKind.EXPENSE, amount,
                description or "Budget debit", reference, actor_id,
            )
            new_available = self._repo.get_budget(budget.id).available_amount

        logger.info(
            "budget_debited",
            extra={
                "unit_id": str(unit_id),
                "budget_id": str(budget.id),
                "amount": str(amount),
                "available": str(new_available),
            },
        )
        return new_available

    def credit(
        self,
        unit_id: UUID,
        period_date: date,
        amount: Decimal,
        description: str = "",
        reference: Reference | None = None,
        actor_id: UUID | None = None,
    ) -> Decimal:
        """Release previously consumed budget.  Returns the new available amount."""
        if not require_positive(amount):
            raise InvalidAmountError(amount, "credit amount must be positive")

        with self._repo.transaction():
            budget = self.budget_for(unit_id, period_date)
            if not self._repo.credit_budget_if_used(budget.id, amount):
                current = self._repo.get_budget(budget.id)
                used = current.used_amount if current else Decimal("0")
                raise InvalidAmountError(
                    amount, f"credit exceeds used amount {used}",
                )

            self._append_transaction(
                budget, TransactionKind.RELEASE, amount,
                description or "Budget release", reference, actor_id,
            )
            new_available = self._repo.get_budget(budget.id).available_amount

        logger.info(
            "budget_credited",
            extra={
                "unit_id": str(unit_id),
                "budget_id": str(budget.id),
                "amount": str(amount),
                "available": str(new_available),
            },
        )
        return new_available

    # =========================================================================
    # Budget administration
    # =========================================================================

    def create_budget(
        self,
        unit_id: UUID,
        period_start: date,
        period_end: date,
        amount: Decimal,
        actor_id: UUID | None = None,
    ) -> Budget:
        """Create a budget for a period that overlaps no other budget of the unit."""
        if period_start > period_end:
            raise ValueError(
                f"Budget period start {period_start} is after end {period_end}"
            )
        if not isinstance(amount, Decimal) or amount < 0:
            raise InvalidAmountError(amount, "budget amount must not be negative")

        with self._repo.transaction():
            if self._repo.get_unit(unit_id) is None:
                raise EntityNotFoundError("Unit", str(unit_id))
            for existing in self._repo.list_budgets(unit_id):
                if existing.overlaps(period_start, period_end):
                    raise BudgetOverlapError(
                        str(unit_id),
                        str(existing.id),
                        period_start.isoformat(),
                        period_end.isoformat(),
                    )
            budget = self._repo.add_budget(Budget(
                id=uuid4(),
                unit_id=unit_id,
                period_start=period_start,
                period_end=period_end,
                budget_amount=amount,
            ))

        logger.info(
            "budget_created",
            extra={
                "unit_id": str(unit_id),
                "budget_id": str(budget.id),
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
                "amount": str(amount),
            },
        )
        return budget

    def record_income(
        self,
        unit_id: UUID,
        amount: Decimal,
        description: str,
        on: date | None = None,
        actor_id: UUID | None = None,
        reference: Reference | None = None,
    ) -> Budget:
        """Add ``amount`` to the budget covering ``on`` (default: today).

        When the unit has no budget covering that date, a new one is opened
        for ``income_period_days`` days, shortened so that it ends before the
        next existing budget of the unit.
        """
        if not require_positive(amount):
            raise InvalidAmountError(amount, "income amount must be positive")
        on = on or self._clock.today()

        with self._repo.transaction():
            if self._repo.get_unit(unit_id) is None:
                raise EntityNotFoundError("Unit", str(unit_id))
            budget = self._repo.find_budget(unit_id, on)
            if budget is None:
                budget = self._repo.add_budget(Budget(
                    id=uuid4(),
                    unit_id=unit_id,
                    period_start=on,
                    period_end=self._income_period_end(unit_id, on),
                    budget_amount=Decimal("0"),
                ))
                logger.info(
                    "budget_opened_by_income",
                    extra={
                        "unit_id": str(unit_id),
                        "budget_id": str(budget.id),
                        "period_start": budget.period_start.isoformat(),
                        "period_end": budget.period_end.isoformat(),
                    },
                )
            self._repo.increase_budget_amount(budget.id, amount)
            self._append_transaction(
                budget, TransactionKind.INCOME, amount, description, reference, actor_id,
            )
            budget = self._repo.get_budget(budget.id)

        logger.info(
            "income_recorded",
            extra={
                "unit_id": str(unit_id),
                "budget_id": str(budget.id),
                "amount": str(amount),
                "budget_amount": str(budget.budget_amount),
            },
        )
        return budget

    # =========================================================================
    # Private helpers
    # =========================================================================

    def _income_period_end(self, unit_id: UUID, start: date) -> date:
        end = start + timedelta(days=self._income_period_days)
        for other in self._repo.list_budgets(unit_id):
            if start < other.period_start <= end:
                end = other.period_start - timedelta(days=1)
        return end

    def _append_transaction(
        self,
        budget: Budget,
        kind: TransactionKind,
        amount: Decimal,
        description: str,
        reference: Reference | None,
        actor_id: UUID | None,
    ) -> None:
        self._repo.add_financial_transaction(FinancialTransaction(
            id=uuid4(),
            unit_id=budget.unit_id,
            budget_id=budget.id,
            kind=kind,
            amount=amount,
            description=description,
            occurred_at=self._clock.now(),
            reference_type=reference.type if reference else None,
            reference_id=reference.id if reference else None,
            actor_id=actor_id,
        ))
