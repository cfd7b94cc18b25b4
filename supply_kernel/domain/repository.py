"""
Ledger repository contract (``supply_kernel.domain.repository``).

Responsibility
--------------
Protocol the ledgers persist through.  Two implementations live in
``supply_services``: an in-memory repository for tests and a SQLAlchemy
repository for PostgreSQL/SQLite.

Invariants enforced
-------------------
* Every ``*_if_*`` method is ONE conditional write: it checks its
  precondition and applies the change atomically, returning ``False``
  without mutating anything when the precondition does not hold.  No
  caller may read a balance and write it back.
* ``transaction()`` nests: inner scopes join the outermost one, which
  alone commits (normal exit) or rolls back (exception).
* Movement, financial transaction and audit rows are append-only.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import date
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from supply_kernel.domain.dtos import (
    AuditEvent,
    Budget,
    FinancialTransaction,
    Item,
    MovementRecord,
    StockLevel,
    Unit,
)
from supply_kernel.domain.values import Location


class LedgerRepository(Protocol):
    """Persistence operations needed by the kernel ledgers."""

    def transaction(self) -> AbstractContextManager[None]: ...

    # Units and items
    def add_unit(self, unit: Unit) -> Unit: ...
    def get_unit(self, unit_id: UUID) -> Unit | None: ...
    def list_units(self) -> list[Unit]: ...
    def add_item(self, item: Item) -> Item: ...
    def get_item(self, item_id: UUID) -> Item | None: ...

    # Budgets
    def add_budget(self, budget: Budget) -> Budget: ...
    def get_budget(self, budget_id: UUID) -> Budget | None: ...
    def find_budget(self, unit_id: UUID, on: date) -> Budget | None: ...
    def list_budgets(self, unit_id: UUID) -> list[Budget]: ...
    def debit_budget_if_available(self, budget_id: UUID, amount: Decimal) -> bool: ...
    def credit_budget_if_used(self, budget_id: UUID, amount: Decimal) -> bool: ...
    def increase_budget_amount(self, budget_id: UUID, amount: Decimal) -> None: ...

    # Stock
    def get_stock_quantity(self, item_id: UUID, location: Location) -> Decimal: ...
    def debit_stock_if_available(self, item_id: UUID, location: Location, amount: Decimal) -> bool: ...
    def credit_stock(self, item_id: UUID, location: Location, amount: Decimal) -> None: ...
    def list_stock_levels(self, unit_id: UUID | None = None) -> list[StockLevel]: ...

    # Append-only records
    def add_movement(self, movement: MovementRecord) -> MovementRecord: ...
    def list_movements(self, item_id: UUID | None = None) -> list[MovementRecord]: ...
    def add_financial_transaction(self, tx: FinancialTransaction) -> FinancialTransaction: ...
    def list_financial_transactions(
        self,
        unit_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> list[FinancialTransaction]: ...
    def add_audit_event(self, event: AuditEvent) -> AuditEvent: ...
    def list_audit_events(
        self,
        entity_type: str | None = None,
        entity_id: UUID | None = None,
    ) -> list[AuditEvent]: ...
