"""
Purchasing Module Service (``supply_modules.purchasing.service``).

Responsibility
--------------
Purchase order lifecycle: creation, line editing, status transitions and
finalization.  Finalization is the only point where a purchase touches the
ledgers: it debits the owning unit's budget for the purchase total and
credits the unit's warehouse stock with every line.

Invariants enforced
-------------------
* Each public method owns one repository transaction (commit on success,
  rollback and re-raise on any exception).
* A finalized purchase accepts no transition, line edit or price change.
* Finalization is all-or-nothing: budget debit, stock credits, status
  change and audit row commit together.
* Status changes are saved with optimistic versioning.

Failure modes
-------------
* ``InvalidTransitionError``  -- undeclared transition or terminal state.
* ``TransitionGuardError``  -- finalize with no lines or an unpriced line.
* ``InsufficientBudgetError`` / ``NoBudgetForPeriodError``  -- budget debit
  rejected; nothing is mutated.
* ``OptimisticLockError``  -- the purchase changed under the caller.
* ``PermissionDeniedError``  -- capability or unit scope missing.

Audit relevance
---------------
``PURCHASE_CREATED``, ``PURCHASE_STATUS_CHANGED`` and ``PURCHASE_FINALIZED``
rows are written in the same transaction as the change they describe.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID, uuid4

from supply_kernel.db.types import line_total
from supply_kernel.domain.clock import Clock, SystemClock
from supply_kernel.domain.dtos import AuditAction
from supply_kernel.domain.values import Location, Reference
from supply_kernel.exceptions import (
    EntityNotFoundError,
    InvalidQuantityError,
    InvalidTransitionError,
)
from supply_kernel.logging_config import get_logger
from supply_kernel.services.budget_ledger import BudgetLedger
from supply_kernel.services.transfer_coordinator import TransferCoordinator
from supply_modules._helpers import write_audit
from supply_modules.purchasing.models import (
    NewPurchaseLine,
    Purchase,
    PurchaseLine,
    PurchaseStatus,
)
from supply_modules.purchasing.repository import PurchasingRepository
from supply_modules.purchasing.workflows import PURCHASE_WORKFLOW
from supply_services.rbac_authority import Actor, require_capability
from supply_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.purchasing.service")

ENTITY_TYPE = "purchase"


def compute_total(lines: Sequence[PurchaseLine]) -> Decimal:
    """Sum of line totals; unpriced lines count as zero."""
    return sum((line.total_price or Decimal("0") for line in lines), Decimal("0"))


class PurchaseService:
    """
    Orchestrates purchase orders through the workflow and the ledgers.

    Guarantees
    ----------
    * Clock is injectable; finalization debits the budget covering
      ``clock.today()``.
    * Ledger side effects happen only after the workflow executor accepted
      the transition.
    """

    def __init__(
        self,
        repository: PurchasingRepository,
        workflow_executor: WorkflowExecutor | None = None,
        clock: Clock | None = None,
        budget_ledger: BudgetLedger | None = None,
        transfers: TransferCoordinator | None = None,
    ):
        self._repo = repository
        self._clock = clock or SystemClock()
        self._workflow_executor = workflow_executor or WorkflowExecutor()
        self._budget = budget_ledger or BudgetLedger(repository, clock=self._clock)
        self._transfers = transfers or TransferCoordinator(repository, clock=self._clock)

    # =========================================================================
    # Creation and editing
    # =========================================================================

    def create_purchase(
        self,
        unit_id: UUID,
        lines: Sequence[NewPurchaseLine],
        actor: Actor,
        supplier_id: UUID | None = None,
        notes: str | None = None,
    ) -> Purchase:
        """Create a purchase in ``pedido-realizado`` for the given unit."""
        require_capability(actor, "purchase.create", unit_id)
        return self.open_purchase(unit_id, lines, actor.id, supplier_id=supplier_id, notes=notes)

    def open_purchase(
        self,
        unit_id: UUID,
        lines: Sequence[NewPurchaseLine],
        actor_id: UUID | None,
        supplier_id: UUID | None = None,
        notes: str | None = None,
        request_id: UUID | None = None,
    ) -> Purchase:
        """Create a purchase without a capability check.

        Used by workflows that already authorized the caller for the
        operation that needs the purchase (corrective purchases).
        """
        with self._repo.transaction():
            if self._repo.get_unit(unit_id) is None:
                raise EntityNotFoundError("Unit", str(unit_id))
            purchase = Purchase(
                id=uuid4(),
                unit_id=unit_id,
                supplier_id=supplier_id,
                request_id=request_id,
                notes=notes,
            )
            purchase = self._repo.add_purchase(purchase)
            stored = self._add_lines(purchase.id, lines)
            purchase = self._repo.save_purchase(
                dataclasses.replace(purchase, total_value=compute_total(stored))
            )
            write_audit(
                self._repo, self._clock, AuditAction.PURCHASE_CREATED,
                ENTITY_TYPE, purchase.id, actor_id,
                new_values={
                    "unit_id": str(unit_id),
                    "line_count": len(stored),
                    "total_value": str(purchase.total_value),
                    "request_id": str(request_id) if request_id else None,
                },
            )

        logger.info(
            "purchase_created",
            extra={
                "purchase_id": str(purchase.id),
                "unit_id": str(unit_id),
                "line_count": len(lines),
                "total_value": str(purchase.total_value),
            },
        )
        return purchase

    def replace_lines(
        self,
        purchase_id: UUID,
        lines: Sequence[NewPurchaseLine],
        actor: Actor,
    ) -> Purchase:
        """Replace every line of a non-finalized purchase and recompute its total."""
        with self._repo.transaction():
            purchase = self._require_purchase(purchase_id)
            require_capability(actor, "purchase.edit", purchase.unit_id)
            self._reject_if_finalized(purchase, "edit_lines")

            self._repo.delete_purchase_lines(purchase.id)
            stored = self._add_lines(purchase.id, lines)
            purchase = self._repo.save_purchase(
                dataclasses.replace(purchase, total_value=compute_total(stored))
            )

        logger.info(
            "purchase_lines_replaced",
            extra={
                "purchase_id": str(purchase.id),
                "line_count": len(stored),
                "total_value": str(purchase.total_value),
            },
        )
        return purchase

    def set_line_price(
        self,
        purchase_id: UUID,
        item_id: UUID,
        unit_price: Decimal | None,
        supplier_id: UUID | None,
    ) -> Purchase:
        """Write (or clear, with None) the price of the item's lines and recompute the total.

        No capability check: called by quotation selection, which authorizes
        its own caller.
        """
        with self._repo.transaction():
            purchase = self._require_purchase(purchase_id)
            self._reject_if_finalized(purchase, "set_line_price")

            lines = self._repo.list_purchase_lines(purchase.id)
            updated: list[PurchaseLine] = []
            for line in lines:
                if line.item_id == item_id:
                    line = self._repo.save_purchase_line(dataclasses.replace(
                        line,
                        unit_price=unit_price,
                        total_price=line_total(line.quantity, unit_price) if unit_price is not None else None,
                        supplier_id=supplier_id,
                    ))
                updated.append(line)
            purchase = self._repo.save_purchase(
                dataclasses.replace(purchase, total_value=compute_total(updated))
            )
        return purchase

    # =========================================================================
    # Workflow
    # =========================================================================

    def transition(
        self,
        purchase_id: UUID,
        to_status: PurchaseStatus,
        actor: Actor,
    ) -> Purchase:
        """Move the purchase to ``to_status``.  ``finalizado`` delegates to finalize()."""
        if to_status is PurchaseStatus.FINALIZADO:
            return self.finalize(purchase_id, actor)

        with self._repo.transaction():
            purchase = self._require_purchase(purchase_id)
            current = purchase.status.value
            declared = PURCHASE_WORKFLOW.find_transition_to(current, to_status.value)
            action = declared.action if declared is not None else f"move_to_{to_status.value}"
            self._workflow_executor.execute_transition(
                PURCHASE_WORKFLOW, ENTITY_TYPE, purchase.id, current, action,
                actor, unit_id=purchase.unit_id, to_state=to_status.value,
            )
            updated = self._repo.save_purchase(dataclasses.replace(purchase, status=to_status))
            write_audit(
                self._repo, self._clock, AuditAction.PURCHASE_STATUS_CHANGED,
                ENTITY_TYPE, purchase.id, actor.id,
                old_values={"status": current},
                new_values={"status": to_status.value},
            )

        logger.info(
            "purchase_status_changed",
            extra={
                "purchase_id": str(purchase.id),
                "from_status": current,
                "to_status": to_status.value,
            },
        )
        return updated

    def finalize(self, purchase_id: UUID, actor: Actor) -> Purchase:
        """Finalize: debit the unit's budget, credit stock, mark ``finalizado``."""
        with self._repo.transaction():
            purchase = self._require_purchase(purchase_id)
            lines = self._repo.list_purchase_lines(purchase.id)
            self._workflow_executor.execute_transition(
                PURCHASE_WORKFLOW, ENTITY_TYPE, purchase.id, purchase.status.value,
                "finalize", actor, unit_id=purchase.unit_id,
                context={"unit_prices": [line.unit_price for line in lines]},
            )

            total = compute_total(lines)
            reference = Reference(ENTITY_TYPE, purchase.id)
            self._budget.debit(
                purchase.unit_id,
                self._clock.today(),
                total,
                description=f"Purchase {purchase.id} finalized",
                reference=reference,
                actor_id=actor.id,
            )
            for line in lines:
                self._transfers.receive(
                    line.item_id,
                    Location.stock(purchase.unit_id),
                    line.quantity,
                    reason="purchase_finalized",
                    reference=reference,
                )
            finalized = self._repo.save_purchase(dataclasses.replace(
                purchase,
                status=PurchaseStatus.FINALIZADO,
                total_value=total,
                finalized_at=self._clock.now(),
            ))
            write_audit(
                self._repo, self._clock, AuditAction.PURCHASE_FINALIZED,
                ENTITY_TYPE, purchase.id, actor.id,
                old_values={"status": purchase.status.value},
                new_values={
                    "status": PurchaseStatus.FINALIZADO.value,
                    "total_value": str(total),
                    "line_count": len(lines),
                },
            )

        logger.info(
            "purchase_finalized",
            extra={
                "purchase_id": str(purchase.id),
                "unit_id": str(purchase.unit_id),
                "total_value": str(total),
                "line_count": len(lines),
            },
        )
        return finalized

    # =========================================================================
    # Queries
    # =========================================================================

    def get_purchase(self, purchase_id: UUID) -> Purchase:
        return self._require_purchase(purchase_id)

    def get_lines(self, purchase_id: UUID) -> list[PurchaseLine]:
        return self._repo.list_purchase_lines(purchase_id)

    def list_purchases(self, unit_id: UUID | None = None) -> list[Purchase]:
        return self._repo.list_purchases(unit_id)

    # =========================================================================
    # Private helpers
    # =========================================================================

    def _require_purchase(self, purchase_id: UUID) -> Purchase:
        purchase = self._repo.get_purchase(purchase_id)
        if purchase is None:
            raise EntityNotFoundError("Purchase", str(purchase_id))
        return purchase

    @staticmethod
    def _reject_if_finalized(purchase: Purchase, action: str) -> None:
        if purchase.is_finalized:
            raise InvalidTransitionError(
                PURCHASE_WORKFLOW.name, str(purchase.id), purchase.status.value, action,
                "finalized purchases are immutable",
            )

    def _add_lines(self, purchase_id: UUID, lines: Sequence[NewPurchaseLine]) -> list[PurchaseLine]:
        stored: list[PurchaseLine] = []
        for new in lines:
            if self._repo.get_item(new.item_id) is None:
                raise EntityNotFoundError("Item", str(new.item_id))
            if not isinstance(new.quantity, Decimal) or new.quantity <= 0:
                raise InvalidQuantityError(str(new.item_id), new.quantity, "line quantity must be positive")
            stored.append(self._repo.add_purchase_line(PurchaseLine(
                id=uuid4(),
                purchase_id=purchase_id,
                item_id=new.item_id,
                quantity=new.quantity,
                unit_price=new.unit_price,
                total_price=line_total(new.quantity, new.unit_price) if new.unit_price is not None else None,
                supplier_id=new.supplier_id,
            )))
        return stored
