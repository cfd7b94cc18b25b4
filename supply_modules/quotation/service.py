"""
Quotation Module Service (``supply_modules.quotation.service``).

Responsibility
--------------
Collects supplier responses for the items of a purchase and keeps the
purchase's line prices in step with the selected response per item.

Invariants enforced
-------------------
* At most one response per (quotation, item) is selected.
* Selecting writes the response's price and supplier onto the purchase
  lines of that item and recomputes the purchase total; deselecting
  clears them.  Neither touches budget or stock.
* A finalized purchase refuses selection changes.

Failure modes
-------------
* ``DuplicateSelectionError``  -- storage already holds another selected
  response for the pair.
* ``InvalidTransitionError``  -- quotation cancelled, or purchase finalized.
* ``InvalidAmountError``  -- non-positive response price.
* ``PermissionDeniedError``  -- capability or unit scope missing.
"""

from __future__ import annotations

import dataclasses
from collections import defaultdict
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from supply_kernel.domain.clock import Clock, SystemClock
from supply_kernel.domain.dtos import AuditAction
from supply_kernel.exceptions import (
    EntityNotFoundError,
    InvalidAmountError,
    InvalidTransitionError,
)
from supply_kernel.logging_config import get_logger
from supply_modules._helpers import write_audit
from supply_modules.purchasing.models import Purchase, PurchaseStatus
from supply_modules.purchasing.service import PurchaseService
from supply_modules.quotation.models import (
    PriceHistory,
    Quotation,
    QuotationResponse,
    QuotationStatus,
)
from supply_modules.quotation.repository import QuotationRepository
from supply_modules.quotation.workflows import QUOTATION_WORKFLOW
from supply_services.rbac_authority import Actor, require_capability
from supply_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.quotation.service")

ENTITY_TYPE = "quotation"

_QUOTABLE_PURCHASE_STATES = (PurchaseStatus.PEDIDO_REALIZADO, PurchaseStatus.EM_COTACAO)


class QuotationService:
    """Supplier quotations and response selection."""

    def __init__(
        self,
        repository: QuotationRepository,
        workflow_executor: WorkflowExecutor | None = None,
        clock: Clock | None = None,
        purchases: PurchaseService | None = None,
    ):
        self._repo = repository
        self._clock = clock or SystemClock()
        self._workflow_executor = workflow_executor or WorkflowExecutor()
        self._purchases = purchases or PurchaseService(
            repository, workflow_executor=self._workflow_executor, clock=self._clock,
        )

    # =========================================================================
    # Quotations and responses
    # =========================================================================

    def create_quotation(
        self,
        purchase_id: UUID,
        actor: Actor,
        title: str | None = None,
        deadline: date | None = None,
    ) -> Quotation:
        """Open a quotation for a purchase and move the purchase to ``em-cotacao``."""
        with self._repo.transaction():
            purchase = self._purchases.get_purchase(purchase_id)
            require_capability(actor, "quotation.manage", purchase.unit_id)
            if purchase.status not in _QUOTABLE_PURCHASE_STATES:
                raise InvalidTransitionError(
                    QUOTATION_WORKFLOW.name, str(purchase.id), purchase.status.value,
                    "create_quotation",
                    "only purchases in pedido-realizado or em-cotacao can be quoted",
                )
            if purchase.status is PurchaseStatus.PEDIDO_REALIZADO:
                self._purchases.transition(purchase.id, PurchaseStatus.EM_COTACAO, actor)

            quotation = self._repo.add_quotation(Quotation(
                id=uuid4(),
                purchase_id=purchase.id,
                title=title,
                deadline=deadline,
            ))

        logger.info(
            "quotation_created",
            extra={
                "quotation_id": str(quotation.id),
                "purchase_id": str(purchase.id),
            },
        )
        return quotation

    def add_response(
        self,
        quotation_id: UUID,
        item_id: UUID,
        supplier_id: UUID,
        unit_price: Decimal,
        actor: Actor,
        delivery_time_days: int | None = None,
        notes: str | None = None,
    ) -> QuotationResponse:
        """Record one supplier's price for an item of the quoted purchase."""
        with self._repo.transaction():
            quotation = self._require_quotation(quotation_id)
            purchase = self._purchases.get_purchase(quotation.purchase_id)
            require_capability(actor, "quotation.manage", purchase.unit_id)
            if quotation.status is not QuotationStatus.ABERTA:
                raise InvalidTransitionError(
                    QUOTATION_WORKFLOW.name, str(quotation.id), quotation.status.value,
                    "add_response", "responses are accepted only while the quotation is open",
                )
            if not isinstance(unit_price, Decimal) or unit_price <= 0:
                raise InvalidAmountError(unit_price, "response price must be positive")
            if item_id not in {line.item_id for line in self._purchases.get_lines(purchase.id)}:
                raise EntityNotFoundError("PurchaseLine", f"{purchase.id}/{item_id}")

            response = self._repo.add_response(QuotationResponse(
                id=uuid4(),
                quotation_id=quotation.id,
                item_id=item_id,
                supplier_id=supplier_id,
                unit_price=unit_price,
                delivery_time_days=delivery_time_days,
                notes=notes,
            ))

        logger.info(
            "quotation_response_added",
            extra={
                "quotation_id": str(quotation.id),
                "response_id": str(response.id),
                "item_id": str(item_id),
                "unit_price": str(unit_price),
            },
        )
        return response

    # =========================================================================
    # Selection
    # =========================================================================

    def select_response(self, response_id: UUID, actor: Actor) -> QuotationResponse:
        """Select a response and write its price onto the purchase."""
        with self._repo.transaction():
            response = self._require_response(response_id)
            quotation, purchase = self._check_selectable(response, actor, "select_response")
            if response.is_selected:
                return response

            cleared = self._repo.clear_selection(quotation.id, response.item_id)
            selected = self._repo.set_response_selected(response.id, True)
            updated = self._purchases.set_line_price(
                purchase.id, response.item_id, response.unit_price, response.supplier_id,
            )
            self._repo.add_price_history(PriceHistory(
                id=uuid4(),
                item_id=response.item_id,
                supplier_id=response.supplier_id,
                unit_price=response.unit_price,
                quotation_id=quotation.id,
                recorded_on=self._clock.today(),
            ))
            write_audit(
                self._repo, self._clock, AuditAction.QUOTATION_RESPONSE_SELECTED,
                ENTITY_TYPE, quotation.id, actor.id,
                new_values={
                    "response_id": str(response.id),
                    "item_id": str(response.item_id),
                    "unit_price": str(response.unit_price),
                    "purchase_total": str(updated.total_value),
                },
            )

        logger.info(
            "quotation_response_selected",
            extra={
                "quotation_id": str(quotation.id),
                "response_id": str(response.id),
                "item_id": str(response.item_id),
                "replaced_selection": cleared > 0,
                "purchase_total": str(updated.total_value),
            },
        )
        return selected

    def deselect_response(self, response_id: UUID, actor: Actor) -> QuotationResponse:
        """Clear a selection and the price it wrote onto the purchase."""
        with self._repo.transaction():
            response = self._require_response(response_id)
            quotation, purchase = self._check_selectable(response, actor, "deselect_response")
            if not response.is_selected:
                return response

            deselected = self._repo.set_response_selected(response.id, False)
            updated = self._purchases.set_line_price(purchase.id, response.item_id, None, None)
            write_audit(
                self._repo, self._clock, AuditAction.QUOTATION_RESPONSE_DESELECTED,
                ENTITY_TYPE, quotation.id, actor.id,
                old_values={
                    "response_id": str(response.id),
                    "unit_price": str(response.unit_price),
                },
                new_values={"purchase_total": str(updated.total_value)},
            )

        logger.info(
            "quotation_response_deselected",
            extra={
                "quotation_id": str(quotation.id),
                "response_id": str(response.id),
                "item_id": str(response.item_id),
            },
        )
        return deselected

    # =========================================================================
    # Workflow
    # =========================================================================

    def close(self, quotation_id: UUID, actor: Actor) -> Quotation:
        return self._transition(quotation_id, "close", actor)

    def cancel(self, quotation_id: UUID, actor: Actor) -> Quotation:
        return self._transition(quotation_id, "cancel", actor)

    def _transition(self, quotation_id: UUID, action: str, actor: Actor) -> Quotation:
        with self._repo.transaction():
            quotation = self._require_quotation(quotation_id)
            purchase = self._purchases.get_purchase(quotation.purchase_id)
            transition = self._workflow_executor.execute_transition(
                QUOTATION_WORKFLOW, ENTITY_TYPE, quotation.id, quotation.status.value,
                action, actor, unit_id=purchase.unit_id,
            )
            updated = self._repo.save_quotation(
                dataclasses.replace(quotation, status=QuotationStatus(transition.to_state))
            )

        logger.info(
            "quotation_status_changed",
            extra={
                "quotation_id": str(quotation.id),
                "from_status": quotation.status.value,
                "to_status": updated.status.value,
            },
        )
        return updated

    # =========================================================================
    # Queries
    # =========================================================================

    def get_quotation(self, quotation_id: UUID) -> Quotation:
        return self._require_quotation(quotation_id)

    def list_quotations(self, purchase_id: UUID | None = None) -> list[Quotation]:
        return self._repo.list_quotations(purchase_id)

    def list_responses(self, quotation_id: UUID, item_id: UUID | None = None) -> list[QuotationResponse]:
        return self._repo.list_responses(quotation_id, item_id)

    def compare(self, quotation_id: UUID) -> dict[UUID, list[QuotationResponse]]:
        """Responses grouped per item, cheapest first, faster delivery breaking ties."""
        grouped: dict[UUID, list[QuotationResponse]] = defaultdict(list)
        for response in self._repo.list_responses(quotation_id):
            grouped[response.item_id].append(response)
        for responses in grouped.values():
            responses.sort(key=lambda r: (
                r.unit_price,
                r.delivery_time_days if r.delivery_time_days is not None else float("inf"),
            ))
        return dict(grouped)

    def price_history(self, item_id: UUID) -> list[PriceHistory]:
        return self._repo.list_price_history(item_id)

    # =========================================================================
    # Private helpers
    # =========================================================================

    def _require_quotation(self, quotation_id: UUID) -> Quotation:
        quotation = self._repo.get_quotation(quotation_id)
        if quotation is None:
            raise EntityNotFoundError("Quotation", str(quotation_id))
        return quotation

    def _require_response(self, response_id: UUID) -> QuotationResponse:
        response = self._repo.get_response(response_id)
        if response is None:
            raise EntityNotFoundError("QuotationResponse", str(response_id))
        return response

    def _check_selectable(
        self,
        response: QuotationResponse,
        actor: Actor,
        action: str,
    ) -> tuple[Quotation, Purchase]:
        quotation = self._require_quotation(response.quotation_id)
        purchase = self._purchases.get_purchase(quotation.purchase_id)
        require_capability(actor, "quotation.select", purchase.unit_id)
        if quotation.status is QuotationStatus.CANCELADA:
            raise InvalidTransitionError(
                QUOTATION_WORKFLOW.name, str(quotation.id), quotation.status.value,
                action, "cancelled quotations accept no selection changes",
            )
        if purchase.is_finalized:
            raise InvalidTransitionError(
                "purchase", str(purchase.id), purchase.status.value,
                action, "finalized purchases are immutable",
            )
        return quotation, purchase
