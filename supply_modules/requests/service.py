"""
Requests Module Service (``supply_modules.requests.service``).

Responsibility
--------------
Internal requests from a unit to its distribution center (CD): creation,
analysis, approval, sending, delivery of in-transit stock and receipt
confirmation by the requesting unit.

Ledger effects
--------------
* ``send``  -- every line moves from the CD's ``stock`` to the requesting
  unit's ``in_transit`` location, one in-transit record per line.
* ``deliver``  -- one in-transit record moves from ``in_transit`` to the
  requesting unit's ``stock``.  The request becomes ``recebido`` when the
  last record is delivered.
* ``confirm_receipt``  -- the requesting unit's budget is debited by the
  request's ``total_estimated_cost``.

Invariants enforced
-------------------
* Shortfalls are computed before any mutation.  A send either moves every
  line or nothing.
* A delivered in-transit record is never delivered again.
* ``total_estimated_cost`` does not change after the request is sent.

Failure modes
-------------
* ``InvalidTransitionError``  -- action not legal in the current state.
* ``TransitionGuardError``  -- rejection without a reason, or approval of a
  priced request with an unpriced line or an estimate above the requesting
  unit's available budget.
* ``InsufficientBudgetError`` / ``NoBudgetForPeriodError``  -- receipt
  confirmation rejected; the request stays ``recebido``.
* ``InsufficientStockError``  -- stock vanished between the shortfall check
  and the transfer; the whole send rolls back.
* ``PermissionDeniedError``  -- capability or unit scope missing.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from supply_config.schema import RequestPolicy
from supply_kernel.db.types import line_total
from supply_kernel.domain.clock import Clock, SystemClock
from supply_kernel.domain.dtos import AuditAction
from supply_kernel.domain.values import Location, Reference, Shortfall
from supply_kernel.exceptions import (
    EntityNotFoundError,
    InvalidQuantityError,
    InvalidTransitionError,
    TransitionGuardError,
)
from supply_kernel.logging_config import get_logger
from supply_kernel.services.budget_ledger import BudgetLedger
from supply_kernel.services.transfer_coordinator import TransferCoordinator
from supply_modules._helpers import write_audit
from supply_modules.purchasing.models import NewPurchaseLine
from supply_modules.purchasing.service import PurchaseService
from supply_modules.requests.models import (
    InTransitRecord,
    InTransitStatus,
    NewRequestLine,
    Request,
    RequestLine,
    RequestPriority,
    RequestStatus,
    SendOutcome,
    SendResolution,
    SendResult,
)
from supply_modules.requests.repository import RequestsRepository
from supply_modules.requests.workflows import OPEN_STATES, REQUEST_WORKFLOW
from supply_services.rbac_authority import Actor, require_capability
from supply_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.requests.service")

ENTITY_TYPE = "request"

# Actions with side effects beyond the status change; transition() refuses them.
_DEDICATED_ACTIONS = frozenset({"send", "hold_for_purchase", "receive", "confirm_receipt", "reject"})

# Actions authorized against the requesting unit; all others against the CD.
_REQUESTER_ACTIONS = frozenset({"confirm_receipt", "cancel"})


def estimated_cost(lines: Sequence[RequestLine]) -> Decimal:
    """Sum of quantity-to-send times estimated price; unpriced lines count as zero."""
    total = Decimal("0")
    for line in lines:
        if line.estimated_unit_price is not None:
            total += line_total(line.quantity_to_send, line.estimated_unit_price)
    return total


class RequestService:
    """
    Orchestrates internal requests through the workflow and the ledgers.

    The purchase service is used only to open corrective purchases when a
    send finds the CD short and the caller asked for ``create_purchase``.
    """

    def __init__(
        self,
        repository: RequestsRepository,
        workflow_executor: WorkflowExecutor | None = None,
        clock: Clock | None = None,
        budget_ledger: BudgetLedger | None = None,
        transfers: TransferCoordinator | None = None,
        purchases: PurchaseService | None = None,
        policy: RequestPolicy | None = None,
    ):
        self._repo = repository
        self._clock = clock or SystemClock()
        self._workflow_executor = workflow_executor or WorkflowExecutor()
        self._budget = budget_ledger or BudgetLedger(repository, clock=self._clock)
        self._transfers = transfers or TransferCoordinator(repository, clock=self._clock)
        self._purchases = purchases or PurchaseService(
            repository,
            workflow_executor=self._workflow_executor,
            clock=self._clock,
            budget_ledger=self._budget,
            transfers=self._transfers,
        )
        self._policy = policy or RequestPolicy()

    # =========================================================================
    # Creation and editing
    # =========================================================================

    def create_request(
        self,
        requesting_unit_id: UUID,
        cd_unit_id: UUID,
        lines: Sequence[NewRequestLine],
        actor: Actor,
        priority: RequestPriority = RequestPriority.NORMAL,
        notes: str | None = None,
    ) -> Request:
        """Create a request in ``solicitado``."""
        require_capability(actor, "request.create", requesting_unit_id)
        if not lines:
            raise ValueError("A request needs at least one line")

        with self._repo.transaction():
            if self._repo.get_unit(requesting_unit_id) is None:
                raise EntityNotFoundError("Unit", str(requesting_unit_id))
            cd = self._repo.get_unit(cd_unit_id)
            if cd is None:
                raise EntityNotFoundError("Unit", str(cd_unit_id))
            if not cd.is_distribution_center:
                raise ValueError(f"Unit {cd.code} is not a distribution center")
            if cd_unit_id == requesting_unit_id:
                raise ValueError("A unit cannot request from itself")

            request = self._repo.add_request(Request(
                id=uuid4(),
                requesting_unit_id=requesting_unit_id,
                cd_unit_id=cd_unit_id,
                priority=priority,
                notes=notes,
            ))
            stored: list[RequestLine] = []
            for new in lines:
                if self._repo.get_item(new.item_id) is None:
                    raise EntityNotFoundError("Item", str(new.item_id))
                if not isinstance(new.quantity, Decimal) or new.quantity <= 0:
                    raise InvalidQuantityError(
                        str(new.item_id), new.quantity, "requested quantity must be positive",
                    )
                stored.append(self._repo.add_request_line(RequestLine(
                    id=uuid4(),
                    request_id=request.id,
                    item_id=new.item_id,
                    quantity_requested=new.quantity,
                    estimated_unit_price=new.estimated_unit_price,
                )))
            request = self._repo.save_request(
                dataclasses.replace(request, total_estimated_cost=estimated_cost(stored))
            )
            write_audit(
                self._repo, self._clock, AuditAction.REQUEST_CREATED,
                ENTITY_TYPE, request.id, actor.id,
                new_values={
                    "requesting_unit_id": str(requesting_unit_id),
                    "cd_unit_id": str(cd_unit_id),
                    "line_count": len(stored),
                    "total_estimated_cost": str(request.total_estimated_cost),
                },
            )

        logger.info(
            "request_created",
            extra={
                "request_id": str(request.id),
                "requesting_unit_id": str(requesting_unit_id),
                "cd_unit_id": str(cd_unit_id),
                "line_count": len(stored),
                "priority": priority.value,
            },
        )
        return request

    def adjust_quantities(
        self,
        request_id: UUID,
        approved: Mapping[UUID, Decimal],
        actor: Actor,
    ) -> Request:
        """Set approved quantities per item before the request is sent.

        Each approved quantity must lie in ``[0, quantity_requested]``.
        The estimated cost is recomputed from the approved quantities.
        """
        with self._repo.transaction():
            request = self._require_request(request_id)
            require_capability(actor, "request.approve", request.cd_unit_id)
            if request.status.value not in OPEN_STATES:
                raise InvalidTransitionError(
                    REQUEST_WORKFLOW.name, str(request.id), request.status.value,
                    "adjust_quantities", "quantities are fixed once the request is sent",
                )

            lines = self._repo.list_request_lines(request.id)
            by_item = {line.item_id: line for line in lines}
            for item_id in approved:
                if item_id not in by_item:
                    raise EntityNotFoundError("RequestLine", f"{request.id}/{item_id}")

            updated: list[RequestLine] = []
            for line in lines:
                if line.item_id in approved:
                    quantity = approved[line.item_id]
                    if not isinstance(quantity, Decimal) or quantity < 0 or quantity > line.quantity_requested:
                        raise InvalidQuantityError(
                            str(line.item_id), quantity,
                            f"approved quantity must lie between 0 and {line.quantity_requested}",
                        )
                    line = self._repo.save_request_line(
                        dataclasses.replace(line, quantity_approved=quantity)
                    )
                updated.append(line)

            old_cost = request.total_estimated_cost
            request = self._repo.save_request(
                dataclasses.replace(request, total_estimated_cost=estimated_cost(updated))
            )

        logger.info(
            "request_quantities_adjusted",
            extra={
                "request_id": str(request.id),
                "adjusted_lines": len(approved),
                "old_estimated_cost": str(old_cost),
                "new_estimated_cost": str(request.total_estimated_cost),
            },
        )
        return request

    # =========================================================================
    # Status-only transitions
    # =========================================================================

    def transition(
        self,
        request_id: UUID,
        to_status: RequestStatus,
        actor: Actor,
    ) -> Request:
        """Apply a status-only transition (analyze, approve, prepare, cancel, ...)."""
        with self._repo.transaction():
            request = self._require_request(request_id)
            current = request.status.value
            declared = REQUEST_WORKFLOW.find_transition_to(current, to_status.value)
            if declared is not None and declared.action in _DEDICATED_ACTIONS:
                raise InvalidTransitionError(
                    REQUEST_WORKFLOW.name, str(request.id), current, declared.action,
                    f"'{declared.action}' has its own operation",
                )
            action = declared.action if declared is not None else f"move_to_{to_status.value}"
            context = self._approval_context(request) if to_status is RequestStatus.APROVADO else None
            return self._apply_status(request, action, actor, to_state=to_status.value, context=context)

    def approve(self, request_id: UUID, actor: Actor) -> Request:
        return self.transition(request_id, RequestStatus.APROVADO, actor)

    def cancel(self, request_id: UUID, actor: Actor) -> Request:
        return self.transition(request_id, RequestStatus.CANCELADO, actor)

    def reject(self, request_id: UUID, reason: str, actor: Actor) -> Request:
        """Reject with a mandatory reason."""
        with self._repo.transaction():
            request = self._require_request(request_id)
            return self._apply_status(
                request, "reject", actor,
                context={"reason": reason},
                changes={"rejection_reason": reason},
            )

    # =========================================================================
    # Send
    # =========================================================================

    def send(
        self,
        request_id: UUID,
        actor: Actor,
        resolution: SendResolution | None = None,
    ) -> SendResult:
        """Ship the request from the CD.

        When the CD's stock covers every line, each line moves to the
        requesting unit's ``in_transit`` location and the request becomes
        ``enviado``.  Otherwise nothing moves: with ``abort`` the shortfalls
        are returned; with ``create_purchase`` a corrective purchase for the
        missing quantities is opened for the CD and the request becomes
        ``aprovado-pendente``.
        """
        resolution = resolution or SendResolution(self._policy.default_send_resolution)

        with self._repo.transaction():
            request = self._require_request(request_id)
            lines = self._repo.list_request_lines(request.id)
            shortfalls = self._shortfalls(request, lines)

            if not shortfalls:
                return self._ship(request, lines, actor)

            already_pending = request.status is RequestStatus.APROVADO_PENDENTE
            if resolution is SendResolution.CREATE_PURCHASE and not already_pending:
                return self._hold_for_purchase(request, shortfalls, actor)

            try:
                self._workflow_executor.execute_transition(
                    REQUEST_WORKFLOW, ENTITY_TYPE, request.id, request.status.value,
                    "send", actor, unit_id=request.cd_unit_id,
                    context={"shortfall_count": len(shortfalls)},
                )
            except TransitionGuardError:
                logger.warning(
                    "request_send_aborted",
                    extra={
                        "request_id": str(request.id),
                        "cd_unit_id": str(request.cd_unit_id),
                        "shortfall_count": len(shortfalls),
                        "resolution": resolution.value,
                    },
                )
                return SendResult(
                    outcome=SendOutcome.ABORTED,
                    request=request,
                    shortfalls=tuple(shortfalls),
                )
            # Unreachable while the send transition carries the stock guard
            raise InvalidTransitionError(
                REQUEST_WORKFLOW.name, str(request.id), request.status.value, "send",
                "send accepted despite missing stock",
            )

    def _ship(self, request: Request, lines: list[RequestLine], actor: Actor) -> SendResult:
        self._workflow_executor.execute_transition(
            REQUEST_WORKFLOW, ENTITY_TYPE, request.id, request.status.value,
            "send", actor, unit_id=request.cd_unit_id,
            context={"shortfall_count": 0},
        )
        now = self._clock.now()
        reference = Reference(ENTITY_TYPE, request.id)
        records: list[InTransitRecord] = []
        for line in lines:
            quantity = line.quantity_to_send
            if quantity > 0:
                self._transfers.transfer(
                    line.item_id,
                    Location.stock(request.cd_unit_id),
                    Location.in_transit(request.requesting_unit_id),
                    quantity,
                    reason="request_sent",
                    reference=reference,
                )
                records.append(self._repo.add_in_transit(InTransitRecord(
                    id=uuid4(),
                    request_id=request.id,
                    item_id=line.item_id,
                    from_unit_id=request.cd_unit_id,
                    to_unit_id=request.requesting_unit_id,
                    quantity=quantity,
                    shipped_at=now,
                )))
            self._repo.save_request_line(dataclasses.replace(line, quantity_sent=quantity))

        sent = self._repo.save_request(dataclasses.replace(
            request, status=RequestStatus.ENVIADO, sent_at=now,
        ))
        write_audit(
            self._repo, self._clock, AuditAction.REQUEST_SENT,
            ENTITY_TYPE, request.id, actor.id,
            old_values={"status": request.status.value},
            new_values={
                "status": RequestStatus.ENVIADO.value,
                "in_transit_count": len(records),
                "total_estimated_cost": str(request.total_estimated_cost),
            },
        )
        logger.info(
            "request_sent",
            extra={
                "request_id": str(request.id),
                "cd_unit_id": str(request.cd_unit_id),
                "requesting_unit_id": str(request.requesting_unit_id),
                "in_transit_count": len(records),
            },
        )
        if not records:
            # Nothing left the CD; no delivery will ever close the request
            sent = self._apply_status(
                sent, "receive", actor,
                context={"pending_deliveries": 0},
                unit_id=request.cd_unit_id,
            )
        return SendResult(outcome=SendOutcome.SENT, request=sent, in_transit=tuple(records))

    def _hold_for_purchase(
        self,
        request: Request,
        shortfalls: list[Shortfall],
        actor: Actor,
    ) -> SendResult:
        self._workflow_executor.execute_transition(
            REQUEST_WORKFLOW, ENTITY_TYPE, request.id, request.status.value,
            "hold_for_purchase", actor, unit_id=request.cd_unit_id,
        )
        prices = {
            line.item_id: line.estimated_unit_price
            for line in self._repo.list_request_lines(request.id)
        }
        purchase = self._purchases.open_purchase(
            request.cd_unit_id,
            [
                NewPurchaseLine(item_id=s.item_id, quantity=s.missing, unit_price=prices.get(s.item_id))
                for s in shortfalls
            ],
            actor.id,
            notes=self._policy.corrective_purchase_notes,
            request_id=request.id,
        )
        pending = self._repo.save_request(
            dataclasses.replace(request, status=RequestStatus.APROVADO_PENDENTE)
        )
        write_audit(
            self._repo, self._clock, AuditAction.REQUEST_STATUS_CHANGED,
            ENTITY_TYPE, request.id, actor.id,
            old_values={"status": request.status.value},
            new_values={
                "status": RequestStatus.APROVADO_PENDENTE.value,
                "corrective_purchase_id": str(purchase.id),
            },
        )
        logger.info(
            "request_pending_purchase",
            extra={
                "request_id": str(request.id),
                "purchase_id": str(purchase.id),
                "shortfall_count": len(shortfalls),
            },
        )
        return SendResult(
            outcome=SendOutcome.PENDING_PURCHASE,
            request=pending,
            shortfalls=tuple(shortfalls),
            corrective_purchase_id=purchase.id,
        )

    # =========================================================================
    # Delivery and receipt
    # =========================================================================

    def deliver(self, in_transit_id: UUID, actor: Actor) -> InTransitRecord:
        """Deliver one in-transit record into the requesting unit's stock."""
        with self._repo.transaction():
            record = self._repo.get_in_transit(in_transit_id)
            if record is None:
                raise EntityNotFoundError("InTransitRecord", str(in_transit_id))
            require_capability(actor, "request.deliver", record.from_unit_id)

            now = self._clock.now()
            if not self._repo.mark_in_transit_delivered(record.id, now):
                raise InvalidTransitionError(
                    "in_transit", str(record.id), InTransitStatus.DELIVERED.value,
                    "deliver", "record was already delivered",
                )
            self._transfers.transfer(
                record.item_id,
                Location.in_transit(record.to_unit_id),
                Location.stock(record.to_unit_id),
                record.quantity,
                reason="request_delivered",
                reference=Reference(ENTITY_TYPE, record.request_id),
            )
            delivered = dataclasses.replace(
                record, status=InTransitStatus.DELIVERED, delivered_at=now,
            )

            pending = sum(
                1 for r in self._repo.list_in_transit(record.request_id)
                if r.status is InTransitStatus.IN_TRANSIT
            )
            if pending == 0:
                request = self._require_request(record.request_id)
                self._apply_status(
                    request, "receive", actor,
                    context={"pending_deliveries": pending},
                    unit_id=record.from_unit_id,
                )

        logger.info(
            "in_transit_delivered",
            extra={
                "in_transit_id": str(record.id),
                "request_id": str(record.request_id),
                "item_id": str(record.item_id),
                "quantity": str(record.quantity),
                "pending_deliveries": pending,
            },
        )
        return delivered

    def confirm_receipt(self, request_id: UUID, actor: Actor) -> Request:
        """Confirm receipt: debit the requesting unit's budget and close the request."""
        with self._repo.transaction():
            request = self._require_request(request_id)
            self._workflow_executor.execute_transition(
                REQUEST_WORKFLOW, ENTITY_TYPE, request.id, request.status.value,
                "confirm_receipt", actor, unit_id=request.requesting_unit_id,
            )
            today = self._clock.today()
            consumed = request.total_estimated_cost > 0
            if consumed:
                self._budget.debit(
                    request.requesting_unit_id,
                    today,
                    request.total_estimated_cost,
                    description=f"Request {request.id} received",
                    reference=Reference(ENTITY_TYPE, request.id),
                    actor_id=actor.id,
                )
            confirmed = self._repo.save_request(dataclasses.replace(
                request,
                status=RequestStatus.APROVADO_UNIDADE,
                budget_consumed=consumed,
                budget_consumption_date=today if consumed else None,
            ))
            write_audit(
                self._repo, self._clock, AuditAction.REQUEST_RECEIPT_CONFIRMED,
                ENTITY_TYPE, request.id, actor.id,
                old_values={"status": request.status.value},
                new_values={
                    "status": RequestStatus.APROVADO_UNIDADE.value,
                    "budget_consumed": str(request.total_estimated_cost) if consumed else "0",
                },
            )

        logger.info(
            "request_receipt_confirmed",
            extra={
                "request_id": str(request.id),
                "requesting_unit_id": str(request.requesting_unit_id),
                "amount": str(request.total_estimated_cost),
            },
        )
        return confirmed

    # =========================================================================
    # Queries
    # =========================================================================

    def get_request(self, request_id: UUID) -> Request:
        return self._require_request(request_id)

    def get_lines(self, request_id: UUID) -> list[RequestLine]:
        return self._repo.list_request_lines(request_id)

    def list_requests(self, unit_id: UUID | None = None) -> list[Request]:
        return self._repo.list_requests(unit_id)

    def list_in_transit(self, request_id: UUID) -> list[InTransitRecord]:
        return self._repo.list_in_transit(request_id)

    def shortfalls(self, request_id: UUID) -> list[Shortfall]:
        """Items the CD cannot currently cover for this request."""
        request = self._require_request(request_id)
        return self._shortfalls(request, self._repo.list_request_lines(request.id))

    # =========================================================================
    # Private helpers
    # =========================================================================

    def _require_request(self, request_id: UUID) -> Request:
        request = self._repo.get_request(request_id)
        if request is None:
            raise EntityNotFoundError("Request", str(request_id))
        return request

    def _approval_context(self, request: Request) -> dict[str, Any]:
        """Estimate and today's available budget of the requesting unit.

        Only read here; the budget is debited at receipt confirmation.
        """
        lines = self._repo.list_request_lines(request.id)
        budget = self._repo.find_budget(request.requesting_unit_id, self._clock.today())
        return {
            "estimated_cost": estimated_cost(lines),
            "unpriced_lines": [
                n for n, line in enumerate(lines, start=1)
                if line.estimated_unit_price is None or line.estimated_unit_price <= 0
            ],
            "available_budget": budget.available_amount if budget is not None else None,
        }

    def _shortfalls(self, request: Request, lines: Sequence[RequestLine]) -> list[Shortfall]:
        needed: dict[UUID, Decimal] = {}
        for line in lines:
            if line.quantity_to_send > 0:
                needed[line.item_id] = needed.get(line.item_id, Decimal("0")) + line.quantity_to_send

        location = Location.stock(request.cd_unit_id)
        shortfalls = []
        for item_id, quantity in needed.items():
            available = self._repo.get_stock_quantity(item_id, location)
            if available < quantity:
                shortfalls.append(Shortfall(item_id, location, quantity, available))
        return shortfalls

    def _apply_status(
        self,
        request: Request,
        action: str,
        actor: Actor,
        to_state: str | None = None,
        context: dict[str, Any] | None = None,
        changes: dict[str, Any] | None = None,
        unit_id: UUID | None = None,
    ) -> Request:
        if unit_id is None:
            unit_id = request.requesting_unit_id if action in _REQUESTER_ACTIONS else request.cd_unit_id
        current = request.status.value
        transition = self._workflow_executor.execute_transition(
            REQUEST_WORKFLOW, ENTITY_TYPE, request.id, current, action,
            actor, unit_id=unit_id, to_state=to_state, context=context,
        )
        new_status = RequestStatus(transition.to_state)
        updated = self._repo.save_request(
            dataclasses.replace(request, status=new_status, **(changes or {}))
        )
        write_audit(
            self._repo, self._clock, AuditAction.REQUEST_STATUS_CHANGED,
            ENTITY_TYPE, request.id, actor.id,
            old_values={"status": current},
            new_values={"status": new_status.value, "action": action},
        )
        logger.info(
            "request_status_changed",
            extra={
                "request_id": str(request.id),
                "action": action,
                "from_status": current,
                "to_status": new_status.value,
            },
        )
        return updated
