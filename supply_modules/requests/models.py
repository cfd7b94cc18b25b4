"""
Request Domain Models (``supply_modules.requests.models``).

Responsibility
--------------
Frozen value objects for internal requests from a unit to a distribution
center (CD), their lines, the in-transit records created when a request
is sent, and the result of a send attempt.

Invariants
----------
* ``total_estimated_cost`` is fixed once the request is sent; receipt
  confirmation consumes exactly that amount.
* ``quantity_approved`` never exceeds ``quantity_requested``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from supply_kernel.domain.values import Shortfall


class RequestStatus(Enum):
    """Internal request states."""
    SOLICITADO = "solicitado"
    ANALISANDO = "analisando"
    APROVADO = "aprovado"
    APROVADO_PENDENTE = "aprovado-pendente"
    REJEITADO = "rejeitado"
    PREPARANDO = "preparando"
    ENVIADO = "enviado"
    RECEBIDO = "recebido"
    APROVADO_UNIDADE = "aprovado-unidade"
    ERRO_PEDIDO = "erro-pedido"
    CANCELADO = "cancelado"


class RequestPriority(Enum):
    BAIXA = "baixa"
    NORMAL = "normal"
    ALTA = "alta"
    URGENTE = "urgente"


class InTransitStatus(Enum):
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"


class SendResolution(Enum):
    """What to do when the CD lacks stock for a request being sent."""
    ABORT = "abort"
    CREATE_PURCHASE = "create_purchase"


class SendOutcome(Enum):
    SENT = "sent"
    ABORTED = "aborted"
    PENDING_PURCHASE = "pending_purchase"


@dataclass(frozen=True)
class Request:
    """An internal request from a unit to a distribution center."""
    id: UUID
    requesting_unit_id: UUID
    cd_unit_id: UUID
    status: RequestStatus = RequestStatus.SOLICITADO
    priority: RequestPriority = RequestPriority.NORMAL
    total_estimated_cost: Decimal = Decimal("0")
    budget_consumed: bool = False
    budget_consumption_date: date | None = None
    rejection_reason: str | None = None
    notes: str | None = None
    version: int = 0
    sent_at: datetime | None = None


@dataclass(frozen=True)
class RequestLine:
    id: UUID
    request_id: UUID
    item_id: UUID
    quantity_requested: Decimal
    quantity_approved: Decimal | None = None
    quantity_sent: Decimal | None = None
    estimated_unit_price: Decimal | None = None

    @property
    def quantity_to_send(self) -> Decimal:
        """Approved quantity when set, otherwise the requested quantity."""
        if self.quantity_approved is not None:
            return self.quantity_approved
        return self.quantity_requested


@dataclass(frozen=True)
class NewRequestLine:
    """Caller input for a line of a new request."""
    item_id: UUID
    quantity: Decimal
    estimated_unit_price: Decimal | None = None


@dataclass(frozen=True)
class InTransitRecord:
    """Stock shipped from a CD and not yet received by the requesting unit."""
    id: UUID
    request_id: UUID
    item_id: UUID
    from_unit_id: UUID
    to_unit_id: UUID
    quantity: Decimal
    shipped_at: datetime
    status: InTransitStatus = InTransitStatus.IN_TRANSIT
    delivered_at: datetime | None = None


@dataclass(frozen=True)
class SendResult:
    """
    Outcome of ``RequestService.send``.

    ``shortfalls`` lists every item the CD could not cover; it is empty
    exactly when the request was sent.
    """
    outcome: SendOutcome
    request: Request
    shortfalls: tuple[Shortfall, ...] = ()
    in_transit: tuple[InTransitRecord, ...] = ()
    corrective_purchase_id: UUID | None = None

    @property
    def is_success(self) -> bool:
        return self.outcome is SendOutcome.SENT

    def shortfall_for(self, item_id: UUID) -> Decimal:
        return sum(
            (s.missing for s in self.shortfalls if s.item_id == item_id),
            Decimal("0"),
        )
