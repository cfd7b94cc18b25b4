"""
Purchasing Domain Models (``supply_modules.purchasing.models``).

Responsibility
--------------
Frozen value objects for purchase orders and their line items.  Status
values are the wire values the application stores.

Invariants
----------
* ``Purchase.version`` increases by one on every persisted change; a save
  with a stale version is rejected.
* ``PurchaseLine.total_price`` is ``quantity * unit_price`` rounded as
  money, or None while the line has no price.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class PurchaseStatus(Enum):
    """Purchase order states."""
    PEDIDO_REALIZADO = "pedido-realizado"
    EM_COTACAO = "em-cotacao"
    COMPRADO_AGUARDANDO = "comprado-aguardando"
    CHEGOU_CD = "chegou-cd"
    ENVIADO = "enviado"
    ERRO_PEDIDO = "erro-pedido"
    FINALIZADO = "finalizado"


@dataclass(frozen=True)
class Purchase:
    """A purchase order owned by one unit."""
    id: UUID
    unit_id: UUID
    status: PurchaseStatus = PurchaseStatus.PEDIDO_REALIZADO
    total_value: Decimal = Decimal("0")
    supplier_id: UUID | None = None
    request_id: UUID | None = None
    notes: str | None = None
    version: int = 0
    finalized_at: datetime | None = None

    @property
    def is_finalized(self) -> bool:
        return self.status is PurchaseStatus.FINALIZADO


@dataclass(frozen=True)
class PurchaseLine:
    """One item of a purchase order."""
    id: UUID
    purchase_id: UUID
    item_id: UUID
    quantity: Decimal
    unit_price: Decimal | None = None
    total_price: Decimal | None = None
    supplier_id: UUID | None = None


@dataclass(frozen=True)
class NewPurchaseLine:
    """Caller input for a line of a new or edited purchase."""
    item_id: UUID
    quantity: Decimal
    unit_price: Decimal | None = None
    supplier_id: UUID | None = None
