"""
Quotation Domain Models (``supply_modules.quotation.models``).

A quotation asks suppliers to price the items of one purchase.  Each
response prices one item; at most one response per (quotation, item) is
selected, and its price is the one written onto the purchase line.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class QuotationStatus(Enum):
    ABERTA = "aberta"
    FECHADA = "fechada"
    CANCELADA = "cancelada"


@dataclass(frozen=True)
class Quotation:
    id: UUID
    purchase_id: UUID
    status: QuotationStatus = QuotationStatus.ABERTA
    title: str | None = None
    deadline: date | None = None


@dataclass(frozen=True)
class QuotationResponse:
    """One supplier's price for one item of the quoted purchase."""
    id: UUID
    quotation_id: UUID
    item_id: UUID
    supplier_id: UUID
    unit_price: Decimal
    delivery_time_days: int | None = None
    is_selected: bool = False
    notes: str | None = None


@dataclass(frozen=True)
class PriceHistory:
    """Price observed for an item when a response was selected."""
    id: UUID
    item_id: UUID
    supplier_id: UUID
    unit_price: Decimal
    quotation_id: UUID
    recorded_on: date
