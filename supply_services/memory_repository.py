"""
supply_services.memory_repository -- In-memory repository.

Responsibility:
    Implements ``SupplyRepository`` on plain dictionaries for tests and
    single-process tools.

Architecture position:
    Services layer.  No database; DTOs are frozen so stored objects are
    shared without copying.

Invariants enforced:
    - One re-entrant lock serializes transactions across threads; every
      conditional write runs under it, so check and apply are atomic.
    - The outermost ``transaction()`` snapshots the state and restores it
      when the block raises.  Inner scopes join the outer one.
    - Versioned saves reject a stale version with OptimisticLockError.
"""

from __future__ import annotations

import copy
import dataclasses
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
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
from supply_kernel.domain.values import Location, LocationKind
from supply_kernel.exceptions import (
    DuplicateSelectionError,
    EntityNotFoundError,
    OptimisticLockError,
)
from supply_kernel.logging_config import get_logger
from supply_modules.inventory.models import InventoryEvent, InventoryRecord
from supply_modules.purchasing.models import Purchase, PurchaseLine
from supply_modules.quotation.models import PriceHistory, Quotation, QuotationResponse
from supply_modules.requests.models import (
    InTransitRecord,
    InTransitStatus,
    Request,
    RequestLine,
)

logger = get_logger("services.memory_repository")

_StockKey = tuple[UUID, UUID, LocationKind]


@dataclass
class _State:
    units: dict[UUID, Unit] = field(default_factory=dict)
    items: dict[UUID, Item] = field(default_factory=dict)
    budgets: dict[UUID, Budget] = field(default_factory=dict)
    stock: dict[_StockKey, Decimal] = field(default_factory=dict)
    movements: list[MovementRecord] = field(default_factory=list)
    financial_transactions: list[FinancialTransaction] = field(default_factory=list)
    audit_events: list[AuditEvent] = field(default_factory=list)
    inventory_records: dict[UUID, InventoryRecord] = field(default_factory=dict)
    inventory_events: dict[UUID, InventoryEvent] = field(default_factory=dict)
    purchases: dict[UUID, Purchase] = field(default_factory=dict)
    purchase_lines: dict[UUID, PurchaseLine] = field(default_factory=dict)
    requests: dict[UUID, Request] = field(default_factory=dict)
    request_lines: dict[UUID, RequestLine] = field(default_factory=dict)
    in_transit: dict[UUID, InTransitRecord] = field(default_factory=dict)
    quotations: dict[UUID, Quotation] = field(default_factory=dict)
    responses: dict[UUID, QuotationResponse] = field(default_factory=dict)
    price_history: list[PriceHistory] = field(default_factory=list)

    def snapshot(self) -> _State:
        """Copy every container; the frozen DTOs inside are shared."""
        return _State(**{
            f.name: copy.copy(getattr(self, f.name)) for f in dataclasses.fields(self)
        })


def _stock_key(item_id: UUID, location: Location) -> _StockKey:
    return (item_id, location.unit_id, location.kind)


def _in_range(moment: datetime, start: date | None, end: date | None) -> bool:
    day = moment.date()
    if start is not None and day < start:
        return False
    if end is not None and day > end:
        return False
    return True


class InMemoryRepository:
    """Dictionary-backed ``SupplyRepository``."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._depth = 0
        self._state = _State()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            outermost = self._depth == 0
            snapshot = self._state.snapshot() if outermost else None
            self._depth += 1
            try:
                yield
            except Exception:
                if outermost:
                    self._state = snapshot
                    logger.debug("memory_transaction_rolled_back")
                raise
            finally:
                self._depth -= 1

    # =========================================================================
    # Units and items
    # =========================================================================

    def add_unit(self, unit: Unit) -> Unit:
        with self._lock:
            if any(u.code == unit.code for u in self._state.units.values()):
                raise ValueError(f"Unit code already exists: {unit.code}")
            self._state.units[unit.id] = unit
            return unit

    def get_unit(self, unit_id: UUID) -> Unit | None:
        return self._state.units.get(unit_id)

    def list_units(self) -> list[Unit]:
        with self._lock:
            return list(self._state.units.values())

    def add_item(self, item: Item) -> Item:
        with self._lock:
            if any(i.code == item.code for i in self._state.items.values()):
                raise ValueError(f"Item code already exists: {item.code}")
            self._state.items[item.id] = item
            return item

    def get_item(self, item_id: UUID) -> Item | None:
        return self._state.items.get(item_id)

    # =========================================================================
    # Budgets
    # =========================================================================

    def add_budget(self, budget: Budget) -> Budget:
        with self._lock:
            self._state.budgets[budget.id] = budget
            return budget

    def get_budget(self, budget_id: UUID) -> Budget | None:
        return self._state.budgets.get(budget_id)

    def find_budget(self, unit_id: UUID, on: date) -> Budget | None:
        with self._lock:
            covering = [
                b for b in self._state.budgets.values()
                if b.unit_id == unit_id and b.covers(on)
            ]
        covering.sort(key=lambda b: b.period_start)
        return covering[0] if covering else None

    def list_budgets(self, unit_id: UUID) -> list[Budget]:
        with self._lock:
            budgets = [b for b in self._state.budgets.values() if b.unit_id == unit_id]
        return sorted(budgets, key=lambda b: b.period_start)

    def debit_budget_if_available(self, budget_id: UUID, amount: Decimal) -> bool:
        with self._lock:
            budget = self._state.budgets.get(budget_id)
            if budget is None or budget.available_amount < amount:
                return False
            self._state.budgets[budget_id] = dataclasses.replace(
                budget, used_amount=budget.used_amount + amount,
            )
            return True

    def credit_budget_if_used(self, budget_id: UUID, amount: Decimal) -> bool:
        with self._lock:
            budget = self._state.budgets.get(budget_id)
            if budget is None or budget.used_amount < amount:
                return False
            self._state.budgets[budget_id] = dataclasses.replace(
                budget, used_amount=budget.used_amount - amount,
            )
            return True

    def increase_budget_amount(self, budget_id: UUID, amount: Decimal) -> None:
        with self._lock:
            budget = self._state.budgets.get(budget_id)
            if budget is None:
                raise EntityNotFoundError("Budget", str(budget_id))
            self._state.budgets[budget_id] = dataclasses.replace(
                budget, budget_amount=budget.budget_amount + amount,
            )

    # =========================================================================
    # Stock
    # =========================================================================

    def get_stock_quantity(self, item_id: UUID, location: Location) -> Decimal:
        return self._state.stock.get(_stock_key(item_id, location), Decimal("0"))

    def debit_stock_if_available(self, item_id: UUID, location: Location, amount: Decimal) -> bool:
        key = _stock_key(item_id, location)
        with self._lock:
            current = self._state.stock.get(key, Decimal("0"))
            if current < amount:
                return False
            self._state.stock[key] = current - amount
            return True

    def credit_stock(self, item_id: UUID, location: Location, amount: Decimal) -> None:
        key = _stock_key(item_id, location)
        with self._lock:
            self._state.stock[key] = self._state.stock.get(key, Decimal("0")) + amount

    def list_stock_levels(self, unit_id: UUID | None = None) -> list[StockLevel]:
        with self._lock:
            entries = list(self._state.stock.items())
        return [
            StockLevel(item_id, Location(owner, kind), quantity)
            for (item_id, owner, kind), quantity in entries
            if unit_id is None or owner == unit_id
        ]

    # =========================================================================
    # Append-only records
    # =========================================================================

    def add_movement(self, movement: MovementRecord) -> MovementRecord:
        with self._lock:
            self._state.movements.append(movement)
            return movement

    def list_movements(self, item_id: UUID | None = None) -> list[MovementRecord]:
        with self._lock:
            return [m for m in self._state.movements if item_id is None or m.item_id == item_id]

    def add_financial_transaction(self, tx: FinancialTransaction) -> FinancialTransaction:
        with self._lock:
            self._state.financial_transactions.append(tx)
            return tx

    def list_financial_transactions(
        self,
        unit_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> list[FinancialTransaction]:
        with self._lock:
            return [
                tx for tx in self._state.financial_transactions
                if tx.unit_id == unit_id and _in_range(tx.occurred_at, start, end)
            ]

    def add_audit_event(self, event: AuditEvent) -> AuditEvent:
        with self._lock:
            self._state.audit_events.append(event)
            return event

    def list_audit_events(
        self,
        entity_type: str | None = None,
        entity_id: UUID | None = None,
    ) -> list[AuditEvent]:
        with self._lock:
            return [
                e for e in self._state.audit_events
                if (entity_type is None or e.entity_type == entity_type)
                and (entity_id is None or e.entity_id == entity_id)
            ]

    # =========================================================================
    # Inventory
    # =========================================================================

    def add_inventory_record(self, record: InventoryRecord) -> InventoryRecord:
        with self._lock:
            self._state.inventory_records[record.id] = record
            return record

    def get_inventory_record(self, record_id: UUID) -> InventoryRecord | None:
        with self._lock:
            return self._state.inventory_records.get(record_id)

    def save_inventory_record(self, record: InventoryRecord) -> InventoryRecord:
        with self._lock:
            saved = self._next_version(self._state.inventory_records, record, "InventoryRecord")
            self._state.inventory_records[record.id] = saved
            return saved

    def delete_inventory_record(self, record_id: UUID, version: int) -> None:
        with self._lock:
            stored = self._require(self._state.inventory_records, record_id, "InventoryRecord")
            if stored.version != version:
                raise OptimisticLockError("InventoryRecord", str(record_id))
            del self._state.inventory_records[record_id]
            for event_id in [
                e.id for e in self._state.inventory_events.values() if e.record_id == record_id
            ]:
                del self._state.inventory_events[event_id]

    def list_inventory_records(self, unit_id: UUID | None = None) -> list[InventoryRecord]:
        with self._lock:
            return [
                r for r in self._state.inventory_records.values()
                if unit_id is None or r.unit_id == unit_id
            ]

    def add_inventory_event(self, event: InventoryEvent) -> InventoryEvent:
        with self._lock:
            self._state.inventory_events[event.id] = event
            return event

    def list_inventory_events(self, record_id: UUID) -> list[InventoryEvent]:
        with self._lock:
            return [e for e in self._state.inventory_events.values() if e.record_id == record_id]

    # =========================================================================
    # Purchasing
    # =========================================================================

    def add_purchase(self, purchase: Purchase) -> Purchase:
        with self._lock:
            self._state.purchases[purchase.id] = purchase
            return purchase

    def get_purchase(self, purchase_id: UUID) -> Purchase | None:
        return self._state.purchases.get(purchase_id)

    def save_purchase(self, purchase: Purchase) -> Purchase:
        with self._lock:
            saved = self._next_version(self._state.purchases, purchase, "Purchase")
            self._state.purchases[purchase.id] = saved
            return saved

    def list_purchases(self, unit_id: UUID | None = None) -> list[Purchase]:
        with self._lock:
            return [
                p for p in self._state.purchases.values()
                if unit_id is None or p.unit_id == unit_id
            ]

    def add_purchase_line(self, line: PurchaseLine) -> PurchaseLine:
        with self._lock:
            self._state.purchase_lines[line.id] = line
            return line

    def save_purchase_line(self, line: PurchaseLine) -> PurchaseLine:
        with self._lock:
            self._require(self._state.purchase_lines, line.id, "PurchaseLine")
            self._state.purchase_lines[line.id] = line
            return line

    def list_purchase_lines(self, purchase_id: UUID) -> list[PurchaseLine]:
        with self._lock:
            return [l for l in self._state.purchase_lines.values() if l.purchase_id == purchase_id]

    def delete_purchase_lines(self, purchase_id: UUID) -> None:
        with self._lock:
            for line in self.list_purchase_lines(purchase_id):
                del self._state.purchase_lines[line.id]

    # =========================================================================
    # Requests
    # =========================================================================

    def add_request(self, request: Request) -> Request:
        with self._lock:
            self._state.requests[request.id] = request
            return request

    def get_request(self, request_id: UUID) -> Request | None:
        return self._state.requests.get(request_id)

    def save_request(self, request: Request) -> Request:
        with self._lock:
            saved = self._next_version(self._state.requests, request, "Request")
            self._state.requests[request.id] = saved
            return saved

    def list_requests(self, unit_id: UUID | None = None) -> list[Request]:
        with self._lock:
            return [
                r for r in self._state.requests.values()
                if unit_id is None or unit_id in (r.requesting_unit_id, r.cd_unit_id)
            ]

    def add_request_line(self, line: RequestLine) -> RequestLine:
        with self._lock:
            self._state.request_lines[line.id] = line
            return line

    def save_request_line(self, line: RequestLine) -> RequestLine:
        with self._lock:
            self._require(self._state.request_lines, line.id, "RequestLine")
            self._state.request_lines[line.id] = line
            return line

    def list_request_lines(self, request_id: UUID) -> list[RequestLine]:
        with self._lock:
            return [l for l in self._state.request_lines.values() if l.request_id == request_id]

    def add_in_transit(self, record: InTransitRecord) -> InTransitRecord:
        with self._lock:
            self._state.in_transit[record.id] = record
            return record

    def get_in_transit(self, record_id: UUID) -> InTransitRecord | None:
        return self._state.in_transit.get(record_id)

    def list_in_transit(self, request_id: UUID | None = None) -> list[InTransitRecord]:
        with self._lock:
            return [
                r for r in self._state.in_transit.values()
                if request_id is None or r.request_id == request_id
            ]

    def mark_in_transit_delivered(self, record_id: UUID, delivered_at: datetime) -> bool:
        with self._lock:
            record = self._state.in_transit.get(record_id)
            if record is None or record.status is not InTransitStatus.IN_TRANSIT:
                return False
            self._state.in_transit[record_id] = dataclasses.replace(
                record, status=InTransitStatus.DELIVERED, delivered_at=delivered_at,
            )
            return True

    # =========================================================================
    # Quotations
    # =========================================================================

    def add_quotation(self, quotation: Quotation) -> Quotation:
        with self._lock:
            self._state.quotations[quotation.id] = quotation
            return quotation

    def get_quotation(self, quotation_id: UUID) -> Quotation | None:
        return self._state.quotations.get(quotation_id)

    def save_quotation(self, quotation: Quotation) -> Quotation:
        with self._lock:
            self._require(self._state.quotations, quotation.id, "Quotation")
            self._state.quotations[quotation.id] = quotation
            return quotation

    def list_quotations(self, purchase_id: UUID | None = None) -> list[Quotation]:
        with self._lock:
            return [
                q for q in self._state.quotations.values()
                if purchase_id is None or q.purchase_id == purchase_id
            ]

    def add_response(self, response: QuotationResponse) -> QuotationResponse:
        with self._lock:
            self._state.responses[response.id] = response
            return response

    def get_response(self, response_id: UUID) -> QuotationResponse | None:
        return self._state.responses.get(response_id)

    def list_responses(
        self, quotation_id: UUID, item_id: UUID | None = None,
    ) -> list[QuotationResponse]:
        with self._lock:
            return [
                r for r in self._state.responses.values()
                if r.quotation_id == quotation_id and (item_id is None or r.item_id == item_id)
            ]

    def clear_selection(self, quotation_id: UUID, item_id: UUID) -> int:
        with self._lock:
            cleared = 0
            for response in self.list_responses(quotation_id, item_id):
                if response.is_selected:
                    self._state.responses[response.id] = dataclasses.replace(
                        response, is_selected=False,
                    )
                    cleared += 1
            return cleared

    def set_response_selected(self, response_id: UUID, selected: bool) -> QuotationResponse:
        with self._lock:
            response = self._require(self._state.responses, response_id, "QuotationResponse")
            if selected:
                for other in self.list_responses(response.quotation_id, response.item_id):
                    if other.id != response.id and other.is_selected:
                        raise DuplicateSelectionError(
                            str(response.quotation_id), str(response.item_id),
                        )
            updated = dataclasses.replace(response, is_selected=selected)
            self._state.responses[response_id] = updated
            return updated

    def add_price_history(self, entry: PriceHistory) -> PriceHistory:
        with self._lock:
            self._state.price_history.append(entry)
            return entry

    def list_price_history(self, item_id: UUID) -> list[PriceHistory]:
        with self._lock:
            return [p for p in self._state.price_history if p.item_id == item_id]

    # =========================================================================
    # Private helpers
    # =========================================================================

    @staticmethod
    def _require(table: dict, key: UUID, entity_type: str):
        stored = table.get(key)
        if stored is None:
            raise EntityNotFoundError(entity_type, str(key))
        return stored

    def _next_version(self, table: dict, dto, entity_type: str):
        stored = self._require(table, dto.id, entity_type)
        if stored.version != dto.version:
            raise OptimisticLockError(entity_type, str(dto.id))
        return dataclasses.replace(dto, version=dto.version + 1)
