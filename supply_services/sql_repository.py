"""
supply_services.sql_repository -- SQLAlchemy repository.

Responsibility:
    Implements ``SupplyRepository`` over SQLAlchemy 2.0 sessions, for
    PostgreSQL in production and SQLite in tests.

Architecture position:
    Services layer.  Maps ORM rows to the frozen DTOs the services use;
    ORM objects never leave this module.

Invariants enforced:
    - Every ``*_if_*`` method is a single ``UPDATE ... WHERE precondition``
      whose row count decides the outcome.  No balance is read and written
      back.
    - ``transaction()`` binds one session per thread.  Nested scopes reuse
      it; the outermost scope commits, or rolls back and re-raises.
    - Versioned saves update ``WHERE version = :expected`` and raise
      OptimisticLockError when no row matched.
    - A second selected quotation response per (quotation, item) violates
      a partial unique index; the IntegrityError surfaces as
      DuplicateSelectionError.
"""

from __future__ import annotations

import dataclasses
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

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
from supply_kernel.exceptions import (
    DuplicateSelectionError,
    EntityNotFoundError,
    OptimisticLockError,
)
from supply_kernel.logging_config import get_logger
from supply_kernel.models import (
    AuditEventModel,
    BudgetModel,
    FinancialTransactionModel,
    ItemModel,
    MovementModel,
    StockLevelModel,
    UnitModel,
)
from supply_modules.inventory.models import InventoryEvent, InventoryRecord
from supply_modules.inventory.orm import InventoryEventModel, InventoryRecordModel
from supply_modules.purchasing.models import Purchase, PurchaseLine
from supply_modules.purchasing.orm import PurchaseLineModel, PurchaseModel
from supply_modules.quotation.models import PriceHistory, Quotation, QuotationResponse
from supply_modules.quotation.orm import (
    PriceHistoryModel,
    QuotationModel,
    QuotationResponseModel,
)
from supply_modules.requests.models import InTransitRecord, Request, RequestLine
from supply_modules.requests.orm import InTransitModel, RequestLineModel, RequestModel

logger = get_logger("services.sql_repository")

# Columns owned by the database or by row creation; never rewritten by saves.
_IMMUTABLE_COLUMNS = frozenset({"id", "created_at", "updated_at", "created_by_id", "updated_by_id"})

_SYNC_FETCH = {"synchronize_session": "fetch"}


def _column_values(model_cls: type, dto: Any) -> dict[str, Any]:
    """Column values of ``dto`` as mapped by ``model_cls.from_dto``, minus immutable columns."""
    row = model_cls.from_dto(dto)
    return {
        column.key: getattr(row, column.key)
        for column in model_cls.__table__.columns
        if column.key not in _IMMUTABLE_COLUMNS
    }


def _in_range(moment: datetime, start: date | None, end: date | None) -> bool:
    day = moment.date()
    return (start is None or day >= start) and (end is None or day <= end)


class SqlAlchemyRepository:
    """SQLAlchemy-backed ``SupplyRepository``.

    Every public method runs inside a transaction scope: standalone calls
    commit on return, calls made inside ``transaction()`` join it.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory
        self._local = threading.local()

    @contextmanager
    def _scope(self) -> Iterator[Session]:
        depth = getattr(self._local, "depth", 0)
        if depth == 0:
            self._local.session = self._session_factory()
        session: Session = self._local.session
        self._local.depth = depth + 1
        try:
            yield session
            if depth == 0:
                session.commit()
        except Exception:
            if depth == 0:
                session.rollback()
                logger.debug("sql_transaction_rolled_back")
            raise
        finally:
            self._local.depth = depth
            if depth == 0:
                session.close()
                self._local.session = None

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._scope():
            yield

    # =========================================================================
    # Units and items
    # =========================================================================

    def add_unit(self, unit: Unit) -> Unit:
        return self._add(UnitModel, unit)

    def get_unit(self, unit_id: UUID) -> Unit | None:
        return self._get(UnitModel, unit_id)

    def list_units(self) -> list[Unit]:
        with self._scope() as session:
            rows = session.execute(select(UnitModel).order_by(UnitModel.code)).scalars().all()
            return [row.to_dto() for row in rows]

    def add_item(self, item: Item) -> Item:
        return self._add(ItemModel, item)

    def get_item(self, item_id: UUID) -> Item | None:
        return self._get(ItemModel, item_id)

    # =========================================================================
    # Budgets
    # =========================================================================

    def add_budget(self, budget: Budget) -> Budget:
        return self._add(BudgetModel, budget)

    def get_budget(self, budget_id: UUID) -> Budget | None:
        return self._get(BudgetModel, budget_id)

    def find_budget(self, unit_id: UUID, on: date) -> Budget | None:
        with self._scope() as session:
            row = session.execute(
                select(BudgetModel)
                .where(
                    BudgetModel.unit_id == unit_id,
                    BudgetModel.period_start <= on,
                    BudgetModel.period_end >= on,
                )
                .order_by(BudgetModel.period_start)
                .limit(1)
            ).scalar_one_or_none()
            return row.to_dto() if row is not None else None

    def list_budgets(self, unit_id: UUID) -> list[Budget]:
        with self._scope() as session:
            rows = session.execute(
                select(BudgetModel)
                .where(BudgetModel.unit_id == unit_id)
                .order_by(BudgetModel.period_start)
            ).scalars().all()
            return [row.to_dto() for row in rows]

    def debit_budget_if_available(self, budget_id: UUID, amount: Decimal) -> bool:
        with self._scope() as session:
            result = session.execute(
                update(BudgetModel)
                .where(
                    BudgetModel.id == budget_id,
                    BudgetModel.budget_amount - BudgetModel.used_amount >= amount,
                )
                .values(used_amount=BudgetModel.used_amount + amount)
                .execution_options(**_SYNC_FETCH)
            )
            return result.rowcount == 1

    def credit_budget_if_used(self, budget_id: UUID, amount: Decimal) -> bool:
        with self._scope() as session:
            result = session.execute(
                update(BudgetModel)
                .where(BudgetModel.id == budget_id, BudgetModel.used_amount >= amount)
                .values(used_amount=BudgetModel.used_amount - amount)
                .execution_options(**_SYNC_FETCH)
            )
            return result.rowcount == 1

    def increase_budget_amount(self, budget_id: UUID, amount: Decimal) -> None:
        with self._scope() as session:
            result = session.execute(
                update(BudgetModel)
                .where(BudgetModel.id == budget_id)
                .values(budget_amount=BudgetModel.budget_amount + amount)
                .execution_options(**_SYNC_FETCH)
            )
            if result.rowcount != 1:
                raise EntityNotFoundError("Budget", str(budget_id))

    # =========================================================================
    # Stock
    # =========================================================================

    @staticmethod
    def _stock_filter(item_id: UUID, location: Location) -> tuple:
        return (
            StockLevelModel.item_id == item_id,
            StockLevelModel.unit_id == location.unit_id,
            StockLevelModel.location_kind == location.kind.value,
        )

    def get_stock_quantity(self, item_id: UUID, location: Location) -> Decimal:
        with self._scope() as session:
            quantity = session.execute(
                select(StockLevelModel.quantity).where(*self._stock_filter(item_id, location))
            ).scalar_one_or_none()
            return quantity if quantity is not None else Decimal("0")

    def debit_stock_if_available(self, item_id: UUID, location: Location, amount: Decimal) -> bool:
        with self._scope() as session:
            result = session.execute(
                update(StockLevelModel)
                .where(*self._stock_filter(item_id, location), StockLevelModel.quantity >= amount)
                .values(quantity=StockLevelModel.quantity - amount)
                .execution_options(**_SYNC_FETCH)
            )
            return result.rowcount == 1

    def credit_stock(self, item_id: UUID, location: Location, amount: Decimal) -> None:
        with self._scope() as session:
            result = session.execute(
                update(StockLevelModel)
                .where(*self._stock_filter(item_id, location))
                .values(quantity=StockLevelModel.quantity + amount)
                .execution_options(**_SYNC_FETCH)
            )
            if result.rowcount == 0:
                session.add(StockLevelModel(
                    item_id=item_id,
                    unit_id=location.unit_id,
                    location_kind=location.kind.value,
                    quantity=amount,
                ))
                session.flush()

    def list_stock_levels(self, unit_id: UUID | None = None) -> list[StockLevel]:
        with self._scope() as session:
            stmt = select(StockLevelModel)
            if unit_id is not None:
                stmt = stmt.where(StockLevelModel.unit_id == unit_id)
            return [row.to_dto() for row in session.execute(stmt).scalars().all()]

    # =========================================================================
    # Append-only records
    # =========================================================================

    def add_movement(self, movement: MovementRecord) -> MovementRecord:
        return self._add(MovementModel, movement)

    def list_movements(self, item_id: UUID | None = None) -> list[MovementRecord]:
        with self._scope() as session:
            stmt = select(MovementModel).order_by(MovementModel.occurred_at)
            if item_id is not None:
                stmt = stmt.where(MovementModel.item_id == item_id)
            return [row.to_dto() for row in session.execute(stmt).scalars().all()]

    def add_financial_transaction(self, tx: FinancialTransaction) -> FinancialTransaction:
        return self._add(FinancialTransactionModel, tx)

    def list_financial_transactions(
        self,
        unit_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> list[FinancialTransaction]:
        with self._scope() as session:
            rows = session.execute(
                select(FinancialTransactionModel)
                .where(FinancialTransactionModel.unit_id == unit_id)
                .order_by(FinancialTransactionModel.occurred_at)
            ).scalars().all()
            # Filtered by calendar day here: SQLite returns naive datetimes
            return [
                row.to_dto() for row in rows
                if _in_range(row.occurred_at, start, end)
            ]

    def add_audit_event(self, event: AuditEvent) -> AuditEvent:
        return self._add(AuditEventModel, event)

    def list_audit_events(
        self,
        entity_type: str | None = None,
        entity_id: UUID | None = None,
    ) -> list[AuditEvent]:
        with self._scope() as session:
            stmt = select(AuditEventModel).order_by(AuditEventModel.occurred_at)
            if entity_type is not None:
                stmt = stmt.where(AuditEventModel.entity_type == entity_type)
            if entity_id is not None:
                stmt = stmt.where(AuditEventModel.entity_id == entity_id)
            return [row.to_dto() for row in session.execute(stmt).scalars().all()]

    # =========================================================================
    # Inventory
    # =========================================================================

    def add_inventory_record(self, record: InventoryRecord) -> InventoryRecord:
        return self._add(InventoryRecordModel, record)

    def get_inventory_record(self, record_id: UUID) -> InventoryRecord | None:
        return self._get(InventoryRecordModel, record_id)

    def save_inventory_record(self, record: InventoryRecord) -> InventoryRecord:
        return self._save_versioned(InventoryRecordModel, record, "InventoryRecord")

    def delete_inventory_record(self, record_id: UUID, version: int) -> None:
        with self._scope() as session:
            session.execute(
                delete(InventoryEventModel).where(InventoryEventModel.record_id == record_id)
            )
            result = session.execute(
                delete(InventoryRecordModel)
                .where(InventoryRecordModel.id == record_id, InventoryRecordModel.version == version)
                .execution_options(**_SYNC_FETCH)
            )
            if result.rowcount != 1:
                if session.get(InventoryRecordModel, record_id) is None:
                    raise EntityNotFoundError("InventoryRecord", str(record_id))
                raise OptimisticLockError("InventoryRecord", str(record_id))

    def list_inventory_records(self, unit_id: UUID | None = None) -> list[InventoryRecord]:
        with self._scope() as session:
            stmt = select(InventoryRecordModel).order_by(InventoryRecordModel.created_at)
            if unit_id is not None:
                stmt = stmt.where(InventoryRecordModel.unit_id == unit_id)
            return [row.to_dto() for row in session.execute(stmt).scalars().all()]

    def add_inventory_event(self, event: InventoryEvent) -> InventoryEvent:
        return self._add(InventoryEventModel, event)

    def list_inventory_events(self, record_id: UUID) -> list[InventoryEvent]:
        with self._scope() as session:
            rows = session.execute(
                select(InventoryEventModel)
                .where(InventoryEventModel.record_id == record_id)
                .order_by(InventoryEventModel.event_date)
            ).scalars().all()
            return [row.to_dto() for row in rows]

    # =========================================================================
    # Purchasing
    # =========================================================================

    def add_purchase(self, purchase: Purchase) -> Purchase:
        return self._add(PurchaseModel, purchase)

    def get_purchase(self, purchase_id: UUID) -> Purchase | None:
        return self._get(PurchaseModel, purchase_id)

    def save_purchase(self, purchase: Purchase) -> Purchase:
        return self._save_versioned(PurchaseModel, purchase, "Purchase")

    def list_purchases(self, unit_id: UUID | None = None) -> list[Purchase]:
        with self._scope() as session:
            stmt = select(PurchaseModel).order_by(PurchaseModel.created_at)
            if unit_id is not None:
                stmt = stmt.where(PurchaseModel.unit_id == unit_id)
            return [row.to_dto() for row in session.execute(stmt).scalars().all()]

    def add_purchase_line(self, line: PurchaseLine) -> PurchaseLine:
        return self._add(PurchaseLineModel, line)

    def save_purchase_line(self, line: PurchaseLine) -> PurchaseLine:
        return self._save(PurchaseLineModel, line, "PurchaseLine")

    def list_purchase_lines(self, purchase_id: UUID) -> list[PurchaseLine]:
        with self._scope() as session:
            rows = session.execute(
                select(PurchaseLineModel).where(PurchaseLineModel.purchase_id == purchase_id)
            ).scalars().all()
            return [row.to_dto() for row in rows]

    def delete_purchase_lines(self, purchase_id: UUID) -> None:
        with self._scope() as session:
            session.execute(
                delete(PurchaseLineModel).where(PurchaseLineModel.purchase_id == purchase_id)
            )

    # =========================================================================
    # Requests
    # =========================================================================

    def add_request(self, request: Request) -> Request:
        return self._add(RequestModel, request)

    def get_request(self, request_id: UUID) -> Request | None:
        return self._get(RequestModel, request_id)

    def save_request(self, request: Request) -> Request:
        return self._save_versioned(RequestModel, request, "Request")

    def list_requests(self, unit_id: UUID | None = None) -> list[Request]:
        with self._scope() as session:
            stmt = select(RequestModel).order_by(RequestModel.created_at)
            if unit_id is not None:
                stmt = stmt.where(
                    (RequestModel.requesting_unit_id == unit_id) | (RequestModel.cd_unit_id == unit_id)
                )
            return [row.to_dto() for row in session.execute(stmt).scalars().all()]

    def add_request_line(self, line: RequestLine) -> RequestLine:
        return self._add(RequestLineModel, line)

    def save_request_line(self, line: RequestLine) -> RequestLine:
        return self._save(RequestLineModel, line, "RequestLine")

    def list_request_lines(self, request_id: UUID) -> list[RequestLine]:
        with self._scope() as session:
            rows = session.execute(
                select(RequestLineModel).where(RequestLineModel.request_id == request_id)
            ).scalars().all()
            return [row.to_dto() for row in rows]

    def add_in_transit(self, record: InTransitRecord) -> InTransitRecord:
        return self._add(InTransitModel, record)

    def get_in_transit(self, record_id: UUID) -> InTransitRecord | None:
        return self._get(InTransitModel, record_id)

    def list_in_transit(self, request_id: UUID | None = None) -> list[InTransitRecord]:
        with self._scope() as session:
            stmt = select(InTransitModel).order_by(InTransitModel.shipped_at)
            if request_id is not None:
                stmt = stmt.where(InTransitModel.request_id == request_id)
            return [row.to_dto() for row in session.execute(stmt).scalars().all()]

    def mark_in_transit_delivered(self, record_id: UUID, delivered_at: datetime) -> bool:
        with self._scope() as session:
            result = session.execute(
                update(InTransitModel)
                .where(InTransitModel.id == record_id, InTransitModel.status == "in_transit")
                .values(status="delivered", delivered_at=delivered_at)
                .execution_options(**_SYNC_FETCH)
            )
            return result.rowcount == 1

    # =========================================================================
    # Quotations
    # =========================================================================

    def add_quotation(self, quotation: Quotation) -> Quotation:
        return self._add(QuotationModel, quotation)

    def get_quotation(self, quotation_id: UUID) -> Quotation | None:
        return self._get(QuotationModel, quotation_id)

    def save_quotation(self, quotation: Quotation) -> Quotation:
        return self._save(QuotationModel, quotation, "Quotation")

    def list_quotations(self, purchase_id: UUID | None = None) -> list[Quotation]:
        with self._scope() as session:
            stmt = select(QuotationModel).order_by(QuotationModel.created_at)
            if purchase_id is not None:
                stmt = stmt.where(QuotationModel.purchase_id == purchase_id)
            return [row.to_dto() for row in session.execute(stmt).scalars().all()]

    def add_response(self, response: QuotationResponse) -> QuotationResponse:
        return self._add(QuotationResponseModel, response)

    def get_response(self, response_id: UUID) -> QuotationResponse | None:
        return self._get(QuotationResponseModel, response_id)

    def list_responses(
        self, quotation_id: UUID, item_id: UUID | None = None,
    ) -> list[QuotationResponse]:
        with self._scope() as session:
            stmt = select(QuotationResponseModel).where(
                QuotationResponseModel.quotation_id == quotation_id
            )
            if item_id is not None:
                stmt = stmt.where(QuotationResponseModel.item_id == item_id)
            return [row.to_dto() for row in session.execute(stmt).scalars().all()]

    def clear_selection(self, quotation_id: UUID, item_id: UUID) -> int:
        with self._scope() as session:
            result = session.execute(
                update(QuotationResponseModel)
                .where(
                    QuotationResponseModel.quotation_id == quotation_id,
                    QuotationResponseModel.item_id == item_id,
                    QuotationResponseModel.is_selected.is_(True),
                )
                .values(is_selected=False)
                .execution_options(**_SYNC_FETCH)
            )
            return result.rowcount

    def set_response_selected(self, response_id: UUID, selected: bool) -> QuotationResponse:
        with self._scope() as session:
            row = session.get(QuotationResponseModel, response_id)
            if row is None:
                raise EntityNotFoundError("QuotationResponse", str(response_id))
            quotation_id, item_id = str(row.quotation_id), str(row.item_id)
            if selected and self._selected_elsewhere(session, row):
                raise DuplicateSelectionError(quotation_id, item_id)
            row.is_selected = selected
            try:
                session.flush()
            except IntegrityError as exc:
                # Lost a race to a concurrent selection; the session is already rolled back
                logger.warning(
                    "duplicate_response_selection",
                    extra={"quotation_id": quotation_id, "item_id": item_id},
                )
                raise DuplicateSelectionError(quotation_id, item_id) from exc
            return row.to_dto()

    @staticmethod
    def _selected_elsewhere(session: Session, row: QuotationResponseModel) -> bool:
        return session.execute(
            select(QuotationResponseModel.id).where(
                QuotationResponseModel.quotation_id == row.quotation_id,
                QuotationResponseModel.item_id == row.item_id,
                QuotationResponseModel.is_selected.is_(True),
                QuotationResponseModel.id != row.id,
            ).limit(1)
        ).first() is not None

    def add_price_history(self, entry: PriceHistory) -> PriceHistory:
        return self._add(PriceHistoryModel, entry)

    def list_price_history(self, item_id: UUID) -> list[PriceHistory]:
        with self._scope() as session:
            rows = session.execute(
                select(PriceHistoryModel)
                .where(PriceHistoryModel.item_id == item_id)
                .order_by(PriceHistoryModel.recorded_on)
            ).scalars().all()
            return [row.to_dto() for row in rows]

    # =========================================================================
    # Private helpers
    # =========================================================================

    def _add(self, model_cls: type, dto: Any) -> Any:
        with self._scope() as session:
            session.add(model_cls.from_dto(dto))
            session.flush()
            return dto

    def _get(self, model_cls: type, key: UUID) -> Any:
        with self._scope() as session:
            row = session.get(model_cls, key)
            return row.to_dto() if row is not None else None

    def _save(self, model_cls: type, dto: Any, entity_type: str) -> Any:
        with self._scope() as session:
            result = session.execute(
                update(model_cls)
                .where(model_cls.id == dto.id)
                .values(**_column_values(model_cls, dto))
                .execution_options(**_SYNC_FETCH)
            )
            if result.rowcount != 1:
                raise EntityNotFoundError(entity_type, str(dto.id))
            return dto

    def _save_versioned(self, model_cls: type, dto: Any, entity_type: str) -> Any:
        with self._scope() as session:
            values = _column_values(model_cls, dto)
            values["version"] = dto.version + 1
            result = session.execute(
                update(model_cls)
                .where(model_cls.id == dto.id, model_cls.version == dto.version)
                .values(**values)
                .execution_options(**_SYNC_FETCH)
            )
            if result.rowcount != 1:
                if session.get(model_cls, dto.id) is None:
                    raise EntityNotFoundError(entity_type, str(dto.id))
                raise OptimisticLockError(entity_type, str(dto.id))
            return dataclasses.replace(dto, version=dto.version + 1)
