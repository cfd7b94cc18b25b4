"""
Stock Module Service (``supply_modules.stock.service``).

Responsibility
--------------
Moves warehouse stock outside of any request or purchase: a storekeeper
transfers a quantity from one unit's stock to another's, or corrects a
unit's stock to what a physical count found.

Invariants enforced
-------------------
* A transfer debits the source and credits the destination in one
  transaction, so the sum over both units is unchanged.
* An adjustment credits or debits exactly the difference between the count
  and the ledger, and leaves one movement with reason ``adjustment``.
* Every change writes an audit row in the same transaction.

Failure modes
-------------
* ``InsufficientStockError``  -- the source unit holds less than requested.
* ``InvalidQuantityError``  -- non-positive transfer or negative count.
* ``EntityNotFoundError``  -- unknown item or unit.
* ``PermissionDeniedError``  -- actor lacks ``stock.manage`` on the unit.
* ``ValueError``  -- source and destination are the same unit.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from supply_kernel.domain.clock import Clock, SystemClock
from supply_kernel.domain.dtos import AuditAction, MovementRecord
from supply_kernel.domain.repository import LedgerRepository
from supply_kernel.domain.values import Location
from supply_kernel.exceptions import EntityNotFoundError, InvalidQuantityError
from supply_kernel.logging_config import get_logger
from supply_kernel.services.stock_ledger import StockLedger
from supply_kernel.services.transfer_coordinator import TransferCoordinator
from supply_modules._helpers import write_audit
from supply_services.rbac_authority import Actor, require_capability

logger = get_logger("modules.stock.service")

ENTITY_TYPE = "movement"
TRANSFER_REASON = "transfer"
ADJUSTMENT_REASON = "adjustment"


class StockService:
    """Unit-to-unit transfers and count adjustments."""

    def __init__(
        self,
        repository: LedgerRepository,
        clock: Clock | None = None,
        transfers: TransferCoordinator | None = None,
    ):
        self._repo = repository
        self._clock = clock or SystemClock()
        self._stock = StockLedger(repository)
        self._transfers = transfers or TransferCoordinator(
            repository, self._stock, clock=self._clock,
        )

    def transfer_between_units(
        self,
        item_id: UUID,
        from_unit_id: UUID,
        to_unit_id: UUID,
        quantity: Decimal,
        actor: Actor,
    ) -> MovementRecord:
        if from_unit_id == to_unit_id:
            raise ValueError("Transfer source and destination must be different units")
        require_capability(actor, "stock.manage", from_unit_id)
        self._require_item(item_id)
        self._require_unit(from_unit_id)
        self._require_unit(to_unit_id)
        if not isinstance(quantity, Decimal) or quantity <= 0:
            raise InvalidQuantityError(str(item_id), quantity, "transfer quantity must be positive")

        with self._repo.transaction():
            movement = self._transfers.transfer(
                item_id, Location.stock(from_unit_id), Location.stock(to_unit_id), quantity,
                reason=TRANSFER_REASON,
            )
            write_audit(
                self._repo, self._clock, AuditAction.STOCK_TRANSFERRED,
                ENTITY_TYPE, movement.id, actor.id,
                new_values={
                    "item_id": str(item_id),
                    "from_unit_id": str(from_unit_id),
                    "to_unit_id": str(to_unit_id),
                    "quantity": str(quantity),
                },
            )
        return movement

    def adjust_to_count(
        self,
        item_id: UUID,
        unit_id: UUID,
        counted: Decimal,
        actor: Actor,
    ) -> MovementRecord | None:
        """Set a unit's stock of an item to ``counted``.

        Returns the adjustment movement, or None when the ledger already
        matches the count.
        """
        require_capability(actor, "stock.manage", unit_id)
        self._require_item(item_id)
        self._require_unit(unit_id)
        if not isinstance(counted, Decimal) or not counted.is_finite() or counted < 0:
            raise InvalidQuantityError(str(item_id), counted, "counted quantity must not be negative")

        location = Location.stock(unit_id)
        with self._repo.transaction():
            on_hand = self._stock.quantity(item_id, location)
            delta = counted - on_hand
            if delta == 0:
                return None
            if delta > 0:
                movement = self._transfers.receive(item_id, location, delta, reason=ADJUSTMENT_REASON)
            else:
                self._stock.debit(item_id, location, -delta)
                movement = self._transfers.record_movement(
                    item_id, location, None, -delta, ADJUSTMENT_REASON,
                )
            write_audit(
                self._repo, self._clock, AuditAction.STOCK_ADJUSTED,
                ENTITY_TYPE, movement.id, actor.id,
                old_values={"quantity": str(on_hand)},
                new_values={"quantity": str(counted)},
            )

        logger.info(
            "stock_adjusted",
            extra={
                "item_id": str(item_id),
                "unit_id": str(unit_id),
                "old_quantity": str(on_hand),
                "new_quantity": str(counted),
                "movement_id": str(movement.id),
            },
        )
        return movement

    def list_movements(
        self,
        item_id: UUID | None = None,
        unit_id: UUID | None = None,
    ) -> list[MovementRecord]:
        """Movements of an item, optionally only those touching one unit."""
        movements = self._repo.list_movements(item_id)
        if unit_id is None:
            return movements
        return [
            m for m in movements
            if unit_id in {loc.unit_id for loc in (m.from_location, m.to_location) if loc is not None}
        ]

    def _require_item(self, item_id: UUID) -> None:
        if self._repo.get_item(item_id) is None:
            raise EntityNotFoundError("Item", str(item_id))

    def _require_unit(self, unit_id: UUID) -> None:
        if self._repo.get_unit(unit_id) is None:
            raise EntityNotFoundError("Unit", str(unit_id))
