"""
Inventory Module Service (``supply_modules.inventory.service``).

Responsibility
--------------
Individualizes warehouse stock into inventory records and keeps the two
in step: every quantity change of a record is a transfer between the
unit's ``stock`` and ``inventory`` locations.

Invariants enforced
-------------------
* Each public method owns one repository transaction; the transfer, the
  record change and the audit row commit together.
* Records of lifecycle items hold exactly one piece.

Failure modes
-------------
* ``InsufficientStockError``  -- not enough warehouse stock to individualize.
* ``InvalidQuantityError``  -- non-positive quantity, or a lifecycle item
  with a quantity other than 1.
* ``EntityNotFoundError``  -- unknown item or record.
* ``PermissionDeniedError``  -- actor lacks ``inventory.manage`` on the unit.
* ``OptimisticLockError``  -- the record changed under a concurrent writer.
* ``ValueError``  -- lifecycle event on a bulk (non-lifecycle) record.
"""

from __future__ import annotations

import dataclasses
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from supply_kernel.domain.clock import Clock, SystemClock
from supply_kernel.domain.dtos import AuditAction, Item
from supply_kernel.domain.values import Location, Reference
from supply_kernel.exceptions import EntityNotFoundError, InvalidQuantityError
from supply_kernel.logging_config import get_logger
from supply_kernel.services.transfer_coordinator import TransferCoordinator
from supply_modules._helpers import write_audit
from supply_modules.inventory.models import (
    LIFECYCLE_QUANTITY,
    InventoryEvent,
    InventoryEventType,
    InventoryRecord,
    InventoryStatus,
)
from supply_modules.inventory.repository import InventoryRepository
from supply_services.rbac_authority import Actor, require_capability

logger = get_logger("modules.inventory.service")

ENTITY_TYPE = "inventory_record"


class InventoryService:
    """Individualized inventory on top of the stock ledger."""

    def __init__(
        self,
        repository: InventoryRepository,
        clock: Clock | None = None,
        transfers: TransferCoordinator | None = None,
    ):
        self._repo = repository
        self._clock = clock or SystemClock()
        self._transfers = transfers or TransferCoordinator(repository, clock=self._clock)

    # =========================================================================
    # Records
    # =========================================================================

    def individualize(
        self,
        item_id: UUID,
        unit_id: UUID,
        quantity: Decimal,
        location_label: str,
        actor: Actor,
        status: InventoryStatus = InventoryStatus.AVAILABLE,
        notes: str | None = None,
    ) -> InventoryRecord:
        """Move ``quantity`` from the unit's stock into a new inventory record."""
        require_capability(actor, "inventory.manage", unit_id)
        item = self._require_item(item_id)
        self._check_quantity(item, quantity)

        record = InventoryRecord(
            id=uuid4(),
            item_id=item_id,
            unit_id=unit_id,
            quantity=quantity,
            location_label=location_label,
            status=status,
            notes=notes,
        )
        with self._repo.transaction():
            self._transfers.transfer(
                item_id,
                Location.stock(unit_id),
                Location.inventory(unit_id),
                quantity,
                reason="inventory_individualized",
                reference=Reference(ENTITY_TYPE, record.id),
            )
            record = self._repo.add_inventory_record(record)
            write_audit(
                self._repo, self._clock, AuditAction.INVENTORY_INDIVIDUALIZED,
                ENTITY_TYPE, record.id, actor.id,
                new_values={"item_id": str(item_id), "quantity": str(quantity)},
            )

        logger.info(
            "inventory_individualized",
            extra={
                "record_id": str(record.id),
                "item_id": str(item_id),
                "unit_id": str(unit_id),
                "quantity": str(quantity),
            },
        )
        return record

    def adjust_quantity(
        self,
        record_id: UUID,
        new_quantity: Decimal,
        actor: Actor,
    ) -> InventoryRecord:
        """Change a record's quantity; the difference moves to or from stock.

        The record is read inside the transaction and saved against its
        version, so a concurrent change raises ``OptimisticLockError``
        instead of moving stock for a quantity that no longer holds.
        """
        with self._repo.transaction():
            record = self._require_record(record_id)
            require_capability(actor, "inventory.manage", record.unit_id)
            item = self._require_item(record.item_id)
            self._check_quantity(item, new_quantity)

            delta = new_quantity - record.quantity
            if delta == 0:
                return record

            stock, inventory = Location.stock(record.unit_id), Location.inventory(record.unit_id)
            source, target = (stock, inventory) if delta > 0 else (inventory, stock)
            self._transfers.transfer(
                record.item_id, source, target, abs(delta),
                reason="inventory_adjusted",
                reference=Reference(ENTITY_TYPE, record.id),
            )
            updated = self._repo.save_inventory_record(
                dataclasses.replace(record, quantity=new_quantity)
            )
            write_audit(
                self._repo, self._clock, AuditAction.INVENTORY_ADJUSTED,
                ENTITY_TYPE, record.id, actor.id,
                old_values={"quantity": str(record.quantity)},
                new_values={"quantity": str(new_quantity)},
            )

        logger.info(
            "inventory_adjusted",
            extra={
                "record_id": str(record.id),
                "old_quantity": str(record.quantity),
                "new_quantity": str(new_quantity),
                "version": updated.version,
            },
        )
        return updated

    def remove(self, record_id: UUID, actor: Actor) -> None:
        """Delete a record and return its whole quantity to stock."""
        with self._repo.transaction():
            record = self._require_record(record_id)
            require_capability(actor, "inventory.manage", record.unit_id)
            self._transfers.transfer(
                record.item_id,
                Location.inventory(record.unit_id),
                Location.stock(record.unit_id),
                record.quantity,
                reason="inventory_removed",
                reference=Reference(ENTITY_TYPE, record.id),
            )
            self._repo.delete_inventory_record(record.id, record.version)
            write_audit(
                self._repo, self._clock, AuditAction.INVENTORY_REMOVED,
                ENTITY_TYPE, record.id, actor.id,
                old_values={"quantity": str(record.quantity)},
            )

        logger.info(
            "inventory_removed",
            extra={"record_id": str(record.id), "quantity": str(record.quantity)},
        )

    # =========================================================================
    # Lifecycle events
    # =========================================================================

    def record_event(
        self,
        record_id: UUID,
        event_type: InventoryEventType,
        description: str,
        actor: Actor,
        cost: Decimal | None = None,
        performed_by: str | None = None,
        event_date: date | None = None,
        new_status: InventoryStatus | None = None,
    ) -> InventoryEvent:
        """Attach a lifecycle event to a single-piece record.

        A ``STATUS_CHANGE`` event with ``new_status`` also updates the record.
        """
        with self._repo.transaction():
            record = self._require_record(record_id)
            require_capability(actor, "inventory.manage", record.unit_id)
            item = self._require_item(record.item_id)
            if not item.has_lifecycle:
                raise ValueError(
                    f"Item {item.code} is not a lifecycle item; events attach only to lifecycle items"
                )

            event = self._repo.add_inventory_event(InventoryEvent(
                id=uuid4(),
                record_id=record.id,
                event_type=event_type,
                description=description,
                event_date=event_date or self._clock.today(),
                cost=cost,
                performed_by=performed_by,
                actor_id=actor.id,
            ))
            if event_type is InventoryEventType.STATUS_CHANGE and new_status is not None:
                self._repo.save_inventory_record(dataclasses.replace(record, status=new_status))

        logger.info(
            "inventory_event_recorded",
            extra={
                "record_id": str(record.id),
                "event_type": event_type.value,
                "cost": str(cost) if cost is not None else None,
            },
        )
        return event

    # =========================================================================
    # Queries
    # =========================================================================

    def list_records(self, unit_id: UUID | None = None) -> list[InventoryRecord]:
        return self._repo.list_inventory_records(unit_id)

    def list_events(self, record_id: UUID) -> list[InventoryEvent]:
        return self._repo.list_inventory_events(record_id)

    # =========================================================================
    # Private helpers
    # =========================================================================

    def _require_item(self, item_id: UUID) -> Item:
        item = self._repo.get_item(item_id)
        if item is None:
            raise EntityNotFoundError("Item", str(item_id))
        return item

    def _require_record(self, record_id: UUID) -> InventoryRecord:
        record = self._repo.get_inventory_record(record_id)
        if record is None:
            raise EntityNotFoundError("InventoryRecord", str(record_id))
        return record

    @staticmethod
    def _check_quantity(item: Item, quantity: Decimal) -> None:
        if not isinstance(quantity, Decimal) or quantity <= 0:
            raise InvalidQuantityError(str(item.id), quantity, "quantity must be positive")
        if item.has_lifecycle and quantity != LIFECYCLE_QUANTITY:
            raise InvalidQuantityError(
                str(item.id), quantity, "lifecycle items are individualized one piece per record",
            )
