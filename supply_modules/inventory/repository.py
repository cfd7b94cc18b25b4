"""Persistence contract of the Inventory module."""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from supply_kernel.domain.repository import LedgerRepository
from supply_modules.inventory.models import InventoryEvent, InventoryRecord


class InventoryRepository(LedgerRepository, Protocol):
    def add_inventory_record(self, record: InventoryRecord) -> InventoryRecord: ...
    def get_inventory_record(self, record_id: UUID) -> InventoryRecord | None: ...
    def save_inventory_record(self, record: InventoryRecord) -> InventoryRecord: ...
    def delete_inventory_record(self, record_id: UUID, version: int) -> None: ...
    def list_inventory_records(self, unit_id: UUID | None = None) -> list[InventoryRecord]: ...
    def add_inventory_event(self, event: InventoryEvent) -> InventoryEvent: ...
    def list_inventory_events(self, record_id: UUID) -> list[InventoryEvent]: ...
