"""Persistence contract of the Purchasing module."""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from supply_kernel.domain.repository import LedgerRepository
from supply_modules.purchasing.models import Purchase, PurchaseLine


class PurchasingRepository(LedgerRepository, Protocol):
    def add_purchase(self, purchase: Purchase) -> Purchase: ...
    def get_purchase(self, purchase_id: UUID) -> Purchase | None: ...

    def save_purchase(self, purchase: Purchase) -> Purchase:
        """Persist ``purchase`` if the stored version equals ``purchase.version``.

        Returns the stored DTO with ``version + 1``; raises
        OptimisticLockError otherwise.
        """
        ...

    def list_purchases(self, unit_id: UUID | None = None) -> list[Purchase]: ...
    def add_purchase_line(self, line: PurchaseLine) -> PurchaseLine: ...
    def save_purchase_line(self, line: PurchaseLine) -> PurchaseLine: ...
    def list_purchase_lines(self, purchase_id: UUID) -> list[PurchaseLine]: ...
    def delete_purchase_lines(self, purchase_id: UUID) -> None: ...
