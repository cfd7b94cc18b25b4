"""
StockLedger -- quantity on hand per (item, location).

Responsibility:
    Debits and credits stock through the repository's conditional writes.

Architecture position:
    Kernel > Services.  Used directly for receipts (finalized purchases)
    and through TransferCoordinator for every movement between locations.

Invariants enforced:
    STOCK_NON_NEGATIVE -- ``debit_stock_if_available`` applies the debit
        only when ``quantity >= amount``.

Failure modes:
    - InvalidQuantityError: non-positive amount.
    - InsufficientStockError: debit above the quantity on hand.
"""

from decimal import Decimal
from uuid import UUID

from supply_kernel.domain.repository import LedgerRepository
from supply_kernel.domain.values import Location, require_positive
from supply_kernel.exceptions import InsufficientStockError, InvalidQuantityError
from supply_kernel.logging_config import get_logger

logger = get_logger("services.stock_ledger")


class StockLedger:
    """Stock ledger over all items and locations."""

    def __init__(self, repository: LedgerRepository):
        self._repo = repository

    def quantity(self, item_id: UUID, location: Location) -> Decimal:
        """Quantity on hand; zero when the row does not exist."""
        return self._repo.get_stock_quantity(item_id, location)

    def debit(self, item_id: UUID, location: Location, amount: Decimal) -> Decimal:
        """Remove ``amount`` from the location.  Returns the new quantity."""
        if not require_positive(amount):
            raise InvalidQuantityError(str(item_id), amount, "debit quantity must be positive")

        with self._repo.transaction():
            if not self._repo.debit_stock_if_available(item_id, location, amount):
                available = self._repo.get_stock_quantity(item_id, location)
                logger.warning(
                    "stock_debit_rejected",
                    extra={
                        "item_id": str(item_id),
                        "location": str(location),
                        "requested": str(amount),
                        "available": str(available),
                    },
                )
                raise InsufficientStockError(str(item_id), str(location), amount, available)
            new_quantity = self._repo.get_stock_quantity(item_id, location)

        logger.debug(
            "stock_debited",
            extra={
                "item_id": str(item_id),
                "location": str(location),
                "amount": str(amount),
                "quantity": str(new_quantity),
            },
        )
        return new_quantity

    def credit(self, item_id: UUID, location: Location, amount: Decimal) -> Decimal:
        """Add ``amount`` to the location, creating the row at zero if absent."""
        if not require_positive(amount):
            raise InvalidQuantityError(str(item_id), amount, "credit quantity must be positive")

        with self._repo.transaction():
            self._repo.credit_stock(item_id, location, amount)
            new_quantity = self._repo.get_stock_quantity(item_id, location)

        logger.debug(
            "stock_credited",
            extra={
                "item_id": str(item_id),
                "location": str(location),
                "amount": str(amount),
                "quantity": str(new_quantity),
            },
        )
        return new_quantity
