"""
TransferCoordinator -- atomic stock movement between two locations.

Responsibility:
    Debits the source, credits the destination and appends an immutable
    MovementRecord, all inside one repository transaction.

Invariants enforced:
    TRANSFER_ATOMICITY -- the debit, the credit and the movement row commit
        together or not at all.
    MOVEMENT_IMMUTABILITY -- movement rows are only ever appended.

Failure modes:
    - InsufficientStockError from the source debit; nothing is mutated.
    - ValueError when source and destination are the same location.
"""

from decimal import Decimal
from uuid import UUID, uuid4

from supply_kernel.domain.clock import Clock, SystemClock
from supply_kernel.domain.dtos import MovementRecord
from supply_kernel.domain.repository import LedgerRepository
from supply_kernel.domain.values import Location, Reference
from supply_kernel.logging_config import get_logger
from supply_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.transfer_coordinator")


class TransferCoordinator:
    """Moves quantities between locations as one unit of work."""

    def __init__(
        self,
        repository: LedgerRepository,
        stock_ledger: StockLedger | None = None,
        clock: Clock | None = None,
    ):
        self._repo = repository
        self._stock = stock_ledger or StockLedger(repository)
        self._clock = clock or SystemClock()

    def transfer(
        self,
        item_id: UUID,
        from_location: Location,
        to_location: Location,
        amount: Decimal,
        reason: str,
        reference: Reference | None = None,
    ) -> MovementRecord:
        if from_location == to_location:
            raise ValueError(f"Transfer source and destination are both {from_location}")

        with self._repo.transaction():
            self._stock.debit(item_id, from_location, amount)
            self._stock.credit(item_id, to_location, amount)
            movement = self.record_movement(
                item_id, from_location, to_location, amount, reason, reference,
            )

        logger.info(
            "stock_transferred",
            extra={
                "item_id": str(item_id),
                "from_location": str(from_location),
                "to_location": str(to_location),
                "amount": str(amount),
                "reason": reason,
                "movement_id": str(movement.id),
            },
        )
        return movement

    def receive(
        self,
        item_id: UUID,
        to_location: Location,
        amount: Decimal,
        reason: str,
        reference: Reference | None = None,
    ) -> MovementRecord:
        """Credit stock arriving from outside the system (e.g. a supplier)."""
        with self._repo.transaction():
            self._stock.credit(item_id, to_location, amount)
            movement = self.record_movement(
                item_id, None, to_location, amount, reason, reference,
            )
        return movement

    def record_movement(
        self,
        item_id: UUID,
        from_location: Location | None,
        to_location: Location | None,
        amount: Decimal,
        reason: str,
        reference: Reference | None = None,
    ) -> MovementRecord:
        return self._repo.add_movement(MovementRecord(
            id=uuid4(),
            item_id=item_id,
            from_location=from_location,
            to_location=to_location,
            quantity=amount,
            reason=reason,
            occurred_at=self._clock.now(),
            reference_type=reference.type if reference else None,
            reference_id=reference.id if reference else None,
        ))
