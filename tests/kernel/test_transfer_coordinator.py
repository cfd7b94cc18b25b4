"""
Tests for the Transfer Coordinator.

Validates:
- a transfer debits the source, credits the destination, appends a movement
- a failed debit leaves both locations and the movement log untouched
- receipts from outside carry no source location
- total quantity of an item is conserved across internal transfers
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from supply_kernel.domain.values import Location, Reference
from supply_kernel.exceptions import InsufficientStockError


class TestTransfer:
    def test_transfer_moves_quantity(self, transfers, stock_ledger, world, stock_up):
        stock_up(world.widget.id, world.cd_stock(), Decimal("10"))

        transfers.transfer(
            world.widget.id, world.cd_stock(), world.satellite_stock(), Decimal("4"), "manual",
        )

        assert stock_ledger.quantity(world.widget.id, world.cd_stock()) == Decimal("6")
        assert stock_ledger.quantity(world.widget.id, world.satellite_stock()) == Decimal("4")

    def test_transfer_appends_movement(self, repo, transfers, world, stock_up):
        stock_up(world.widget.id, world.cd_stock(), Decimal("10"))
        reference = Reference("request", uuid4())

        movement = transfers.transfer(
            world.widget.id, world.cd_stock(), Location.in_transit(world.cd.id),
            Decimal("4"), "request_sent", reference,
        )

        stored = [m for m in repo.list_movements(world.widget.id) if m.id == movement.id]
        assert len(stored) == 1
        assert stored[0].from_location == world.cd_stock()
        assert stored[0].to_location == Location.in_transit(world.cd.id)
        assert stored[0].quantity == Decimal("4")
        assert stored[0].reference_id == reference.id

    def test_failed_transfer_leaves_no_trace(self, repo, transfers, stock_ledger, world, stock_up):
        stock_up(world.widget.id, world.cd_stock(), Decimal("5"))
        movements_before = len(repo.list_movements(world.widget.id))

        with pytest.raises(InsufficientStockError):
            transfers.transfer(
                world.widget.id, world.cd_stock(), world.satellite_stock(), Decimal("8"), "manual",
            )

        assert stock_ledger.quantity(world.widget.id, world.cd_stock()) == Decimal("5")
        assert stock_ledger.quantity(world.widget.id, world.satellite_stock()) == Decimal("0")
        assert len(repo.list_movements(world.widget.id)) == movements_before

    def test_same_location_rejected(self, transfers, world, stock_up):
        stock_up(world.widget.id, world.cd_stock(), Decimal("5"))
        with pytest.raises(ValueError):
            transfers.transfer(world.widget.id, world.cd_stock(), world.cd_stock(), Decimal("1"), "noop")

    def test_total_is_conserved(self, transfers, stock_ledger, world, stock_up):
        stock_up(world.widget.id, world.cd_stock(), Decimal("10"))
        locations = [world.cd_stock(), Location.in_transit(world.cd.id), world.satellite_stock()]

        transfers.transfer(world.widget.id, locations[0], locations[1], Decimal("6"), "step")
        transfers.transfer(world.widget.id, locations[1], locations[2], Decimal("5"), "step")

        total = sum(stock_ledger.quantity(world.widget.id, loc) for loc in locations)
        assert total == Decimal("10")


class TestReceive:
    def test_receive_records_external_source(self, repo, transfers, stock_ledger, world):
        movement = transfers.receive(world.gadget.id, world.cd_stock(), Decimal("7"), "purchase_finalized")

        assert movement.from_location is None
        assert stock_ledger.quantity(world.gadget.id, world.cd_stock()) == Decimal("7")
        [stored] = repo.list_movements(world.gadget.id)
        assert stored.reason == "purchase_finalized"
        assert stored.from_location is None
