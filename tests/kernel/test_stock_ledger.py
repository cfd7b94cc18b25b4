"""
Tests for the Stock Ledger.

Validates:
- quantity() is zero for a location never credited
- credit creates the row and accumulates
- debit never drives a quantity below zero
- locations of the same unit are independent buckets
"""

from decimal import Decimal

import pytest

from supply_kernel.domain.values import Location
from supply_kernel.exceptions import InsufficientStockError, InvalidQuantityError


class TestStockCredit:
    def test_unknown_location_has_zero_quantity(self, stock_ledger, world):
        assert stock_ledger.quantity(world.widget.id, world.cd_stock()) == Decimal("0")

    def test_credit_creates_and_accumulates(self, stock_ledger, world):
        assert stock_ledger.credit(world.widget.id, world.cd_stock(), Decimal("5")) == Decimal("5")
        assert stock_ledger.credit(world.widget.id, world.cd_stock(), Decimal("2.5")) == Decimal("7.5")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1")])
    def test_non_positive_credit_rejected(self, stock_ledger, world, amount):
        with pytest.raises(InvalidQuantityError):
            stock_ledger.credit(world.widget.id, world.cd_stock(), amount)


class TestStockDebit:
    def test_debit_returns_new_quantity(self, stock_ledger, world):
        stock_ledger.credit(world.widget.id, world.cd_stock(), Decimal("10"))
        assert stock_ledger.debit(world.widget.id, world.cd_stock(), Decimal("4")) == Decimal("6")

    def test_debit_to_exactly_zero(self, stock_ledger, world):
        stock_ledger.credit(world.widget.id, world.cd_stock(), Decimal("3"))
        assert stock_ledger.debit(world.widget.id, world.cd_stock(), Decimal("3")) == Decimal("0")

    def test_overdraw_rejected_without_mutation(self, stock_ledger, world):
        stock_ledger.credit(world.widget.id, world.cd_stock(), Decimal("5"))

        with pytest.raises(InsufficientStockError) as exc_info:
            stock_ledger.debit(world.widget.id, world.cd_stock(), Decimal("8"))

        assert exc_info.value.shortfall == Decimal("3")
        assert exc_info.value.code == "INSUFFICIENT_STOCK"
        assert stock_ledger.quantity(world.widget.id, world.cd_stock()) == Decimal("5")

    def test_debit_of_missing_row_rejected(self, stock_ledger, world):
        with pytest.raises(InsufficientStockError):
            stock_ledger.debit(world.gadget.id, world.cd_stock(), Decimal("1"))


class TestLocationIsolation:
    """Stock, in-transit and inventory buckets of one unit never mix."""

    def test_buckets_are_independent(self, stock_ledger, world):
        stock_ledger.credit(world.widget.id, world.cd_stock(), Decimal("5"))
        stock_ledger.credit(world.widget.id, Location.in_transit(world.cd.id), Decimal("2"))

        assert stock_ledger.quantity(world.widget.id, Location.inventory(world.cd.id)) == Decimal("0")
        assert stock_ledger.quantity(world.widget.id, Location.in_transit(world.cd.id)) == Decimal("2")
        with pytest.raises(InsufficientStockError):
            stock_ledger.debit(world.widget.id, Location.in_transit(world.cd.id), Decimal("3"))

    def test_items_are_independent(self, stock_ledger, world):
        stock_ledger.credit(world.widget.id, world.cd_stock(), Decimal("5"))
        assert stock_ledger.quantity(world.gadget.id, world.cd_stock()) == Decimal("0")

    def test_stock_levels_listed_per_unit(self, repo, stock_ledger, world):
        stock_ledger.credit(world.widget.id, world.cd_stock(), Decimal("5"))
        stock_ledger.credit(world.widget.id, world.satellite_stock(), Decimal("1"))

        levels = repo.list_stock_levels(world.cd.id)

        assert [(lvl.item_id, lvl.location, lvl.quantity) for lvl in levels] == [
            (world.widget.id, world.cd_stock(), Decimal("5")),
        ]
