"""
Race tests for the ledgers.

Many threads hit the same budget, stock row or in-transit record at once.
The conditional writes must let exactly as many through as the balance
covers, and never drive a balance negative.

Runs against the in-memory repository: the SQLite test engine shares one
connection between threads.

Skip with: pytest -m "not slow_locks"
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from threading import Barrier

import pytest

from supply_kernel.domain.values import Location
from supply_kernel.exceptions import (
    InsufficientBudgetError,
    InsufficientStockError,
    InvalidTransitionError,
)
from supply_modules.requests.models import NewRequestLine

pytestmark = pytest.mark.slow_locks

THREADS = 20


@pytest.fixture
def repo(memory_repo):
    return memory_repo


def _race(fn, count=THREADS):
    """Run ``fn`` in ``count`` threads released together; return (successes, failures)."""
    barrier = Barrier(count)

    def attempt():
        barrier.wait()
        try:
            return ("ok", fn())
        except (InsufficientBudgetError, InsufficientStockError, InvalidTransitionError) as exc:
            return ("rejected", exc)

    with ThreadPoolExecutor(max_workers=count) as pool:
        results = list(pool.map(lambda _: attempt(), range(count)))
    ok = [value for tag, value in results if tag == "ok"]
    rejected = [value for tag, value in results if tag == "rejected"]
    return ok, rejected


class TestBudgetRace:
    def test_concurrent_debits_never_overdraw(self, budget_ledger, open_budget, world):
        """20 debits of 100 against a budget of 1000: exactly 10 succeed."""
        open_budget(world.satellite.id, Decimal("1000"))

        ok, rejected = _race(
            lambda: budget_ledger.debit(world.satellite.id, date(2024, 3, 1), Decimal("100"))
        )

        assert len(ok) == 10
        assert len(rejected) == 10
        assert budget_ledger.available(world.satellite.id, date(2024, 3, 1)) == Decimal("0")


class TestStockRace:
    def test_concurrent_transfers_never_go_negative(self, transfers, stock_ledger, stock_up, world):
        stock_up(world.widget.id, world.cd_stock(), Decimal("7"))

        ok, rejected = _race(
            lambda: transfers.transfer(
                world.widget.id, world.cd_stock(), world.satellite_stock(), Decimal("1"), "race",
            )
        )

        assert len(ok) == 7
        assert stock_ledger.quantity(world.widget.id, world.cd_stock()) == Decimal("0")
        assert stock_ledger.quantity(world.widget.id, world.satellite_stock()) == Decimal("7")


class TestDeliveryRace:
    def test_record_delivered_once(
        self, request_service, stock_ledger, stock_up, world, clerk, storekeeper,
    ):
        stock_up(world.widget.id, world.cd_stock(), Decimal("5"))
        request = request_service.create_request(
            world.satellite.id, world.cd.id, [NewRequestLine(world.widget.id, Decimal("5"))], clerk,
        )
        request_service.approve(request.id, storekeeper)
        [record] = request_service.send(request.id, storekeeper).in_transit

        ok, rejected = _race(lambda: request_service.deliver(record.id, storekeeper))

        assert len(ok) == 1
        assert len(rejected) == THREADS - 1
        assert stock_ledger.quantity(world.widget.id, world.satellite_stock()) == Decimal("5")
        assert stock_ledger.quantity(world.widget.id, Location.in_transit(world.satellite.id)) == Decimal("0")


class TestInventoryAdjustRace:
    def test_concurrent_adjustments_keep_record_and_bucket_equal(
        self, inventory_service, stock_ledger, stock_up, repo, world, clerk,
    ):
        stock_up(world.widget.id, world.satellite_stock(), Decimal("10"))
        record = inventory_service.individualize(
            world.widget.id, world.satellite.id, Decimal("5"), "Shelf A", clerk,
        )
        targets = iter([Decimal("7"), Decimal("3")] * (THREADS // 2))

        ok, rejected = _race(lambda: inventory_service.adjust_quantity(record.id, next(targets), clerk))

        assert len(ok) == THREADS
        stored = repo.get_inventory_record(record.id)
        assert stored.quantity == stock_ledger.quantity(world.widget.id, Location.inventory(world.satellite.id))
        assert stored.quantity + stock_ledger.quantity(world.widget.id, world.satellite_stock()) == Decimal("10")
