"""
Pytest fixtures for the supply ledger test suite.

Provides:
- Structured-logging capture
- A deterministic clock
- Repositories: in-memory, SQLite-backed SQLAlchemy, and a parametrized
  ``repo`` fixture that runs a test against both
- A seeded world (distribution center, satellite unit, items)
- Actors resolved from the default role table
- Services wired to the same repository and clock
"""

import json
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import sessionmaker

from supply_config import get_active_config
from supply_kernel.db.engine import build_engine
from supply_kernel.domain.clock import DeterministicClock
from supply_kernel.domain.dtos import Item, Unit
from supply_kernel.domain.values import Location
from supply_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from supply_kernel.services.budget_ledger import BudgetLedger
from supply_kernel.services.stock_ledger import StockLedger
from supply_kernel.services.transfer_coordinator import TransferCoordinator
from supply_modules._orm_registry import create_all_tables
from supply_modules.financial.service import FinancialService
from supply_modules.inventory.service import InventoryService
from supply_modules.purchasing.service import PurchaseService
from supply_modules.quotation.service import QuotationService
from supply_modules.requests.service import RequestService
from supply_modules.stock.service import StockService
from supply_services.memory_repository import InMemoryRepository
from supply_services.rbac_authority import Actor, resolve_actor
from supply_services.sql_repository import SqlAlchemyRepository
from supply_services.workflow_executor import WorkflowExecutor


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture supply_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, purchase_service):
            purchase_service.finalize(...)
            logs = captured_logs()
            assert any(r["message"] == "purchase_finalized" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("supply_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock and configuration
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    """Clock fixed at 2024-01-01 12:00 UTC."""
    return DeterministicClock()


@pytest.fixture(scope="session")
def supply_config():
    return get_active_config()


# =============================================================================
# Repositories
# =============================================================================


@pytest.fixture
def memory_repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def sql_repo():
    """SQLAlchemy repository over a fresh in-memory SQLite database."""
    engine = build_engine("sqlite://")
    create_all_tables(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    yield SqlAlchemyRepository(factory)
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def repo(request):
    """Runs the test once per repository implementation."""
    return request.getfixturevalue(f"{request.param}_repo")


# =============================================================================
# Seeded world
# =============================================================================


@dataclass(frozen=True)
class World:
    cd: Unit
    satellite: Unit
    other_satellite: Unit
    widget: Item
    gadget: Item
    laptop: Item

    def cd_stock(self) -> Location:
        return Location.stock(self.cd.id)

    def satellite_stock(self) -> Location:
        return Location.stock(self.satellite.id)


@pytest.fixture
def world(repo) -> World:
    """Two satellites, one distribution center, two bulk items and one lifecycle item."""
    cd = repo.add_unit(Unit(uuid4(), "CD-01", "Central warehouse", is_distribution_center=True))
    satellite = repo.add_unit(Unit(uuid4(), "UN-01", "North clinic"))
    other = repo.add_unit(Unit(uuid4(), "UN-02", "South clinic"))
    widget = repo.add_item(Item(uuid4(), "ITM-001", "Gauze pack", unit_of_measure="pct"))
    gadget = repo.add_item(Item(uuid4(), "ITM-002", "Syringe 5ml"))
    laptop = repo.add_item(Item(uuid4(), "ITM-100", "Laptop", category="IT", has_lifecycle=True))
    return World(cd, satellite, other, widget, gadget, laptop)


# =============================================================================
# Actors
# =============================================================================


@pytest.fixture
def make_actor(supply_config):
    """Factory: ``make_actor(role, unit_id=None)`` resolved from the default role table."""

    def _make(role: str, unit_id: UUID | None = None) -> Actor:
        return resolve_actor(supply_config.rbac, uuid4(), role, unit_id)

    return _make


@pytest.fixture
def admin(make_actor) -> Actor:
    return make_actor("admin")


@pytest.fixture
def storekeeper(make_actor, world) -> Actor:
    """Warehouse operator; reaches every unit."""
    return make_actor("operador-almoxarife", world.cd.id)


@pytest.fixture
def clerk(make_actor, world) -> Actor:
    """Administrative operator of the satellite unit."""
    return make_actor("operador-administrativo", world.satellite.id)


@pytest.fixture
def finance_officer(make_actor, world) -> Actor:
    """Financial operator of the satellite unit."""
    return make_actor("operador-financeiro", world.satellite.id)


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def budget_ledger(repo, deterministic_clock) -> BudgetLedger:
    return BudgetLedger(repo, clock=deterministic_clock)


@pytest.fixture
def stock_ledger(repo) -> StockLedger:
    return StockLedger(repo)


@pytest.fixture
def transfers(repo, stock_ledger, deterministic_clock) -> TransferCoordinator:
    return TransferCoordinator(repo, stock_ledger=stock_ledger, clock=deterministic_clock)


@pytest.fixture
def workflow_executor() -> WorkflowExecutor:
    return WorkflowExecutor()


@pytest.fixture
def purchase_service(repo, workflow_executor, deterministic_clock, budget_ledger, transfers) -> PurchaseService:
    return PurchaseService(
        repo,
        workflow_executor=workflow_executor,
        clock=deterministic_clock,
        budget_ledger=budget_ledger,
        transfers=transfers,
    )


@pytest.fixture
def request_service(
    repo, workflow_executor, deterministic_clock, budget_ledger, transfers, purchase_service, supply_config,
) -> RequestService:
    return RequestService(
        repo,
        workflow_executor=workflow_executor,
        clock=deterministic_clock,
        budget_ledger=budget_ledger,
        transfers=transfers,
        purchases=purchase_service,
        policy=supply_config.request_policy,
    )


@pytest.fixture
def quotation_service(repo, workflow_executor, deterministic_clock, purchase_service) -> QuotationService:
    return QuotationService(
        repo,
        workflow_executor=workflow_executor,
        clock=deterministic_clock,
        purchases=purchase_service,
    )


@pytest.fixture
def inventory_service(repo, deterministic_clock, transfers) -> InventoryService:
    return InventoryService(repo, clock=deterministic_clock, transfers=transfers)


@pytest.fixture
def stock_service(repo, deterministic_clock, transfers) -> StockService:
    return StockService(repo, clock=deterministic_clock, transfers=transfers)


@pytest.fixture
def financial_service(repo, deterministic_clock, budget_ledger) -> FinancialService:
    return FinancialService(repo, clock=deterministic_clock, budget_ledger=budget_ledger)


# =============================================================================
# Seeding helpers
# =============================================================================


@pytest.fixture
def open_budget(repo, budget_ledger):
    """Factory: open a 2024 budget of ``amount`` for a unit."""

    def _open(unit_id: UUID, amount: Decimal):
        return budget_ledger.create_budget(unit_id, date(2024, 1, 1), date(2024, 12, 31), amount)

    return _open


@pytest.fixture
def stock_up(transfers):
    """Factory: receive ``amount`` of an item into a location."""

    def _stock(item_id: UUID, location: Location, amount: Decimal):
        return transfers.receive(item_id, location, amount, reason="initial_load")

    return _stock
