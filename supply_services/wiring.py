"""
supply_services.wiring -- builds every module service from one configuration set.

Responsibility:
    Creates the kernel ledgers, the transfer coordinator and the workflow
    executor exactly once and hands the same instances to every module
    service, with the budget and request policies taken from
    ``SupplyConfig``.

Invariants enforced:
    - Single-instance lifecycle: all services share one BudgetLedger, one
      TransferCoordinator and one WorkflowExecutor.
    - ``budget_policy.income_period_days`` reaches the BudgetLedger that
      ``FinancialService.record_income`` uses.

Usage:
    repo = open_sql_repository(config)
    services = build_services(repo, config)
    services.requests.approve(request_id, actor)
"""

from __future__ import annotations

from dataclasses import dataclass

from supply_config import SupplyConfig
from supply_kernel.domain.clock import Clock, SystemClock
from supply_kernel.logging_config import get_logger
from supply_kernel.services.budget_ledger import BudgetLedger
from supply_kernel.services.stock_ledger import StockLedger
from supply_kernel.services.transfer_coordinator import TransferCoordinator
from supply_modules.financial.service import FinancialService
from supply_modules.inventory.service import InventoryService
from supply_modules.purchasing.service import PurchaseService
from supply_modules.quotation.service import QuotationService
from supply_modules.requests.service import RequestService
from supply_modules.stock.service import StockService
from supply_services.repository import SupplyRepository
from supply_services.workflow_executor import WorkflowExecutor

logger = get_logger("services.wiring")


@dataclass(frozen=True)
class SupplyServices:
    """Module services sharing one set of ledgers."""

    budget_ledger: BudgetLedger
    stock_ledger: StockLedger
    transfers: TransferCoordinator
    workflow_executor: WorkflowExecutor
    purchases: PurchaseService
    quotations: QuotationService
    requests: RequestService
    inventory: InventoryService
    stock: StockService
    financial: FinancialService


def build_services(
    repository: SupplyRepository,
    config: SupplyConfig,
    clock: Clock | None = None,
) -> SupplyServices:
    clock = clock or SystemClock()
    budget_ledger = BudgetLedger(
        repository, clock=clock,
        income_period_days=config.budget_policy.income_period_days,
    )
    stock_ledger = StockLedger(repository)
    transfers = TransferCoordinator(repository, stock_ledger=stock_ledger, clock=clock)
    workflow_executor = WorkflowExecutor()

    purchases = PurchaseService(
        repository,
        workflow_executor=workflow_executor,
        clock=clock,
        budget_ledger=budget_ledger,
        transfers=transfers,
    )
    services = SupplyServices(
        budget_ledger=budget_ledger,
        stock_ledger=stock_ledger,
        transfers=transfers,
        workflow_executor=workflow_executor,
        purchases=purchases,
        quotations=QuotationService(
            repository, workflow_executor=workflow_executor, clock=clock, purchases=purchases,
        ),
        requests=RequestService(
            repository,
            workflow_executor=workflow_executor,
            clock=clock,
            budget_ledger=budget_ledger,
            transfers=transfers,
            purchases=purchases,
            policy=config.request_policy,
        ),
        inventory=InventoryService(repository, clock=clock, transfers=transfers),
        stock=StockService(repository, clock=clock, transfers=transfers),
        financial=FinancialService(
            repository, clock=clock, budget_ledger=budget_ledger, policy=config.budget_policy,
        ),
    )

    logger.info(
        "services_built",
        extra={
            "config_id": config.config_id,
            "income_period_days": config.budget_policy.income_period_days,
        },
    )
    return services
