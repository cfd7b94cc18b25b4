"""
supply_services.repository -- Combined persistence contract.

Responsibility:
    One Protocol covering the kernel ledgers and every module, so a single
    repository object can be handed to all services of a unit of work.

Architecture position:
    Services layer.  Implemented by ``InMemoryRepository`` and
    ``SqlAlchemyRepository``.
"""

from typing import Protocol

from supply_modules.inventory.repository import InventoryRepository
from supply_modules.purchasing.repository import PurchasingRepository
from supply_modules.quotation.repository import QuotationRepository
from supply_modules.requests.repository import RequestsRepository


class SupplyRepository(
    InventoryRepository,
    PurchasingRepository,
    RequestsRepository,
    QuotationRepository,
    Protocol,
):
    """Every persistence operation of the service."""
