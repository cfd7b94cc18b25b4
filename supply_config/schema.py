"""
Configuration Schema (``supply_config.schema``).

Responsibility
--------------
Frozen dataclasses describing a configuration set: database settings,
budget policy, request policy and the role -> capability table.

Architecture position
---------------------
**Config layer** -- pure data definitions, no I/O.  Produced by
``supply_config.loader`` and checked by ``supply_config.validator``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Every capability a role may be granted.  Services ask for exactly one of
# these before mutating anything.
CAPABILITY_TAXONOMY: frozenset[str] = frozenset({
    # Purchasing
    "purchase.create", "purchase.edit", "purchase.transition", "purchase.finalize",
    # Quotations
    "quotation.manage", "quotation.select",
    # Internal requests
    "request.create", "request.approve", "request.send", "request.deliver",
    "request.confirm_receipt", "request.cancel",
    # Inventory
    "inventory.manage",
    # Warehouse stock
    "stock.manage",
    # Financial
    "budget.manage", "income.record", "financial.view",
})

WILDCARD_CAPABILITY = "*"

SEND_RESOLUTIONS: frozenset[str] = frozenset({"abort", "create_purchase"})


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///supply.db"
    echo: bool = False


@dataclass(frozen=True)
class BudgetPolicy:
    """How budgets are opened and consumed."""

    income_period_days: int = 365


@dataclass(frozen=True)
class RequestPolicy:
    """Internal request behavior."""

    default_send_resolution: str = "abort"
    corrective_purchase_notes: str = "Corrective purchase for request shortfall"


@dataclass(frozen=True)
class RoleGrant:
    """Capabilities of one role and whether it reaches every unit."""

    role: str
    capabilities: frozenset[str]
    all_units: bool = False


@dataclass(frozen=True)
class RbacConfig:
    roles: tuple[RoleGrant, ...] = ()

    def grant_for(self, role: str) -> RoleGrant | None:
        for grant in self.roles:
            if grant.role == role:
                return grant
        return None


@dataclass(frozen=True)
class SupplyConfig:
    """A complete, validated configuration set."""

    config_id: str
    version: int
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    budget_policy: BudgetPolicy = field(default_factory=BudgetPolicy)
    request_policy: RequestPolicy = field(default_factory=RequestPolicy)
    rbac: RbacConfig = field(default_factory=RbacConfig)
    checksum: str = ""
