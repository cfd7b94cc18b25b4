"""
Kernel Invariants Contract.

These invariants are structural law. They are enforced by the ledger
services and the repository's conditional writes. No configuration set
or role may override them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across BudgetLedger, StockLedger,
TransferCoordinator and the repository implementations.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    STOCK_NON_NEGATIVE = "stock_non_negative"
    """No (item, location) quantity is ever below zero. Enforced by the
    conditional debit in every repository implementation."""

    BUDGET_NOT_EXCEEDED = "budget_not_exceeded"
    """used_amount never exceeds budget_amount. Enforced by the conditional
    budget debit; available_amount is always derived, never stored."""

    SINGLE_BUDGET_PER_DATE = "single_budget_per_date"
    """A unit has at most one budget whose period contains a given date.
    Enforced by BudgetLedger.create_budget."""

    TRANSFER_ATOMICITY = "transfer_atomicity"
    """A transfer debits and credits inside one repository transaction;
    a failure leaves both locations unchanged."""

    MOVEMENT_IMMUTABILITY = "movement_immutability"
    """Movement and financial transaction records are append-only."""

    TERMINAL_STATES = "terminal_states"
    """No mutation is accepted for an entity in a terminal workflow state."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "supply_services",
    "supply_config",
    "supply_modules",
)
