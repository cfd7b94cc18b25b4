"""
Typed Exception Hierarchy for the Supply Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Ledger and workflow failures have to drive corrective action in the caller
(buy the missing quantity, lower the approved quantity, pick another period).
Callers must therefore catch by TYPE and read STRUCTURED attributes instead
of parsing message strings:

    try:
        budget_ledger.debit(unit_id, today, total)
    except InsufficientBudgetError as e:
        notify(f"Missing {e.shortfall} on unit {e.unit_id}")
        api_response(code=e.code, shortfall=str(e.shortfall))

Every exception has:
  1. A TYPED class (catch by type, not message)
  2. A ``code`` class attribute (machine-readable, API-safe)
  3. Structured attributes carrying the context (unit, item, amounts)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SupplyKernelError (base)
    |
    +-- BudgetError
    |   +-- NoBudgetForPeriodError
    |   +-- InsufficientBudgetError
    |   +-- BudgetOverlapError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- InvalidQuantityError
    |
    +-- AmountError
    |   +-- InvalidAmountError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   |   +-- TransitionGuardError
    |   +-- DuplicateSelectionError
    |
    +-- EntityNotFoundError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- AuthorizationError
    |   +-- PermissionDeniedError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                       | When Raised
--------------|----------------------------|-------------------------------------------
Budget        | NO_BUDGET_FOR_PERIOD       | No budget of the unit contains the date
              | INSUFFICIENT_BUDGET        | Debit exceeds the available amount
              | BUDGET_OVERLAP             | New budget period overlaps an existing one
--------------|----------------------------|-------------------------------------------
Stock         | INSUFFICIENT_STOCK         | Debit exceeds quantity on hand
              | INVALID_QUANTITY           | Quantity outside the allowed range
--------------|----------------------------|-------------------------------------------
Amount        | INVALID_AMOUNT             | Zero/negative amount, over-release
--------------|----------------------------|-------------------------------------------
Workflow      | INVALID_TRANSITION         | Transition not declared / terminal state
              | TRANSITION_GUARD_FAILED    | Declared transition, guard not satisfied
              | DUPLICATE_SELECTION        | Two selected responses for one item
--------------|----------------------------|-------------------------------------------
Lookup        | ENTITY_NOT_FOUND           | Referenced row does not exist
--------------|----------------------------|-------------------------------------------
Concurrency   | OPTIMISTIC_LOCK_CONFLICT   | Row changed by another transaction
--------------|----------------------------|-------------------------------------------
Authorization | PERMISSION_DENIED          | Capability missing or unit out of scope
--------------|----------------------------|-------------------------------------------
Config        | CONFIGURATION_ERROR        | Invalid configuration set

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Budget and stock shortfalls are user-recoverable: report them with the
   structured fields, never swallow them.

2. ConcurrencyError may be retried by the CALLER for idempotent reads or
   status changes it re-validates.  Ledger debits are never retried
   blindly.

3. Every error raised inside a service leaves no partial mutation: the
   service rolls back its repository transaction before re-raising.
"""

from decimal import Decimal


class SupplyKernelError(Exception):
    """
    Base exception for all supply kernel errors.

    All subclasses have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "SUPPLY_KERNEL_ERROR"


# Budget-related exceptions


class BudgetError(SupplyKernelError):
    """Base exception for budget ledger errors."""

    code: str = "BUDGET_ERROR"


class NoBudgetForPeriodError(BudgetError):
    """No budget of the unit covers the requested date."""

    code: str = "NO_BUDGET_FOR_PERIOD"

    def __init__(self, unit_id: str, period_date: str):
        self.unit_id = unit_id
        self.period_date = period_date
        super().__init__(
            f"Unit {unit_id} has no budget covering {period_date}"
        )


class InsufficientBudgetError(BudgetError):
    """Debit amount exceeds the available budget."""

    code: str = "INSUFFICIENT_BUDGET"

    def __init__(
        self,
        unit_id: str,
        budget_id: str,
        requested: Decimal,
        available: Decimal,
    ):
        self.unit_id = unit_id
        self.budget_id = budget_id
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient budget on unit {unit_id}: requested {requested}, "
            f"available {available}, shortfall {self.shortfall}"
        )


class BudgetOverlapError(BudgetError):
    """New budget period overlaps an existing budget of the same unit."""

    code: str = "BUDGET_OVERLAP"

    def __init__(self, unit_id: str, existing_budget_id: str, period_start: str, period_end: str):
        self.unit_id = unit_id
        self.existing_budget_id = existing_budget_id
        self.period_start = period_start
        self.period_end = period_end
        super().__init__(
            f"Budget period {period_start}..{period_end} for unit {unit_id} "
            f"overlaps budget {existing_budget_id}"
        )


# Stock-related exceptions


class StockError(SupplyKernelError):
    """Base exception for stock ledger errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """Debit quantity exceeds the quantity on hand."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        item_id: str,
        location: str,
        requested: Decimal,
        available: Decimal,
    ):
        self.item_id = item_id
        self.location = location
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient stock of item {item_id} at {location}: "
            f"requested {requested}, available {available}, shortfall {self.shortfall}"
        )


class InvalidQuantityError(StockError):
    """Quantity is outside the range allowed for the operation."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, item_id: str, quantity: Decimal, reason: str):
        self.item_id = item_id
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity} for item {item_id}: {reason}")


# Amount validation


class AmountError(SupplyKernelError):
    """Base exception for amount validation errors."""

    code: str = "AMOUNT_ERROR"


class InvalidAmountError(AmountError):
    """Amount is zero, negative, or exceeds what may be released."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: Decimal, reason: str):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount}: {reason}")


# Workflow-related exceptions


class WorkflowError(SupplyKernelError):
    """Base exception for workflow state machine errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """Requested transition is not declared, or the entity is terminal."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        workflow: str,
        entity_id: str,
        from_state: str,
        action: str,
        reason: str = "",
    ):
        self.workflow = workflow
        self.entity_id = entity_id
        self.from_state = from_state
        self.action = action
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Invalid {workflow} transition '{action}' from '{from_state}' "
            f"for {entity_id}{detail}"
        )


class TransitionGuardError(InvalidTransitionError):
    """Transition is declared but its guard is not satisfied."""

    code: str = "TRANSITION_GUARD_FAILED"

    def __init__(
        self,
        workflow: str,
        entity_id: str,
        from_state: str,
        action: str,
        guard: str,
        reason: str,
    ):
        self.guard = guard
        super().__init__(workflow, entity_id, from_state, action, f"guard '{guard}' failed: {reason}")


class DuplicateSelectionError(WorkflowError):
    """More than one quotation response selected for the same item."""

    code: str = "DUPLICATE_SELECTION"

    def __init__(self, quotation_id: str, item_id: str):
        self.quotation_id = quotation_id
        self.item_id = item_id
        super().__init__(
            f"Quotation {quotation_id} already has a selected response for item {item_id}"
        )


# Lookup


class EntityNotFoundError(SupplyKernelError):
    """Referenced entity does not exist."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


# Concurrency-related exceptions


class ConcurrencyError(SupplyKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Authorization


class AuthorizationError(SupplyKernelError):
    """Base exception for authorization errors."""

    code: str = "AUTHORIZATION_ERROR"


class PermissionDeniedError(AuthorizationError):
    """Actor lacks the capability, or the unit is outside its scope."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, actor_id: str, role: str, capability: str, reason: str = ""):
        self.actor_id = actor_id
        self.role = role
        self.capability = capability
        self.reason = reason
        detail = f" ({reason})" if reason else ""
        super().__init__(
            f"Actor {actor_id} with role '{role}' may not '{capability}'{detail}"
        )


# Configuration


class ConfigurationError(SupplyKernelError):
    """Configuration set failed validation."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Invalid configuration: " + "; ".join(errors))
