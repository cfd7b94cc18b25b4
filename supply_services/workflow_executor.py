"""
supply_services.workflow_executor -- Workflow transition execution.

Responsibility:
    Decides whether a transition may fire: the entity must not be in a
    terminal state, the transition must be declared, the actor must hold
    the mapped capability over the entity's unit, and the transition's
    guard must pass.  Persistence and ledger side effects stay with the
    calling module service.

Architecture position:
    Services layer.  Imports only supply_kernel and supply_services.

Invariants enforced:
    TERMINAL_STATES -- no transition is resolved out of a terminal state.
    Every attempt, successful or not, emits one ``workflow_transition``
    trace record.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Callable
from uuid import UUID

from supply_kernel.domain.workflow import Guard, Transition, Workflow
from supply_kernel.exceptions import (
    InvalidTransitionError,
    PermissionDeniedError,
    TransitionGuardError,
)
from supply_kernel.logging_config import LogContext, get_logger
from supply_services.rbac_authority import (
    Actor,
    check_capability,
    get_capability_for_transition,
)

logger = get_logger("services.workflow_executor")

TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_TERMINAL = "terminal_state"
OUTCOME_NO_TRANSITION = "no_transition"
OUTCOME_DENIED = "permission_denied"
OUTCOME_GUARD_FAILED = "guard_failed"


def _emit_workflow_trace(
    workflow_name: str,
    action: str,
    entity_type: str,
    entity_id: UUID,
    from_state: str,
    outcome: str,
    reason: str,
    duration_ms: float,
    to_state: str | None = None,
    actor_id: UUID | None = None,
    mutates_ledger: bool = False,
    outcome_sink: Callable[[dict], None] | None = None,
) -> None:
    """Emit a structured workflow transition record."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "ts": datetime.now(UTC).isoformat(),
        "workflow": workflow_name,
        "action": action,
        "entity_type": entity_type,
        "entity_id": str(entity_id),
        "from_state": from_state,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
        "mutates_ledger": mutates_ledger,
    }
    if to_state is not None:
        record["to_state"] = to_state
    if actor_id is not None:
        record["transition_actor_id"] = str(actor_id)
    record.update(LogContext.get_all())
    logger.info("workflow_transition", extra=record)
    if outcome_sink is not None:
        outcome_sink(record)


# ---------------------------------------------------------------------------
# Guard evaluation
# ---------------------------------------------------------------------------


def _get_attr(context: Any, key: str, default: Any = None) -> Any:
    """Get attribute from context (object or dict)."""
    if context is None:
        return default
    if hasattr(context, "get") and callable(getattr(context, "get")):
        return context.get(key, default)
    return getattr(context, key, default)


def _lines_present(context: Any) -> tuple[bool, str]:
    if _get_attr(context, "line_count", 0) > 0:
        return (True, "")
    return (False, "purchase has no line items")


def _lines_priced(context: Any) -> tuple[bool, str]:
    prices = _get_attr(context, "unit_prices")
    if not prices:
        return (False, "purchase has no line items")
    unpriced = [str(i + 1) for i, price in enumerate(prices) if price is None or price <= Decimal("0")]
    if unpriced:
        return (False, f"line(s) {', '.join(unpriced)} have no positive unit price")
    return (True, "")


def _all_delivered(context: Any) -> tuple[bool, str]:
    pending = _get_attr(context, "pending_deliveries")
    if pending is None:
        return (False, "delivery status unknown")
    if pending > 0:
        return (False, f"{pending} in-transit record(s) not yet delivered")
    return (True, "")


def _stock_available(context: Any) -> tuple[bool, str]:
    short = _get_attr(context, "shortfall_count")
    if short is None:
        return (False, "stock availability unknown")
    if short > 0:
        return (False, f"{short} item(s) short at the distribution center")
    return (True, "")


def _budget_covers_estimate(context: Any) -> tuple[bool, str]:
    estimate = _get_attr(context, "estimated_cost")
    if estimate is None:
        return (False, "estimated cost unknown")
    if estimate <= 0:
        return (True, "")
    unpriced = _get_attr(context, "unpriced_lines") or ()
    if unpriced:
        return (False, f"line(s) {', '.join(str(n) for n in unpriced)} have no estimated unit price")
    available = _get_attr(context, "available_budget")
    if available is None:
        return (False, "requesting unit has no budget for the current period")
    if available < estimate:
        return (False, f"available budget {available} is below the estimated cost {estimate}")
    return (True, "")


def _reason_given(context: Any) -> tuple[bool, str]:
    reason = _get_attr(context, "reason")
    if reason and str(reason).strip():
        return (True, "")
    return (False, "a reason is required")


class GuardExecutor:
    """Evaluates workflow guards against a context.

    Guards are declared on transitions (name + description).  This executor
    holds the evaluation logic per guard name.  Evaluators return
    ``(passed, reason)``.  A guard with no registered evaluator fails.
    """

    def __init__(self) -> None:
        self._evaluators: dict[str, Callable[[Any], tuple[bool, str]]] = {}

    def register(self, guard_name: str, evaluator: Callable[[Any], tuple[bool, str]]) -> None:
        """Register an evaluator for a guard by name."""
        self._evaluators[guard_name] = evaluator

    def evaluate(self, guard: Guard, context: Any = None) -> tuple[bool, str]:
        fn = self._evaluators.get(guard.name)
        if fn is None:
            logger.warning("guard_no_evaluator", extra={"guard_name": guard.name})
            return (False, f"no evaluator registered for guard '{guard.name}'")
        return fn(context)


def default_guard_executor() -> GuardExecutor:
    """Return a GuardExecutor with built-in evaluators registered."""
    ex = GuardExecutor()
    ex.register("lines_present", _lines_present)
    ex.register("lines_priced", _lines_priced)
    ex.register("all_delivered", _all_delivered)
    ex.register("reason_given", _reason_given)
    ex.register("stock_available", _stock_available)
    ex.register("budget_covers_estimate", _budget_covers_estimate)
    return ex


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class WorkflowExecutor:
    """Resolves and authorizes workflow transitions.

    Thin coordinator: the workflow definition says what is legal, the
    capability table says who may do it, guards say whether the entity is
    ready.  The caller applies the state change.
    """

    def __init__(self, guard_executor: GuardExecutor | None = None) -> None:
        self._guard_executor = guard_executor or default_guard_executor()

    def execute_transition(
        self,
        workflow: Workflow,
        entity_type: str,
        entity_id: UUID,
        current_state: str,
        action: str,
        actor: Actor,
        unit_id: UUID | None = None,
        to_state: str | None = None,
        context: dict[str, Any] | None = None,
        outcome_sink: Callable[[dict], None] | None = None,
    ) -> Transition:
        """Return the transition to apply, or raise.

        Raises:
            InvalidTransitionError: terminal state, or transition not declared.
            PermissionDeniedError: actor lacks the capability or unit scope.
            TransitionGuardError: guard not satisfied.
        """
        t0 = time.monotonic()

        def trace(outcome: str, reason: str, transition: Transition | None = None) -> None:
            _emit_workflow_trace(
                workflow_name=workflow.name,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                from_state=current_state,
                outcome=outcome,
                reason=reason,
                duration_ms=(time.monotonic() - t0) * 1000,
                to_state=transition.to_state if transition else to_state,
                actor_id=actor.id,
                mutates_ledger=transition.mutates_ledger if transition else False,
                outcome_sink=outcome_sink,
            )

        # 1. Terminal states accept nothing
        if workflow.is_terminal(current_state):
            reason = f"'{current_state}' is a terminal state"
            trace(OUTCOME_TERMINAL, reason)
            raise InvalidTransitionError(workflow.name, str(entity_id), current_state, action, reason)

        # 2. Find the declared transition
        transition = workflow.find_transition(current_state, action, to_state)
        if transition is None:
            target = f" to '{to_state}'" if to_state else ""
            reason = (
                f"No transition from '{current_state}' via action '{action}'{target} "
                f"in workflow '{workflow.name}'"
            )
            trace(OUTCOME_NO_TRANSITION, reason)
            raise InvalidTransitionError(workflow.name, str(entity_id), current_state, action, reason)

        # 3. Capability and unit scope
        capability = get_capability_for_transition(workflow.name, action)
        if capability is not None:
            allowed, reason = check_capability(actor, capability, unit_id)
            if not allowed:
                trace(OUTCOME_DENIED, reason, transition)
                raise PermissionDeniedError(str(actor.id), actor.role, capability, reason)

        # 4. Guard
        if transition.guard is not None:
            passed, reason = self._guard_executor.evaluate(transition.guard, context or {})
            if not passed:
                trace(OUTCOME_GUARD_FAILED, reason, transition)
                raise TransitionGuardError(
                    workflow.name, str(entity_id), current_state, action,
                    transition.guard.name, reason,
                )

        trace(OUTCOME_SUCCESS, "", transition)
        return transition
