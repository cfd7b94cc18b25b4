"""
Tests for WorkflowExecutor.

Check order: terminal state, declared transition, capability and unit
scope, guard.  Each attempt emits one ``workflow_transition`` record.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from supply_kernel.domain.workflow import Guard
from supply_kernel.exceptions import (
    InvalidTransitionError,
    PermissionDeniedError,
    TransitionGuardError,
)
from supply_modules.purchasing.workflows import PURCHASE_WORKFLOW
from supply_modules.requests.workflows import REQUEST_WORKFLOW
from supply_services.workflow_executor import (
    GuardExecutor,
    WorkflowExecutor,
    default_guard_executor,
)


@pytest.fixture
def executor() -> WorkflowExecutor:
    return WorkflowExecutor()


@pytest.fixture
def satellite_id():
    return uuid4()


@pytest.fixture
def clerk_of(make_actor, satellite_id):
    return make_actor("operador-administrativo", satellite_id)


# =============================================================================
# Resolution order
# =============================================================================


class TestTransitionResolution:
    def test_declared_transition_returned(self, executor, clerk_of, satellite_id):
        t = executor.execute_transition(
            PURCHASE_WORKFLOW, "purchase", uuid4(), "pedido-realizado",
            "start_quotation", clerk_of, unit_id=satellite_id,
        )
        assert t.to_state == "em-cotacao"

    def test_terminal_state_rejected_before_permission(self, executor, make_actor):
        outsider = make_actor("unknown-role")
        with pytest.raises(InvalidTransitionError) as exc_info:
            executor.execute_transition(
                PURCHASE_WORKFLOW, "purchase", uuid4(), "finalizado", "resume", outsider,
            )
        assert "terminal" in exc_info.value.reason

    def test_undeclared_transition_rejected(self, executor, clerk_of, satellite_id):
        with pytest.raises(InvalidTransitionError) as exc_info:
            executor.execute_transition(
                PURCHASE_WORKFLOW, "purchase", uuid4(), "chegou-cd",
                "start_quotation", clerk_of, unit_id=satellite_id,
            )
        assert not isinstance(exc_info.value, TransitionGuardError)

    def test_missing_capability_denied(self, executor, make_actor, satellite_id):
        storekeeper = make_actor("operador-almoxarife", satellite_id)
        with pytest.raises(PermissionDeniedError) as exc_info:
            executor.execute_transition(
                PURCHASE_WORKFLOW, "purchase", uuid4(), "pedido-realizado",
                "mark_purchased", storekeeper, unit_id=satellite_id,
            )
        assert exc_info.value.capability == "purchase.transition"

    def test_unit_outside_scope_denied(self, executor, clerk_of):
        with pytest.raises(PermissionDeniedError):
            executor.execute_transition(
                PURCHASE_WORKFLOW, "purchase", uuid4(), "pedido-realizado",
                "mark_purchased", clerk_of, unit_id=uuid4(),
            )

    def test_permission_checked_before_guard(self, executor, clerk_of, satellite_id):
        # The clerk lacks purchase.finalize; the unpriced context would fail the guard too
        with pytest.raises(PermissionDeniedError):
            executor.execute_transition(
                PURCHASE_WORKFLOW, "purchase", uuid4(), "chegou-cd", "finalize",
                clerk_of, unit_id=satellite_id, context={"unit_prices": [None]},
            )

    def test_resume_target_selected_explicitly(self, executor, clerk_of, satellite_id):
        t = executor.execute_transition(
            PURCHASE_WORKFLOW, "purchase", uuid4(), "erro-pedido", "resume",
            clerk_of, unit_id=satellite_id, to_state="chegou-cd",
        )
        assert t.to_state == "chegou-cd"


# =============================================================================
# Guards
# =============================================================================


class TestGuards:
    def test_unpriced_line_fails_finalize_guard(self, executor, admin):
        with pytest.raises(TransitionGuardError) as exc_info:
            executor.execute_transition(
                PURCHASE_WORKFLOW, "purchase", uuid4(), "chegou-cd", "finalize", admin,
                context={"unit_prices": [Decimal("2"), None]},
            )
        assert exc_info.value.guard == "lines_priced"
        assert exc_info.value.code == "TRANSITION_GUARD_FAILED"

    def test_priced_lines_pass_finalize_guard(self, executor, admin):
        t = executor.execute_transition(
            PURCHASE_WORKFLOW, "purchase", uuid4(), "chegou-cd", "finalize", admin,
            context={"unit_prices": [Decimal("2"), Decimal("0.5")]},
        )
        assert t.mutates_ledger

    @pytest.mark.parametrize("shortfall_count", [1, None])
    def test_send_guard_fails_on_shortfall_or_unknown(self, executor, admin, shortfall_count):
        with pytest.raises(TransitionGuardError):
            executor.execute_transition(
                REQUEST_WORKFLOW, "request", uuid4(), "aprovado", "send", admin,
                context={"shortfall_count": shortfall_count},
            )

    def test_blank_rejection_reason_fails(self, executor, admin):
        with pytest.raises(TransitionGuardError):
            executor.execute_transition(
                REQUEST_WORKFLOW, "request", uuid4(), "solicitado", "reject", admin,
                context={"reason": "   "},
            )

    def test_receive_guard_requires_all_delivered(self, executor, admin):
        with pytest.raises(TransitionGuardError):
            executor.execute_transition(
                REQUEST_WORKFLOW, "request", uuid4(), "enviado", "receive", admin,
                context={"pending_deliveries": 2},
            )

    @pytest.mark.parametrize("context", [
        {"estimated_cost": Decimal("20"), "unpriced_lines": [], "available_budget": None},
        {"estimated_cost": Decimal("20"), "unpriced_lines": [], "available_budget": Decimal("19")},
        {"estimated_cost": Decimal("20"), "unpriced_lines": [2], "available_budget": Decimal("50")},
        {},
    ])
    def test_approve_guard_fails(self, executor, admin, context):
        with pytest.raises(TransitionGuardError) as exc_info:
            executor.execute_transition(
                REQUEST_WORKFLOW, "request", uuid4(), "solicitado", "approve", admin, context=context,
            )
        assert exc_info.value.guard == "budget_covers_estimate"

    def test_approve_guard_passes_unpriced_request_without_budget(self, executor, admin):
        t = executor.execute_transition(
            REQUEST_WORKFLOW, "request", uuid4(), "analisando", "approve", admin,
            context={"estimated_cost": Decimal("0"), "unpriced_lines": [1], "available_budget": None},
        )
        assert t.to_state == "aprovado"

    def test_unregistered_guard_fails(self):
        ex = GuardExecutor()
        passed, reason = ex.evaluate(Guard("nobody_knows", ""), {})
        assert not passed
        assert "no evaluator" in reason

    def test_default_executor_registers_every_declared_guard(self):
        ex = default_guard_executor()
        guards = {
            t.guard for wf in (PURCHASE_WORKFLOW, REQUEST_WORKFLOW)
            for t in wf.transitions if t.guard is not None
        }
        for guard in guards:
            passed, reason = ex.evaluate(guard, {})
            assert "no evaluator" not in reason


# =============================================================================
# Tracing
# =============================================================================


class TestTransitionTrace:
    def test_success_and_failure_traced(self, executor, admin):
        records: list[dict] = []
        entity_id = uuid4()

        executor.execute_transition(
            REQUEST_WORKFLOW, "request", entity_id, "solicitado", "analyze", admin,
            outcome_sink=records.append,
        )
        with pytest.raises(InvalidTransitionError):
            executor.execute_transition(
                REQUEST_WORKFLOW, "request", entity_id, "cancelado", "analyze", admin,
                outcome_sink=records.append,
            )

        assert [r["outcome"] for r in records] == ["success", "terminal_state"]
        assert records[0]["to_state"] == "analisando"
        assert records[0]["entity_id"] == str(entity_id)

    def test_trace_logged(self, executor, admin, captured_logs):
        executor.execute_transition(
            REQUEST_WORKFLOW, "request", uuid4(), "solicitado", "analyze", admin,
        )
        traces = [r for r in captured_logs() if r["message"] == "workflow_transition"]
        assert traces and traces[-1]["workflow"] == "request"
