"""
Tests for the Requests module service.

Validates:
- creation rules (distribution center target, positive quantities)
- approval, rejection and quantity adjustment before sending
- send moves CD stock to the requester's in-transit bucket, or nothing
- shortfall resolution: abort, or open a corrective purchase for the CD
- delivery is idempotent per in-transit record and closes the request
- receipt confirmation debits the requester's budget exactly once
"""

from datetime import date
from decimal import Decimal

import pytest

from supply_kernel.domain.dtos import AuditAction, TransactionKind
from supply_kernel.domain.values import Location
from supply_kernel.exceptions import (
    InsufficientBudgetError,
    InvalidQuantityError,
    InvalidTransitionError,
    PermissionDeniedError,
    TransitionGuardError,
)
from supply_modules.purchasing.models import PurchaseStatus
from supply_modules.requests.models import (
    InTransitStatus,
    NewRequestLine,
    RequestStatus,
    SendOutcome,
    SendResolution,
)

TODAY = date(2024, 1, 1)


@pytest.fixture
def new_request(request_service, world, clerk):
    """Factory: request ``quantity`` gauze packs at 2.5 each from the CD."""

    def _create(quantity=Decimal("8"), price=Decimal("2.5")):
        return request_service.create_request(
            world.satellite.id,
            world.cd.id,
            [NewRequestLine(world.widget.id, quantity, estimated_unit_price=price)],
            clerk,
        )

    return _create


@pytest.fixture
def approved_request(request_service, new_request, storekeeper, open_budget, world):
    """The 20.0 request approved against a satellite budget of 100."""
    open_budget(world.satellite.id, Decimal("100"))
    request = new_request()
    return request_service.approve(request.id, storekeeper)


@pytest.fixture
def sent_request(request_service, approved_request, storekeeper, stock_up, world):
    stock_up(world.widget.id, world.cd_stock(), Decimal("10"))
    result = request_service.send(approved_request.id, storekeeper)
    assert result.is_success
    return result


# =============================================================================
# Creation
# =============================================================================


class TestCreateRequest:
    def test_created_in_solicitado_with_estimated_cost(self, new_request, repo):
        request = new_request()

        assert request.status is RequestStatus.SOLICITADO
        assert request.total_estimated_cost == Decimal("20")
        assert [e.action for e in repo.list_audit_events("request", request.id)] == [
            AuditAction.REQUEST_CREATED,
        ]

    def test_target_must_be_distribution_center(self, request_service, world, clerk):
        with pytest.raises(ValueError, match="distribution center"):
            request_service.create_request(
                world.satellite.id, world.other_satellite.id,
                [NewRequestLine(world.widget.id, Decimal("1"))], clerk,
            )

    def test_empty_request_rejected(self, request_service, world, clerk):
        with pytest.raises(ValueError):
            request_service.create_request(world.satellite.id, world.cd.id, [], clerk)

    def test_non_positive_quantity_rejected(self, new_request):
        with pytest.raises(InvalidQuantityError):
            new_request(quantity=Decimal("0"))

    def test_clerk_scoped_to_own_unit(self, request_service, world, clerk):
        with pytest.raises(PermissionDeniedError):
            request_service.create_request(
                world.other_satellite.id, world.cd.id,
                [NewRequestLine(world.widget.id, Decimal("1"))], clerk,
            )

    def test_listed_for_both_units(self, request_service, new_request, world):
        request = new_request()
        assert [r.id for r in request_service.list_requests(world.cd.id)] == [request.id]
        assert [r.id for r in request_service.list_requests(world.satellite.id)] == [request.id]
        assert request_service.list_requests(world.other_satellite.id) == []


# =============================================================================
# Review before sending
# =============================================================================


class TestReview:
    def test_reject_requires_reason(self, request_service, new_request, storekeeper):
        request = new_request()
        with pytest.raises(TransitionGuardError):
            request_service.reject(request.id, "", storekeeper)

    def test_reject_records_reason(self, request_service, new_request, storekeeper):
        request = new_request()
        rejected = request_service.reject(request.id, "Out of catalog", storekeeper)

        assert rejected.status is RequestStatus.REJEITADO
        assert rejected.rejection_reason == "Out of catalog"

    def test_rejected_request_is_terminal(self, request_service, new_request, storekeeper):
        request = new_request()
        request_service.reject(request.id, "No", storekeeper)
        with pytest.raises(InvalidTransitionError):
            request_service.approve(request.id, storekeeper)

    def test_transition_refuses_dedicated_actions(self, request_service, approved_request, storekeeper):
        with pytest.raises(InvalidTransitionError):
            request_service.transition(approved_request.id, RequestStatus.ENVIADO, storekeeper)

    def test_clerk_cannot_approve(self, request_service, new_request, clerk):
        request = new_request()
        with pytest.raises(PermissionDeniedError):
            request_service.approve(request.id, clerk)

    def test_approval_without_budget_refused(self, request_service, new_request, storekeeper):
        request = new_request()

        with pytest.raises(TransitionGuardError) as exc_info:
            request_service.approve(request.id, storekeeper)

        assert exc_info.value.guard == "budget_covers_estimate"
        assert request_service.get_request(request.id).status is RequestStatus.SOLICITADO

    @pytest.mark.parametrize("budget, approved", [(Decimal("19.5"), False), (Decimal("20"), True)])
    def test_approval_needs_budget_covering_estimate(
        self, request_service, new_request, storekeeper, open_budget, world, budget, approved,
    ):
        open_budget(world.satellite.id, budget)
        request = new_request()

        if approved:
            assert request_service.approve(request.id, storekeeper).status is RequestStatus.APROVADO
        else:
            with pytest.raises(TransitionGuardError):
                request_service.approve(request.id, storekeeper)

    def test_partly_priced_request_refused(
        self, request_service, storekeeper, clerk, open_budget, world,
    ):
        open_budget(world.satellite.id, Decimal("100"))
        request = request_service.create_request(
            world.satellite.id, world.cd.id,
            [
                NewRequestLine(world.widget.id, Decimal("2"), estimated_unit_price=Decimal("4")),
                NewRequestLine(world.gadget.id, Decimal("1")),
            ],
            clerk,
        )

        with pytest.raises(TransitionGuardError) as exc_info:
            request_service.approve(request.id, storekeeper)

        assert "line(s) 2" in str(exc_info.value)

    def test_approval_leaves_budget_untouched(self, budget_ledger, approved_request, world):
        assert approved_request.status is RequestStatus.APROVADO
        assert budget_ledger.available(world.satellite.id, TODAY) == Decimal("100")

    def test_resume_into_approved_is_guarded_too(self, request_service, new_request, storekeeper):
        request = new_request()
        request_service.transition(request.id, RequestStatus.ERRO_PEDIDO, storekeeper)

        with pytest.raises(TransitionGuardError):
            request_service.transition(request.id, RequestStatus.APROVADO, storekeeper)

    def test_requester_can_cancel_open_request(self, request_service, new_request, clerk):
        request = new_request()
        assert request_service.cancel(request.id, clerk).status is RequestStatus.CANCELADO

    def test_adjust_quantities_recomputes_cost(self, request_service, approved_request, storekeeper, world):
        adjusted = request_service.adjust_quantities(
            approved_request.id, {world.widget.id: Decimal("4")}, storekeeper,
        )

        assert adjusted.total_estimated_cost == Decimal("10")
        [line] = request_service.get_lines(approved_request.id)
        assert line.quantity_approved == Decimal("4")

    def test_adjust_above_requested_rejected(self, request_service, approved_request, storekeeper, world):
        with pytest.raises(InvalidQuantityError):
            request_service.adjust_quantities(
                approved_request.id, {world.widget.id: Decimal("9")}, storekeeper,
            )


# =============================================================================
# Send
# =============================================================================


class TestSend:
    def test_send_moves_stock_to_in_transit(
        self, request_service, stock_ledger, approved_request, storekeeper, stock_up, world,
    ):
        stock_up(world.widget.id, world.cd_stock(), Decimal("10"))

        result = request_service.send(approved_request.id, storekeeper)

        assert result.outcome is SendOutcome.SENT
        assert result.request.status is RequestStatus.ENVIADO
        assert result.request.sent_at is not None
        assert stock_ledger.quantity(world.widget.id, world.cd_stock()) == Decimal("2")
        assert stock_ledger.quantity(world.widget.id, Location.in_transit(world.satellite.id)) == Decimal("8")
        [record] = result.in_transit
        assert record.quantity == Decimal("8")
        assert record.status is InTransitStatus.IN_TRANSIT
        [line] = request_service.get_lines(approved_request.id)
        assert line.quantity_sent == Decimal("8")

    def test_shortfall_aborts_without_mutation(
        self, repo, request_service, stock_ledger, approved_request, storekeeper, stock_up, world,
    ):
        stock_up(world.widget.id, world.cd_stock(), Decimal("5"))
        movements_before = len(repo.list_movements(world.widget.id))

        result = request_service.send(approved_request.id, storekeeper, SendResolution.ABORT)

        assert result.outcome is SendOutcome.ABORTED
        assert not result.is_success
        assert result.shortfall_for(world.widget.id) == Decimal("3")
        assert request_service.get_request(approved_request.id).status is RequestStatus.APROVADO
        assert stock_ledger.quantity(world.widget.id, world.cd_stock()) == Decimal("5")
        assert request_service.list_in_transit(approved_request.id) == []
        assert len(repo.list_movements(world.widget.id)) == movements_before

    def test_shortfall_opens_corrective_purchase(
        self, request_service, purchase_service, approved_request, storekeeper, stock_up, world,
    ):
        stock_up(world.widget.id, world.cd_stock(), Decimal("5"))

        result = request_service.send(approved_request.id, storekeeper, SendResolution.CREATE_PURCHASE)

        assert result.outcome is SendOutcome.PENDING_PURCHASE
        assert result.request.status is RequestStatus.APROVADO_PENDENTE
        purchase = purchase_service.get_purchase(result.corrective_purchase_id)
        assert purchase.unit_id == world.cd.id
        assert purchase.request_id == approved_request.id
        assert purchase.status is PurchaseStatus.PEDIDO_REALIZADO
        [line] = purchase_service.get_lines(purchase.id)
        assert line.quantity == Decimal("3")
        assert line.unit_price == Decimal("2.5")

    def test_pending_request_does_not_open_second_purchase(
        self, request_service, purchase_service, approved_request, storekeeper, stock_up, world,
    ):
        stock_up(world.widget.id, world.cd_stock(), Decimal("5"))
        request_service.send(approved_request.id, storekeeper, SendResolution.CREATE_PURCHASE)

        again = request_service.send(approved_request.id, storekeeper, SendResolution.CREATE_PURCHASE)

        assert again.outcome is SendOutcome.ABORTED
        assert len(purchase_service.list_purchases(world.cd.id)) == 1

    def test_pending_request_sends_once_stock_arrives(
        self, request_service, approved_request, storekeeper, stock_up, world,
    ):
        stock_up(world.widget.id, world.cd_stock(), Decimal("5"))
        request_service.send(approved_request.id, storekeeper, SendResolution.CREATE_PURCHASE)
        stock_up(world.widget.id, world.cd_stock(), Decimal("3"))

        result = request_service.send(approved_request.id, storekeeper)

        assert result.is_success

    def test_zero_approved_line_is_skipped(
        self, request_service, stock_ledger, approved_request, storekeeper, stock_up, world,
    ):
        stock_up(world.widget.id, world.cd_stock(), Decimal("10"))
        request_service.adjust_quantities(approved_request.id, {world.widget.id: Decimal("0")}, storekeeper)

        result = request_service.send(approved_request.id, storekeeper)

        assert result.is_success
        assert result.in_transit == ()
        assert stock_ledger.quantity(world.widget.id, world.cd_stock()) == Decimal("10")
        assert result.request.status is RequestStatus.RECEBIDO

    def test_send_from_solicitado_rejected(self, request_service, new_request, storekeeper, stock_up, world):
        stock_up(world.widget.id, world.cd_stock(), Decimal("10"))
        request = new_request()
        with pytest.raises(InvalidTransitionError):
            request_service.send(request.id, storekeeper)

    def test_clerk_cannot_send(self, request_service, approved_request, clerk, stock_up, world):
        stock_up(world.widget.id, world.cd_stock(), Decimal("10"))
        with pytest.raises(PermissionDeniedError):
            request_service.send(approved_request.id, clerk)

    def test_cost_frozen_after_send(self, request_service, sent_request, storekeeper, world):
        with pytest.raises(InvalidTransitionError):
            request_service.adjust_quantities(
                sent_request.request.id, {world.widget.id: Decimal("1")}, storekeeper,
            )


# =============================================================================
# Delivery and receipt
# =============================================================================


class TestDeliveryAndReceipt:
    def test_deliver_moves_to_stock_and_receives(
        self, request_service, stock_ledger, sent_request, storekeeper, world,
    ):
        [record] = sent_request.in_transit

        delivered = request_service.deliver(record.id, storekeeper)

        assert delivered.status is InTransitStatus.DELIVERED
        assert stock_ledger.quantity(world.widget.id, world.satellite_stock()) == Decimal("8")
        assert stock_ledger.quantity(world.widget.id, Location.in_transit(world.satellite.id)) == Decimal("0")
        assert request_service.get_request(sent_request.request.id).status is RequestStatus.RECEBIDO

    def test_second_delivery_rejected(self, request_service, stock_ledger, sent_request, storekeeper, world):
        [record] = sent_request.in_transit
        request_service.deliver(record.id, storekeeper)

        with pytest.raises(InvalidTransitionError):
            request_service.deliver(record.id, storekeeper)

        assert stock_ledger.quantity(world.widget.id, world.satellite_stock()) == Decimal("8")

    def test_partial_delivery_keeps_request_enviado(
        self, request_service, storekeeper, stock_up, world, clerk,
    ):
        stock_up(world.widget.id, world.cd_stock(), Decimal("10"))
        stock_up(world.gadget.id, world.cd_stock(), Decimal("10"))
        request = request_service.create_request(
            world.satellite.id, world.cd.id,
            [NewRequestLine(world.widget.id, Decimal("1")), NewRequestLine(world.gadget.id, Decimal("1"))],
            clerk,
        )
        request_service.approve(request.id, storekeeper)
        result = request_service.send(request.id, storekeeper)

        request_service.deliver(result.in_transit[0].id, storekeeper)

        assert request_service.get_request(request.id).status is RequestStatus.ENVIADO

    def test_confirm_receipt_debits_budget(
        self, repo, request_service, budget_ledger, sent_request, storekeeper, clerk, world,
    ):
        request_service.deliver(sent_request.in_transit[0].id, storekeeper)

        confirmed = request_service.confirm_receipt(sent_request.request.id, clerk)

        assert confirmed.status is RequestStatus.APROVADO_UNIDADE
        assert confirmed.budget_consumed
        assert confirmed.budget_consumption_date == TODAY
        assert budget_ledger.available(world.satellite.id, TODAY) == Decimal("80")
        [tx] = repo.list_financial_transactions(world.satellite.id)
        assert tx.kind is TransactionKind.EXPENSE
        assert tx.reference_id == sent_request.request.id

    def test_confirm_receipt_over_budget_keeps_recebido(
        self, request_service, budget_ledger, sent_request, storekeeper, clerk, world,
    ):
        # Spent elsewhere after approval; only 10 of the 20 remain
        budget_ledger.debit(world.satellite.id, TODAY, Decimal("90"), "Other purchase")
        request_service.deliver(sent_request.in_transit[0].id, storekeeper)

        with pytest.raises(InsufficientBudgetError):
            request_service.confirm_receipt(sent_request.request.id, clerk)

        assert request_service.get_request(sent_request.request.id).status is RequestStatus.RECEBIDO

    def test_confirm_receipt_twice_rejected(
        self, request_service, budget_ledger, sent_request, storekeeper, clerk, world,
    ):
        request_service.deliver(sent_request.in_transit[0].id, storekeeper)
        request_service.confirm_receipt(sent_request.request.id, clerk)

        with pytest.raises(InvalidTransitionError):
            request_service.confirm_receipt(sent_request.request.id, clerk)

        assert budget_ledger.available(world.satellite.id, TODAY) == Decimal("80")

    def test_confirm_before_delivery_rejected(self, request_service, sent_request, clerk):
        with pytest.raises(InvalidTransitionError):
            request_service.confirm_receipt(sent_request.request.id, clerk)

    def test_unpriced_request_skips_budget(
        self, request_service, new_request, storekeeper, clerk, stock_up, world,
    ):
        stock_up(world.widget.id, world.cd_stock(), Decimal("10"))
        request = new_request(price=None)
        request_service.approve(request.id, storekeeper)
        result = request_service.send(request.id, storekeeper)
        request_service.deliver(result.in_transit[0].id, storekeeper)

        confirmed = request_service.confirm_receipt(request.id, clerk)

        assert confirmed.status is RequestStatus.APROVADO_UNIDADE
        assert not confirmed.budget_consumed
