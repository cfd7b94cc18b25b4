"""
Tests for capability resolution and unit scope.
"""

from uuid import uuid4

import pytest

from supply_config.schema import CAPABILITY_TAXONOMY, RbacConfig, RoleGrant
from supply_kernel.exceptions import PermissionDeniedError
from supply_modules.purchasing.workflows import PURCHASE_WORKFLOW
from supply_modules.quotation.workflows import QUOTATION_WORKFLOW
from supply_modules.requests.workflows import REQUEST_WORKFLOW
from supply_services.rbac_authority import (
    WORKFLOW_ACTION_TO_CAPABILITY,
    check_capability,
    get_capability_for_transition,
    require_capability,
    resolve_actor,
)


class TestResolveActor:
    def test_wildcard_expands_to_taxonomy(self, supply_config):
        actor = resolve_actor(supply_config.rbac, uuid4(), "admin")
        assert actor.capabilities == CAPABILITY_TAXONOMY
        assert actor.all_units

    def test_unknown_role_gets_nothing(self, supply_config, captured_logs):
        actor = resolve_actor(supply_config.rbac, uuid4(), "intruder")
        assert actor.capabilities == frozenset()
        assert any(r["message"] == "rbac_unknown_role" for r in captured_logs())

    def test_scoped_role_keeps_unit(self):
        rbac = RbacConfig(roles=(RoleGrant("clerk", frozenset({"request.create"})),))
        unit_id = uuid4()
        actor = resolve_actor(rbac, uuid4(), "clerk", unit_id)
        assert actor.unit_id == unit_id
        assert not actor.all_units


class TestCheckCapability:
    def test_scoped_actor_limited_to_own_unit(self, make_actor):
        unit_id = uuid4()
        clerk = make_actor("operador-administrativo", unit_id)

        assert check_capability(clerk, "request.create", unit_id) == (True, "")
        allowed, reason = check_capability(clerk, "request.create", uuid4())
        assert not allowed
        assert "outside" in reason

    def test_all_units_actor_reaches_everything(self, make_actor):
        manager = make_actor("gestor", uuid4())
        assert check_capability(manager, "purchase.finalize", uuid4())[0]

    def test_gestor_cannot_send_requests(self, make_actor):
        manager = make_actor("gestor")
        assert not check_capability(manager, "request.send")[0]

    def test_storekeeper_cannot_finalize_purchases(self, make_actor):
        storekeeper = make_actor("operador-almoxarife")
        with pytest.raises(PermissionDeniedError) as exc_info:
            require_capability(storekeeper, "purchase.finalize")
        assert exc_info.value.role == "operador-almoxarife"


class TestTransitionCapabilityTable:
    @pytest.mark.parametrize(
        "workflow", [PURCHASE_WORKFLOW, REQUEST_WORKFLOW, QUOTATION_WORKFLOW], ids=lambda w: w.name,
    )
    def test_every_action_mapped(self, workflow):
        for t in workflow.transitions:
            assert get_capability_for_transition(workflow.name, t.action) is not None

    def test_mapped_capabilities_are_known(self):
        assert set(WORKFLOW_ACTION_TO_CAPABILITY.values()) <= CAPABILITY_TAXONOMY
