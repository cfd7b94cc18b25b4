"""
supply_services.rbac_authority -- capability checks at the workflow boundary.

Responsibility:
    Resolve a role into an ``Actor`` once per session from the configured
    capability table, then answer "may this actor do X on unit U?" for every
    service call.

Architecture position:
    Services layer.  Consumes ``RbacConfig`` from supply_config.  Called by
    WorkflowExecutor before a transition and by module services before any
    non-workflow mutation.

Invariants:
    - Role names are compared exactly once, in ``resolve_actor``.  Everything
      downstream asks for a capability.
    - A unit-scoped actor only acts on its own unit; ``all_units`` actors act
      on every unit.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from supply_config.schema import CAPABILITY_TAXONOMY, WILDCARD_CAPABILITY, RbacConfig
from supply_kernel.exceptions import PermissionDeniedError
from supply_kernel.logging_config import get_logger

logger = get_logger("services.rbac_authority")

# (workflow_name, action) -> capability
WORKFLOW_ACTION_TO_CAPABILITY: dict[tuple[str, str], str] = {
    # Purchase
    ("purchase", "start_quotation"): "purchase.transition",
    ("purchase", "mark_purchased"): "purchase.transition",
    ("purchase", "mark_arrived"): "purchase.transition",
    ("purchase", "mark_sent"): "purchase.transition",
    ("purchase", "flag_error"): "purchase.transition",
    ("purchase", "resume"): "purchase.transition",
    ("purchase", "finalize"): "purchase.finalize",
    # Request
    ("request", "analyze"): "request.approve",
    ("request", "approve"): "request.approve",
    ("request", "reject"): "request.approve",
    ("request", "prepare"): "request.send",
    ("request", "hold_for_purchase"): "request.send",
    ("request", "send"): "request.send",
    ("request", "receive"): "request.deliver",
    ("request", "confirm_receipt"): "request.confirm_receipt",
    ("request", "cancel"): "request.cancel",
    ("request", "flag_error"): "request.approve",
    ("request", "resume"): "request.approve",
    # Quotation
    ("quotation", "close"): "quotation.manage",
    ("quotation", "cancel"): "quotation.manage",
}


@dataclass(frozen=True)
class Actor:
    """An authenticated user with capabilities resolved from their role."""

    id: UUID
    role: str
    unit_id: UUID | None
    capabilities: frozenset[str]
    all_units: bool = False

    def can(self, capability: str) -> bool:
        return capability in self.capabilities

    def reaches(self, unit_id: UUID | None) -> bool:
        if unit_id is None or self.all_units:
            return True
        return self.unit_id == unit_id


def resolve_actor(
    rbac: RbacConfig,
    actor_id: UUID,
    role: str,
    unit_id: UUID | None = None,
) -> Actor:
    """Build an Actor from the role table.  Unknown roles get no capability."""
    grant = rbac.grant_for(role)
    if grant is None:
        logger.warning("rbac_unknown_role", extra={"actor_id": str(actor_id), "role": role})
        return Actor(id=actor_id, role=role, unit_id=unit_id, capabilities=frozenset())

    capabilities = grant.capabilities
    if WILDCARD_CAPABILITY in capabilities:
        capabilities = CAPABILITY_TAXONOMY
    return Actor(
        id=actor_id,
        role=role,
        unit_id=unit_id,
        capabilities=frozenset(capabilities),
        all_units=grant.all_units,
    )


def get_capability_for_transition(workflow_name: str, action: str) -> str | None:
    """Return the capability required for this workflow transition, or None if not in scope."""
    return WORKFLOW_ACTION_TO_CAPABILITY.get((workflow_name, action))


def check_capability(
    actor: Actor,
    capability: str,
    unit_id: UUID | None = None,
) -> tuple[bool, str]:
    """Check whether the actor holds ``capability`` over ``unit_id``.

    Returns:
        (allowed, reason). reason is empty when allowed.
    """
    if not actor.can(capability):
        return (False, f"capability '{capability}' not granted to role '{actor.role}'")
    if not actor.reaches(unit_id):
        return (False, f"unit {unit_id} is outside the actor's scope")
    return (True, "")


def require_capability(
    actor: Actor,
    capability: str,
    unit_id: UUID | None = None,
) -> None:
    """Raise PermissionDeniedError unless the actor holds ``capability`` over ``unit_id``."""
    allowed, reason = check_capability(actor, capability, unit_id)
    if not allowed:
        logger.warning(
            "rbac_denied",
            extra={
                "actor_id": str(actor.id),
                "role": actor.role,
                "capability": capability,
                "unit_id": str(unit_id) if unit_id else None,
                "reason": reason,
            },
        )
        raise PermissionDeniedError(str(actor.id), actor.role, capability, reason)
