"""
Shared helpers for module services (``supply_modules._helpers``).

Audit rows and status-change bookkeeping are written the same way by every
workflow module.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from supply_kernel.domain.clock import Clock
from supply_kernel.domain.dtos import AuditAction, AuditEvent
from supply_kernel.domain.repository import LedgerRepository


def write_audit(
    repository: LedgerRepository,
    clock: Clock,
    action: AuditAction,
    entity_type: str,
    entity_id: UUID,
    actor_id: UUID | None,
    old_values: dict[str, Any] | None = None,
    new_values: dict[str, Any] | None = None,
) -> AuditEvent:
    """Append an audit row.  Values must already be JSON-safe."""
    return repository.add_audit_event(AuditEvent(
        id=uuid4(),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        occurred_at=clock.now(),
        actor_id=actor_id,
        old_values=dict(old_values or {}),
        new_values=dict(new_values or {}),
    ))
