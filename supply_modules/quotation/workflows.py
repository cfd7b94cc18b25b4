"""Quotation Workflows."""

from supply_kernel.domain.workflow import Transition, Workflow
from supply_kernel.logging_config import get_logger
from supply_modules.quotation.models import QuotationStatus

logger = get_logger("modules.quotation.workflows")

_OPEN = QuotationStatus.ABERTA.value
_CLOSED = QuotationStatus.FECHADA.value
_CANCELLED = QuotationStatus.CANCELADA.value

QUOTATION_WORKFLOW = Workflow(
    name="quotation",
    description="Supplier quotation lifecycle",
    initial_state=_OPEN,
    states=(_OPEN, _CLOSED, _CANCELLED),
    transitions=(
        Transition(_OPEN, _CLOSED, action="close"),
        Transition(_OPEN, _CANCELLED, action="cancel"),
    ),
    terminal_states=(_CLOSED, _CANCELLED),
)

logger.info("quotation_workflow_registered", extra={
    "workflow_name": QUOTATION_WORKFLOW.name,
    "state_count": len(QUOTATION_WORKFLOW.states),
    "transition_count": len(QUOTATION_WORKFLOW.transitions),
})
