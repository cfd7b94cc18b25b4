"""Purchase Workflows.

State machine for the purchase order lifecycle.  The ordered states form a
chain that may only be walked forward (skipping is allowed).  Any ordered
state may be flagged as an error; an errored purchase resumes into any
ordered state.  ``finalizado`` is terminal and reached only through
``finalize``, which credits stock and debits the unit's budget.
"""

from supply_kernel.domain.workflow import Guard, Transition, Workflow
from supply_kernel.logging_config import get_logger
from supply_modules.purchasing.models import PurchaseStatus

logger = get_logger("modules.purchasing.workflows")


LINES_PRICED = Guard("lines_priced", "Every line item has a unit price above zero")

ORDERED_STATES: tuple[str, ...] = (
    PurchaseStatus.PEDIDO_REALIZADO.value,
    PurchaseStatus.EM_COTACAO.value,
    PurchaseStatus.COMPRADO_AGUARDANDO.value,
    PurchaseStatus.CHEGOU_CD.value,
    PurchaseStatus.ENVIADO.value,
)

# Forward action per target state
_FORWARD_ACTIONS: dict[str, str] = {
    PurchaseStatus.EM_COTACAO.value: "start_quotation",
    PurchaseStatus.COMPRADO_AGUARDANDO.value: "mark_purchased",
    PurchaseStatus.CHEGOU_CD.value: "mark_arrived",
    PurchaseStatus.ENVIADO.value: "mark_sent",
}

_ERROR = PurchaseStatus.ERRO_PEDIDO.value
_FINAL = PurchaseStatus.FINALIZADO.value


def _purchase_transitions() -> tuple[Transition, ...]:
    transitions: list[Transition] = []
    for i, from_state in enumerate(ORDERED_STATES):
        for to_state in ORDERED_STATES[i + 1:]:
            transitions.append(
                Transition(from_state, to_state, action=_FORWARD_ACTIONS[to_state])
            )
        transitions.append(Transition(from_state, _ERROR, action="flag_error"))
        transitions.append(
            Transition(from_state, _FINAL, action="finalize", guard=LINES_PRICED, mutates_ledger=True)
        )
    for to_state in ORDERED_STATES:
        transitions.append(Transition(_ERROR, to_state, action="resume"))
    return tuple(transitions)


PURCHASE_WORKFLOW = Workflow(
    name="purchase",
    description="Purchase order lifecycle",
    initial_state=PurchaseStatus.PEDIDO_REALIZADO.value,
    states=tuple(s.value for s in PurchaseStatus),
    transitions=_purchase_transitions(),
    terminal_states=(_FINAL,),
)

logger.info("purchase_workflow_registered", extra={
    "workflow_name": PURCHASE_WORKFLOW.name,
    "state_count": len(PURCHASE_WORKFLOW.states),
    "transition_count": len(PURCHASE_WORKFLOW.transitions),
})
