"""Request Workflows.

State machine for internal requests.  Sending and receipt confirmation
touch the ledgers; every other transition only changes the status.
"""

from supply_kernel.domain.workflow import Guard, Transition, Workflow
from supply_kernel.logging_config import get_logger
from supply_modules.requests.models import RequestStatus

logger = get_logger("modules.requests.workflows")


STOCK_AVAILABLE = Guard("stock_available", "CD stock covers every line to send")
ALL_DELIVERED = Guard("all_delivered", "Every in-transit record of the request was delivered")
REASON_GIVEN = Guard("reason_given", "A rejection reason is provided")
BUDGET_COVERS_ESTIMATE = Guard(
    "budget_covers_estimate",
    "A priced request has every line priced and the unit's available budget covers its estimate",
)

_S = RequestStatus.SOLICITADO.value
_AN = RequestStatus.ANALISANDO.value
_AP = RequestStatus.APROVADO.value
_APP = RequestStatus.APROVADO_PENDENTE.value
_RJ = RequestStatus.REJEITADO.value
_PR = RequestStatus.PREPARANDO.value
_EN = RequestStatus.ENVIADO.value
_RC = RequestStatus.RECEBIDO.value
_AU = RequestStatus.APROVADO_UNIDADE.value
_ER = RequestStatus.ERRO_PEDIDO.value
_CA = RequestStatus.CANCELADO.value

# States in which the request has not left the CD yet
OPEN_STATES: tuple[str, ...] = (_S, _AN, _AP, _APP, _PR)

REQUEST_WORKFLOW = Workflow(
    name="request",
    description="Internal request lifecycle",
    initial_state=_S,
    states=tuple(s.value for s in RequestStatus),
    transitions=(
        Transition(_S, _AN, action="analyze"),
        Transition(_S, _AP, action="approve", guard=BUDGET_COVERS_ESTIMATE),
        Transition(_AN, _AP, action="approve", guard=BUDGET_COVERS_ESTIMATE),
        Transition(_S, _RJ, action="reject", guard=REASON_GIVEN),
        Transition(_AN, _RJ, action="reject", guard=REASON_GIVEN),
        Transition(_AP, _PR, action="prepare"),
        Transition(_APP, _PR, action="prepare"),
        Transition(_AP, _APP, action="hold_for_purchase"),
        Transition(_PR, _APP, action="hold_for_purchase"),
        Transition(_AP, _EN, action="send", guard=STOCK_AVAILABLE, mutates_ledger=True),
        Transition(_APP, _EN, action="send", guard=STOCK_AVAILABLE, mutates_ledger=True),
        Transition(_PR, _EN, action="send", guard=STOCK_AVAILABLE, mutates_ledger=True),
        Transition(_EN, _RC, action="receive", guard=ALL_DELIVERED),
        Transition(_RC, _AU, action="confirm_receipt", mutates_ledger=True),
        *(Transition(s, _CA, action="cancel") for s in OPEN_STATES),
        *(Transition(s, _ER, action="flag_error") for s in OPEN_STATES),
        Transition(_ER, _S, action="resume"),
        Transition(_ER, _AN, action="resume"),
        Transition(_ER, _AP, action="resume", guard=BUDGET_COVERS_ESTIMATE),
        Transition(_ER, _CA, action="cancel"),
    ),
    terminal_states=(_RJ, _AU, _CA),
)

logger.info("request_workflow_registered", extra={
    "workflow_name": REQUEST_WORKFLOW.name,
    "state_count": len(REQUEST_WORKFLOW.states),
    "transition_count": len(REQUEST_WORKFLOW.transitions),
})
