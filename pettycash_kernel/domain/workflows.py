"""Receipt and batch workflows.

State machines for claim processing.  Services resolve every status change
through these tables.
"""

from pettycash_kernel.domain.values import ActorRole, BatchStatus, ReceiptStatus
from pettycash_kernel.domain.workflow import Guard, Transition, Workflow
from pettycash_kernel.logging_config import get_logger

logger = get_logger("domain.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

REASON_PROVIDED = Guard(
    name="reason_provided",
    description="A non-empty rejection reason is supplied",
)

BATCH_MEMBER = Guard(
    name="batch_member",
    description="Receipt belongs to the batch being approved",
)


# -----------------------------------------------------------------------------
# Receipt lifecycle
# -----------------------------------------------------------------------------

_REJECTORS = (ActorRole.ADMIN.value, ActorRole.HOD.value, ActorRole.FINANCE.value)

RECEIPT_WORKFLOW = Workflow(
    name="receipt",
    description="Single expense claim from submission to reimbursement",
    initial_state=ReceiptStatus.SUBMITTED.value,
    states=tuple(s.value for s in ReceiptStatus),
    transitions=(
        Transition(
            ReceiptStatus.SUBMITTED.value,
            ReceiptStatus.ADMIN_APPROVED.value,
            action="admin_approve",
            actor_roles=(ActorRole.ADMIN.value,),
        ),
        Transition(
            ReceiptStatus.ADMIN_APPROVED.value,
            ReceiptStatus.HOD_APPROVED.value,
            action="hod_approve",
            guard=BATCH_MEMBER,
        ),
        Transition(
            ReceiptStatus.HOD_APPROVED.value,
            ReceiptStatus.PAID.value,
            action="disburse",
            guard=BATCH_MEMBER,
        ),
        Transition(
            ReceiptStatus.SUBMITTED.value,
            ReceiptStatus.REJECTED.value,
            action="reject",
            guard=REASON_PROVIDED,
            actor_roles=_REJECTORS,
        ),
        Transition(
            ReceiptStatus.ADMIN_APPROVED.value,
            ReceiptStatus.REJECTED.value,
            action="reject",
            guard=REASON_PROVIDED,
            actor_roles=_REJECTORS,
        ),
        Transition(
            ReceiptStatus.HOD_APPROVED.value,
            ReceiptStatus.REJECTED.value,
            action="reject",
            guard=REASON_PROVIDED,
            actor_roles=_REJECTORS,
        ),
    ),
    terminal_states=(ReceiptStatus.PAID.value, ReceiptStatus.REJECTED.value),
)


# -----------------------------------------------------------------------------
# Batch (top-up request) lifecycle
# -----------------------------------------------------------------------------

BATCH_WORKFLOW = Workflow(
    name="batch",
    description="Top-up request from HOD review to disbursement",
    initial_state=BatchStatus.PENDING_HOD.value,
    states=tuple(s.value for s in BatchStatus),
    transitions=(
        Transition(
            BatchStatus.PENDING_HOD.value,
            BatchStatus.PENDING_FINANCE.value,
            action="hod_approve",
            actor_roles=(ActorRole.HOD.value,),
        ),
        Transition(
            BatchStatus.PENDING_FINANCE.value,
            BatchStatus.PAID.value,
            action="finance_approve",
            actor_roles=(ActorRole.FINANCE.value,),
        ),
    ),
    terminal_states=(BatchStatus.PAID.value,),
)

logger.debug(
    "claim_workflows_defined",
    extra={"workflows": [RECEIPT_WORKFLOW.name, BATCH_WORKFLOW.name]},
)
