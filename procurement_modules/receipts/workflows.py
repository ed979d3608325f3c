"""
Goods receipt workflow.

Receipts are drafted, inspected, then completed or cancelled.  Completion
is final: a completed receipt is neither cancelled nor deleted.
"""

from procurement_kernel.domain.workflow import Guard, Transition, Workflow
from procurement_kernel.logging_config import get_logger

logger = get_logger("modules.receipts.workflows")


ITEMS_INSPECTED = Guard(
    name="items_inspected",
    description="When inspection is required, every received item has an accepted or rejected quantity",
    failure_message="Quality inspection required for all received items",
)

RECEIPT_WORKFLOW = Workflow(
    name="goods_receipt",
    description="Goods receipt lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "completed",
        "cancelled",
    ),
    transitions=(
        Transition("draft", "completed", action="complete", guard=ITEMS_INSPECTED),
        Transition("draft", "cancelled", action="cancel"),
    ),
    terminal_states=("completed", "cancelled"),
)

logger.info(
    "receipt_workflow_registered",
    extra={
        "workflow_name": RECEIPT_WORKFLOW.name,
        "state_count": len(RECEIPT_WORKFLOW.states),
        "transition_count": len(RECEIPT_WORKFLOW.transitions),
        "initial_state": RECEIPT_WORKFLOW.initial_state,
    },
)
