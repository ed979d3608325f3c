"""
Purchase order workflow.

Approval, supplier hand-off, receiving and completion of a purchase
order.  Goods can be received in any state from ``approved`` onwards until
the order is fully received.
"""

from procurement_kernel.domain.workflow import Guard, Transition, Workflow
from procurement_kernel.logging_config import get_logger

logger = get_logger("modules.purchase_orders.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HAS_ITEMS = Guard(
    name="has_items",
    description="The order carries at least one line item",
    failure_message="Cannot submit empty purchase order",
)

REASON_PROVIDED = Guard(
    name="reason_provided",
    description="A non-blank rejection reason accompanies the action",
    failure_message="Rejection reason is required",
)

ROUTING_SATISFIED = Guard(
    name="routing_satisfied",
    description="Every required approval level is satisfied",
)


# -----------------------------------------------------------------------------
# State groups
# -----------------------------------------------------------------------------

EDITABLE_STATES = ("draft", "rejected")

CANCELLABLE_STATES = ("draft", "pending_approval", "approved", "sent_to_supplier")

RECEIVABLE_STATES = (
    "approved",
    "sent_to_supplier",
    "confirmed",
    "in_production",
    "partially_shipped",
    "shipped",
    "partially_received",
)


# -----------------------------------------------------------------------------
# Purchase Order Workflow
# -----------------------------------------------------------------------------

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order approval and fulfillment",
    initial_state="draft",
    states=(
        "draft",
        "pending_approval",
        "approved",
        "rejected",
        "sent_to_supplier",
        "confirmed",
        "in_production",
        "partially_shipped",
        "shipped",
        "partially_received",
        "received",
        "completed",
        "cancelled",
    ),
    transitions=(
        Transition("draft", "pending_approval", action="submit", guard=HAS_ITEMS),
        Transition("pending_approval", "approved", action="approve", guard=ROUTING_SATISFIED),
        Transition("pending_approval", "rejected", action="reject", guard=REASON_PROVIDED),
        Transition("approved", "sent_to_supplier", action="send"),
        Transition("sent_to_supplier", "confirmed", action="confirm"),
        *(Transition(state, "cancelled", action="cancel") for state in CANCELLABLE_STATES),
        *(Transition(state, "partially_received", action="receive_partial") for state in RECEIVABLE_STATES),
        *(Transition(state, "received", action="receive_all") for state in RECEIVABLE_STATES),
        Transition("received", "completed", action="complete"),
    ),
    terminal_states=("completed", "cancelled"),
)

logger.info(
    "purchase_order_workflow_registered",
    extra={
        "workflow_name": PURCHASE_ORDER_WORKFLOW.name,
        "state_count": len(PURCHASE_ORDER_WORKFLOW.states),
        "transition_count": len(PURCHASE_ORDER_WORKFLOW.transitions),
        "initial_state": PURCHASE_ORDER_WORKFLOW.initial_state,
    },
)
