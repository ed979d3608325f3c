"""
Material quotation workflow.

Quotes may arrive while the quotation is still a draft (entered by hand)
or after it was sent; the first quote on a sent quotation moves it to
review.  Selecting a quote never changes status.
"""

from procurement_kernel.domain.workflow import Guard, Transition, Workflow
from procurement_kernel.logging_config import get_logger

logger = get_logger("modules.quotations.workflows")


HAS_RECIPIENTS = Guard(
    name="has_recipients",
    description="At least one target supplier and one item",
    failure_message="At least one target supplier is required",
)

ALL_ITEMS_SELECTED = Guard(
    name="all_items_selected",
    description="Every item has exactly one selected quote",
    failure_message="All items must have a selected quote",
)

QUOTING_STATES = ("draft", "sent", "in_review")

QUOTATION_WORKFLOW = Workflow(
    name="material_quotation",
    description="Request-for-quotation lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "sent",
        "in_review",
        "completed",
        "cancelled",
    ),
    transitions=(
        Transition("draft", "sent", action="send", guard=HAS_RECIPIENTS),
        Transition("draft", "draft", action="receive_quote"),
        Transition("sent", "in_review", action="receive_quote"),
        Transition("in_review", "in_review", action="receive_quote"),
        *(Transition(state, state, action="select_quote") for state in QUOTING_STATES),
        Transition("sent", "completed", action="complete", guard=ALL_ITEMS_SELECTED),
        Transition("in_review", "completed", action="complete", guard=ALL_ITEMS_SELECTED),
        *(Transition(state, "cancelled", action="cancel") for state in QUOTING_STATES),
    ),
    terminal_states=("completed", "cancelled"),
)

logger.info(
    "quotation_workflow_registered",
    extra={
        "workflow_name": QUOTATION_WORKFLOW.name,
        "state_count": len(QUOTATION_WORKFLOW.states),
        "transition_count": len(QUOTATION_WORKFLOW.transitions),
        "initial_state": QUOTATION_WORKFLOW.initial_state,
    },
)
