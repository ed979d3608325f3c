"""
Supplier workflow.

Onboarding and status lifecycle of a supplier record.
"""

from procurement_kernel.domain.workflow import Guard, Transition, Workflow
from procurement_kernel.logging_config import get_logger

logger = get_logger("modules.suppliers.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

REASON_PROVIDED = Guard(
    name="reason_provided",
    description="A non-blank reason accompanies the action",
    failure_message="Rejection reason is required",
)


# -----------------------------------------------------------------------------
# Supplier Workflow
# -----------------------------------------------------------------------------

SUPPLIER_WORKFLOW = Workflow(
    name="supplier",
    description="Supplier onboarding and status lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "pending_approval",
        "active",
        "inactive",
        "blacklisted",
    ),
    transitions=(
        Transition("draft", "pending_approval", action="submit"),
        Transition("pending_approval", "active", action="approve"),
        Transition("pending_approval", "draft", action="reject", guard=REASON_PROVIDED),
        Transition("inactive", "active", action="activate"),
        Transition("active", "inactive", action="deactivate"),
        # Banking or registration details changed on an active supplier.
        Transition("active", "pending_approval", action="revalidate"),
        Transition("draft", "blacklisted", action="blacklist"),
        Transition("pending_approval", "blacklisted", action="blacklist"),
        Transition("active", "blacklisted", action="blacklist"),
        Transition("inactive", "blacklisted", action="blacklist"),
    ),
    terminal_states=("blacklisted",),
)

logger.info(
    "supplier_workflow_registered",
    extra={
        "workflow_name": SUPPLIER_WORKFLOW.name,
        "state_count": len(SUPPLIER_WORKFLOW.states),
        "transition_count": len(SUPPLIER_WORKFLOW.transitions),
        "initial_state": SUPPLIER_WORKFLOW.initial_state,
    },
)
