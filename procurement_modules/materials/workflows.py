"""
Material workflow.

Status lifecycle of material master data.
"""

from procurement_kernel.domain.workflow import Transition, Workflow
from procurement_kernel.logging_config import get_logger

logger = get_logger("modules.materials.workflows")


MATERIAL_WORKFLOW = Workflow(
    name="material",
    description="Material master data lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "active",
        "obsolete",
        "discontinued",
    ),
    transitions=(
        Transition("draft", "active", action="activate"),
        Transition("obsolete", "active", action="activate"),
        Transition("draft", "obsolete", action="deactivate"),
        Transition("active", "obsolete", action="deactivate"),
        Transition("draft", "discontinued", action="discontinue"),
        Transition("active", "discontinued", action="discontinue"),
        Transition("obsolete", "discontinued", action="discontinue"),
    ),
    terminal_states=("discontinued",),
)

logger.info(
    "material_workflow_registered",
    extra={
        "workflow_name": MATERIAL_WORKFLOW.name,
        "state_count": len(MATERIAL_WORKFLOW.states),
        "transition_count": len(MATERIAL_WORKFLOW.transitions),
        "initial_state": MATERIAL_WORKFLOW.initial_state,
    },
)
