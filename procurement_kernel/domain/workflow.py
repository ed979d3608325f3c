"""
Canonical workflow types (``procurement_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document state machines.  Every document module
(suppliers, quotations, purchase orders, receipts) declares its lifecycle
as a ``Workflow`` built from ``Transition`` rows, and services resolve each
action through ``require_transition`` before mutating anything.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* ``terminal_states`` are declared states with no outgoing transitions.
* An action not declared for the current state raises
  ``TransitionNotAllowedError``; it is never a silent no-op.
"""

from __future__ import annotations

from dataclasses import dataclass

from procurement_kernel.exceptions import TransitionNotAllowedError


@dataclass(frozen=True)
class Guard:
    """A precondition that must hold before a transition fires.

    Contract: frozen, descriptive only.  The owning service evaluates it
    and raises with ``failure_message`` when it does not hold.
    """
    name: str
    description: str
    failure_message: str = ""


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    ``terminal_states`` are states with no outgoing transitions.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state '{self.initial_state}' "
                f"is not a declared state"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} "
                    f"{t.from_state}->{t.to_state} references an undeclared state"
                )
        for state in self.terminal_states:
            if state not in self.states:
                raise ValueError(f"Workflow {self.name}: terminal state '{state}' is not a declared state")
            if self.allowed_actions(state):
                raise ValueError(f"Workflow {self.name}: terminal state '{state}' has outgoing transitions")

    def find_transition(self, current_state: str, action: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == current_state and t.action == action:
                return t
        return None

    def allowed_actions(self, current_state: str) -> tuple[str, ...]:
        return tuple(
            t.action for t in self.transitions if t.from_state == current_state
        )


def require_transition(
    workflow: Workflow,
    entity_type: str,
    current_state: str,
    action: str,
    message: str | None = None,
) -> Transition:
    """Resolve ``action`` from ``current_state`` or raise.

    Args:
        workflow: The document's lifecycle definition.
        entity_type: Document type name used in the error.
        current_state: The document's current status value.
        action: The lifecycle action being attempted.
        message: Human-readable rule text; defaults to a generic
            ``Cannot <action> <entity> with status: <state>``.

    Raises:
        TransitionNotAllowedError: no transition for (state, action).
    """
    transition = workflow.find_transition(current_state, action)
    if transition is None:
        raise TransitionNotAllowedError(
            message or f"Cannot {action} {entity_type} with status: {current_state}",
            entity_type=entity_type,
            current_state=current_state,
            action=action,
        )
    return transition
