"""
Approval routing domain types (``procurement_kernel.domain.routing``).

Responsibility
--------------
Pure value objects for approval routing: workflow levels, routing rules,
recorded approver actions, and evaluation results.  Consumed by the pure
engine in ``procurement_engines.routing`` and persisted by
``procurement_modules.approvals``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Level numbers in one workflow run 1..n without gaps (checked by
  ``validate_level_sequence``).
* ``APPROVAL_STATUS_TRANSITIONS`` defines the only valid approval-status
  changes of a routed document.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


class DocumentType(str, Enum):
    """Document types a routing workflow can be scoped to."""

    SUPPLIER = "supplier"
    MATERIAL_QUOTATION = "material_quotation"
    PURCHASE_ORDER = "purchase_order"
    PRE_PAYMENT = "pre_payment"


class ApprovalMode(str, Enum):
    """How many approvals a level needs."""

    ANY = "any"  # one approver holding any of the roles
    ALL = "all"  # one approver per distinct role


class ConditionType(str, Enum):
    AMOUNT = "amount"
    SUPPLIER_LEVEL = "supplier_level"
    MATERIAL_CATEGORY = "material_category"
    CUSTOM = "custom"


class RoutingOperator(str, Enum):
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    EQ = "eq"
    NE = "ne"
    IN = "in"
    NOT_IN = "not_in"


class ApprovalStatus(str, Enum):
    """Approval status carried on a routed document."""

    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


APPROVAL_STATUS_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.NONE: frozenset({ApprovalStatus.PENDING}),
    ApprovalStatus.PENDING: frozenset({ApprovalStatus.APPROVED, ApprovalStatus.REJECTED}),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset({ApprovalStatus.PENDING}),
}


class ApprovalDecision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ApprovalLevel:
    """One sign-off stage of a workflow."""

    level_number: int
    name: str
    approver_roles: tuple[str, ...]
    approval_mode: ApprovalMode = ApprovalMode.ANY
    is_mandatory: bool = True


@dataclass(frozen=True)
class RoutingRule:
    """Condition mapped to the approval levels it pulls in.

    ``field`` names the document-data key to compare; when omitted the
    condition type itself is the key (``amount``, ``supplier_level`` ...).
    """

    name: str
    condition_type: ConditionType
    operator: RoutingOperator
    value: Any
    target_levels: tuple[int, ...]
    field: str | None = None

    @property
    def data_key(self) -> str:
        return self.field or self.condition_type.value


@dataclass(frozen=True)
class ApprovalAction:
    """An approver's recorded decision on one level."""

    actor_id: UUID
    actor_role: str | None
    decision: ApprovalDecision
    level_number: int | None = None
    comments: str | None = None
    acted_at: datetime | None = None


@dataclass(frozen=True)
class LevelEvaluation:
    level_number: int
    is_satisfied: bool
    missing_roles: tuple[str, ...] = ()


@dataclass(frozen=True)
class RoutingEvaluation:
    """Outcome of evaluating recorded actions against the required levels."""

    required_levels: tuple[int, ...]
    satisfied_levels: tuple[int, ...] = ()
    pending_levels: tuple[int, ...] = ()
    is_approved: bool = False
    is_rejected: bool = False
    reason: str = ""

    @property
    def current_level(self) -> int | None:
        return self.pending_levels[0] if self.pending_levels else None


def validate_level_sequence(levels: tuple[ApprovalLevel, ...]) -> None:
    """Raise ValueError unless level numbers are exactly 1..n."""
    numbers = sorted(level.level_number for level in levels)
    expected = list(range(1, len(levels) + 1))
    if numbers != expected:
        raise ValueError(
            f"Level numbers must be sequential starting from 1, got {numbers}"
        )
