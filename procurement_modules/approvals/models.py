"""
Approval workflow definitions.

A workflow is scoped to one document type and holds numbered approval
levels plus the routing rules that pull optional levels in for a given
document.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from procurement_kernel.domain.routing import ApprovalLevel, DocumentType, RoutingRule


@dataclass(frozen=True)
class WorkflowDefinition:
    id: UUID
    name: str
    document_type: DocumentType
    levels: tuple[ApprovalLevel, ...]
    routing_rules: tuple[RoutingRule, ...] = ()
    description: str = ""
    is_default: bool = False
    is_active: bool = True
    created_at: datetime | None = None
    created_by_id: UUID | None = None
    updated_at: datetime | None = None
    updated_by_id: UUID | None = None

    @property
    def total_levels(self) -> int:
        return len(self.levels)

    @property
    def mandatory_levels(self) -> tuple[int, ...]:
        return tuple(sorted(level.level_number for level in self.levels if level.is_mandatory))

    def level(self, level_number: int) -> ApprovalLevel | None:
        for level in self.levels:
            if level.level_number == level_number:
                return level
        return None
