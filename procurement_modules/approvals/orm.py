"""
SQLAlchemy ORM persistence model for approval workflow definitions.

Levels and routing rules are stored as JSON lists on the workflow row; they
are always replaced whole, never edited in place.
"""

from typing import Any

from sqlalchemy import JSON, Boolean, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from procurement_config.loader import parse_level, parse_rule
from procurement_kernel.db.base import SoftDeleteMixin, TrackedBase
from procurement_kernel.domain.routing import ApprovalLevel, DocumentType, RoutingRule
from procurement_kernel.utils.serialization import json_safe


class ApprovalWorkflowModel(TrackedBase, SoftDeleteMixin):
    """
    An approval routing workflow for one document type.

    Maps to the ``WorkflowDefinition`` DTO in
    ``procurement_modules.approvals.models``.
    """

    __tablename__ = "approval_workflows"

    __table_args__ = (
        UniqueConstraint("name", name="uq_approval_workflow_name"),
        Index("idx_approval_workflow_default", "document_type", "is_default"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    document_type: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    levels: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    routing_rules: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    def to_dto(self):
        from procurement_modules.approvals.models import WorkflowDefinition

        return WorkflowDefinition(
            id=self.id,
            name=self.name,
            document_type=DocumentType(self.document_type),
            levels=tuple(parse_level(level) for level in self.levels or ()),
            routing_rules=tuple(parse_rule(rule) for rule in self.routing_rules or ()),
            description=self.description or "",
            is_default=self.is_default,
            is_active=self.is_active,
            created_at=self.created_at,
            created_by_id=self.created_by_id,
            updated_at=self.updated_at,
            updated_by_id=self.updated_by_id,
        )

    def __repr__(self) -> str:
        return f"<ApprovalWorkflowModel {self.name} [{self.document_type}]>"


def level_to_json(level: ApprovalLevel) -> dict[str, Any]:
    return {
        "level_number": level.level_number,
        "name": level.name,
        "approver_roles": list(level.approver_roles),
        "approval_mode": level.approval_mode.value,
        "is_mandatory": level.is_mandatory,
    }


def rule_to_json(rule: RoutingRule) -> dict[str, Any]:
    return {
        "name": rule.name,
        "condition_type": rule.condition_type.value,
        "operator": rule.operator.value,
        "value": json_safe(rule.value),
        "target_levels": list(rule.target_levels),
        "field": rule.field,
    }
