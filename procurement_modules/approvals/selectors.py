"""Read access to approval workflow definitions."""

from __future__ import annotations

from sqlalchemy import Select

from procurement_kernel.selectors.base import LiveRecordSelector
from procurement_modules.approvals.orm import ApprovalWorkflowModel


class ApprovalWorkflowSelector(LiveRecordSelector[ApprovalWorkflowModel]):
    model = ApprovalWorkflowModel
    entity_type = "Workflow"

    def by_name(self, name: str) -> ApprovalWorkflowModel | None:
        return self.find_one(name=name)

    def active(self, document_type: str | None = None) -> Select:
        stmt = self.live_query().where(ApprovalWorkflowModel.is_active.is_(True))
        if document_type is not None:
            stmt = stmt.where(ApprovalWorkflowModel.document_type == document_type)
        return stmt

    def default_for(self, document_type: str) -> ApprovalWorkflowModel | None:
        stmt = self.active(document_type).where(ApprovalWorkflowModel.is_default.is_(True))
        return self.session.execute(stmt).scalars().first()
