"""
Approval routing service (``procurement_modules.approvals.service``).

Responsibility
--------------
Persists approval workflow definitions and answers the two routing
questions documents ask: which levels does this document need, and do the
approver actions recorded so far satisfy them.  The answers come from the
pure functions in ``procurement_engines.routing``; this service only loads
and stores definitions.

Invariants enforced
-------------------
* Level numbers run 1..n and rules target only defined levels.
* At most one active default workflow per document type.
* Workflow names are unique.

Failure modes
-------------
* ``ValidationError`` -- bad level sequence, unknown target level,
  duplicate name.
* ``DefaultWorkflowConflictError`` -- a second default for a type.
* ``EntityNotFoundError`` -- ``Workflow not found``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from procurement_config import ProcurementConfig, WorkflowDefinitionDef, get_active_config
from procurement_engines.routing import (
    evaluate_routing_status,
    level_for_role,
    select_required_levels,
)
from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.routing import (
    ApprovalAction,
    ApprovalLevel,
    DocumentType,
    RoutingEvaluation,
    RoutingRule,
    validate_level_sequence,
)
from procurement_kernel.domain.validation import coerce_enum, require_text
from procurement_kernel.exceptions import DefaultWorkflowConflictError, ValidationError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.services.audit_service import AuditLogService
from procurement_kernel.services.base import BaseService
from procurement_modules.approvals.models import WorkflowDefinition
from procurement_modules.approvals.orm import ApprovalWorkflowModel, level_to_json, rule_to_json
from procurement_modules.approvals.selectors import ApprovalWorkflowSelector

logger = get_logger("modules.approvals.service")

ENTITY_TYPE = "Workflow"


class ApprovalRoutingService(BaseService):
    """Workflow definitions plus routing evaluation."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._workflows = ApprovalWorkflowSelector(session)
        self._audit = AuditLogService(session, self.clock)

    # =========================================================================
    # Definitions
    # =========================================================================

    def create_workflow(
        self,
        actor_id: UUID,
        name: str,
        document_type: str | DocumentType,
        levels: Sequence[ApprovalLevel],
        routing_rules: Sequence[RoutingRule] = (),
        description: str = "",
        is_default: bool = False,
    ) -> WorkflowDefinition:
        name = require_text(name, "name")
        document_type = coerce_enum(DocumentType, document_type, "document_type")
        levels, routing_rules = tuple(levels), tuple(routing_rules)
        _validate_structure(levels, routing_rules)

        if self._workflows.by_name(name) is not None:
            raise ValidationError(f"Workflow {name} already exists", field="name")
        if is_default:
            self._require_no_default(document_type)

        row = ApprovalWorkflowModel(
            name=name,
            document_type=document_type.value,
            description=description or None,
            is_default=is_default,
            is_active=True,
            levels=[level_to_json(level) for level in levels],
            routing_rules=[rule_to_json(rule) for rule in routing_rules],
            created_by_id=actor_id,
        )
        self.session.add(row)
        self.session.flush()

        self._audit.record(
            actor_id, "create", ENTITY_TYPE, row.id,
            {"name": name, "document_type": document_type.value, "is_default": is_default},
        )
        logger.info(
            "approval_workflow_created",
            extra={
                "workflow_name": name,
                "document_type": document_type.value,
                "level_count": len(levels),
                "rule_count": len(routing_rules),
                "is_default": is_default,
            },
        )
        return row.to_dto()

    def install_from_config(
        self,
        actor_id: UUID,
        config: ProcurementConfig | None = None,
    ) -> list[WorkflowDefinition]:
        """Persist every configured workflow not yet stored (matched by name).

        Returns the definitions created by this call.
        """
        config = config or get_active_config()
        created: list[WorkflowDefinition] = []
        for definition in config.workflows:
            if self._workflows.by_name(definition.name) is not None:
                continue
            created.append(self._create_from_def(actor_id, definition))
        logger.info(
            "approval_workflows_installed",
            extra={"created_count": len(created), "configured": len(config.workflows), "checksum": config.checksum},
        )
        return created

    def set_default(self, workflow_id: UUID, actor_id: UUID) -> WorkflowDefinition:
        row = self._workflows.require(workflow_id)
        if not row.is_default:
            self._require_no_default(DocumentType(row.document_type))
            row.is_default = True
            row.updated_by_id = actor_id
            self.session.flush()
            self._audit.record(actor_id, "set_default", ENTITY_TYPE, row.id, {"name": row.name})
            logger.info("approval_workflow_default_set", extra={"workflow_name": row.name})
        return row.to_dto()

    def deactivate(self, workflow_id: UUID, actor_id: UUID) -> WorkflowDefinition:
        row = self._workflows.require(workflow_id)
        if row.is_active:
            row.is_active = False
            row.updated_by_id = actor_id
            self.session.flush()
            self._audit.record(actor_id, "deactivate", ENTITY_TYPE, row.id, {"name": row.name})
            logger.info("approval_workflow_deactivated", extra={"workflow_name": row.name})
        return row.to_dto()

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, workflow_id: UUID) -> WorkflowDefinition:
        return self._workflows.require(workflow_id).to_dto()

    def default_workflow(self, document_type: str | DocumentType) -> WorkflowDefinition | None:
        document_type = coerce_enum(DocumentType, document_type, "document_type")
        row = self._workflows.default_for(document_type.value)
        return row.to_dto() if row is not None else None

    def list(self, document_type: str | DocumentType | None = None) -> list[WorkflowDefinition]:
        value = None
        if document_type is not None:
            value = coerce_enum(DocumentType, document_type, "document_type").value
        stmt = self._workflows.active(value).order_by(
            ApprovalWorkflowModel.is_default.desc(), ApprovalWorkflowModel.name,
        )
        return [row.to_dto() for row in self._workflows.list(stmt)]

    # =========================================================================
    # Routing
    # =========================================================================

    @staticmethod
    def required_levels(
        workflow: WorkflowDefinition,
        document_data: Mapping[str, Any],
    ) -> tuple[int, ...]:
        return select_required_levels(workflow.levels, workflow.routing_rules, document_data)

    @staticmethod
    def evaluate(
        workflow: WorkflowDefinition,
        required_levels: Sequence[int],
        actions: Sequence[ApprovalAction],
    ) -> RoutingEvaluation:
        return evaluate_routing_status(workflow.levels, required_levels, actions)

    @staticmethod
    def level_for_role(
        workflow: WorkflowDefinition,
        pending_levels: Iterable[int],
        actor_role: str | None,
    ) -> int | None:
        return level_for_role(workflow.levels, tuple(pending_levels), actor_role)

    # =========================================================================
    # Internals
    # =========================================================================

    def _create_from_def(self, actor_id: UUID, definition: WorkflowDefinitionDef) -> WorkflowDefinition:
        return self.create_workflow(
            actor_id,
            name=definition.name,
            document_type=definition.document_type,
            levels=definition.levels,
            routing_rules=definition.routing_rules,
            description=definition.description,
            is_default=definition.is_default,
        )

    def _require_no_default(self, document_type: DocumentType) -> None:
        existing = self._workflows.default_for(document_type.value)
        if existing is not None:
            raise DefaultWorkflowConflictError(document_type.value, existing.name)


def _validate_structure(levels: tuple[ApprovalLevel, ...], rules: tuple[RoutingRule, ...]) -> None:
    if not levels:
        raise ValidationError("At least one approval level is required", field="levels")
    try:
        validate_level_sequence(levels)
    except ValueError as exc:
        raise ValidationError(str(exc), field="levels") from exc
    numbers = {level.level_number for level in levels}
    for rule in rules:
        unknown = sorted(set(rule.target_levels) - numbers)
        if unknown:
            raise ValidationError(
                f"Routing rule {rule.name} targets undefined levels {unknown}",
                field="routing_rules",
            )
