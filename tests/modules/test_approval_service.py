"""
Tests for persisted approval workflows.

Validates:
- Installing the configured workflows is idempotent
- One default workflow per document type
- Structural validation of levels and rules
- Routing questions answered from a stored definition
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from procurement_kernel.domain.routing import (
    ApprovalAction,
    ApprovalDecision,
    ApprovalLevel,
    ConditionType,
    DocumentType,
    RoutingOperator,
    RoutingRule,
)
from procurement_kernel.exceptions import (
    DefaultWorkflowConflictError,
    EntityNotFoundError,
    ValidationError,
)

MANAGER = ApprovalLevel(1, "Manager", ("procurement_manager",))


class TestInstallFromConfig:

    def test_installs_every_configured_workflow(self, installed_workflows):
        assert {w.name for w in installed_workflows} == {
            "purchase_order_standard",
            "supplier_onboarding",
        }

    def test_second_install_creates_nothing(
        self, approval_service, installed_workflows, test_actor_id, procurement_config,
    ):
        assert approval_service.install_from_config(test_actor_id, procurement_config) == []

    def test_install_is_logged(self, approval_service, test_actor_id, procurement_config, captured_logs):
        approval_service.install_from_config(test_actor_id, procurement_config)

        installed = [r for r in captured_logs() if r["message"] == "approval_workflows_installed"]
        assert len(installed) == 1
        assert installed[0]["created_count"] == 2
        assert installed[0]["configured"] == 2
        assert installed[0]["level"] == "INFO"

    def test_stored_definition_round_trips(self, approval_service, installed_workflows):
        workflow = approval_service.default_workflow("purchase_order")

        assert workflow.name == "purchase_order_standard"
        assert workflow.total_levels == 2
        assert workflow.mandatory_levels == (1,)
        assert workflow.routing_rules[0].target_levels == (1, 2)
        assert workflow.level(2).approver_roles == ("procurement_director", "finance_director")


class TestWorkflowDefinitions:

    def test_second_default_conflicts(self, approval_service, installed_workflows, test_actor_id):
        with pytest.raises(DefaultWorkflowConflictError):
            approval_service.create_workflow(
                test_actor_id, "po_fast", DocumentType.PURCHASE_ORDER, [MANAGER], is_default=True,
            )

    def test_non_default_alongside_default(self, approval_service, installed_workflows, test_actor_id):
        created = approval_service.create_workflow(
            test_actor_id, "po_fast", "purchase_order", [MANAGER],
        )

        listed = approval_service.list("purchase_order")

        assert [w.name for w in listed] == ["purchase_order_standard", "po_fast"]
        assert created.is_default is False

    def test_set_default_after_deactivating_the_old_one(
        self, approval_service, installed_workflows, test_actor_id,
    ):
        old = approval_service.default_workflow(DocumentType.PURCHASE_ORDER)
        new = approval_service.create_workflow(test_actor_id, "po_fast", "purchase_order", [MANAGER])

        approval_service.deactivate(old.id, test_actor_id)
        approval_service.set_default(new.id, test_actor_id)

        assert approval_service.default_workflow("purchase_order").id == new.id

    def test_duplicate_name(self, approval_service, test_actor_id):
        approval_service.create_workflow(test_actor_id, "w", "purchase_order", [MANAGER])

        with pytest.raises(ValidationError, match="already exists"):
            approval_service.create_workflow(test_actor_id, "w", "purchase_order", [MANAGER])

    def test_levels_required(self, approval_service, test_actor_id):
        with pytest.raises(ValidationError, match="At least one approval level"):
            approval_service.create_workflow(test_actor_id, "w", "purchase_order", [])

    def test_levels_must_be_sequential(self, approval_service, test_actor_id):
        gap = ApprovalLevel(3, "Director", ("procurement_director",))

        with pytest.raises(ValidationError):
            approval_service.create_workflow(test_actor_id, "w", "purchase_order", [MANAGER, gap])

    def test_rule_targets_unknown_level(self, approval_service, test_actor_id):
        rule = RoutingRule("big", ConditionType.AMOUNT, RoutingOperator.GT, 1, (2,))

        with pytest.raises(ValidationError, match="undefined levels"):
            approval_service.create_workflow(
                test_actor_id, "w", "purchase_order", [MANAGER], routing_rules=[rule],
            )

    def test_unknown_workflow(self, approval_service):
        with pytest.raises(EntityNotFoundError):
            approval_service.get(uuid4())

    def test_no_default(self, approval_service):
        assert approval_service.default_workflow("material_quotation") is None


class TestRouting:

    def test_required_levels_by_amount(self, approval_service, installed_workflows):
        workflow = approval_service.default_workflow("purchase_order")

        assert approval_service.required_levels(workflow, {"amount": Decimal("99999.99")}) == (1,)
        assert approval_service.required_levels(workflow, {"amount": Decimal("100000")}) == (1, 2)

    def test_evaluate_and_level_for_role(self, approval_service, installed_workflows):
        workflow = approval_service.default_workflow("purchase_order")
        manager = ApprovalAction(uuid4(), "procurement_manager", ApprovalDecision.APPROVED, level_number=1)

        evaluation = approval_service.evaluate(workflow, (1, 2), [manager])

        assert evaluation.satisfied_levels == (1,)
        assert evaluation.pending_levels == (2,)
        assert not evaluation.is_approved
        assert approval_service.level_for_role(workflow, evaluation.pending_levels, "finance_director") == 2
        assert approval_service.level_for_role(workflow, evaluation.pending_levels, "buyer") is None

    def test_supplier_onboarding_needs_every_role(self, approval_service, installed_workflows):
        workflow = approval_service.default_workflow("supplier")
        procurement = ApprovalAction(uuid4(), "procurement_manager", ApprovalDecision.APPROVED, level_number=1)
        quality = ApprovalAction(uuid4(), "quality_manager", ApprovalDecision.APPROVED, level_number=1)

        assert not approval_service.evaluate(workflow, (1,), [procurement]).is_approved
        assert approval_service.evaluate(workflow, (1,), [procurement, quality]).is_approved
