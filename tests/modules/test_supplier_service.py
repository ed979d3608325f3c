"""
Tests for the Supplier module service.

Validates:
- Supplier numbers and master-data validation
- Approval lifecycle: submit / approve / reject / activate / deactivate
- Revalidation when banking or registration details change
- Soft delete, search and statistics
"""

from __future__ import annotations

import inspect
from decimal import Decimal

import pytest

from procurement_kernel.domain.routing import ApprovalStatus
from procurement_kernel.exceptions import (
    EntityNotFoundError,
    TransitionNotAllowedError,
    ValidationError,
)
from procurement_kernel.services.audit_service import AuditLogService
from procurement_modules.suppliers import (
    CreditRating,
    SupplierService,
    SupplierStatus,
    SupplierType,
)

# =============================================================================
# Structural Tests
# =============================================================================


class TestSupplierServiceStructure:
    """Verify SupplierService follows the module service pattern."""

    def test_constructor_signature(self):
        params = list(inspect.signature(SupplierService.__init__).parameters)
        assert params[:3] == ["self", "session", "clock"]

    def test_has_public_methods(self):
        for name in (
            "create", "update", "delete", "update_performance",
            "submit_for_approval", "approve", "reject",
            "activate", "deactivate", "blacklist",
            "get", "get_by_number", "list", "search", "statistics",
        ):
            assert callable(getattr(SupplierService, name))


# =============================================================================
# Master data
# =============================================================================


class TestSupplierCreate:

    def test_numbers_are_sequential_per_day(self, create_supplier):
        first = create_supplier("Alpha")
        second = create_supplier("Beta")

        assert first.supplier_number == "SUP-20260106-001"
        assert second.supplier_number == "SUP-20260106-002"

    def test_defaults(self, create_supplier, test_actor_id):
        supplier = create_supplier("Alpha")

        assert supplier.status == SupplierStatus.DRAFT
        assert supplier.type == SupplierType.MANUFACTURER
        assert supplier.credit_rating == CreditRating.UNRATED
        assert supplier.approval.approval_status == ApprovalStatus.NONE
        assert supplier.currency == "CNY"
        assert supplier.created_by_id == test_actor_id

    def test_requires_a_company_name(self, supplier_service, test_actor_id):
        with pytest.raises(ValidationError, match="At least one company name"):
            supplier_service.create(test_actor_id, company_name_zh="  ")

    def test_rejects_bad_email(self, create_supplier):
        with pytest.raises(ValidationError):
            create_supplier("Alpha", contact={"email": "not-an-email"})

    def test_rejects_unknown_type(self, create_supplier):
        with pytest.raises(ValidationError):
            create_supplier("Alpha", type="wholesaler")

    def test_rejects_negative_credit_limit(self, create_supplier):
        with pytest.raises(ValidationError):
            create_supplier("Alpha", credit_limit="-1")

    def test_writes_audit_entry(self, create_supplier, session):
        supplier = create_supplier("Alpha")

        entries = AuditLogService(session).entries_for("Supplier", supplier.id)

        assert [e.action for e in entries] == ["create"]


class TestSupplierUpdate:

    def test_plain_edit_keeps_status(self, supplier_service, supplier, test_actor_id):
        supplier_service.submit_for_approval(supplier.id, test_actor_id)
        supplier_service.approve(supplier.id, test_actor_id)

        updated = supplier_service.update(supplier.id, test_actor_id, notes="Prefers email")

        assert updated.notes == "Prefers email"
        assert updated.status == SupplierStatus.ACTIVE

    def test_banking_change_sends_active_supplier_back_to_review(
        self, supplier_service, supplier, test_actor_id,
    ):
        supplier_service.submit_for_approval(supplier.id, test_actor_id)
        supplier_service.approve(supplier.id, test_actor_id)

        updated = supplier_service.update(
            supplier.id, test_actor_id, banking={"bank_name": "ICBC", "account_number": "6222"},
        )

        assert updated.status == SupplierStatus.PENDING_APPROVAL
        assert updated.approval.approval_status == ApprovalStatus.PENDING

    def test_unknown_field(self, supplier_service, supplier, test_actor_id):
        with pytest.raises(ValidationError):
            supplier_service.update(supplier.id, test_actor_id, supplier_number="X")

    def test_performance_ratings_are_range_checked(self, supplier_service, supplier, test_actor_id):
        updated = supplier_service.update_performance(
            supplier.id, test_actor_id, quality_rating="4.5", on_time_delivery_rate="97",
        )

        assert updated.performance.quality_rating == Decimal("4.5")
        with pytest.raises(ValidationError):
            supplier_service.update_performance(supplier.id, test_actor_id, delivery_rating="6")


# =============================================================================
# Lifecycle
# =============================================================================


class TestSupplierLifecycle:

    def test_submit_and_approve(self, supplier_service, supplier, test_actor_id):
        submitted = supplier_service.submit_for_approval(supplier.id, test_actor_id)
        approved = supplier_service.approve(supplier.id, test_actor_id)

        assert submitted.status == SupplierStatus.PENDING_APPROVAL
        assert approved.status == SupplierStatus.ACTIVE
        assert approved.approval.approval_status == ApprovalStatus.APPROVED
        assert approved.approval.approved_by_id == test_actor_id
        assert approved.approval.approved_at is not None

    def test_submit_twice(self, supplier_service, supplier, test_actor_id):
        supplier_service.submit_for_approval(supplier.id, test_actor_id)

        with pytest.raises(TransitionNotAllowedError, match="already pending approval"):
            supplier_service.submit_for_approval(supplier.id, test_actor_id)

    def test_submit_active(self, supplier_service, supplier, test_actor_id):
        supplier_service.submit_for_approval(supplier.id, test_actor_id)
        supplier_service.approve(supplier.id, test_actor_id)

        with pytest.raises(TransitionNotAllowedError, match="already approved and active"):
            supplier_service.submit_for_approval(supplier.id, test_actor_id)

    def test_reject_requires_reason(self, supplier_service, supplier, test_actor_id):
        supplier_service.submit_for_approval(supplier.id, test_actor_id)

        with pytest.raises(ValidationError, match="Rejection reason is required"):
            supplier_service.reject(supplier.id, test_actor_id, "  ")

    def test_reject_returns_to_draft(self, supplier_service, supplier, test_actor_id):
        supplier_service.submit_for_approval(supplier.id, test_actor_id)

        rejected = supplier_service.reject(supplier.id, test_actor_id, "Missing licence")

        assert rejected.status == SupplierStatus.DRAFT
        assert rejected.approval.approval_status == ApprovalStatus.REJECTED
        assert rejected.approval.rejection_reason == "Missing licence"

    def test_approve_requires_pending(self, supplier_service, supplier, test_actor_id):
        with pytest.raises(TransitionNotAllowedError):
            supplier_service.approve(supplier.id, test_actor_id)

    def test_activate_and_deactivate_are_idempotent(self, supplier_service, supplier, test_actor_id):
        supplier_service.submit_for_approval(supplier.id, test_actor_id)
        supplier_service.approve(supplier.id, test_actor_id)

        assert supplier_service.activate(supplier.id, test_actor_id).status == SupplierStatus.ACTIVE
        assert supplier_service.deactivate(supplier.id, test_actor_id).status == SupplierStatus.INACTIVE
        assert supplier_service.deactivate(supplier.id, test_actor_id).status == SupplierStatus.INACTIVE
        assert supplier_service.activate(supplier.id, test_actor_id).status == SupplierStatus.ACTIVE

    def test_blacklist_is_terminal(self, supplier_service, supplier, test_actor_id):
        blacklisted = supplier_service.blacklist(supplier.id, test_actor_id, "Fraud")

        assert blacklisted.status == SupplierStatus.BLACKLISTED
        assert "Blacklisted: Fraud" in blacklisted.notes
        with pytest.raises(TransitionNotAllowedError):
            supplier_service.submit_for_approval(supplier.id, test_actor_id)


# =============================================================================
# Queries
# =============================================================================


class TestSupplierQueries:

    def test_soft_delete_hides_supplier(self, supplier_service, supplier, test_actor_id):
        supplier_service.delete(supplier.id, test_actor_id)

        with pytest.raises(EntityNotFoundError):
            supplier_service.get(supplier.id)
        assert supplier.id not in [s.id for s in supplier_service.list()]

    def test_get_by_number(self, supplier_service, supplier):
        assert supplier_service.get_by_number(supplier.supplier_number).id == supplier.id

    def test_search_matches_names(self, supplier_service, create_supplier):
        create_supplier("Ningbo Plastics")
        create_supplier("Suzhou Electronics")

        found = supplier_service.search("plastics")

        assert [s.company_name_en for s in found] == ["Ningbo Plastics"]

    def test_list_by_status(self, supplier_service, create_supplier, test_actor_id):
        draft = create_supplier("Draft Co")
        active = create_supplier("Active Co")
        supplier_service.submit_for_approval(active.id, test_actor_id)
        supplier_service.approve(active.id, test_actor_id)

        assert [s.id for s in supplier_service.list(status="active")] == [active.id]
        assert draft.id in [s.id for s in supplier_service.list(status=SupplierStatus.DRAFT)]

    def test_statistics(self, supplier_service, create_supplier):
        create_supplier("One")
        create_supplier("Two", type="distributor")

        stats = supplier_service.statistics()

        assert stats.total == 2
        assert stats.by_status["draft"] == 2
        assert stats.by_type["distributor"] == 1
