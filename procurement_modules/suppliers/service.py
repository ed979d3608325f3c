"""
Supplier service (``procurement_modules.suppliers.service``).

Responsibility
--------------
Supplier master data and onboarding: creation with a generated
``SUP-`` number, edits, soft removal, the approval lifecycle
(submit / approve / reject), status changes (activate / deactivate /
blacklist) and performance metrics.

Invariants enforced
-------------------
* At least one of the Chinese or English company name is non-blank.
* Every status change resolves through ``SUPPLIER_WORKFLOW``; a guard
  violation raises before anything is written.
* ``activate()`` on an active supplier and ``deactivate()`` on an
  inactive one are no-ops.
* Changing banking or business registration data of an active supplier
  sends it back to ``pending_approval``.
* Ratings stay within 1-5 and rates within 0-100.

Failure modes
-------------
* ``EntityNotFoundError`` -- unknown or removed supplier.
* ``ValidationError`` -- missing names, bad enumeration values, ranges.
* ``TransitionNotAllowedError`` -- status does not permit the action.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.document_numbers import SUPPLIER_NUMBER
from procurement_kernel.domain.routing import ApprovalStatus
from procurement_kernel.domain.validation import (
    coerce_enum,
    optional_text,
    require_currency,
    require_non_negative,
    require_range,
    require_text,
    to_decimal,
)
from procurement_kernel.domain.workflow import require_transition
from procurement_kernel.exceptions import (
    EntityNotFoundError,
    TransitionNotAllowedError,
    ValidationError,
)
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.services.audit_service import AuditLogService
from procurement_kernel.services.base import BaseService
from procurement_kernel.services.sequence_service import SequenceService
from procurement_modules._helpers import (
    append_note,
    apply_changes,
    contains_any,
    reject_unknown_fields,
)
from procurement_modules.suppliers.models import (
    CreditRating,
    Supplier,
    SupplierStatistics,
    SupplierStatus,
    SupplierType,
)
from procurement_modules.suppliers.orm import SupplierModel
from procurement_modules.suppliers.selectors import SupplierSelector
from procurement_modules.suppliers.workflows import SUPPLIER_WORKFLOW

logger = get_logger("modules.suppliers.service")

ENTITY_TYPE = "Supplier"

_EMAIL = re.compile(r"^\S+@\S+\.\S+$")
_PHONE = re.compile(r"^[\d\s\-+()]+$")

_RATING_FIELDS = ("quality_rating", "delivery_rating", "service_rating")
_RATE_FIELDS = ("on_time_delivery_rate", "quality_pass_rate")
_PERFORMANCE_FIELDS = frozenset(_RATING_FIELDS + _RATE_FIELDS + ("total_orders", "total_amount"))

# Edits to these sub-records put an active supplier back into review.
_CRITICAL_FIELDS = frozenset({"banking", "business_info"})

_UPDATABLE = frozenset({
    "company_name_zh",
    "company_name_en",
    "abbreviation",
    "type",
    "categories",
    "contact",
    "address",
    "business_info",
    "banking",
    "credit_rating",
    "credit_limit",
    "payment_terms",
    "currency",
    "notes",
    "tags",
}) | _PERFORMANCE_FIELDS


class SupplierService(BaseService):
    """
    Supplier operations.

    Guarantees:
        - Flushes only; the caller commits.
        - Every mutation writes one audit entry and one structured log line.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._suppliers = SupplierSelector(session)
        self._sequences = SequenceService(session, self.clock)
        self._audit = AuditLogService(session, self.clock)

    # =========================================================================
    # Master data
    # =========================================================================

    def create(
        self,
        actor_id: UUID,
        company_name_zh: str | None = None,
        company_name_en: str | None = None,
        type: str | SupplierType = SupplierType.MANUFACTURER,
        abbreviation: str | None = None,
        categories: Iterable[str] = (),
        contact: Mapping[str, Any] | None = None,
        address: Mapping[str, Any] | None = None,
        business_info: Mapping[str, Any] | None = None,
        banking: Mapping[str, Any] | None = None,
        credit_rating: str | CreditRating = CreditRating.UNRATED,
        credit_limit: Decimal | str | int = Decimal("0"),
        payment_terms: str = "30 days",
        currency: str = "CNY",
        notes: str | None = None,
        tags: Iterable[str] = (),
    ) -> Supplier:
        name_zh, name_en = self._company_names(company_name_zh, company_name_en)
        values = self._validated({
            "type": type,
            "contact": contact or {},
            "credit_rating": credit_rating,
            "credit_limit": credit_limit,
            "currency": currency,
        })

        row = SupplierModel(
            supplier_number=self._sequences.next_document_number(SUPPLIER_NUMBER),
            company_name_zh=name_zh,
            company_name_en=name_en,
            abbreviation=optional_text(abbreviation),
            status=SupplierStatus.DRAFT.value,
            categories=list(categories),
            address=dict(address or {}),
            business_info=dict(business_info or {}),
            banking=dict(banking or {}),
            payment_terms=payment_terms,
            approval_status=ApprovalStatus.NONE.value,
            notes=optional_text(notes),
            tags=list(tags),
            created_by_id=actor_id,
            **values,
        )
        self.session.add(row)
        self.session.flush()

        self._audit.record(
            actor_id, "create", ENTITY_TYPE, row.id,
            {"supplier_number": row.supplier_number, "company_name": name_zh or name_en},
        )
        logger.info(
            "supplier_created",
            extra={"supplier_id": str(row.id), "supplier_number": row.supplier_number},
        )
        return row.to_dto()

    def update(self, supplier_id: UUID, actor_id: UUID, **changes: Any) -> Supplier:
        reject_unknown_fields(changes, _UPDATABLE, "supplier")
        row = self._suppliers.require(supplier_id)

        changes = self._validated(changes)
        name_zh = changes.get("company_name_zh", row.company_name_zh)
        name_en = changes.get("company_name_en", row.company_name_en)
        if "company_name_zh" in changes or "company_name_en" in changes:
            name_zh, name_en = self._company_names(name_zh, name_en)
            changes["company_name_zh"], changes["company_name_en"] = name_zh, name_en

        with LogContext.bind(document_type=ENTITY_TYPE, document_id=row.id):
            diff = apply_changes(row, changes)
            revalidated = bool(_CRITICAL_FIELDS & set(diff)) and row.status == SupplierStatus.ACTIVE.value
            if revalidated:
                transition = require_transition(SUPPLIER_WORKFLOW, ENTITY_TYPE, row.status, "revalidate")
                row.status = transition.to_state
                row.approval_status = ApprovalStatus.PENDING.value
                logger.info(
                    "supplier_sent_for_revalidation",
                    extra={"supplier_number": row.supplier_number, "fields": sorted(_CRITICAL_FIELDS & set(diff))},
                )
            row.updated_by_id = actor_id
            self.session.flush()

            self._audit.record(actor_id, "update", ENTITY_TYPE, row.id, {"changes": diff})
            logger.info(
                "supplier_updated",
                extra={"supplier_number": row.supplier_number, "fields": sorted(diff)},
            )
        return row.to_dto()

    def delete(self, supplier_id: UUID, actor_id: UUID) -> None:
        """Soft delete, whatever the approval state."""
        row = self._suppliers.require(supplier_id)
        row.mark_removed(actor_id, self.clock.now())
        row.updated_by_id = actor_id
        self.session.flush()
        self._audit.record(actor_id, "delete", ENTITY_TYPE, row.id, {"supplier_number": row.supplier_number})
        logger.info("supplier_removed", extra={"supplier_number": row.supplier_number})

    def update_performance(self, supplier_id: UUID, actor_id: UUID, **metrics: Any) -> Supplier:
        reject_unknown_fields(metrics, _PERFORMANCE_FIELDS, "supplier performance")
        row = self._suppliers.require(supplier_id)
        diff = apply_changes(row, self._validated(metrics))
        row.updated_by_id = actor_id
        self.session.flush()
        self._audit.record(actor_id, "update_performance", ENTITY_TYPE, row.id, {"changes": diff})
        logger.info(
            "supplier_performance_updated",
            extra={"supplier_number": row.supplier_number, "fields": sorted(diff)},
        )
        return row.to_dto()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def submit_for_approval(self, supplier_id: UUID, actor_id: UUID) -> Supplier:
        row = self._suppliers.require(supplier_id)
        if row.status == SupplierStatus.PENDING_APPROVAL.value:
            self._refuse(row, "submit", "Supplier is already pending approval")
        if row.status == SupplierStatus.ACTIVE.value:
            self._refuse(row, "submit", "Supplier is already approved and active")
        return self._transition(row, "submit", actor_id, approval_status=ApprovalStatus.PENDING)

    def approve(self, supplier_id: UUID, actor_id: UUID) -> Supplier:
        row = self._suppliers.require(supplier_id)
        self._require_pending(row, "approve")
        row.approved_by_id = actor_id
        row.approved_at = self.clock.now()
        return self._transition(row, "approve", actor_id, approval_status=ApprovalStatus.APPROVED)

    def reject(self, supplier_id: UUID, actor_id: UUID, reason: str | None) -> Supplier:
        row = self._suppliers.require(supplier_id)
        self._require_pending(row, "reject")
        reason = optional_text(reason)
        if reason is None:
            raise ValidationError("Rejection reason is required", field="reason")
        row.rejected_by_id = actor_id
        row.rejected_at = self.clock.now()
        row.rejection_reason = reason
        return self._transition(
            row, "reject", actor_id,
            approval_status=ApprovalStatus.REJECTED,
            metadata={"reason": reason},
        )

    def activate(self, supplier_id: UUID, actor_id: UUID) -> Supplier:
        row = self._suppliers.require(supplier_id)
        if row.status == SupplierStatus.ACTIVE.value:
            return row.to_dto()
        return self._transition(row, "activate", actor_id)

    def deactivate(self, supplier_id: UUID, actor_id: UUID) -> Supplier:
        row = self._suppliers.require(supplier_id)
        if row.status == SupplierStatus.INACTIVE.value:
            return row.to_dto()
        return self._transition(row, "deactivate", actor_id)

    def blacklist(self, supplier_id: UUID, actor_id: UUID, reason: str) -> Supplier:
        row = self._suppliers.require(supplier_id)
        reason = require_text(reason, "reason")
        require_transition(SUPPLIER_WORKFLOW, ENTITY_TYPE, row.status, "blacklist")
        row.notes = append_note(row.notes, f"Blacklisted: {reason}")
        return self._transition(row, "blacklist", actor_id, metadata={"reason": reason})

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, supplier_id: UUID) -> Supplier:
        return self._suppliers.require(supplier_id).to_dto()

    def get_by_number(self, supplier_number: str) -> Supplier:
        row = self._suppliers.by_number(supplier_number)
        if row is None:
            raise EntityNotFoundError("Supplier", supplier_number)
        return row.to_dto()

    def list(
        self,
        status: str | SupplierStatus | None = None,
        type: str | SupplierType | None = None,
        search: str | None = None,
    ) -> list[Supplier]:
        stmt = self._suppliers.live_query()
        if status is not None:
            stmt = stmt.where(SupplierModel.status == coerce_enum(SupplierStatus, status, "status").value)
        if type is not None:
            stmt = stmt.where(SupplierModel.type == coerce_enum(SupplierType, type, "type").value)
        if search:
            stmt = stmt.where(self._search_clause(search))
        stmt = stmt.order_by(SupplierModel.created_at.desc(), SupplierModel.supplier_number.desc())
        return [row.to_dto() for row in self._suppliers.list(stmt)]

    def search(self, query: str) -> list[Supplier]:
        stmt = (
            self._suppliers.live_query()
            .where(self._search_clause(query))
            .order_by(SupplierModel.supplier_number)
        )
        return [row.to_dto() for row in self._suppliers.list(stmt)]

    def statistics(self) -> SupplierStatistics:
        quality, delivery, service = self._suppliers.rating_averages()
        by_status = {s.value: 0 for s in SupplierStatus}
        by_status.update(self._suppliers.count_by(SupplierModel.status))
        by_type = {t.value: 0 for t in SupplierType}
        by_type.update(self._suppliers.count_by(SupplierModel.type))
        return SupplierStatistics(
            total=sum(by_status.values()),
            by_status=by_status,
            by_type=by_type,
            avg_quality_rating=_rounded(quality),
            avg_delivery_rating=_rounded(delivery),
            avg_service_rating=_rounded(service),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _company_names(zh: str | None, en: str | None) -> tuple[str | None, str | None]:
        zh, en = optional_text(zh), optional_text(en)
        if zh is None and en is None:
            raise ValidationError(
                "At least one company name (Chinese or English) is required",
                field="company_name",
            )
        return zh, en

    @staticmethod
    def _validated(values: Mapping[str, Any]) -> dict[str, Any]:
        """Coerce and range-check the fields present in ``values``."""
        out = dict(values)
        if "type" in out:
            out["type"] = coerce_enum(SupplierType, out["type"], "type").value
        if "credit_rating" in out:
            out["credit_rating"] = coerce_enum(CreditRating, out["credit_rating"], "credit_rating").value
        if "credit_limit" in out:
            out["credit_limit"] = require_non_negative(
                to_decimal(out["credit_limit"], "credit_limit"), "credit_limit",
            )
        if "currency" in out:
            out["currency"] = require_currency(out["currency"])
        if "contact" in out:
            out["contact"] = _validated_contact(out["contact"])
        for name in ("categories", "tags"):
            if name in out:
                out[name] = list(out[name] or ())
        for name in ("business_info", "banking", "address"):
            if name in out:
                out[name] = dict(out[name] or {})
        for name in _RATING_FIELDS:
            if name in out:
                out[name] = require_range(to_decimal(out[name], name), name, Decimal("1"), Decimal("5"))
        for name in _RATE_FIELDS:
            if name in out:
                out[name] = require_range(to_decimal(out[name], name), name, Decimal("0"), Decimal("100"))
        if "total_orders" in out:
            out["total_orders"] = int(require_non_negative(to_decimal(out["total_orders"], "total_orders"), "total_orders"))
        if "total_amount" in out:
            out["total_amount"] = require_non_negative(to_decimal(out["total_amount"], "total_amount"), "total_amount")
        return out

    @staticmethod
    def _search_clause(search: str):
        return contains_any(
            search,
            SupplierModel.supplier_number,
            SupplierModel.company_name_zh,
            SupplierModel.company_name_en,
            SupplierModel.abbreviation,
        )

    def _require_pending(self, row: SupplierModel, action: str) -> None:
        if row.status != SupplierStatus.PENDING_APPROVAL.value:
            self._refuse(row, action, "Supplier is not pending approval")

    @staticmethod
    def _refuse(row: SupplierModel, action: str, message: str) -> None:
        raise TransitionNotAllowedError(
            message, entity_type=ENTITY_TYPE, current_state=row.status, action=action,
        )

    def _transition(
        self,
        row: SupplierModel,
        action: str,
        actor_id: UUID,
        approval_status: ApprovalStatus | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Supplier:
        transition = require_transition(SUPPLIER_WORKFLOW, ENTITY_TYPE, row.status, action)
        old_status = row.status
        row.status = transition.to_state
        if approval_status is not None:
            row.approval_status = approval_status.value
        row.updated_by_id = actor_id
        self.session.flush()

        self._audit.record(
            actor_id, action, ENTITY_TYPE, row.id,
            {"from": old_status, "to": row.status, **(metadata or {})},
        )
        logger.info(
            "supplier_status_changed",
            extra={
                "supplier_number": row.supplier_number,
                "action": action,
                "from_status": old_status,
                "to_status": row.status,
            },
        )
        return row.to_dto()


def _validated_contact(contact: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(contact or {})
    email = optional_text(out.get("email"))
    if email is not None:
        if not _EMAIL.match(email):
            raise ValidationError("Invalid email format", field="contact.email")
        out["email"] = email.lower()
    for name in ("phone", "mobile"):
        value = optional_text(out.get(name))
        if value is not None and not _PHONE.match(value):
            raise ValidationError(f"Invalid {name} number format", field=f"contact.{name}")
    return out


def _rounded(value: Any) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(Decimal("0.01"))
