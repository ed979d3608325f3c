"""
Purchase order service (``procurement_modules.purchase_orders.service``).

Responsibility
--------------
Purchase order creation and edits with totals recomputed from
``procurement_engines.pricing`` on every change, the approval lifecycle
(routed through the default purchase-order approval workflow when one is
installed), supplier hand-off, receiving, cancellation and completion.

Invariants enforced
-------------------
* ``total_amount == subtotal - sum(line discounts) - discount
  + tax_amount + shipping_cost`` after every write.
* Only draft or rejected orders are edited or deleted.
* With routed approval the order stays ``pending_approval`` until every
  required level is satisfied; a single rejection rejects the order.
* Every status change resolves through ``PURCHASE_ORDER_WORKFLOW``.

Failure modes
-------------
* ``EntityNotFoundError`` -- unknown order, supplier, material or item.
* ``ValidationError`` -- bad quantities, prices, rates, currency,
  missing rejection / cancellation reason, empty order on submit.
* ``TransitionNotAllowedError`` -- status does not permit the action.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from procurement_config import ProcurementConfig, get_active_config
from procurement_engines.pricing import (
    OrderLineInput,
    OrderTotals,
    compute_line_amounts,
    compute_order_totals,
)
from procurement_engines.reconciliation import (
    OrderLine,
    OrderLineState,
    ReconciliationResult,
    ReceivingStatus,
    derive_receiving_status,
    line_status,
)
from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.document_numbers import PURCHASE_ORDER_NUMBER
from procurement_kernel.domain.routing import (
    ApprovalAction,
    ApprovalDecision,
    ApprovalStatus,
    DocumentType,
)
from procurement_kernel.domain.validation import (
    coerce_enum,
    optional_text,
    require_currency,
    require_non_negative,
    require_positive,
    require_range,
    require_text,
    to_decimal,
    to_uuid,
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
from procurement_modules._helpers import append_note, apply_changes, contains_any, reject_unknown_fields
from procurement_modules.approvals.service import ApprovalRoutingService
from procurement_modules.materials.selectors import MaterialSelector
from procurement_modules.purchase_orders.models import (
    ApproverAction,
    Priority,
    PurchaseOrder,
    PurchaseOrderStatistics,
    PurchaseOrderStatus,
)
from procurement_modules.purchase_orders.orm import (
    PurchaseOrderApproverModel,
    PurchaseOrderItemModel,
    PurchaseOrderModel,
)
from procurement_modules.purchase_orders.selectors import PurchaseOrderSelector
from procurement_modules.purchase_orders.workflows import (
    EDITABLE_STATES,
    HAS_ITEMS,
    PURCHASE_ORDER_WORKFLOW,
    RECEIVABLE_STATES,
    REASON_PROVIDED,
)
from procurement_modules.suppliers.selectors import SupplierSelector

logger = get_logger("modules.purchase_orders.service")

ENTITY_TYPE = "PurchaseOrder"

_ZERO = Decimal("0")

_UPDATABLE = frozenset({
    "items",
    "expected_delivery_date",
    "currency",
    "priority",
    "payment_terms",
    "shipping_method",
    "delivery_address",
    "discount",
    "shipping_cost",
    "notes",
    "internal_notes",
})


class PurchaseOrderService(BaseService):
    """
    Purchase order operations.

    Guarantees:
        - Flushes only; the caller commits.
        - Every mutation writes one audit entry and one structured log line.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ProcurementConfig | None = None,
    ):
        super().__init__(session, clock)
        self._settings = (config or get_active_config()).settings
        self._orders = PurchaseOrderSelector(session)
        self._suppliers = SupplierSelector(session)
        self._materials = MaterialSelector(session)
        self._routing = ApprovalRoutingService(session, self.clock)
        self._sequences = SequenceService(session, self.clock)
        self._audit = AuditLogService(session, self.clock)

    # =========================================================================
    # Create / edit
    # =========================================================================

    def create(
        self,
        actor_id: UUID,
        supplier_id: UUID,
        items: Iterable[Mapping[str, Any]],
        expected_delivery_date: datetime,
        order_date: datetime | None = None,
        currency: str | None = None,
        priority: str | Priority = Priority.NORMAL,
        payment_terms: str | None = None,
        shipping_method: str | None = None,
        delivery_address: Mapping[str, Any] | None = None,
        discount: Decimal | str | int = _ZERO,
        shipping_cost: Decimal | str | int = _ZERO,
        notes: str | None = None,
        internal_notes: str | None = None,
        quotation_id: UUID | None = None,
    ) -> PurchaseOrder:
        supplier = self._suppliers.require(to_uuid(supplier_id, "supplier_id"))
        if expected_delivery_date is None:
            raise ValidationError("expected_delivery_date is required", field="expected_delivery_date")

        row = PurchaseOrderModel(
            po_number=self._sequences.next_document_number(PURCHASE_ORDER_NUMBER),
            supplier_id=supplier.id,
            quotation_id=quotation_id,
            order_date=order_date or self.clock.now(),
            expected_delivery_date=expected_delivery_date,
            status=PurchaseOrderStatus.DRAFT.value,
            priority=coerce_enum(Priority, priority, "priority").value,
            currency=self._currency(currency or self._settings.default_currency),
            approval_status=ApprovalStatus.NONE.value,
            payment_terms=optional_text(payment_terms) or self._settings.default_payment_terms,
            shipping_method=optional_text(shipping_method),
            delivery_address=dict(delivery_address or {}),
            discount=_non_negative(discount, "discount"),
            shipping_cost=_non_negative(shipping_cost, "shipping_cost"),
            notes=optional_text(notes),
            internal_notes=optional_text(internal_notes),
            receiving_status=ReceivingStatus.NOT_RECEIVED.value,
            created_by_id=actor_id,
        )
        row.items = self._build_items(items)
        self._recompute_totals(row)
        self.session.add(row)
        self.session.flush()

        self._audit.record(
            actor_id, "create", ENTITY_TYPE, row.id,
            {
                "po_number": row.po_number,
                "supplier_id": str(supplier.id),
                "total_amount": str(row.total_amount),
                "item_count": len(row.items),
            },
        )
        logger.info(
            "purchase_order_created",
            extra={
                "purchase_order_id": str(row.id),
                "po_number": row.po_number,
                "total_amount": str(row.total_amount),
                "currency": row.currency,
            },
        )
        return row.to_dto()

    def update(self, po_id: UUID, actor_id: UUID, **changes: Any) -> PurchaseOrder:
        reject_unknown_fields(changes, _UPDATABLE, "purchase order")
        row = self._orders.require(po_id)
        if row.status not in EDITABLE_STATES:
            self._refuse(row, "update", f"Cannot edit PO with status: {row.status}")

        values = dict(changes)
        items = values.pop("items", None)
        if "currency" in values:
            values["currency"] = self._currency(values["currency"])
        if "priority" in values:
            values["priority"] = coerce_enum(Priority, values["priority"], "priority").value
        for name in ("discount", "shipping_cost"):
            if name in values:
                values[name] = _non_negative(values[name], name)
        if "delivery_address" in values:
            values["delivery_address"] = dict(values["delivery_address"] or {})
        for name in ("shipping_method", "notes", "internal_notes"):
            if name in values:
                values[name] = optional_text(values[name])

        new_items = self._build_items(items) if items is not None else None
        self._order_totals(
            row.items if new_items is None else new_items,
            values.get("discount", row.discount),
            values.get("shipping_cost", row.shipping_cost),
        )

        with LogContext.bind(document_type=ENTITY_TYPE, document_id=row.id):
            diff = apply_changes(row, values)
            if new_items is not None:
                row.items = new_items
                diff["items"] = {"old": None, "new": len(new_items)}
            self._recompute_totals(row)
            row.updated_by_id = actor_id
            self.session.flush()

            self._audit.record(actor_id, "update", ENTITY_TYPE, row.id, {"changes": diff})
            logger.info(
                "purchase_order_updated",
                extra={"po_number": row.po_number, "fields": sorted(diff), "total_amount": str(row.total_amount)},
            )
        return row.to_dto()

    def delete(self, po_id: UUID, actor_id: UUID) -> None:
        row = self._orders.require(po_id)
        if row.status not in EDITABLE_STATES:
            self._refuse(row, "delete", f"Cannot delete PO with status: {row.status}")
        row.mark_removed(actor_id, self.clock.now())
        row.updated_by_id = actor_id
        self.session.flush()
        self._audit.record(actor_id, "delete", ENTITY_TYPE, row.id, {"po_number": row.po_number})
        logger.info("purchase_order_removed", extra={"po_number": row.po_number})

    # =========================================================================
    # Approval
    # =========================================================================

    def submit(self, po_id: UUID, actor_id: UUID) -> PurchaseOrder:
        """Send a draft for approval and fix the levels it must pass."""
        row = self._orders.require(po_id)
        require_transition(
            PURCHASE_ORDER_WORKFLOW, ENTITY_TYPE, row.status, "submit",
            message="Only draft POs can be submitted for approval",
        )
        if not row.items:
            raise ValidationError(HAS_ITEMS.failure_message, field="items")

        workflow = self._routing.default_workflow(DocumentType.PURCHASE_ORDER)
        required: tuple[int, ...] = ()
        if workflow is not None:
            required = self._routing.required_levels(workflow, self._routing_data(row))
        row.workflow_id = workflow.id if workflow is not None else None
        row.required_levels = list(required)
        row.submitted_by_id = actor_id
        row.submitted_at = self.clock.now()

        return self._transition(
            row, "submit", actor_id,
            approval_status=ApprovalStatus.PENDING,
            metadata={
                "workflow": workflow.name if workflow is not None else None,
                "required_levels": list(required),
                "total_amount": str(row.total_amount),
            },
        )

    def approve(
        self,
        po_id: UUID,
        actor_id: UUID,
        comments: str | None = None,
        actor_role: str | None = None,
    ) -> PurchaseOrder:
        """Record an approval.

        With required levels the approval signs the first pending level
        ``actor_role`` may sign; the order moves to ``approved`` only once
        every required level is satisfied.
        """
        row = self._orders.require(po_id)
        self._require_pending(row, "approve")

        if not row.required_levels or row.workflow_id is None:
            self._append_approver(row, actor_id, ApproverAction.APPROVED, actor_role, None, comments)
            return self._transition(row, "approve", actor_id, approval_status=ApprovalStatus.APPROVED)

        workflow = self._routing.get(row.workflow_id)
        before = self._routing.evaluate(workflow, row.required_levels, _actions(row))
        level = self._routing.level_for_role(workflow, before.pending_levels, actor_role)
        if level is None:
            self._refuse(row, "approve", f"Role {actor_role} cannot approve any pending level of this PO")
        self._append_approver(row, actor_id, ApproverAction.APPROVED, actor_role, level, comments)

        after = self._routing.evaluate(workflow, row.required_levels, _actions(row))
        if after.is_approved:
            return self._transition(
                row, "approve", actor_id,
                approval_status=ApprovalStatus.APPROVED,
                metadata={"level": level, "satisfied_levels": list(after.satisfied_levels)},
            )

        row.updated_by_id = actor_id
        self.session.flush()
        self._audit.record(
            actor_id, "approve_level", ENTITY_TYPE, row.id,
            {"level": level, "pending_levels": list(after.pending_levels)},
        )
        logger.info(
            "purchase_order_level_approved",
            extra={
                "po_number": row.po_number,
                "level": level,
                "actor_role": actor_role,
                "pending_levels": list(after.pending_levels),
            },
        )
        return row.to_dto()

    def reject(
        self,
        po_id: UUID,
        actor_id: UUID,
        reason: str | None,
        actor_role: str | None = None,
    ) -> PurchaseOrder:
        reason = optional_text(reason)
        if reason is None:
            raise ValidationError(REASON_PROVIDED.failure_message, field="reason")
        row = self._orders.require(po_id)
        self._require_pending(row, "reject")

        level = None
        if row.workflow_id is not None and row.required_levels:
            workflow = self._routing.get(row.workflow_id)
            evaluation = self._routing.evaluate(workflow, row.required_levels, _actions(row))
            level = evaluation.current_level
        self._append_approver(row, actor_id, ApproverAction.REJECTED, actor_role, level, reason)
        return self._transition(
            row, "reject", actor_id,
            approval_status=ApprovalStatus.REJECTED,
            metadata={"reason": reason, "level": level},
        )

    # =========================================================================
    # Supplier hand-off
    # =========================================================================

    def send_to_supplier(self, po_id: UUID, actor_id: UUID, email: str | None = None) -> PurchaseOrder:
        row = self._orders.require(po_id)
        require_transition(
            PURCHASE_ORDER_WORKFLOW, ENTITY_TYPE, row.status, "send",
            message="Only approved POs can be sent to supplier",
        )
        row.sent_at = self.clock.now()
        row.sent_by_id = actor_id
        row.sent_email = optional_text(email)
        return self._transition(row, "send", actor_id, metadata={"email": row.sent_email})

    def confirm_from_supplier(
        self,
        po_id: UUID,
        actor_id: UUID,
        confirmation_number: str | None = None,
    ) -> PurchaseOrder:
        row = self._orders.require(po_id)
        require_transition(
            PURCHASE_ORDER_WORKFLOW, ENTITY_TYPE, row.status, "confirm",
            message="PO must be sent to supplier first",
        )
        row.acknowledged_at = self.clock.now()
        row.confirmation_number = optional_text(confirmation_number)
        return self._transition(
            row, "confirm", actor_id, metadata={"confirmation_number": row.confirmation_number},
        )

    def cancel(self, po_id: UUID, actor_id: UUID, reason: str) -> PurchaseOrder:
        row = self._orders.require(po_id)
        require_transition(
            PURCHASE_ORDER_WORKFLOW, ENTITY_TYPE, row.status, "cancel",
            message=f"Cannot cancel PO with status: {row.status}",
        )
        reason = optional_text(reason)
        if reason is None:
            raise ValidationError("Cancellation reason is required", field="reason")
        row.internal_notes = append_note(row.internal_notes, f"Cancelled: {reason}")
        return self._transition(row, "cancel", actor_id, metadata={"reason": reason})

    # =========================================================================
    # Receiving
    # =========================================================================

    def receive_goods(
        self,
        po_id: UUID,
        actor_id: UUID,
        received: Iterable[Mapping[str, Any]],
    ) -> PurchaseOrder:
        """Add received quantities to order lines directly.

        Each entry names ``item_id`` and ``quantity``.  Receipt
        reconciliation recomputes lines from completed goods receipts
        instead; use one or the other for a given order.
        """
        row = self._orders.require(po_id)
        if row.status not in RECEIVABLE_STATES:
            self._refuse(row, "receive", f"Cannot receive goods for PO with status: {row.status}")

        by_id = {item.id: item for item in row.items}
        increments: list[tuple[PurchaseOrderItemModel, Decimal]] = []
        for entry in received:
            item = by_id.get(to_uuid(entry.get("item_id"), "item_id"))
            if item is None:
                raise EntityNotFoundError("PurchaseOrderItem", entry.get("item_id"), message="Item not found")
            increments.append(
                (item, require_positive(to_decimal(entry.get("quantity"), "quantity"), "quantity"))
            )
        for item, quantity in increments:
            item.received_quantity = item.received_quantity + quantity

        states = [
            _line_state(item.id, item.quantity, item.received_quantity)
            for item in row.items
        ]
        return self._apply_line_states(row, actor_id, states, "receive_goods")

    def apply_reconciliation(
        self,
        po_id: UUID,
        result: ReconciliationResult,
        receipt_ids: Iterable[UUID],
        last_receipt_date: datetime | None,
        actor_id: UUID | None = None,
    ) -> PurchaseOrder:
        """Store a reconciliation result computed from completed receipts."""
        row = self._orders.require(po_id)
        row.receipt_ids = [str(r) for r in receipt_ids]
        row.last_receipt_date = last_receipt_date
        return self._apply_line_states(row, actor_id, result.lines, "reconcile")

    def order_lines(self, po_id: UUID) -> tuple[OrderLine, ...]:
        """The order's lines in the shape reconciliation consumes."""
        row = self._orders.require(po_id)
        return tuple(
            OrderLine(line_id=item.id, material_id=item.material_id, ordered_quantity=item.quantity)
            for item in row.items
        )

    def complete(self, po_id: UUID, actor_id: UUID) -> PurchaseOrder:
        row = self._orders.require(po_id)
        require_transition(
            PURCHASE_ORDER_WORKFLOW, ENTITY_TYPE, row.status, "complete",
            message="PO must be fully received before completion",
        )
        return self._transition(row, "complete", actor_id)

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, po_id: UUID) -> PurchaseOrder:
        return self._orders.require(po_id).to_dto()

    def get_by_number(self, po_number: str) -> PurchaseOrder:
        row = self._orders.by_number(po_number)
        if row is None:
            raise EntityNotFoundError("Purchase order", po_number)
        return row.to_dto()

    def list(
        self,
        status: str | PurchaseOrderStatus | None = None,
        supplier_id: UUID | None = None,
        priority: str | Priority | None = None,
        search: str | None = None,
        order_date_from: datetime | None = None,
        order_date_to: datetime | None = None,
    ) -> list[PurchaseOrder]:
        stmt = self._orders.live_query()
        if status is not None:
            stmt = stmt.where(
                PurchaseOrderModel.status == coerce_enum(PurchaseOrderStatus, status, "status").value
            )
        if supplier_id is not None:
            stmt = stmt.where(PurchaseOrderModel.supplier_id == supplier_id)
        if priority is not None:
            stmt = stmt.where(PurchaseOrderModel.priority == coerce_enum(Priority, priority, "priority").value)
        if search:
            stmt = stmt.where(contains_any(search, PurchaseOrderModel.po_number, PurchaseOrderModel.notes))
        if order_date_from is not None:
            stmt = stmt.where(PurchaseOrderModel.order_date >= order_date_from)
        if order_date_to is not None:
            stmt = stmt.where(PurchaseOrderModel.order_date <= order_date_to)
        stmt = stmt.order_by(PurchaseOrderModel.order_date.desc(), PurchaseOrderModel.po_number.desc())
        return [row.to_dto() for row in self._orders.list(stmt)]

    def by_supplier(self, supplier_id: UUID, limit: int = 100) -> list[PurchaseOrder]:
        return [row.to_dto() for row in self._orders.for_supplier(supplier_id, limit)]

    def by_material(self, material_id: UUID) -> list[PurchaseOrder]:
        return [row.to_dto() for row in self._orders.for_material(material_id)]

    def pending_approvals(self) -> list[PurchaseOrder]:
        return [row.to_dto() for row in self._orders.pending_approval()]

    def statistics(self) -> PurchaseOrderStatistics:
        total_value, average_value = self._orders.amount_totals()
        by_status = {s.value: 0 for s in PurchaseOrderStatus}
        by_status.update(self._orders.count_by(PurchaseOrderModel.status))
        return PurchaseOrderStatistics(
            total=sum(by_status.values()),
            by_status=by_status,
            total_value=_money(total_value),
            average_value=_money(average_value),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _currency(self, value: Any) -> str:
        return require_currency(value, allowed=self._settings.currencies)

    def _build_items(self, specs: Iterable[Mapping[str, Any]]) -> list[PurchaseOrderItemModel]:
        """Validated line rows for ``specs``; nothing is attached to the order."""
        new_items: list[PurchaseOrderItemModel] = []
        for position, spec in enumerate(specs):
            material = self._materials.require(to_uuid(spec.get("material_id"), "material_id"))
            new_items.append(
                PurchaseOrderItemModel(
                    position=position,
                    material_id=material.id,
                    description=optional_text(spec.get("description")),
                    quantity=require_positive(to_decimal(spec.get("quantity"), "quantity"), "quantity"),
                    uom=require_text(spec.get("uom") or material.base_uom, "uom").lower(),
                    unit_price=_non_negative(spec.get("unit_price"), "unit_price"),
                    tax_rate=require_range(
                        to_decimal(spec.get("tax_rate"), "tax_rate", _ZERO),
                        "tax_rate", _ZERO, Decimal("100"),
                    ),
                    discount=_non_negative(spec.get("discount", _ZERO), "discount"),
                    expected_delivery_date=spec.get("expected_delivery_date"),
                    notes=optional_text(spec.get("notes")),
                    received_quantity=_ZERO,
                    receipt_status="pending",
                )
            )
        return new_items

    @staticmethod
    def _order_totals(
        items: Iterable[PurchaseOrderItemModel],
        discount: Decimal | None,
        shipping_cost: Decimal | None,
    ) -> OrderTotals:
        lines = [
            OrderLineInput(
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount=item.discount or _ZERO,
                tax_rate=item.tax_rate or _ZERO,
            )
            for item in items
        ]
        totals = compute_order_totals(lines, discount or _ZERO, shipping_cost or _ZERO)
        if totals.total_amount < 0:
            raise ValidationError("Total amount cannot be negative", field="discount")
        return totals

    def _recompute_totals(self, row: PurchaseOrderModel) -> None:
        totals = self._order_totals(row.items, row.discount, row.shipping_cost)
        for item in row.items:
            amounts = compute_line_amounts(
                OrderLineInput(
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    discount=item.discount or _ZERO,
                    tax_rate=item.tax_rate or _ZERO,
                )
            )
            item.total_price = amounts.total_price
            item.line_total = amounts.line_total
            item.remaining_quantity = item.quantity - (item.received_quantity or _ZERO)
        row.subtotal = totals.subtotal
        row.tax_amount = totals.tax_amount
        row.total_amount = totals.total_amount

    def _routing_data(self, row: PurchaseOrderModel) -> dict[str, Any]:
        supplier = self._suppliers.get(row.supplier_id)
        return {
            "amount": row.total_amount,
            "currency": row.currency,
            "priority": row.priority,
            "supplier_level": supplier.credit_rating if supplier is not None else None,
        }

    def _append_approver(
        self,
        row: PurchaseOrderModel,
        actor_id: UUID,
        action: ApproverAction,
        actor_role: str | None,
        level: int | None,
        comments: str | None,
    ) -> None:
        row.approvers.append(
            PurchaseOrderApproverModel(
                position=len(row.approvers),
                actor_id=actor_id,
                actor_role=actor_role,
                action=action.value,
                level_number=level,
                comments=optional_text(comments),
                acted_at=self.clock.now(),
            )
        )

    def _apply_line_states(
        self,
        row: PurchaseOrderModel,
        actor_id: UUID | None,
        states: Iterable[OrderLineState],
        action: str,
    ) -> PurchaseOrder:
        states = tuple(states)
        by_id = {item.id: item for item in row.items}
        for state in states:
            item = by_id.get(state.line_id)
            if item is None:
                continue
            item.received_quantity = state.received_quantity
            item.remaining_quantity = state.remaining_quantity
            item.receipt_status = state.receipt_status.value

        receiving = derive_receiving_status(states)
        row.receiving_status = receiving.value
        old_status = row.status
        if row.status in RECEIVABLE_STATES:
            if receiving == ReceivingStatus.FULLY_RECEIVED:
                row.status = require_transition(PURCHASE_ORDER_WORKFLOW, ENTITY_TYPE, row.status, "receive_all").to_state
                if all(item.received_quantity == item.quantity for item in row.items):
                    row.actual_delivery_date = self.clock.now()
            elif receiving == ReceivingStatus.PARTIALLY_RECEIVED:
                row.status = require_transition(PURCHASE_ORDER_WORKFLOW, ENTITY_TYPE, row.status, "receive_partial").to_state
        if actor_id is not None:
            row.updated_by_id = actor_id
        self.session.flush()

        self._audit.record(
            actor_id, action, ENTITY_TYPE, row.id,
            {"from": old_status, "to": row.status, "receiving_status": row.receiving_status},
        )
        logger.info(
            "purchase_order_receiving_updated",
            extra={
                "po_number": row.po_number,
                "action": action,
                "receiving_status": row.receiving_status,
                "from_status": old_status,
                "to_status": row.status,
            },
        )
        return row.to_dto()

    def _require_pending(self, row: PurchaseOrderModel, action: str) -> None:
        if row.approval_status != ApprovalStatus.PENDING.value:
            self._refuse(row, action, "PO is not pending approval")

    @staticmethod
    def _refuse(row: PurchaseOrderModel, action: str, message: str) -> None:
        raise TransitionNotAllowedError(
            message, entity_type=ENTITY_TYPE, current_state=row.status, action=action,
        )

    def _transition(
        self,
        row: PurchaseOrderModel,
        action: str,
        actor_id: UUID,
        approval_status: ApprovalStatus | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> PurchaseOrder:
        transition = require_transition(PURCHASE_ORDER_WORKFLOW, ENTITY_TYPE, row.status, action)
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
            "purchase_order_status_changed",
            extra={
                "po_number": row.po_number,
                "action": action,
                "from_status": old_status,
                "to_status": row.status,
            },
        )
        return row.to_dto()


def _actions(row: PurchaseOrderModel) -> tuple[ApprovalAction, ...]:
    return tuple(
        ApprovalAction(
            actor_id=a.actor_id,
            actor_role=a.actor_role,
            decision=ApprovalDecision(a.action),
            level_number=a.level_number,
            comments=a.comments,
            acted_at=a.acted_at,
        )
        for a in row.approvers
    )


def _line_state(line_id: UUID, ordered: Decimal, received: Decimal) -> OrderLineState:
    remaining = ordered - received
    return OrderLineState(
        line_id=line_id,
        received_quantity=received,
        remaining_quantity=remaining,
        receipt_status=line_status(received, remaining),
    )


def _non_negative(value: Any, field: str) -> Decimal:
    return require_non_negative(to_decimal(value, field), field)


def _money(value: Any) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(Decimal("0.01"))
