"""
Goods receipt service (``procurement_modules.receipts.service``).

Responsibility
--------------
Receipts against purchase orders: creation with a generated ``GR-``
number, draft edits, quality inspection, completion, cancellation and
soft removal.  Completion publishes ``goods_receipt.completed`` to the
outbox; purchase order reconciliation and inventory updates run in the
consumer (``procurement_modules.receipts.reconciliation``), never inside
``complete()``.

Invariants enforced
-------------------
* ``total_received`` / ``total_accepted`` / ``total_rejected`` equal the
  item sums after every write.
* ``accepted + rejected <= received`` on every item.
* A receipt with inspection required completes only when every item with
  a received quantity has an accepted or rejected quantity.
* A completed receipt is neither cancelled nor deleted.

Failure modes
-------------
* ``EntityNotFoundError`` -- unknown receipt, purchase order, material or
  item.
* ``ValidationError`` -- bad quantities, missing cancellation reason,
  uninspected items.
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
from procurement_engines.pricing import ReceiptLineInput, compute_receipt_totals
from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.document_numbers import GOODS_RECEIPT_NUMBER
from procurement_kernel.domain.events import GOODS_RECEIPT_COMPLETED, DomainEvent
from procurement_kernel.domain.validation import (
    coerce_enum,
    optional_text,
    require_non_negative,
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
from procurement_kernel.logging_config import get_logger
from procurement_kernel.services.audit_service import AuditLogService
from procurement_kernel.services.base import BaseService
from procurement_kernel.services.outbox_service import OutboxDispatcher, OutboxService
from procurement_kernel.services.sequence_service import SequenceService
from procurement_modules._helpers import append_note, apply_changes, contains_any, reject_unknown_fields
from procurement_modules.materials.selectors import MaterialSelector
from procurement_modules.purchase_orders.orm import PurchaseOrderModel
from procurement_modules.purchase_orders.selectors import PurchaseOrderSelector
from procurement_modules.purchase_orders.workflows import RECEIVABLE_STATES
from procurement_modules.receipts.models import (
    GoodsReceipt,
    QualityStatus,
    ReceiptStatistics,
    ReceiptStatus,
)
from procurement_modules.receipts.orm import GoodsReceiptItemModel, GoodsReceiptModel
from procurement_modules.receipts.selectors import GoodsReceiptSelector
from procurement_modules.receipts.workflows import ITEMS_INSPECTED, RECEIPT_WORKFLOW

logger = get_logger("modules.receipts.service")

ENTITY_TYPE = "GoodsReceipt"

_ZERO = Decimal("0")

_UPDATABLE = frozenset({
    "items",
    "receipt_date",
    "inspection_required",
    "delivery_note_number",
    "delivery_note_date",
    "warehouse_location",
    "bin_location",
    "received_by_id",
    "notes",
})


class ReceiptService(BaseService):
    """
    Goods receipt operations.

    Pass a ``dispatcher`` (see ``build_receipt_dispatcher``) to run the
    completion consumers right after ``complete()``; without one the
    event stays pending for a separate dispatch run.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ProcurementConfig | None = None,
        dispatcher: OutboxDispatcher | None = None,
    ):
        super().__init__(session, clock)
        self._settings = (config or get_active_config()).settings
        self._dispatcher = dispatcher
        self._receipts = GoodsReceiptSelector(session)
        self._orders = PurchaseOrderSelector(session)
        self._materials = MaterialSelector(session)
        self._sequences = SequenceService(session, self.clock)
        self._outbox = OutboxService(session, self.clock)
        self._audit = AuditLogService(session, self.clock)

    # =========================================================================
    # Create / edit
    # =========================================================================

    def create(
        self,
        actor_id: UUID,
        purchase_order_id: UUID,
        items: Iterable[Mapping[str, Any]],
        receipt_date: datetime | None = None,
        inspection_required: bool | None = None,
        delivery_note_number: str | None = None,
        delivery_note_date: datetime | None = None,
        warehouse_location: str | None = None,
        bin_location: str | None = None,
        received_by_id: UUID | None = None,
        notes: str | None = None,
    ) -> GoodsReceipt:
        """Draft a receipt against a purchase order.

        Each item names either ``purchase_order_item_id`` or
        ``material_id`` plus ``received_quantity``; ``ordered_quantity``
        and ``uom`` default from the matching order line.
        """
        po = self._orders.require(to_uuid(purchase_order_id, "purchase_order_id"))
        if po.status not in RECEIVABLE_STATES:
            raise TransitionNotAllowedError(
                "Can only create receipts for approved purchase orders",
                entity_type=ENTITY_TYPE,
                current_state=po.status,
                action="create",
            )

        row = GoodsReceiptModel(
            receipt_number=self._sequences.next_document_number(GOODS_RECEIPT_NUMBER),
            purchase_order_id=po.id,
            po_number=po.po_number,
            supplier_id=po.supplier_id,
            receipt_date=receipt_date or self.clock.now(),
            status=ReceiptStatus.DRAFT.value,
            inspection_required=(
                self._settings.quality_inspection_required
                if inspection_required is None else bool(inspection_required)
            ),
            delivery_note_number=optional_text(delivery_note_number),
            delivery_note_date=delivery_note_date,
            warehouse_location=optional_text(warehouse_location),
            bin_location=optional_text(bin_location),
            received_by_id=received_by_id,
            notes=optional_text(notes),
            created_by_id=actor_id,
        )
        row.items = self._build_items(po, items)
        _recompute_totals(row)
        self.session.add(row)
        self.session.flush()

        self._audit.record(
            actor_id, "create", ENTITY_TYPE, row.id,
            {
                "receipt_number": row.receipt_number,
                "po_number": row.po_number,
                "total_received": str(row.total_received),
            },
        )
        logger.info(
            "goods_receipt_created",
            extra={
                "receipt_id": str(row.id),
                "receipt_number": row.receipt_number,
                "po_number": row.po_number,
                "item_count": len(row.items),
            },
        )
        return row.to_dto()

    def update(self, receipt_id: UUID, actor_id: UUID, **changes: Any) -> GoodsReceipt:
        reject_unknown_fields(changes, _UPDATABLE, "goods receipt")
        row = self._receipts.require(receipt_id)
        if row.status != ReceiptStatus.DRAFT.value:
            self._refuse(row, "update", f"Cannot edit receipt with status: {row.status}")

        values = dict(changes)
        items = values.pop("items", None)
        for name in ("delivery_note_number", "warehouse_location", "bin_location", "notes"):
            if name in values:
                values[name] = optional_text(values[name])
        if "inspection_required" in values:
            values["inspection_required"] = bool(values["inspection_required"])
        if "receipt_date" in values and values["receipt_date"] is None:
            raise ValidationError("receipt_date is required", field="receipt_date")
        new_items = (
            self._build_items(self._orders.require(row.purchase_order_id), items)
            if items is not None else None
        )

        diff = apply_changes(row, values)
        if new_items is not None:
            row.items = new_items
            diff["items"] = {"old": None, "new": len(new_items)}
        _recompute_totals(row)
        row.updated_by_id = actor_id
        self.session.flush()

        self._audit.record(actor_id, "update", ENTITY_TYPE, row.id, {"changes": diff})
        logger.info(
            "goods_receipt_updated",
            extra={"receipt_number": row.receipt_number, "fields": sorted(diff)},
        )
        return row.to_dto()

    def delete(self, receipt_id: UUID, actor_id: UUID) -> None:
        row = self._receipts.require(receipt_id)
        if row.status == ReceiptStatus.COMPLETED.value:
            self._refuse(row, "delete", "Cannot delete a completed receipt. Cancel it first.")
        row.mark_removed(actor_id, self.clock.now())
        row.updated_by_id = actor_id
        self.session.flush()
        self._audit.record(actor_id, "delete", ENTITY_TYPE, row.id, {"receipt_number": row.receipt_number})
        logger.info("goods_receipt_removed", extra={"receipt_number": row.receipt_number})

    # =========================================================================
    # Inspection and lifecycle
    # =========================================================================

    def record_inspection(
        self,
        receipt_id: UUID,
        actor_id: UUID,
        result: str | QualityStatus,
        notes: str | None = None,
        items: Iterable[Mapping[str, Any]] = (),
    ) -> GoodsReceipt:
        """Record the inspection outcome and per-item accepted / rejected.

        Each item entry names ``item_id``; ``accepted_quantity`` and
        ``rejected_quantity`` default to 0 and ``quality_status`` to
        ``passed``.
        """
        row = self._receipts.require(receipt_id)
        if row.status == ReceiptStatus.CANCELLED.value:
            self._refuse(row, "inspect", "Cannot inspect a cancelled receipt")

        outcome = coerce_enum(QualityStatus, result, "result").value

        # Every entry is checked before the receipt is touched.
        by_id = {item.id: item for item in row.items}
        findings: list[tuple[GoodsReceiptItemModel, Decimal, Decimal, str, str | None]] = []
        for entry in items:
            item = by_id.get(to_uuid(entry.get("item_id"), "item_id"))
            if item is None:
                raise EntityNotFoundError("GoodsReceiptItem", entry.get("item_id"), message="Item not found")
            accepted = _quantity(entry.get("accepted_quantity"), "accepted_quantity")
            rejected = _quantity(entry.get("rejected_quantity"), "rejected_quantity")
            _check_split(item.received_quantity, accepted, rejected)
            status = coerce_enum(
                QualityStatus, entry.get("quality_status") or QualityStatus.PASSED, "quality_status",
            ).value
            findings.append((item, accepted, rejected, status, optional_text(entry.get("inspection_notes"))))

        row.inspector_id = actor_id
        row.inspection_date = self.clock.now()
        row.inspection_result = outcome
        row.inspection_notes = optional_text(notes)
        for item, accepted, rejected, status, item_notes in findings:
            item.accepted_quantity = accepted
            item.rejected_quantity = rejected
            item.quality_status = status
            item.inspection_notes = item_notes

        _recompute_totals(row)
        row.updated_by_id = actor_id
        self.session.flush()

        self._audit.record(
            actor_id, "inspect", ENTITY_TYPE, row.id,
            {"result": row.inspection_result, "total_accepted": str(row.total_accepted)},
        )
        logger.info(
            "goods_receipt_inspected",
            extra={
                "receipt_number": row.receipt_number,
                "result": row.inspection_result,
                "total_accepted": str(row.total_accepted),
                "total_rejected": str(row.total_rejected),
            },
        )
        return row.to_dto()

    def complete(self, receipt_id: UUID, actor_id: UUID) -> GoodsReceipt:
        """Mark the receipt completed and publish ``goods_receipt.completed``.

        Reconciliation failures downstream never undo the completion.
        """
        row = self._receipts.require(receipt_id)
        if row.status == ReceiptStatus.COMPLETED.value:
            self._refuse(row, "complete", "Receipt is already completed")
        require_transition(
            RECEIPT_WORKFLOW, ENTITY_TYPE, row.status, "complete",
            message="Cannot complete a cancelled receipt",
        )
        if row.inspection_required and any(
            item.received_quantity > 0 and not item.accepted_quantity and not item.rejected_quantity
            for item in row.items
        ):
            raise ValidationError(ITEMS_INSPECTED.failure_message, field="items")

        dto = self._transition(row, "complete", actor_id)
        self._outbox.publish(
            DomainEvent(
                event_type=GOODS_RECEIPT_COMPLETED,
                aggregate_type=ENTITY_TYPE,
                aggregate_id=row.id,
                occurred_at=self.clock.now(),
                actor_id=actor_id,
                payload={
                    "receipt_number": row.receipt_number,
                    "purchase_order_id": str(row.purchase_order_id),
                },
            )
        )
        if self._dispatcher is not None:
            self._dispatcher.dispatch_pending(GOODS_RECEIPT_COMPLETED)
        return dto

    def cancel(self, receipt_id: UUID, actor_id: UUID, reason: str) -> GoodsReceipt:
        reason = optional_text(reason)
        if reason is None:
            raise ValidationError("Cancellation reason is required", field="reason")
        row = self._receipts.require(receipt_id)
        require_transition(
            RECEIPT_WORKFLOW, ENTITY_TYPE, row.status, "cancel",
            message=(
                "Cannot cancel a completed receipt"
                if row.status == ReceiptStatus.COMPLETED.value
                else f"Cannot cancel receipt with status: {row.status}"
            ),
        )
        row.notes = append_note(row.notes, f"[Cancelled: {reason}]")
        return self._transition(row, "cancel", actor_id, metadata={"reason": reason})

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, receipt_id: UUID) -> GoodsReceipt:
        return self._receipts.require(receipt_id).to_dto()

    def get_by_number(self, receipt_number: str) -> GoodsReceipt:
        row = self._receipts.by_number(receipt_number)
        if row is None:
            raise EntityNotFoundError("Goods receipt", receipt_number)
        return row.to_dto()

    def list(
        self,
        status: str | ReceiptStatus | None = None,
        purchase_order_id: UUID | None = None,
        supplier_id: UUID | None = None,
        search: str | None = None,
    ) -> list[GoodsReceipt]:
        stmt = self._receipts.live_query()
        if status is not None:
            stmt = stmt.where(
                GoodsReceiptModel.status == coerce_enum(ReceiptStatus, status, "status").value
            )
        if purchase_order_id is not None:
            stmt = stmt.where(GoodsReceiptModel.purchase_order_id == purchase_order_id)
        if supplier_id is not None:
            stmt = stmt.where(GoodsReceiptModel.supplier_id == supplier_id)
        if search:
            stmt = stmt.where(
                contains_any(search, GoodsReceiptModel.receipt_number, GoodsReceiptModel.po_number)
            )
        stmt = stmt.order_by(GoodsReceiptModel.receipt_date.desc(), GoodsReceiptModel.receipt_number.desc())
        return [r.to_dto() for r in self._receipts.list(stmt)]

    def by_purchase_order(self, purchase_order_id: UUID) -> list[GoodsReceipt]:
        return [r.to_dto() for r in self._receipts.for_purchase_order(purchase_order_id)]

    def pending_inspections(self) -> list[GoodsReceipt]:
        return [r.to_dto() for r in self._receipts.pending_inspections()]

    def statistics(self) -> ReceiptStatistics:
        received, accepted, rejected = self._receipts.quantity_totals()
        return ReceiptStatistics(
            total=self._receipts.count(),
            completed=self._receipts.count(GoodsReceiptModel.status == ReceiptStatus.COMPLETED.value),
            pending_inspections=self._receipts.count_pending_inspections(),
            total_received=Decimal(str(received or 0)),
            total_accepted=Decimal(str(accepted or 0)),
            total_rejected=Decimal(str(rejected or 0)),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _build_items(
        self,
        po: PurchaseOrderModel,
        specs: Iterable[Mapping[str, Any]],
    ) -> list[GoodsReceiptItemModel]:
        """Validated item rows for ``specs``; nothing is attached to the receipt."""
        lines_by_id = {line.id: line for line in po.items}
        new_items: list[GoodsReceiptItemModel] = []
        for position, spec in enumerate(specs):
            po_line = None
            if spec.get("purchase_order_item_id") is not None:
                po_line = lines_by_id.get(to_uuid(spec["purchase_order_item_id"], "purchase_order_item_id"))
                if po_line is None:
                    raise EntityNotFoundError(
                        "PurchaseOrderItem", spec["purchase_order_item_id"], message="Item not found",
                    )
                material_id = po_line.material_id
            else:
                material_id = self._materials.require(to_uuid(spec.get("material_id"), "material_id")).id
                po_line = next((line for line in po.items if line.material_id == material_id), None)

            ordered = spec.get("ordered_quantity")
            if ordered is None and po_line is not None:
                ordered = po_line.quantity
            uom = spec.get("uom") or (po_line.uom if po_line is not None else None)

            item = GoodsReceiptItemModel(
                position=position,
                purchase_order_item_id=po_line.id if po_line is not None else None,
                material_id=material_id,
                ordered_quantity=_quantity(ordered, "ordered_quantity", required=True),
                received_quantity=_quantity(spec.get("received_quantity"), "received_quantity"),
                accepted_quantity=_quantity(spec.get("accepted_quantity"), "accepted_quantity"),
                rejected_quantity=_quantity(spec.get("rejected_quantity"), "rejected_quantity"),
                uom=require_text(uom, "uom").lower(),
                batch_number=optional_text(spec.get("batch_number")),
                expiry_date=spec.get("expiry_date"),
                quality_status=coerce_enum(
                    QualityStatus, spec.get("quality_status") or QualityStatus.PENDING, "quality_status",
                ).value,
                storage_location=optional_text(spec.get("storage_location")),
            )
            _check_split(item.received_quantity, item.accepted_quantity, item.rejected_quantity)
            new_items.append(item)
        return new_items

    @staticmethod
    def _refuse(row: GoodsReceiptModel, action: str, message: str) -> None:
        raise TransitionNotAllowedError(
            message, entity_type=ENTITY_TYPE, current_state=row.status, action=action,
        )

    def _transition(
        self,
        row: GoodsReceiptModel,
        action: str,
        actor_id: UUID,
        metadata: dict[str, Any] | None = None,
    ) -> GoodsReceipt:
        transition = require_transition(RECEIPT_WORKFLOW, ENTITY_TYPE, row.status, action)
        old_status = row.status
        row.status = transition.to_state
        row.updated_by_id = actor_id
        self.session.flush()

        self._audit.record(
            actor_id, action, ENTITY_TYPE, row.id,
            {"from": old_status, "to": row.status, **(metadata or {})},
        )
        logger.info(
            "goods_receipt_status_changed",
            extra={
                "receipt_number": row.receipt_number,
                "action": action,
                "from_status": old_status,
                "to_status": row.status,
            },
        )
        return row.to_dto()


def _quantity(value: Any, field: str, required: bool = False) -> Decimal:
    parsed = to_decimal(value, field) if required else to_decimal(value, field, _ZERO)
    return require_non_negative(parsed, field)


def _check_split(received: Decimal, accepted: Decimal, rejected: Decimal) -> None:
    if accepted + rejected > received:
        raise ValidationError(
            "Accepted and rejected quantities cannot exceed received quantity",
            field="accepted_quantity",
        )


def _recompute_totals(row: GoodsReceiptModel) -> None:
    totals = compute_receipt_totals(
        ReceiptLineInput(
            ordered_quantity=item.ordered_quantity,
            received_quantity=item.received_quantity,
            accepted_quantity=item.accepted_quantity,
            rejected_quantity=item.rejected_quantity,
        )
        for item in row.items
    )
    row.total_received = totals.total_received
    row.total_accepted = totals.total_accepted
    row.total_rejected = totals.total_rejected
