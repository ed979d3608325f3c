"""
Material quotation service (``procurement_modules.quotations.service``).

Responsibility
--------------
Requests for quotation: creation with a generated ``MQ-`` number, edits
while in draft, sending to target suppliers, collecting supplier quotes
(ranked by ``procurement_engines.ranking`` on every change), selecting one
quote per item, completion, cancellation, and conversion of a completed
quotation into one draft purchase order per selected supplier.

Invariants enforced
-------------------
* One quote per supplier per item.
* Rank 1 is the lowest unit price of the item; ``total_price`` is
  ``unit_price * item quantity``.
* At most one selected quote per item; a completed quotation has exactly
  one on every item.
* Conversion never creates more than one purchase order per supplier.

Failure modes
-------------
* ``EntityNotFoundError`` -- unknown quotation, item, quote, material or
  supplier.
* ``DuplicateQuoteError`` -- supplier already quoted on the item.
* ``ValidationError`` -- bad quantities, prices, missing recipients or
  cancellation reason.
* ``TransitionNotAllowedError`` -- status does not permit the action.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from procurement_config import ProcurementConfig, get_active_config
from procurement_engines.conversion import SelectedQuoteLine, group_selected_quotes
from procurement_engines.ranking import (
    ItemSelection,
    QuoteCandidate,
    rank_quotes,
    selection_flags,
    summarize_selection,
)
from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.document_numbers import QUOTATION_NUMBER
from procurement_kernel.domain.events import QUOTATION_CONVERTED, DomainEvent
from procurement_kernel.domain.validation import (
    coerce_enum,
    optional_text,
    require_non_negative,
    require_positive,
    require_text,
    to_decimal,
    to_uuid,
)
from procurement_kernel.domain.workflow import require_transition
from procurement_kernel.exceptions import (
    DuplicateQuoteError,
    EntityNotFoundError,
    TransitionNotAllowedError,
    ValidationError,
)
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.services.audit_service import AuditLogService
from procurement_kernel.services.base import BaseService
from procurement_kernel.services.outbox_service import OutboxService
from procurement_kernel.services.sequence_service import SequenceService
from procurement_modules._helpers import append_note, apply_changes, contains_any, reject_unknown_fields
from procurement_modules.materials.selectors import MaterialSelector
from procurement_modules.purchase_orders.models import PurchaseOrder
from procurement_modules.purchase_orders.service import PurchaseOrderService
from procurement_modules.quotations.models import (
    MaterialQuotation,
    QuotationStatistics,
    QuotationStatus,
)
from procurement_modules.quotations.orm import (
    MaterialQuotationModel,
    QuotationItemModel,
    SupplierQuoteModel,
)
from procurement_modules.quotations.selectors import QuotationSelector
from procurement_modules.quotations.workflows import (
    ALL_ITEMS_SELECTED,
    QUOTATION_WORKFLOW,
)
from procurement_modules.suppliers.selectors import SupplierSelector

logger = get_logger("modules.quotations.service")

ENTITY_TYPE = "MaterialQuotation"

_UPDATABLE = frozenset({
    "items",
    "target_suppliers",
    "title_zh",
    "title_en",
    "description",
    "response_deadline",
    "valid_until",
    "notes",
})


class QuotationService(BaseService):
    """
    Material quotation operations.

    Guarantees:
        - Flushes only; the caller commits.
        - Quote ranks, totals and the selected-quotes summary are
          recomputed from the engines whenever quotes change.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ProcurementConfig | None = None,
    ):
        super().__init__(session, clock)
        self._config = config or get_active_config()
        self._quotations = QuotationSelector(session)
        self._materials = MaterialSelector(session)
        self._suppliers = SupplierSelector(session)
        self._sequences = SequenceService(session, self.clock)
        self._audit = AuditLogService(session, self.clock)

    # =========================================================================
    # Create / edit
    # =========================================================================

    def create(
        self,
        actor_id: UUID,
        items: Iterable[Mapping[str, Any]],
        response_deadline: datetime,
        target_suppliers: Iterable[UUID] = (),
        title_zh: str | None = None,
        title_en: str | None = None,
        description: str | None = None,
        request_date: datetime | None = None,
        valid_until: datetime | None = None,
        notes: str | None = None,
    ) -> MaterialQuotation:
        if response_deadline is None:
            raise ValidationError("response_deadline is required", field="response_deadline")

        row = MaterialQuotationModel(
            quotation_number=self._sequences.next_document_number(QUOTATION_NUMBER),
            title_zh=optional_text(title_zh),
            title_en=optional_text(title_en),
            description=optional_text(description),
            target_suppliers=self._target_suppliers(target_suppliers),
            request_date=request_date or self.clock.now(),
            response_deadline=response_deadline,
            valid_until=valid_until,
            status=QuotationStatus.DRAFT.value,
            notes=optional_text(notes),
            created_by_id=actor_id,
        )
        row.items = self._build_items(items)
        _summarize(row)
        self.session.add(row)
        self.session.flush()

        self._audit.record(
            actor_id, "create", ENTITY_TYPE, row.id,
            {"quotation_number": row.quotation_number, "item_count": len(row.items)},
        )
        logger.info(
            "quotation_created",
            extra={
                "quotation_id": str(row.id),
                "quotation_number": row.quotation_number,
                "item_count": len(row.items),
                "target_supplier_count": len(row.target_suppliers),
            },
        )
        return row.to_dto()

    def update(self, quotation_id: UUID, actor_id: UUID, **changes: Any) -> MaterialQuotation:
        reject_unknown_fields(changes, _UPDATABLE, "quotation")
        row = self._quotations.require(quotation_id)
        if row.status != QuotationStatus.DRAFT.value:
            self._refuse(row, "update", "Only draft quotations can be updated")

        values = dict(changes)
        items = values.pop("items", None)
        if "target_suppliers" in values:
            values["target_suppliers"] = self._target_suppliers(values["target_suppliers"] or ())
        for name in ("title_zh", "title_en", "description", "notes"):
            if name in values:
                values[name] = optional_text(values[name])
        if "response_deadline" in values and values["response_deadline"] is None:
            raise ValidationError("response_deadline is required", field="response_deadline")

        new_items = self._build_items(items) if items is not None else None

        with LogContext.bind(document_type=ENTITY_TYPE, document_id=row.id):
            diff = apply_changes(row, values)
            if new_items is not None:
                row.items = new_items
                _summarize(row)
                diff["items"] = {"old": None, "new": len(new_items)}
            row.updated_by_id = actor_id
            self.session.flush()

            self._audit.record(actor_id, "update", ENTITY_TYPE, row.id, {"changes": diff})
            logger.info(
                "quotation_updated",
                extra={"quotation_number": row.quotation_number, "fields": sorted(diff)},
            )
        return row.to_dto()

    def delete(self, quotation_id: UUID, actor_id: UUID) -> None:
        row = self._quotations.require(quotation_id)
        if row.status == QuotationStatus.COMPLETED.value:
            self._refuse(row, "delete", "Cannot delete a completed quotation. Cancel it first.")
        row.mark_removed(actor_id, self.clock.now())
        row.updated_by_id = actor_id
        self.session.flush()
        self._audit.record(actor_id, "delete", ENTITY_TYPE, row.id, {"quotation_number": row.quotation_number})
        logger.info("quotation_removed", extra={"quotation_number": row.quotation_number})

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def send(self, quotation_id: UUID, actor_id: UUID) -> MaterialQuotation:
        row = self._quotations.require(quotation_id)
        require_transition(
            QUOTATION_WORKFLOW, ENTITY_TYPE, row.status, "send",
            message="Only draft quotations can be sent",
        )
        if not row.target_suppliers:
            raise ValidationError("At least one target supplier is required", field="target_suppliers")
        if not row.items:
            raise ValidationError("At least one item is required", field="items")
        return self._transition(
            row, "send", actor_id, metadata={"target_suppliers": list(row.target_suppliers)},
        )

    def add_quote(
        self,
        quotation_id: UUID,
        actor_id: UUID,
        item_id: UUID,
        supplier_id: UUID,
        unit_price: Decimal | str | int,
        lead_time: int | None = None,
        moq: Decimal | str | int | None = None,
        valid_until: datetime | None = None,
        payment_terms: str | None = None,
        delivery_terms: str | None = None,
        warranty: str | None = None,
        notes: str | None = None,
    ) -> MaterialQuotation:
        """Record one supplier's price for one item and re-rank the item.

        The first quote on a sent quotation moves it to ``in_review``.
        """
        row = self._quotations.require(quotation_id)
        require_transition(
            QUOTATION_WORKFLOW, ENTITY_TYPE, row.status, "receive_quote",
            message=f"Cannot add quotes to quotation with status: {row.status}",
        )
        item = self._require_item(row, item_id)
        supplier = self._suppliers.require(to_uuid(supplier_id, "supplier_id"))
        if any(q.supplier_id == supplier.id for q in item.quotes):
            raise DuplicateQuoteError(str(item.id), str(supplier.id))

        price = require_non_negative(to_decimal(unit_price, "unit_price"), "unit_price")
        item.quotes.append(
            SupplierQuoteModel(
                position=len(item.quotes),
                supplier_id=supplier.id,
                unit_price=price,
                total_price=price * item.quantity,
                rank=1,
                is_selected=False,
                lead_time=lead_time,
                moq=to_decimal(moq, "moq") if moq is not None else None,
                valid_until=valid_until,
                payment_terms=optional_text(payment_terms),
                delivery_terms=optional_text(delivery_terms),
                warranty=optional_text(warranty),
                notes=optional_text(notes),
            )
        )
        _rank_item(item)
        _summarize(row)
        return self._transition(
            row, "receive_quote", actor_id,
            metadata={"item_id": str(item.id), "supplier_id": str(supplier.id), "unit_price": str(price)},
        )

    def select_quote(
        self,
        quotation_id: UUID,
        actor_id: UUID,
        item_id: UUID,
        quote_id: UUID,
    ) -> MaterialQuotation:
        row = self._quotations.require(quotation_id)
        require_transition(
            QUOTATION_WORKFLOW, ENTITY_TYPE, row.status, "select_quote",
            message=f"Cannot select quotes on quotation with status: {row.status}",
        )
        item = self._require_item(row, item_id)
        try:
            flags = selection_flags([q.id for q in item.quotes], to_uuid(quote_id, "quote_id"))
        except KeyError:
            raise EntityNotFoundError("Quote", quote_id, message="Quote not found") from None
        for quote in item.quotes:
            quote.is_selected = flags[quote.id]
        _summarize(row)
        return self._transition(
            row, "select_quote", actor_id,
            metadata={"item_id": str(item.id), "quote_id": str(quote_id)},
        )

    def complete(self, quotation_id: UUID, actor_id: UUID) -> MaterialQuotation:
        row = self._quotations.require(quotation_id)
        require_transition(QUOTATION_WORKFLOW, ENTITY_TYPE, row.status, "complete")
        if not row.items or any(
            sum(1 for q in item.quotes if q.is_selected) != 1 for item in row.items
        ):
            raise ValidationError(ALL_ITEMS_SELECTED.failure_message, field="items")
        return self._transition(
            row, "complete", actor_id,
            metadata={"total_value": str(row.selected_total_value)},
        )

    def cancel(self, quotation_id: UUID, actor_id: UUID, reason: str) -> MaterialQuotation:
        row = self._quotations.require(quotation_id)
        if row.status == QuotationStatus.COMPLETED.value:
            self._refuse(row, "cancel", "Cannot cancel a completed quotation")
        require_transition(QUOTATION_WORKFLOW, ENTITY_TYPE, row.status, "cancel")
        reason = optional_text(reason)
        if reason is None:
            raise ValidationError("Cancellation reason is required", field="reason")
        row.notes = append_note(row.notes, f"[Cancelled: {reason}]")
        return self._transition(row, "cancel", actor_id, metadata={"reason": reason})

    # =========================================================================
    # Conversion
    # =========================================================================

    def convert_to_purchase_orders(self, quotation_id: UUID, actor_id: UUID) -> list[PurchaseOrder]:
        """Open one draft purchase order per supplier among the selected quotes.

        Returns the created orders in first-appearance order of their
        supplier.
        """
        row = self._quotations.require(quotation_id)
        if row.status != QuotationStatus.COMPLETED.value:
            self._refuse(row, "convert", "Only completed quotations can be converted to purchase orders")
        if row.purchase_orders:
            self._refuse(row, "convert", "Quotation has already been converted to purchase orders")

        lines = []
        for item in row.items:
            selected = next((q for q in item.quotes if q.is_selected), None)
            lines.append(
                SelectedQuoteLine(
                    item_id=item.id,
                    material_id=item.material_id,
                    quantity=item.quantity,
                    uom=item.uom,
                    supplier_id=selected.supplier_id if selected is not None else None,
                    unit_price=selected.unit_price if selected is not None else None,
                )
            )
        plan = group_selected_quotes(lines)
        for item_id in plan.skipped_item_ids:
            logger.warning(
                "quotation_conversion_item_skipped",
                extra={"quotation_number": row.quotation_number, "item_id": str(item_id)},
            )

        orders = PurchaseOrderService(self.session, self.clock, self._config)
        now = self.clock.now()
        expected = now + timedelta(days=self._config.settings.conversion_lead_days)
        created: list[PurchaseOrder] = []
        converted = list(row.purchase_orders or ())
        for group in plan.groups:
            po = orders.create(
                actor_id=actor_id,
                supplier_id=group.supplier_id,
                items=[
                    {
                        "material_id": line.material_id,
                        "quantity": line.quantity,
                        "uom": line.uom,
                        "unit_price": line.unit_price,
                    }
                    for line in group.lines
                ],
                expected_delivery_date=expected,
                notes=f"Generated from quotation: {row.quotation_number}",
                quotation_id=row.id,
            )
            created.append(po)
            converted.append({
                "supplier_id": str(group.supplier_id),
                "purchase_order_id": str(po.id),
                "created_at": now.isoformat(),
            })

        row.purchase_orders = converted
        row.updated_by_id = actor_id
        self.session.flush()

        OutboxService(self.session, self.clock).publish(
            DomainEvent(
                event_type=QUOTATION_CONVERTED,
                aggregate_type=ENTITY_TYPE,
                aggregate_id=row.id,
                occurred_at=now,
                actor_id=actor_id,
                payload={
                    "quotation_number": row.quotation_number,
                    "purchase_order_ids": [str(po.id) for po in created],
                },
            )
        )
        self._audit.record(
            actor_id, "convert", ENTITY_TYPE, row.id,
            {"purchase_orders": [po.po_number for po in created]},
        )
        logger.info(
            "quotation_converted",
            extra={
                "quotation_number": row.quotation_number,
                "purchase_order_count": len(created),
                "skipped_item_count": len(plan.skipped_item_ids),
            },
        )
        return created

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, quotation_id: UUID) -> MaterialQuotation:
        return self._quotations.require(quotation_id).to_dto()

    def get_by_number(self, quotation_number: str) -> MaterialQuotation:
        row = self._quotations.by_number(quotation_number)
        if row is None:
            raise EntityNotFoundError("Quotation", quotation_number)
        return row.to_dto()

    def list(
        self,
        status: str | QuotationStatus | None = None,
        search: str | None = None,
        material_id: UUID | None = None,
    ) -> list[MaterialQuotation]:
        if material_id is not None:
            rows = self._quotations.for_material(material_id)
            if status is not None:
                wanted = coerce_enum(QuotationStatus, status, "status").value
                rows = [r for r in rows if r.status == wanted]
            return [r.to_dto() for r in rows]

        stmt = self._quotations.live_query()
        if status is not None:
            stmt = stmt.where(
                MaterialQuotationModel.status == coerce_enum(QuotationStatus, status, "status").value
            )
        if search:
            stmt = stmt.where(
                contains_any(
                    search,
                    MaterialQuotationModel.quotation_number,
                    MaterialQuotationModel.title_zh,
                    MaterialQuotationModel.title_en,
                )
            )
        stmt = stmt.order_by(MaterialQuotationModel.request_date.desc())
        return [r.to_dto() for r in self._quotations.list(stmt)]

    def pending(self) -> list[MaterialQuotation]:
        """Sent quotations awaiting responses, earliest deadline first."""
        return [r.to_dto() for r in self._quotations.pending()]

    def overdue(self) -> list[MaterialQuotation]:
        return [r.to_dto() for r in self._quotations.overdue(self.clock.now())]

    def statistics(self) -> QuotationStatistics:
        by_status = {s.value: 0 for s in QuotationStatus}
        by_status.update(self._quotations.count_by(MaterialQuotationModel.status))
        return QuotationStatistics(
            total=sum(by_status.values()),
            by_status=by_status,
            pending=by_status[QuotationStatus.SENT.value],
            overdue=self._quotations.count_overdue(self.clock.now()),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _target_suppliers(self, supplier_ids: Iterable[UUID]) -> list[str]:
        result: list[str] = []
        for value in supplier_ids:
            supplier = self._suppliers.require(to_uuid(value, "target_suppliers"))
            if str(supplier.id) not in result:
                result.append(str(supplier.id))
        return result

    def _build_items(self, specs: Iterable[Mapping[str, Any]]) -> list[QuotationItemModel]:
        new_items: list[QuotationItemModel] = []
        for position, spec in enumerate(specs):
            material = self._materials.require(to_uuid(spec.get("material_id"), "material_id"))
            target = spec.get("target_price")
            new_items.append(
                QuotationItemModel(
                    position=position,
                    material_id=material.id,
                    quantity=require_positive(to_decimal(spec.get("quantity"), "quantity"), "quantity"),
                    uom=require_text(spec.get("uom") or material.base_uom, "uom").lower(),
                    specifications=optional_text(spec.get("specifications")),
                    target_price=(
                        require_non_negative(to_decimal(target, "target_price"), "target_price")
                        if target is not None else None
                    ),
                )
            )
        return new_items

    @staticmethod
    def _require_item(row: MaterialQuotationModel, item_id: UUID) -> QuotationItemModel:
        wanted = to_uuid(item_id, "item_id")
        for item in row.items:
            if item.id == wanted:
                return item
        raise EntityNotFoundError("QuotationItem", item_id, message="Item not found")

    @staticmethod
    def _refuse(row: MaterialQuotationModel, action: str, message: str) -> None:
        raise TransitionNotAllowedError(
            message, entity_type=ENTITY_TYPE, current_state=row.status, action=action,
        )

    def _transition(
        self,
        row: MaterialQuotationModel,
        action: str,
        actor_id: UUID,
        metadata: dict[str, Any] | None = None,
    ) -> MaterialQuotation:
        transition = require_transition(QUOTATION_WORKFLOW, ENTITY_TYPE, row.status, action)
        old_status = row.status
        row.status = transition.to_state
        row.updated_by_id = actor_id
        self.session.flush()

        self._audit.record(
            actor_id, action, ENTITY_TYPE, row.id,
            {"from": old_status, "to": row.status, **(metadata or {})},
        )
        if old_status != row.status:
            logger.info(
                "quotation_status_changed",
                extra={
                    "quotation_number": row.quotation_number,
                    "action": action,
                    "from_status": old_status,
                    "to_status": row.status,
                },
            )
        else:
            logger.info(
                "quotation_quotes_changed",
                extra={"quotation_number": row.quotation_number, "action": action},
            )
        return row.to_dto()


def _rank_item(item: QuotationItemModel) -> None:
    ranked = rank_quotes(
        [QuoteCandidate(q.id, q.supplier_id, q.unit_price) for q in item.quotes],
        item.quantity,
    )
    for quote, result in zip(item.quotes, ranked):
        quote.rank = result.rank
        quote.total_price = result.total_price


def _summarize(row: MaterialQuotationModel) -> None:
    selections = []
    for item in row.items:
        selected = next((q for q in item.quotes if q.is_selected), None)
        selections.append(
            ItemSelection(
                quantity=item.quantity,
                target_price=item.target_price,
                selected_supplier_id=selected.supplier_id if selected is not None else None,
                selected_total_price=selected.total_price if selected is not None else None,
            )
        )
    summary = summarize_selection(selections)
    row.selected_total_value = summary.total_value
    row.selected_average_savings = summary.average_savings
    row.selected_supplier_count = summary.supplier_count
