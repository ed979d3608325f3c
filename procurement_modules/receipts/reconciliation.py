"""
Receipt reconciliation consumer (``procurement_modules.receipts.reconciliation``).

Responsibility
--------------
Handles ``goods_receipt.completed``: recomputes the purchase order's line
quantities and receiving summary from every completed receipt of that
order, then books the receipt's accepted quantities into material
inventory.

Runs inside ``OutboxDispatcher``, one savepoint per event.  A failure
here marks the outbox event ``failed``; the receipt stays completed.

Decisions
---------
* A cancelled (or removed) purchase order is not reconciled; a
  ``receipt_reconciliation_skipped`` warning is logged.  Inventory is
  still booked because the goods physically arrived.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from procurement_config import ProcurementConfig
from procurement_engines.reconciliation import ReceiptLine, reconcile_order_lines
from procurement_kernel.domain.clock import Clock
from procurement_kernel.domain.events import GOODS_RECEIPT_COMPLETED, DomainEvent
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.services.outbox_service import OutboxDispatcher
from procurement_modules.materials.service import MaterialService
from procurement_modules.purchase_orders.models import PurchaseOrderStatus
from procurement_modules.purchase_orders.selectors import PurchaseOrderSelector
from procurement_modules.purchase_orders.service import PurchaseOrderService
from procurement_modules.receipts.orm import GoodsReceiptModel
from procurement_modules.receipts.selectors import GoodsReceiptSelector

logger = get_logger("modules.receipts.reconciliation")


class ReceiptReconciler:
    """Applies one completed receipt to its purchase order and inventory."""

    def __init__(
        self,
        session: Session,
        clock: Clock,
        config: ProcurementConfig | None = None,
    ):
        self.session = session
        self._receipts = GoodsReceiptSelector(session)
        self._orders = PurchaseOrderSelector(session)
        self._order_service = PurchaseOrderService(session, clock, config)
        self._material_service = MaterialService(session, clock)

    def handle(self, event: DomainEvent) -> None:
        receipt = self._receipts.get_including_removed(event.aggregate_id)
        if receipt is None:
            raise LookupError(f"Goods receipt {event.aggregate_id} not found")

        with LogContext.bind(document_type="GoodsReceipt", document_id=receipt.id):
            self._reconcile_order(receipt, event)
            self._book_inventory(receipt)

    def _reconcile_order(self, receipt: GoodsReceiptModel, event: DomainEvent) -> None:
        po = self._orders.get(receipt.purchase_order_id)
        if po is None or po.status == PurchaseOrderStatus.CANCELLED.value:
            logger.warning(
                "receipt_reconciliation_skipped",
                extra={
                    "receipt_number": receipt.receipt_number,
                    "po_number": receipt.po_number,
                    "reason": "purchase order removed" if po is None else "purchase order cancelled",
                },
            )
            return

        completed = self._receipts.completed_for_purchase_order(po.id)
        result = reconcile_order_lines(
            self._order_service.order_lines(po.id),
            [
                [
                    ReceiptLine(
                        material_id=item.material_id,
                        received_quantity=item.received_quantity,
                        accepted_quantity=item.accepted_quantity,
                        rejected_quantity=item.rejected_quantity,
                    )
                    for item in r.items
                ]
                for r in completed
            ],
        )
        self._order_service.apply_reconciliation(
            po.id,
            result,
            receipt_ids=[r.id for r in completed],
            last_receipt_date=completed[-1].receipt_date if completed else None,
            actor_id=event.actor_id,
        )
        logger.info(
            "receipt_reconciled",
            extra={
                "receipt_number": receipt.receipt_number,
                "po_number": po.po_number,
                "receipt_count": len(completed),
                "receiving_status": result.receiving_status.value,
            },
        )

    def _book_inventory(self, receipt: GoodsReceiptModel) -> None:
        for item in receipt.items:
            if item.accepted_quantity > 0:
                self._material_service.record_receipt(
                    item.material_id, item.accepted_quantity, receipt.receipt_date,
                )


def register_reconciliation_handlers(
    dispatcher: OutboxDispatcher,
    config: ProcurementConfig | None = None,
) -> ReceiptReconciler:
    reconciler = ReceiptReconciler(dispatcher.session, dispatcher.clock, config)
    dispatcher.register(GOODS_RECEIPT_COMPLETED, reconciler.handle)
    return reconciler


def build_receipt_dispatcher(
    session: Session,
    clock: Clock | None = None,
    config: ProcurementConfig | None = None,
) -> OutboxDispatcher:
    """An ``OutboxDispatcher`` with the receipt consumers registered."""
    dispatcher = OutboxDispatcher(session, clock)
    register_reconciliation_handlers(dispatcher, config)
    return dispatcher
