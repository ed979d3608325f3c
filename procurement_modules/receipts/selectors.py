"""Read access to goods receipts (removed rows excluded)."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, or_, select

from procurement_kernel.selectors.base import LiveRecordSelector
from procurement_modules.receipts.orm import GoodsReceiptModel

_PENDING_RESULT = or_(
    GoodsReceiptModel.inspection_result.is_(None),
    GoodsReceiptModel.inspection_result == "pending",
)


class GoodsReceiptSelector(LiveRecordSelector[GoodsReceiptModel]):
    model = GoodsReceiptModel
    entity_type = "Goods receipt"

    def by_number(self, receipt_number: str) -> GoodsReceiptModel | None:
        return self.find_one(receipt_number=receipt_number)

    def for_purchase_order(self, purchase_order_id: UUID) -> list[GoodsReceiptModel]:
        stmt = (
            self.live_query()
            .where(GoodsReceiptModel.purchase_order_id == purchase_order_id)
            .order_by(GoodsReceiptModel.receipt_date.desc(), GoodsReceiptModel.receipt_number.desc())
        )
        return self.list(stmt)

    def completed_for_purchase_order(self, purchase_order_id: UUID) -> list[GoodsReceiptModel]:
        stmt = (
            self.live_query()
            .where(
                GoodsReceiptModel.purchase_order_id == purchase_order_id,
                GoodsReceiptModel.status == "completed",
            )
            .order_by(GoodsReceiptModel.receipt_date, GoodsReceiptModel.receipt_number)
        )
        return self.list(stmt)

    def pending_inspections(self) -> list[GoodsReceiptModel]:
        stmt = (
            self.live_query()
            .where(GoodsReceiptModel.inspection_required.is_(True), _PENDING_RESULT)
            .order_by(GoodsReceiptModel.receipt_date)
        )
        return self.list(stmt)

    def count_pending_inspections(self) -> int:
        return self.count(GoodsReceiptModel.inspection_required.is_(True), _PENDING_RESULT)

    def quantity_totals(self) -> tuple:
        stmt = select(
            func.sum(GoodsReceiptModel.total_received),
            func.sum(GoodsReceiptModel.total_accepted),
            func.sum(GoodsReceiptModel.total_rejected),
        ).where(GoodsReceiptModel.removed.is_(False))
        return tuple(self.session.execute(stmt).one())
