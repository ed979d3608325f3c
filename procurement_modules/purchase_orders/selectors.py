"""Read access to purchase orders (removed rows excluded)."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select

from procurement_kernel.selectors.base import LiveRecordSelector
from procurement_modules.purchase_orders.orm import PurchaseOrderItemModel, PurchaseOrderModel


class PurchaseOrderSelector(LiveRecordSelector[PurchaseOrderModel]):
    model = PurchaseOrderModel
    entity_type = "Purchase order"

    def by_number(self, po_number: str) -> PurchaseOrderModel | None:
        return self.find_one(po_number=po_number)

    def for_supplier(self, supplier_id: UUID, limit: int = 100) -> list[PurchaseOrderModel]:
        return self.list(
            self.live_query()
            .where(PurchaseOrderModel.supplier_id == supplier_id)
            .order_by(PurchaseOrderModel.order_date.desc(), PurchaseOrderModel.po_number.desc())
            .limit(limit)
        )

    def for_material(self, material_id: UUID) -> list[PurchaseOrderModel]:
        order_ids = (
            select(PurchaseOrderItemModel.purchase_order_id)
            .where(PurchaseOrderItemModel.material_id == material_id)
        )
        return self.list(
            self.live_query()
            .where(PurchaseOrderModel.id.in_(order_ids))
            .order_by(PurchaseOrderModel.order_date.desc(), PurchaseOrderModel.po_number.desc())
        )

    def pending_approval(self) -> list[PurchaseOrderModel]:
        return self.list(
            self.live_query()
            .where(
                PurchaseOrderModel.status == "pending_approval",
                PurchaseOrderModel.approval_status == "pending",
            )
            .order_by(PurchaseOrderModel.submitted_at)
        )

    def amount_totals(self) -> tuple:
        stmt = select(
            func.sum(PurchaseOrderModel.total_amount),
            func.avg(PurchaseOrderModel.total_amount),
        ).where(PurchaseOrderModel.removed.is_(False))
        return tuple(self.session.execute(stmt).one())
