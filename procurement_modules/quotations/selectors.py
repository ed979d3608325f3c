"""Read access to material quotations (removed rows excluded)."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select

from procurement_kernel.selectors.base import LiveRecordSelector
from procurement_modules.quotations.orm import MaterialQuotationModel, QuotationItemModel


class QuotationSelector(LiveRecordSelector[MaterialQuotationModel]):
    model = MaterialQuotationModel
    entity_type = "Quotation"

    def by_number(self, quotation_number: str) -> MaterialQuotationModel | None:
        return self.find_one(quotation_number=quotation_number)

    def pending(self) -> list[MaterialQuotationModel]:
        stmt = (
            self.live_query()
            .where(MaterialQuotationModel.status == "sent")
            .order_by(MaterialQuotationModel.response_deadline)
        )
        return self.list(stmt)

    def overdue(self, now: datetime) -> list[MaterialQuotationModel]:
        stmt = (
            self.live_query()
            .where(
                MaterialQuotationModel.status == "sent",
                MaterialQuotationModel.response_deadline < now,
            )
            .order_by(MaterialQuotationModel.response_deadline)
        )
        return self.list(stmt)

    def for_material(self, material_id) -> list[MaterialQuotationModel]:
        quotation_ids = select(QuotationItemModel.quotation_id).where(
            QuotationItemModel.material_id == material_id
        )
        stmt = (
            self.live_query()
            .where(MaterialQuotationModel.id.in_(quotation_ids))
            .order_by(MaterialQuotationModel.request_date.desc())
        )
        return self.list(stmt)

    def count_overdue(self, now: datetime) -> int:
        return self.count(
            MaterialQuotationModel.status == "sent",
            MaterialQuotationModel.response_deadline < now,
        )
