"""Read access to suppliers (removed rows excluded)."""

from __future__ import annotations

from sqlalchemy import func, select

from procurement_kernel.selectors.base import LiveRecordSelector
from procurement_modules.suppliers.orm import SupplierModel


class SupplierSelector(LiveRecordSelector[SupplierModel]):
    model = SupplierModel
    entity_type = "Supplier"

    def by_number(self, supplier_number: str) -> SupplierModel | None:
        return self.find_one(supplier_number=supplier_number)

    def rating_averages(self) -> tuple:
        stmt = select(
            func.avg(SupplierModel.quality_rating),
            func.avg(SupplierModel.delivery_rating),
            func.avg(SupplierModel.service_rating),
        ).where(SupplierModel.removed.is_(False))
        return tuple(self.session.execute(stmt).one())
