"""Read access to materials (removed rows excluded)."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select

from procurement_kernel.selectors.base import LiveRecordSelector
from procurement_modules.materials.orm import MaterialModel, PreferredSupplierModel


class MaterialSelector(LiveRecordSelector[MaterialModel]):
    model = MaterialModel
    entity_type = "Material"

    def by_number(self, material_number: str) -> MaterialModel | None:
        return self.find_one(material_number=material_number)

    def require_all(self, material_ids: Iterable[UUID]) -> dict[UUID, MaterialModel]:
        """Every id resolved, or ``Material not found`` for the first missing one."""
        return {material_id: self.require(material_id) for material_id in material_ids}

    def in_categories(self, category_ids: Iterable[UUID]) -> list[MaterialModel]:
        ids = list(category_ids)
        return self.list(
            self.live_query()
            .where(MaterialModel.category_id.in_(ids))
            .order_by(MaterialModel.created_at.desc(), MaterialModel.material_number.desc())
        )

    def for_supplier(self, supplier_id: UUID) -> list[MaterialModel]:
        return self.list(
            self.live_query()
            .join(PreferredSupplierModel, PreferredSupplierModel.material_id == MaterialModel.id)
            .where(PreferredSupplierModel.supplier_id == supplier_id)
            .order_by(MaterialModel.material_number)
        )

    def standard_cost_totals(self) -> tuple:
        stmt = select(
            func.avg(MaterialModel.standard_cost),
            func.sum(MaterialModel.standard_cost),
        ).where(MaterialModel.removed.is_(False))
        return tuple(self.session.execute(stmt).one())
