"""Read access to material categories (removed rows excluded)."""

from __future__ import annotations

from sqlalchemy import select

from procurement_kernel.selectors.base import LiveRecordSelector
from procurement_modules.categories.orm import MaterialCategoryModel


class CategorySelector(LiveRecordSelector[MaterialCategoryModel]):
    model = MaterialCategoryModel
    entity_type = "Category"

    def by_code(self, code: str) -> MaterialCategoryModel | None:
        return self.find_one(code=code.strip().upper())

    def by_codes(self, codes: tuple[str, ...]) -> list[MaterialCategoryModel]:
        if not codes:
            return []
        return self.list(self.live_query().where(MaterialCategoryModel.code.in_(codes)))

    def direct_children(self, category: MaterialCategoryModel) -> list[MaterialCategoryModel]:
        return self.list(
            self.live_query()
            .where(MaterialCategoryModel.parent_id == category.id)
            .order_by(MaterialCategoryModel.display_order, MaterialCategoryModel.code)
        )

    def descendants(self, category: MaterialCategoryModel) -> list[MaterialCategoryModel]:
        return self.list(
            self.live_query()
            .where(MaterialCategoryModel.path.startswith(category.descendant_prefix, autoescape=True))
            .order_by(MaterialCategoryModel.level, MaterialCategoryModel.display_order)
        )

    def ordered(self, active_only: bool = False) -> list[MaterialCategoryModel]:
        stmt = self.live_query()
        if active_only:
            stmt = stmt.where(MaterialCategoryModel.is_active.is_(True))
        return self.list(
            stmt.order_by(
                MaterialCategoryModel.level,
                MaterialCategoryModel.display_order,
                MaterialCategoryModel.code,
            )
        )

    def max_level(self) -> int:
        stmt = select(MaterialCategoryModel.level).where(
            MaterialCategoryModel.removed.is_(False)
        ).order_by(MaterialCategoryModel.level.desc()).limit(1)
        return int(self.session.execute(stmt).scalar() or 0)
