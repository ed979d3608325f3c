"""
SQLAlchemy ORM persistence model for material categories.

Invariants enforced
-------------------
* ``code`` is unique and stored upper-case.
* ``level`` / ``path`` are written only by ``CategoryService`` from the
  parent's values; nothing else recomputes them.
* Categories are never hard-deleted (``SoftDeleteMixin``).
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import SoftDeleteMixin, TrackedBase


class MaterialCategoryModel(TrackedBase, SoftDeleteMixin):
    """
    One node of the material category tree.

    Maps to the ``Category`` DTO in ``procurement_modules.categories.models``.
    """

    __tablename__ = "material_categories"

    __table_args__ = (
        UniqueConstraint("code", name="uq_material_category_code"),
        Index("idx_material_category_parent", "parent_id"),
        Index("idx_material_category_path", "path"),
    )

    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name_zh: Mapped[str] = mapped_column(String(100), nullable=False)
    name_en: Mapped[str | None] = mapped_column(String(100), nullable=True)
    parent_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("material_categories.id"), nullable=True,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    path: Mapped[str] = mapped_column(String(500), nullable=False, default="/")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def descendant_prefix(self) -> str:
        return f"{self.path}{self.code}/"

    def to_dto(self):
        from procurement_modules.categories.models import Category

        return Category(
            id=self.id,
            code=self.code,
            name_zh=self.name_zh,
            name_en=self.name_en,
            parent_id=self.parent_id,
            level=self.level,
            path=self.path,
            description=self.description,
            display_order=self.display_order,
            is_active=self.is_active,
            created_at=self.created_at,
            created_by_id=self.created_by_id,
            updated_at=self.updated_at,
            updated_by_id=self.updated_by_id,
        )

    def __repr__(self) -> str:
        return f"<MaterialCategoryModel {self.code} L{self.level}>"
