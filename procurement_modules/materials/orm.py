"""
SQLAlchemy ORM persistence models for materials.

Responsibility
--------------
Materials, their alternative units of measure and their preferred
suppliers.  Child rows are owned by the material (``delete-orphan``) and
loaded eagerly so the DTO view is built without further queries.

Invariants enforced
-------------------
* ``material_number`` is unique (``MAT-YYYYMMDD-NNN``).
* Quantities, costs and inventory counters are ``Decimal`` -- never float.
* One row per (material, uom) and per (material, supplier).
* ``MaterialService`` keeps at most one preferred supplier primary.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import Base, SoftDeleteMixin, TrackedBase

# ---------------------------------------------------------------------------
# MaterialModel
# ---------------------------------------------------------------------------


class MaterialModel(TrackedBase, SoftDeleteMixin):
    """
    A purchasable material.

    Maps to the ``Material`` DTO in ``procurement_modules.materials.models``.
    """

    __tablename__ = "materials"

    __table_args__ = (
        UniqueConstraint("material_number", name="uq_material_number"),
        Index("idx_material_category", "category_id"),
        Index("idx_material_status_type", "status", "type"),
    )

    material_number: Mapped[str] = mapped_column(String(30), nullable=False)
    name_zh: Mapped[str] = mapped_column(String(200), nullable=False)
    name_en: Mapped[str | None] = mapped_column(String(200), nullable=True)
    abbreviation: Mapped[str | None] = mapped_column(String(50), nullable=True)
    category_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("material_categories.id"), nullable=True,
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="raw")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    hs_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    brand: Mapped[str | None] = mapped_column(String(100), nullable=True)
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    manufacturer: Mapped[str | None] = mapped_column(String(200), nullable=True)
    base_uom: Mapped[str] = mapped_column(String(20), nullable=False, default="pcs")
    specifications: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    default_lead_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    minimum_order_qty: Mapped[Decimal] = mapped_column(default=Decimal("1"))

    # Pricing
    standard_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="CNY")
    last_purchase_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    last_purchase_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Inventory parameters
    safety_stock: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    reorder_point: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    max_stock_level: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    # Inventory counters, moved by goods receipt completion
    on_hand: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    on_order: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    reserved: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    available: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    last_receipt_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Relationships
    alternative_uoms: Mapped[list["MaterialUOMModel"]] = relationship(
        "MaterialUOMModel",
        back_populates="material",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="MaterialUOMModel.uom",
    )
    preferred_suppliers: Mapped[list["PreferredSupplierModel"]] = relationship(
        "PreferredSupplierModel",
        back_populates="material",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PreferredSupplierModel.position",
    )

    def to_dto(self):
        from procurement_modules.materials.models import (
            Material,
            MaterialInventory,
            MaterialStatus,
            MaterialType,
        )

        return Material(
            id=self.id,
            material_number=self.material_number,
            name_zh=self.name_zh,
            name_en=self.name_en,
            type=MaterialType(self.type),
            status=MaterialStatus(self.status),
            base_uom=self.base_uom,
            category_id=self.category_id,
            abbreviation=self.abbreviation,
            hs_code=self.hs_code,
            brand=self.brand,
            model=self.model,
            manufacturer=self.manufacturer,
            specifications=dict(self.specifications or {}),
            alternative_uoms=tuple(u.to_dto() for u in self.alternative_uoms),
            preferred_suppliers=tuple(s.to_dto() for s in self.preferred_suppliers),
            default_lead_time=self.default_lead_time,
            minimum_order_qty=self.minimum_order_qty,
            standard_cost=self.standard_cost,
            currency=self.currency,
            last_purchase_price=self.last_purchase_price,
            last_purchase_date=self.last_purchase_date,
            safety_stock=self.safety_stock,
            reorder_point=self.reorder_point,
            max_stock_level=self.max_stock_level,
            inventory=MaterialInventory(
                on_hand=self.on_hand,
                on_order=self.on_order,
                reserved=self.reserved,
                available=self.available,
                last_receipt_date=self.last_receipt_date,
            ),
            notes=self.notes,
            tags=tuple(self.tags or ()),
            created_at=self.created_at,
            created_by_id=self.created_by_id,
            updated_at=self.updated_at,
            updated_by_id=self.updated_by_id,
        )

    def __repr__(self) -> str:
        return f"<MaterialModel {self.material_number} [{self.status}]>"


# ---------------------------------------------------------------------------
# MaterialUOMModel
# ---------------------------------------------------------------------------


class MaterialUOMModel(Base):
    """An alternative unit of measure of one material."""

    __tablename__ = "material_uoms"

    __table_args__ = (
        UniqueConstraint("material_id", "uom", name="uq_material_uom"),
    )

    material_id: Mapped[UUID] = mapped_column(ForeignKey("materials.id"), nullable=False)
    uom: Mapped[str] = mapped_column(String(20), nullable=False)
    conversion_factor: Mapped[Decimal] = mapped_column(nullable=False)
    is_purchasing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_inventory: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    material: Mapped["MaterialModel"] = relationship(
        "MaterialModel",
        back_populates="alternative_uoms",
    )

    def to_dto(self):
        from procurement_modules.materials.models import AlternativeUOM

        return AlternativeUOM(
            uom=self.uom,
            conversion_factor=self.conversion_factor,
            is_purchasing=self.is_purchasing,
            is_inventory=self.is_inventory,
        )


# ---------------------------------------------------------------------------
# PreferredSupplierModel
# ---------------------------------------------------------------------------


class PreferredSupplierModel(Base):
    """One supplier in a material's ordered preferred list."""

    __tablename__ = "material_preferred_suppliers"

    __table_args__ = (
        UniqueConstraint("material_id", "supplier_id", name="uq_material_preferred_supplier"),
        Index("idx_preferred_supplier_supplier", "supplier_id"),
    )

    material_id: Mapped[UUID] = mapped_column(ForeignKey("materials.id"), nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(ForeignKey("suppliers.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    supplier_part_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    lead_time_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    moq: Mapped[Decimal | None] = mapped_column(nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    material: Mapped["MaterialModel"] = relationship(
        "MaterialModel",
        back_populates="preferred_suppliers",
    )

    def to_dto(self):
        from procurement_modules.materials.models import PreferredSupplier

        return PreferredSupplier(
            supplier_id=self.supplier_id,
            supplier_part_number=self.supplier_part_number,
            lead_time_days=self.lead_time_days,
            moq=self.moq,
            is_primary=self.is_primary,
        )
