"""
Material domain models.

Materials carry a base unit of measure plus alternative units, each with a
conversion factor relative to base (``1 box = 12 pcs`` is factor 12), an
ordered list of preferred suppliers with at most one primary, and the
inventory counters that goods receipts feed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from procurement_kernel.exceptions import UnitOfMeasureNotFoundError


class MaterialType(str, Enum):
    RAW = "raw"
    SEMI_FINISHED = "semi-finished"
    FINISHED = "finished"
    PACKAGING = "packaging"
    CONSUMABLE = "consumable"
    OTHER = "other"


class MaterialStatus(str, Enum):
    """Material lifecycle states."""
    DRAFT = "draft"
    ACTIVE = "active"
    OBSOLETE = "obsolete"
    DISCONTINUED = "discontinued"


@dataclass(frozen=True)
class AlternativeUOM:
    uom: str
    conversion_factor: Decimal  # base units per one of this unit
    is_purchasing: bool = False
    is_inventory: bool = False


@dataclass(frozen=True)
class PreferredSupplier:
    supplier_id: UUID
    supplier_part_number: str | None = None
    lead_time_days: int | None = None
    moq: Decimal | None = None
    is_primary: bool = False


@dataclass(frozen=True)
class MaterialInventory:
    on_hand: Decimal = Decimal("0")
    on_order: Decimal = Decimal("0")
    reserved: Decimal = Decimal("0")
    available: Decimal = Decimal("0")
    last_receipt_date: datetime | None = None


@dataclass(frozen=True)
class Material:
    """Client-facing view of a material."""
    id: UUID
    material_number: str
    name_zh: str
    name_en: str | None
    type: MaterialType
    status: MaterialStatus
    base_uom: str
    category_id: UUID | None = None
    abbreviation: str | None = None
    hs_code: str | None = None
    brand: str | None = None
    model: str | None = None
    manufacturer: str | None = None
    specifications: dict[str, Any] = field(default_factory=dict)
    alternative_uoms: tuple[AlternativeUOM, ...] = ()
    preferred_suppliers: tuple[PreferredSupplier, ...] = ()
    default_lead_time: int = 0
    minimum_order_qty: Decimal = Decimal("1")
    standard_cost: Decimal = Decimal("0")
    currency: str = "CNY"
    last_purchase_price: Decimal | None = None
    last_purchase_date: datetime | None = None
    safety_stock: Decimal = Decimal("0")
    reorder_point: Decimal = Decimal("0")
    max_stock_level: Decimal = Decimal("0")
    inventory: MaterialInventory = field(default_factory=MaterialInventory)
    notes: str | None = None
    tags: tuple[str, ...] = ()
    created_at: datetime | None = None
    created_by_id: UUID | None = None
    updated_at: datetime | None = None
    updated_by_id: UUID | None = None

    @property
    def primary_supplier(self) -> PreferredSupplier | None:
        """The flagged primary, else the first preferred supplier."""
        for supplier in self.preferred_suppliers:
            if supplier.is_primary:
                return supplier
        return self.preferred_suppliers[0] if self.preferred_suppliers else None

    @property
    def needs_reorder(self) -> bool:
        return self.reorder_point > 0 and self.inventory.available <= self.reorder_point

    def conversion_factor(self, uom: str) -> Decimal:
        """Base units per one ``uom``.

        Raises:
            UnitOfMeasureNotFoundError: ``uom`` is neither base nor alternative.
        """
        wanted = uom.strip().lower()
        if wanted == self.base_uom:
            return Decimal("1")
        for alt in self.alternative_uoms:
            if alt.uom == wanted:
                return alt.conversion_factor
        raise UnitOfMeasureNotFoundError(uom, self.material_number)

    def convert_to_base(self, quantity: Decimal, from_uom: str) -> Decimal:
        return quantity * self.conversion_factor(from_uom)

    def convert_from_base(self, quantity: Decimal, to_uom: str) -> Decimal:
        return quantity / self.conversion_factor(to_uom)

    def convert(self, quantity: Decimal, from_uom: str, to_uom: str) -> Decimal:
        return self.convert_from_base(self.convert_to_base(quantity, from_uom), to_uom)


@dataclass(frozen=True)
class MaterialStatistics:
    total: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    avg_standard_cost: Decimal
    total_standard_cost: Decimal
