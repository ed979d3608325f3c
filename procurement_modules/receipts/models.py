"""
Goods receipt domain models.

A goods receipt records material arriving against one purchase order:
what was received, and after inspection what was accepted or rejected.
Only accepted quantity counts against the order and into inventory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from procurement_engines.pricing import rounded_percentage

_ZERO = Decimal("0")


class ReceiptStatus(str, Enum):
    DRAFT = "draft"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class QualityStatus(str, Enum):
    """Inspection outcome, per item and for the receipt as a whole."""
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass(frozen=True)
class GoodsReceiptItem:
    id: UUID
    material_id: UUID
    ordered_quantity: Decimal
    received_quantity: Decimal
    uom: str
    accepted_quantity: Decimal = _ZERO
    rejected_quantity: Decimal = _ZERO
    purchase_order_item_id: UUID | None = None
    batch_number: str | None = None
    expiry_date: datetime | None = None
    quality_status: QualityStatus = QualityStatus.PENDING
    inspection_notes: str | None = None
    storage_location: str | None = None

    @property
    def is_inspected(self) -> bool:
        return self.accepted_quantity > 0 or self.rejected_quantity > 0


@dataclass(frozen=True)
class QualityInspection:
    required: bool = False
    inspector_id: UUID | None = None
    inspection_date: datetime | None = None
    result: QualityStatus | None = None
    notes: str | None = None


@dataclass(frozen=True)
class DeliveryNote:
    number: str | None = None
    date: datetime | None = None


@dataclass(frozen=True)
class WarehouseInfo:
    location: str | None = None
    bin_location: str | None = None
    received_by_id: UUID | None = None


@dataclass(frozen=True)
class GoodsReceipt:
    """Client-facing view of a goods receipt."""
    id: UUID
    receipt_number: str
    purchase_order_id: UUID
    po_number: str
    supplier_id: UUID
    receipt_date: datetime
    status: ReceiptStatus
    items: tuple[GoodsReceiptItem, ...] = ()
    quality_inspection: QualityInspection = field(default_factory=QualityInspection)
    delivery_note: DeliveryNote = field(default_factory=DeliveryNote)
    warehouse: WarehouseInfo = field(default_factory=WarehouseInfo)
    total_received: Decimal = _ZERO
    total_accepted: Decimal = _ZERO
    total_rejected: Decimal = _ZERO
    notes: str | None = None
    created_at: datetime | None = None
    created_by_id: UUID | None = None
    updated_at: datetime | None = None
    updated_by_id: UUID | None = None

    @property
    def completion_percentage(self) -> int:
        """Received against ordered, over all items."""
        ordered = sum((item.ordered_quantity for item in self.items), _ZERO)
        return rounded_percentage(self.total_received, ordered)

    @property
    def acceptance_rate(self) -> int:
        return rounded_percentage(self.total_accepted, self.total_received)


@dataclass(frozen=True)
class ReceiptStatistics:
    total: int
    completed: int
    pending_inspections: int
    total_received: Decimal
    total_accepted: Decimal
    total_rejected: Decimal

    @property
    def acceptance_rate(self) -> int:
        return rounded_percentage(self.total_accepted, self.total_received)
