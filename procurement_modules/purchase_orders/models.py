"""
Purchase order domain models.

Enums for order status and priority, and the frozen DTOs services return.
``PurchaseOrder`` is the client-facing view: identifiers, status, line
items with receiving counters, computed totals, the approval trail, and
audit stamps.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from procurement_engines.reconciliation import LineReceiptStatus, ReceivingStatus
from procurement_kernel.domain.routing import ApprovalStatus


class PurchaseOrderStatus(str, Enum):
    """Purchase order lifecycle states."""
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    SENT_TO_SUPPLIER = "sent_to_supplier"
    CONFIRMED = "confirmed"
    IN_PRODUCTION = "in_production"
    PARTIALLY_SHIPPED = "partially_shipped"
    SHIPPED = "shipped"
    PARTIALLY_RECEIVED = "partially_received"
    RECEIVED = "received"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Priority(str, Enum):
    NORMAL = "normal"
    URGENT = "urgent"
    CRITICAL = "critical"


class ApproverAction(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ApproverRecord:
    """One entry in the order's approval trail."""
    actor_id: UUID
    action: ApproverAction
    actor_role: str | None = None
    level_number: int | None = None
    comments: str | None = None
    timestamp: datetime | None = None


@dataclass(frozen=True)
class PurchaseOrderApproval:
    approval_status: ApprovalStatus = ApprovalStatus.NONE
    workflow_id: UUID | None = None
    required_levels: tuple[int, ...] = ()
    submitted_by_id: UUID | None = None
    submitted_at: datetime | None = None
    approvers: tuple[ApproverRecord, ...] = ()


@dataclass(frozen=True)
class SentToSupplier:
    sent: bool = False
    sent_at: datetime | None = None
    sent_by_id: UUID | None = None
    email: str | None = None
    acknowledged: bool = False
    acknowledged_at: datetime | None = None
    confirmation_number: str | None = None


@dataclass(frozen=True)
class ReceivingSummary:
    status: ReceivingStatus = ReceivingStatus.NOT_RECEIVED
    last_receipt_date: datetime | None = None
    receipt_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class PurchaseOrderItem:
    id: UUID
    material_id: UUID
    quantity: Decimal
    uom: str
    unit_price: Decimal
    tax_rate: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    total_price: Decimal = Decimal("0")
    line_total: Decimal = Decimal("0")
    received_quantity: Decimal = Decimal("0")
    remaining_quantity: Decimal = Decimal("0")
    receipt_status: LineReceiptStatus = LineReceiptStatus.PENDING
    description: str | None = None
    expected_delivery_date: datetime | None = None
    notes: str | None = None


@dataclass(frozen=True)
class PurchaseOrder:
    """Client-facing view of a purchase order."""
    id: UUID
    po_number: str
    supplier_id: UUID
    status: PurchaseOrderStatus
    order_date: datetime
    expected_delivery_date: datetime
    items: tuple[PurchaseOrderItem, ...]
    subtotal: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    discount: Decimal
    total_amount: Decimal
    currency: str
    priority: Priority = Priority.NORMAL
    payment_terms: str = "Net 30"
    shipping_method: str | None = None
    actual_delivery_date: datetime | None = None
    quotation_id: UUID | None = None
    approval: PurchaseOrderApproval = field(default_factory=PurchaseOrderApproval)
    sent_to_supplier: SentToSupplier = field(default_factory=SentToSupplier)
    receiving: ReceivingSummary = field(default_factory=ReceivingSummary)
    delivery_address: dict[str, Any] = field(default_factory=dict)
    notes: str | None = None
    internal_notes: str | None = None
    created_at: datetime | None = None
    created_by_id: UUID | None = None
    updated_at: datetime | None = None
    updated_by_id: UUID | None = None

    @property
    def is_fully_received(self) -> bool:
        return bool(self.items) and all(i.received_quantity >= i.quantity for i in self.items)

    @property
    def is_partially_received(self) -> bool:
        return any(0 < i.received_quantity < i.quantity for i in self.items)

    @property
    def total_items(self) -> int:
        return len(self.items)

    def item(self, item_id: UUID) -> PurchaseOrderItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


@dataclass(frozen=True)
class PurchaseOrderStatistics:
    total: int
    by_status: dict[str, int]
    total_value: Decimal
    average_value: Decimal
