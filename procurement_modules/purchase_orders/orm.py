"""
SQLAlchemy ORM persistence models for purchase orders.

Responsibility
--------------
Purchase order headers, their line items, and the approver trail.  Line
items and approver records are owned by the order (``delete-orphan``) and
loaded eagerly.

Invariants enforced
-------------------
* ``po_number`` is unique (``PO-YYYYMMDD-NNN``).
* Amounts and quantities are ``Decimal`` -- never float.
* Header totals are written only by ``PurchaseOrderService`` from
  ``procurement_engines.pricing``; nothing else assigns them.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
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
# PurchaseOrderModel
# ---------------------------------------------------------------------------


class PurchaseOrderModel(TrackedBase, SoftDeleteMixin):
    """
    A purchase order to one supplier.

    Maps to the ``PurchaseOrder`` DTO in
    ``procurement_modules.purchase_orders.models``.
    """

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("po_number", name="uq_po_number"),
        Index("idx_po_supplier_status", "supplier_id", "status"),
        Index("idx_po_status_order_date", "status", "order_date"),
    )

    po_number: Mapped[str] = mapped_column(String(30), nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(ForeignKey("suppliers.id"), nullable=False)
    quotation_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("material_quotations.id"), nullable=True,
    )

    order_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expected_delivery_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    actual_delivery_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    status: Mapped[str] = mapped_column(String(30), nullable=False, default="draft")
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="normal")

    # Financial summary
    subtotal: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    shipping_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    discount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="CNY")

    # Approval
    approval_status: Mapped[str] = mapped_column(String(20), nullable=False, default="none")
    workflow_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("approval_workflows.id"), nullable=True,
    )
    required_levels: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    submitted_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Supplier communication
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sent_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    sent_email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    confirmation_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Receiving summary, written by receipt reconciliation
    receiving_status: Mapped[str] = mapped_column(String(30), nullable=False, default="not_received")
    last_receipt_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    receipt_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    delivery_address: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    payment_terms: Mapped[str] = mapped_column(String(200), nullable=False, default="Net 30")
    shipping_method: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    internal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    items: Mapped[list["PurchaseOrderItemModel"]] = relationship(
        "PurchaseOrderItemModel",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseOrderItemModel.position",
    )
    approvers: Mapped[list["PurchaseOrderApproverModel"]] = relationship(
        "PurchaseOrderApproverModel",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseOrderApproverModel.position",
    )

    def to_dto(self):
        from procurement_engines.reconciliation import ReceivingStatus
        from procurement_kernel.domain.routing import ApprovalStatus
        from procurement_modules.purchase_orders.models import (
            Priority,
            PurchaseOrder,
            PurchaseOrderApproval,
            PurchaseOrderStatus,
            ReceivingSummary,
            SentToSupplier,
        )

        return PurchaseOrder(
            id=self.id,
            po_number=self.po_number,
            supplier_id=self.supplier_id,
            status=PurchaseOrderStatus(self.status),
            order_date=self.order_date,
            expected_delivery_date=self.expected_delivery_date,
            items=tuple(item.to_dto() for item in self.items),
            subtotal=self.subtotal,
            tax_amount=self.tax_amount,
            shipping_cost=self.shipping_cost,
            discount=self.discount,
            total_amount=self.total_amount,
            currency=self.currency,
            priority=Priority(self.priority),
            payment_terms=self.payment_terms,
            shipping_method=self.shipping_method,
            actual_delivery_date=self.actual_delivery_date,
            quotation_id=self.quotation_id,
            approval=PurchaseOrderApproval(
                approval_status=ApprovalStatus(self.approval_status),
                workflow_id=self.workflow_id,
                required_levels=tuple(self.required_levels or ()),
                submitted_by_id=self.submitted_by_id,
                submitted_at=self.submitted_at,
                approvers=tuple(a.to_dto() for a in self.approvers),
            ),
            sent_to_supplier=SentToSupplier(
                sent=self.sent_at is not None,
                sent_at=self.sent_at,
                sent_by_id=self.sent_by_id,
                email=self.sent_email,
                acknowledged=self.acknowledged_at is not None,
                acknowledged_at=self.acknowledged_at,
                confirmation_number=self.confirmation_number,
            ),
            receiving=ReceivingSummary(
                status=ReceivingStatus(self.receiving_status),
                last_receipt_date=self.last_receipt_date,
                receipt_ids=tuple(UUID(r) for r in self.receipt_ids or ()),
            ),
            delivery_address=dict(self.delivery_address or {}),
            notes=self.notes,
            internal_notes=self.internal_notes,
            created_at=self.created_at,
            created_by_id=self.created_by_id,
            updated_at=self.updated_at,
            updated_by_id=self.updated_by_id,
        )

    def __repr__(self) -> str:
        return f"<PurchaseOrderModel {self.po_number} [{self.status}]>"


# ---------------------------------------------------------------------------
# PurchaseOrderItemModel
# ---------------------------------------------------------------------------


class PurchaseOrderItemModel(Base):
    """One ordered material line."""

    __tablename__ = "purchase_order_items"

    __table_args__ = (
        Index("idx_po_item_material", "material_id"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(ForeignKey("purchase_orders.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    material_id: Mapped[UUID] = mapped_column(ForeignKey("materials.id"), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    uom: Mapped[str] = mapped_column(String(20), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    discount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_price: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    line_total: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    expected_delivery_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    received_quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    remaining_quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    receipt_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    purchase_order: Mapped["PurchaseOrderModel"] = relationship(
        "PurchaseOrderModel",
        back_populates="items",
    )

    def to_dto(self):
        from procurement_engines.reconciliation import LineReceiptStatus
        from procurement_modules.purchase_orders.models import PurchaseOrderItem

        return PurchaseOrderItem(
            id=self.id,
            material_id=self.material_id,
            quantity=self.quantity,
            uom=self.uom,
            unit_price=self.unit_price,
            tax_rate=self.tax_rate,
            discount=self.discount,
            total_price=self.total_price,
            line_total=self.line_total,
            received_quantity=self.received_quantity,
            remaining_quantity=self.remaining_quantity,
            receipt_status=LineReceiptStatus(self.receipt_status),
            description=self.description,
            expected_delivery_date=self.expected_delivery_date,
            notes=self.notes,
        )


# ---------------------------------------------------------------------------
# PurchaseOrderApproverModel
# ---------------------------------------------------------------------------


class PurchaseOrderApproverModel(Base):
    """An approver's recorded decision.  Append-only."""

    __tablename__ = "purchase_order_approvers"

    purchase_order_id: Mapped[UUID] = mapped_column(ForeignKey("purchase_orders.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    actor_id: Mapped[UUID] = mapped_column(nullable=False)
    actor_role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    level_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    acted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    purchase_order: Mapped["PurchaseOrderModel"] = relationship(
        "PurchaseOrderModel",
        back_populates="approvers",
    )

    def to_dto(self):
        from procurement_modules.purchase_orders.models import ApproverAction, ApproverRecord

        return ApproverRecord(
            actor_id=self.actor_id,
            action=ApproverAction(self.action),
            actor_role=self.actor_role,
            level_number=self.level_number,
            comments=self.comments,
            timestamp=self.acted_at,
        )
