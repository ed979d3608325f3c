"""
SQLAlchemy ORM persistence models for goods receipts.

Responsibility
--------------
Receipt headers and their items.  Items are owned by the receipt
(``delete-orphan``) and loaded eagerly.

Invariants enforced
-------------------
* ``receipt_number`` is unique (``GR-YYYYMMDD-NNNN``).
* ``total_received`` / ``total_accepted`` / ``total_rejected`` are the
  sums over items, written by ``ReceiptService`` on every save.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
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
# GoodsReceiptModel
# ---------------------------------------------------------------------------


class GoodsReceiptModel(TrackedBase, SoftDeleteMixin):
    """
    Material received against one purchase order.

    Maps to the ``GoodsReceipt`` DTO in ``procurement_modules.receipts.models``.
    """

    __tablename__ = "goods_receipts"

    __table_args__ = (
        UniqueConstraint("receipt_number", name="uq_receipt_number"),
        Index("idx_receipt_po", "purchase_order_id"),
        Index("idx_receipt_status_date", "status", "receipt_date"),
        Index("idx_receipt_inspection", "inspection_required", "inspection_result"),
    )

    receipt_number: Mapped[str] = mapped_column(String(30), nullable=False)
    purchase_order_id: Mapped[UUID] = mapped_column(ForeignKey("purchase_orders.id"), nullable=False)
    po_number: Mapped[str] = mapped_column(String(30), nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(ForeignKey("suppliers.id"), nullable=False)
    receipt_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")

    # Quality inspection
    inspection_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    inspector_id: Mapped[UUID | None] = mapped_column(nullable=True)
    inspection_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    inspection_result: Mapped[str | None] = mapped_column(String(20), nullable=True)
    inspection_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Delivery note and warehouse
    delivery_note_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    delivery_note_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    warehouse_location: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bin_location: Mapped[str | None] = mapped_column(String(100), nullable=True)
    received_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    total_received: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_accepted: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_rejected: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["GoodsReceiptItemModel"]] = relationship(
        "GoodsReceiptItemModel",
        back_populates="receipt",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="GoodsReceiptItemModel.position",
    )

    def to_dto(self):
        from procurement_modules.receipts.models import (
            DeliveryNote,
            GoodsReceipt,
            QualityInspection,
            QualityStatus,
            ReceiptStatus,
            WarehouseInfo,
        )

        return GoodsReceipt(
            id=self.id,
            receipt_number=self.receipt_number,
            purchase_order_id=self.purchase_order_id,
            po_number=self.po_number,
            supplier_id=self.supplier_id,
            receipt_date=self.receipt_date,
            status=ReceiptStatus(self.status),
            items=tuple(item.to_dto() for item in self.items),
            quality_inspection=QualityInspection(
                required=self.inspection_required,
                inspector_id=self.inspector_id,
                inspection_date=self.inspection_date,
                result=QualityStatus(self.inspection_result) if self.inspection_result else None,
                notes=self.inspection_notes,
            ),
            delivery_note=DeliveryNote(
                number=self.delivery_note_number,
                date=self.delivery_note_date,
            ),
            warehouse=WarehouseInfo(
                location=self.warehouse_location,
                bin_location=self.bin_location,
                received_by_id=self.received_by_id,
            ),
            total_received=self.total_received,
            total_accepted=self.total_accepted,
            total_rejected=self.total_rejected,
            notes=self.notes,
            created_at=self.created_at,
            created_by_id=self.created_by_id,
            updated_at=self.updated_at,
            updated_by_id=self.updated_by_id,
        )

    def __repr__(self) -> str:
        return f"<GoodsReceiptModel {self.receipt_number} [{self.status}]>"


# ---------------------------------------------------------------------------
# GoodsReceiptItemModel
# ---------------------------------------------------------------------------


class GoodsReceiptItemModel(Base):
    """One received material line."""

    __tablename__ = "goods_receipt_items"

    __table_args__ = (
        Index("idx_receipt_item_material", "material_id"),
    )

    receipt_id: Mapped[UUID] = mapped_column(ForeignKey("goods_receipts.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    purchase_order_item_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("purchase_order_items.id"), nullable=True,
    )
    material_id: Mapped[UUID] = mapped_column(ForeignKey("materials.id"), nullable=False)
    ordered_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    received_quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    accepted_quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    rejected_quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    uom: Mapped[str] = mapped_column(String(20), nullable=False)
    batch_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    expiry_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    quality_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    inspection_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    storage_location: Mapped[str | None] = mapped_column(String(100), nullable=True)

    receipt: Mapped["GoodsReceiptModel"] = relationship(
        "GoodsReceiptModel",
        back_populates="items",
    )

    def to_dto(self):
        from procurement_modules.receipts.models import GoodsReceiptItem, QualityStatus

        return GoodsReceiptItem(
            id=self.id,
            material_id=self.material_id,
            ordered_quantity=self.ordered_quantity,
            received_quantity=self.received_quantity,
            uom=self.uom,
            accepted_quantity=self.accepted_quantity,
            rejected_quantity=self.rejected_quantity,
            purchase_order_item_id=self.purchase_order_item_id,
            batch_number=self.batch_number,
            expiry_date=self.expiry_date,
            quality_status=QualityStatus(self.quality_status),
            inspection_notes=self.inspection_notes,
            storage_location=self.storage_location,
        )
