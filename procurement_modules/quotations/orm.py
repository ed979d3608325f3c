"""
SQLAlchemy ORM persistence models for material quotations.

Responsibility
--------------
Quotation headers, their requested items, and the supplier quotes on each
item.  Items and quotes are owned by their parent (``delete-orphan``) and
loaded eagerly.

Invariants enforced
-------------------
* ``quotation_number`` is unique (``MQ-YYYYMMDD-NNNN``).
* One quote per (item, supplier).
* ``rank`` / ``total_price`` / ``is_selected`` and the selected-quotes
  summary columns are written only by ``QuotationService`` from
  ``procurement_engines.ranking``.
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
# MaterialQuotationModel
# ---------------------------------------------------------------------------


class MaterialQuotationModel(TrackedBase, SoftDeleteMixin):
    """
    A request for quotation sent to several suppliers.

    Maps to the ``MaterialQuotation`` DTO in
    ``procurement_modules.quotations.models``.
    """

    __tablename__ = "material_quotations"

    __table_args__ = (
        UniqueConstraint("quotation_number", name="uq_quotation_number"),
        Index("idx_quotation_status_request", "status", "request_date"),
        Index("idx_quotation_deadline", "response_deadline"),
    )

    quotation_number: Mapped[str] = mapped_column(String(30), nullable=False)
    title_zh: Mapped[str | None] = mapped_column(String(200), nullable=True)
    title_en: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Supplier ids as strings, in the order they were invited
    target_suppliers: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    request_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    response_deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    valid_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")

    # Selected quotes summary
    selected_total_value: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    selected_average_savings: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    selected_supplier_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # [{"supplier_id", "purchase_order_id", "created_at"}]
    purchase_orders: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["QuotationItemModel"]] = relationship(
        "QuotationItemModel",
        back_populates="quotation",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="QuotationItemModel.position",
    )

    def to_dto(self):
        from procurement_engines.ranking import SelectionSummary
        from procurement_modules.quotations.models import (
            ConvertedOrder,
            MaterialQuotation,
            QuotationStatus,
        )

        return MaterialQuotation(
            id=self.id,
            quotation_number=self.quotation_number,
            status=QuotationStatus(self.status),
            request_date=self.request_date,
            response_deadline=self.response_deadline,
            items=tuple(item.to_dto() for item in self.items),
            target_suppliers=tuple(UUID(s) for s in self.target_suppliers or ()),
            title_zh=self.title_zh,
            title_en=self.title_en,
            description=self.description,
            valid_until=self.valid_until,
            selected_quotes=SelectionSummary(
                total_value=self.selected_total_value,
                average_savings=self.selected_average_savings,
                supplier_count=self.selected_supplier_count,
            ),
            purchase_orders=tuple(
                ConvertedOrder(
                    supplier_id=UUID(entry["supplier_id"]),
                    purchase_order_id=UUID(entry["purchase_order_id"]),
                    created_at=datetime.fromisoformat(entry["created_at"]),
                )
                for entry in self.purchase_orders or ()
            ),
            notes=self.notes,
            created_at=self.created_at,
            created_by_id=self.created_by_id,
            updated_at=self.updated_at,
            updated_by_id=self.updated_by_id,
        )

    def __repr__(self) -> str:
        return f"<MaterialQuotationModel {self.quotation_number} [{self.status}]>"


# ---------------------------------------------------------------------------
# QuotationItemModel
# ---------------------------------------------------------------------------


class QuotationItemModel(Base):
    """One requested material line."""

    __tablename__ = "material_quotation_items"

    __table_args__ = (
        Index("idx_quotation_item_material", "material_id"),
    )

    quotation_id: Mapped[UUID] = mapped_column(ForeignKey("material_quotations.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    material_id: Mapped[UUID] = mapped_column(ForeignKey("materials.id"), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    uom: Mapped[str] = mapped_column(String(20), nullable=False)
    specifications: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    quotation: Mapped["MaterialQuotationModel"] = relationship(
        "MaterialQuotationModel",
        back_populates="items",
    )
    quotes: Mapped[list["SupplierQuoteModel"]] = relationship(
        "SupplierQuoteModel",
        back_populates="item",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SupplierQuoteModel.position",
    )

    def to_dto(self):
        from procurement_modules.quotations.models import QuotationItem

        return QuotationItem(
            id=self.id,
            material_id=self.material_id,
            quantity=self.quantity,
            uom=self.uom,
            specifications=self.specifications,
            target_price=self.target_price,
            quotes=tuple(quote.to_dto() for quote in self.quotes),
        )


# ---------------------------------------------------------------------------
# SupplierQuoteModel
# ---------------------------------------------------------------------------


class SupplierQuoteModel(Base):
    """A supplier's price for one quotation item."""

    __tablename__ = "material_quotation_quotes"

    __table_args__ = (
        UniqueConstraint("item_id", "supplier_id", name="uq_quote_item_supplier"),
    )

    item_id: Mapped[UUID] = mapped_column(ForeignKey("material_quotation_items.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    supplier_id: Mapped[UUID] = mapped_column(ForeignKey("suppliers.id"), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    total_price: Mapped[Decimal] = mapped_column(nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_selected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    lead_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    moq: Mapped[Decimal | None] = mapped_column(nullable=True)
    valid_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_terms: Mapped[str | None] = mapped_column(String(200), nullable=True)
    delivery_terms: Mapped[str | None] = mapped_column(String(200), nullable=True)
    warranty: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    item: Mapped["QuotationItemModel"] = relationship(
        "QuotationItemModel",
        back_populates="quotes",
    )

    def to_dto(self):
        from procurement_modules.quotations.models import SupplierQuote

        return SupplierQuote(
            id=self.id,
            supplier_id=self.supplier_id,
            unit_price=self.unit_price,
            total_price=self.total_price,
            rank=self.rank,
            is_selected=self.is_selected,
            lead_time=self.lead_time,
            moq=self.moq,
            valid_until=self.valid_until,
            payment_terms=self.payment_terms,
            delivery_terms=self.delivery_terms,
            warranty=self.warranty,
            notes=self.notes,
        )
