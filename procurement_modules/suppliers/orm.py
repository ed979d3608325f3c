"""
SQLAlchemy ORM persistence model for suppliers.

Invariants enforced
-------------------
* ``supplier_number`` is unique (``SUP-YYYYMMDD-NNN``).
* Contact, address, business and banking sub-records are JSON documents;
  performance metrics and the approval sub-record are real columns so they
  can be filtered and aggregated.
* Suppliers are never hard-deleted (``SoftDeleteMixin``).
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import SoftDeleteMixin, TrackedBase


class SupplierModel(TrackedBase, SoftDeleteMixin):
    """
    A supplier the company buys from.

    Maps to the ``Supplier`` DTO in ``procurement_modules.suppliers.models``.
    """

    __tablename__ = "suppliers"

    __table_args__ = (
        UniqueConstraint("supplier_number", name="uq_supplier_number"),
        Index("idx_supplier_status", "status"),
        Index("idx_supplier_type", "type"),
        Index("idx_supplier_status_removed", "status", "removed"),
    )

    supplier_number: Mapped[str] = mapped_column(String(30), nullable=False)
    company_name_zh: Mapped[str | None] = mapped_column(String(200), nullable=True)
    company_name_en: Mapped[str | None] = mapped_column(String(200), nullable=True)
    abbreviation: Mapped[str | None] = mapped_column(String(50), nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="manufacturer")
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="draft")
    categories: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    contact: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    address: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    business_info: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    banking: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    credit_rating: Mapped[str] = mapped_column(String(10), nullable=False, default="Unrated")
    credit_limit: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    payment_terms: Mapped[str] = mapped_column(String(50), nullable=False, default="30 days")
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="CNY")

    # Performance
    quality_rating: Mapped[Decimal] = mapped_column(default=Decimal("3"))
    delivery_rating: Mapped[Decimal] = mapped_column(default=Decimal("3"))
    service_rating: Mapped[Decimal] = mapped_column(default=Decimal("3"))
    total_orders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    on_time_delivery_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    quality_pass_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    # Approval sub-record
    approval_status: Mapped[str] = mapped_column(String(20), nullable=False, default="none")
    approved_by_id: Mapped[UUID | None]
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by_id: Mapped[UUID | None]
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    def to_dto(self):
        from procurement_kernel.domain.routing import ApprovalStatus
        from procurement_modules.suppliers.models import (
            CreditRating,
            Supplier,
            SupplierApproval,
            SupplierPerformance,
            SupplierStatus,
            SupplierType,
        )

        return Supplier(
            id=self.id,
            supplier_number=self.supplier_number,
            company_name_zh=self.company_name_zh,
            company_name_en=self.company_name_en,
            status=SupplierStatus(self.status),
            type=SupplierType(self.type),
            abbreviation=self.abbreviation,
            categories=tuple(self.categories or ()),
            contact=dict(self.contact or {}),
            address=dict(self.address or {}),
            business_info=dict(self.business_info or {}),
            banking=dict(self.banking or {}),
            credit_rating=CreditRating(self.credit_rating),
            credit_limit=self.credit_limit,
            payment_terms=self.payment_terms,
            currency=self.currency,
            performance=SupplierPerformance(
                quality_rating=self.quality_rating,
                delivery_rating=self.delivery_rating,
                service_rating=self.service_rating,
                total_orders=self.total_orders,
                total_amount=self.total_amount,
                on_time_delivery_rate=self.on_time_delivery_rate,
                quality_pass_rate=self.quality_pass_rate,
            ),
            approval=SupplierApproval(
                approval_status=ApprovalStatus(self.approval_status),
                approved_by_id=self.approved_by_id,
                approved_at=self.approved_at,
                rejected_by_id=self.rejected_by_id,
                rejected_at=self.rejected_at,
                rejection_reason=self.rejection_reason,
            ),
            notes=self.notes,
            tags=tuple(self.tags or ()),
            created_at=self.created_at,
            created_by_id=self.created_by_id,
            updated_at=self.updated_at,
            updated_by_id=self.updated_by_id,
        )

    def __repr__(self) -> str:
        return f"<SupplierModel {self.supplier_number} [{self.status}]>"
