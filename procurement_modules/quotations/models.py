"""
Material quotation domain models.

A quotation asks several suppliers to price a list of material items.
Each item collects at most one quote per supplier; quotes are ranked by
unit price and at most one quote per item is selected.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from procurement_engines.pricing import rounded_percentage
from procurement_engines.ranking import SelectionSummary


class QuotationStatus(str, Enum):
    """Quotation lifecycle states."""
    DRAFT = "draft"
    SENT = "sent"
    IN_REVIEW = "in_review"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class SupplierQuote:
    id: UUID
    supplier_id: UUID
    unit_price: Decimal
    total_price: Decimal
    rank: int
    is_selected: bool = False
    lead_time: int | None = None
    moq: Decimal | None = None
    valid_until: datetime | None = None
    payment_terms: str | None = None
    delivery_terms: str | None = None
    warranty: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class QuotationItem:
    id: UUID
    material_id: UUID
    quantity: Decimal
    uom: str
    specifications: str | None = None
    target_price: Decimal | None = None
    quotes: tuple[SupplierQuote, ...] = ()

    @property
    def selected_quote(self) -> SupplierQuote | None:
        for quote in self.quotes:
            if quote.is_selected:
                return quote
        return None

    @property
    def best_quote(self) -> SupplierQuote | None:
        """The rank-1 quote, if any quote exists."""
        for quote in self.quotes:
            if quote.rank == 1:
                return quote
        return None


@dataclass(frozen=True)
class ConvertedOrder:
    """A purchase order created from this quotation."""
    supplier_id: UUID
    purchase_order_id: UUID
    created_at: datetime


@dataclass(frozen=True)
class MaterialQuotation:
    """Client-facing view of a quotation, including derived figures."""
    id: UUID
    quotation_number: str
    status: QuotationStatus
    request_date: datetime
    response_deadline: datetime
    items: tuple[QuotationItem, ...] = ()
    target_suppliers: tuple[UUID, ...] = ()
    title_zh: str | None = None
    title_en: str | None = None
    description: str | None = None
    valid_until: datetime | None = None
    selected_quotes: SelectionSummary = field(
        default_factory=lambda: SelectionSummary(Decimal("0"), Decimal("0"), 0)
    )
    purchase_orders: tuple[ConvertedOrder, ...] = ()
    notes: str | None = None
    created_at: datetime | None = None
    created_by_id: UUID | None = None
    updated_at: datetime | None = None
    updated_by_id: UUID | None = None

    @property
    def response_count(self) -> int:
        """Distinct suppliers that quoted on any item."""
        return len({quote.supplier_id for item in self.items for quote in item.quotes})

    @property
    def completion_percentage(self) -> int:
        return rounded_percentage(Decimal(self.response_count), Decimal(len(self.target_suppliers)))

    @property
    def is_fully_selected(self) -> bool:
        return bool(self.items) and all(item.selected_quote is not None for item in self.items)

    def item(self, item_id: UUID) -> QuotationItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


@dataclass(frozen=True)
class QuotationStatistics:
    total: int
    by_status: dict[str, int]
    pending: int
    overdue: int
