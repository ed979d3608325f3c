"""
Supplier domain models.

The nouns of supplier management: the supplier record, its performance
metrics and its approval sub-record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from procurement_kernel.domain.routing import ApprovalStatus


class SupplierType(str, Enum):
    MANUFACTURER = "manufacturer"
    DISTRIBUTOR = "distributor"
    AGENT = "agent"
    OTHER = "other"


class SupplierStatus(str, Enum):
    """Supplier lifecycle states."""
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    ACTIVE = "active"
    INACTIVE = "inactive"
    BLACKLISTED = "blacklisted"


class CreditRating(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    UNRATED = "Unrated"


@dataclass(frozen=True)
class SupplierPerformance:
    """Ratings are 1-5, rates are percentages 0-100."""
    quality_rating: Decimal = Decimal("3")
    delivery_rating: Decimal = Decimal("3")
    service_rating: Decimal = Decimal("3")
    total_orders: int = 0
    total_amount: Decimal = Decimal("0")
    on_time_delivery_rate: Decimal = Decimal("0")
    quality_pass_rate: Decimal = Decimal("0")

    @property
    def average_rating(self) -> Decimal:
        total = self.quality_rating + self.delivery_rating + self.service_rating
        return (total / 3).quantize(Decimal("0.01"))


@dataclass(frozen=True)
class SupplierApproval:
    approval_status: ApprovalStatus = ApprovalStatus.NONE
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    rejected_by_id: UUID | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None


@dataclass(frozen=True)
class Supplier:
    """Client-facing view of a supplier."""
    id: UUID
    supplier_number: str
    company_name_zh: str | None
    company_name_en: str | None
    status: SupplierStatus
    type: SupplierType = SupplierType.MANUFACTURER
    abbreviation: str | None = None
    categories: tuple[str, ...] = ()
    contact: dict[str, Any] = field(default_factory=dict)
    address: dict[str, Any] = field(default_factory=dict)
    business_info: dict[str, Any] = field(default_factory=dict)
    banking: dict[str, Any] = field(default_factory=dict)
    credit_rating: CreditRating = CreditRating.UNRATED
    credit_limit: Decimal = Decimal("0")
    payment_terms: str = "30 days"
    currency: str = "CNY"
    performance: SupplierPerformance = field(default_factory=SupplierPerformance)
    approval: SupplierApproval = field(default_factory=SupplierApproval)
    notes: str | None = None
    tags: tuple[str, ...] = ()
    created_at: datetime | None = None
    created_by_id: UUID | None = None
    updated_at: datetime | None = None
    updated_by_id: UUID | None = None

    @property
    def display_name(self) -> str:
        return self.company_name_zh or self.company_name_en or self.supplier_number


@dataclass(frozen=True)
class SupplierStatistics:
    total: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    avg_quality_rating: Decimal
    avg_delivery_rating: Decimal
    avg_service_rating: Decimal
