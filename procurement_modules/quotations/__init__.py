"""
Material quotations (``procurement_modules.quotations``).

Requests for quotation, supplier quote ranking and selection, and
conversion into purchase orders.
"""

from procurement_modules.quotations.models import (
    ConvertedOrder,
    MaterialQuotation,
    QuotationItem,
    QuotationStatistics,
    QuotationStatus,
    SupplierQuote,
)
from procurement_modules.quotations.service import QuotationService
from procurement_modules.quotations.workflows import QUOTATION_WORKFLOW

__all__ = [
    "ConvertedOrder",
    "MaterialQuotation",
    "QUOTATION_WORKFLOW",
    "QuotationItem",
    "QuotationService",
    "QuotationStatistics",
    "QuotationStatus",
    "SupplierQuote",
]
