"""
Suppliers (``procurement_modules.suppliers``).

Supplier master data, onboarding approval and status lifecycle.
"""

from procurement_modules.suppliers.models import (
    CreditRating,
    Supplier,
    SupplierApproval,
    SupplierPerformance,
    SupplierStatistics,
    SupplierStatus,
    SupplierType,
)
from procurement_modules.suppliers.service import SupplierService
from procurement_modules.suppliers.workflows import SUPPLIER_WORKFLOW

__all__ = [
    "CreditRating",
    "SUPPLIER_WORKFLOW",
    "Supplier",
    "SupplierApproval",
    "SupplierPerformance",
    "SupplierService",
    "SupplierStatistics",
    "SupplierStatus",
    "SupplierType",
]
