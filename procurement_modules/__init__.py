"""
Procurement Modules.

Document services over the Procurement Kernel and Engines.  Each module
contains:
- Domain models (frozen client-facing views)
- ORM models (persistence)
- Workflows (state machines)
- Selectors (read access, removed rows excluded)
- A service (the operations)

Modules:
- Suppliers: onboarding, approval, blacklisting, performance
- Categories: material category hierarchy
- Materials: master data, units of measure, preferred suppliers, inventory
- Approvals: approval workflow definitions and routing
- Quotations: requests for quotation, quote ranking, conversion to POs
- Purchase orders: ordering, routed approval, supplier hand-off, receiving
- Receipts: goods receipts, inspection, reconciliation
"""

from procurement_modules import (
    approvals,
    categories,
    materials,
    purchase_orders,
    quotations,
    receipts,
    suppliers,
)

__all__ = [
    "approvals",
    "categories",
    "materials",
    "purchase_orders",
    "quotations",
    "receipts",
    "suppliers",
]
