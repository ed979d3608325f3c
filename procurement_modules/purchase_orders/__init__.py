"""
Purchase orders (``procurement_modules.purchase_orders``).

Ordering, routed approval, supplier hand-off and receiving.
"""

from procurement_modules.purchase_orders.models import (
    ApproverAction,
    ApproverRecord,
    Priority,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatistics,
    PurchaseOrderStatus,
    ReceivingSummary,
    SentToSupplier,
)
from procurement_modules.purchase_orders.service import PurchaseOrderService
from procurement_modules.purchase_orders.workflows import PURCHASE_ORDER_WORKFLOW

__all__ = [
    "ApproverAction",
    "ApproverRecord",
    "PURCHASE_ORDER_WORKFLOW",
    "Priority",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "PurchaseOrderService",
    "PurchaseOrderStatistics",
    "PurchaseOrderStatus",
    "ReceivingSummary",
    "SentToSupplier",
]
