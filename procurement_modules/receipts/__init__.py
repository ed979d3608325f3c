"""
Goods receipts (``procurement_modules.receipts``).

Receiving against purchase orders, quality inspection, and the
reconciliation consumer that feeds purchase orders and inventory.
"""

from procurement_modules.receipts.models import (
    DeliveryNote,
    GoodsReceipt,
    GoodsReceiptItem,
    QualityInspection,
    QualityStatus,
    ReceiptStatistics,
    ReceiptStatus,
    WarehouseInfo,
)
from procurement_modules.receipts.reconciliation import (
    ReceiptReconciler,
    build_receipt_dispatcher,
    register_reconciliation_handlers,
)
from procurement_modules.receipts.service import ReceiptService
from procurement_modules.receipts.workflows import RECEIPT_WORKFLOW

__all__ = [
    "DeliveryNote",
    "GoodsReceipt",
    "GoodsReceiptItem",
    "QualityInspection",
    "QualityStatus",
    "RECEIPT_WORKFLOW",
    "ReceiptReconciler",
    "ReceiptService",
    "ReceiptStatistics",
    "ReceiptStatus",
    "WarehouseInfo",
    "build_receipt_dispatcher",
    "register_reconciliation_handlers",
]
