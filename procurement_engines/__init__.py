"""
Pure procurement calculation engines.

Engines take frozen value objects and return frozen value objects.  They
never touch the database, the clock, or configuration; services feed them.
"""

from procurement_engines.conversion import (
    ConversionGroup,
    ConversionPlan,
    SelectedQuoteLine,
    group_selected_quotes,
)
from procurement_engines.pricing import (
    LineAmounts,
    OrderLineInput,
    OrderTotals,
    ReceiptLineInput,
    ReceiptTotals,
    compute_line_amounts,
    compute_order_totals,
    compute_receipt_totals,
    rounded_percentage,
)
from procurement_engines.ranking import (
    ItemSelection,
    QuoteCandidate,
    RankedQuote,
    SelectionSummary,
    rank_quotes,
    selection_flags,
    summarize_selection,
)
from procurement_engines.reconciliation import (
    InventoryCounters,
    LineReceiptStatus,
    OrderLine,
    OrderLineState,
    ReceiptLine,
    ReceivingStatus,
    ReconciliationResult,
    aggregate_receipts,
    apply_receipt_to_inventory,
    derive_receiving_status,
    reconcile_order_lines,
)
from procurement_engines.routing import (
    evaluate_condition,
    evaluate_level,
    evaluate_routing_status,
    level_for_role,
    rule_matches,
    select_required_levels,
)

__all__ = [
    "ConversionGroup",
    "ConversionPlan",
    "InventoryCounters",
    "ItemSelection",
    "LineAmounts",
    "LineReceiptStatus",
    "OrderLine",
    "OrderLineInput",
    "OrderLineState",
    "OrderTotals",
    "QuoteCandidate",
    "RankedQuote",
    "ReceiptLine",
    "ReceiptLineInput",
    "ReceiptTotals",
    "ReceivingStatus",
    "ReconciliationResult",
    "SelectedQuoteLine",
    "SelectionSummary",
    "aggregate_receipts",
    "apply_receipt_to_inventory",
    "compute_line_amounts",
    "compute_order_totals",
    "compute_receipt_totals",
    "derive_receiving_status",
    "evaluate_condition",
    "evaluate_level",
    "evaluate_routing_status",
    "group_selected_quotes",
    "level_for_role",
    "rank_quotes",
    "reconcile_order_lines",
    "rounded_percentage",
    "rule_matches",
    "select_required_levels",
    "selection_flags",
    "summarize_selection",
]
