"""
procurement_engines.pricing -- Purchase order and goods receipt totals.

Responsibility:
    Derive every computed amount that documents recompute on save:
    per-line ``total_price`` / ``line_total``, PO ``subtotal`` /
    ``tax_amount`` / ``total_amount``, receipt ``total_received`` /
    ``total_accepted`` / ``total_rejected``, and the rounded percentages
    shown in client views.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``total_amount == subtotal - sum(line discounts) - order discount
      + tax_amount + shipping_cost``.
    - Tax applies to the discounted line amount:
      ``(quantity * unit_price - discount) * tax_rate / 100``.
    - Receipt totals are plain sums over items.
    - Percentages round half up to whole numbers; a zero denominator
      gives 0.
    - Decimal-only arithmetic.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class OrderLineInput:
    quantity: Decimal
    unit_price: Decimal
    discount: Decimal = _ZERO
    tax_rate: Decimal = _ZERO


@dataclass(frozen=True)
class LineAmounts:
    total_price: Decimal  # quantity * unit_price
    line_total: Decimal  # discounted amount plus tax


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    line_discount_total: Decimal
    tax_amount: Decimal
    total_amount: Decimal


@dataclass(frozen=True)
class ReceiptLineInput:
    ordered_quantity: Decimal
    received_quantity: Decimal
    accepted_quantity: Decimal = _ZERO
    rejected_quantity: Decimal = _ZERO


@dataclass(frozen=True)
class ReceiptTotals:
    total_ordered: Decimal
    total_received: Decimal
    total_accepted: Decimal
    total_rejected: Decimal


def compute_line_amounts(line: OrderLineInput) -> LineAmounts:
    total_price = line.quantity * line.unit_price
    discounted = total_price - line.discount
    return LineAmounts(
        total_price=total_price,
        line_total=discounted + discounted * line.tax_rate / _HUNDRED,
    )


def compute_order_totals(
    lines: Iterable[OrderLineInput],
    discount: Decimal = _ZERO,
    shipping_cost: Decimal = _ZERO,
) -> OrderTotals:
    subtotal = _ZERO
    line_discounts = _ZERO
    tax_amount = _ZERO
    for line in lines:
        gross = line.quantity * line.unit_price
        subtotal += gross
        line_discounts += line.discount
        tax_amount += (gross - line.discount) * line.tax_rate / _HUNDRED
    return OrderTotals(
        subtotal=subtotal,
        line_discount_total=line_discounts,
        tax_amount=tax_amount,
        total_amount=subtotal - line_discounts - discount + tax_amount + shipping_cost,
    )


def compute_receipt_totals(lines: Iterable[ReceiptLineInput]) -> ReceiptTotals:
    ordered = received = accepted = rejected = _ZERO
    for line in lines:
        ordered += line.ordered_quantity
        received += line.received_quantity
        accepted += line.accepted_quantity
        rejected += line.rejected_quantity
    return ReceiptTotals(
        total_ordered=ordered,
        total_received=received,
        total_accepted=accepted,
        total_rejected=rejected,
    )


def rounded_percentage(numerator: Decimal, denominator: Decimal) -> int:
    """``round(numerator / denominator * 100)``, half up; 0 when denominator is 0."""
    if not denominator:
        return 0
    value = Decimal(numerator) / Decimal(denominator) * _HUNDRED
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
