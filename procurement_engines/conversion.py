"""
procurement_engines.conversion -- Quotation to purchase order grouping.

Responsibility:
    Group the selected quotes of a completed quotation by supplier so the
    caller can open exactly one draft purchase order per supplier.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Called by
    ``QuotationService.convert_to_purchase_orders``.

Invariants enforced:
    - One group per distinct supplier, never one per item.
    - Groups come out in first-appearance order of their supplier, and
      lines keep the quotation's item order.
    - ``subtotal = sum(quantity * unit_price)`` over the group.
    - Items without a selected quote are skipped and reported back; a
      quotation completed through its state machine never has any.
"""

from __future__ import annotations

from collections.abc import Hashable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from procurement_engines.tracer import traced_engine


@dataclass(frozen=True)
class SelectedQuoteLine:
    """A quotation item together with its selected quote, if any."""

    item_id: Hashable
    material_id: Hashable
    quantity: Decimal
    uom: str
    supplier_id: Hashable | None = None
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class ConversionGroup:
    supplier_id: Hashable
    lines: tuple[SelectedQuoteLine, ...]

    @property
    def subtotal(self) -> Decimal:
        return sum((line.quantity * line.unit_price for line in self.lines), Decimal("0"))


@dataclass(frozen=True)
class ConversionPlan:
    groups: tuple[ConversionGroup, ...]
    skipped_item_ids: tuple[Hashable, ...] = ()


@traced_engine("quotation_conversion", "1.0", fingerprint_fields=("items",))
def group_selected_quotes(items: Sequence[SelectedQuoteLine]) -> ConversionPlan:
    grouped: dict[Hashable, list[SelectedQuoteLine]] = {}
    skipped: list[Hashable] = []
    for item in items:
        if item.supplier_id is None or item.unit_price is None:
            skipped.append(item.item_id)
            continue
        grouped.setdefault(item.supplier_id, []).append(item)
    return ConversionPlan(
        groups=tuple(
            ConversionGroup(supplier_id=supplier_id, lines=tuple(lines))
            for supplier_id, lines in grouped.items()
        ),
        skipped_item_ids=tuple(skipped),
    )
