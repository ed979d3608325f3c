"""
procurement_engines.ranking -- Quote ranking and selection summary.

Responsibility:
    For one quotation item, price every supplier quote
    (``unit_price * item quantity``) and rank quotes by ascending unit
    price.  Across a quotation, summarize the selected quotes: total value,
    average savings against target price, and distinct selected suppliers.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Called by
    ``QuotationService`` every time a quotation's quotes change.

Invariants enforced:
    - Rank 1 is the cheapest unit price; ties keep their original order
      (stable sort), so ranks are always a permutation of 1..n.
    - At most one quote per item is selected: ``selection_flags`` clears
      every quote before flagging the chosen one.
    - Average savings only covers items that have a selected quote and a
      positive target price; with none, it is 0.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Hashable

from procurement_engines.tracer import traced_engine

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class QuoteCandidate:
    quote_id: Hashable
    supplier_id: Hashable
    unit_price: Decimal


@dataclass(frozen=True)
class RankedQuote:
    quote_id: Hashable
    rank: int
    total_price: Decimal


@dataclass(frozen=True)
class ItemSelection:
    """One quotation item and its selected quote, if any."""

    quantity: Decimal
    target_price: Decimal | None
    selected_supplier_id: Hashable | None = None
    selected_total_price: Decimal | None = None


@dataclass(frozen=True)
class SelectionSummary:
    total_value: Decimal
    average_savings: Decimal
    supplier_count: int


@traced_engine("quote_ranking", "1.0", fingerprint_fields=("quotes", "quantity"))
def rank_quotes(quotes: Sequence[QuoteCandidate], quantity: Decimal) -> tuple[RankedQuote, ...]:
    """Rank quotes by ascending unit price.

    Returns one ``RankedQuote`` per input quote, in the input order.
    """
    order = sorted(range(len(quotes)), key=lambda i: quotes[i].unit_price)
    ranks = {index: position + 1 for position, index in enumerate(order)}
    return tuple(
        RankedQuote(
            quote_id=quote.quote_id,
            rank=ranks[i],
            total_price=quote.unit_price * quantity,
        )
        for i, quote in enumerate(quotes)
    )


def selection_flags(
    quote_ids: Sequence[Hashable],
    chosen: Hashable,
) -> dict[Hashable, bool]:
    """Selection state after choosing ``chosen``: exactly one True.

    Raises:
        KeyError: ``chosen`` is not one of ``quote_ids``.
    """
    if chosen not in quote_ids:
        raise KeyError(chosen)
    return {quote_id: quote_id == chosen for quote_id in quote_ids}


def summarize_selection(items: Sequence[ItemSelection]) -> SelectionSummary:
    total_value = _ZERO
    total_savings = _ZERO
    savings_count = 0
    suppliers: set[Hashable] = set()

    for item in items:
        if item.selected_supplier_id is None or item.selected_total_price is None:
            continue
        total_value += item.selected_total_price
        suppliers.add(item.selected_supplier_id)
        if item.target_price is not None and item.target_price > 0:
            target_total = item.target_price * item.quantity
            if target_total:
                total_savings += (target_total - item.selected_total_price) / target_total * _HUNDRED
                savings_count += 1

    average = total_savings / savings_count if savings_count else _ZERO
    return SelectionSummary(
        total_value=total_value,
        average_savings=average.quantize(Decimal("0.01")),
        supplier_count=len(suppliers),
    )
