"""
procurement_engines.reconciliation -- Goods receipt reconciliation.

Responsibility:
    Aggregate every completed goods receipt of a purchase order per
    material, derive each order line's received / remaining quantity and
    receipt status, derive the order's overall receiving status, and apply
    one receipt's accepted quantities to material inventory counters.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Driven by the
    ``goods_receipt.completed`` outbox consumer in
    ``procurement_modules.receipts.reconciliation``.

Invariants enforced:
    - Accepted quantity is what counts against the order:
      ``received = sum(accepted)``, ``remaining = ordered - accepted``.
    - Line status: ``complete`` when remaining <= 0, ``partial`` when
      accepted > 0, else ``pending``.
    - Order status: ``fully_received`` when every line is complete,
      ``partially_received`` when any line has accepted > 0, else
      ``not_received``.
    - Inventory: ``on_hand += accepted``,
      ``on_order = max(0, on_order - accepted)``,
      ``available = on_hand - reserved``.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from procurement_engines.tracer import traced_engine

_ZERO = Decimal("0")


class LineReceiptStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETE = "complete"


class ReceivingStatus(str, Enum):
    NOT_RECEIVED = "not_received"
    PARTIALLY_RECEIVED = "partially_received"
    FULLY_RECEIVED = "fully_received"


@dataclass(frozen=True)
class ReceiptLine:
    """One receipt item, as seen by reconciliation."""

    material_id: Hashable
    received_quantity: Decimal
    accepted_quantity: Decimal = _ZERO
    rejected_quantity: Decimal = _ZERO


@dataclass(frozen=True)
class MaterialReceiptTotals:
    received: Decimal = _ZERO
    accepted: Decimal = _ZERO
    rejected: Decimal = _ZERO


@dataclass(frozen=True)
class OrderLine:
    line_id: Hashable
    material_id: Hashable
    ordered_quantity: Decimal


@dataclass(frozen=True)
class OrderLineState:
    line_id: Hashable
    received_quantity: Decimal
    remaining_quantity: Decimal
    receipt_status: LineReceiptStatus


@dataclass(frozen=True)
class ReconciliationResult:
    lines: tuple[OrderLineState, ...]
    receiving_status: ReceivingStatus

    @property
    def is_fully_received(self) -> bool:
        return self.receiving_status == ReceivingStatus.FULLY_RECEIVED


@dataclass(frozen=True)
class InventoryCounters:
    on_hand: Decimal = _ZERO
    on_order: Decimal = _ZERO
    reserved: Decimal = _ZERO
    available: Decimal = _ZERO
    last_receipt_date: datetime | None = None


def aggregate_receipts(
    receipts: Iterable[Sequence[ReceiptLine]],
) -> dict[Hashable, MaterialReceiptTotals]:
    """Sum received / accepted / rejected per material across receipts."""
    totals: dict[Hashable, MaterialReceiptTotals] = {}
    for receipt in receipts:
        for line in receipt:
            current = totals.get(line.material_id, MaterialReceiptTotals())
            totals[line.material_id] = MaterialReceiptTotals(
                received=current.received + line.received_quantity,
                accepted=current.accepted + line.accepted_quantity,
                rejected=current.rejected + line.rejected_quantity,
            )
    return totals


def line_status(accepted: Decimal, remaining: Decimal) -> LineReceiptStatus:
    if remaining <= 0:
        return LineReceiptStatus.COMPLETE
    if accepted > 0:
        return LineReceiptStatus.PARTIAL
    return LineReceiptStatus.PENDING


def derive_receiving_status(lines: Sequence[OrderLineState]) -> ReceivingStatus:
    if lines and all(line.receipt_status == LineReceiptStatus.COMPLETE for line in lines):
        return ReceivingStatus.FULLY_RECEIVED
    if any(line.received_quantity > 0 for line in lines):
        return ReceivingStatus.PARTIALLY_RECEIVED
    return ReceivingStatus.NOT_RECEIVED


@traced_engine("receipt_reconciliation", "1.0", fingerprint_fields=("order_lines", "receipts"))
def reconcile_order_lines(
    order_lines: Sequence[OrderLine],
    receipts: Sequence[Sequence[ReceiptLine]],
) -> ReconciliationResult:
    """Recompute every order line from all completed receipts.

    Lines whose material never appears in a receipt keep zero received.
    """
    totals = aggregate_receipts(receipts)
    states: list[OrderLineState] = []
    for line in order_lines:
        accepted = totals.get(line.material_id, MaterialReceiptTotals()).accepted
        remaining = line.ordered_quantity - accepted
        states.append(
            OrderLineState(
                line_id=line.line_id,
                received_quantity=accepted,
                remaining_quantity=remaining,
                receipt_status=line_status(accepted, remaining),
            )
        )
    return ReconciliationResult(
        lines=tuple(states),
        receiving_status=derive_receiving_status(states),
    )


def apply_receipt_to_inventory(
    counters: InventoryCounters,
    accepted: Decimal,
    received_at: datetime | None,
) -> InventoryCounters:
    """Inventory after ``accepted`` units arrive.  Non-positive is a no-op."""
    if accepted <= 0:
        return counters
    on_hand = counters.on_hand + accepted
    return InventoryCounters(
        on_hand=on_hand,
        on_order=max(_ZERO, counters.on_order - accepted),
        reserved=counters.reserved,
        available=on_hand - counters.reserved,
        last_receipt_date=received_at,
    )
