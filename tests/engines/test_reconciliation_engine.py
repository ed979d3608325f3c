"""
Tests for goods receipt reconciliation.

Tests cover:
- aggregate_receipts: per-material sums across receipts
- reconcile_order_lines: accepted quantity drives received / remaining
- derive_receiving_status: not / partially / fully received
- apply_receipt_to_inventory: on-hand, on-order floor, available
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from procurement_engines.reconciliation import (
    InventoryCounters,
    LineReceiptStatus,
    OrderLine,
    ReceiptLine,
    ReceivingStatus,
    aggregate_receipts,
    apply_receipt_to_inventory,
    reconcile_order_lines,
)

MAT_A = uuid4()
MAT_B = uuid4()


def receipt_line(material, received, accepted, rejected="0") -> ReceiptLine:
    return ReceiptLine(
        material_id=material,
        received_quantity=Decimal(received),
        accepted_quantity=Decimal(accepted),
        rejected_quantity=Decimal(rejected),
    )


class TestAggregateReceipts:

    def test_sums_per_material(self):
        totals = aggregate_receipts([
            [receipt_line(MAT_A, "60", "58", "2"), receipt_line(MAT_B, "5", "5")],
            [receipt_line(MAT_A, "40", "40")],
        ])

        assert totals[MAT_A].received == Decimal("100")
        assert totals[MAT_A].accepted == Decimal("98")
        assert totals[MAT_A].rejected == Decimal("2")
        assert totals[MAT_B].accepted == Decimal("5")


class TestReconcileOrderLines:

    def test_two_receipts_fully_receive_the_line(self):
        line_id = uuid4()
        result = reconcile_order_lines(
            [OrderLine(line_id, MAT_A, Decimal("100"))],
            [[receipt_line(MAT_A, "60", "60")], [receipt_line(MAT_A, "40", "40")]],
        )

        state = result.lines[0]
        assert state.received_quantity == Decimal("100")
        assert state.remaining_quantity == Decimal("0")
        assert state.receipt_status == LineReceiptStatus.COMPLETE
        assert result.receiving_status == ReceivingStatus.FULLY_RECEIVED
        assert result.is_fully_received

    def test_rejected_goods_do_not_count(self):
        result = reconcile_order_lines(
            [OrderLine(uuid4(), MAT_A, Decimal("100"))],
            [[receipt_line(MAT_A, "100", "90", "10")]],
        )

        state = result.lines[0]
        assert state.received_quantity == Decimal("90")
        assert state.remaining_quantity == Decimal("10")
        assert state.receipt_status == LineReceiptStatus.PARTIAL
        assert result.receiving_status == ReceivingStatus.PARTIALLY_RECEIVED

    def test_line_without_receipts_stays_pending(self):
        result = reconcile_order_lines(
            [OrderLine(uuid4(), MAT_A, Decimal("10")), OrderLine(uuid4(), MAT_B, Decimal("10"))],
            [[receipt_line(MAT_A, "10", "10")]],
        )

        assert [s.receipt_status for s in result.lines] == [
            LineReceiptStatus.COMPLETE, LineReceiptStatus.PENDING,
        ]
        assert result.receiving_status == ReceivingStatus.PARTIALLY_RECEIVED

    def test_over_receipt_completes_with_negative_remaining(self):
        result = reconcile_order_lines(
            [OrderLine(uuid4(), MAT_A, Decimal("10"))],
            [[receipt_line(MAT_A, "12", "12")]],
        )

        assert result.lines[0].remaining_quantity == Decimal("-2")
        assert result.lines[0].receipt_status == LineReceiptStatus.COMPLETE

    def test_nothing_received(self):
        result = reconcile_order_lines([OrderLine(uuid4(), MAT_A, Decimal("10"))], [])

        assert result.receiving_status == ReceivingStatus.NOT_RECEIVED


class TestApplyReceiptToInventory:

    def test_accepted_goods_move_counters(self):
        at = datetime(2026, 1, 6, 9, 0, tzinfo=timezone.utc)
        before = InventoryCounters(
            on_hand=Decimal("20"), on_order=Decimal("100"),
            reserved=Decimal("5"), available=Decimal("15"),
        )

        after = apply_receipt_to_inventory(before, Decimal("60"), at)

        assert after.on_hand == Decimal("80")
        assert after.on_order == Decimal("40")
        assert after.reserved == Decimal("5")
        assert after.available == Decimal("75")
        assert after.last_receipt_date == at

    def test_on_order_never_goes_negative(self):
        after = apply_receipt_to_inventory(InventoryCounters(on_order=Decimal("10")), Decimal("25"), None)

        assert after.on_order == Decimal("0")
        assert after.on_hand == Decimal("25")

    def test_nothing_accepted_is_a_no_op(self):
        before = InventoryCounters(on_hand=Decimal("3"))

        assert apply_receipt_to_inventory(before, Decimal("0"), None) is before
