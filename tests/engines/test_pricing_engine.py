"""
Tests for purchase order and goods receipt totals.

Tests cover:
- compute_line_amounts: gross line amount and discounted line total with tax
- compute_order_totals: the order total identity
- compute_receipt_totals: plain sums
- rounded_percentage: half-up rounding, zero denominator
"""

from decimal import Decimal

from procurement_engines.pricing import (
    OrderLineInput,
    ReceiptLineInput,
    compute_line_amounts,
    compute_order_totals,
    compute_receipt_totals,
    rounded_percentage,
)


class TestLineAmounts:

    def test_plain_line(self):
        amounts = compute_line_amounts(OrderLineInput(Decimal("100"), Decimal("10")))

        assert amounts.total_price == Decimal("1000")
        assert amounts.line_total == Decimal("1000")

    def test_tax_applies_after_discount(self):
        line = OrderLineInput(
            quantity=Decimal("10"),
            unit_price=Decimal("20"),
            discount=Decimal("50"),
            tax_rate=Decimal("13"),
        )

        amounts = compute_line_amounts(line)

        assert amounts.total_price == Decimal("200")
        assert amounts.line_total == Decimal("169.50")


class TestOrderTotals:

    def test_total_identity(self):
        lines = [
            OrderLineInput(Decimal("10"), Decimal("20"), Decimal("50"), Decimal("13")),
            OrderLineInput(Decimal("5"), Decimal("100"), Decimal("0"), Decimal("6")),
        ]

        totals = compute_order_totals(lines, discount=Decimal("25"), shipping_cost=Decimal("40"))

        assert totals.subtotal == Decimal("700")
        assert totals.line_discount_total == Decimal("50")
        assert totals.tax_amount == Decimal("49.50")
        assert totals.total_amount == (
            totals.subtotal - totals.line_discount_total - Decimal("25")
            + totals.tax_amount + Decimal("40")
        )
        assert totals.total_amount == Decimal("714.50")

    def test_no_lines(self):
        totals = compute_order_totals([], shipping_cost=Decimal("15"))

        assert totals.subtotal == Decimal("0")
        assert totals.total_amount == Decimal("15")


class TestReceiptTotals:

    def test_sums(self):
        totals = compute_receipt_totals([
            ReceiptLineInput(Decimal("100"), Decimal("60"), Decimal("55"), Decimal("5")),
            ReceiptLineInput(Decimal("20"), Decimal("20"), Decimal("20"), Decimal("0")),
        ])

        assert totals.total_ordered == Decimal("120")
        assert totals.total_received == Decimal("80")
        assert totals.total_accepted == Decimal("75")
        assert totals.total_rejected == Decimal("5")


class TestRoundedPercentage:

    def test_rounds_half_up(self):
        assert rounded_percentage(Decimal("1"), Decimal("8")) == 13
        assert rounded_percentage(Decimal("1"), Decimal("3")) == 33

    def test_zero_denominator(self):
        assert rounded_percentage(Decimal("5"), Decimal("0")) == 0

    def test_full(self):
        assert rounded_percentage(Decimal("100"), Decimal("100")) == 100
