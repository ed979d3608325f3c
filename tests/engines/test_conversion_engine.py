"""Tests for grouping selected quotes into one purchase order per supplier."""

from decimal import Decimal
from uuid import uuid4

from procurement_engines.conversion import SelectedQuoteLine, group_selected_quotes


def line(supplier, quantity, unit_price, item_id=None) -> SelectedQuoteLine:
    return SelectedQuoteLine(
        item_id=item_id or uuid4(),
        material_id=uuid4(),
        quantity=Decimal(quantity),
        uom="pcs",
        supplier_id=supplier,
        unit_price=Decimal(unit_price) if unit_price is not None else None,
    )


class TestGroupSelectedQuotes:

    def test_one_group_per_supplier_in_first_appearance_order(self):
        supplier_a, supplier_b = uuid4(), uuid4()
        items = [
            line(supplier_b, "10", "5"),
            line(supplier_a, "100", "10"),
            line(supplier_b, "2", "50"),
        ]

        plan = group_selected_quotes(items)

        assert [g.supplier_id for g in plan.groups] == [supplier_b, supplier_a]
        assert [len(g.lines) for g in plan.groups] == [2, 1]
        assert plan.groups[0].lines == (items[0], items[2])

    def test_group_subtotal(self):
        supplier = uuid4()

        plan = group_selected_quotes([line(supplier, "10", "5"), line(supplier, "2", "50")])

        assert plan.groups[0].subtotal == Decimal("150")

    def test_unselected_items_are_skipped_and_reported(self):
        supplier = uuid4()
        skipped_id = uuid4()

        plan = group_selected_quotes([
            line(supplier, "1", "1"),
            line(None, "5", None, item_id=skipped_id),
        ])

        assert len(plan.groups) == 1
        assert plan.skipped_item_ids == (skipped_id,)

    def test_no_items(self):
        plan = group_selected_quotes([])

        assert plan.groups == ()
        assert plan.skipped_item_ids == ()
