"""
Tests for the Material Quotation module service.

Validates:
- Sending requires recipients and items
- Quotes are ranked by unit price and a supplier quotes an item once
- Selection, completion and the selected-quotes summary
- Conversion into one draft purchase order per selected supplier
- Cancellation guards and overdue queries
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from procurement_kernel.domain.events import QUOTATION_CONVERTED
from procurement_kernel.exceptions import (
    DuplicateQuoteError,
    EntityNotFoundError,
    TransitionNotAllowedError,
    ValidationError,
)
from procurement_kernel.services.outbox_service import OutboxService
from procurement_modules.purchase_orders import PurchaseOrderStatus
from procurement_modules.quotations import QuotationStatus


@pytest.fixture
def third_supplier(create_supplier):
    return create_supplier("Foshan Fasteners", credit_rating="C")


@pytest.fixture
def sent_quotation(quotation_service, create_quotation, material, supplier, second_supplier, test_actor_id):
    """Sent RFQ: 100 x ``material`` with a target price of 12."""
    quotation = create_quotation([(material, 100, "12")], target_suppliers=(supplier, second_supplier))
    return quotation_service.send(quotation.id, test_actor_id)


class TestQuotationCreate:

    def test_number_and_defaults(self, create_quotation, material, supplier):
        quotation = create_quotation([(material, 100, "12")], target_suppliers=(supplier, supplier))

        assert quotation.quotation_number == "MQ-20260106-0001"
        assert quotation.status == QuotationStatus.DRAFT
        assert quotation.target_suppliers == (supplier.id,)
        assert quotation.items[0].uom == "pcs"
        assert quotation.items[0].target_price == Decimal("12")

    def test_response_deadline_required(self, quotation_service, material, test_actor_id):
        with pytest.raises(ValidationError, match="response_deadline"):
            quotation_service.create(
                test_actor_id,
                items=[{"material_id": material.id, "quantity": 1}],
                response_deadline=None,
            )

    def test_update_only_in_draft(self, quotation_service, sent_quotation, test_actor_id):
        with pytest.raises(TransitionNotAllowedError, match="Only draft quotations can be updated"):
            quotation_service.update(sent_quotation.id, test_actor_id, notes="x")

    def test_refused_update_keeps_quotation(
        self, session, quotation_service, create_quotation, material, second_material, test_actor_id,
    ):
        quotation = create_quotation([(material, 100, "12")], notes="original")

        with pytest.raises(ValidationError):
            quotation_service.update(
                quotation.id,
                test_actor_id,
                notes="changed",
                items=[
                    {"material_id": second_material.id, "quantity": 5},
                    {"material_id": material.id, "quantity": 0},
                ],
            )
        session.flush()
        session.expire_all()

        reread = quotation_service.get(quotation.id)
        assert reread.notes == "original"
        assert [(item.material_id, item.quantity) for item in reread.items] == [(material.id, Decimal("100"))]


class TestQuotationSend:

    def test_send(self, sent_quotation):
        assert sent_quotation.status == QuotationStatus.SENT

    def test_requires_target_suppliers(self, quotation_service, create_quotation, material, test_actor_id):
        quotation = create_quotation([(material, 1, None)])

        with pytest.raises(ValidationError, match="At least one target supplier"):
            quotation_service.send(quotation.id, test_actor_id)

    def test_requires_items(self, quotation_service, create_quotation, supplier, test_actor_id):
        quotation = create_quotation([], target_suppliers=(supplier,))

        with pytest.raises(ValidationError, match="At least one item"):
            quotation_service.send(quotation.id, test_actor_id)

    def test_send_twice(self, quotation_service, sent_quotation, test_actor_id):
        with pytest.raises(TransitionNotAllowedError, match="Only draft quotations can be sent"):
            quotation_service.send(sent_quotation.id, test_actor_id)


class TestQuotes:

    def test_quotes_are_ranked_by_unit_price(
        self, quotation_service, sent_quotation, supplier, second_supplier, third_supplier, test_actor_id,
    ):
        item_id = sent_quotation.items[0].id
        for s, price in ((supplier, "12"), (second_supplier, "10"), (third_supplier, "11")):
            result = quotation_service.add_quote(sent_quotation.id, test_actor_id, item_id, s.id, price)

        quotes = result.items[0].quotes
        assert [q.rank for q in quotes] == [3, 1, 2]
        assert [q.total_price for q in quotes] == [Decimal("1200"), Decimal("1000"), Decimal("1100")]
        assert result.items[0].best_quote.supplier_id == second_supplier.id
        assert result.response_count == 3

    def test_first_quote_moves_to_review(self, quotation_service, sent_quotation, supplier, test_actor_id):
        result = quotation_service.add_quote(
            sent_quotation.id, test_actor_id, sent_quotation.items[0].id, supplier.id, "12",
        )

        assert result.status == QuotationStatus.IN_REVIEW
        assert result.completion_percentage == 50

    def test_supplier_quotes_an_item_once(self, quotation_service, sent_quotation, supplier, test_actor_id):
        item_id = sent_quotation.items[0].id
        quotation_service.add_quote(sent_quotation.id, test_actor_id, item_id, supplier.id, "12")

        with pytest.raises(DuplicateQuoteError, match="already provided a quote"):
            quotation_service.add_quote(sent_quotation.id, test_actor_id, item_id, supplier.id, "11")

    def test_unknown_item(self, quotation_service, sent_quotation, supplier, material, test_actor_id):
        with pytest.raises(EntityNotFoundError, match="Item not found"):
            quotation_service.add_quote(sent_quotation.id, test_actor_id, material.id, supplier.id, "1")

    def test_select_quote_and_savings(
        self, quotation_service, sent_quotation, supplier, second_supplier, test_actor_id,
    ):
        item_id = sent_quotation.items[0].id
        quotation_service.add_quote(sent_quotation.id, test_actor_id, item_id, supplier.id, "12")
        quoted = quotation_service.add_quote(sent_quotation.id, test_actor_id, item_id, second_supplier.id, "10")
        cheapest = quoted.items[0].best_quote

        selected = quotation_service.select_quote(sent_quotation.id, test_actor_id, item_id, cheapest.id)

        assert [q.is_selected for q in selected.items[0].quotes] == [False, True]
        assert selected.selected_quotes.total_value == Decimal("1000")
        assert selected.selected_quotes.average_savings == Decimal("16.67")
        assert selected.selected_quotes.supplier_count == 1

    def test_reselecting_moves_the_flag(
        self, quotation_service, sent_quotation, supplier, second_supplier, test_actor_id,
    ):
        item_id = sent_quotation.items[0].id
        quotation_service.add_quote(sent_quotation.id, test_actor_id, item_id, supplier.id, "12")
        quoted = quotation_service.add_quote(sent_quotation.id, test_actor_id, item_id, second_supplier.id, "10")
        first, second = quoted.items[0].quotes

        quotation_service.select_quote(sent_quotation.id, test_actor_id, item_id, second.id)
        result = quotation_service.select_quote(sent_quotation.id, test_actor_id, item_id, first.id)

        assert result.items[0].selected_quote.id == first.id
        assert sum(q.is_selected for q in result.items[0].quotes) == 1

    def test_select_unknown_quote(self, quotation_service, sent_quotation, supplier, test_actor_id):
        with pytest.raises(EntityNotFoundError, match="Quote not found"):
            quotation_service.select_quote(
                sent_quotation.id, test_actor_id, sent_quotation.items[0].id, supplier.id,
            )


class TestCompleteAndConvert:

    @pytest.fixture
    def completed_quotation(
        self, quotation_service, create_quotation, material, second_material,
        supplier, second_supplier, test_actor_id,
    ):
        """Two items: ``material`` awarded to ``supplier``, ``second_material`` to ``second_supplier``."""
        quotation = create_quotation(
            [(material, 100, "12"), (second_material, 20, None)],
            target_suppliers=(supplier, second_supplier),
        )
        quotation_service.send(quotation.id, test_actor_id)
        for item, winner, loser in (
            (quotation.items[0], supplier, second_supplier),
            (quotation.items[1], second_supplier, supplier),
        ):
            quotation_service.add_quote(quotation.id, test_actor_id, item.id, winner.id, "10")
            result = quotation_service.add_quote(quotation.id, test_actor_id, item.id, loser.id, "15")
            best = result.item(item.id).best_quote
            quotation_service.select_quote(quotation.id, test_actor_id, item.id, best.id)
        return quotation_service.complete(quotation.id, test_actor_id)

    def test_complete_requires_every_item_selected(
        self, quotation_service, sent_quotation, supplier, test_actor_id,
    ):
        quotation_service.add_quote(
            sent_quotation.id, test_actor_id, sent_quotation.items[0].id, supplier.id, "12",
        )

        with pytest.raises(ValidationError, match="All items must have a selected quote"):
            quotation_service.complete(sent_quotation.id, test_actor_id)

    def test_complete(self, completed_quotation):
        assert completed_quotation.status == QuotationStatus.COMPLETED
        assert completed_quotation.is_fully_selected
        assert completed_quotation.selected_quotes.supplier_count == 2

    def test_convert_creates_one_order_per_supplier(
        self, quotation_service, po_service, completed_quotation, supplier, second_supplier,
        material, second_material, test_actor_id, deterministic_clock,
    ):
        orders = quotation_service.convert_to_purchase_orders(completed_quotation.id, test_actor_id)

        assert [po.supplier_id for po in orders] == [supplier.id, second_supplier.id]
        first, second = orders
        assert first.status == PurchaseOrderStatus.DRAFT
        assert first.quotation_id == completed_quotation.id
        assert first.notes == f"Generated from quotation: {completed_quotation.quotation_number}"
        assert first.expected_delivery_date == deterministic_clock.now() + timedelta(days=14)
        assert [(i.material_id, i.quantity, i.unit_price) for i in first.items] == [
            (material.id, Decimal("100"), Decimal("10")),
        ]
        assert [i.material_id for i in second.items] == [second_material.id]

        stored = quotation_service.get(completed_quotation.id)
        assert [c.purchase_order_id for c in stored.purchase_orders] == [first.id, second.id]

    def test_convert_publishes_event(self, quotation_service, completed_quotation, session, test_actor_id):
        quotation_service.convert_to_purchase_orders(completed_quotation.id, test_actor_id)

        events = OutboxService(session).pending(QUOTATION_CONVERTED)

        assert len(events) == 1
        assert events[0].aggregate_id == completed_quotation.id

    def test_convert_only_once(self, quotation_service, completed_quotation, test_actor_id):
        quotation_service.convert_to_purchase_orders(completed_quotation.id, test_actor_id)

        with pytest.raises(TransitionNotAllowedError, match="already been converted"):
            quotation_service.convert_to_purchase_orders(completed_quotation.id, test_actor_id)

    def test_convert_requires_completion(self, quotation_service, sent_quotation, test_actor_id):
        with pytest.raises(TransitionNotAllowedError, match="Only completed quotations"):
            quotation_service.convert_to_purchase_orders(sent_quotation.id, test_actor_id)

    def test_completed_cannot_be_cancelled_or_deleted(self, quotation_service, completed_quotation, test_actor_id):
        with pytest.raises(TransitionNotAllowedError, match="Cannot cancel a completed quotation"):
            quotation_service.cancel(completed_quotation.id, test_actor_id, "changed mind")
        with pytest.raises(TransitionNotAllowedError, match="Cancel it first"):
            quotation_service.delete(completed_quotation.id, test_actor_id)


class TestQuotationQueries:

    def test_cancel(self, quotation_service, sent_quotation, test_actor_id):
        cancelled = quotation_service.cancel(sent_quotation.id, test_actor_id, "Budget frozen")

        assert cancelled.status == QuotationStatus.CANCELLED
        assert "[Cancelled: Budget frozen]" in cancelled.notes

    def test_cancel_requires_reason(self, quotation_service, sent_quotation, test_actor_id):
        with pytest.raises(ValidationError, match="Cancellation reason is required"):
            quotation_service.cancel(sent_quotation.id, test_actor_id, "")

    def test_pending_and_overdue(self, quotation_service, sent_quotation, deterministic_clock):
        assert [q.id for q in quotation_service.pending()] == [sent_quotation.id]
        assert quotation_service.overdue() == []

        deterministic_clock.advance_days(8)

        assert [q.id for q in quotation_service.overdue()] == [sent_quotation.id]
        stats = quotation_service.statistics()
        assert stats.pending == 1
        assert stats.overdue == 1

    def test_list_by_material(self, quotation_service, sent_quotation, create_quotation, material, second_material):
        create_quotation([(second_material, 5, None)])

        assert [q.id for q in quotation_service.list(material_id=material.id)] == [sent_quotation.id]
        assert [q.id for q in quotation_service.list(status="sent")] == [sent_quotation.id]
