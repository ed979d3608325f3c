"""Tests for kernel validation helpers and document number formats."""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import uuid4

import pytest

from procurement_kernel.domain.document_numbers import (
    GOODS_RECEIPT_NUMBER,
    PURCHASE_ORDER_NUMBER,
    QUOTATION_NUMBER,
)
from procurement_kernel.domain.validation import (
    coerce_enum,
    optional_text,
    require_currency,
    require_positive,
    require_range,
    require_text,
    to_decimal,
    to_uuid,
)
from procurement_kernel.exceptions import ValidationError


class Colour(str, Enum):
    RED = "red"


class TestValidationHelpers:

    def test_coerce_enum_accepts_value_and_member(self):
        assert coerce_enum(Colour, "red", "colour") is Colour.RED
        assert coerce_enum(Colour, Colour.RED, "colour") is Colour.RED

    def test_coerce_enum_rejects_unknown_value(self):
        with pytest.raises(ValidationError) as exc_info:
            coerce_enum(Colour, "blue", "colour")
        assert exc_info.value.field == "colour"

    def test_require_text_strips(self):
        assert require_text("  name ", "name") == "name"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_require_text_rejects_blank(self, value):
        with pytest.raises(ValidationError, match="name is required"):
            require_text(value, "name")

    def test_optional_text_blank_is_none(self):
        assert optional_text("  ") is None
        assert optional_text(None) is None

    def test_to_decimal_goes_through_str(self):
        assert to_decimal(0.1, "x") == Decimal("0.1")
        assert to_decimal("12.50", "x") == Decimal("12.50")

    def test_to_decimal_default_and_required(self):
        assert to_decimal(None, "x", Decimal("0")) == Decimal("0")
        with pytest.raises(ValidationError, match="x is required"):
            to_decimal(None, "x")

    def test_to_decimal_rejects_text(self):
        with pytest.raises(ValidationError, match="must be a number"):
            to_decimal("ten", "x")

    def test_require_positive(self):
        with pytest.raises(ValidationError, match="quantity must be greater than 0"):
            require_positive(Decimal("0"), "quantity")

    def test_require_range_bounds_are_inclusive(self):
        assert require_range(Decimal("100"), "tax_rate", Decimal("0"), Decimal("100")) == Decimal("100")
        with pytest.raises(ValidationError, match="between 0 and 100"):
            require_range(Decimal("100.01"), "tax_rate", Decimal("0"), Decimal("100"))

    def test_to_uuid(self):
        value = uuid4()
        assert to_uuid(str(value), "id") == value
        with pytest.raises(ValidationError, match="valid identifier"):
            to_uuid("not-a-uuid", "id")

    def test_require_currency_uppercases(self):
        assert require_currency("usd") == "USD"
        with pytest.raises(ValidationError):
            require_currency("GBP")


class TestDocumentNumbers:

    def test_render(self):
        assert PURCHASE_ORDER_NUMBER.render(date(2026, 1, 6), 1) == "PO-20260106-001"
        assert GOODS_RECEIPT_NUMBER.render(date(2026, 1, 6), 12) == "GR-20260106-0012"
        assert QUOTATION_NUMBER.counter_key(date(2026, 1, 6)) == "MQ-20260106"

    def test_sequence_grows_past_width(self):
        number = PURCHASE_ORDER_NUMBER.render(date(2026, 1, 6), 1234)

        assert number == "PO-20260106-1234"
        assert PURCHASE_ORDER_NUMBER.is_valid(number)
        assert PURCHASE_ORDER_NUMBER.parse_sequence(number) == 1234

    def test_rejects_non_positive_sequence(self):
        with pytest.raises(ValueError):
            PURCHASE_ORDER_NUMBER.render(date(2026, 1, 6), 0)

    @pytest.mark.parametrize(
        "number",
        ["PO-20261306-001", "PO-20260106-01", "GR-20260106-001", "", "PO20260106001"],
    )
    def test_invalid_numbers(self, number):
        assert not PURCHASE_ORDER_NUMBER.is_valid(number)
