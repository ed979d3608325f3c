"""
Document number formats (``procurement_kernel.domain.document_numbers``).

Responsibility
--------------
Declares the human-readable identifier format of every numbered document
(``PO-YYYYMMDD-NNN`` and friends) and renders / validates numbers.  The
counter itself lives in ``services.sequence_service``; this module only
knows prefixes, widths, and the date-scoped counter key.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* The date segment is the calendar date the number was issued on, so the
  counter (keyed by prefix + date) restarts every day.
* The sequence is zero-padded to the type's width; it grows past the width
  rather than wrapping.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date


@dataclass(frozen=True)
class DocumentNumberFormat:
    """Prefix and zero-pad width for one document type."""

    entity_type: str
    prefix: str
    width: int
    _pattern: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "_pattern",
            re.compile(rf"^{re.escape(self.prefix)}-(\d{{8}})-(\d{{{self.width},}})$"),
        )

    def counter_key(self, on_date: date) -> str:
        """Sequence counter name for the given day, e.g. ``PO-20260106``."""
        return f"{self.prefix}-{on_date:%Y%m%d}"

    def render(self, on_date: date, sequence: int) -> str:
        if sequence < 1:
            raise ValueError(f"Sequence must be positive, got {sequence}")
        return f"{self.counter_key(on_date)}-{sequence:0{self.width}d}"

    def is_valid(self, number: str) -> bool:
        match = self._pattern.match(number or "")
        if match is None:
            return False
        try:
            date(int(match[1][:4]), int(match[1][4:6]), int(match[1][6:]))
        except ValueError:
            return False
        return True

    def parse_sequence(self, number: str) -> int:
        match = self._pattern.match(number or "")
        if match is None:
            raise ValueError(f"{number!r} is not a valid {self.entity_type} number")
        return int(match[2])


SUPPLIER_NUMBER = DocumentNumberFormat("Supplier", "SUP", 3)
MATERIAL_NUMBER = DocumentNumberFormat("Material", "MAT", 3)
QUOTATION_NUMBER = DocumentNumberFormat("MaterialQuotation", "MQ", 4)
PURCHASE_ORDER_NUMBER = DocumentNumberFormat("PurchaseOrder", "PO", 3)
GOODS_RECEIPT_NUMBER = DocumentNumberFormat("GoodsReceipt", "GR", 4)

ALL_FORMATS: tuple[DocumentNumberFormat, ...] = (
    SUPPLIER_NUMBER,
    MATERIAL_NUMBER,
    QUOTATION_NUMBER,
    PURCHASE_ORDER_NUMBER,
    GOODS_RECEIPT_NUMBER,
)
