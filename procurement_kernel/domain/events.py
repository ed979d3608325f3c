"""
Domain events (``procurement_kernel.domain.events``).

Responsibility
--------------
Side effects that must not be able to undo the transition that caused
them (inventory updates after a receipt completes, PO receiving summaries)
are expressed as ``DomainEvent`` values.  The triggering service appends
the event to the outbox after flushing its own change; a dispatcher runs
the consumers separately.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

GOODS_RECEIPT_COMPLETED = "goods_receipt.completed"
QUOTATION_CONVERTED = "material_quotation.converted"


@dataclass(frozen=True)
class DomainEvent:
    """Something that happened to one aggregate, addressed to consumers."""

    event_type: str
    aggregate_type: str
    aggregate_id: UUID
    occurred_at: datetime
    actor_id: UUID | None = None
    payload: dict[str, Any] = field(default_factory=dict)
