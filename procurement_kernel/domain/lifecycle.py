"""
Document lifecycle variant (``procurement_kernel.domain.lifecycle``).

Responsibility
--------------
Every document is either ``Active`` or ``Removed(at, by)``.  Removal is a
state, not a physical delete; the selector layer hides removed documents
from normal reads.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class Active:
    """The document is visible to normal reads."""

    is_removed: bool = False


@dataclass(frozen=True)
class Removed:
    """The document was soft-deleted by ``by`` at ``at``."""

    at: datetime | None
    by: UUID | None
    is_removed: bool = True


Lifecycle = Active | Removed
