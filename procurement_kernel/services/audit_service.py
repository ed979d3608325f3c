"""
AuditLogService -- fire-and-forget audit sink.

Responsibility:
    Accepts (user, action, entity_type, entity_id, metadata) tuples from
    module services and persists them as ``AuditLogEntry`` rows.

Architecture position:
    Kernel > Services.  Called after a module service has applied and
    flushed its own change.

Invariants enforced:
    - A failing audit write never fails the business operation: the insert
      runs inside a savepoint, and any error is logged at WARNING and
      dropped.
    - Entries of one entity carry sequence numbers 1..n in write order;
      ``entries_for`` returns them in that order.

Failure modes:
    - Database errors inside the savepoint -> ``audit_log_write_failed``
      warning with the exception attached; the caller's transaction is
      left untouched.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from procurement_kernel.domain.clock import Clock
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.audit_log import AuditLogEntry
from procurement_kernel.services.base import BaseService
from procurement_kernel.utils.serialization import json_safe

logger = get_logger("services.audit")


class AuditLogService(BaseService):
    """Persists audit tuples; never raises to its caller."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def record(
        self,
        user_id: UUID | None,
        action: str,
        entity_type: str,
        entity_id: UUID | str,
        metadata: dict[str, Any] | None = None,
    ) -> AuditLogEntry | None:
        """Write one audit entry.  Returns None when the write failed."""
        try:
            with self.session.begin_nested():
                entry = AuditLogEntry(
                    user_id=user_id,
                    action=action,
                    entity_type=entity_type,
                    entity_id=str(entity_id),
                    details=json_safe(metadata or {}),
                    occurred_at=self.clock.now(),
                    sequence=self._next_sequence(entity_type, str(entity_id)),
                )
                self.session.add(entry)
                self.session.flush()
        except Exception:  # noqa: BLE001
            logger.warning(
                "audit_log_write_failed",
                extra={
                    "action": action,
                    "entity_type": entity_type,
                    "entity_id": str(entity_id),
                },
                exc_info=True,
            )
            return None

        logger.debug(
            "audit_log_written",
            extra={
                "action": action,
                "entity_type": entity_type,
                "entity_id": str(entity_id),
            },
        )
        return entry

    def entries_for(self, entity_type: str, entity_id: UUID | str) -> list[AuditLogEntry]:
        return list(
            self.session.execute(
                select(AuditLogEntry)
                .where(
                    AuditLogEntry.entity_type == entity_type,
                    AuditLogEntry.entity_id == str(entity_id),
                )
                .order_by(AuditLogEntry.sequence)
            ).scalars()
        )

    def _next_sequence(self, entity_type: str, entity_id: str) -> int:
        current = self.session.execute(
            select(func.max(AuditLogEntry.sequence)).where(
                AuditLogEntry.entity_type == entity_type,
                AuditLogEntry.entity_id == entity_id,
            )
        ).scalar()
        return (current or 0) + 1
