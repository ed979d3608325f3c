"""
Audit log entry model.

One row per (user, action, entity_type, entity_id, metadata) tuple written
by ``AuditLogService``.  Rows are append-only; nothing updates them.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base


class AuditLogEntry(Base):
    __tablename__ = "audit_log_entries"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_user", "user_id"),
    )

    user_id: Mapped[UUID | None]
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    # "metadata" is reserved on declarative classes
    details: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict,
    )
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # 1..n per entity, in write order
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def __repr__(self) -> str:
        return f"<AuditLogEntry {self.action} {self.entity_type}:{self.entity_id}>"
