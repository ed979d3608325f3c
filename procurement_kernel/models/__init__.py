"""Kernel ORM models: audit log entries and outbox events."""

from procurement_kernel.models.audit_log import AuditLogEntry
from procurement_kernel.models.outbox import OutboxEvent, OutboxStatus

__all__ = ["AuditLogEntry", "OutboxEvent", "OutboxStatus"]
